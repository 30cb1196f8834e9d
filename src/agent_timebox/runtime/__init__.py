"""Bounded execution runtime for external CLI text-generation backends.

A caller hands a prompt to ``AdaptiveRetryLoop`` and gets back exactly one
``ExecutionOutcome`` (complete or partial) or one ``ExecutionError``. Every
attempt runs under ``ProcessSupervisor``, which never lets a backend process
outlive its window plus a grace delay.
"""

from agent_timebox.runtime.cancellation import CancellationToken
from agent_timebox.runtime.command import BuiltCommand, CommandBuilder
from agent_timebox.runtime.errors import (
    BudgetExhaustedError,
    CommandTemplateError,
    ExecutionCancelled,
    ExecutionError,
    NoBackendAvailable,
    ProcessExitError,
    SpawnError,
)
from agent_timebox.runtime.models import (
    AttemptResult,
    AttemptStatus,
    BackendDescriptor,
    ExecutionOutcome,
    ExecutionRequest,
    ExecutionSession,
    SessionState,
    StructuredResponse,
)
from agent_timebox.runtime.normalizer import ResponseNormalizer
from agent_timebox.runtime.registry import BackendRegistry, TaskDescriptor
from agent_timebox.runtime.retry_loop import AdaptiveRetryLoop, build_continuation_prompt
from agent_timebox.runtime.supervisor import ProcessSupervisor

__all__ = [
    "AdaptiveRetryLoop",
    "AttemptResult",
    "AttemptStatus",
    "BackendDescriptor",
    "BackendRegistry",
    "BudgetExhaustedError",
    "BuiltCommand",
    "CancellationToken",
    "CommandBuilder",
    "CommandTemplateError",
    "ExecutionCancelled",
    "ExecutionError",
    "ExecutionOutcome",
    "ExecutionRequest",
    "ExecutionSession",
    "NoBackendAvailable",
    "ProcessExitError",
    "ProcessSupervisor",
    "ResponseNormalizer",
    "SessionState",
    "SpawnError",
    "StructuredResponse",
    "TaskDescriptor",
    "build_continuation_prompt",
]
