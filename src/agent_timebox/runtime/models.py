"""Domain models for bounded backend execution."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from agent_timebox.config import BackendSettings


class AttemptStatus(str, Enum):
    """Terminal states of one supervised process attempt."""

    COMPLETED = "completed"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"


class SessionState(str, Enum):
    """Terminal states of one retry-loop session."""

    RUNNING = "running"
    COMPLETED = "completed"
    PARTIAL = "partial"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class BackendDescriptor:
    """Immutable per-run view of one configured backend."""

    backend_id: str
    enabled: bool
    display_model: str
    command_template: str
    initial_window_seconds: float
    max_total_budget_seconds: float
    extension_window_seconds: float
    auto_extend_enabled: bool = True

    @classmethod
    def from_settings(cls, backend_id: str, settings: BackendSettings) -> BackendDescriptor:
        return cls(
            backend_id=backend_id,
            enabled=settings.enabled,
            display_model=settings.model,
            command_template=settings.command_template,
            initial_window_seconds=settings.initial_window_seconds,
            max_total_budget_seconds=settings.max_total_budget_seconds,
            extension_window_seconds=settings.extension_window_seconds,
            auto_extend_enabled=settings.auto_extend,
        )


@dataclass(slots=True)
class ExecutionRequest:
    """Caller input for one top-level execution."""

    prompt: str
    backend_id: str = "auto"
    options: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class AttemptResult:
    """Output collected during one supervised attempt."""

    stdout: str
    stderr: str
    status: AttemptStatus
    exit_code: int | None
    elapsed_seconds: float

    @property
    def completed(self) -> bool:
        return self.status == AttemptStatus.COMPLETED

    @property
    def timed_out(self) -> bool:
        return self.status == AttemptStatus.TIMED_OUT


@dataclass(slots=True)
class ExecutionSession:
    """Mutable bookkeeping for one retry-loop session; never persisted."""

    backend_id: str
    original_prompt: str
    current_prompt: str
    session_start: float
    current_window: float
    total_elapsed: float = 0.0
    attempt_index: int = 0
    accumulated_output: str = ""
    last_attempt_output: str | None = None
    granted_windows: list[float] = field(default_factory=list)
    state: SessionState = SessionState.RUNNING

    def append_partial(self, stdout: str) -> None:
        """Record timed-out output; accumulated output only grows."""

        self.accumulated_output += stdout
        self.last_attempt_output = stdout

    @property
    def partial_text(self) -> str:
        return self.accumulated_output or self.last_attempt_output or ""


@dataclass(frozen=True, slots=True)
class StructuredResponse:
    """Non-text `result` value extracted from a JSON-shaped backend reply."""

    result: Any
    raw: str


NormalizedResponse = str | StructuredResponse


@dataclass(frozen=True, slots=True)
class ExecutionOutcome:
    """Value handed back to the caller; `partial` marks budget-exhausted output."""

    response: NormalizedResponse
    backend_id: str
    partial: bool
    attempts: int
    elapsed_seconds: float
    raw_output: str

    @property
    def text(self) -> str:
        if isinstance(self.response, StructuredResponse):
            return self.response.raw
        return self.response
