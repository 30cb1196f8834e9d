"""Adaptive-timeout retry loop driving one backend session.

A session runs attempts under a shrinking wall-clock budget. A timed-out
attempt keeps its partial stdout and, when the backend allows it, the session
is extended by a fixed-size window with a continuation prompt built from the
tail of that output. Continuation is a text heuristic: the backend is asked to
pick up where it stopped, with no guarantee that it resumes exactly.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Protocol

from agent_timebox.config import Settings
from agent_timebox.runtime.cancellation import CancellationToken
from agent_timebox.runtime.command import BuiltCommand, CommandBuilder
from agent_timebox.runtime.errors import (
    BudgetExhaustedError,
    ExecutionCancelled,
    ExecutionError,
)
from agent_timebox.runtime.models import (
    AttemptResult,
    AttemptStatus,
    BackendDescriptor,
    ExecutionOutcome,
    ExecutionRequest,
    ExecutionSession,
    SessionState,
)
from agent_timebox.runtime.normalizer import ResponseNormalizer
from agent_timebox.runtime.registry import BackendRegistry
from agent_timebox.runtime.supervisor import ProcessSupervisor

logger = logging.getLogger(__name__)

CONTINUATION_PREFIX = (
    "[Continuation] Continue the task below. The previous run stopped after this output:\n\n"
)
DEFAULT_CONTINUATION_MIN_CHARS = 100
DEFAULT_CONTINUATION_TAIL_CHARS = 1_000


class AttemptRunner(Protocol):
    """Anything that can run one bounded attempt of a built command."""

    def run(
        self,
        command: BuiltCommand,
        window_seconds: float,
        *,
        cancel: CancellationToken | None = None,
        attempt: int = 1,
    ) -> AttemptResult:
        """Run one attempt and return its output."""


def build_continuation_prompt(
    original_prompt: str,
    last_output: str,
    *,
    tail_chars: int = DEFAULT_CONTINUATION_TAIL_CHARS,
) -> str:
    """Ask the backend to resume after the tail of its previous output."""

    tail = last_output[-tail_chars:]
    return f"{CONTINUATION_PREFIX}...{tail}\n\nOriginal request:\n{original_prompt}"


class AdaptiveRetryLoop:
    """Drive a backend until completion, budget exhaustion, or a fatal error."""

    def __init__(  # noqa: PLR0913
        self,
        *,
        supervisor: AttemptRunner | None = None,
        builder: CommandBuilder | None = None,
        normalizer: ResponseNormalizer | None = None,
        continuation_min_chars: int = DEFAULT_CONTINUATION_MIN_CHARS,
        continuation_tail_chars: int = DEFAULT_CONTINUATION_TAIL_CHARS,
        clock: Callable[[], float] = time.monotonic,
        on_progress: Callable[[str], None] | None = None,
    ) -> None:
        self._on_progress = on_progress or (lambda _msg: None)
        self.supervisor = supervisor or ProcessSupervisor(on_progress=self._on_progress)
        self.builder = builder or CommandBuilder()
        self.normalizer = normalizer or ResponseNormalizer()
        self.continuation_min_chars = continuation_min_chars
        self.continuation_tail_chars = continuation_tail_chars
        self._clock = clock

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        on_progress: Callable[[str], None] | None = None,
    ) -> AdaptiveRetryLoop:
        runtime = settings.runtime
        return cls(
            supervisor=ProcessSupervisor(
                grace_seconds=runtime.grace_seconds,
                progress_interval_seconds=runtime.progress_interval_seconds,
                on_progress=on_progress,
            ),
            continuation_min_chars=runtime.continuation_min_chars,
            continuation_tail_chars=runtime.continuation_tail_chars,
            on_progress=on_progress,
        )

    def execute(
        self,
        request: ExecutionRequest,
        registry: BackendRegistry,
        *,
        cancel: CancellationToken | None = None,
    ) -> ExecutionOutcome:
        """Resolve the requested backend and run one session for the request."""

        backend = registry.select_backend(request.backend_id)
        return self.run(backend, request.prompt, cancel=cancel)

    def run(
        self,
        backend: BackendDescriptor,
        prompt: str,
        *,
        cancel: CancellationToken | None = None,
    ) -> ExecutionOutcome:
        budget = backend.max_total_budget_seconds
        session = ExecutionSession(
            backend_id=backend.backend_id,
            original_prompt=prompt,
            current_prompt=prompt,
            session_start=self._clock(),
            current_window=backend.initial_window_seconds,
        )
        self._report(
            f"{backend.backend_id} session started: model={backend.display_model} "
            f"budget={budget:.0f}s auto_extend={'on' if backend.auto_extend_enabled else 'off'}",
        )

        while True:
            if cancel is not None and cancel.cancelled:
                session.state = SessionState.FAILED
                raise ExecutionCancelled(cancel.reason, session.partial_text)

            session.total_elapsed = self._elapsed(session)
            remaining = budget - session.total_elapsed
            if remaining <= 0:
                break
            session.attempt_index += 1
            session.current_window = min(session.current_window, remaining)
            session.granted_windows.append(session.current_window)
            self._report(
                f"Attempt #{session.attempt_index}: elapsed={session.total_elapsed:.1f}s "
                f"remaining={remaining:.1f}s window={session.current_window:.1f}s",
            )

            result = self._run_attempt(backend, session, cancel)
            if result.completed:
                session.state = SessionState.COMPLETED
                elapsed = self._elapsed(session)
                self._report(
                    f"{backend.backend_id} completed in {elapsed:.1f}s "
                    f"({len(result.stdout)} chars)",
                )
                return self._outcome(session, result.stdout, partial=False)

            session.append_partial(result.stdout)
            if result.status == AttemptStatus.CANCELLED:
                session.state = SessionState.FAILED
                raise ExecutionCancelled(
                    cancel.reason if cancel is not None else "cancelled",
                    session.partial_text,
                )

            session.total_elapsed = self._elapsed(session)
            if session.total_elapsed >= budget:
                self._report(f"Total budget of {budget:.0f}s reached")
                break
            if not backend.auto_extend_enabled:
                self._report("Attempt timed out and auto-extend is disabled")
                break

            session.current_window = min(
                backend.extension_window_seconds,
                budget - session.total_elapsed,
            )
            self._report(
                f"Timeout detected - extending by {session.current_window:.1f}s "
                f"(accumulated {len(session.accumulated_output)} chars)",
            )
            last_output = session.last_attempt_output or ""
            if len(last_output) > self.continuation_min_chars:
                session.current_prompt = build_continuation_prompt(
                    session.original_prompt,
                    last_output,
                    tail_chars=self.continuation_tail_chars,
                )

        return self._exhausted(backend, session)

    def _run_attempt(
        self,
        backend: BackendDescriptor,
        session: ExecutionSession,
        cancel: CancellationToken | None,
    ) -> AttemptResult:
        try:
            with self.builder.build(session.current_prompt, backend) as command:
                return self.supervisor.run(
                    command,
                    session.current_window,
                    cancel=cancel,
                    attempt=session.attempt_index,
                )
        except ExecutionError as error:
            session.state = SessionState.FAILED
            self._report(
                f"{backend.backend_id} failed on attempt #{session.attempt_index}: {error}",
            )
            raise

    def _exhausted(self, backend: BackendDescriptor, session: ExecutionSession) -> ExecutionOutcome:
        partial_text = session.partial_text
        if partial_text:
            session.state = SessionState.PARTIAL
            self._report(f"Returning partial response ({len(partial_text)} chars)")
            return self._outcome(session, partial_text, partial=True)
        session.state = SessionState.FAILED
        raise BudgetExhaustedError(
            backend.backend_id,
            backend.max_total_budget_seconds,
            len(session.granted_windows),
        )

    def _outcome(self, session: ExecutionSession, raw: str, *, partial: bool) -> ExecutionOutcome:
        return ExecutionOutcome(
            response=self.normalizer.normalize(raw),
            backend_id=session.backend_id,
            partial=partial,
            attempts=len(session.granted_windows),
            elapsed_seconds=self._elapsed(session),
            raw_output=raw,
        )

    def _elapsed(self, session: ExecutionSession) -> float:
        return max(session.total_elapsed, self._clock() - session.session_start)

    def _report(self, message: str) -> None:
        logger.info(message)
        self._on_progress(message)
