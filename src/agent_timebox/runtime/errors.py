"""Typed failures surfaced to callers of the retry loop."""

from __future__ import annotations

STDERR_TAIL_CHARS = 2_000


class ExecutionError(RuntimeError):
    """Backend execution error with retryability hint."""

    def __init__(self, message: str, *, transient: bool = False) -> None:
        super().__init__(message)
        self.transient = transient


class NoBackendAvailable(ExecutionError):
    """No enabled backend is installed for the requested selector."""

    def __init__(self, selector: str) -> None:
        super().__init__(f"No backend available for selector={selector!r}")
        self.selector = selector


class CommandTemplateError(ExecutionError):
    """Backend command template cannot be rendered into an argv."""


class SpawnError(ExecutionError):
    """Backend process could not be started or its streams could not be read."""


class ProcessExitError(ExecutionError):
    """Backend exited with a nonzero code before its deadline."""

    def __init__(self, code: int, stderr: str) -> None:
        tail = stderr.strip()[-STDERR_TAIL_CHARS:]
        message = f"Backend exited with code {code}"
        if tail:
            message = f"{message}: {tail}"
        super().__init__(message)
        self.code = code
        self.stderr = stderr


class BudgetExhaustedError(ExecutionError):
    """Total budget ran out without completion and without any partial output."""

    def __init__(self, backend_id: str, budget_seconds: float, attempts: int) -> None:
        super().__init__(
            f"{backend_id} exceeded its total budget of {budget_seconds:.0f}s "
            f"after {attempts} attempt(s) with no output",
            transient=True,
        )
        self.backend_id = backend_id
        self.budget_seconds = budget_seconds
        self.attempts = attempts


class ExecutionCancelled(ExecutionError):
    """Caller cancelled the session; carries whatever output was collected."""

    def __init__(self, reason: str, partial_output: str = "") -> None:
        super().__init__(f"Execution cancelled: {reason}")
        self.reason = reason
        self.partial_output = partial_output
