"""Lightweight smoke checks for configured CLI backends."""

from __future__ import annotations

import shutil
import subprocess
import textwrap
from collections.abc import Callable
from dataclasses import dataclass, replace

from agent_timebox.runtime.errors import ExecutionError
from agent_timebox.runtime.models import BackendDescriptor
from agent_timebox.runtime.registry import command_executable
from agent_timebox.runtime.retry_loop import AdaptiveRetryLoop

DEFAULT_SMOKE_PROMPT = "Hello. This is a connectivity test message. Please reply briefly."
_PROBE_FLAGS = ("--version", "--help")
_PREVIEW_CHARS = 240


@dataclass(slots=True)
class BackendSmokeResult:
    """One backend smoke-check result."""

    backend_id: str
    executable: str
    available: bool
    probe_ok: bool
    run_ok: bool
    skipped_run: bool
    error: str | None
    response_preview: str


def run_smoke_checks(  # noqa: PLR0913
    *,
    backends: list[BackendDescriptor],
    loop: AdaptiveRetryLoop,
    prompt: str = DEFAULT_SMOKE_PROMPT,
    expect_substring: str = "",
    timeout_seconds: float = 60.0,
    which: Callable[[str], str | None] = shutil.which,
) -> list[BackendSmokeResult]:
    """Run PATH lookup, version probe and a synthetic prompt per backend."""

    results: list[BackendSmokeResult] = []
    for backend in backends:
        executable = command_executable(backend.command_template) or ""
        resolved = which(executable) if executable else None
        if not backend.enabled:
            results.append(
                _skipped(
                    backend,
                    executable,
                    available=resolved is not None,
                    error="Backend is disabled.",
                ),
            )
            continue
        if resolved is None:
            results.append(
                _skipped(
                    backend,
                    executable,
                    available=False,
                    error=f"Executable not found in PATH: {executable or '<empty>'}",
                ),
            )
            continue

        probe_error = _run_probe(executable=resolved, timeout_seconds=timeout_seconds)
        if probe_error is not None:
            results.append(
                _skipped(
                    backend,
                    executable,
                    available=True,
                    error=f"{probe_error} (resolved executable: {resolved})",
                ),
            )
            continue

        smoke_backend = replace(
            backend,
            initial_window_seconds=min(backend.initial_window_seconds, timeout_seconds),
            max_total_budget_seconds=min(backend.max_total_budget_seconds, timeout_seconds),
            auto_extend_enabled=False,
        )
        try:
            outcome = loop.run(smoke_backend, prompt)
        except ExecutionError as error:
            results.append(
                BackendSmokeResult(
                    backend_id=backend.backend_id,
                    executable=executable,
                    available=True,
                    probe_ok=True,
                    run_ok=False,
                    skipped_run=False,
                    error=str(error),
                    response_preview="",
                ),
            )
            continue

        failure: str | None = None
        if outcome.partial:
            failure = "Synthetic prompt only produced a partial response."
        elif expect_substring and expect_substring not in outcome.text:
            failure = f"Synthetic output missing expected substring: {expect_substring!r}"
        results.append(
            BackendSmokeResult(
                backend_id=backend.backend_id,
                executable=executable,
                available=True,
                probe_ok=True,
                run_ok=failure is None,
                skipped_run=False,
                error=failure,
                response_preview=_preview(outcome.text),
            ),
        )
    return results


def _skipped(
    backend: BackendDescriptor,
    executable: str,
    *,
    available: bool,
    error: str,
) -> BackendSmokeResult:
    return BackendSmokeResult(
        backend_id=backend.backend_id,
        executable=executable,
        available=available,
        probe_ok=False,
        run_ok=False,
        skipped_run=True,
        error=error,
        response_preview="",
    )


def _run_probe(*, executable: str, timeout_seconds: float) -> str | None:
    """Return None once any informational flag exits 0, else why none did."""

    failures: list[str] = []
    for flag in _PROBE_FLAGS:
        try:
            completed = subprocess.run(  # noqa: S603
                [executable, flag],
                check=False,
                capture_output=True,
                text=True,
                timeout=timeout_seconds,
            )
        except subprocess.TimeoutExpired:
            return f"{flag} probe timed out after {timeout_seconds:g}s."
        except OSError as error:
            return f"Probe failed to start: {error}"
        if completed.returncode == 0:
            return None
        failures.append(f"{flag} exited {completed.returncode}")
    return "Probe command failed: " + ", ".join(failures)


def _preview(value: str) -> str:
    return textwrap.shorten(value, width=_PREVIEW_CHARS, placeholder=" ...")
