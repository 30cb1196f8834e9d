"""Run one prompt on every usable backend and summarize the results."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass

from agent_timebox.runtime.cancellation import CancellationToken
from agent_timebox.runtime.errors import ExecutionError
from agent_timebox.runtime.models import ExecutionOutcome
from agent_timebox.runtime.registry import BackendRegistry
from agent_timebox.runtime.retry_loop import AdaptiveRetryLoop

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ComparisonEntry:
    """Outcome of one backend in a comparison run."""

    backend_id: str
    success: bool
    elapsed_seconds: float
    outcome: ExecutionOutcome | None = None
    error: str | None = None

    @property
    def response_chars(self) -> int:
        return len(self.outcome.text) if self.outcome is not None else 0


def compare_backends(
    *,
    prompt: str,
    registry: BackendRegistry,
    loop: AdaptiveRetryLoop,
    cancel: CancellationToken | None = None,
) -> list[ComparisonEntry]:
    """Execute `prompt` sequentially on each enabled and installed backend."""

    entries: list[ComparisonEntry] = []
    for backend_id in registry.usable_backends():
        started = time.monotonic()
        try:
            outcome = loop.run(registry.descriptor(backend_id), prompt, cancel=cancel)
        except ExecutionError as error:
            logger.warning("Comparison run failed for %s: %s", backend_id, error)
            entries.append(
                ComparisonEntry(
                    backend_id=backend_id,
                    success=False,
                    elapsed_seconds=time.monotonic() - started,
                    error=str(error),
                ),
            )
            continue
        entries.append(
            ComparisonEntry(
                backend_id=backend_id,
                success=True,
                elapsed_seconds=time.monotonic() - started,
                outcome=outcome,
            ),
        )
    return entries


def render_comparison_lines(entries: list[ComparisonEntry]) -> list[str]:
    """Rank successful backends by elapsed time and list their response sizes."""

    lines = ["Backend comparison:"]
    for entry in entries:
        if not entry.success:
            lines.append(f"  {entry.backend_id}: failed ({entry.error})")
    successful = sorted(
        (entry for entry in entries if entry.success),
        key=lambda entry: entry.elapsed_seconds,
    )
    if not successful:
        lines.append("  all backends failed" if entries else "  no usable backends")
        return lines

    lines.append("Elapsed time ranking:")
    for rank, entry in enumerate(successful, start=1):
        partial = " (partial)" if entry.outcome is not None and entry.outcome.partial else ""
        lines.append(f"  {rank}. {entry.backend_id}: {entry.elapsed_seconds:.1f}s{partial}")
    lines.append("Response length:")
    lines.extend(f"  {entry.backend_id}: {entry.response_chars} chars" for entry in successful)
    return lines
