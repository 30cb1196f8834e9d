"""Controllers for agent-timebox CLI commands."""

from __future__ import annotations

import json
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from agent_timebox.config import Settings
from agent_timebox.runtime.compare import compare_backends, render_comparison_lines
from agent_timebox.runtime.models import ExecutionOutcome, ExecutionRequest, StructuredResponse
from agent_timebox.runtime.registry import BackendRegistry
from agent_timebox.runtime.retry_loop import AdaptiveRetryLoop
from agent_timebox.runtime.smoke import DEFAULT_SMOKE_PROMPT, run_smoke_checks

ProgressCallback = Callable[[str], None]


@dataclass(slots=True)
class RunCommand:
    """CLI input for a single bounded execution."""

    prompt: str | None
    prompt_file: Path | None
    backend: str | None
    as_json: bool = False


@dataclass(slots=True)
class SmokeCommand:
    """CLI input for backend smoke checks."""

    backends: tuple[str, ...]
    prompt: str = DEFAULT_SMOKE_PROMPT
    expect_substring: str = ""
    timeout_seconds: float = 60.0


@dataclass(slots=True)
class SmokeReport:
    """Smoke-check report to render in CLI."""

    lines: list[str]
    success: bool


@dataclass(slots=True)
class CompareCommand:
    """CLI input for a multi-backend comparison."""

    prompt: str


class AgentCliController:
    """Coordinates settings, registry and retry loop for CLI operations."""

    def __init__(self, settings_factory: Callable[[], Settings] = Settings.from_env) -> None:
        self._settings_factory = settings_factory

    def run(self, command: RunCommand, on_progress: ProgressCallback | None = None) -> list[str]:
        settings, registry = self._load()
        prompt = _resolve_prompt(command)
        loop = AdaptiveRetryLoop.from_settings(settings, on_progress=on_progress)
        outcome = loop.execute(
            ExecutionRequest(prompt=prompt, backend_id=command.backend or settings.default_backend),
            registry,
        )
        if command.as_json:
            return [json.dumps(_outcome_payload(outcome), ensure_ascii=False)]
        lines: list[str] = []
        if outcome.partial:
            lines.append(
                f"WARNING: partial response from {outcome.backend_id} "
                f"after {outcome.attempts} attempt(s), {outcome.elapsed_seconds:.1f}s",
            )
        lines.append(_response_text(outcome))
        return lines

    def backends(self) -> list[str]:
        settings, registry = self._load()
        lines = [f"default_backend={settings.default_backend}"]
        for backend_id in registry.priority:
            descriptor = registry.descriptors[backend_id]
            lines.append(
                f"  {backend_id}: enabled={'yes' if descriptor.enabled else 'no'} "
                f"available={'yes' if registry.is_available(backend_id) else 'no'} "
                f"model={descriptor.display_model} "
                f"window={descriptor.initial_window_seconds:.0f}s "
                f"extension={descriptor.extension_window_seconds:.0f}s "
                f"budget={descriptor.max_total_budget_seconds:.0f}s "
                f"auto_extend={'on' if descriptor.auto_extend_enabled else 'off'}",
            )
        return lines

    def smoke(self, command: SmokeCommand) -> SmokeReport:
        settings, registry = self._load()
        selected = set(command.backends) if command.backends else set(registry.priority)
        unknown = selected - set(registry.descriptors)
        if unknown:
            return SmokeReport(
                lines=["Backend smoke check:", f"Unknown backend(s): {', '.join(sorted(unknown))}"],
                success=False,
            )
        results = run_smoke_checks(
            backends=[
                registry.descriptors[backend_id]
                for backend_id in registry.priority
                if backend_id in selected
            ],
            loop=AdaptiveRetryLoop.from_settings(settings),
            prompt=command.prompt,
            expect_substring=command.expect_substring,
            timeout_seconds=command.timeout_seconds,
        )
        lines = [
            "Backend smoke check:",
            f"prompt={command.prompt!r}",
            f"timeout_seconds={command.timeout_seconds:g}",
        ]
        success = True
        for result in results:
            run_state = "ok" if result.run_ok else ("skipped" if result.skipped_run else "failed")
            lines.append(
                f"  backend={result.backend_id} "
                f"available={'yes' if result.available else 'no'} "
                f"probe={'ok' if result.probe_ok else 'failed'} run={run_state}",
            )
            if result.error:
                lines.append(f"    error: {result.error}")
            if result.response_preview:
                lines.append(f"    response: {result.response_preview}")
            success = success and result.run_ok
        return SmokeReport(lines=lines, success=success and bool(results))

    def compare(
        self,
        command: CompareCommand,
        on_progress: ProgressCallback | None = None,
    ) -> list[str]:
        settings, registry = self._load()
        entries = compare_backends(
            prompt=command.prompt,
            registry=registry,
            loop=AdaptiveRetryLoop.from_settings(settings, on_progress=on_progress),
        )
        return render_comparison_lines(entries)

    def _load(self) -> tuple[Settings, BackendRegistry]:
        settings = self._settings_factory()
        settings.validate()
        return settings, BackendRegistry.from_settings(settings)


def _resolve_prompt(command: RunCommand) -> str:
    if command.prompt_file is not None:
        return command.prompt_file.read_text("utf-8")
    if command.prompt:
        return command.prompt
    raise ValueError("A prompt or --prompt-file is required.")


def _response_text(outcome: ExecutionOutcome) -> str:
    if isinstance(outcome.response, StructuredResponse):
        return json.dumps(outcome.response.result, ensure_ascii=False, indent=2)
    return outcome.response


def _outcome_payload(outcome: ExecutionOutcome) -> dict[str, object]:
    response = outcome.response
    return {
        "backend": outcome.backend_id,
        "partial": outcome.partial,
        "attempts": outcome.attempts,
        "elapsed_seconds": round(outcome.elapsed_seconds, 3),
        "response": response.result if isinstance(response, StructuredResponse) else response,
    }
