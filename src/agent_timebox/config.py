"""Runtime configuration for backend selection and execution budgets."""

from __future__ import annotations

import os
from dataclasses import dataclass, field

AUTO_BACKEND = "auto"
BACKEND_PRIORITY = ("gemini", "claude")

DEFAULT_COMMAND_TEMPLATES = {
    "gemini": "gemini --model {model}",
    "claude": "claude -p --model {model}",
}
DEFAULT_MODELS = {
    "gemini": "gemini-2.5-pro",
    "claude": "claude-sonnet-4",
}


@dataclass(slots=True)
class BackendSettings:
    """Per-backend invocation and budget settings."""

    enabled: bool = True
    model: str = ""
    command_template: str = ""
    initial_window_seconds: float = 300.0
    max_total_budget_seconds: float = 3_600.0
    extension_window_seconds: float = 300.0
    auto_extend: bool = True


@dataclass(slots=True)
class RuntimeSettings:
    """Supervisor and retry-loop tuning shared by all backends."""

    progress_interval_seconds: float = 30.0
    grace_seconds: float = 5.0
    continuation_min_chars: int = 100
    continuation_tail_chars: int = 1_000


@dataclass(slots=True)
class Settings:
    """Application settings grouped by concern."""

    default_backend: str = "gemini"
    backends: dict[str, BackendSettings] = field(default_factory=dict)
    runtime: RuntimeSettings = field(default_factory=RuntimeSettings)

    @classmethod
    def from_env(cls) -> Settings:
        """Load settings from environment with defaults matching the stock CLIs."""

        backends = {
            backend_id: _backend_from_env(backend_id) for backend_id in BACKEND_PRIORITY
        }
        return cls(
            default_backend=os.getenv("AGENT_TIMEBOX_DEFAULT_BACKEND", "gemini").strip().lower(),
            backends=backends,
            runtime=RuntimeSettings(
                progress_interval_seconds=float(
                    os.getenv("AGENT_TIMEBOX_PROGRESS_INTERVAL_SECONDS", "30"),
                ),
                grace_seconds=float(os.getenv("AGENT_TIMEBOX_GRACE_SECONDS", "5")),
                continuation_min_chars=int(
                    os.getenv("AGENT_TIMEBOX_CONTINUATION_MIN_CHARS", "100"),
                ),
                continuation_tail_chars=int(
                    os.getenv("AGENT_TIMEBOX_CONTINUATION_TAIL_CHARS", "1000"),
                ),
            ),
        )

    def validate(self) -> None:
        """Raise configuration error for unusable budgets or an unknown default."""

        if self.default_backend != AUTO_BACKEND and self.default_backend not in self.backends:
            raise ValueError(
                f"Unknown default backend: {self.default_backend!r}. "
                f"Use {AUTO_BACKEND!r} or one of {tuple(self.backends)}.",
            )
        for backend_id, backend in self.backends.items():
            if backend.initial_window_seconds <= 0:
                raise ValueError(f"Initial window must be > 0 for backend={backend_id!r}")
            if backend.max_total_budget_seconds <= 0:
                raise ValueError(f"Total budget must be > 0 for backend={backend_id!r}")
            if backend.extension_window_seconds <= 0:
                raise ValueError(f"Extension window must be > 0 for backend={backend_id!r}")
            if not backend.command_template.strip():
                raise ValueError(f"Empty command template for backend={backend_id!r}")
        if self.runtime.progress_interval_seconds <= 0:
            raise ValueError("AGENT_TIMEBOX_PROGRESS_INTERVAL_SECONDS must be > 0.")
        if self.runtime.grace_seconds < 0:
            raise ValueError("AGENT_TIMEBOX_GRACE_SECONDS must be >= 0.")
        if self.runtime.continuation_tail_chars <= 0:
            raise ValueError("AGENT_TIMEBOX_CONTINUATION_TAIL_CHARS must be > 0.")


def _backend_from_env(backend_id: str) -> BackendSettings:
    prefix = f"AGENT_TIMEBOX_{backend_id.upper()}_"
    return BackendSettings(
        enabled=_env_bool(f"{prefix}ENABLED", default=True),
        model=os.getenv(f"{prefix}MODEL", DEFAULT_MODELS[backend_id]).strip(),
        command_template=os.getenv(
            f"{prefix}COMMAND",
            DEFAULT_COMMAND_TEMPLATES[backend_id],
        ).strip(),
        initial_window_seconds=float(os.getenv(f"{prefix}TIMEOUT", "300")),
        max_total_budget_seconds=float(os.getenv(f"{prefix}MAX_TIMEOUT", "3600")),
        extension_window_seconds=float(os.getenv(f"{prefix}EXTENSION", "300")),
        auto_extend=_env_bool(f"{prefix}AUTO_EXTEND", default=True),
    )


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"Invalid boolean value for {name}: {value!r}")
