from __future__ import annotations

import allure
import pytest

from agent_timebox.config import BackendSettings, RuntimeSettings, Settings

pytestmark = [
    allure.epic("Backend Runtime"),
    allure.feature("Configuration"),
]


def _backends() -> dict[str, BackendSettings]:
    return {
        "gemini": BackendSettings(model="g", command_template="gemini --model {model}"),
        "claude": BackendSettings(model="c", command_template="claude -p --model {model}"),
    }


def test_from_env_defaults(monkeypatch) -> None:
    for name in (
        "AGENT_TIMEBOX_DEFAULT_BACKEND",
        "AGENT_TIMEBOX_GEMINI_TIMEOUT",
        "AGENT_TIMEBOX_GEMINI_MAX_TIMEOUT",
        "AGENT_TIMEBOX_CLAUDE_ENABLED",
    ):
        monkeypatch.delenv(name, raising=False)

    settings = Settings.from_env()

    assert settings.default_backend == "gemini"
    assert set(settings.backends) == {"gemini", "claude"}
    assert settings.backends["gemini"].initial_window_seconds == 300
    assert settings.backends["gemini"].max_total_budget_seconds == 3600
    assert settings.backends["claude"].enabled is True
    assert settings.runtime.grace_seconds == 5
    settings.validate()


def test_from_env_reads_backend_overrides(monkeypatch) -> None:
    monkeypatch.setenv("AGENT_TIMEBOX_DEFAULT_BACKEND", " AUTO ")
    monkeypatch.setenv("AGENT_TIMEBOX_CLAUDE_ENABLED", "off")
    monkeypatch.setenv("AGENT_TIMEBOX_CLAUDE_AUTO_EXTEND", "no")
    monkeypatch.setenv("AGENT_TIMEBOX_GEMINI_TIMEOUT", "12.5")
    monkeypatch.setenv("AGENT_TIMEBOX_GEMINI_EXTENSION", "7")
    monkeypatch.setenv("AGENT_TIMEBOX_GEMINI_MODEL", "gemini-test")

    settings = Settings.from_env()

    assert settings.default_backend == "auto"
    assert settings.backends["claude"].enabled is False
    assert settings.backends["claude"].auto_extend is False
    assert settings.backends["gemini"].initial_window_seconds == 12.5
    assert settings.backends["gemini"].extension_window_seconds == 7
    assert settings.backends["gemini"].model == "gemini-test"


def test_from_env_rejects_invalid_boolean(monkeypatch) -> None:
    monkeypatch.setenv("AGENT_TIMEBOX_GEMINI_AUTO_EXTEND", "maybe")

    with pytest.raises(ValueError, match="AGENT_TIMEBOX_GEMINI_AUTO_EXTEND"):
        Settings.from_env()


def test_validate_rejects_unknown_default_backend() -> None:
    settings = Settings(default_backend="codex", backends=_backends())

    with pytest.raises(ValueError, match="Unknown default backend"):
        settings.validate()


def test_validate_rejects_non_positive_budget() -> None:
    backends = _backends()
    backends["claude"].max_total_budget_seconds = 0

    with pytest.raises(ValueError, match="Total budget must be > 0"):
        Settings(backends=backends).validate()


def test_validate_rejects_negative_grace() -> None:
    settings = Settings(backends=_backends(), runtime=RuntimeSettings(grace_seconds=-1))

    with pytest.raises(ValueError, match="GRACE_SECONDS"):
        settings.validate()
