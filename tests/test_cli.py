from __future__ import annotations

import json
import shlex
import sys

import allure
from click.testing import CliRunner

from agent_timebox.main import agent_timebox

pytestmark = [
    allure.epic("Backend Runtime"),
    allure.feature("CLI"),
]

_ECHO_AGENT = f"{shlex.quote(sys.executable)} -m agent_timebox.runtime.echo_agent"


def _configure(monkeypatch, gemini_args: str, **extra_env: str) -> None:
    monkeypatch.setenv("AGENT_TIMEBOX_DEFAULT_BACKEND", "gemini")
    monkeypatch.setenv("AGENT_TIMEBOX_GEMINI_COMMAND", f"{_ECHO_AGENT} {gemini_args}")
    monkeypatch.setenv("AGENT_TIMEBOX_GEMINI_ENABLED", "1")
    monkeypatch.setenv("AGENT_TIMEBOX_CLAUDE_ENABLED", "0")
    for name, value in extra_env.items():
        monkeypatch.setenv(f"AGENT_TIMEBOX_{name}", value)


def test_run_prints_normalized_response(monkeypatch) -> None:
    _configure(monkeypatch, "--mode json --noise")

    result = CliRunner().invoke(agent_timebox, ["run", "hello world"])

    assert result.exit_code == 0, result.output
    assert result.stdout.strip().splitlines()[-1] == "hello world"


def test_run_json_envelope(monkeypatch, tmp_path) -> None:
    _configure(monkeypatch, "--mode echo")
    prompt_file = tmp_path / "prompt.txt"
    prompt_file.write_text("from a file", "utf-8")

    result = CliRunner().invoke(
        agent_timebox,
        ["run", "--prompt-file", str(prompt_file), "--json"],
    )

    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["backend"] == "gemini"
    assert payload["partial"] is False
    assert payload["attempts"] == 1
    assert payload["response"] == "from a file"


def test_run_reports_partial_response(monkeypatch) -> None:
    _configure(
        monkeypatch,
        "--mode stream",
        GEMINI_TIMEOUT="0.5",
        GEMINI_EXTENSION="0.5",
        GEMINI_MAX_TIMEOUT="1",
        GRACE_SECONDS="1",
    )

    result = CliRunner().invoke(agent_timebox, ["run", "long job"])

    assert result.exit_code == 0, result.output
    assert "WARNING: partial response from gemini" in result.stdout
    assert "partial-1" in result.stdout


def test_run_failure_exits_nonzero_with_stderr(monkeypatch) -> None:
    _configure(monkeypatch, "--mode fail --message boom")

    result = CliRunner().invoke(agent_timebox, ["run", "x"])

    assert result.exit_code != 0
    assert "boom" in result.output


def test_run_without_usable_backend(monkeypatch) -> None:
    _configure(monkeypatch, "--mode echo", DEFAULT_BACKEND="claude")

    result = CliRunner().invoke(agent_timebox, ["run", "x"])

    assert result.exit_code != 0
    assert "No backend available" in result.output


def test_run_requires_prompt(monkeypatch) -> None:
    _configure(monkeypatch, "--mode echo")

    result = CliRunner().invoke(agent_timebox, ["run"])

    assert result.exit_code != 0
    assert "PROMPT" in result.output


def test_backends_lists_availability(monkeypatch) -> None:
    _configure(monkeypatch, "--mode echo")

    result = CliRunner().invoke(agent_timebox, ["backends"])

    assert result.exit_code == 0, result.output
    assert "default_backend=gemini" in result.stdout
    assert "gemini: enabled=yes available=yes" in result.stdout
    assert "claude: enabled=no" in result.stdout


def test_smoke_runs_synthetic_prompt(monkeypatch) -> None:
    _configure(monkeypatch, "--mode echo")

    result = CliRunner().invoke(
        agent_timebox,
        ["smoke", "--backend", "gemini", "--expect-substring", "connectivity"],
    )

    assert result.exit_code == 0, result.output
    assert "backend=gemini available=yes probe=ok run=ok" in result.stdout


def test_smoke_reports_disabled_backend(monkeypatch) -> None:
    _configure(monkeypatch, "--mode echo")

    result = CliRunner().invoke(agent_timebox, ["smoke", "--backend", "claude"])

    assert result.exit_code != 0
    assert "run=skipped" in result.output
    assert "Backend is disabled." in result.output


def test_compare_ranks_usable_backends(monkeypatch) -> None:
    _configure(
        monkeypatch,
        "--mode echo",
        CLAUDE_ENABLED="1",
        CLAUDE_COMMAND=f"{_ECHO_AGENT} --mode fail --message nope",
    )

    result = CliRunner().invoke(agent_timebox, ["compare", "same prompt"])

    assert result.exit_code == 0, result.output
    assert "claude: failed (Backend exited with code 1: nope)" in result.stdout
    assert "1. gemini:" in result.stdout
    assert "gemini: 11 chars" in result.stdout
