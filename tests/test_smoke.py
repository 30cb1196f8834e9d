from __future__ import annotations

import shutil
import sys
from dataclasses import replace

import allure
import pytest

from agent_timebox.runtime.retry_loop import AdaptiveRetryLoop
from agent_timebox.runtime.smoke import run_smoke_checks

pytestmark = [
    allure.epic("Backend Runtime"),
    allure.feature("Smoke Checks"),
]


def _which_python(executable: str) -> str | None:
    return sys.executable if executable == sys.executable else None


def test_smoke_passes_for_echo_backend(stub_backend) -> None:
    results = run_smoke_checks(
        backends=[stub_backend()],
        loop=AdaptiveRetryLoop(),
        prompt="ping connectivity",
        expect_substring="connectivity",
        timeout_seconds=10,
        which=_which_python,
    )

    assert len(results) == 1
    result = results[0]
    assert result.available is True
    assert result.probe_ok is True
    assert result.run_ok is True
    assert result.error is None
    assert result.response_preview == "ping connectivity"


def test_smoke_reports_missing_substring(stub_backend) -> None:
    [result] = run_smoke_checks(
        backends=[stub_backend()],
        loop=AdaptiveRetryLoop(),
        prompt="hello",
        expect_substring="absent",
        timeout_seconds=10,
        which=_which_python,
    )

    assert result.run_ok is False
    assert result.skipped_run is False
    assert "missing expected substring" in (result.error or "")


def test_smoke_reports_backend_failure(stub_backend) -> None:
    [result] = run_smoke_checks(
        backends=[stub_backend("--mode fail --message nope --exit-code 3")],
        loop=AdaptiveRetryLoop(),
        timeout_seconds=10,
        which=_which_python,
    )

    assert result.probe_ok is True
    assert result.run_ok is False
    assert "code 3" in (result.error or "")
    assert "nope" in (result.error or "")


def test_smoke_skips_missing_executable(stub_backend) -> None:
    [result] = run_smoke_checks(
        backends=[stub_backend()],
        loop=AdaptiveRetryLoop(),
        which=lambda _name: None,
    )

    assert result.available is False
    assert result.skipped_run is True
    assert result.error is not None
    assert result.error.startswith("Executable not found in PATH")


def test_smoke_skips_disabled_backend(stub_backend) -> None:
    [result] = run_smoke_checks(
        backends=[replace(stub_backend(), enabled=False)],
        loop=AdaptiveRetryLoop(),
        which=_which_python,
    )

    assert result.available is True
    assert result.skipped_run is True
    assert result.error == "Backend is disabled."


def test_smoke_flags_partial_response(stub_backend) -> None:
    [result] = run_smoke_checks(
        backends=[stub_backend("--mode stream")],
        loop=AdaptiveRetryLoop(),
        timeout_seconds=1,
        which=_which_python,
    )

    assert result.run_ok is False
    assert result.error == "Synthetic prompt only produced a partial response."
    assert result.response_preview == "partial-1"


@pytest.mark.skipif(shutil.which("false") is None, reason="needs the `false` utility")
def test_smoke_reports_failed_version_flags(stub_backend) -> None:
    [result] = run_smoke_checks(
        backends=[stub_backend(command_template="false")],
        loop=AdaptiveRetryLoop(),
        which=shutil.which,
    )

    assert result.available is True
    assert result.probe_ok is False
    assert result.skipped_run is True
    assert result.error is not None
    assert result.error.startswith("Probe command failed: --version exited 1, --help exited 1")


def test_smoke_preview_is_compacted(stub_backend) -> None:
    [result] = run_smoke_checks(
        backends=[stub_backend()],
        loop=AdaptiveRetryLoop(),
        prompt="line one\nline two " + "word " * 100,
        timeout_seconds=10,
        which=_which_python,
    )

    assert result.response_preview.startswith("line one line two word")
    assert result.response_preview.endswith(" ...")
    assert len(result.response_preview) <= 240
