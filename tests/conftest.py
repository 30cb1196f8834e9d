"""Shared test fixtures."""

from __future__ import annotations

import shlex
import sys
from collections.abc import Callable

import pytest

from agent_timebox.runtime.models import BackendDescriptor

ECHO_AGENT_COMMAND = f"{shlex.quote(sys.executable)} -m agent_timebox.runtime.echo_agent"


@pytest.fixture()
def stub_backend() -> Callable[..., BackendDescriptor]:
    """Factory for backend descriptors that launch the local echo agent."""

    def _make(  # noqa: PLR0913
        agent_args: str = "",
        *,
        command_template: str | None = None,
        backend_id: str = "stub",
        initial_window_seconds: float = 10.0,
        max_total_budget_seconds: float = 20.0,
        extension_window_seconds: float = 10.0,
        auto_extend: bool = True,
    ) -> BackendDescriptor:
        return BackendDescriptor(
            backend_id=backend_id,
            enabled=True,
            display_model="stub-model",
            command_template=command_template or f"{ECHO_AGENT_COMMAND} {agent_args}".strip(),
            initial_window_seconds=initial_window_seconds,
            max_total_budget_seconds=max_total_budget_seconds,
            extension_window_seconds=extension_window_seconds,
            auto_extend_enabled=auto_extend,
        )

    return _make
