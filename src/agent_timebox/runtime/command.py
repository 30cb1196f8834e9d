"""Prompt payload handoff: transient prompt file plus backend argv."""

from __future__ import annotations

import logging
import os
import shlex
import tempfile
import time
from dataclasses import dataclass
from pathlib import Path
from types import TracebackType

from agent_timebox.runtime.errors import CommandTemplateError
from agent_timebox.runtime.models import BackendDescriptor

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class BuiltCommand:
    """Invocable backend command that owns its transient payload file.

    The payload file is streamed to the backend's stdin. Use the command as a
    context manager so the file is removed on every exit path, including
    forced termination of the process.
    """

    argv: list[str]
    payload_path: Path
    backend_id: str

    @property
    def command_head(self) -> str:
        return self.argv[0]

    def cleanup(self) -> None:
        try:
            self.payload_path.unlink()
        except FileNotFoundError:
            return
        except OSError as error:
            logger.warning("Could not remove payload file %s: %s", self.payload_path, error)

    def __enter__(self) -> BuiltCommand:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        self.cleanup()


class CommandBuilder:
    """Turn a prompt into a backend command without shell interpolation."""

    def __init__(self, temp_dir: Path | None = None) -> None:
        self.temp_dir = temp_dir

    def build(self, prompt: str, backend: BackendDescriptor) -> BuiltCommand:
        argv_template = _split_template(backend.command_template)
        payload_path = self._write_payload(prompt, backend.backend_id)
        try:
            argv = _render_argv(
                argv_template,
                model=backend.display_model,
                prompt_file=payload_path,
            )
        except CommandTemplateError:
            payload_path.unlink(missing_ok=True)
            raise
        return BuiltCommand(argv=argv, payload_path=payload_path, backend_id=backend.backend_id)

    def _write_payload(self, prompt: str, backend_id: str) -> Path:
        fd, raw_path = tempfile.mkstemp(
            prefix=f"{backend_id}_prompt_{time.time_ns()}_",
            suffix=".txt",
            dir=self.temp_dir,
        )
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(prompt)
        return Path(raw_path)


def _split_template(command_template: str) -> list[str]:
    stripped = command_template.strip()
    if not stripped:
        raise CommandTemplateError("Backend command template is empty.")
    if "{prompt}" in stripped:
        raise CommandTemplateError(
            "Backend command template must not include {prompt}; "
            "the prompt is streamed on stdin or referenced as {prompt_file}.",
        )
    try:
        argv = shlex.split(stripped)
    except ValueError as error:
        raise CommandTemplateError(f"Unparseable command template: {error}") from error
    if not argv:
        raise CommandTemplateError("Backend command template rendered empty command.")
    return argv


def _render_argv(argv_template: list[str], *, model: str, prompt_file: Path) -> list[str]:
    try:
        return [
            part.format(model=model, prompt_file=str(prompt_file)) for part in argv_template
        ]
    except (KeyError, IndexError, ValueError) as error:
        raise CommandTemplateError(
            f"Unsupported command template placeholder: {error}",
        ) from error
