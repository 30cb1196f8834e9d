"""Single-attempt process supervision with graceful-then-forced termination."""

from __future__ import annotations

import logging
import os
import signal
import subprocess
import threading
import time
from collections.abc import Callable
from typing import IO

from agent_timebox.runtime.cancellation import CancellationToken
from agent_timebox.runtime.command import BuiltCommand
from agent_timebox.runtime.errors import ProcessExitError, SpawnError
from agent_timebox.runtime.models import AttemptResult, AttemptStatus

logger = logging.getLogger(__name__)

_READ_CHUNK_BYTES = 65_536
_LINGER_SECONDS = 0.2
_POSIX = os.name != "nt"


class _StreamCollector:
    """Drain one child pipe on a daemon thread, keeping chunks in arrival order."""

    def __init__(self, stream: IO[bytes], name: str) -> None:
        self._stream = stream
        self._chunks: list[bytes] = []
        self._size = 0
        self._lock = threading.Lock()
        self.error: BaseException | None = None
        self._abandoned = False
        self.thread = threading.Thread(target=self._pump, daemon=True, name=f"supervisor-{name}")

    def start(self) -> None:
        self.thread.start()

    def _pump(self) -> None:
        read = getattr(self._stream, "read1", self._stream.read)
        try:
            while True:
                chunk = read(_READ_CHUNK_BYTES)
                if not chunk:
                    return
                with self._lock:
                    self._chunks.append(chunk)
                    self._size += len(chunk)
        except (OSError, ValueError) as error:
            if not self._abandoned:
                self.error = error

    @property
    def size(self) -> int:
        with self._lock:
            return self._size

    def text(self) -> str:
        with self._lock:
            data = b"".join(self._chunks)
        return data.decode("utf-8", errors="replace")

    @property
    def drained(self) -> bool:
        return not self.thread.is_alive()

    def finish(self, timeout: float) -> None:
        self.thread.join(timeout=timeout)
        if self.thread.is_alive():
            # A blocked reader holds the buffer lock; only the raw fd can be closed.
            logger.warning(
                "Output reader %s still open after process exit - closing pipe",
                self.thread.name,
            )
            self._abandoned = True
            stream = getattr(self._stream, "raw", self._stream)
        else:
            stream = self._stream
        try:
            stream.close()
        except OSError as error:
            logger.debug("Closing %s failed: %s", self.thread.name, error)


class ProcessSupervisor:
    """Run one bounded-duration attempt of a built backend command.

    All attempt timing (deadline, grace-kill instant, progress instant) lives in
    local state of a single polling loop, so nothing can fire after `run`
    returns or raises.
    """

    def __init__(
        self,
        *,
        grace_seconds: float = 5.0,
        progress_interval_seconds: float = 30.0,
        poll_interval_seconds: float = 0.05,
        on_progress: Callable[[str], None] | None = None,
        env: dict[str, str] | None = None,
    ) -> None:
        self.grace_seconds = max(0.0, grace_seconds)
        self.progress_interval_seconds = progress_interval_seconds
        self.poll_interval_seconds = poll_interval_seconds
        self.env = env
        self._on_progress = on_progress or (lambda _msg: None)

    def run(
        self,
        command: BuiltCommand,
        window_seconds: float,
        *,
        cancel: CancellationToken | None = None,
        attempt: int = 1,
    ) -> AttemptResult:
        """Resolve with output on exit 0 or deadline; raise on nonzero exit or spawn failure."""

        process = self._spawn(command)
        stdout = _StreamCollector(process.stdout, f"{command.backend_id}-{attempt}-stdout")
        stderr = _StreamCollector(process.stderr, f"{command.backend_id}-{attempt}-stderr")
        stdout.start()
        stderr.start()

        started = time.monotonic()
        deadline = started + max(0.0, window_seconds)
        next_progress = started + self.progress_interval_seconds
        termination: AttemptStatus | None = None
        kill_at: float | None = None

        try:
            while True:
                returncode = process.poll()
                if returncode is not None:
                    break

                now = time.monotonic()
                if termination is None:
                    if cancel is not None and cancel.cancelled:
                        termination = AttemptStatus.CANCELLED
                        self._report(f"  cancel requested ({cancel.reason}) - stopping process...")
                    elif now >= deadline:
                        termination = AttemptStatus.TIMED_OUT
                        self._report(f"  timeout ({window_seconds:.1f}s) - stopping process...")
                    if termination is not None:
                        _send_signal(process, force=False)
                        kill_at = now + self.grace_seconds
                elif kill_at is not None and now >= kill_at:
                    self._report("  process ignored termination - forcing kill")
                    _send_signal(process, force=True)
                    kill_at = None

                if now >= next_progress:
                    received = stdout.size
                    if received and termination is None:
                        self._report(
                            f"  progress: {received} bytes received ({now - started:.0f}s elapsed)",
                        )
                    next_progress = now + self.progress_interval_seconds

                self._pause(cancel, termination)
        finally:
            if process.poll() is None:
                _send_signal(process, force=True)
                process.wait()

        stdout.thread.join(timeout=_LINGER_SECONDS)
        stderr.thread.join(timeout=_LINGER_SECONDS)
        if not (stdout.drained and stderr.drained):
            # Leftover descendants in the process group still hold the output pipes.
            _send_signal(process, force=True)
        stdout.finish(timeout=self.grace_seconds + 1.0)
        stderr.finish(timeout=self.grace_seconds + 1.0)
        elapsed = time.monotonic() - started
        stdout_text = stdout.text()
        stderr_text = stderr.text()

        if termination is not None:
            self._report(
                f"  process stopped after {elapsed:.1f}s (collected {len(stdout_text)} chars)",
            )
            return AttemptResult(
                stdout=stdout_text,
                stderr=stderr_text,
                status=termination,
                exit_code=returncode,
                elapsed_seconds=elapsed,
            )

        stream_error = stdout.error or stderr.error
        if stream_error is not None:
            raise SpawnError(
                f"Failed to read output of {command.command_head}: {stream_error}",
            ) from stream_error
        if returncode != 0:
            raise ProcessExitError(returncode, stderr_text)

        self._report(f"  process exited cleanly ({len(stdout_text)} chars)")
        return AttemptResult(
            stdout=stdout_text,
            stderr=stderr_text,
            status=AttemptStatus.COMPLETED,
            exit_code=returncode,
            elapsed_seconds=elapsed,
        )

    def _spawn(self, command: BuiltCommand) -> subprocess.Popen[bytes]:
        try:
            with command.payload_path.open("rb") as payload:
                return subprocess.Popen(  # noqa: S603
                    command.argv,
                    stdin=payload,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.PIPE,
                    env=self.env,
                    start_new_session=_POSIX,
                )
        except FileNotFoundError as error:
            raise SpawnError(f"Backend command not found: {command.command_head}") from error
        except OSError as error:
            raise SpawnError(f"Backend failed to start: {error}", transient=True) from error

    def _pause(self, cancel: CancellationToken | None, termination: AttemptStatus | None) -> None:
        if cancel is not None and termination is None:
            cancel.wait(self.poll_interval_seconds)
            return
        time.sleep(self.poll_interval_seconds)

    def _report(self, message: str) -> None:
        logger.info(message.strip())
        self._on_progress(message)


def _send_signal(process: subprocess.Popen[bytes], *, force: bool) -> None:
    """Signal the whole process group on POSIX so pipe-holding children exit too."""

    try:
        if _POSIX:
            os.killpg(process.pid, signal.SIGKILL if force else signal.SIGTERM)
        elif force:
            process.kill()
        else:
            process.terminate()
    except (ProcessLookupError, PermissionError):
        return
    except OSError as error:
        logger.debug("Signal delivery to pid=%s failed: %s", process.pid, error)
