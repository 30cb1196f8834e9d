"""Cooperative cancellation shared by the retry loop and the supervisor."""

from __future__ import annotations

import threading


class CancellationToken:
    """Thread-safe, idempotent cancel flag."""

    def __init__(self) -> None:
        self._event = threading.Event()
        self._reason: str | None = None
        self._lock = threading.Lock()

    def cancel(self, reason: str = "cancelled by caller") -> None:
        with self._lock:
            if self._event.is_set():
                return
            self._reason = reason
            self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str:
        return self._reason or "cancelled by caller"

    def wait(self, timeout: float | None = None) -> bool:
        return self._event.wait(timeout)
