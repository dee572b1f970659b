"""Cooperative cancellation shared between a run and its controller."""

from __future__ import annotations

import threading
from typing import Optional

from .errors import PlaybackCancelledError


class CancellationToken:
    """Thread-safe flag checked by the engine between actions.

    A controller (API handler, signal handler, test) calls :meth:`cancel`;
    the engine observes it at the top of the next action and stops.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._reason: Optional[str] = None
        self._lock = threading.Lock()

    def cancel(self, reason: str = "Run cancelled by request") -> None:
        with self._lock:
            if self._event.is_set():
                return
            self._reason = reason
            self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise PlaybackCancelledError(self._reason or "Run cancelled")
