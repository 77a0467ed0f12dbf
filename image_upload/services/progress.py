"""Progress channel shared between a transfer engine and its subscribers."""

from __future__ import annotations

import logging
import threading
from typing import Callable

logger = logging.getLogger(__name__)

ProgressListener = Callable[[float], None]


class ProgressChannel:
    """Fan-out of upload progress percentages.

    Engines may publish from several worker threads and out of order; every
    subscriber only ever observes the running maximum, clamped to [0, 100],
    so deliveries are non-decreasing.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._listeners: list[ProgressListener] = []
        self._latest = 0.0

    @property
    def latest(self) -> float:
        with self._lock:
            return self._latest

    def subscribe(self, listener: ProgressListener) -> Callable[[], None]:
        """Register ``listener`` and return a callable that removes it."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def publish(self, percent: float) -> float:
        """Record ``percent`` and notify subscribers with the maximum seen."""
        clamped = min(100.0, max(0.0, float(percent)))
        with self._lock:
            if clamped < self._latest:
                return self._latest
            self._latest = clamped
            listeners = list(self._listeners)
            # Delivered under the lock so concurrent publishers cannot reorder
            for listener in listeners:
                try:
                    listener(clamped)
                except Exception:
                    logger.exception("progress listener failed")
        return clamped
