"""
Time source used by the supervisor control loop.

The loop needs three things from time: a monotonic reading for timer
deadlines, an aware UTC wall-clock reading for heartbeat and lease
timestamps, and a way to block on the event queue until a deadline. Keeping
them behind one object lets tests drive the loop with a deterministic clock.
"""

from __future__ import annotations

import queue
import time
from datetime import datetime
from typing import Any, Protocol

from .models import utcnow


class Clock(Protocol):
    """Behavioral contract for supervisor time sources."""

    def monotonic(self) -> float:
        """Return a monotonic reading in seconds."""

    def now(self) -> datetime:
        """Return the current aware UTC wall-clock time."""

    def wait(self, events: "queue.Queue[Any]", timeout: float) -> Any:
        """Return the next queued event, or ``None`` once ``timeout`` elapses."""

    def sleep(self, seconds: float) -> None:
        """Block the calling thread for ``seconds``."""


class SystemClock:
    """Real clock backed by :mod:`time` and blocking queue reads."""

    def monotonic(self) -> float:
        return time.monotonic()

    def now(self) -> datetime:
        return utcnow()

    def wait(self, events: "queue.Queue[Any]", timeout: float) -> Any:
        try:
            return events.get(timeout=max(0.0, timeout))
        except queue.Empty:
            return None

    def sleep(self, seconds: float) -> None:
        if seconds > 0:
            time.sleep(seconds)
