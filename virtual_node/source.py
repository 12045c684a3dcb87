"""
Minimal status source implementation.
"""

from __future__ import annotations

import threading
from collections.abc import Callable

from .exceptions import PingError
from .models import Node


class NaiveStatusSource:
    """
    Status source that only reports liveness based on the stop signal.

    ``ping`` fails once the supervisor is asked to stop and ``notify_status``
    is a no-op, so the node status is whatever the supervisor was started with.
    """

    def ping(self, stop: threading.Event) -> None:
        if stop.is_set():
            raise PingError("supervisor is shutting down")

    def notify_status(self, stop: threading.Event, callback: Callable[[Node], None]) -> None:
        return None
