"""
Controllable status source shared by the example app and demo.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable

from virtual_node import Node, NodeCondition, NodeStatus, PingError
from virtual_node.models import utcnow

_LOGGER = logging.getLogger(__name__)


class DemoStatusSource:
    """
    Status source whose liveness and conditions are driven by the caller.

    ``fail_pings(count)`` makes the next ``count`` pings fail, and
    ``set_condition`` pushes a status change to the supervisor through the
    registered notification callback.
    """

    def __init__(self, node: Node) -> None:
        self._lock = threading.Lock()
        self._node = node.copy()
        self._callbacks: list[Callable[[Node], None]] = []
        self._pending_ping_failures = 0
        self._pings = 0

    @property
    def pings(self) -> int:
        with self._lock:
            return self._pings

    def ping(self, stop: threading.Event) -> None:
        if stop.is_set():
            raise PingError("supervisor is shutting down")
        with self._lock:
            self._pings += 1
            if self._pending_ping_failures > 0:
                self._pending_ping_failures -= 1
                raise PingError("remote cluster did not answer")

    def notify_status(self, stop: threading.Event, callback: Callable[[Node], None]) -> None:
        with self._lock:
            self._callbacks.append(callback)

    def fail_pings(self, count: int = 1) -> None:
        with self._lock:
            self._pending_ping_failures += max(0, int(count))

    def set_condition(
        self,
        condition_type: str,
        status: str,
        *,
        reason: str = "",
        message: str = "",
    ) -> Node:
        """Update one condition and notify subscribers with the new node."""
        with self._lock:
            current: NodeStatus = self._node.status
            condition = current.condition(condition_type)
            if condition is None:
                condition = NodeCondition(type=condition_type)
                current.conditions.append(condition)
            if condition.status != status:
                condition.last_transition_time = utcnow()
            condition.status = status
            condition.reason = reason
            condition.message = message
            snapshot = self._node.copy()
            callbacks = list(self._callbacks)
        for callback in callbacks:
            callback(snapshot.copy())
        _LOGGER.info("Condition %s of node %s set to %s.", condition_type, snapshot.name, status)
        return snapshot
