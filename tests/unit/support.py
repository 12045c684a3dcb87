"""
Shared test doubles for supervisor unit tests.

``FakeClock`` drives the control loop deterministically: waiting on the event
queue advances virtual time instead of blocking, scheduled actions run when
virtual time reaches them, and the run is stopped once virtual time would pass
``until``. Intervals in tests are whole seconds and ``poll_interval_seconds``
is large, so timers fire exactly on their deadlines.
"""

from __future__ import annotations

import heapq
import itertools
import queue
import threading
import time
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any

from virtual_node import (
    InMemoryLeaseStore,
    InMemoryNodeStore,
    Lease,
    Node,
    NodeCondition,
    NodeStatus,
    ObjectMeta,
    PingError,
    SupervisorConfig,
)

WALL_START = datetime(2024, 1, 1, tzinfo=timezone.utc)


class FakeClock:
    """Virtual clock that stops the supervisor at ``until`` seconds."""

    def __init__(self, stop: threading.Event, *, until: float) -> None:
        self.stop = stop
        self.until = until
        self._now = 0.0
        self._sequence = itertools.count()
        self._actions: list[tuple[float, int, Callable[[], None]]] = []
        self.sleeps: list[float] = []

    def at(self, when: float, action: Callable[[], None]) -> None:
        """Run ``action`` on the loop thread once virtual time reaches ``when``."""
        heapq.heappush(self._actions, (when, next(self._sequence), action))

    def monotonic(self) -> float:
        return self._now

    def now(self) -> datetime:
        return WALL_START + timedelta(seconds=self._now)

    def wait(self, events: "queue.Queue[Any]", timeout: float) -> Any:
        try:
            return events.get_nowait()
        except queue.Empty:
            pass
        target = self._now + timeout
        if self._actions and self._actions[0][0] <= min(target, self.until):
            when, _, action = heapq.heappop(self._actions)
            self._now = max(self._now, when)
            action()
            try:
                return events.get_nowait()
            except queue.Empty:
                return None
        if target > self.until:
            self._now = self.until
            self.stop.set()
            return None
        self._now = target
        return None

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)

    def advance(self, seconds: float) -> None:
        """Move virtual time forward outside of the loop."""
        self._now += seconds


class RecordingNodeStore(InMemoryNodeStore):
    """In-memory node store recording call names with the virtual time."""

    def __init__(self, clock: FakeClock | None = None) -> None:
        super().__init__()
        self.clock = clock
        self.calls: list[tuple[str, float]] = []
        self.fail_patches: list[Exception] = []
        self.fail_gets: list[Exception] = []

    def _record(self, name: str) -> None:
        self.calls.append((name, self.clock.monotonic() if self.clock else 0.0))

    def get(self, name: str) -> Node:
        self._record("get")
        if self.fail_gets:
            raise self.fail_gets.pop(0)
        return super().get(name)

    def create(self, node: Node) -> Node:
        self._record("create")
        return super().create(node)

    def patch_status(self, name: str, patch: bytes) -> Node:
        self._record("patch_status")
        if self.fail_patches:
            raise self.fail_patches.pop(0)
        return super().patch_status(name, patch)

    def count(self, call: str, *, after: float = 0.0) -> int:
        """Count ``call`` entries strictly after virtual time ``after``."""
        return sum(1 for name, at in self.calls if name == call and at > after)


class RecordingLeaseStore(InMemoryLeaseStore):
    """In-memory lease store recording calls and injecting failures."""

    def __init__(self, clock: FakeClock | None = None, *, supported: bool = True) -> None:
        super().__init__(supported=supported)
        self.clock = clock
        self.calls: list[tuple[str, float]] = []
        self.fail_updates: list[Exception] = []
        self.fail_creates: list[Exception] = []

    def _record(self, name: str) -> None:
        self.calls.append((name, self.clock.monotonic() if self.clock else 0.0))

    def get(self, name: str) -> Lease:
        self._record("get")
        return super().get(name)

    def create(self, lease: Lease) -> Lease:
        self._record("create")
        if self.fail_creates:
            raise self.fail_creates.pop(0)
        return super().create(lease)

    def update(self, lease: Lease) -> Lease:
        self._record("update")
        if self.fail_updates:
            raise self.fail_updates.pop(0)
        return super().update(lease)

    def delete(self, name: str) -> None:
        self._record("delete")
        super().delete(name)

    def count(self, call: str, *, after: float = 0.0) -> int:
        return sum(1 for name, at in self.calls if name == call and at > after)


class ScriptedStatusSource:
    """Status source whose ping outcomes are scripted by the test."""

    def __init__(self) -> None:
        self.callbacks: list[Callable[[Node], None]] = []
        self.ping_failures: list[Exception] = []
        self.always_fail = False
        self.on_ping: Callable[[], None] | None = None

    def ping(self, stop: threading.Event) -> None:
        if self.on_ping is not None:
            self.on_ping()
        if self.always_fail:
            raise PingError("remote cluster unreachable")
        if self.ping_failures:
            raise self.ping_failures.pop(0)

    def notify_status(self, stop: threading.Event, callback: Callable[[Node], None]) -> None:
        self.callbacks.append(callback)

    def push(self, node: Node) -> None:
        for callback in self.callbacks:
            callback(node)


class SlowNodeStore(InMemoryNodeStore):
    """Node store tracking the peak number of concurrent status patches."""

    def __init__(self, delay_seconds: float = 0.01) -> None:
        super().__init__()
        self.delay_seconds = delay_seconds
        self._active = 0
        self._active_lock = threading.Lock()
        self.max_active = 0
        self.patches = 0

    def patch_status(self, name: str, patch: bytes) -> Node:
        with self._active_lock:
            self._active += 1
            self.max_active = max(self.max_active, self._active)
            self.patches += 1
        try:
            time.sleep(self.delay_seconds)
            return super().patch_status(name, patch)
        finally:
            with self._active_lock:
                self._active -= 1


def make_node(name: str = "vnode-1", *, ready: str = "True") -> Node:
    """Return a local node with one Ready condition."""
    return Node(
        metadata=ObjectMeta(name=name, labels={"type": "virtual-node"}),
        status=NodeStatus(
            conditions=[NodeCondition(type="Ready", status=ready, reason="RemoteClusterReady")],
            capacity={"cpu": "8", "memory": "32Gi"},
        ),
    )


def fast_config(**overrides: Any) -> SupervisorConfig:
    """Return a config with whole-second intervals and a non-limiting poll."""
    values: dict[str, Any] = {
        "ping_interval_seconds": 10.0,
        "status_interval_seconds": 60.0,
        "poll_interval_seconds": 3600.0,
    }
    values.update(overrides)
    return SupervisorConfig(**values)
