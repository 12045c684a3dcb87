from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import Enum

from ..models import Node
from .lease import LeaseMode

_LOGGER = logging.getLogger(__name__)


class _EventKind(str, Enum):
    """Messages accepted by the control loop inbox."""

    STATUS = "status"
    REARM = "rearm"


@dataclass(slots=True)
class _LoopEvent:
    kind: _EventKind
    node: Node | None = None


class _LoopTimer:
    """
    Single-shot deadline owned by the control loop.

    A timer is either disarmed or holds one pending deadline. Resetting always
    discards the pending deadline first, so a rearmed timer fires at most once
    per interval.
    """

    __slots__ = ("name", "_deadline")

    def __init__(self, name: str) -> None:
        self.name = name
        self._deadline: float | None = None

    @property
    def deadline(self) -> float | None:
        return self._deadline

    def stop(self) -> bool:
        """Disarm the timer; return true when a deadline was pending."""
        pending = self._deadline is not None
        self._deadline = None
        return pending

    def reset(self, now: float, interval: float) -> None:
        self.stop()
        self._deadline = now + interval

    def due(self, now: float) -> bool:
        return self._deadline is not None and now >= self._deadline


class SupervisorLoopMixin:
    """
    Control loop multiplexing timers, notifications and cancellation.
    """

    def _control_loop(self, stop: threading.Event) -> None:
        """
        Handle one event per iteration until ``stop`` is set.

        The active timer is the status timer in lease mode and the ping timer
        in fallback mode, where the ping interval doubles as the status
        interval. Status notifications and external updates rearm it.
        """
        ping_interval = self.config.ping_interval_seconds
        status_interval = self.config.status_interval_seconds
        ping_timer = _LoopTimer("ping")
        status_timer = _LoopTimer("status")

        now = self._clock.monotonic()
        ping_timer.reset(now, ping_interval)
        if self._lease_mode is LeaseMode.SUPPORTED:
            status_timer.reset(now, status_interval)
            active, active_interval = status_timer, status_interval
        else:
            active, active_interval = ping_timer, ping_interval

        self._ready.set()
        _LOGGER.info(
            "Supervisor ready node=%s lease_mode=%s ping_interval=%.3f status_interval=%.3f",
            self._node.name,
            self._lease_mode.value,
            ping_interval,
            status_interval,
        )
        self._trace("supervisor_ready", lease_mode=self._lease_mode.value)

        try:
            while not stop.is_set():
                # Overdue timers go first so a busy inbox cannot starve them.
                timer = self._next_due_timer(ping_timer, status_timer)
                if timer is None:
                    event = self._clock.wait(
                        self._events, self._wait_timeout(ping_timer, status_timer)
                    )
                    if stop.is_set():
                        break
                    if event is not None:
                        self._handle_loop_event(event, active, active_interval)
                    continue

                if timer is status_timer:
                    status_timer.stop()
                    self._handle_status_tick()
                    status_timer.reset(self._clock.monotonic(), status_interval)
                elif timer is ping_timer:
                    ping_timer.stop()
                    self._handle_ping_tick(stop)
                    ping_timer.reset(self._clock.monotonic(), ping_interval)
        finally:
            ping_timer.stop()
            status_timer.stop()
        _LOGGER.info("Supervisor loop stopped node=%s", self._node.name)

    def _wait_timeout(self, *timers: _LoopTimer) -> float:
        """Return how long the loop may block before the next timer is due."""
        poll = self.config.poll_interval_seconds
        deadlines = [timer.deadline for timer in timers if timer.deadline is not None]
        if not deadlines:
            return poll
        remaining = min(deadlines) - self._clock.monotonic()
        return min(max(0.0, remaining), poll)

    def _next_due_timer(self, *timers: _LoopTimer) -> _LoopTimer | None:
        """Return the due timer with the earliest deadline, if any."""
        now = self._clock.monotonic()
        due = [timer for timer in timers if timer.due(now)]
        if not due:
            return None
        return min(due, key=lambda timer: timer.deadline)

    def _handle_loop_event(
        self,
        event: _LoopEvent,
        active: _LoopTimer,
        active_interval: float,
    ) -> None:
        if event.kind is _EventKind.REARM:
            active.reset(self._clock.monotonic(), active_interval)
            _LOGGER.debug("Rearmed %s timer after external update", active.name)
            return

        self._inc_stat("status_notifications")
        _LOGGER.debug("Received status update for node %s", self._node.name)
        # A publish happens now, so the pending tick would be redundant.
        active.stop()
        try:
            self._update_status(replacement_status=event.node.status)
        except Exception as exc:
            _LOGGER.warning(
                "Error handling node status update node=%s error=%s", self._node.name, exc
            )
        active.reset(self._clock.monotonic(), active_interval)

    def _handle_status_tick(self) -> None:
        try:
            self._update_status()
        except Exception as exc:
            _LOGGER.warning(
                "Error handling periodic status update node=%s error=%s", self._node.name, exc
            )

    def _handle_ping_tick(self, stop: threading.Event) -> None:
        """
        Ping the status source and refresh liveness evidence.

        A successful ping followed by a failed lease renewal is a failed
        heartbeat cycle; no status publish is attempted in its place.
        """
        try:
            self._source.ping(stop)
        except Exception as exc:
            self._inc_stat("ping_failures")
            self._inc_stat("heartbeat_failures")
            self._last_heartbeat_ok = False
            _LOGGER.warning("Error while pinging status source node=%s error=%s", self._node.name, exc)
            self._trace("ping_failed", reason=str(exc))
            return
        self._inc_stat("pings")

        try:
            if self._lease_mode is LeaseMode.SUPPORTED:
                self._renew_lease()
            else:
                self._update_status()
        except Exception as exc:
            if self._lease_mode is LeaseMode.SUPPORTED:
                self._inc_stat("lease_renewal_failures")
            self._inc_stat("heartbeat_failures")
            self._last_heartbeat_ok = False
            _LOGGER.warning("Error while handling node ping node=%s error=%s", self._node.name, exc)
            self._trace("heartbeat_failed", reason=str(exc))
            return
        self._last_heartbeat_ok = True
        _LOGGER.debug("Successful node ping node=%s", self._node.name)
