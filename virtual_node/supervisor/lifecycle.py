from __future__ import annotations

import logging
import threading

from ..exceptions import (
    NodeRegistrationError,
    NotFoundError,
    StartupCancelledError,
    SupervisorAlreadyRunningError,
)
from ..models import Node
from .loop import _EventKind, _LoopEvent

_LOGGER = logging.getLogger(__name__)


class SupervisorLifecycleMixin:
    """
    Startup sequence and run/stop lifecycle.
    """

    def run(self, stop: threading.Event) -> None:
        """
        Register the node and supervise it until ``stop`` is set.

        Blocks the calling thread. Returns ``None`` on graceful cancellation.

        Raises
        ------
        StartupError
            When node registration or the lease probe fails, or when ``stop``
            is set before the supervisor became ready.
        SupervisorAlreadyRunningError
            When ``run`` was already called on this supervisor.
        """
        with self._lifecycle_lock:
            if self._running or self._ready.is_set():
                raise SupervisorAlreadyRunningError(
                    f"Supervisor for node {self._node.name!r} can only be run once."
                )
            self._running = True

        self._start_observability_server()
        self._trace("supervisor_starting")
        try:
            self._startup(stop)
            self._control_loop(stop)
        except Exception as exc:
            self._trace("supervisor_failed", reason=str(exc))
            raise
        finally:
            self._stop_observability_server()
            with self._lifecycle_lock:
                self._running = False
            self._trace("supervisor_stopped")

    @property
    def ready(self) -> threading.Event:
        """
        Readiness gate, set exactly once after startup succeeded.

        It is never set when :meth:`run` fails during startup.
        """
        return self._ready

    def wait_ready(self, timeout: float | None = None) -> bool:
        """Block until the supervisor is ready; return false on timeout."""
        return self._ready.wait(timeout)

    @property
    def is_running(self) -> bool:
        """Return whether :meth:`run` is currently executing."""
        with self._lifecycle_lock:
            return self._running

    def _startup(self, stop: threading.Event) -> None:
        """
        Subscribe to notifications, register the node, and probe leases.
        """
        self._subscribe(stop)
        self._ensure_node()
        if stop.is_set():
            raise StartupCancelledError(
                f"Cancelled while registering node {self._node.name!r}."
            )
        self._probe_lease()
        if stop.is_set():
            raise StartupCancelledError(
                f"Cancelled while probing lease support for node {self._node.name!r}."
            )

    def _subscribe(self, stop: threading.Event) -> None:
        """Funnel status notifications into the loop's event queue."""

        def on_status(updated: Node) -> None:
            self._events.put(_LoopEvent(_EventKind.STATUS, updated.copy()))

        self._source.notify_status(stop, on_status)

    def _ensure_node(self) -> None:
        """
        Publish the initial status, creating the node when it does not exist.
        """
        name = self._node.name
        try:
            self._update_status(skip_error_handler=True)
            _LOGGER.info("Node %s already registered; status updated", name)
            return
        except NotFoundError:
            _LOGGER.debug("Node %s not found; registering", name)
        except Exception as exc:
            raise NodeRegistrationError(
                f"error updating status of node {name!r} during registration: {exc}"
            ) from exc

        with self._publish_lock:
            try:
                created = self._nodes.create(self._node.copy())
            except Exception as exc:
                raise NodeRegistrationError(
                    f"error registering node {name!r} with the control plane: {exc}"
                ) from exc
            self._node = created
        _LOGGER.info("Registered node %s resource_version=%s", name, created.metadata.resource_version)
        self._trace("node_registered", resource_version=created.metadata.resource_version)
