"""
Heartbeat supervisor runtime for one virtual node.

This module provides the concrete ``HeartbeatSupervisor`` class while
delegating domain behavior to focused mixins.
"""

from __future__ import annotations

import queue
import threading
from collections import deque
from typing import Any

from ..clock import Clock, SystemClock
from ..config import SupervisorConfig
from ..models import Lease, Node
from ..observability import ObservabilityServer
from ..store_protocol import LeaseStore, NodeStore, StatusSource
from .diagnostics import SupervisorDiagnosticsMixin
from .helpers import SupervisorHelperMixin
from .lease import LeaseMode, SupervisorLeaseMixin
from .lifecycle import SupervisorLifecycleMixin
from .loop import SupervisorLoopMixin, _LoopEvent
from .observability import SupervisorObservabilityMixin
from .status import SupervisorStatusMixin


class HeartbeatSupervisor(
    SupervisorLifecycleMixin,
    SupervisorLoopMixin,
    SupervisorStatusMixin,
    SupervisorLeaseMixin,
    SupervisorDiagnosticsMixin,
    SupervisorObservabilityMixin,
    SupervisorHelperMixin,
):
    """
    Keeps one virtual node registered and alive in the control plane.

    The supervisor owns the node's lifecycle: it registers the node, probes
    lease support once, and then runs a single control loop multiplexing a ping
    timer, a status publication timer and the status notification queue.

    Examples
    --------
    ::

        stop = threading.Event()
        supervisor = HeartbeatSupervisor(
            source,
            Node(metadata=ObjectMeta(name="liqo-remote-1")),
            node_store,
            SupervisorConfig(lease_store=lease_store),
        )
        thread = threading.Thread(target=supervisor.run, args=(stop,), daemon=True)
        thread.start()
        supervisor.wait_ready(timeout=10.0)
    """

    def __init__(
        self,
        source: StatusSource,
        node: Node,
        nodes: NodeStore,
        config: SupervisorConfig | None = None,
        *,
        clock: Clock | None = None,
    ) -> None:
        """
        Initialize supervisor state. No remote calls are made.

        Parameters
        ----------
        source:
            Producer of liveness pings and status notifications.
        node:
            Initial node descriptor; its name identifies the supervised node.
        nodes:
            Remote node store.
        config:
            Runtime configuration, validated at its own construction.
        clock:
            Time source; defaults to :class:`SystemClock`.
        """
        if not node.name:
            raise ValueError("HeartbeatSupervisor requires a node with a non-empty name.")
        self.config = config if config is not None else SupervisorConfig()
        self._source = source
        self._nodes = nodes
        self._leases: LeaseStore | None = self.config.lease_store
        self._clock: Clock = clock if clock is not None else SystemClock()

        # Node/lease snapshots
        self._node: Node = node.copy()
        self._lease: Lease | None = None
        self._lease_mode = LeaseMode.UNKNOWN

        # Publication serialization and loop inbox
        self._publish_lock = threading.Lock()
        self._events: queue.Queue[_LoopEvent] = queue.Queue()

        # Lifecycle state
        self._lifecycle_lock = threading.RLock()
        self._running = False
        self._ready = threading.Event()
        self._last_heartbeat_ok: bool | None = None

        # Observability/tracing state
        self._observability_server: ObservabilityServer | None = None
        self._trace_lock = threading.Lock()
        self._trace_history: deque[dict[str, Any]] = deque(
            maxlen=self.config.observability.trace_history_size
        )
        self._stats_lock = threading.Lock()
        self._stats: dict[str, int] = {
            "pings": 0,
            "ping_failures": 0,
            "status_notifications": 0,
            "status_updates": 0,
            "status_update_failures": 0,
            "error_handler_invocations": 0,
            "external_updates": 0,
            "lease_renewals": 0,
            "lease_renewal_failures": 0,
            "lease_conflicts": 0,
            "lease_recreations": 0,
            "heartbeat_failures": 0,
        }
