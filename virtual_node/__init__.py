"""
virtual_node
============

Lifecycle and heartbeat supervision for virtual (synthetic) nodes.

A virtual node represents the aggregated capacity of a remote cluster inside a
hosting control plane. The :class:`virtual_node.supervisor.HeartbeatSupervisor`
keeps such a node registered and alive:

* registers the node on startup (publish status, create when missing)
* probes once whether the control plane serves node leases
* renews the lease on every successful ping (lease mode), or publishes the full
  status on every ping (fallback mode)
* publishes full status on a slower interval and on every status notification
* never lets a post-startup failure stop the supervision loop

Status is always published as a JSON merge patch against the node's status
sub-resource with the node spec pinned, so a patch can never alter the spec.

Store switching can be done with one parameter:

    from virtual_node import create_supervisor

    supervisor = create_supervisor(source, node, backend="memory")
    supervisor = create_supervisor(
        source, node, backend="redis", redis_url="redis://127.0.0.1:6379/0"
    )

Typical usage::

    import threading

    from virtual_node import (
        HeartbeatSupervisor,
        InMemoryLeaseStore,
        InMemoryNodeStore,
        NaiveStatusSource,
        Node,
        ObjectMeta,
        SupervisorConfig,
    )

    supervisor = HeartbeatSupervisor(
        NaiveStatusSource(),
        Node(metadata=ObjectMeta(name="liqo-remote-1")),
        InMemoryNodeStore(),
        SupervisorConfig(lease_store=InMemoryLeaseStore()),
    )
    stop = threading.Event()
    threading.Thread(target=supervisor.run, args=(stop,), daemon=True).start()
    supervisor.wait_ready(timeout=10.0)
    ...
    stop.set()
"""

from .backends import StoreBackend, available_backends, create_stores, create_supervisor
from .clock import Clock, SystemClock
from .config import (
    DEFAULT_PING_INTERVAL_SECONDS,
    DEFAULT_STATUS_INTERVAL_SECONDS,
    LeaseRetryConfig,
    ObservabilityConfig,
    StatusErrorHandler,
    SupervisorConfig,
)
from .exceptions import (
    AlreadyExistsError,
    BackendConfigurationError,
    BackendNotAvailableError,
    ConflictError,
    LeaseConflictError,
    LeaseRegistrationError,
    NodeRegistrationError,
    NotFoundError,
    PingError,
    StartupCancelledError,
    StartupError,
    StoreError,
    StoreUnavailableError,
    SupervisorAlreadyRunningError,
    SupervisorConfigurationError,
    VirtualNodeError,
)
from .models import (
    Lease,
    LeaseSpec,
    Node,
    NodeAddress,
    NodeCondition,
    NodeSpec,
    NodeStatus,
    ObjectMeta,
)
from .source import NaiveStatusSource
from .store import InMemoryLeaseStore, InMemoryNodeStore
from .store_protocol import LeaseStore, NodeStore, StatusSource
from .supervisor import HeartbeatSupervisor, LeaseMode

__all__ = [
    "AlreadyExistsError",
    "BackendConfigurationError",
    "BackendNotAvailableError",
    "Clock",
    "ConflictError",
    "DEFAULT_PING_INTERVAL_SECONDS",
    "DEFAULT_STATUS_INTERVAL_SECONDS",
    "HeartbeatSupervisor",
    "InMemoryLeaseStore",
    "InMemoryNodeStore",
    "Lease",
    "LeaseConflictError",
    "LeaseMode",
    "LeaseRegistrationError",
    "LeaseRetryConfig",
    "LeaseSpec",
    "LeaseStore",
    "NaiveStatusSource",
    "Node",
    "NodeAddress",
    "NodeCondition",
    "NodeRegistrationError",
    "NodeSpec",
    "NodeStatus",
    "NodeStore",
    "NotFoundError",
    "ObjectMeta",
    "ObservabilityConfig",
    "PingError",
    "StartupCancelledError",
    "StartupError",
    "StatusErrorHandler",
    "StatusSource",
    "StoreBackend",
    "StoreError",
    "StoreUnavailableError",
    "SupervisorAlreadyRunningError",
    "SupervisorConfig",
    "SupervisorConfigurationError",
    "SystemClock",
    "VirtualNodeError",
    "available_backends",
    "create_stores",
    "create_supervisor",
]
