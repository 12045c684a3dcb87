"""
Named store backends for supervisor bootstrap code.

Applications pick where node and lease objects live with one string
(``"memory"`` or ``"redis"``) instead of wiring store classes by hand. The
Redis stores ship in the optional ``virtual_node_redis`` plugin and are
imported only when that backend is requested.
"""

from __future__ import annotations

import dataclasses
import importlib
from collections.abc import Callable
from enum import Enum
from typing import TYPE_CHECKING, Any

from .exceptions import BackendConfigurationError, BackendNotAvailableError
from .store import InMemoryLeaseStore, InMemoryNodeStore
from .store_protocol import LeaseStore, NodeStore

if TYPE_CHECKING:  # pragma: no cover - typing-only imports
    from .clock import Clock
    from .config import SupervisorConfig
    from .models import Node
    from .store_protocol import StatusSource
    from .supervisor import HeartbeatSupervisor

_REDIS_PLUGIN = "virtual_node_redis"


class StoreBackend(str, Enum):
    """
    Store backend selector.

    MEMORY
        Process-local stores; every supervisor process sees its own control
        plane. Used by tests and demos.
    REDIS
        Node and lease documents shared through a Redis server.
    """

    MEMORY = "memory"
    REDIS = "redis"

    @classmethod
    def parse(cls, value: "str | StoreBackend") -> "StoreBackend":
        """Resolve a backend from an enum member or a case-insensitive name."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError as exc:
            choices = ", ".join(member.value for member in cls)
            raise BackendConfigurationError(
                f"Unknown store backend {value!r}; expected one of: {choices}."
            ) from exc


def available_backends() -> tuple[str, ...]:
    """
    Return the backend names usable in this environment.

    ``redis`` is listed only when the plugin and the ``redis`` client import.
    """
    names = [StoreBackend.MEMORY.value]
    try:
        importlib.import_module(_REDIS_PLUGIN)
    except ImportError:
        return tuple(names)
    names.append(StoreBackend.REDIS.value)
    return tuple(names)


def _reject_leftovers(backend: StoreBackend, options: dict[str, Any]) -> None:
    if options:
        names = ", ".join(sorted(str(key) for key in options))
        raise BackendConfigurationError(f"Unsupported {backend.value} backend options: {names}.")


def _memory_stores(options: dict[str, Any]) -> tuple[NodeStore, LeaseStore]:
    leases_supported = bool(options.pop("leases_supported", True))
    _reject_leftovers(StoreBackend.MEMORY, options)
    return InMemoryNodeStore(), InMemoryLeaseStore(supported=leases_supported)


def _redis_stores(options: dict[str, Any]) -> tuple[NodeStore, LeaseStore]:
    try:
        plugin = importlib.import_module(_REDIS_PLUGIN)
    except ImportError as exc:
        raise BackendNotAvailableError(
            "The redis backend needs the 'virtual_node_redis' plugin and the 'redis' client "
            "(pip install 'virtual-node-supervisor[redis]')."
        ) from exc

    store_config = options.pop("config", None)
    client = options.pop("redis_client", None)
    if store_config is None:
        store_config = plugin.RedisStoreConfig(
            redis_url=str(options.pop("redis_url", "redis://127.0.0.1:6379/0")),
            namespace=str(options.pop("namespace", "virtual-node")),
        )
    _reject_leftovers(StoreBackend.REDIS, options)
    nodes = plugin.RedisNodeStore(config=store_config, redis_client=client)
    # One connection pool serves both object kinds.
    leases = plugin.RedisLeaseStore(config=store_config, redis_client=nodes.redis)
    return nodes, leases


_BUILDERS: dict[StoreBackend, Callable[[dict[str, Any]], tuple[NodeStore, LeaseStore]]] = {
    StoreBackend.MEMORY: _memory_stores,
    StoreBackend.REDIS: _redis_stores,
}


def create_stores(
    backend: str | StoreBackend = StoreBackend.MEMORY,
    **backend_options: Any,
) -> tuple[NodeStore, LeaseStore]:
    """
    Build a ``(node_store, lease_store)`` pair for ``backend``.

    Parameters
    ----------
    backend:
        ``"memory"`` or ``"redis"`` (or a :class:`StoreBackend` member).
    backend_options:
        Memory: ``leases_supported`` (default true); false simulates a control
        plane that does not serve leases.

        Redis: ``redis_url``, ``namespace``, ``redis_client``, or a ready
        ``config`` (:class:`virtual_node_redis.RedisStoreConfig`).

    Raises
    ------
    BackendConfigurationError
        Unknown backend name or option.
    BackendNotAvailableError
        The backend's optional packages are not installed.
    """
    selected = StoreBackend.parse(backend)
    return _BUILDERS[selected](dict(backend_options))


def create_supervisor(
    source: "StatusSource",
    node: "Node",
    config: "SupervisorConfig | None" = None,
    *,
    backend: str | StoreBackend = StoreBackend.MEMORY,
    enable_leases: bool = True,
    clock: "Clock | None" = None,
    **backend_options: Any,
) -> "HeartbeatSupervisor":
    """
    Build a :class:`HeartbeatSupervisor` on top of a named backend.

    The backend's lease store is injected into ``config`` unless
    ``enable_leases`` is false or ``config`` already carries a lease store.
    """
    from .config import SupervisorConfig
    from .supervisor import HeartbeatSupervisor

    nodes, leases = create_stores(backend, **backend_options)
    effective = config if config is not None else SupervisorConfig()
    if enable_leases and effective.lease_store is None:
        effective = dataclasses.replace(effective, lease_store=leases)
    return HeartbeatSupervisor(source, node, nodes, effective, clock=clock)
