"""
Redis-backed heartbeat supervisor convenience wrapper.
"""

from __future__ import annotations

import dataclasses

from redis import Redis
from virtual_node.clock import Clock
from virtual_node.config import SupervisorConfig
from virtual_node.models import Node
from virtual_node.store_protocol import StatusSource
from virtual_node.supervisor import HeartbeatSupervisor

from .store import RedisLeaseStore, RedisNodeStore, RedisStoreConfig


class RedisHeartbeatSupervisor(HeartbeatSupervisor):
    """
    :class:`HeartbeatSupervisor` variant storing node and lease in Redis.

    Parameters
    ----------
    source:
        Status source for the supervised node.
    node:
        Initial node descriptor.
    config:
        Standard supervisor configuration. Its ``lease_store`` is filled with a
        Redis lease store unless ``enable_leases`` is false or one is set.
    redis_url:
        Redis URL used when ``redis_client`` is not supplied.
    namespace:
        Key prefix namespace for all node and lease documents.
    redis_client:
        Optional preconfigured Redis client instance.
    """

    def __init__(
        self,
        source: StatusSource,
        node: Node,
        config: SupervisorConfig | None = None,
        *,
        redis_url: str = "redis://127.0.0.1:6379/0",
        namespace: str = "virtual-node",
        redis_client: Redis | None = None,
        enable_leases: bool = True,
        clock: Clock | None = None,
    ) -> None:
        store_config = RedisStoreConfig(redis_url=redis_url, namespace=namespace)
        self.redis_nodes = RedisNodeStore(config=store_config, redis_client=redis_client)
        self.redis_leases = RedisLeaseStore(config=store_config, redis_client=self.redis_nodes.redis)
        effective = config if config is not None else SupervisorConfig()
        if enable_leases and effective.lease_store is None:
            effective = dataclasses.replace(effective, lease_store=self.redis_leases)
        super().__init__(source, node, self.redis_nodes, effective, clock=clock)
