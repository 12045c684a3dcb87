"""
Redis backend plugin for virtual_node.

This package is intentionally separate from the core library so users can opt
into Redis-backed node and lease storage only when needed:

    from virtual_node import NaiveStatusSource, Node, ObjectMeta, SupervisorConfig
    from virtual_node_redis import RedisHeartbeatSupervisor

    supervisor = RedisHeartbeatSupervisor(
        NaiveStatusSource(),
        Node(metadata=ObjectMeta(name="liqo-remote-1")),
        SupervisorConfig(),
        redis_url="redis://127.0.0.1:6379/0",
        namespace="edge-cluster",
    )

Redis plays the control plane's object store: node objects and leases are
versioned documents, status patches and lease updates are compare-and-set
writes on the resource version.

Users can either import this package directly or use the core backend factory:

    from virtual_node import create_supervisor
    supervisor = create_supervisor(source, node, backend="redis", redis_url="redis://...")
"""

from .node import RedisHeartbeatSupervisor
from .store import RedisLeaseStore, RedisNodeStore, RedisStoreConfig

__all__ = ["RedisHeartbeatSupervisor", "RedisLeaseStore", "RedisNodeStore", "RedisStoreConfig"]
