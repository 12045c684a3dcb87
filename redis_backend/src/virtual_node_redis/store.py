"""
Redis-backed node and lease store implementations.

The stores implement the core ``NodeStore`` / ``LeaseStore`` protocols and can
be injected into :class:`virtual_node.supervisor.HeartbeatSupervisor`.
"""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass
from typing import Any

from redis import Redis
from redis.exceptions import RedisError
from virtual_node.exceptions import (
    AlreadyExistsError,
    ConflictError,
    NotFoundError,
    StoreUnavailableError,
)
from virtual_node.models import Lease, Node, format_time, utcnow
from virtual_node.patch import apply_status_patch, decode_patch

_CREATE_LUA = """
if redis.call('EXISTS', KEYS[1]) == 1 then
  return 0
end
redis.call('HSET', KEYS[1], 'rv', ARGV[1], 'doc', ARGV[2])
return 1
"""

_COMPARE_AND_SET_LUA = """
local rv = redis.call('HGET', KEYS[1], 'rv')
if not rv then
  return -1
end
if ARGV[1] ~= '' and rv ~= ARGV[1] then
  return 0
end
redis.call('HSET', KEYS[1], 'rv', ARGV[2], 'doc', ARGV[3])
return 1
"""

_CAS_MISSING = -1
_CAS_CONFLICT = 0


@dataclass(slots=True)
class RedisStoreConfig:
    """
    Configuration for the Redis node and lease stores.

    Parameters
    ----------
    redis_url:
        Redis connection URL used when a client is not directly supplied.
    namespace:
        Prefix for all redis keys created by the stores.
    patch_attempts:
        How many times a status patch is re-applied when a concurrent writer
        bumped the node's resource version in between read and write.
    """

    redis_url: str = "redis://127.0.0.1:6379/0"
    namespace: str = "virtual-node"
    patch_attempts: int = 5


class _RedisDocumentStore:
    """
    Versioned JSON documents stored as ``{rv, doc}`` hashes.

    Resource versions come from one per-namespace counter, so every write gets
    a strictly larger version than the one it replaced.
    """

    kind = "object"

    def __init__(
        self,
        *,
        config: RedisStoreConfig | None = None,
        redis_client: Redis | None = None,
    ) -> None:
        self.config = config or RedisStoreConfig()
        self._redis = redis_client or Redis.from_url(self.config.redis_url)
        self._create_script = self._redis.register_script(_CREATE_LUA)
        self._cas_script = self._redis.register_script(_COMPARE_AND_SET_LUA)

    @property
    def redis(self) -> Redis:
        """Return the underlying Redis client."""
        return self._redis

    # ------------------------------------------------------------------ #
    # Key and serialization helpers
    # ------------------------------------------------------------------ #

    def _key(self, name: str) -> str:
        return f"{self.config.namespace}:{self.kind}:{name}"

    def _version_key(self) -> str:
        return f"{self.config.namespace}:resource-version"

    def _next_version(self) -> str:
        return str(int(self._redis.incr(self._version_key())))

    def _encode(self, payload: dict[str, Any]) -> str:
        return json.dumps(payload, separators=(",", ":"), sort_keys=True)

    def _decode_text(self, value: bytes | str) -> str:
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return str(value)

    # ------------------------------------------------------------------ #
    # Document operations
    # ------------------------------------------------------------------ #

    def _read(self, name: str) -> dict[str, Any]:
        try:
            raw = self._redis.hget(self._key(name), "doc")
        except RedisError as exc:
            raise StoreUnavailableError(f"redis read of {self.kind} {name!r} failed: {exc}") from exc
        if raw is None:
            raise NotFoundError(f"{self.kind} {name!r} not found")
        return json.loads(self._decode_text(raw))

    def _create(self, name: str, payload: dict[str, Any]) -> dict[str, Any]:
        try:
            version = self._next_version()
            metadata = payload["metadata"]
            metadata["uid"] = uuid.uuid4().hex
            metadata["creation_timestamp"] = format_time(utcnow())
            metadata["resource_version"] = version
            created = int(
                self._create_script(keys=[self._key(name)], args=[version, self._encode(payload)])
            )
        except RedisError as exc:
            raise StoreUnavailableError(f"redis create of {self.kind} {name!r} failed: {exc}") from exc
        if created == 0:
            raise AlreadyExistsError(f"{self.kind} {name!r} already exists")
        return payload

    def _compare_and_set(self, name: str, expected: str, payload: dict[str, Any]) -> dict[str, Any]:
        """
        Write ``payload`` when the stored version still equals ``expected``.

        An empty ``expected`` writes unconditionally.
        """
        try:
            version = self._next_version()
            payload["metadata"]["resource_version"] = version
            result = int(
                self._cas_script(
                    keys=[self._key(name)],
                    args=[expected, version, self._encode(payload)],
                )
            )
        except RedisError as exc:
            raise StoreUnavailableError(f"redis write of {self.kind} {name!r} failed: {exc}") from exc
        if result == _CAS_MISSING:
            raise NotFoundError(f"{self.kind} {name!r} not found")
        if result == _CAS_CONFLICT:
            raise ConflictError(
                f"{self.kind} {name!r} was modified (expected version {expected})"
            )
        return payload

    def _delete(self, name: str) -> None:
        try:
            removed = int(self._redis.delete(self._key(name)))
        except RedisError as exc:
            raise StoreUnavailableError(f"redis delete of {self.kind} {name!r} failed: {exc}") from exc
        if removed == 0:
            raise NotFoundError(f"{self.kind} {name!r} not found")


class RedisNodeStore(_RedisDocumentStore):
    """
    Redis-backed implementation of the ``NodeStore`` protocol.

    Status patches are applied client-side and written back with a
    compare-and-set on the resource version; a concurrent writer causes the
    patch to be re-applied on top of the newer document.
    """

    kind = "node"

    def get(self, name: str) -> Node:
        return Node.from_dict(self._read(name))

    def create(self, node: Node) -> Node:
        if not node.name:
            raise ValueError("Node name must be non-empty.")
        return Node.from_dict(self._create(node.name, node.as_dict()))

    def patch_status(self, name: str, patch: bytes) -> Node:
        decoded = decode_patch(patch)
        for _ in range(max(1, self.config.patch_attempts)):
            current = self._read(name)
            expected = str(current["metadata"]["resource_version"])
            try:
                return Node.from_dict(
                    self._compare_and_set(name, expected, apply_status_patch(current, decoded))
                )
            except ConflictError:
                continue
        raise ConflictError(
            f"node {name!r} status patch conflicted {self.config.patch_attempts} times"
        )

    def delete(self, name: str) -> None:
        """Remove a node document."""
        self._delete(name)


class RedisLeaseStore(_RedisDocumentStore):
    """
    Redis-backed implementation of the ``LeaseStore`` protocol.

    Updates are guarded by the lease's resource version and raise
    ``ConflictError`` when another holder renewed in between.
    """

    kind = "lease"

    def get(self, name: str) -> Lease:
        return Lease.from_dict(self._read(name))

    def create(self, lease: Lease) -> Lease:
        if not lease.name:
            raise ValueError("Lease name must be non-empty.")
        return Lease.from_dict(self._create(lease.name, lease.as_dict()))

    def update(self, lease: Lease) -> Lease:
        current = self._read(lease.name)
        payload = lease.as_dict()
        payload["metadata"]["uid"] = current["metadata"].get("uid", "")
        payload["metadata"]["creation_timestamp"] = current["metadata"].get("creation_timestamp")
        return Lease.from_dict(
            self._compare_and_set(lease.name, lease.metadata.resource_version, payload)
        )

    def delete(self, name: str) -> None:
        self._delete(name)
