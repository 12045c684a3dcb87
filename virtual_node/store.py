"""
Thread-safe in-memory node and lease stores.

These stores emulate the control plane semantics the supervisor relies on:

* server-assigned uid, creation timestamp and resource version on create
* a status sub-resource that only accepts status and label/annotation changes
* resource-version guarded lease updates that raise ``ConflictError``
* an optional "leases not served" mode where every lease call raises
  ``NotFoundError``

They are the default backend and the collaborators used throughout the tests.
"""

from __future__ import annotations

import itertools
import uuid
from copy import deepcopy
from threading import RLock
from typing import Any

from .exceptions import AlreadyExistsError, ConflictError, NotFoundError
from .models import Lease, Node, format_time, utcnow
from .patch import apply_status_patch, decode_patch


class _VersionCounter:
    """Monotonic resource version source shared by one store."""

    def __init__(self) -> None:
        self._counter = itertools.count(1)

    def next(self) -> str:
        return str(next(self._counter))


class InMemoryNodeStore:
    """
    Concurrent node object storage.

    Notes
    -----
    Objects are stored as serialized dictionaries and every read returns a
    fresh :class:`Node`, so callers can never mutate stored state by accident.
    """

    def __init__(self) -> None:
        self._nodes: dict[str, dict[str, Any]] = {}
        self._versions = _VersionCounter()
        self._lock = RLock()

    def get(self, name: str) -> Node:
        with self._lock:
            payload = self._nodes.get(name)
            if payload is None:
                raise NotFoundError(f"node {name!r} not found")
            return Node.from_dict(deepcopy(payload))

    def create(self, node: Node) -> Node:
        if not node.name:
            raise ValueError("Node name must be non-empty.")
        with self._lock:
            if node.name in self._nodes:
                raise AlreadyExistsError(f"node {node.name!r} already exists")
            payload = node.as_dict()
            metadata = payload["metadata"]
            metadata["uid"] = uuid.uuid4().hex
            metadata["creation_timestamp"] = format_time(utcnow())
            metadata["resource_version"] = self._versions.next()
            self._nodes[node.name] = payload
            return Node.from_dict(deepcopy(payload))

    def patch_status(self, name: str, patch: bytes) -> Node:
        decoded = decode_patch(patch)
        with self._lock:
            current = self._nodes.get(name)
            if current is None:
                raise NotFoundError(f"node {name!r} not found")
            updated = apply_status_patch(current, decoded)
            updated["metadata"]["resource_version"] = self._versions.next()
            self._nodes[name] = updated
            return Node.from_dict(deepcopy(updated))

    def delete(self, name: str) -> None:
        """Remove a node; used by operators and tests to simulate deletion."""
        with self._lock:
            if self._nodes.pop(name, None) is None:
                raise NotFoundError(f"node {name!r} not found")

    def names(self) -> list[str]:
        """Return stored node names in sorted order."""
        with self._lock:
            return sorted(self._nodes)


class InMemoryLeaseStore:
    """
    Concurrent lease storage with optimistic concurrency.

    Parameters
    ----------
    supported:
        When false the store behaves like a control plane that does not serve
        leases: every call raises ``NotFoundError``.
    """

    def __init__(self, *, supported: bool = True) -> None:
        self.supported = supported
        self._leases: dict[str, dict[str, Any]] = {}
        self._versions = _VersionCounter()
        self._lock = RLock()

    def _ensure_supported(self) -> None:
        if not self.supported:
            raise NotFoundError("the server could not find the requested resource (leases)")

    def get(self, name: str) -> Lease:
        self._ensure_supported()
        with self._lock:
            payload = self._leases.get(name)
            if payload is None:
                raise NotFoundError(f"lease {name!r} not found")
            return Lease.from_dict(deepcopy(payload))

    def create(self, lease: Lease) -> Lease:
        self._ensure_supported()
        if not lease.name:
            raise ValueError("Lease name must be non-empty.")
        with self._lock:
            if lease.name in self._leases:
                raise AlreadyExistsError(f"lease {lease.name!r} already exists")
            payload = lease.as_dict()
            metadata = payload["metadata"]
            metadata["uid"] = uuid.uuid4().hex
            metadata["creation_timestamp"] = format_time(utcnow())
            metadata["resource_version"] = self._versions.next()
            self._leases[lease.name] = payload
            return Lease.from_dict(deepcopy(payload))

    def update(self, lease: Lease) -> Lease:
        self._ensure_supported()
        with self._lock:
            current = self._leases.get(lease.name)
            if current is None:
                raise NotFoundError(f"lease {lease.name!r} not found")
            expected = lease.metadata.resource_version
            actual = current["metadata"]["resource_version"]
            if expected and expected != actual:
                raise ConflictError(
                    f"lease {lease.name!r} was modified (expected version {expected}, "
                    f"current {actual})"
                )
            payload = lease.as_dict()
            payload["metadata"]["uid"] = current["metadata"]["uid"]
            payload["metadata"]["creation_timestamp"] = current["metadata"]["creation_timestamp"]
            payload["metadata"]["resource_version"] = self._versions.next()
            self._leases[lease.name] = payload
            return Lease.from_dict(deepcopy(payload))

    def delete(self, name: str) -> None:
        self._ensure_supported()
        with self._lock:
            if self._leases.pop(name, None) is None:
                raise NotFoundError(f"lease {name!r} not found")
