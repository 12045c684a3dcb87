"""
Object model for virtual nodes and node leases.

The shapes mirror the subset of the control plane's Node and Lease resources
the supervisor reads and writes. Everything serializes to JSON-friendly
dictionaries with snake_case keys so stores can persist objects verbatim and
the status patch codec can diff them.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


def utcnow() -> datetime:
    """Return the current wall-clock time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def format_time(value: datetime | None) -> str | None:
    """
    Serialize a timestamp as ISO-8601 with microsecond precision.

    Naive datetimes are assumed to be UTC.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def parse_time(raw: object) -> datetime | None:
    """Parse a timestamp produced by :func:`format_time`."""
    if raw is None or raw == "":
        return None
    if isinstance(raw, datetime):
        return raw
    parsed = datetime.fromisoformat(str(raw))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(slots=True)
class ObjectMeta:
    """
    Identity and bookkeeping fields shared by nodes and leases.

    Parameters
    ----------
    name:
        Object name; immutable once the object exists remotely.
    uid:
        Server-assigned unique id.
    resource_version:
        Server-assigned version token used for optimistic concurrency.
    creation_timestamp:
        Server-assigned creation time.
    labels, annotations:
        Free-form string maps that callers may update through status patches.
    """

    name: str = ""
    uid: str = ""
    resource_version: str = ""
    creation_timestamp: datetime | None = None
    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)

    def as_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "uid": self.uid,
            "resource_version": self.resource_version,
            "creation_timestamp": format_time(self.creation_timestamp),
            "labels": dict(self.labels),
            "annotations": dict(self.annotations),
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "ObjectMeta":
        return cls(
            name=str(payload.get("name") or ""),
            uid=str(payload.get("uid") or ""),
            resource_version=str(payload.get("resource_version") or ""),
            creation_timestamp=parse_time(payload.get("creation_timestamp")),
            labels={str(k): str(v) for k, v in (payload.get("labels") or {}).items()},
            annotations={
                str(k): str(v) for k, v in (payload.get("annotations") or {}).items()
            },
        )


@dataclass(slots=True)
class NodeCondition:
    """
    One named health condition of a node.

    ``last_heartbeat_time`` is refreshed on every status publication, whether
    or not the condition value changed, so external liveness checks keep
    seeing a fresh timestamp.
    """

    type: str
    status: str = "Unknown"
    last_heartbeat_time: datetime | None = None
    last_transition_time: datetime | None = None
    reason: str = ""
    message: str = ""

    def as_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "status": self.status,
            "last_heartbeat_time": format_time(self.last_heartbeat_time),
            "last_transition_time": format_time(self.last_transition_time),
            "reason": self.reason,
            "message": self.message,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "NodeCondition":
        return cls(
            type=str(payload["type"]),
            status=str(payload.get("status") or "Unknown"),
            last_heartbeat_time=parse_time(payload.get("last_heartbeat_time")),
            last_transition_time=parse_time(payload.get("last_transition_time")),
            reason=str(payload.get("reason") or ""),
            message=str(payload.get("message") or ""),
        )


@dataclass(frozen=True, slots=True)
class NodeAddress:
    """Reachable address advertised by a node (``InternalIP``, ``Hostname``...)."""

    type: str
    address: str

    def as_dict(self) -> dict[str, str]:
        return {"type": self.type, "address": self.address}

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "NodeAddress":
        return cls(type=str(payload["type"]), address=str(payload["address"]))


@dataclass(slots=True)
class NodeSpec:
    """
    Scheduling-facing node description.

    The supervisor never modifies a spec after creation; status patches pin it
    to the remote value.
    """

    provider_id: str = ""
    pod_cidr: str = ""
    unschedulable: bool = False
    taints: list[dict[str, str]] = field(default_factory=list)

    def as_dict(self) -> dict[str, Any]:
        return {
            "provider_id": self.provider_id,
            "pod_cidr": self.pod_cidr,
            "unschedulable": self.unschedulable,
            "taints": [dict(taint) for taint in self.taints],
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "NodeSpec":
        return cls(
            provider_id=str(payload.get("provider_id") or ""),
            pod_cidr=str(payload.get("pod_cidr") or ""),
            unschedulable=bool(payload.get("unschedulable", False)),
            taints=[
                {str(k): str(v) for k, v in taint.items()}
                for taint in payload.get("taints") or []
            ],
        )


@dataclass(slots=True)
class NodeStatus:
    """
    Observed node state published by the supervisor.

    Capacity and addresses are produced by the status source and are opaque to
    the supervisor; only condition heartbeat timestamps are touched.
    """

    conditions: list[NodeCondition] = field(default_factory=list)
    capacity: dict[str, str] = field(default_factory=dict)
    allocatable: dict[str, str] = field(default_factory=dict)
    addresses: list[NodeAddress] = field(default_factory=list)

    def as_dict(self) -> dict[str, Any]:
        return {
            "conditions": [condition.as_dict() for condition in self.conditions],
            "capacity": dict(self.capacity),
            "allocatable": dict(self.allocatable),
            "addresses": [address.as_dict() for address in self.addresses],
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "NodeStatus":
        return cls(
            conditions=[
                NodeCondition.from_dict(item) for item in payload.get("conditions") or []
            ],
            capacity={str(k): str(v) for k, v in (payload.get("capacity") or {}).items()},
            allocatable={
                str(k): str(v) for k, v in (payload.get("allocatable") or {}).items()
            },
            addresses=[NodeAddress.from_dict(item) for item in payload.get("addresses") or []],
        )

    def condition(self, condition_type: str) -> NodeCondition | None:
        """Return the condition with ``condition_type`` or ``None``."""
        for item in self.conditions:
            if item.type == condition_type:
                return item
        return None


@dataclass(slots=True)
class Node:
    """
    Synthetic node representing the aggregated capacity of a remote cluster.

    Examples
    --------
    ::

        node = Node(
            metadata=ObjectMeta(name="liqo-remote-1"),
            status=NodeStatus(conditions=[NodeCondition("Ready", "True")]),
        )
    """

    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    spec: NodeSpec = field(default_factory=NodeSpec)
    status: NodeStatus = field(default_factory=NodeStatus)

    @property
    def name(self) -> str:
        return self.metadata.name

    def as_dict(self) -> dict[str, Any]:
        return {
            "metadata": self.metadata.as_dict(),
            "spec": self.spec.as_dict(),
            "status": self.status.as_dict(),
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "Node":
        return cls(
            metadata=ObjectMeta.from_dict(payload.get("metadata") or {}),
            spec=NodeSpec.from_dict(payload.get("spec") or {}),
            status=NodeStatus.from_dict(payload.get("status") or {}),
        )

    def copy(self) -> "Node":
        """Return a deep copy safe to mutate independently."""
        return copy.deepcopy(self)


@dataclass(slots=True)
class LeaseSpec:
    """
    Heartbeat payload of a node lease.

    Parameters
    ----------
    holder_identity:
        Name of the node holding the lease.
    lease_duration_seconds:
        How long observers should consider the node alive after ``renew_time``.
    renew_time:
        Last renewal time; monotonically non-decreasing across renewals.
    """

    holder_identity: str | None = None
    lease_duration_seconds: int | None = None
    acquire_time: datetime | None = None
    renew_time: datetime | None = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "holder_identity": self.holder_identity,
            "lease_duration_seconds": self.lease_duration_seconds,
            "acquire_time": format_time(self.acquire_time),
            "renew_time": format_time(self.renew_time),
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "LeaseSpec":
        duration = payload.get("lease_duration_seconds")
        holder = payload.get("holder_identity")
        return cls(
            holder_identity=None if holder is None else str(holder),
            lease_duration_seconds=None if duration is None else int(duration),
            acquire_time=parse_time(payload.get("acquire_time")),
            renew_time=parse_time(payload.get("renew_time")),
        )


@dataclass(slots=True)
class Lease:
    """Lightweight, frequently renewed liveness record (one per node)."""

    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    spec: LeaseSpec = field(default_factory=LeaseSpec)

    @property
    def name(self) -> str:
        return self.metadata.name

    def as_dict(self) -> dict[str, Any]:
        return {"metadata": self.metadata.as_dict(), "spec": self.spec.as_dict()}

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "Lease":
        return cls(
            metadata=ObjectMeta.from_dict(payload.get("metadata") or {}),
            spec=LeaseSpec.from_dict(payload.get("spec") or {}),
        )

    def copy(self) -> "Lease":
        """Return a deep copy safe to mutate independently."""
        return copy.deepcopy(self)
