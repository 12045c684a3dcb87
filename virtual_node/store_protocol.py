"""
Collaborator contracts used by :class:`virtual_node.supervisor.HeartbeatSupervisor`.

The supervisor depends on these method surfaces rather than on a specific
control plane client, enabling the in-memory stores for tests and optional
external backends such as Redis without changing supervisor code.

Error contract
--------------
Implementations report remote outcomes with the exceptions from
:mod:`virtual_node.exceptions`: ``NotFoundError``, ``AlreadyExistsError``,
``ConflictError`` and ``StoreUnavailableError`` for transient failures.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from typing import Protocol

from .models import Lease, Node


class StatusSource(Protocol):
    """
    Producer of node liveness and status content.

    The supervisor never decides what the node status says; it only asks this
    collaborator whether the node is alive and publishes what it reports.
    """

    def ping(self, stop: threading.Event) -> None:
        """
        Check that the node is still alive.

        Called on every ping interval, so it must be cheap. Raise any exception
        to report the node as not alive.
        """

    def notify_status(self, stop: threading.Event, callback: Callable[[Node], None]) -> None:
        """
        Register ``callback`` for asynchronous status changes.

        The callback may be invoked any number of times from any thread until
        ``stop`` is set. Registration must not block the caller.
        """


class NodeStore(Protocol):
    """
    Remote store of node objects addressable by name.

    Implementations are expected to be safe for concurrent access, because the
    control loop and external callers can both publish.
    """

    def get(self, name: str) -> Node:
        """Return the remote node or raise ``NotFoundError``."""

    def create(self, node: Node) -> Node:
        """Create the node and return the stored copy with server fields set."""

    def patch_status(self, name: str, patch: bytes) -> Node:
        """
        Apply a JSON merge patch to the node's status sub-resource.

        Only ``status`` and metadata labels/annotations are writable through
        this call. Returns the updated node or raises ``NotFoundError``.
        """


class LeaseStore(Protocol):
    """
    Remote store of node leases (optional control plane capability).

    ``create`` raising ``NotFoundError`` means the control plane does not serve
    leases at all.
    """

    def get(self, name: str) -> Lease:
        """Return the remote lease or raise ``NotFoundError``."""

    def create(self, lease: Lease) -> Lease:
        """Create a lease; raises ``AlreadyExistsError`` or ``NotFoundError``."""

    def update(self, lease: Lease) -> Lease:
        """
        Replace a lease guarded by its resource version.

        Raises ``ConflictError`` when the version is stale and ``NotFoundError``
        when the lease is gone.
        """

    def delete(self, name: str) -> None:
        """Delete a lease or raise ``NotFoundError``."""
