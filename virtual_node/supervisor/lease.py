from __future__ import annotations

import logging
from enum import Enum

from ..exceptions import (
    AlreadyExistsError,
    ConflictError,
    LeaseConflictError,
    LeaseRegistrationError,
    NotFoundError,
    VirtualNodeError,
)
from ..models import Lease

_LOGGER = logging.getLogger(__name__)


class LeaseMode(str, Enum):
    """
    Lease capability of the control plane, resolved once per run.

    UNKNOWN
        Startup has not probed yet.
    SUPPORTED
        Liveness is signalled by lease renewal; status is published on its own
        slower interval.
    UNSUPPORTED
        No lease store, or the control plane does not serve leases. Status is
        published on every ping and leases are never touched again.
    """

    UNKNOWN = "unknown"
    SUPPORTED = "supported"
    UNSUPPORTED = "unsupported"


class SupervisorLeaseMixin:
    """
    Lease capability probe and renewal protocol.
    """

    @property
    def lease_mode(self) -> LeaseMode:
        """Return the lease capability resolved at startup."""
        return self._lease_mode

    @property
    def lease(self) -> Lease | None:
        """Return a copy of the last known lease, if any."""
        lease = self._lease
        return lease.copy() if lease is not None else None

    def _probe_lease(self) -> None:
        """
        Create the node lease once and freeze the resulting lease mode.

        A ``NotFoundError`` means leases are not served and switches to status
        only mode for the rest of the run. Any other failure is fatal.
        """
        name = self._node.name
        if self._leases is None:
            self._lease_mode = LeaseMode.UNSUPPORTED
            _LOGGER.debug("No lease store configured for node %s; using status updates", name)
            return

        try:
            created = self._ensure_lease(self._initial_lease())
        except NotFoundError as exc:
            self._lease_mode = LeaseMode.UNSUPPORTED
            _LOGGER.info(
                "Node leases not supported, falling back to only node status updates node=%s "
                "reason=%s",
                name,
                exc,
            )
            self._trace("lease_unsupported")
            return
        except Exception as exc:
            raise LeaseRegistrationError(f"error creating lease for node {name!r}: {exc}") from exc

        self._lease = created
        self._lease_mode = LeaseMode.SUPPORTED
        _LOGGER.info(
            "Created lease for node %s duration_seconds=%s",
            name,
            created.spec.lease_duration_seconds,
        )
        self._trace("lease_created", resource_version=created.metadata.resource_version)

    def _initial_lease(self) -> Lease:
        """Build the startup lease from the configured template."""
        base = self.config.base_lease
        lease = base.copy() if base is not None else Lease()
        if not lease.metadata.name:
            lease.metadata.name = self._node.name
        if lease.spec.holder_identity is None:
            lease.spec.holder_identity = self._node.name
        if lease.spec.lease_duration_seconds is None:
            lease.spec.lease_duration_seconds = self.config.effective_lease_duration_seconds
        lease.spec.renew_time = self._clock.now()
        return lease

    def _next_lease(self, current: Lease) -> Lease:
        """Return a copy of ``current`` renewed at the current time."""
        lease = current.copy()
        now = self._clock.now()
        previous = lease.spec.renew_time
        if previous is None or now >= previous:
            lease.spec.renew_time = now
        return lease

    def _ensure_lease(self, lease: Lease) -> Lease:
        """
        Create ``lease``, replacing a stale lease with the same name.

        ``NotFoundError`` from ``create`` is raised as-is: it means leases are
        not served.
        """
        try:
            return self._leases.create(lease)
        except AlreadyExistsError:
            _LOGGER.debug("Lease %s already exists; replacing it", lease.name)

        try:
            self._leases.delete(lease.name)
        except NotFoundError:
            pass
        fresh = lease.copy()
        fresh.metadata.resource_version = ""
        fresh.metadata.uid = ""
        return self._leases.create(fresh)

    def _renew_lease(self) -> Lease:
        """
        Renew the lease with bounded retry on conflicts.

        Raises
        ------
        LeaseConflictError
            When every attempt hit a conflict.
        """
        if self._lease is None:
            raise VirtualNodeError(f"node {self._node.name!r} holds no lease to renew")
        retry = self.config.lease_retry
        lease = self._next_lease(self._lease)

        for attempt in range(1, retry.max_attempts + 1):
            try:
                updated = self._leases.update(lease)
            except NotFoundError:
                _LOGGER.debug("Lease %s not found; recreating", lease.name)
                updated = self._ensure_lease(lease)
                self._inc_stat("lease_recreations")
            except ConflictError:
                self._inc_stat("lease_conflicts")
                _LOGGER.debug(
                    "Conflict renewing lease %s attempt=%d/%d; fetching latest",
                    lease.name,
                    attempt,
                    retry.max_attempts,
                )
                if attempt >= retry.max_attempts:
                    break
                lease = self._next_lease(self._leases.get(lease.name))
                self._clock.sleep(retry.delay_for(attempt))
                continue

            self._lease = updated
            self._inc_stat("lease_renewals")
            _LOGGER.debug(
                "Renewed lease %s resource_version=%s",
                updated.name,
                updated.metadata.resource_version,
            )
            return updated

        _LOGGER.warning(
            "Giving up on lease renewal after %d conflicting attempts node=%s",
            retry.max_attempts,
            self._node.name,
        )
        raise LeaseConflictError(
            f"lease {lease.name!r} renewal conflicted {retry.max_attempts} times"
        )
