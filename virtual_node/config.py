"""
Configuration models for the virtual node heartbeat supervisor.

This module centralizes all tunable runtime settings used by the supervisor:

* ping (liveness) and status publication intervals
* optional lease store and lease template
* lease renewal conflict retry policy
* status publication error handling hook
* HTTP observability endpoint

Configuration values are validated once, at construction time, so a built
supervisor can never start with contradictory options.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .exceptions import SupervisorConfigurationError

if TYPE_CHECKING:  # pragma: no cover - typing-only imports
    from .models import Lease
    from .store_protocol import LeaseStore

DEFAULT_PING_INTERVAL_SECONDS = 10.0
DEFAULT_STATUS_INTERVAL_SECONDS = 60.0

StatusErrorHandler = Callable[[Exception], None]
"""
Hook invoked when a status publication fails.

Returning normally marks the error as handled and the publish is retried once.
Raising (usually the received error) propagates the failure.
"""


@dataclass(slots=True)
class LeaseRetryConfig:
    """
    Bounded retry policy for lease renewal conflicts.

    Notes
    -----
    Each retry re-reads the latest lease before updating again. Delays grow
    exponentially from ``initial_backoff_seconds`` by ``backoff_factor`` and
    are capped at ``max_backoff_seconds``.
    """

    max_attempts: int = 5
    initial_backoff_seconds: float = 0.01
    max_backoff_seconds: float = 0.5
    backoff_factor: float = 2.0

    def delay_for(self, attempt: int) -> float:
        """Return the sleep before retry number ``attempt`` (1-based)."""
        delay = self.initial_backoff_seconds * (self.backoff_factor ** (attempt - 1))
        return min(self.max_backoff_seconds, delay)


@dataclass(slots=True)
class ObservabilityConfig:
    """
    Diagnostics settings.

    ``enable_http`` starts a small HTTP server exposing ``/healthz``,
    ``/readyz``, ``/metrics`` and ``/traces`` while the supervisor runs.
    Port ``0`` binds an ephemeral port.
    """

    enable_http: bool = False
    host: str = "127.0.0.1"
    port: int = 8095
    enable_tracing: bool = True
    trace_history_size: int = 512


@dataclass(slots=True)
class SupervisorConfig:
    """
    Top-level runtime configuration used by :class:`HeartbeatSupervisor`.

    Parameters
    ----------
    ping_interval_seconds:
        How often the status source is pinged. On success the lease is renewed
        (lease mode) or the full status is published (fallback mode).
    status_interval_seconds:
        Full status publication interval. Only used when leases are supported;
        otherwise status is published on every ping.
    lease_store:
        Optional lease store. When absent, lease mode is permanently disabled.
    base_lease:
        Optional lease template. Missing name, holder and duration are filled
        in from the node at startup. Requires ``lease_store``.
    lease_duration_seconds:
        Duration hint written into the lease. Defaults to five ping intervals.
    lease_retry:
        Conflict retry policy for lease renewal.
    status_error_handler:
        Optional hook called once when a status publication fails with an
        error other than "not found". See :data:`StatusErrorHandler`.
    poll_interval_seconds:
        Upper bound on how long the control loop waits before re-checking
        cancellation.
    observability:
        Diagnostics settings.
    """

    ping_interval_seconds: float = DEFAULT_PING_INTERVAL_SECONDS
    status_interval_seconds: float = DEFAULT_STATUS_INTERVAL_SECONDS
    lease_store: "LeaseStore | None" = None
    base_lease: "Lease | None" = None
    lease_duration_seconds: int | None = None
    lease_retry: LeaseRetryConfig = field(default_factory=LeaseRetryConfig)
    status_error_handler: StatusErrorHandler | None = None
    poll_interval_seconds: float = 0.2
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    def __post_init__(self) -> None:
        """Validate configuration values that affect runtime safety."""
        if self.ping_interval_seconds <= 0:
            raise SupervisorConfigurationError(
                "SupervisorConfig.ping_interval_seconds must be > 0."
            )
        if self.status_interval_seconds <= 0:
            raise SupervisorConfigurationError(
                "SupervisorConfig.status_interval_seconds must be > 0."
            )
        if self.poll_interval_seconds <= 0:
            raise SupervisorConfigurationError(
                "SupervisorConfig.poll_interval_seconds must be > 0."
            )
        if self.base_lease is not None and self.lease_store is None:
            raise SupervisorConfigurationError(
                "SupervisorConfig.base_lease requires a lease_store."
            )
        if self.lease_duration_seconds is not None and self.lease_duration_seconds <= 0:
            raise SupervisorConfigurationError(
                "SupervisorConfig.lease_duration_seconds must be > 0 when provided."
            )
        if self.status_error_handler is not None and not callable(self.status_error_handler):
            raise SupervisorConfigurationError(
                "SupervisorConfig.status_error_handler must be callable."
            )

        retry = self.lease_retry
        if retry.max_attempts <= 0:
            raise SupervisorConfigurationError("LeaseRetryConfig.max_attempts must be >= 1.")
        if retry.initial_backoff_seconds < 0:
            raise SupervisorConfigurationError(
                "LeaseRetryConfig.initial_backoff_seconds must be >= 0."
            )
        if retry.max_backoff_seconds < retry.initial_backoff_seconds:
            raise SupervisorConfigurationError(
                "LeaseRetryConfig.max_backoff_seconds must be >= initial_backoff_seconds."
            )
        if retry.backoff_factor < 1.0:
            raise SupervisorConfigurationError("LeaseRetryConfig.backoff_factor must be >= 1.")

        if self.observability.trace_history_size <= 0:
            raise SupervisorConfigurationError(
                "ObservabilityConfig.trace_history_size must be >= 1."
            )
        if not (0 <= int(self.observability.port) <= 65535):
            raise SupervisorConfigurationError(
                "ObservabilityConfig.port must be in range 0..65535."
            )

    @property
    def effective_lease_duration_seconds(self) -> int:
        """Return the lease duration hint written at startup."""
        if self.lease_duration_seconds is not None:
            return int(self.lease_duration_seconds)
        return max(1, int(self.ping_interval_seconds * 5))
