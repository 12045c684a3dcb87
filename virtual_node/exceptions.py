"""
Custom exceptions used by the virtual node supervisor runtime.

Keeping library-specific errors in one module gives users a predictable
import surface for catching and handling operational edge cases. Store errors
describe what the remote control plane answered; supervisor errors describe
what the supervisor itself decided to give up on.
"""


class VirtualNodeError(Exception):
    """Base error type for all library-level exceptions."""


class StoreError(VirtualNodeError):
    """Base error type raised by node and lease store implementations."""


class NotFoundError(StoreError):
    """
    Raised when the remote object (or the whole resource kind) is absent.

    For lease stores a ``NotFoundError`` raised by ``create`` means the control
    plane does not serve leases at all.
    """


class AlreadyExistsError(StoreError):
    """Raised by ``create`` when an object with the same name already exists."""


class ConflictError(StoreError):
    """
    Raised when a write carries a stale resource version.

    The caller is expected to re-read the latest object and retry.
    """


class StoreUnavailableError(StoreError):
    """
    Raised for transient transport or server failures.

    These are never escalated after startup; the supervisor retries on the next
    natural tick.
    """


class PingError(VirtualNodeError):
    """Raised when the status source reports the node as not alive."""


class LeaseConflictError(VirtualNodeError):
    """Raised when lease renewal exhausts its conflict retry budget."""


class StartupError(VirtualNodeError):
    """Base error for fatal failures before the supervisor becomes ready."""


class NodeRegistrationError(StartupError):
    """Raised when the node object can be neither updated nor created."""


class LeaseRegistrationError(StartupError):
    """
    Raised when the lease probe fails for a reason other than missing support.
    """


class StartupCancelledError(StartupError):
    """Raised when cancellation is requested before readiness was reached."""


class SupervisorAlreadyRunningError(VirtualNodeError):
    """Raised when ``run`` is invoked on a supervisor that is already running."""


class SupervisorConfigurationError(VirtualNodeError, ValueError):
    """Raised when supervisor options are invalid or contradict each other."""


class BackendConfigurationError(VirtualNodeError):
    """Raised when backend selection/options are invalid."""


class BackendNotAvailableError(VirtualNodeError):
    """Raised when a requested optional backend package is not installed."""
