"""Exception taxonomy for the job store.

Every error raised across the public API derives from ZonetestError so
callers (RPC facade, CLI) can catch the family in one place and map each
subclass to a response.
"""

from typing import Any


class ZonetestError(Exception):
    """Base class for all job store errors."""

    retryable: bool = False


class InvalidInputError(ZonetestError):
    """Raised when submitted parameters are malformed or incomplete.

    Always raised before anything is written to storage.

    Attributes:
        field: Dotted path of the offending field (e.g. "ds_info[0].keytag")
        value: The rejected value, when there is one
    """

    def __init__(self, field: str, message: str, *, value: Any = None) -> None:
        self.field = field
        self.value = value
        super().__init__(f"{field}: {message}")


class NotFoundError(ZonetestError):
    """Raised when a query names an unknown job identity or batch."""

    def __init__(self, kind: str, key: str | int) -> None:
        self.kind = kind
        self.key = key
        super().__init__(f"Unknown {kind}: {key}")


class NotReadyError(ZonetestError):
    """Raised when a terminal result is required but the job is still in flight."""

    def __init__(self, identity: str, state: str) -> None:
        self.identity = identity
        self.state = state
        super().__init__(f"Job {identity} has no result yet (state={state})")


class InvalidTransitionError(ZonetestError):
    """Raised when a worker requests a transition the state machine forbids.

    The job row is left untouched in its prior state.
    """

    def __init__(self, identity: str, current: str, requested: str, reason: str | None = None) -> None:
        self.identity = identity
        self.current = current
        self.requested = requested
        message = f"Job {identity}: cannot move from {current} to {requested}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class StorageUnavailableError(ZonetestError):
    """Raised when the database cannot be reached or a statement fails at the I/O level.

    Callers may retry; no partial write is left behind because every
    operation runs inside a single transaction.
    """

    retryable = True


class StoreIntegrityError(ZonetestError):
    """Raised when the store reads back something its own writes rule out.

    Indicates database corruption or a transaction failure; never retried.
    """
