class DomainError(Exception):
    """Base exception for business rule violations."""


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""


class AuthenticationError(DomainError):
    """Raised when no user is signed in."""


class AuthorizationError(DomainError):
    """Raised when a user lacks permission for an action."""


class LedgerError(DomainError):
    """Base class for local ledger failures."""


class DuplicateIdError(LedgerError):
    """Raised by append when the record id already exists.

    Callers treat this as success: the record already landed.
    """

    def __init__(self, record_id: str):
        super().__init__(f"Attendance record {record_id} already exists")
        self.record_id = record_id


class NotFoundError(LedgerError):
    """Raised by mark_synced when the record id is unknown."""

    def __init__(self, record_id: str):
        super().__init__(f"Attendance record {record_id} not found")
        self.record_id = record_id


class StorageError(LedgerError):
    """Recoverable storage failure (locked database, I/O hiccup)."""


class StorageCorruptionError(StorageError):
    """The storage medium is corrupt; all further writes are refused."""


class DecodeError(DomainError):
    """Raised when a scanned QR payload cannot be decoded."""


class SyncError(DomainError):
    """Base class for replication failures."""


class SyncTransportError(SyncError):
    """Per-record network or remote failure; retried on the next push."""

    def __init__(self, message: str, *, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ConcurrentSyncError(SyncError):
    """A push is already in flight on this device."""
