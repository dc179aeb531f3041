"""Custom exceptions for the wellness log."""


class WellnessLogError(Exception):
    """Base exception for all wellness log errors."""

    pass


class ConfigurationError(WellnessLogError):
    """Raised when there is a configuration error."""

    pass


class ValidationError(WellnessLogError):
    """Raised when data validation fails."""

    pass


class StorageError(WellnessLogError):
    """Base class for failures raised by persistence gateways."""

    pass


class StorageConnectionError(StorageError):
    """Raised when the storage backend cannot be opened or reached."""

    pass


class StorageTransactionError(StorageError):
    """Raised when a storage read or write is aborted midway."""

    pass


class RecordConstraintError(StorageError):
    """Raised when a write violates a key constraint (duplicate or missing id)."""

    pass


class StorageQuotaExceededError(StorageError):
    """Raised when the storage backend has no space left."""

    pass


class StorageVersionError(StorageError):
    """Raised when stored data was written by an incompatible schema version."""

    pass
