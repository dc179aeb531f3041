"""
Classified persistence errors.

Every failure coming out of a persistence gateway is normalised into a
``ClassifiedError`` before the rest of the application sees it.
"""

from enum import Enum
from typing import Any

from wellness_log.utils.exceptions import WellnessLogError


class ErrorKind(str, Enum):
    """Closed taxonomy of persistence failures."""

    CONNECTION_FAILED = "connection_failed"
    TRANSACTION_FAILED = "transaction_failed"
    DATA_CORRUPTED = "data_corrupted"
    QUOTA_EXCEEDED = "quota_exceeded"
    VERSION_ERROR = "version_error"
    UNKNOWN = "unknown"


NON_RETRYABLE_KINDS = frozenset(
    {ErrorKind.DATA_CORRUPTED, ErrorKind.QUOTA_EXCEEDED, ErrorKind.VERSION_ERROR}
)

_SEVERITY: dict[ErrorKind, str] = {
    ErrorKind.DATA_CORRUPTED: "critical",
    ErrorKind.QUOTA_EXCEEDED: "critical",
    ErrorKind.CONNECTION_FAILED: "high",
    ErrorKind.VERSION_ERROR: "high",
    ErrorKind.TRANSACTION_FAILED: "medium",
    ErrorKind.UNKNOWN: "low",
}

_USER_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.CONNECTION_FAILED: "Could not open the local data store. Please try again.",
    ErrorKind.QUOTA_EXCEEDED: "Storage is full. Delete data you no longer need and try again.",
    ErrorKind.VERSION_ERROR: (
        "The data files were written by a different version. "
        "Update the application or restore a compatible backup."
    ),
    ErrorKind.DATA_CORRUPTED: "Stored data is damaged or violates a constraint.",
    ErrorKind.TRANSACTION_FAILED: "A storage operation failed. Please wait a moment and retry.",
    ErrorKind.UNKNOWN: "A storage error occurred. Please wait a moment and retry.",
}


class ClassifiedError(WellnessLogError):
    """
    Persistence failure mapped onto the ``ErrorKind`` taxonomy.

    Attributes:
        kind: Failure category.
        message: Human-readable description.
        original: The raw failure, kept for logging only.
        retryable: Whether repeating the operation may succeed without user action.
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        original: Any = None,
        retryable: bool | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = ErrorKind(kind)
        self.message = message
        self.original = original
        self.retryable = (
            self.kind not in NON_RETRYABLE_KINDS if retryable is None else retryable
        )

    @property
    def severity(self) -> str:
        """Severity bucket: ``low``, ``medium``, ``high`` or ``critical``."""
        return _SEVERITY[self.kind]

    @property
    def user_message(self) -> str:
        """Message suitable for showing to the user."""
        return _USER_MESSAGES[self.kind]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "kind": self.kind.value,
            "message": self.message,
            "retryable": self.retryable,
            "severity": self.severity,
            "original": repr(self.original) if self.original is not None else None,
        }

    def __repr__(self) -> str:
        return f"ClassifiedError(kind={self.kind.value!r}, message={self.message!r}, retryable={self.retryable})"
