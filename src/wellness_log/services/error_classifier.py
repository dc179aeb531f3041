"""
Error classification service.

Maps whatever a persistence gateway raised onto the closed ``ErrorKind``
taxonomy so callers can make uniform retry and display decisions.
"""

import errno
import json
import logging
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from wellness_log.domain.errors import ClassifiedError, ErrorKind
from wellness_log.utils.exceptions import (
    RecordConstraintError,
    StorageConnectionError,
    StorageQuotaExceededError,
    StorageTransactionError,
    StorageVersionError,
    ValidationError,
)

logger = logging.getLogger(__name__)

# Names raised by browser-style storage engines (DOMException.name).
_NAMED_SIGNATURES: dict[str, tuple[ErrorKind, str]] = {
    "QuotaExceededError": (ErrorKind.QUOTA_EXCEEDED, "Storage quota exceeded"),
    "VersionError": (ErrorKind.VERSION_ERROR, "Database version conflict"),
    "InvalidStateError": (ErrorKind.TRANSACTION_FAILED, "Database transaction failed"),
    "TransactionInactiveError": (ErrorKind.TRANSACTION_FAILED, "Database transaction failed"),
    "DataError": (ErrorKind.DATA_CORRUPTED, "Data is corrupted or violates a constraint"),
    "ConstraintError": (ErrorKind.DATA_CORRUPTED, "Data is corrupted or violates a constraint"),
}

_STORAGE_SIGNATURES: tuple[tuple[type[BaseException], ErrorKind], ...] = (
    (StorageQuotaExceededError, ErrorKind.QUOTA_EXCEEDED),
    (StorageVersionError, ErrorKind.VERSION_ERROR),
    (RecordConstraintError, ErrorKind.DATA_CORRUPTED),
    (StorageTransactionError, ErrorKind.TRANSACTION_FAILED),
    (StorageConnectionError, ErrorKind.CONNECTION_FAILED),
)

_NO_SPACE_ERRNOS = frozenset({errno.ENOSPC, getattr(errno, "EDQUOT", errno.ENOSPC)})


def _describe(error: Any) -> str:
    """Best-effort text for an arbitrary failure object."""
    try:
        text = str(error)
    except Exception:
        text = ""
    return text or type(error).__name__


def _signature_name(error: Any) -> str | None:
    name = getattr(error, "name", None)
    if isinstance(name, str) and name in _NAMED_SIGNATURES:
        return name
    type_name = type(error).__name__
    if type_name in _NAMED_SIGNATURES:
        return type_name
    return None


def _classify(error: Any, default_message: str | None) -> ClassifiedError:
    if isinstance(error, ClassifiedError):
        return error

    detail = _describe(error)

    def build(kind: ErrorKind, message: str) -> ClassifiedError:
        text = f"{default_message or message}: {detail}"
        return ClassifiedError(kind, text, original=error)

    for exc_type, kind in _STORAGE_SIGNATURES:
        if isinstance(error, exc_type):
            return build(kind, "Storage operation failed")

    name = _signature_name(error)
    if name is not None:
        kind, message = _NAMED_SIGNATURES[name]
        return build(kind, message)

    if isinstance(error, OSError) and error.errno in _NO_SPACE_ERRNOS:
        return build(ErrorKind.QUOTA_EXCEEDED, "No space left for storage")

    if isinstance(error, TimeoutError):
        return build(ErrorKind.TRANSACTION_FAILED, "Storage operation timed out")

    if isinstance(error, ConnectionError):
        return build(ErrorKind.CONNECTION_FAILED, "Could not connect to storage")

    if isinstance(
        error,
        (json.JSONDecodeError, UnicodeDecodeError, PydanticValidationError, ValidationError),
    ):
        return build(ErrorKind.DATA_CORRUPTED, "Stored data could not be read")

    return build(ErrorKind.UNKNOWN, "Unexpected storage error")


def classify_error(error: Any, default_message: str | None = None) -> ClassifiedError:
    """
    Classify an arbitrary persistence failure.

    Never raises: any object is accepted, and anything without a known
    signature becomes a retryable ``UNKNOWN`` error.

    Args:
        error: The raw failure (exception or any other rejection value).
        default_message: Context prefix for the message, e.g. the operation that failed.

    Returns:
        Classified error carrying the original failure.
    """
    try:
        return _classify(error, default_message)
    except Exception as e:
        logger.debug(f"Error classification fell back to UNKNOWN: {e}")
        return ClassifiedError(
            ErrorKind.UNKNOWN, default_message or "Unexpected storage error", original=error
        )


def is_retryable(error: Any) -> bool:
    """Return whether an arbitrary failure is worth retrying."""
    return classify_error(error).retryable
