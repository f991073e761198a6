"""errors.py — Error taxonomy for the message collection API.

Every request-terminating failure is a `MessageApiError` subclass carrying the
HTTP status and envelope code the transport adapter renders.
"""
from __future__ import annotations

__all__ = [
    "ActionNotImplementedError",
    "ConfigurationError",
    "DataIntegrityError",
    "MessageApiError",
    "StoreAccessError",
    "ValidationError",
    "WriteConflictError",
]


class MessageApiError(Exception):
    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(MessageApiError):
    """Client-caused: missing/invalid action, filename, or add fields."""

    status_code = 400
    code = "INVALID_INPUT"


class ActionNotImplementedError(MessageApiError):
    """update/delete are recognized actions that have no implementation."""

    status_code = 501
    code = "NOT_IMPLEMENTED"


class StoreAccessError(MessageApiError):
    """An S3 call failed for a reason other than the object being absent."""

    status_code = 500
    code = "STORE_ACCESS_ERROR"


class DataIntegrityError(MessageApiError):
    """Stored object exists but is not a JSON array of message records."""

    status_code = 500
    code = "DATA_INTEGRITY_ERROR"


class WriteConflictError(MessageApiError):
    """Conditional save lost the race against another writer."""

    status_code = 409
    code = "CONFLICT"


class ConfigurationError(RuntimeError):
    pass
