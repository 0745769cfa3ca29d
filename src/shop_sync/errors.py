"""
errors.py - Domain-specific exceptions for shop_sync.

All exceptions inherit from SyncError for unified handling.
Each exception type represents a distinct failure mode.
"""

from typing import Any


class SyncError(Exception):
    """Base exception for all shop_sync errors."""

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            context_str = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} [{context_str}]"
        return self.message


class DatabaseError(SyncError):
    """
    Raised when a local store operation fails unexpectedly.

    This wraps SQLite errors with additional context about
    what operation was being attempted.
    """

    def __init__(
        self, message: str, operation: str | None = None, sql: str | None = None
    ) -> None:
        context = {}
        if operation is not None:
            context["operation"] = operation
        if sql is not None:
            # Truncate long SQL for readability
            context["sql"] = sql[:200] + "..." if len(sql) > 200 else sql
        super().__init__(message, context=context)
        self.operation = operation
        self.sql = sql


class ValidationError(SyncError):
    """
    Raised when input validation fails.

    This includes unknown outbox actions, delete payloads without
    an id, and stored values that cannot be decoded.
    """

    def __init__(
        self, message: str, field: str | None = None, value: Any = None
    ) -> None:
        context = {}
        if field is not None:
            context["field"] = field
        if value is not None:
            context["value"] = repr(value)[:100]
        super().__init__(message, context=context)
        self.field = field
        self.value = value


class SchemaVersionError(SyncError):
    """Raised when the local store schema version is not supported."""

    def __init__(self, message: str, expected: Any = None, actual: Any = None) -> None:
        context = {}
        if expected is not None:
            context["expected"] = expected
        if actual is not None:
            context["actual"] = actual
        super().__init__(message, context=context)
        self.expected = expected
        self.actual = actual


class ConfigurationError(SyncError):
    """Raised when required settings are missing or malformed."""

    def __init__(self, message: str, setting: str | None = None) -> None:
        super().__init__(message, context={"setting": setting} if setting else None)
        self.setting = setting


class RemoteError(SyncError):
    """
    Raised when the remote row store rejects or fails a request.

    Covers transport failures as well as error responses. The
    backend's own error code is kept when one is returned.
    """

    def __init__(
        self,
        message: str,
        table: str | None = None,
        status_code: int | None = None,
        code: str | None = None,
    ) -> None:
        context: dict[str, Any] = {}
        if table is not None:
            context["table"] = table
        if status_code is not None:
            context["status_code"] = status_code
        if code is not None:
            context["code"] = code
        super().__init__(message, context=context)
        self.table = table
        self.status_code = status_code
        self.code = code


class MissingTableError(RemoteError):
    """
    Raised when the remote table has not been provisioned yet.

    Sync treats this as "nothing to sync for this table" rather
    than a hard failure.
    """


def is_missing_table_error(exc: BaseException) -> bool:
    """Check whether an exception means the remote table does not exist."""
    from shop_sync.config import MISSING_TABLE_MARKERS

    if isinstance(exc, MissingTableError):
        return True
    message = getattr(exc, "message", None) or str(exc)
    if not isinstance(message, str):
        return False
    return any(marker in message for marker in MISSING_TABLE_MARKERS)


# 4xx statuses that mean "try again later" rather than "this request is bad"
_RETRYABLE_CLIENT_STATUSES = frozenset({408, 429})


def is_permanent_failure(exc: BaseException) -> bool:
    """
    Check whether retrying the same change can never succeed.

    Only validation errors and 4xx rejections (other than timeouts and
    rate limits) count. Transport errors, 5xx responses and tables not
    provisioned yet are transient.
    """
    if isinstance(exc, ValidationError):
        return True
    if isinstance(exc, MissingTableError):
        return False
    if isinstance(exc, RemoteError) and exc.status_code is not None:
        return 400 <= exc.status_code < 500 and exc.status_code not in _RETRYABLE_CLIENT_STATUSES
    return False
