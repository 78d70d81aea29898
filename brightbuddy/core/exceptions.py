"""
Infrastructure exceptions for BrightBuddy.

Purpose
-------
Errors raised when the machinery under the learning services fails: the
key-value store, its locks, the Redis client and configuration lookups.
Business outcomes such as an exhausted quota live in
``brightbuddy.modules.shared.exceptions`` and share the same base class.

Design Notes
------------
- ``BrightBuddyError`` carries ``message``, ``details``, ``severity``,
  ``is_retryable`` and a stable ``error_code``; subclasses set defaults
  through class attributes.
- ``StorageError`` is the only failure type callers of a ``KeyValueStore``
  see. Redis and SQLAlchemy errors are wrapped into it with the original
  kept on ``original_error``.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ErrorSeverity(Enum):
    """How loudly a failure should be logged."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class BrightBuddyError(Exception):
    """Structured base for every BrightBuddy exception."""

    DEFAULT_SEVERITY: ErrorSeverity = ErrorSeverity.ERROR
    DEFAULT_RETRYABLE: bool = False

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        *,
        severity: Optional[ErrorSeverity] = None,
        is_retryable: Optional[bool] = None,
        error_code: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details: Dict[str, Any] = dict(details or {})
        self.severity = severity or self.DEFAULT_SEVERITY
        self.is_retryable = self.DEFAULT_RETRYABLE if is_retryable is None else is_retryable
        self.error_code = error_code or type(self).__name__

    def to_dict(self) -> Dict[str, Any]:
        """Log-friendly representation."""
        return {
            "error_type": type(self).__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
            "severity": self.severity.value,
            "is_retryable": self.is_retryable,
        }

    def __str__(self) -> str:
        if not self.details:
            return f"[{self.error_code}] {self.message}"
        return f"[{self.error_code}] {self.message} | Details: {self.details}"


class BrightBuddyInfrastructureException(BrightBuddyError):
    """Base for store, cache and configuration failures."""


def _cause_fields(original_error: Optional[BaseException]) -> Dict[str, Any]:
    if original_error is None:
        return {"error": None, "error_type": None}
    return {"error": str(original_error), "error_type": type(original_error).__name__}


class ConfigurationError(BrightBuddyInfrastructureException):
    """A required tunable is missing or unusable."""

    DEFAULT_SEVERITY = ErrorSeverity.CRITICAL

    def __init__(self, config_key: str, message: str) -> None:
        self.config_key = config_key
        super().__init__(
            f"Configuration error for {config_key}: {message}",
            {"config_key": config_key, "message": message},
            error_code="CONFIG_ERROR",
        )


class StorageError(BrightBuddyInfrastructureException):
    """
    A key-value store read, write, scan or lock failed.

    Absent keys are not errors; ``get`` answers ``None`` for them. This
    exception means the store could not answer at all.
    """

    DEFAULT_RETRYABLE = True

    def __init__(
        self,
        operation: str,
        key: str,
        original_error: Optional[BaseException] = None,
        *,
        error_code: str = "STORAGE_ERROR",
    ) -> None:
        self.operation = operation
        self.key = key
        self.original_error = original_error
        cause = _cause_fields(original_error)
        super().__init__(
            f"Storage error during {operation} for '{key}': {cause['error'] or 'store operation failed'}",
            {"operation": operation, "key": key, **cause},
            error_code=error_code,
        )


class LockAcquisitionError(StorageError):
    """A per-user lock stayed held by someone else for the whole wait window."""

    DEFAULT_SEVERITY = ErrorSeverity.WARNING

    def __init__(self, lock_name: str, wait_timeout: float) -> None:
        self.lock_name = lock_name
        self.wait_timeout = wait_timeout
        super().__init__(
            "lock",
            lock_name,
            TimeoutError(f"lock not acquired within {wait_timeout}s"),
            error_code="LOCK_TIMEOUT",
        )


class RedisConnectionError(BrightBuddyInfrastructureException):
    """The Redis client could not be created or reached."""

    DEFAULT_RETRYABLE = True

    def __init__(self, operation: str, original_error: BaseException) -> None:
        self.operation = operation
        self.original_error = original_error
        super().__init__(
            f"Redis error during {operation}: {original_error}",
            {"operation": operation, **_cause_fields(original_error)},
            error_code="REDIS_ERROR",
        )


class CircuitBreakerError(BrightBuddyInfrastructureException):
    """Redis calls are short-circuited until ``retry_after`` seconds pass."""

    DEFAULT_SEVERITY = ErrorSeverity.WARNING
    DEFAULT_RETRYABLE = True

    def __init__(self, service: str, failure_count: int, retry_after: float) -> None:
        self.service = service
        self.failure_count = failure_count
        self.retry_after = retry_after
        super().__init__(
            f"Circuit breaker open for {service} ({failure_count} failures, retry after {retry_after:.1f}s)",
            {"service": service, "failure_count": failure_count, "retry_after": retry_after},
            error_code="CIRCUIT_BREAKER_OPEN",
        )
