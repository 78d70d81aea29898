"""
Domain exceptions for BrightBuddy.

Purpose
-------
Structured exceptions raised by the ledger, progression and orchestration
services for business-rule outcomes. Callers (an API layer, a task runner,
tests) translate them into user-facing messages such as an upgrade prompt.

Design Notes
------------
- All domain exceptions inherit from ``BrightBuddyDomainException``, which
  shares ``BrightBuddyError`` (message, details, severity, error code) with
  the infrastructure hierarchy.
- Infrastructure failures (``StorageError`` and friends) live in
  ``brightbuddy.core.exceptions`` and are never re-wrapped here.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from brightbuddy.core.exceptions import BrightBuddyError, ErrorSeverity


class BrightBuddyDomainException(BrightBuddyError):
    """Base for business-rule outcomes; logged at INFO unless a subclass says otherwise."""

    DEFAULT_SEVERITY = ErrorSeverity.INFO


class QuotaExceededError(BrightBuddyDomainException):
    """
    Raised when a user has used up today's activity allowance.

    User-recoverable: wait for the next UTC day or upgrade. Never retried
    automatically.

    Args:
        user_id: The user whose quota is exhausted
        daily_limit: The limit that applied
        used: Activities already completed today
    """

    def __init__(self, user_id: str, daily_limit: int, used: int) -> None:
        self.user_id = user_id
        self.daily_limit = daily_limit
        self.used = used
        super().__init__(
            f"Daily activity limit reached ({used}/{daily_limit})",
            details={"user_id": user_id, "daily_limit": daily_limit, "used": used},
            error_code="DAILY_LIMIT_REACHED",
        )


class SubscriptionInactiveError(BrightBuddyDomainException):
    """Raised when the user's subscription state does not allow activities."""

    def __init__(self, user_id: str, tier: str, status: str) -> None:
        self.user_id = user_id
        self.tier = tier
        self.status = status
        super().__init__(
            f"Subscription is not active ({tier}/{status})",
            details={"user_id": user_id, "tier": tier, "status": status},
            error_code="SUBSCRIPTION_INACTIVE",
        )


class PremiumContentError(BrightBuddyDomainException):
    """Raised when a user without premium access opens premium content."""

    def __init__(self, user_id: str, activity_id: str) -> None:
        self.user_id = user_id
        self.activity_id = activity_id
        super().__init__(
            f"Activity '{activity_id}' requires a premium subscription",
            details={"user_id": user_id, "activity_id": activity_id},
            error_code="PREMIUM_REQUIRED",
        )


class InvalidEventError(BrightBuddyDomainException):
    """
    Raised when a raw progression event cannot be parsed.

    The progression engine logs these and treats the event as a no-op.
    """

    DEFAULT_SEVERITY = ErrorSeverity.WARNING

    def __init__(self, reason: str, payload: Optional[Dict[str, Any]] = None) -> None:
        self.reason = reason
        super().__init__(
            f"Invalid progression event: {reason}",
            details={"reason": reason, "payload": payload or {}},
            error_code="INVALID_EVENT",
        )


class NotFoundError(BrightBuddyDomainException):
    """
    Raised when a requested resource cannot be found.

    Args:
        resource_type: Type of resource (e.g., "Activity", "Achievement")
        identifier: Optional identifier for the missing resource
    """

    def __init__(self, resource_type: str, identifier: Optional[Any] = None) -> None:
        self.resource_type = resource_type
        self.identifier = identifier

        if identifier is not None:
            message = f"{resource_type} not found: {identifier}"
        else:
            message = f"{resource_type} not found"

        super().__init__(
            message,
            details={"resource_type": resource_type, "identifier": identifier},
            error_code=f"{resource_type.upper()}_NOT_FOUND",
        )


class ValidationError(BrightBuddyDomainException):
    """
    Raised when input fails domain validation.

    Args:
        field: Name of the field that failed validation
        message: Explanation of why validation failed
    """

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        self.validation_message = message
        super().__init__(
            f"Validation error for {field}: {message}",
            details={"field": field, "validation_message": message},
            error_code=f"VALIDATION_{field.upper()}",
        )
