"""Shared service base class and domain exceptions."""

from brightbuddy.modules.shared.base_service import BaseService, Clock, utc_now
from brightbuddy.modules.shared.exceptions import (
    BrightBuddyDomainException,
    InvalidEventError,
    NotFoundError,
    PremiumContentError,
    QuotaExceededError,
    SubscriptionInactiveError,
    ValidationError,
)

__all__ = [
    "BaseService",
    "BrightBuddyDomainException",
    "Clock",
    "InvalidEventError",
    "NotFoundError",
    "PremiumContentError",
    "QuotaExceededError",
    "SubscriptionInactiveError",
    "ValidationError",
    "utc_now",
]
