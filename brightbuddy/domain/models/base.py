"""
Shared helpers for BrightBuddy domain models.

Domain models are plain dataclasses that validate themselves on creation
and convert to and from the JSON documents kept in the key-value store.
They never touch storage or the event bus.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any, Optional


class DomainValidationError(Exception):
    """Raised when a domain model is constructed with invalid values."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


def validate_non_negative(value: int, field_name: str) -> None:
    if value < 0:
        raise DomainValidationError(f"{field_name} cannot be negative", field=field_name)


def validate_positive(value: int, field_name: str) -> None:
    if value <= 0:
        raise DomainValidationError(f"{field_name} must be positive", field=field_name)


def validate_range(value: float, min_val: float, max_val: float, field_name: str) -> None:
    if not (min_val <= value <= max_val):
        raise DomainValidationError(
            f"{field_name} must be between {min_val} and {max_val}, got {value}",
            field=field_name,
        )


def validate_not_empty(value: str, field_name: str) -> None:
    if not value or not value.strip():
        raise DomainValidationError(f"{field_name} cannot be empty", field=field_name)


# ============================================================================
# SERIALIZATION HELPERS
# ============================================================================


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC; convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def datetime_to_json(value: Optional[datetime]) -> Optional[str]:
    return ensure_utc(value).isoformat() if value is not None else None


def datetime_from_json(value: Any) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    return ensure_utc(datetime.fromisoformat(str(value).replace("Z", "+00:00")))


def date_to_json(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def date_from_json(value: Any) -> Optional[date]:
    if value is None:
        return None
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])
