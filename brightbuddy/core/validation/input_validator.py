"""
Input Validation Layer for BrightBuddy

Purpose
-------
Centralized validation for caller-supplied values (user ids, activity ids,
scores, minutes, periods, limits) before they reach the domain services.

Responsibilities
----------------
- Validate and convert inputs to the right type
- Enforce bounds for numeric inputs
- Validate choice inputs against allowed options
- Raise ValidationError with user-friendly messages

Non-Responsibilities
--------------------
- Business rules such as quotas or premium gating (service layer)
- Persistence and locking (storage layer)

Observability
-------------
Every failure is logged at debug level with ``field_name``, ``raw_value``
(repr) and ``reason``.
"""

from __future__ import annotations

import re
from typing import Any, NoReturn, Optional, Sequence

from brightbuddy.core.logging.logger import get_logger
from brightbuddy.modules.shared.exceptions import ValidationError

logger = get_logger(__name__)

MAX_ID_LENGTH = 128
MAX_SCORE = 100
MAX_TIME_SPENT_MINUTES = 1440
MAX_QUERY_LIMIT = 1000
STATS_PERIODS = ("week", "month")

_ID_PATTERN = re.compile(r"^[A-Za-z0-9_.@\-]+$")


def _raise_validation_error(field_name: str, value: Any, message: str) -> NoReturn:
    """Log and raise a ValidationError."""
    logger.debug(
        "Input validation failed",
        extra={
            "field_name": field_name,
            "raw_value": repr(value),
            "reason": message,
        },
    )
    raise ValidationError(field_name, message)


class InputValidator:
    """
    Stateless validation helpers.

    Every method returns the validated (and possibly normalized) value or
    raises ValidationError.
    """

    # =========================================================================
    # INTEGER VALIDATION
    # =========================================================================

    @staticmethod
    def validate_integer(
        value: Any,
        field_name: str,
        min_value: Optional[int] = None,
        max_value: Optional[int] = None,
    ) -> int:
        """
        Validate and convert value to integer with optional bounds checking.

        Floats with a fractional part and booleans are rejected.
        """
        if value is None:
            _raise_validation_error(field_name, value, "Value is required")

        if isinstance(value, bool):
            _raise_validation_error(field_name, value, "Must be a whole number")

        if isinstance(value, float):
            if not value.is_integer():
                _raise_validation_error(field_name, value, f"Must be a whole number, got '{value}'")
            int_value = int(value)
        else:
            try:
                int_value = int(value)
            except (ValueError, TypeError):
                _raise_validation_error(field_name, value, f"Must be a whole number, got '{value}'")

        if min_value is not None and int_value < min_value:
            _raise_validation_error(
                field_name, int_value, f"Must be at least {min_value}, got {int_value}"
            )

        if max_value is not None and int_value > max_value:
            _raise_validation_error(
                field_name, int_value, f"Cannot exceed {max_value}, got {int_value}"
            )

        return int_value

    @staticmethod
    def validate_score(value: Any) -> Optional[int]:
        """Optional activity score, 0 to 100."""
        if value is None:
            return None
        return InputValidator.validate_integer(value, "score", min_value=0, max_value=MAX_SCORE)

    @staticmethod
    def validate_time_spent(value: Any) -> int:
        """Minutes spent on an activity; missing means 0."""
        if value is None:
            return 0
        return InputValidator.validate_integer(
            value, "time_spent", min_value=0, max_value=MAX_TIME_SPENT_MINUTES
        )

    @staticmethod
    def validate_limit(value: Any, default: int) -> int:
        if value is None:
            return default
        return InputValidator.validate_integer(
            value, "limit", min_value=1, max_value=MAX_QUERY_LIMIT
        )

    # =========================================================================
    # IDENTIFIER VALIDATION
    # =========================================================================

    @staticmethod
    def validate_identifier(value: Any, field_name: str) -> str:
        """
        Validate an opaque identifier used inside storage keys.

        Colons are refused because they separate key segments.
        """
        if value is None:
            _raise_validation_error(field_name, value, "Value is required")
        if not isinstance(value, str):
            _raise_validation_error(field_name, value, "Must be a string")

        str_value = value.strip()
        if not str_value:
            _raise_validation_error(field_name, value, "Cannot be empty")
        if len(str_value) > MAX_ID_LENGTH:
            _raise_validation_error(
                field_name, value, f"Cannot exceed {MAX_ID_LENGTH} characters"
            )
        if not _ID_PATTERN.match(str_value):
            _raise_validation_error(field_name, value, "Contains invalid characters")

        return str_value

    @staticmethod
    def validate_user_id(value: Any) -> str:
        return InputValidator.validate_identifier(value, "user_id")

    @staticmethod
    def validate_activity_id(value: Any) -> str:
        return InputValidator.validate_identifier(value, "activity_id")

    # =========================================================================
    # CHOICE VALIDATION
    # =========================================================================

    @staticmethod
    def validate_choice(
        value: Any,
        field_name: str,
        valid_choices: Sequence[str],
    ) -> str:
        """
        Validate that value is one of the allowed choices (case-insensitive).

        Returns the lowercased choice.
        """
        str_value = str(value).lower().strip()
        normalized_choices = {choice.lower() for choice in valid_choices}

        if str_value not in normalized_choices:
            choices_str = ", ".join(sorted(valid_choices))
            _raise_validation_error(
                field_name,
                value,
                f"Invalid choice '{value}'. Must be one of: {choices_str}",
            )

        return str_value

    @staticmethod
    def validate_period(value: Any) -> str:
        return InputValidator.validate_choice(value, "period", STATS_PERIODS)
