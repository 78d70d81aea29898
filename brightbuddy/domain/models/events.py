"""
Progression events.

A closed set of event variants, one per requirement type, each carrying
only the fields that type needs. Raw dict payloads (from the event bus or
an API) go through ``parse_progress_event``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar, Dict, Optional, Union

from brightbuddy.domain.models.progression import RequirementType
from brightbuddy.modules.shared.exceptions import InvalidEventError


@dataclass(frozen=True)
class ActivityCompleted:
    subject: Optional[str] = None
    score: Optional[int] = None
    activity_type: Optional[str] = None
    content_type: Optional[str] = None

    type: ClassVar[RequirementType] = RequirementType.ACTIVITY_COMPLETED


@dataclass(frozen=True)
class StreakUpdated:
    value: int

    type: ClassVar[RequirementType] = RequirementType.STREAK_UPDATED


@dataclass(frozen=True)
class PremiumUpgraded:
    type: ClassVar[RequirementType] = RequirementType.PREMIUM_UPGRADE


@dataclass(frozen=True)
class PerfectScore:
    score: int

    type: ClassVar[RequirementType] = RequirementType.PERFECT_SCORE


ProgressEvent = Union[ActivityCompleted, StreakUpdated, PremiumUpgraded, PerfectScore]


def _optional_int(payload: Dict[str, Any], name: str) -> Optional[int]:
    value = payload.get(name)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidEventError(f"'{name}' must be a number", payload)
    return int(value)


def _required_int(payload: Dict[str, Any], name: str) -> int:
    value = _optional_int(payload, name)
    if value is None:
        raise InvalidEventError(f"missing '{name}'", payload)
    return value


def parse_progress_event(payload: Dict[str, Any]) -> ProgressEvent:
    """
    Build a typed event from ``{"type": ..., ...}``.

    >>> parse_progress_event({"type": "streak_updated", "value": 7})
    StreakUpdated(value=7)

    Raises
    ------
    InvalidEventError
        For an unknown type or missing/ill-typed fields.
    """
    raw_type = payload.get("type")
    try:
        event_type = RequirementType(raw_type)
    except ValueError:
        raise InvalidEventError(f"unknown event type {raw_type!r}", payload) from None

    if event_type == RequirementType.ACTIVITY_COMPLETED:
        return ActivityCompleted(
            subject=payload.get("subject"),
            score=_optional_int(payload, "score"),
            activity_type=payload.get("activity_type"),
            content_type=payload.get("content_type"),
        )
    if event_type == RequirementType.STREAK_UPDATED:
        return StreakUpdated(value=_required_int(payload, "value"))
    if event_type == RequirementType.PREMIUM_UPGRADE:
        return PremiumUpgraded()
    return PerfectScore(score=_required_int(payload, "score"))
