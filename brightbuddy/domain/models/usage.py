"""
Usage domain models: daily counters, completion records and streaks.

- ``DailyUsage``: one per (user, UTC day); the activity counter only ever
  grows by exactly one per recorded completion.
- ``ActivityCompletion``: append-only audit record, immutable once written.
- ``StreakRecord``: consecutive-day streak derived from completion days.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta
from typing import Any, Dict, Optional, Tuple

from brightbuddy.domain.models.base import (
    date_from_json,
    date_to_json,
    datetime_from_json,
    datetime_to_json,
    validate_non_negative,
    validate_not_empty,
    validate_range,
)


@dataclass(frozen=True)
class DailyUsage:
    """
    Activity consumption for one user on one UTC calendar day.

    Attributes
    ----------
    activities_completed : int
        Completions recorded for the day (monotonic)
    subjects_covered : Tuple[str, ...]
        Distinct subjects touched, in first-seen order
    total_time_spent : int
        Minutes spent (monotonic)
    last_activity_at : Optional[datetime]
        Time of the most recent completion
    """

    user_id: str
    date: date
    activities_completed: int = 0
    subjects_covered: Tuple[str, ...] = field(default_factory=tuple)
    total_time_spent: int = 0
    last_activity_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        validate_not_empty(self.user_id, "user_id")
        validate_non_negative(self.activities_completed, "activities_completed")
        validate_non_negative(self.total_time_spent, "total_time_spent")

    def record_completion(
        self, subject: Optional[str], time_spent: int, at: datetime
    ) -> DailyUsage:
        """Return the usage after one more completion."""
        validate_non_negative(time_spent, "time_spent")
        subjects = self.subjects_covered
        if subject and subject not in subjects:
            subjects = subjects + (subject,)
        return replace(
            self,
            activities_completed=self.activities_completed + 1,
            subjects_covered=subjects,
            total_time_spent=self.total_time_spent + time_spent,
            last_activity_at=at,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "date": date_to_json(self.date),
            "activities_completed": self.activities_completed,
            "subjects_covered": list(self.subjects_covered),
            "total_time_spent": self.total_time_spent,
            "last_activity_at": datetime_to_json(self.last_activity_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> DailyUsage:
        return cls(
            user_id=data["user_id"],
            date=date_from_json(data["date"]),
            activities_completed=int(data.get("activities_completed", 0)),
            subjects_covered=tuple(data.get("subjects_covered", ())),
            total_time_spent=int(data.get("total_time_spent", 0)),
            last_activity_at=datetime_from_json(data.get("last_activity_at")),
        )


@dataclass(frozen=True)
class ActivityCompletion:
    """
    One recorded completion of a catalog activity.

    ``completion_id`` keeps repeated completions of the same activity as
    separate records.
    """

    completion_id: str
    user_id: str
    activity_id: str
    completed_at: datetime
    time_spent: int = 0
    score: Optional[int] = None
    subject: Optional[str] = None
    answers: Optional[Any] = None

    def __post_init__(self) -> None:
        validate_not_empty(self.user_id, "user_id")
        validate_not_empty(self.activity_id, "activity_id")
        validate_non_negative(self.time_spent, "time_spent")
        if self.score is not None:
            validate_range(self.score, 0, 100, "score")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "completion_id": self.completion_id,
            "user_id": self.user_id,
            "activity_id": self.activity_id,
            "completed_at": datetime_to_json(self.completed_at),
            "time_spent": self.time_spent,
            "score": self.score,
            "subject": self.subject,
            "answers": self.answers,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> ActivityCompletion:
        return cls(
            completion_id=data["completion_id"],
            user_id=data["user_id"],
            activity_id=data["activity_id"],
            completed_at=datetime_from_json(data["completed_at"]),
            time_spent=int(data.get("time_spent") or 0),
            score=data.get("score"),
            subject=data.get("subject"),
            answers=data.get("answers"),
        )


@dataclass(frozen=True)
class StreakRecord:
    """
    Consecutive active-day streak.

    >>> streak = StreakRecord("u1").advance(date(2024, 1, 1)).advance(date(2024, 1, 2))
    >>> streak.current
    2
    """

    user_id: str
    current: int = 0
    longest: int = 0
    last_active_date: Optional[date] = None

    def advance(self, day: date) -> StreakRecord:
        """Register activity on ``day``."""
        if self.last_active_date == day:
            return self

        if self.last_active_date is not None and day == self.last_active_date + timedelta(days=1):
            current = self.current + 1
        else:
            current = 1

        return replace(
            self,
            current=current,
            longest=max(self.longest, current),
            last_active_date=day,
        )

    def current_as_of(self, day: date) -> int:
        """The streak still alive on ``day``; 0 once a whole day was missed."""
        if self.last_active_date is None:
            return 0
        if self.last_active_date >= day - timedelta(days=1):
            return self.current
        return 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "current": self.current,
            "longest": self.longest,
            "last_active_date": date_to_json(self.last_active_date),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> StreakRecord:
        return cls(
            user_id=data["user_id"],
            current=int(data.get("current", 0)),
            longest=int(data.get("longest", 0)),
            last_active_date=date_from_json(data.get("last_active_date")),
        )
