"""
Analytics documents.

Mutable aggregates rebuilt in place by ``AnalyticsService`` and stored as
JSON under ``analytics:user:{user_id}`` and ``analytics:subjects:{user_id}``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from brightbuddy.domain.models.base import datetime_from_json, datetime_to_json

TIME_OF_DAY_SLOTS = ("morning", "afternoon", "evening", "night")
DEVICE_TYPES = ("desktop", "mobile", "tablet")
SESSION_BUCKETS = ("short", "medium", "long")
DIFFICULTY_LEVELS = ("beginner", "intermediate", "advanced")


def _counter(names: Tuple[str, ...], data: Optional[Dict[str, Any]] = None) -> Dict[str, int]:
    data = data or {}
    return {name: int(data.get(name, 0)) for name in names}


@dataclass
class UserAnalytics:
    user_id: str
    total_sessions: int = 0
    total_time_spent: int = 0
    activities_completed: int = 0
    scored_activities: int = 0
    subjects_covered: List[str] = field(default_factory=list)
    average_score: float = 0.0
    streak_days: int = 0
    last_active: Optional[datetime] = None
    favorite_subject: str = ""
    learning_pattern: Dict[str, int] = field(default_factory=lambda: _counter(TIME_OF_DAY_SLOTS))
    device_usage: Dict[str, int] = field(default_factory=lambda: _counter(DEVICE_TYPES))
    session_duration: Dict[str, int] = field(default_factory=lambda: _counter(SESSION_BUCKETS))

    def record_score(self, score: int) -> None:
        """Fold ``score`` into the running average over scored activities."""
        self.scored_activities += 1
        self.average_score += (score - self.average_score) / self.scored_activities

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "total_sessions": self.total_sessions,
            "total_time_spent": self.total_time_spent,
            "activities_completed": self.activities_completed,
            "scored_activities": self.scored_activities,
            "subjects_covered": list(self.subjects_covered),
            "average_score": self.average_score,
            "streak_days": self.streak_days,
            "last_active": datetime_to_json(self.last_active),
            "favorite_subject": self.favorite_subject,
            "learning_pattern": dict(self.learning_pattern),
            "device_usage": dict(self.device_usage),
            "session_duration": dict(self.session_duration),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> UserAnalytics:
        return cls(
            user_id=data["user_id"],
            total_sessions=int(data.get("total_sessions", 0)),
            total_time_spent=int(data.get("total_time_spent", 0)),
            activities_completed=int(data.get("activities_completed", 0)),
            scored_activities=int(data.get("scored_activities", 0)),
            subjects_covered=list(data.get("subjects_covered", [])),
            average_score=float(data.get("average_score", 0.0)),
            streak_days=int(data.get("streak_days", 0)),
            last_active=datetime_from_json(data.get("last_active")),
            favorite_subject=data.get("favorite_subject", ""),
            learning_pattern=_counter(TIME_OF_DAY_SLOTS, data.get("learning_pattern")),
            device_usage=_counter(DEVICE_TYPES, data.get("device_usage")),
            session_duration=_counter(SESSION_BUCKETS, data.get("session_duration")),
        )


@dataclass
class SubjectAnalytics:
    subject: str
    activities_completed: int = 0
    scored_activities: int = 0
    average_score: float = 0.0
    total_time_spent: int = 0
    last_activity: Optional[datetime] = None
    difficulty_breakdown: Dict[str, int] = field(
        default_factory=lambda: _counter(DIFFICULTY_LEVELS)
    )

    def record(
        self,
        at: datetime,
        score: Optional[int],
        time_spent: int,
        difficulty: Optional[str],
    ) -> None:
        self.activities_completed += 1
        self.total_time_spent += time_spent
        self.last_activity = at
        if score is not None:
            self.scored_activities += 1
            self.average_score += (score - self.average_score) / self.scored_activities
        if difficulty in self.difficulty_breakdown:
            self.difficulty_breakdown[difficulty] += 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "subject": self.subject,
            "activities_completed": self.activities_completed,
            "scored_activities": self.scored_activities,
            "average_score": self.average_score,
            "total_time_spent": self.total_time_spent,
            "last_activity": datetime_to_json(self.last_activity),
            "difficulty_breakdown": dict(self.difficulty_breakdown),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> SubjectAnalytics:
        return cls(
            subject=data["subject"],
            activities_completed=int(data.get("activities_completed", 0)),
            scored_activities=int(data.get("scored_activities", 0)),
            average_score=float(data.get("average_score", 0.0)),
            total_time_spent=int(data.get("total_time_spent", 0)),
            last_activity=datetime_from_json(data.get("last_activity")),
            difficulty_breakdown=_counter(DIFFICULTY_LEVELS, data.get("difficulty_breakdown")),
        )


@dataclass(frozen=True)
class LearningInsights:
    best_time_to_learn: str
    recommended_subject: str
    improvement_areas: List[str] = field(default_factory=list)
    badges: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "best_time_to_learn": self.best_time_to_learn,
            "recommended_subject": self.recommended_subject,
            "improvement_areas": list(self.improvement_areas),
            "badges": list(self.badges),
        }
