"""
Progression domain model: achievements, per-user state and levels.

Invariants
----------
- ``AchievementState.unlocked`` is True iff ``progress >= max_progress``,
  and once True it never changes again (progress and ``unlocked_at`` are
  frozen).
- ``ProgressionProfile.level`` and ``experience_to_next_level`` are always
  derived from ``experience`` through ``LEVEL_TABLE``; they are never set
  on their own.
- Experience and total points only grow.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from brightbuddy.domain.models.base import (
    DomainValidationError,
    datetime_from_json,
    datetime_to_json,
    validate_non_negative,
    validate_positive,
)


class AchievementCategory(str, Enum):
    LEARNING = "learning"
    STREAK = "streak"
    SUBJECT = "subject"
    PREMIUM = "premium"
    SPECIAL = "special"


class RequirementType(str, Enum):
    ACTIVITY_COMPLETED = "activity_completed"
    STREAK_UPDATED = "streak_updated"
    PREMIUM_UPGRADE = "premium_upgrade"
    PERFECT_SCORE = "perfect_score"


# ============================================================================
# CATALOG VALUE OBJECTS
# ============================================================================


@dataclass(frozen=True)
class Requirement:
    """
    What advances an achievement.

    ``subject`` and ``content_type`` narrow an ``activity_completed``
    requirement to matching activities only.
    """

    type: RequirementType
    target: int
    subject: Optional[str] = None
    content_type: Optional[str] = None

    def __post_init__(self) -> None:
        validate_positive(self.target, "target")


@dataclass(frozen=True)
class Reward:
    type: str
    value: str


@dataclass(frozen=True)
class AchievementDefinition:
    id: str
    title: str
    description: str
    icon: str
    category: AchievementCategory
    requirement: Requirement
    reward: Optional[Reward] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "icon": self.icon,
            "category": self.category.value,
            "requirement": {
                "type": self.requirement.type.value,
                "target": self.requirement.target,
                "subject": self.requirement.subject,
                "content_type": self.requirement.content_type,
            },
            "reward": (
                {"type": self.reward.type, "value": self.reward.value} if self.reward else None
            ),
        }


# ============================================================================
# LEVELS
# ============================================================================


@dataclass(frozen=True)
class LevelTier:
    level: int
    title: str
    experience: int


LEVEL_TABLE: Tuple[LevelTier, ...] = (
    LevelTier(1, "Novice Learner", 0),
    LevelTier(2, "Curious Explorer", 100),
    LevelTier(3, "Dedicated Student", 250),
    LevelTier(4, "Knowledge Seeker", 500),
    LevelTier(5, "Learning Enthusiast", 1000),
    LevelTier(6, "Academic Achiever", 2000),
    LevelTier(7, "Knowledge Master", 3500),
    LevelTier(8, "Learning Legend", 5000),
    LevelTier(9, "Educational Expert", 7500),
    LevelTier(10, "BrightBuddy Master", 10000),
)

MAX_LEVEL = LEVEL_TABLE[-1].level


def level_for_experience(experience: int) -> int:
    """Highest level whose threshold does not exceed ``experience``."""
    level = LEVEL_TABLE[0].level
    for tier in LEVEL_TABLE:
        if tier.experience <= experience:
            level = tier.level
    return level


def experience_to_next_level(level: int) -> int:
    """Experience threshold of the level after ``level``; 0 at the top."""
    for tier in LEVEL_TABLE:
        if tier.level == level + 1:
            return tier.experience
    return 0


def level_title(level: int) -> str:
    """Title for ``level``; the lowest title for anything out of range."""
    for tier in LEVEL_TABLE:
        if tier.level == level:
            return tier.title
    return LEVEL_TABLE[0].title


# ============================================================================
# USER STATE
# ============================================================================


@dataclass
class AchievementState:
    """Per-user progress toward one achievement."""

    achievement_id: str
    max_progress: int
    progress: int = 0
    unlocked: bool = False
    unlocked_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        validate_positive(self.max_progress, "max_progress")
        validate_non_negative(self.progress, "progress")
        if self.unlocked != (self.progress >= self.max_progress):
            raise DomainValidationError(
                f"achievement '{self.achievement_id}' unlocked flag disagrees with progress",
                field="unlocked",
            )

    def advance_to(self, progress: int, now: datetime) -> bool:
        """
        Set progress (clamped to ``max_progress``); return True if this unlocks.

        Unlocked states are frozen and never change.
        """
        if self.unlocked:
            return False

        self.progress = max(0, min(progress, self.max_progress))
        if self.progress >= self.max_progress:
            self.unlocked = True
            self.unlocked_at = now
            return True
        return False

    @property
    def percent(self) -> int:
        return min(100, round(self.progress / self.max_progress * 100))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.achievement_id,
            "progress": self.progress,
            "max_progress": self.max_progress,
            "unlocked": self.unlocked,
            "unlocked_at": datetime_to_json(self.unlocked_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> AchievementState:
        return cls(
            achievement_id=data["id"],
            max_progress=int(data["max_progress"]),
            progress=int(data.get("progress", 0)),
            unlocked=bool(data.get("unlocked", False)),
            unlocked_at=datetime_from_json(data.get("unlocked_at")),
        )


@dataclass
class ProgressionProfile:
    """
    A user's achievement states plus experience and level.

    ``achievements`` preserves catalog order; states for ids no longer in
    the catalog are kept untouched.
    """

    user_id: str
    achievements: Dict[str, AchievementState] = field(default_factory=dict)
    total_points: int = 0
    experience: int = 0
    level: int = 1
    experience_to_next_level: int = LEVEL_TABLE[1].experience

    def __post_init__(self) -> None:
        validate_non_negative(self.experience, "experience")
        validate_non_negative(self.total_points, "total_points")
        self._recompute_level()

    def award_experience(self, amount: int) -> int:
        """Add experience and points; return the number of levels gained."""
        validate_non_negative(amount, "amount")
        previous = self.level
        self.experience += amount
        self.total_points += amount
        self._recompute_level()
        return self.level - previous

    def _recompute_level(self) -> None:
        self.level = level_for_experience(self.experience)
        self.experience_to_next_level = experience_to_next_level(self.level)

    @property
    def level_title(self) -> str:
        return level_title(self.level)

    def unlocked_states(self) -> List[AchievementState]:
        return [state for state in self.achievements.values() if state.unlocked]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "achievements": [state.to_dict() for state in self.achievements.values()],
            "total_points": self.total_points,
            "level": self.level,
            "experience": self.experience,
            "experience_to_next_level": self.experience_to_next_level,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> ProgressionProfile:
        states = [AchievementState.from_dict(item) for item in data.get("achievements", [])]
        return cls(
            user_id=data["user_id"],
            achievements={state.achievement_id: state for state in states},
            total_points=int(data.get("total_points", 0)),
            experience=int(data.get("experience", 0)),
        )
