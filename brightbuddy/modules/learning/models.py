"""Outcomes of the learning use cases."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from brightbuddy.domain.models.activity import LearningActivity
from brightbuddy.domain.models.progression import AchievementDefinition, ProgressionProfile
from brightbuddy.modules.freemium.models import CompletionReceipt, SubscriptionChange


@dataclass(frozen=True)
class ProgressionSummary:
    """
    What progression produced for one use case.

    ``profile`` is None when progression was skipped or its store could not
    be updated; a recorded completion still stands.
    """

    profile: Optional[ProgressionProfile]
    newly_unlocked: List[AchievementDefinition] = field(default_factory=list)
    experience_gained: int = 0
    levels_gained: int = 0

    @property
    def available(self) -> bool:
        return self.profile is not None

    @property
    def leveled_up(self) -> bool:
        return self.levels_gained > 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "available": self.available,
            "newly_unlocked": [definition.to_dict() for definition in self.newly_unlocked],
            "experience_gained": self.experience_gained,
            "levels_gained": self.levels_gained,
            "level": self.profile.level if self.profile else None,
            "level_title": self.profile.level_title if self.profile else None,
            "experience": self.profile.experience if self.profile else None,
        }


@dataclass(frozen=True)
class CompletionOutcome:
    activity: LearningActivity
    receipt: CompletionReceipt
    progression: ProgressionSummary

    @property
    def remaining_activities(self) -> Optional[int]:
        return self.receipt.remaining_activities

    def to_dict(self) -> Dict[str, Any]:
        return {
            "activity": self.activity.to_dict(),
            "completion": self.receipt.completion.to_dict(),
            "usage": self.receipt.usage.to_dict(),
            "streak": self.receipt.streak.to_dict(),
            "remaining_activities": self.receipt.remaining_activities,
            "progression": self.progression.to_dict(),
        }


@dataclass(frozen=True)
class UpgradeOutcome:
    change: SubscriptionChange
    progression: ProgressionSummary
