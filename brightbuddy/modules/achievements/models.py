"""Result types returned by the progression engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List

from brightbuddy.domain.models.progression import (
    AchievementDefinition,
    AchievementState,
    ProgressionProfile,
)


@dataclass(frozen=True)
class AchievementView:
    """A catalog definition joined with one user's state for it."""

    definition: AchievementDefinition
    state: AchievementState

    def to_dict(self) -> Dict[str, Any]:
        data = self.definition.to_dict()
        data.update(
            {
                "progress": self.state.progress,
                "max_progress": self.state.max_progress,
                "percent": self.state.percent,
                "unlocked": self.state.unlocked,
                "unlocked_at": self.state.to_dict()["unlocked_at"],
            }
        )
        return data


@dataclass(frozen=True)
class ProgressionResult:
    """
    Outcome of ``ProgressionEngine.process_event``.

    ``newly_unlocked`` is in catalog order and empty for events that
    advanced nothing.
    """

    profile: ProgressionProfile
    newly_unlocked: List[AchievementDefinition] = field(default_factory=list)
    experience_gained: int = 0
    levels_gained: int = 0

    @property
    def leveled_up(self) -> bool:
        return self.levels_gained > 0
