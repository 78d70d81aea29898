"""Learning activity catalog entries."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Tuple

from brightbuddy.domain.models.base import validate_not_empty, validate_positive


class Difficulty(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class ActivityType(str, Enum):
    QUIZ = "quiz"
    EXERCISE = "exercise"
    CHALLENGE = "challenge"
    GAME = "game"
    REFLECTION = "reflection"


@dataclass(frozen=True)
class LearningActivity:
    """
    A static catalog activity.

    Attributes
    ----------
    content_type : str
        Presentation format (``fraction_matching``, ``speed_reading``...);
        some achievements count only one content type.
    estimated_time : int
        Expected minutes to complete.
    """

    id: str
    title: str
    description: str
    subject: str
    difficulty: Difficulty
    activity_type: ActivityType
    content_type: str
    is_premium: bool
    estimated_time: int
    tags: Tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        validate_not_empty(self.id, "id")
        validate_not_empty(self.subject, "subject")
        validate_positive(self.estimated_time, "estimated_time")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "subject": self.subject,
            "difficulty": self.difficulty.value,
            "activity_type": self.activity_type.value,
            "content_type": self.content_type,
            "is_premium": self.is_premium,
            "estimated_time": self.estimated_time,
            "tags": list(self.tags),
        }
