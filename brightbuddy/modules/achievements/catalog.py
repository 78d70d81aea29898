"""
Achievement catalog.

The universe of achievements. Definitions are immutable; per-user progress
lives in ``ProgressionProfile``. Adding an entry here seeds it for existing
users on their next profile read.
"""

from __future__ import annotations

from typing import Dict, Iterator, Optional, Tuple

from brightbuddy.domain.models.progression import (
    AchievementCategory,
    AchievementDefinition,
    Requirement,
    RequirementType,
    Reward,
)

_COMPLETED = RequirementType.ACTIVITY_COMPLETED
_STREAK = RequirementType.STREAK_UPDATED


def _subject_mastery(
    achievement_id: str, title: str, icon: str, subject: str, label: str, badge: str
) -> AchievementDefinition:
    return AchievementDefinition(
        id=achievement_id,
        title=title,
        description=f"Complete 10 {label} activities",
        icon=icon,
        category=AchievementCategory.SUBJECT,
        requirement=Requirement(_COMPLETED, 10, subject=subject),
        reward=Reward("badge", badge),
    )


ACHIEVEMENTS: Tuple[AchievementDefinition, ...] = (
    # Learning
    AchievementDefinition(
        id="first_activity",
        title="First Steps",
        description="Complete your first learning activity",
        icon="🎯",
        category=AchievementCategory.LEARNING,
        requirement=Requirement(_COMPLETED, 1),
        reward=Reward("badge", "Beginner Learner"),
    ),
    AchievementDefinition(
        id="activity_master",
        title="Activity Master",
        description="Complete 50 learning activities",
        icon="🏆",
        category=AchievementCategory.LEARNING,
        requirement=Requirement(_COMPLETED, 50),
        reward=Reward("title", "Learning Champion"),
    ),
    AchievementDefinition(
        id="century_club",
        title="Century Club",
        description="Complete 100 learning activities",
        icon="💎",
        category=AchievementCategory.LEARNING,
        requirement=Requirement(_COMPLETED, 100),
        reward=Reward("badge", "Century Master"),
    ),
    # Streaks
    AchievementDefinition(
        id="week_warrior",
        title="Week Warrior",
        description="Maintain a 7-day learning streak",
        icon="🔥",
        category=AchievementCategory.STREAK,
        requirement=Requirement(_STREAK, 7),
        reward=Reward("badge", "Consistent Learner"),
    ),
    AchievementDefinition(
        id="month_master",
        title="Month Master",
        description="Maintain a 30-day learning streak",
        icon="⭐",
        category=AchievementCategory.STREAK,
        requirement=Requirement(_STREAK, 30),
        reward=Reward("title", "Dedicated Scholar"),
    ),
    AchievementDefinition(
        id="streak_legend",
        title="Streak Legend",
        description="Maintain a 100-day learning streak",
        icon="👑",
        category=AchievementCategory.STREAK,
        requirement=Requirement(_STREAK, 100),
        reward=Reward("badge", "Legendary Learner"),
    ),
    # Subject mastery
    _subject_mastery("math_whiz", "Math Whiz", "🔢", "Math", "math", "Math Expert"),
    _subject_mastery(
        "science_explorer", "Science Explorer", "🔬", "Science", "science", "Science Explorer"
    ),
    _subject_mastery("bookworm", "Bookworm", "📚", "Reading", "reading", "Avid Reader"),
    _subject_mastery(
        "creative_writer", "Creative Writer", "✍️", "Writing", "writing", "Creative Writer"
    ),
    _subject_mastery(
        "history_buff", "History Buff", "🏛️", "History", "history", "History Enthusiast"
    ),
    _subject_mastery("art_enthusiast", "Art Enthusiast", "🎨", "Art", "art", "Art Lover"),
    _subject_mastery("music_maestro", "Music Maestro", "🎵", "Music", "music", "Music Maestro"),
    _subject_mastery(
        "fitness_fanatic",
        "Fitness Fanatic",
        "🏃",
        "Physical Education",
        "physical education",
        "Fitness Enthusiast",
    ),
    # Premium
    AchievementDefinition(
        id="premium_upgrade",
        title="Premium Member",
        description="Upgrade to premium subscription",
        icon="⭐",
        category=AchievementCategory.PREMIUM,
        requirement=Requirement(RequirementType.PREMIUM_UPGRADE, 1),
        reward=Reward("badge", "Premium Learner"),
    ),
    # Special
    AchievementDefinition(
        id="perfect_score",
        title="Perfect Score",
        description="Get a perfect score on any activity",
        icon="🎯",
        category=AchievementCategory.SPECIAL,
        requirement=Requirement(RequirementType.PERFECT_SCORE, 1),
        reward=Reward("badge", "Perfect Performer"),
    ),
    AchievementDefinition(
        id="speed_reader",
        title="Speed Reader",
        description="Complete a speed reading activity",
        icon="⚡",
        category=AchievementCategory.SPECIAL,
        requirement=Requirement(_COMPLETED, 1, content_type="speed_reading"),
        reward=Reward("badge", "Speed Reader"),
    ),
    AchievementDefinition(
        id="logic_master",
        title="Logic Master",
        description="Complete a logic puzzle activity",
        icon="🧠",
        category=AchievementCategory.SPECIAL,
        requirement=Requirement(_COMPLETED, 1, content_type="logic_puzzle"),
        reward=Reward("badge", "Logic Master"),
    ),
)


class AchievementCatalog:
    """Read-only lookup over a tuple of definitions, in catalog order."""

    def __init__(self, definitions: Tuple[AchievementDefinition, ...] = ACHIEVEMENTS) -> None:
        self._definitions = definitions
        self._by_id: Dict[str, AchievementDefinition] = {d.id: d for d in definitions}
        if len(self._by_id) != len(definitions):
            raise ValueError("Achievement catalog contains duplicate ids")

    def __iter__(self) -> Iterator[AchievementDefinition]:
        return iter(self._definitions)

    def __len__(self) -> int:
        return len(self._definitions)

    def get(self, achievement_id: str) -> Optional[AchievementDefinition]:
        return self._by_id.get(achievement_id)

    def by_category(self, category: AchievementCategory) -> Tuple[AchievementDefinition, ...]:
        return tuple(d for d in self._definitions if d.category == category)
