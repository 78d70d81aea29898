"""BrightBuddy domain models."""

from brightbuddy.domain.models.activity import ActivityType, Difficulty, LearningActivity
from brightbuddy.domain.models.base import DomainValidationError
from brightbuddy.domain.models.events import (
    ActivityCompleted,
    PerfectScore,
    PremiumUpgraded,
    ProgressEvent,
    StreakUpdated,
    parse_progress_event,
)
from brightbuddy.domain.models.progression import (
    LEVEL_TABLE,
    AchievementCategory,
    AchievementDefinition,
    AchievementState,
    LevelTier,
    ProgressionProfile,
    Requirement,
    RequirementType,
    Reward,
    level_title,
)
from brightbuddy.domain.models.subscription import (
    Subscription,
    SubscriptionStatus,
    SubscriptionTier,
)
from brightbuddy.domain.models.usage import ActivityCompletion, DailyUsage, StreakRecord

__all__ = [
    "LEVEL_TABLE",
    "AchievementCategory",
    "AchievementDefinition",
    "AchievementState",
    "ActivityCompleted",
    "ActivityCompletion",
    "ActivityType",
    "DailyUsage",
    "Difficulty",
    "DomainValidationError",
    "LearningActivity",
    "LevelTier",
    "PerfectScore",
    "PremiumUpgraded",
    "ProgressEvent",
    "ProgressionProfile",
    "Requirement",
    "RequirementType",
    "Reward",
    "StreakRecord",
    "StreakUpdated",
    "Subscription",
    "SubscriptionStatus",
    "SubscriptionTier",
    "level_title",
    "parse_progress_event",
]
