"""Achievements, experience and levels."""

from brightbuddy.modules.achievements.catalog import ACHIEVEMENTS, AchievementCatalog
from brightbuddy.modules.achievements.models import AchievementView, ProgressionResult
from brightbuddy.modules.achievements.service import ProgressionEngine

__all__ = [
    "ACHIEVEMENTS",
    "AchievementCatalog",
    "AchievementView",
    "ProgressionEngine",
    "ProgressionResult",
]
