"""
BrightBuddy domain constants.

Event names published on the EventBus and the decision reasons returned by
the usage ledger. Tunable numbers (limits, experience amounts, durations)
live in ConfigManager, not here.
"""

from __future__ import annotations

from typing import Final

# ============================================================================
# EVENT NAMES
# ============================================================================

EVENT_ACTIVITY_COMPLETED: Final[str] = "activity.completed"
EVENT_SUBSCRIPTION_UPGRADED: Final[str] = "subscription.upgraded"
EVENT_SUBSCRIPTION_DOWNGRADED: Final[str] = "subscription.downgraded"
EVENT_SUBSCRIPTION_TRIAL_STARTED: Final[str] = "subscription.trial_started"
EVENT_SUBSCRIPTION_CANCELLED: Final[str] = "subscription.cancelled"
EVENT_ACHIEVEMENT_UNLOCKED: Final[str] = "achievement.unlocked"

# ============================================================================
# PERMISSION REASONS
# ============================================================================

REASON_DAILY_LIMIT_REACHED: Final[str] = "daily_limit_reached"
REASON_SUBSCRIPTION_INACTIVE: Final[str] = "subscription_inactive"

# ============================================================================
# UNLIMITED MARKER
# ============================================================================

# A configured limit of -1 means "no limit"
UNLIMITED: Final[int] = -1
