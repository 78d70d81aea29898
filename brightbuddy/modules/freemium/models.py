"""Result types returned by the usage ledger."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from brightbuddy.domain.models.subscription import Subscription, SubscriptionTier
from brightbuddy.domain.models.usage import ActivityCompletion, DailyUsage, StreakRecord
from brightbuddy.modules.shared.constants import REASON_DAILY_LIMIT_REACHED, UNLIMITED
from brightbuddy.modules.shared.exceptions import QuotaExceededError, SubscriptionInactiveError


@dataclass(frozen=True)
class PlanLimits:
    """Entitlements of one subscription tier."""

    tier: SubscriptionTier
    daily_activity_limit: int
    max_subjects: int
    analytics_level: str
    support_level: str
    price: Optional[float] = None
    currency: Optional[str] = None

    @property
    def is_unlimited(self) -> bool:
        return self.daily_activity_limit == UNLIMITED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tier": self.tier.value,
            "daily_activity_limit": self.daily_activity_limit,
            "max_subjects": self.max_subjects,
            "analytics_level": self.analytics_level,
            "support_level": self.support_level,
            "price": self.price,
            "currency": self.currency,
        }


@dataclass(frozen=True)
class ActivityPermission:
    """
    Decision for "may this user start another activity now?".

    ``remaining_activities`` and ``daily_limit`` are None when no daily
    limit applies.
    """

    can_perform: bool
    subscription: Subscription
    reason: Optional[str] = None
    remaining_activities: Optional[int] = None
    daily_limit: Optional[int] = None
    used: int = 0

    def raise_if_denied(self) -> None:
        """
        Raises:
            QuotaExceededError: Daily limit reached
            SubscriptionInactiveError: Any other refusal
        """
        if self.can_perform:
            return
        user_id = self.subscription.user_id
        if self.reason == REASON_DAILY_LIMIT_REACHED:
            raise QuotaExceededError(user_id, self.daily_limit or 0, self.used)
        raise SubscriptionInactiveError(
            user_id, self.subscription.tier.value, self.subscription.status.value
        )


@dataclass(frozen=True)
class CompletionReceipt:
    """Everything written by a successful ``record_activity_completion``."""

    completion: ActivityCompletion
    usage: DailyUsage
    streak: StreakRecord
    remaining_activities: Optional[int] = None

    def __bool__(self) -> bool:
        return True


@dataclass(frozen=True)
class SubscriptionChange:
    """Outcome of a subscription transition; ``changed`` is False on repeats."""

    subscription: Subscription
    previous: Subscription
    changed: bool


@dataclass(frozen=True)
class UserStats:
    period: str
    total_activities: int
    total_time_spent: int
    average_score: int
    current_streak: int
    longest_streak: int
    subjects_covered: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "period": self.period,
            "total_activities": self.total_activities,
            "total_time_spent": self.total_time_spent,
            "subjects_covered": list(self.subjects_covered),
            "average_score": self.average_score,
            "current_streak": self.current_streak,
            "longest_streak": self.longest_streak,
        }
