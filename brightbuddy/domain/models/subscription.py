"""
Subscription domain model.

One current subscription per user. Transitions are explicit and
caller-driven; each returns a new immutable instance and the ledger decides
whether anything changed by comparing old and new.

Lifecycle
---------
- Created lazily as ``free/active``
- ``upgraded``: premium/active, clears ``end_date``, keeps ``trial_end_date``
  (``has_used_trial`` reads it) and billing refs
- ``downgraded``: free/active, ``end_date`` stamped
- ``cancelled``: status cancelled, ``end_date`` stamped
- ``trial_started``: premium/trial until ``trial_end_date``
- Never deleted
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, Optional

from brightbuddy.domain.models.base import (
    datetime_from_json,
    datetime_to_json,
    validate_not_empty,
)


class SubscriptionTier(str, Enum):
    FREE = "free"
    PREMIUM = "premium"


class SubscriptionStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    CANCELLED = "cancelled"
    TRIAL = "trial"


@dataclass(frozen=True)
class Subscription:
    """
    A user's current subscription.

    Attributes
    ----------
    user_id : str
        Owner of the subscription
    tier : SubscriptionTier
        free or premium
    status : SubscriptionStatus
        active, inactive, cancelled or trial
    start_date : datetime
        When the current tier/status began (UTC)
    end_date : Optional[datetime]
        When the previous paid period ended, if any
    trial_end_date : Optional[datetime]
        Expiry of a trial, if one was started
    billing_customer_id, billing_subscription_id : Optional[str]
        Opaque references into the external billing system
    """

    user_id: str
    tier: SubscriptionTier
    status: SubscriptionStatus
    start_date: datetime
    end_date: Optional[datetime] = None
    trial_end_date: Optional[datetime] = None
    billing_customer_id: Optional[str] = None
    billing_subscription_id: Optional[str] = None

    def __post_init__(self) -> None:
        validate_not_empty(self.user_id, "user_id")

    @classmethod
    def default(cls, user_id: str, now: datetime) -> Subscription:
        return cls(
            user_id=user_id,
            tier=SubscriptionTier.FREE,
            status=SubscriptionStatus.ACTIVE,
            start_date=now,
        )

    # ========================================================================
    # STATE QUERIES
    # ========================================================================

    @property
    def is_free(self) -> bool:
        return self.tier == SubscriptionTier.FREE

    @property
    def is_premium_active(self) -> bool:
        return self.tier == SubscriptionTier.PREMIUM and self.status == SubscriptionStatus.ACTIVE

    @property
    def has_used_trial(self) -> bool:
        return self.trial_end_date is not None

    def is_trial_active(self, now: datetime) -> bool:
        return (
            self.status == SubscriptionStatus.TRIAL
            and self.trial_end_date is not None
            and now < self.trial_end_date
        )

    def has_premium_access(self, now: datetime) -> bool:
        return self.is_premium_active or self.is_trial_active(now)

    # ========================================================================
    # TRANSITIONS
    # ========================================================================

    def upgraded(
        self,
        now: datetime,
        billing_customer_id: Optional[str] = None,
        billing_subscription_id: Optional[str] = None,
    ) -> Subscription:
        if self.is_premium_active:
            if billing_customer_id is None and billing_subscription_id is None:
                return self
            return replace(
                self,
                billing_customer_id=billing_customer_id or self.billing_customer_id,
                billing_subscription_id=billing_subscription_id or self.billing_subscription_id,
            )

        return replace(
            self,
            tier=SubscriptionTier.PREMIUM,
            status=SubscriptionStatus.ACTIVE,
            start_date=now,
            end_date=None,
            billing_customer_id=billing_customer_id or self.billing_customer_id,
            billing_subscription_id=billing_subscription_id or self.billing_subscription_id,
        )

    def downgraded(self, now: datetime) -> Subscription:
        if self.tier == SubscriptionTier.FREE and self.status == SubscriptionStatus.ACTIVE:
            return self
        return replace(
            self,
            tier=SubscriptionTier.FREE,
            status=SubscriptionStatus.ACTIVE,
            end_date=now,
        )

    def cancelled(self, now: datetime) -> Subscription:
        if self.status == SubscriptionStatus.CANCELLED:
            return self
        return replace(self, status=SubscriptionStatus.CANCELLED, end_date=now)

    def trial_started(self, now: datetime, duration_days: int) -> Subscription:
        return replace(
            self,
            tier=SubscriptionTier.PREMIUM,
            status=SubscriptionStatus.TRIAL,
            start_date=now,
            trial_end_date=now + timedelta(days=duration_days),
        )

    # ========================================================================
    # SERIALIZATION
    # ========================================================================

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "tier": self.tier.value,
            "status": self.status.value,
            "start_date": datetime_to_json(self.start_date),
            "end_date": datetime_to_json(self.end_date),
            "trial_end_date": datetime_to_json(self.trial_end_date),
            "billing_customer_id": self.billing_customer_id,
            "billing_subscription_id": self.billing_subscription_id,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Subscription:
        return cls(
            user_id=data["user_id"],
            tier=SubscriptionTier(data["tier"]),
            status=SubscriptionStatus(data["status"]),
            start_date=datetime_from_json(data["start_date"]),
            end_date=datetime_from_json(data.get("end_date")),
            trial_end_date=datetime_from_json(data.get("trial_end_date")),
            billing_customer_id=data.get("billing_customer_id"),
            billing_subscription_id=data.get("billing_subscription_id"),
        )
