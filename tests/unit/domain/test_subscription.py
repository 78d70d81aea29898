"""
Unit Tests for the Subscription Domain Model
============================================

Test Coverage
-------------
- Default free/active subscription
- Premium access for active premium and running trials
- Transitions (upgrade, downgrade, cancel, trial) and their no-op repeats
- JSON round trip of optional fields
"""

from datetime import datetime, timedelta, timezone

import pytest

from brightbuddy.domain.models import (
    DomainValidationError,
    Subscription,
    SubscriptionStatus,
    SubscriptionTier,
)

NOW = datetime(2024, 3, 15, 10, 0, tzinfo=timezone.utc)


@pytest.fixture
def free_sub() -> Subscription:
    return Subscription.default("u1", NOW)


# ============================================================================
# STATE QUERIES
# ============================================================================


@pytest.mark.unit
@pytest.mark.domain
class TestSubscriptionState:
    def test_default_is_free_active(self, free_sub):
        assert free_sub.tier == SubscriptionTier.FREE
        assert free_sub.status == SubscriptionStatus.ACTIVE
        assert free_sub.start_date == NOW
        assert free_sub.is_free
        assert not free_sub.has_premium_access(NOW)

    def test_empty_user_id_rejected(self):
        with pytest.raises(DomainValidationError):
            Subscription.default("  ", NOW)

    def test_trial_access_ends_at_trial_end_date(self, free_sub):
        trial = free_sub.trial_started(NOW, duration_days=7)

        assert trial.has_premium_access(NOW + timedelta(days=6, hours=23))
        assert not trial.has_premium_access(NOW + timedelta(days=7))
        assert trial.has_used_trial


# ============================================================================
# TRANSITIONS
# ============================================================================


@pytest.mark.unit
@pytest.mark.domain
class TestSubscriptionTransitions:
    def test_upgrade_sets_premium_active_and_billing_refs(self, free_sub):
        later = NOW + timedelta(hours=1)

        upgraded = free_sub.upgraded(later, "cus_1", "sub_1")

        assert upgraded.is_premium_active
        assert upgraded.start_date == later
        assert upgraded.end_date is None
        assert upgraded.billing_customer_id == "cus_1"
        assert upgraded.billing_subscription_id == "sub_1"

    def test_upgrade_when_already_premium_is_noop(self, free_sub):
        upgraded = free_sub.upgraded(NOW)

        assert upgraded.upgraded(NOW + timedelta(days=1)) is upgraded

    def test_upgrade_when_already_premium_updates_billing_refs_only(self, free_sub):
        upgraded = free_sub.upgraded(NOW, "cus_1")

        again = upgraded.upgraded(NOW + timedelta(days=1), billing_subscription_id="sub_2")

        assert again.start_date == NOW
        assert again.billing_customer_id == "cus_1"
        assert again.billing_subscription_id == "sub_2"

    def test_upgrade_from_trial_becomes_active(self, free_sub):
        trial = free_sub.trial_started(NOW, 7)

        upgraded = trial.upgraded(NOW + timedelta(days=2))

        assert upgraded.is_premium_active
        assert upgraded.trial_end_date == trial.trial_end_date
        assert upgraded.has_used_trial

    def test_downgrade_stamps_end_date(self, free_sub):
        premium = free_sub.upgraded(NOW)
        later = NOW + timedelta(days=30)

        downgraded = premium.downgraded(later)

        assert downgraded.tier == SubscriptionTier.FREE
        assert downgraded.status == SubscriptionStatus.ACTIVE
        assert downgraded.end_date == later

    def test_downgrade_of_free_active_is_noop(self, free_sub):
        assert free_sub.downgraded(NOW) is free_sub

    def test_cancel_keeps_tier(self, free_sub):
        premium = free_sub.upgraded(NOW)

        cancelled = premium.cancelled(NOW + timedelta(days=3))

        assert cancelled.tier == SubscriptionTier.PREMIUM
        assert cancelled.status == SubscriptionStatus.CANCELLED
        assert not cancelled.has_premium_access(NOW + timedelta(days=3))
        assert cancelled.cancelled(NOW + timedelta(days=4)) is cancelled


@pytest.mark.unit
@pytest.mark.domain
class TestSubscriptionSerialization:
    def test_round_trip_preserves_dates_and_refs(self, free_sub):
        trial = free_sub.trial_started(NOW, 7).upgraded(NOW, "cus_9", "sub_9")

        restored = Subscription.from_dict(trial.to_dict())

        assert restored == trial

    def test_naive_datetimes_are_read_as_utc(self):
        data = Subscription.default("u1", NOW).to_dict()
        data["start_date"] = "2024-03-15T10:00:00"

        restored = Subscription.from_dict(data)

        assert restored.start_date == NOW
