"""
Unit tests for LearningService.

Tests the complete-activity flow (premium gating, quota refusal, recording,
progression, published unlocks), premium upgrades, the dashboard and the
recommendation queries.
"""

import pytest

from brightbuddy.core.exceptions import StorageError
from brightbuddy.core.storage.base import StorageKeys
from brightbuddy.modules.shared.constants import EVENT_ACHIEVEMENT_UNLOCKED
from brightbuddy.modules.shared.exceptions import (
    NotFoundError,
    PremiumContentError,
    QuotaExceededError,
    SubscriptionInactiveError,
)


def _unlocked_ids(outcome):
    return [definition.id for definition in outcome.progression.newly_unlocked]


@pytest.fixture
def unlocked_events(event_bus):
    """Payloads of every ``achievement.unlocked`` published during the test."""
    received = []

    async def collect(payload):
        received.append(payload)

    event_bus.subscribe(EVENT_ACHIEVEMENT_UNLOCKED, collect, identifier="tests.collect")
    return received


# ============================================================================
# COMPLETE ACTIVITY
# ============================================================================


@pytest.mark.unit
@pytest.mark.asyncio
class TestCompleteActivity:
    async def test_first_completion(self, learning, unlocked_events):
        outcome = await learning.complete_activity("u1", "math_001", score=80, time_spent=5)

        assert outcome.activity.id == "math_001"
        assert outcome.receipt.completion.subject == "Math"
        assert outcome.remaining_activities == 2
        assert _unlocked_ids(outcome) == ["first_activity"]
        assert outcome.progression.available
        assert outcome.progression.experience_gained == 50
        assert len(unlocked_events) == 1
        assert unlocked_events[0]["user_id"] == "u1"
        assert [a["id"] for a in unlocked_events[0]["achievements"]] == ["first_activity"]
        assert unlocked_events[0]["leveled_up"] is False

    async def test_nothing_unlocked_publishes_nothing(self, learning, unlocked_events):
        await learning.complete_activity("u1", "math_001")

        outcome = await learning.complete_activity("u1", "math_002")

        assert outcome.progression.newly_unlocked == []
        assert len(unlocked_events) == 1

    async def test_outcome_serializes(self, learning):
        outcome = await learning.complete_activity("u1", "math_001", score=100)

        data = outcome.to_dict()

        assert data["remaining_activities"] == 2
        assert data["progression"]["level"] == 2
        assert {a["id"] for a in data["progression"]["newly_unlocked"]} == {
            "first_activity",
            "perfect_score",
        }

    async def test_unknown_activity(self, learning, ledger):
        with pytest.raises(NotFoundError):
            await learning.complete_activity("u1", "math_999")

        assert (await ledger.get_today_usage("u1")).activities_completed == 0

    async def test_premium_activity_refused_for_free_user(self, learning, ledger, store):
        with pytest.raises(PremiumContentError):
            await learning.complete_activity("u1", "reading_003")

        assert (await ledger.get_today_usage("u1")).activities_completed == 0
        assert await store.scan_prefix(StorageKeys.progress_prefix("u1")) == []

    async def test_premium_activity_allowed_during_trial(self, learning, ledger):
        await ledger.start_trial("u1")

        outcome = await learning.complete_activity("u1", "reading_003")

        assert "speed_reader" in _unlocked_ids(outcome)
        assert outcome.remaining_activities == 4

    async def test_daily_limit(self, learning, ledger):
        for activity_id in ("math_001", "math_002", "science_001"):
            await learning.complete_activity("u1", activity_id)

        with pytest.raises(QuotaExceededError):
            await learning.complete_activity("u1", "reading_001")

        assert (await ledger.get_today_usage("u1")).activities_completed == 3

    async def test_quota_resets_next_day(self, learning, clock):
        for activity_id in ("math_001", "math_002", "science_001"):
            await learning.complete_activity("u1", activity_id)
        clock.advance(days=1)

        outcome = await learning.complete_activity("u1", "reading_001")

        assert outcome.remaining_activities == 2
        assert outcome.receipt.streak.current == 2

    async def test_cancelled_subscription_is_refused(self, learning, ledger):
        await ledger.upgrade_to_premium("u1")
        await ledger.cancel_subscription("u1")

        with pytest.raises(SubscriptionInactiveError):
            await learning.complete_activity("u1", "math_001")

    async def test_week_of_completions_unlocks_week_warrior(self, learning, clock):
        outcome = None
        for _ in range(7):
            outcome = await learning.complete_activity("u1", "math_001")
            clock.advance(days=1)

        assert outcome.receipt.streak.current == 7
        assert "week_warrior" in _unlocked_ids(outcome)

    async def test_progression_failure_keeps_the_completion(
        self, learning, ledger, progression, unlocked_events, mocker
    ):
        mocker.patch.object(
            progression,
            "process_event",
            side_effect=StorageError("set", "achievements:u1", OSError("down")),
        )

        outcome = await learning.complete_activity("u1", "math_001")

        assert not outcome.progression.available
        assert outcome.to_dict()["progression"]["level"] is None
        assert (await ledger.get_today_usage("u1")).activities_completed == 1
        assert unlocked_events == []


# ============================================================================
# UPGRADE
# ============================================================================


@pytest.mark.unit
@pytest.mark.asyncio
class TestUpgradeToPremium:
    async def test_upgrade_unlocks_premium_achievement(self, learning):
        outcome = await learning.upgrade_to_premium("u1", "cus_1", "sub_1")

        assert outcome.change.changed
        assert outcome.change.subscription.billing_customer_id == "cus_1"
        assert [d.id for d in outcome.progression.newly_unlocked] == ["premium_upgrade"]

    async def test_repeat_upgrade_skips_progression(self, learning):
        await learning.upgrade_to_premium("u1")

        outcome = await learning.upgrade_to_premium("u1")

        assert not outcome.change.changed
        assert not outcome.progression.available
        assert outcome.progression.newly_unlocked == []

    async def test_upgrade_from_trial_counts(self, learning, ledger):
        await ledger.start_trial("u1")

        outcome = await learning.upgrade_to_premium("u1")

        assert [d.id for d in outcome.progression.newly_unlocked] == ["premium_upgrade"]

    async def test_premium_user_is_unlimited(self, learning):
        await learning.upgrade_to_premium("u1")

        for activity_id in ("math_001", "math_002", "math_003", "science_001"):
            outcome = await learning.complete_activity("u1", activity_id)

        assert outcome.remaining_activities is None


# ============================================================================
# READ MODELS
# ============================================================================


@pytest.mark.unit
@pytest.mark.asyncio
class TestReadModels:
    async def test_dashboard(self, learning):
        await learning.complete_activity("u1", "math_001", score=60, time_spent=5)

        dashboard = await learning.get_dashboard("u1")

        assert set(dashboard) == {"subscription", "plan", "today", "permission", "profile", "week"}
        assert dashboard["subscription"]["tier"] == "free"
        assert dashboard["plan"]["daily_activity_limit"] == 3
        assert dashboard["today"]["activities_completed"] == 1
        assert dashboard["permission"] == {
            "can_perform": True,
            "reason": None,
            "remaining_activities": 2,
        }
        assert dashboard["profile"]["unlocked_achievements"] == 1
        assert dashboard["profile"]["total_achievements"] == 18
        assert dashboard["profile"]["recent_achievements"][0]["id"] == "first_activity"
        assert dashboard["week"]["total_activities"] == 1

    async def test_recommendations_skip_completed_and_premium(self, learning):
        await learning.complete_activity("u1", "math_001")

        recommended = await learning.get_recommended_activities("u1", limit=25)

        ids = [a.id for a in recommended]
        assert "math_001" not in ids
        assert all(not a.is_premium for a in recommended)
        assert ids[-1] == "math_004"

    async def test_recommendations_include_premium_for_premium_users(self, learning):
        await learning.upgrade_to_premium("u1")

        recommended = await learning.get_recommended_activities("u1", limit=3)

        assert [a.id for a in recommended] == ["math_001", "math_002", "math_003"]

    async def test_daily_challenge_uses_the_clock(self, learning, activity_catalog, clock):
        challenge = learning.get_daily_challenge()

        assert challenge == activity_catalog.get_daily_challenge(clock().date())
        assert len(challenge) == 3
