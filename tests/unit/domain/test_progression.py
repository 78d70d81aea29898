"""
Unit Tests for Progression Domain Models
========================================

Test Coverage
-------------
- Level table lookups and titles
- AchievementState clamping, one-time unlock, consistency checks
- ProgressionProfile experience and derived level
- Progression event parsing
"""

from datetime import datetime, timedelta, timezone

import pytest

from brightbuddy.domain.models import (
    LEVEL_TABLE,
    AchievementState,
    ActivityCompleted,
    DomainValidationError,
    PerfectScore,
    PremiumUpgraded,
    ProgressionProfile,
    StreakUpdated,
    level_title,
    parse_progress_event,
)
from brightbuddy.domain.models.progression import experience_to_next_level, level_for_experience
from brightbuddy.modules.shared.exceptions import InvalidEventError

NOW = datetime(2024, 3, 15, 10, 0, tzinfo=timezone.utc)


# ============================================================================
# LEVELS
# ============================================================================


@pytest.mark.unit
@pytest.mark.domain
class TestLevelTable:
    def test_ten_levels(self):
        assert [tier.level for tier in LEVEL_TABLE] == list(range(1, 11))

    @pytest.mark.parametrize(
        "experience, level",
        [(0, 1), (99, 1), (100, 2), (249, 2), (250, 3), (9999, 9), (10000, 10), (50000, 10)],
    )
    def test_level_for_experience(self, experience, level):
        assert level_for_experience(experience) == level

    def test_experience_to_next_level_is_next_threshold(self):
        assert experience_to_next_level(1) == 100
        assert experience_to_next_level(9) == 10000
        assert experience_to_next_level(10) == 0

    def test_titles(self):
        assert level_title(1) == "Novice Learner"
        assert level_title(10) == "BrightBuddy Master"
        assert level_title(42) == "Novice Learner"


# ============================================================================
# ACHIEVEMENT STATE
# ============================================================================


@pytest.mark.unit
@pytest.mark.domain
class TestAchievementState:
    def test_advance_below_target_does_not_unlock(self):
        state = AchievementState("activity_master", max_progress=50)

        assert state.advance_to(10, NOW) is False
        assert state.progress == 10
        assert state.percent == 20
        assert state.unlocked_at is None

    def test_advance_to_target_unlocks_once(self):
        state = AchievementState("week_warrior", max_progress=7)

        assert state.advance_to(9, NOW) is True
        assert state.progress == 7
        assert state.unlocked
        assert state.unlocked_at == NOW

        assert state.advance_to(20, NOW + timedelta(days=1)) is False
        assert state.unlocked_at == NOW

    def test_unlocked_flag_must_match_progress(self):
        with pytest.raises(DomainValidationError):
            AchievementState("first_activity", max_progress=1, progress=1, unlocked=False)


# ============================================================================
# PROFILE
# ============================================================================


@pytest.mark.unit
@pytest.mark.domain
class TestProgressionProfile:
    def test_new_profile_is_level_one(self):
        profile = ProgressionProfile(user_id="u1")

        assert profile.level == 1
        assert profile.experience_to_next_level == 100
        assert profile.level_title == "Novice Learner"

    def test_award_experience_returns_levels_gained(self):
        profile = ProgressionProfile(user_id="u1")

        gained = profile.award_experience(275)

        assert gained == 2
        assert profile.level == 3
        assert profile.total_points == 275
        assert profile.experience_to_next_level == 500

    def test_level_is_derived_when_loading(self):
        data = {"user_id": "u1", "achievements": [], "experience": 1200, "level": 1}

        profile = ProgressionProfile.from_dict(data)

        assert profile.level == 5


# ============================================================================
# EVENTS
# ============================================================================


@pytest.mark.unit
@pytest.mark.domain
class TestParseProgressEvent:
    def test_activity_completed(self):
        event = parse_progress_event(
            {"type": "activity_completed", "subject": "Math", "score": 90.0}
        )

        assert event == ActivityCompleted(subject="Math", score=90)

    def test_other_variants(self):
        assert parse_progress_event({"type": "streak_updated", "value": 3}) == StreakUpdated(3)
        assert parse_progress_event({"type": "premium_upgrade"}) == PremiumUpgraded()
        assert parse_progress_event({"type": "perfect_score", "score": 100}) == PerfectScore(100)

    @pytest.mark.parametrize(
        "payload",
        [
            {"type": "level_up"},
            {},
            {"type": "streak_updated"},
            {"type": "streak_updated", "value": "7"},
            {"type": "perfect_score", "score": True},
        ],
    )
    def test_invalid_payloads(self, payload):
        with pytest.raises(InvalidEventError):
            parse_progress_event(payload)
