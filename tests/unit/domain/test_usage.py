"""
Unit Tests for Usage Domain Models
==================================

Test Coverage
-------------
- DailyUsage counters and distinct subjects
- ActivityCompletion validation
- StreakRecord consecutive-day rules and expiry
"""

from datetime import date, datetime, timezone

import pytest

from brightbuddy.domain.models import (
    ActivityCompletion,
    DailyUsage,
    DomainValidationError,
    StreakRecord,
)

AT = datetime(2024, 3, 15, 10, 0, tzinfo=timezone.utc)


@pytest.mark.unit
@pytest.mark.domain
class TestDailyUsage:
    def test_record_completion_increments_by_one(self):
        usage = DailyUsage(user_id="u1", date=AT.date())

        updated = usage.record_completion("Math", 5, AT)

        assert updated.activities_completed == 1
        assert updated.total_time_spent == 5
        assert updated.subjects_covered == ("Math",)
        assert updated.last_activity_at == AT
        assert usage.activities_completed == 0

    def test_subjects_are_distinct_in_first_seen_order(self):
        usage = DailyUsage(user_id="u1", date=AT.date())

        for subject in ("Math", "Art", "Math", None):
            usage = usage.record_completion(subject, 0, AT)

        assert usage.activities_completed == 4
        assert usage.subjects_covered == ("Math", "Art")

    def test_negative_counter_rejected(self):
        with pytest.raises(DomainValidationError):
            DailyUsage(user_id="u1", date=AT.date(), activities_completed=-1)


@pytest.mark.unit
@pytest.mark.domain
class TestActivityCompletion:
    def test_score_above_100_rejected(self):
        with pytest.raises(DomainValidationError) as exc_info:
            ActivityCompletion("c1", "u1", "math_001", AT, score=101)

        assert exc_info.value.field == "score"

    def test_round_trip_keeps_answers(self):
        completion = ActivityCompletion(
            "c1", "u1", "math_001", AT, time_spent=4, score=80, subject="Math", answers={"q1": "b"}
        )

        assert ActivityCompletion.from_dict(completion.to_dict()) == completion


@pytest.mark.unit
@pytest.mark.domain
class TestStreakRecord:
    def test_first_day_starts_at_one(self):
        streak = StreakRecord("u1").advance(date(2024, 3, 1))

        assert streak.current == 1
        assert streak.longest == 1

    def test_same_day_is_unchanged(self):
        streak = StreakRecord("u1").advance(date(2024, 3, 1))

        assert streak.advance(date(2024, 3, 1)) is streak

    def test_consecutive_days_increment(self):
        streak = StreakRecord("u1")
        for day in range(1, 5):
            streak = streak.advance(date(2024, 3, day))

        assert streak.current == 4
        assert streak.longest == 4

    def test_gap_resets_but_keeps_longest(self):
        streak = StreakRecord("u1")
        for day in (1, 2, 3, 6):
            streak = streak.advance(date(2024, 3, day))

        assert streak.current == 1
        assert streak.longest == 3

    def test_current_as_of_expires_after_a_missed_day(self):
        streak = StreakRecord("u1").advance(date(2024, 3, 1)).advance(date(2024, 3, 2))

        assert streak.current_as_of(date(2024, 3, 2)) == 2
        assert streak.current_as_of(date(2024, 3, 3)) == 2
        assert streak.current_as_of(date(2024, 3, 4)) == 0
        assert StreakRecord("u1").current_as_of(date(2024, 3, 4)) == 0
