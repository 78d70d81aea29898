"""
Unit tests for ProgressionEngine and the achievement catalog.

Tests lazy profile seeding, event matching per requirement type, one-time
unlocks with experience awards, invalid event handling and the read-side
queries.
"""

import pytest

from brightbuddy.core.storage.base import StorageKeys
from brightbuddy.domain.models import (
    AchievementCategory,
    AchievementDefinition,
    ActivityCompleted,
    PerfectScore,
    PremiumUpgraded,
    Requirement,
    RequirementType,
    StreakUpdated,
)
from brightbuddy.modules.achievements import ACHIEVEMENTS, AchievementCatalog, ProgressionEngine
from brightbuddy.modules.shared.exceptions import NotFoundError, ValidationError


def _unlocked_ids(result):
    return [definition.id for definition in result.newly_unlocked]


# ============================================================================
# CATALOG
# ============================================================================


@pytest.mark.unit
class TestAchievementCatalog:
    def test_catalog_has_eighteen_unique_entries(self, achievement_catalog):
        assert len(achievement_catalog) == 18
        assert len({d.id for d in achievement_catalog}) == 18

    def test_subject_mastery_entries(self, achievement_catalog):
        subjects = {
            d.requirement.subject for d in achievement_catalog.by_category(AchievementCategory.SUBJECT)
        }

        assert subjects == {
            "Math",
            "Science",
            "Reading",
            "Writing",
            "History",
            "Art",
            "Music",
            "Physical Education",
        }

    def test_duplicate_ids_rejected(self):
        with pytest.raises(ValueError):
            AchievementCatalog(ACHIEVEMENTS + (ACHIEVEMENTS[0],))

    def test_unknown_id(self, achievement_catalog):
        assert achievement_catalog.get("nope") is None


# ============================================================================
# PROFILE SEEDING
# ============================================================================


@pytest.mark.unit
@pytest.mark.asyncio
class TestProfileSeeding:
    async def test_first_read_seeds_every_achievement(self, progression, store):
        profile = await progression.get_profile("u1")

        assert len(profile.achievements) == 18
        assert all(state.progress == 0 for state in profile.achievements.values())
        assert profile.level == 1
        assert await store.get(StorageKeys.achievements("u1")) == profile.to_dict()

    async def test_repeated_reads_are_identical(self, progression, store, clock):
        first = await progression.get_profile("u1")
        stored = await store.get(StorageKeys.achievements("u1"))
        clock.advance(hours=2)

        second = await progression.get_profile("u1")

        assert second.to_dict() == first.to_dict()
        assert await store.get(StorageKeys.achievements("u1")) == stored

    async def test_new_catalog_entries_are_seeded_lazily(
        self, store, config_manager, event_bus, clock, progression
    ):
        await progression.get_profile("u1")
        extra = AchievementDefinition(
            id="night_owl",
            title="Night Owl",
            description="Complete 3 activities",
            icon="🦉",
            category=AchievementCategory.SPECIAL,
            requirement=Requirement(RequirementType.ACTIVITY_COMPLETED, 3),
        )
        engine = ProgressionEngine(
            store=store,
            catalog=AchievementCatalog(ACHIEVEMENTS + (extra,)),
            config_manager=config_manager,
            event_bus=event_bus,
            logger=progression.log,
            clock=clock,
        )

        profile = await engine.get_profile("u1")

        assert profile.achievements["night_owl"].max_progress == 3
        assert len((await store.get(StorageKeys.achievements("u1")))["achievements"]) == 19


# ============================================================================
# EVENT PROCESSING
# ============================================================================


@pytest.mark.unit
@pytest.mark.asyncio
class TestProcessEvent:
    async def test_first_activity_unlocks_first_steps(self, progression, clock):
        result = await progression.process_event("u1", ActivityCompleted(subject="Math", score=70))

        assert _unlocked_ids(result) == ["first_activity"]
        assert result.experience_gained == 50
        assert result.profile.experience == 50
        state = result.profile.achievements["first_activity"]
        assert state.unlocked_at == clock()
        assert result.profile.achievements["math_whiz"].progress == 1
        assert result.profile.achievements["science_explorer"].progress == 0

    async def test_unlock_happens_once(self, progression, clock):
        first = await progression.process_event("u1", ActivityCompleted(subject="Math"))
        unlocked_at = first.profile.achievements["first_activity"].unlocked_at
        experience = first.profile.experience
        clock.advance(hours=1)

        result = await progression.process_event("u1", ActivityCompleted(subject="Math"))

        assert "first_activity" not in _unlocked_ids(result)
        assert result.experience_gained == 0
        assert result.profile.experience == experience
        assert result.profile.achievements["first_activity"].unlocked_at == unlocked_at
        assert result.profile.achievements["first_activity"].progress == 1
        assert result.profile.achievements["activity_master"].progress == 2

    async def test_subject_mastery_after_ten(self, progression):
        for _ in range(9):
            await progression.process_event("u1", ActivityCompleted(subject="Art"))

        result = await progression.process_event("u1", ActivityCompleted(subject="Art"))

        assert _unlocked_ids(result) == ["art_enthusiast"]
        assert result.experience_gained == 75

    async def test_streak_is_a_watermark(self, progression):
        await progression.process_event("u1", StreakUpdated(value=5))

        result = await progression.process_event("u1", StreakUpdated(value=2))

        assert result.profile.achievements["week_warrior"].progress == 5
        assert result.newly_unlocked == []

    async def test_streak_of_seven_unlocks_week_warrior(self, progression):
        result = await progression.process_event("u1", StreakUpdated(value=7))

        assert _unlocked_ids(result) == ["week_warrior"]
        assert result.profile.achievements["month_master"].progress == 7
        assert result.experience_gained == 100
        assert result.levels_gained == 1
        assert result.leveled_up

    async def test_zero_streak_is_ignored(self, progression, store):
        await progression.get_profile("u1")
        before = await store.get(StorageKeys.achievements("u1"))

        await progression.process_event("u1", StreakUpdated(value=0))

        assert await store.get(StorageKeys.achievements("u1")) == before

    async def test_premium_upgrade(self, progression):
        result = await progression.process_event("u1", PremiumUpgraded())

        assert _unlocked_ids(result) == ["premium_upgrade"]
        assert result.experience_gained == 200

    async def test_perfect_score_from_completion_or_explicit_event(self, progression):
        via_completion = await progression.process_event(
            "u1", ActivityCompleted(subject="Math", score=100)
        )
        explicit = await progression.process_event("u2", PerfectScore(score=100))
        not_perfect = await progression.process_event("u3", PerfectScore(score=99))
        near_miss = await progression.process_event(
            "u4", ActivityCompleted(subject="Math", score=99)
        )

        assert "perfect_score" in _unlocked_ids(via_completion)
        assert _unlocked_ids(explicit) == ["perfect_score"]
        assert not_perfect.newly_unlocked == []
        assert "perfect_score" not in _unlocked_ids(near_miss)
        assert near_miss.profile.achievements["perfect_score"].progress == 0

    async def test_content_type_scoped_achievements(self, progression):
        other = await progression.process_event(
            "u1", ActivityCompleted(subject="Reading", content_type="vocabulary_matching")
        )
        speed = await progression.process_event(
            "u1", ActivityCompleted(subject="Reading", content_type="speed_reading")
        )

        assert "speed_reader" not in _unlocked_ids(other)
        assert _unlocked_ids(speed) == ["speed_reader"]

    async def test_experience_is_configurable(self, progression, config_manager):
        config_manager.set("progression.category_experience.learning", 10)

        result = await progression.process_event("u1", ActivityCompleted())

        assert result.experience_gained == 10

    async def test_raw_dict_event(self, progression):
        result = await progression.process_event("u1", {"type": "streak_updated", "value": 7})

        assert _unlocked_ids(result) == ["week_warrior"]

    async def test_invalid_raw_event_is_a_noop(self, progression):
        result = await progression.process_event("u1", {"type": "confetti"})

        assert result.newly_unlocked == []
        assert result.profile.experience == 0


# ============================================================================
# QUERIES
# ============================================================================


@pytest.mark.unit
@pytest.mark.asyncio
class TestQueries:
    async def test_achievement_progress_percent(self, progression):
        for _ in range(5):
            await progression.process_event("u1", ActivityCompleted(subject="Math"))

        assert await progression.get_achievement_progress("u1", "math_whiz") == 50
        assert await progression.get_achievement_progress("u1", "first_activity") == 100

    async def test_unknown_achievement(self, progression):
        with pytest.raises(NotFoundError):
            await progression.get_achievement_progress("u1", "unknown")

    async def test_recent_achievements_newest_first(self, progression, clock):
        await progression.process_event("u1", ActivityCompleted())
        clock.advance(hours=1)
        await progression.process_event("u1", PremiumUpgraded())
        clock.advance(hours=1)
        await progression.process_event("u1", StreakUpdated(value=7))

        recent = await progression.get_recent_achievements("u1", limit=2)

        assert [view.definition.id for view in recent] == ["week_warrior", "premium_upgrade"]
        assert recent[0].to_dict()["unlocked"] is True

    async def test_by_category_accepts_strings(self, progression):
        views = await progression.get_achievements_by_category("u1", "STREAK")

        assert [view.definition.id for view in views] == [
            "week_warrior",
            "month_master",
            "streak_legend",
        ]

    async def test_by_category_rejects_unknown(self, progression):
        with pytest.raises(ValidationError):
            await progression.get_achievements_by_category("u1", "social")

    async def test_counts(self, progression):
        await progression.process_event("u1", ActivityCompleted(score=100))

        assert await progression.get_unlocked_count("u1") == 2
        assert progression.get_total_achievements_count() == 18
        assert progression.get_level_title(2) == "Curious Explorer"
