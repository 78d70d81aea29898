"""
Progression Engine
==================

Purpose
-------
Translate progression events into achievement progress and experience,
guaranteeing each achievement unlocks at most once and awards its
experience at most once.

Domain
------
- Lazily seed a user's profile from the achievement catalog
- Apply ``ActivityCompleted`` / ``StreakUpdated`` / ``PremiumUpgraded`` /
  ``PerfectScore`` to every still-locked matching achievement
- Award per-category experience on unlock and recompute the level
- Read-side queries: progress percent, recent unlocks, category views

Architecture Notes
------------------
- One JSON document per user (``achievements:{user_id}``), rewritten as a
  whole inside the user's store lock.
- The engine does not deduplicate events; delivering the same
  ``ActivityCompleted`` twice counts twice.
- Raw dict events that fail to parse are logged and advance nothing.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Union

from brightbuddy.core.storage.base import KeyValueStore, StorageKeys
from brightbuddy.core.validation.input_validator import InputValidator
from brightbuddy.domain.models.events import (
    ActivityCompleted,
    PerfectScore,
    PremiumUpgraded,
    ProgressEvent,
    StreakUpdated,
    parse_progress_event,
)
from brightbuddy.domain.models.progression import (
    AchievementCategory,
    AchievementDefinition,
    AchievementState,
    ProgressionProfile,
    RequirementType,
    level_title,
)
from brightbuddy.modules.achievements.catalog import AchievementCatalog
from brightbuddy.modules.achievements.models import AchievementView, ProgressionResult
from brightbuddy.modules.shared.base_service import BaseService, Clock
from brightbuddy.modules.shared.exceptions import InvalidEventError, NotFoundError

if TYPE_CHECKING:
    from logging import Logger

    from brightbuddy.core.config.manager import ConfigManager
    from brightbuddy.core.event.bus import EventBus


PERFECT_SCORE = 100

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

DEFAULT_CATEGORY_EXPERIENCE: Dict[AchievementCategory, int] = {
    AchievementCategory.LEARNING: 50,
    AchievementCategory.STREAK: 100,
    AchievementCategory.SUBJECT: 75,
    AchievementCategory.PREMIUM: 200,
    AchievementCategory.SPECIAL: 150,
}


class ProgressionEngine(BaseService):
    """
    Achievement and level progression.

    Public Methods
    --------------
    - get_profile() -> Read-or-seed the user's progression profile
    - process_event() -> Apply one event, return newly unlocked achievements
    - get_level_title() -> Title for a level
    - get_achievement_progress() -> Percent toward one achievement
    - get_recent_achievements() -> Latest unlocks
    - get_achievements_by_category() / get_unlocked_count()
    - get_total_achievements_count()
    """

    def __init__(
        self,
        store: KeyValueStore,
        catalog: AchievementCatalog,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
        clock: Optional[Clock] = None,
    ) -> None:
        super().__init__(config_manager, event_bus, logger, clock)
        self._store = store
        self._catalog = catalog

    # ========================================================================
    # PUBLIC API - Profile
    # ========================================================================

    async def get_profile(self, user_id: str) -> ProgressionProfile:
        """
        Return the user's profile, seeding it from the catalog on first access.

        Catalog entries added since the profile was stored are seeded too.

        Raises:
            StorageError: If the store fails
        """
        user_id = InputValidator.validate_user_id(user_id)

        stored = await self._store.get(StorageKeys.achievements(user_id))
        if stored is not None:
            profile = ProgressionProfile.from_dict(stored)
            if not self._missing_catalog_ids(profile):
                return profile

        async with self._store.lock(StorageKeys.user_lock(user_id)):
            return await self._load_profile_unlocked(user_id)

    async def process_event(
        self, user_id: str, event: Union[ProgressEvent, Dict[str, Any]]
    ) -> ProgressionResult:
        """
        Apply one progression event.

        Args:
            user_id: Whose profile to update
            event: A typed event, or a raw ``{"type": ...}`` payload

        Returns:
            ProgressionResult with newly unlocked definitions, experience and
            levels gained, and the updated profile

        Raises:
            StorageError: If the store fails
        """
        user_id = InputValidator.validate_user_id(user_id)

        if isinstance(event, dict):
            try:
                event = parse_progress_event(event)
            except InvalidEventError as exc:
                self.log.warning(
                    "Ignoring invalid progression event",
                    extra={"user_id": user_id, "reason": exc.reason},
                )
                return ProgressionResult(profile=await self.get_profile(user_id))

        async with self._store.lock(StorageKeys.user_lock(user_id)):
            profile = await self._load_profile_unlocked(user_id)
            dirty = False
            now = self.now()

            newly_unlocked: List[AchievementDefinition] = []
            experience_gained = 0
            levels_gained = 0

            for definition in self._catalog:
                state = profile.achievements.get(definition.id)
                if state is None or state.unlocked:
                    continue

                target = self._next_progress(definition, state, event)
                if target is None:
                    continue

                if target != state.progress:
                    dirty = True
                if state.advance_to(target, now):
                    dirty = True
                    newly_unlocked.append(definition)
                    amount = self._experience_for(definition.category)
                    experience_gained += amount
                    levels_gained += profile.award_experience(amount)

            if dirty:
                await self._store.set(StorageKeys.achievements(user_id), profile.to_dict())

        if newly_unlocked:
            self.log_operation(
                "achievements_unlocked",
                user_id=user_id,
                event_type=event.type.value,
                achievement_ids=[d.id for d in newly_unlocked],
                experience_gained=experience_gained,
                level=profile.level,
                levels_gained=levels_gained,
            )

        return ProgressionResult(
            profile=profile,
            newly_unlocked=newly_unlocked,
            experience_gained=experience_gained,
            levels_gained=levels_gained,
        )

    def get_level_title(self, level: int) -> str:
        return level_title(level)

    # ========================================================================
    # PUBLIC API - Queries
    # ========================================================================

    async def get_achievement_progress(self, user_id: str, achievement_id: str) -> int:
        """
        Percent toward ``achievement_id``, capped at 100.

        Raises:
            NotFoundError: Unknown achievement id
        """
        if self._catalog.get(achievement_id) is None:
            raise NotFoundError("Achievement", achievement_id)

        profile = await self.get_profile(user_id)
        return profile.achievements[achievement_id].percent

    async def get_recent_achievements(
        self, user_id: str, limit: Optional[int] = None
    ) -> List[AchievementView]:
        """Unlocked achievements, most recent first."""
        limit = InputValidator.validate_limit(
            limit, int(self.get_config("progression.recent_limit", 5))
        )
        profile = await self.get_profile(user_id)

        views = [view for view in self._views(profile) if view.state.unlocked]
        views.sort(key=lambda view: view.state.unlocked_at or _EPOCH, reverse=True)
        return views[:limit]

    async def get_achievements_by_category(
        self, user_id: str, category: Union[AchievementCategory, str]
    ) -> List[AchievementView]:
        if not isinstance(category, AchievementCategory):
            valid = [c.value for c in AchievementCategory]
            category = AchievementCategory(
                InputValidator.validate_choice(category, "category", valid)
            )

        profile = await self.get_profile(user_id)
        return [view for view in self._views(profile) if view.definition.category == category]

    async def get_unlocked_count(self, user_id: str) -> int:
        profile = await self.get_profile(user_id)
        return sum(
            1
            for state in profile.unlocked_states()
            if self._catalog.get(state.achievement_id) is not None
        )

    def get_total_achievements_count(self) -> int:
        return len(self._catalog)

    # ========================================================================
    # INTERNAL - Event matching
    # ========================================================================

    def _next_progress(
        self,
        definition: AchievementDefinition,
        state: AchievementState,
        event: ProgressEvent,
    ) -> Optional[int]:
        """New progress for ``state`` under ``event``; None when it does not apply."""
        requirement = definition.requirement

        if requirement.type == RequirementType.ACTIVITY_COMPLETED:
            if not isinstance(event, ActivityCompleted):
                return None
            if requirement.subject is not None and requirement.subject != event.subject:
                return None
            if (
                requirement.content_type is not None
                and requirement.content_type != event.content_type
            ):
                return None
            return state.progress + 1

        if requirement.type == RequirementType.STREAK_UPDATED:
            if not isinstance(event, StreakUpdated) or event.value <= 0:
                return None
            # watermark, not a tally
            return max(state.progress, event.value)

        if requirement.type == RequirementType.PREMIUM_UPGRADE:
            return 1 if isinstance(event, PremiumUpgraded) else None

        if requirement.type == RequirementType.PERFECT_SCORE:
            if isinstance(event, (PerfectScore, ActivityCompleted)) and event.score == PERFECT_SCORE:
                return 1
            return None

        return None

    def _experience_for(self, category: AchievementCategory) -> int:
        default = int(self.get_config("progression.default_experience", 50))
        return int(
            self.get_config(
                f"progression.category_experience.{category.value}",
                DEFAULT_CATEGORY_EXPERIENCE.get(category, default),
            )
        )

    # ========================================================================
    # INTERNAL - callers must hold the user lock
    # ========================================================================

    async def _load_profile_unlocked(self, user_id: str) -> ProgressionProfile:
        """Read the profile, seeding and persisting any missing states."""
        stored = await self._store.get(StorageKeys.achievements(user_id))
        if stored is None:
            profile = ProgressionProfile(user_id=user_id)
            self._seed(profile, [d.id for d in self._catalog])
            await self._store.set(StorageKeys.achievements(user_id), profile.to_dict())
            self.log_operation("progression_profile_seeded", user_id=user_id)
            return profile

        profile = ProgressionProfile.from_dict(stored)
        missing = self._missing_catalog_ids(profile)
        if missing:
            self._seed(profile, missing)
            await self._store.set(StorageKeys.achievements(user_id), profile.to_dict())
            self.log_operation(
                "progression_profile_extended", user_id=user_id, achievement_ids=missing
            )
        return profile

    def _seed(self, profile: ProgressionProfile, achievement_ids: List[str]) -> None:
        for achievement_id in achievement_ids:
            definition = self._catalog.get(achievement_id)
            if definition is None:
                continue
            profile.achievements[achievement_id] = AchievementState(
                achievement_id=achievement_id,
                max_progress=definition.requirement.target,
            )

    def _missing_catalog_ids(self, profile: ProgressionProfile) -> List[str]:
        return [d.id for d in self._catalog if d.id not in profile.achievements]

    def _views(self, profile: ProgressionProfile) -> List[AchievementView]:
        views = []
        for definition in self._catalog:
            state = profile.achievements.get(definition.id)
            if state is not None:
                views.append(AchievementView(definition=definition, state=state))
        return views
