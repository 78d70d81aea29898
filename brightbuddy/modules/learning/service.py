"""
Learning Service
================

Purpose
-------
The "complete an activity" use case and the other flows that span the
usage ledger and the progression engine.

Call Sequence (complete_activity)
---------------------------------
1. Resolve the activity through the catalog; refuse premium content to
   users without premium access.
2. Ask the ledger for permission; abort with the typed refusal.
3. Record the completion (the ledger re-checks under its lock and
   publishes ``activity.completed``, which the analytics sink consumes).
4. Feed ``ActivityCompleted`` and ``StreakUpdated`` to the progression
   engine.
5. Publish ``achievement.unlocked`` for the notification collaborator when
   anything unlocked.

Failures after step 3 never turn a recorded completion into a failed one:
a progression storage error is logged and reported as an absent
progression result.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Optional

from brightbuddy.core.exceptions import StorageError
from brightbuddy.core.logging.logger import LogContext
from brightbuddy.core.validation.input_validator import InputValidator
from brightbuddy.domain.models.events import ActivityCompleted, PremiumUpgraded, StreakUpdated
from brightbuddy.domain.models.progression import AchievementDefinition, ProgressionProfile
from brightbuddy.modules.achievements.service import ProgressionEngine
from brightbuddy.modules.activities.catalog import ActivityCatalog
from brightbuddy.modules.freemium.service import UsageLedgerService
from brightbuddy.modules.learning.models import (
    CompletionOutcome,
    ProgressionSummary,
    UpgradeOutcome,
)
from brightbuddy.modules.shared.base_service import BaseService, Clock
from brightbuddy.modules.shared.constants import EVENT_ACHIEVEMENT_UNLOCKED
from brightbuddy.modules.shared.exceptions import PremiumContentError

if TYPE_CHECKING:
    from logging import Logger

    from brightbuddy.core.config.manager import ConfigManager
    from brightbuddy.core.event.bus import EventBus
    from brightbuddy.domain.models.activity import LearningActivity
    from brightbuddy.domain.models.events import ProgressEvent


class LearningService(BaseService):
    """
    Orchestrates ledger, progression and catalog.

    Public Methods
    --------------
    - complete_activity() -> Gate, record, progress, notify
    - upgrade_to_premium() -> Ledger transition plus premium achievement
    - get_dashboard() -> Everything a home screen shows
    - get_recommended_activities() / get_daily_challenge()
    """

    def __init__(
        self,
        ledger: UsageLedgerService,
        progression: ProgressionEngine,
        catalog: ActivityCatalog,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
        clock: Optional[Clock] = None,
    ) -> None:
        super().__init__(config_manager, event_bus, logger, clock)
        self._ledger = ledger
        self._progression = progression
        self._catalog = catalog

    # ========================================================================
    # PUBLIC API - Use cases
    # ========================================================================

    async def complete_activity(
        self,
        user_id: str,
        activity_id: str,
        score: Optional[int] = None,
        time_spent: Optional[int] = None,
        answers: Optional[Any] = None,
    ) -> CompletionOutcome:
        """
        Complete a catalog activity for a user.

        Raises:
            NotFoundError: Unknown activity
            PremiumContentError: Premium activity without premium access
            QuotaExceededError: Daily limit reached
            SubscriptionInactiveError: Subscription does not allow activities
            StorageError: If recording the completion fails
        """
        user_id = InputValidator.validate_user_id(user_id)
        with LogContext(user_id=user_id, action="complete_activity", activity_id=activity_id):
            return await self._complete(user_id, activity_id, score, time_spent, answers)

    async def _complete(
        self,
        user_id: str,
        activity_id: str,
        score: Optional[int],
        time_spent: Optional[int],
        answers: Optional[Any],
    ) -> CompletionOutcome:
        activity = self._catalog.get_activity(activity_id)

        permission = await self._ledger.can_perform_activity(user_id)
        if activity.is_premium and not permission.subscription.has_premium_access(self.now()):
            raise PremiumContentError(user_id, activity.id)
        permission.raise_if_denied()

        receipt = await self._ledger.record_activity_completion(
            user_id,
            activity.id,
            score=score,
            time_spent=time_spent,
            answers=answers,
            subject=activity.subject,
            activity_type=activity.activity_type.value,
            content_type=activity.content_type,
            difficulty=activity.difficulty.value,
        )

        progression = await self._apply_progression(
            user_id,
            [
                ActivityCompleted(
                    subject=activity.subject,
                    score=receipt.completion.score,
                    activity_type=activity.activity_type.value,
                    content_type=activity.content_type,
                ),
                StreakUpdated(value=receipt.streak.current),
            ],
        )

        self.log_operation(
            "complete_activity",
            user_id=user_id,
            activity_id=activity.id,
            remaining_activities=receipt.remaining_activities,
            unlocked=[d.id for d in progression.newly_unlocked],
            progression_available=progression.available,
        )
        return CompletionOutcome(activity=activity, receipt=receipt, progression=progression)

    async def upgrade_to_premium(
        self,
        user_id: str,
        billing_customer_id: Optional[str] = None,
        billing_subscription_id: Optional[str] = None,
    ) -> UpgradeOutcome:
        """Upgrade; the premium achievement is fed only when the tier actually changed."""
        change = await self._ledger.upgrade_to_premium(
            user_id, billing_customer_id, billing_subscription_id
        )
        if not change.changed or change.previous.is_premium_active:
            return UpgradeOutcome(change=change, progression=ProgressionSummary(profile=None))

        progression = await self._apply_progression(change.subscription.user_id, [PremiumUpgraded()])
        return UpgradeOutcome(change=change, progression=progression)

    # ========================================================================
    # PUBLIC API - Read models
    # ========================================================================

    async def get_dashboard(self, user_id: str) -> Dict[str, Any]:
        """Subscription, today's usage and permission, profile summary, week stats."""
        user_id = InputValidator.validate_user_id(user_id)

        subscription = await self._ledger.get_subscription(user_id)
        usage = await self._ledger.get_today_usage(user_id)
        permission = await self._ledger.can_perform_activity(user_id)
        stats = await self._ledger.get_user_stats(user_id, "week")
        profile = await self._progression.get_profile(user_id)
        recent = await self._progression.get_recent_achievements(user_id)
        unlocked = await self._progression.get_unlocked_count(user_id)

        return {
            "subscription": subscription.to_dict(),
            "plan": self._ledger.get_plan_limits(subscription.tier).to_dict(),
            "today": usage.to_dict(),
            "permission": {
                "can_perform": permission.can_perform,
                "reason": permission.reason,
                "remaining_activities": permission.remaining_activities,
            },
            "profile": {
                "level": profile.level,
                "level_title": self._progression.get_level_title(profile.level),
                "experience": profile.experience,
                "experience_to_next_level": profile.experience_to_next_level,
                "total_points": profile.total_points,
                "unlocked_achievements": unlocked,
                "total_achievements": self._progression.get_total_achievements_count(),
                "recent_achievements": [view.to_dict() for view in recent],
            },
            "week": stats.to_dict(),
        }

    async def get_recommended_activities(
        self, user_id: str, limit: int = 3
    ) -> List[LearningActivity]:
        """Uncompleted activities the user can open, least-practised subjects first."""
        user_id = InputValidator.validate_user_id(user_id)
        subscription = await self._ledger.get_subscription(user_id)
        history = await self._ledger.get_activity_history(
            user_id, int(self.get_config("freemium.history.stats_scan_limit", 1000))
        )
        return self._catalog.get_recommended(
            [completion.activity_id for completion in history],
            include_premium=subscription.has_premium_access(self.now()),
            limit=limit,
        )

    def get_daily_challenge(self) -> List[LearningActivity]:
        return self._catalog.get_daily_challenge(self.now().date())

    # ========================================================================
    # INTERNAL
    # ========================================================================

    async def _apply_progression(
        self, user_id: str, events: List[ProgressEvent]
    ) -> ProgressionSummary:
        """
        Feed events to the engine and publish what unlocked.

        Storage failures are logged and yield a summary without a profile;
        whatever unlocked before the failure is still published.
        """
        newly_unlocked: List[AchievementDefinition] = []
        experience_gained = 0
        levels_gained = 0
        profile: Optional[ProgressionProfile] = None
        failed = False

        try:
            for event in events:
                result = await self._progression.process_event(user_id, event)
                newly_unlocked.extend(result.newly_unlocked)
                experience_gained += result.experience_gained
                levels_gained += result.levels_gained
                profile = result.profile
        except StorageError as exc:
            failed = True
            self.log_error("apply_progression", exc, user_id=user_id)

        summary = ProgressionSummary(
            profile=None if failed else profile,
            newly_unlocked=newly_unlocked,
            experience_gained=experience_gained,
            levels_gained=levels_gained,
        )

        if newly_unlocked and profile is not None:
            await self.emit_event(
                EVENT_ACHIEVEMENT_UNLOCKED,
                {
                    "user_id": user_id,
                    "achievements": [definition.to_dict() for definition in newly_unlocked],
                    "level": profile.level,
                    "level_title": profile.level_title,
                    "leveled_up": summary.leveled_up,
                    "experience": profile.experience,
                },
            )
        return summary
