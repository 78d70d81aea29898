"""
Usage Ledger Service
====================

Purpose
-------
Gates and records per-day activity consumption against a user's
subscription entitlement, and owns the subscription lifecycle.

Domain
------
- Lazily create the ``free/active`` subscription and today's usage record
- Decide whether a user may start another activity (read-only)
- Record completions: audit record, daily counter, streak
- Subscription transitions: upgrade, downgrade, cancel, trial
- History and period statistics over recorded completions

Architecture Notes
------------------
- Every read-modify-write for a user runs inside
  ``store.lock(StorageKeys.user_lock(user_id))``; the lock is not
  re-entrant, so code inside it only calls the ``_unlocked`` helpers.
- The quota check and every write of a completion happen under the same
  lock, so two concurrent completions can never both take the last slot.
- Days are UTC calendar days taken from the injected clock.
- Events are published after the lock is released.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime, timedelta
from typing import TYPE_CHECKING, Any, Callable, List, Optional

from brightbuddy.core.storage.base import KeyValueStore, StorageKeys
from brightbuddy.core.validation.input_validator import InputValidator
from brightbuddy.domain.models.subscription import Subscription, SubscriptionTier
from brightbuddy.domain.models.usage import ActivityCompletion, DailyUsage, StreakRecord
from brightbuddy.modules.freemium.models import (
    ActivityPermission,
    CompletionReceipt,
    PlanLimits,
    SubscriptionChange,
    UserStats,
)
from brightbuddy.modules.shared.base_service import BaseService, Clock
from brightbuddy.modules.shared.constants import (
    EVENT_ACTIVITY_COMPLETED,
    EVENT_SUBSCRIPTION_CANCELLED,
    EVENT_SUBSCRIPTION_DOWNGRADED,
    EVENT_SUBSCRIPTION_TRIAL_STARTED,
    EVENT_SUBSCRIPTION_UPGRADED,
    REASON_DAILY_LIMIT_REACHED,
    REASON_SUBSCRIPTION_INACTIVE,
    UNLIMITED,
)
from brightbuddy.modules.shared.exceptions import ValidationError

if TYPE_CHECKING:
    from logging import Logger

    from brightbuddy.core.config.manager import ConfigManager
    from brightbuddy.core.event.bus import EventBus


STATS_PERIOD_DAYS = {"week": 7, "month": 30}


class UsageLedgerService(BaseService):
    """
    Freemium usage ledger.

    Public Methods
    --------------
    - get_subscription() -> Read-or-create the user's subscription
    - get_today_usage() -> Read-or-create today's usage record
    - can_perform_activity() -> Quota decision, never raises for a refusal
    - record_activity_completion() -> Append completion, bump counters
    - upgrade_to_premium() / downgrade_to_free() / cancel_subscription()
    - start_trial() -> One-time premium trial
    - get_activity_history() / get_user_stats() / get_streak()
    - get_plan_limits() -> Configured entitlement of a tier
    """

    def __init__(
        self,
        store: KeyValueStore,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
        clock: Optional[Clock] = None,
    ) -> None:
        super().__init__(config_manager, event_bus, logger, clock)
        self._store = store

    def today(self) -> date:
        return self.now().date()

    # ========================================================================
    # PLAN LIMITS
    # ========================================================================

    def get_plan_limits(self, tier: SubscriptionTier) -> PlanLimits:
        """Entitlements for ``tier`` as configured under ``freemium.*``."""
        if tier == SubscriptionTier.PREMIUM:
            return PlanLimits(
                tier=tier,
                daily_activity_limit=int(
                    self.get_config("freemium.premium_tier.daily_activity_limit", UNLIMITED)
                ),
                max_subjects=int(self.get_config("freemium.premium_tier.max_subjects", UNLIMITED)),
                analytics_level=self.get_config(
                    "freemium.premium_tier.analytics_level", "advanced"
                ),
                support_level=self.get_config("freemium.premium_tier.support_level", "priority"),
                price=float(self.get_config("freemium.premium_tier.price", 9.99)),
                currency=self.get_config("freemium.premium_tier.currency", "USD"),
            )

        return PlanLimits(
            tier=tier,
            daily_activity_limit=int(
                self.get_config("freemium.free_tier.daily_activity_limit", 3)
            ),
            max_subjects=int(self.get_config("freemium.free_tier.max_subjects", 8)),
            analytics_level=self.get_config("freemium.free_tier.analytics_level", "basic"),
            support_level=self.get_config("freemium.free_tier.support_level", "community"),
        )

    def _trial_daily_limit(self) -> int:
        return int(self.get_config("freemium.trial.activities_per_day", 5))

    def _trial_duration_days(self) -> int:
        return int(self.get_config("freemium.trial.duration_days", 7))

    # ========================================================================
    # PUBLIC API - Read-or-initialize
    # ========================================================================

    async def get_subscription(self, user_id: str) -> Subscription:
        """
        Return the user's subscription, creating ``free/active`` on first access.

        Raises:
            StorageError: If the store fails
        """
        user_id = InputValidator.validate_user_id(user_id)

        stored = await self._store.get(StorageKeys.subscription(user_id))
        if stored is not None:
            return Subscription.from_dict(stored)

        async with self._store.lock(StorageKeys.user_lock(user_id)):
            return await self._get_or_create_subscription_unlocked(user_id)

    async def get_today_usage(self, user_id: str) -> DailyUsage:
        """Return today's usage record, creating an empty one on first access."""
        user_id = InputValidator.validate_user_id(user_id)
        today = self.today()

        stored = await self._store.get(StorageKeys.daily_usage(user_id, today))
        if stored is not None:
            return DailyUsage.from_dict(stored)

        async with self._store.lock(StorageKeys.user_lock(user_id)):
            usage = await self._read_usage_unlocked(user_id, today)
            if usage is None:
                usage = DailyUsage(user_id=user_id, date=today)
                await self._store.set(StorageKeys.daily_usage(user_id, today), usage.to_dict())
            return usage

    async def get_streak(self, user_id: str) -> StreakRecord:
        """Stored streak; an empty record when the user never completed anything."""
        user_id = InputValidator.validate_user_id(user_id)
        stored = await self._store.get(StorageKeys.streak(user_id))
        if stored is None:
            return StreakRecord(user_id=user_id)
        return StreakRecord.from_dict(stored)

    # ========================================================================
    # PUBLIC API - Quota decision
    # ========================================================================

    async def can_perform_activity(self, user_id: str) -> ActivityPermission:
        """
        Decide whether the user may start another activity right now.

        Read-only: missing records are evaluated as their defaults and
        nothing is written.
        """
        user_id = InputValidator.validate_user_id(user_id)
        now = self.now()

        stored_sub = await self._store.get(StorageKeys.subscription(user_id))
        subscription = (
            Subscription.from_dict(stored_sub)
            if stored_sub is not None
            else Subscription.default(user_id, now)
        )
        usage = await self._read_usage_unlocked(user_id, now.date())
        used = usage.activities_completed if usage is not None else 0

        return self._decide(subscription, used, now)

    def _decide(self, subscription: Subscription, used: int, now: datetime) -> ActivityPermission:
        if subscription.is_premium_active:
            limit = self.get_plan_limits(SubscriptionTier.PREMIUM).daily_activity_limit
        elif subscription.is_trial_active(now):
            limit = self._trial_daily_limit()
        elif subscription.is_free:
            limit = self.get_plan_limits(SubscriptionTier.FREE).daily_activity_limit
        else:
            return ActivityPermission(
                can_perform=False,
                subscription=subscription,
                reason=REASON_SUBSCRIPTION_INACTIVE,
                used=used,
            )

        if limit == UNLIMITED:
            return ActivityPermission(can_perform=True, subscription=subscription, used=used)

        remaining = max(0, limit - used)
        if remaining > 0:
            return ActivityPermission(
                can_perform=True,
                subscription=subscription,
                remaining_activities=remaining,
                daily_limit=limit,
                used=used,
            )
        return ActivityPermission(
            can_perform=False,
            subscription=subscription,
            reason=REASON_DAILY_LIMIT_REACHED,
            remaining_activities=0,
            daily_limit=limit,
            used=used,
        )

    # ========================================================================
    # PUBLIC API - Record completion
    # ========================================================================

    async def record_activity_completion(
        self,
        user_id: str,
        activity_id: str,
        score: Optional[int] = None,
        time_spent: Optional[int] = None,
        answers: Optional[Any] = None,
        *,
        subject: Optional[str] = None,
        activity_type: Optional[str] = None,
        content_type: Optional[str] = None,
        difficulty: Optional[str] = None,
    ) -> CompletionReceipt:
        """
        Record one completed activity.

        The quota is re-checked under the user's lock; on refusal nothing is
        written. On success the completion record, today's usage and the
        streak are stored, then ``activity.completed`` is published.

        Args:
            user_id: Owner of the completion
            activity_id: Catalog activity id
            score: Optional score, 0 to 100
            time_spent: Minutes, defaults to 0
            answers: Opaque answer payload kept on the record
            subject, activity_type, content_type, difficulty: Resolved from the
                catalog by the caller; carried on the event (subject also on
                the record)

        Returns:
            CompletionReceipt with the stored records and remaining quota

        Raises:
            QuotaExceededError: Daily limit already reached
            SubscriptionInactiveError: Subscription does not allow activities
            ValidationError: Bad input
            StorageError: If the store fails
        """
        user_id = InputValidator.validate_user_id(user_id)
        activity_id = InputValidator.validate_activity_id(activity_id)
        score = InputValidator.validate_score(score)
        minutes = InputValidator.validate_time_spent(time_spent)

        async with self._store.lock(StorageKeys.user_lock(user_id)):
            now = self.now()
            today = now.date()

            subscription = await self._get_or_create_subscription_unlocked(user_id)
            usage = await self._read_usage_unlocked(user_id, today)
            if usage is None:
                usage = DailyUsage(user_id=user_id, date=today)

            permission = self._decide(subscription, usage.activities_completed, now)
            if not permission.can_perform:
                self.log.info(
                    "Activity completion refused",
                    extra={
                        "user_id": user_id,
                        "activity_id": activity_id,
                        "reason": permission.reason,
                        "used": usage.activities_completed,
                    },
                )
                permission.raise_if_denied()

            completion = ActivityCompletion(
                completion_id=uuid.uuid4().hex,
                user_id=user_id,
                activity_id=activity_id,
                completed_at=now,
                time_spent=minutes,
                score=score,
                subject=subject,
                answers=answers,
            )
            updated_usage = usage.record_completion(subject, minutes, now)
            streak = (await self._read_streak_unlocked(user_id)).advance(today)

            await self._store.set(
                StorageKeys.progress(user_id, activity_id, completion.completion_id),
                completion.to_dict(),
            )
            await self._store.set(
                StorageKeys.daily_usage(user_id, today), updated_usage.to_dict()
            )
            await self._store.set(StorageKeys.streak(user_id), streak.to_dict())

        remaining = (
            permission.remaining_activities - 1
            if permission.remaining_activities is not None
            else None
        )

        self.log_operation(
            "record_activity_completion",
            user_id=user_id,
            activity_id=activity_id,
            activities_completed=updated_usage.activities_completed,
            remaining_activities=remaining,
        )

        await self.emit_event(
            EVENT_ACTIVITY_COMPLETED,
            {
                "user_id": user_id,
                "activity_id": activity_id,
                "subject": subject,
                "score": score,
                "time_spent": minutes,
                "activity_type": activity_type,
                "content_type": content_type,
                "difficulty": difficulty,
                "streak": streak.current,
                "completed_at": completion.to_dict()["completed_at"],
            },
        )

        return CompletionReceipt(
            completion=completion,
            usage=updated_usage,
            streak=streak,
            remaining_activities=remaining,
        )

    # ========================================================================
    # PUBLIC API - Subscription transitions
    # ========================================================================

    async def upgrade_to_premium(
        self,
        user_id: str,
        billing_customer_id: Optional[str] = None,
        billing_subscription_id: Optional[str] = None,
    ) -> SubscriptionChange:
        """
        Switch the user to premium/active. Re-applying is a no-op success.

        Today's recorded usage is left untouched.
        """
        user_id = InputValidator.validate_user_id(user_id)
        change = await self._transition(
            user_id,
            lambda sub, now: sub.upgraded(now, billing_customer_id, billing_subscription_id),
        )
        if change.changed:
            await self.emit_event(
                EVENT_SUBSCRIPTION_UPGRADED,
                {
                    "user_id": user_id,
                    "tier": change.subscription.tier.value,
                    "previous_tier": change.previous.tier.value,
                    "previous_status": change.previous.status.value,
                },
            )
        return change

    async def downgrade_to_free(self, user_id: str) -> SubscriptionChange:
        user_id = InputValidator.validate_user_id(user_id)
        change = await self._transition(user_id, lambda sub, now: sub.downgraded(now))
        if change.changed:
            await self.emit_event(
                EVENT_SUBSCRIPTION_DOWNGRADED,
                {
                    "user_id": user_id,
                    "previous_tier": change.previous.tier.value,
                    "previous_status": change.previous.status.value,
                },
            )
        return change

    async def cancel_subscription(self, user_id: str) -> SubscriptionChange:
        """Mark the subscription cancelled; repeats are no-ops."""
        user_id = InputValidator.validate_user_id(user_id)
        change = await self._transition(user_id, lambda sub, now: sub.cancelled(now))
        if change.changed:
            await self.emit_event(
                EVENT_SUBSCRIPTION_CANCELLED,
                {"user_id": user_id, "tier": change.subscription.tier.value},
            )
        return change

    async def start_trial(self, user_id: str) -> SubscriptionChange:
        """
        Start the one-time premium trial.

        Raises:
            ValidationError: User is already premium or has had a trial
        """
        user_id = InputValidator.validate_user_id(user_id)
        duration = self._trial_duration_days()

        def _start(sub: Subscription, now: datetime) -> Subscription:
            if sub.is_premium_active:
                raise ValidationError("subscription", "User already has an active premium plan")
            if sub.has_used_trial:
                raise ValidationError("subscription", "Trial has already been used")
            return sub.trial_started(now, duration)

        change = await self._transition(user_id, _start)
        await self.emit_event(
            EVENT_SUBSCRIPTION_TRIAL_STARTED,
            {
                "user_id": user_id,
                "trial_end_date": change.subscription.to_dict()["trial_end_date"],
                "duration_days": duration,
            },
        )
        return change

    async def _transition(
        self, user_id: str, apply: Callable[[Subscription, datetime], Subscription]
    ) -> SubscriptionChange:
        async with self._store.lock(StorageKeys.user_lock(user_id)):
            now = self.now()
            previous = await self._get_or_create_subscription_unlocked(user_id)
            updated = apply(previous, now)
            changed = updated != previous
            if changed:
                await self._store.set(StorageKeys.subscription(user_id), updated.to_dict())

        self.log_operation(
            "subscription_transition",
            user_id=user_id,
            tier=updated.tier.value,
            status=updated.status.value,
            changed=changed,
        )
        return SubscriptionChange(subscription=updated, previous=previous, changed=changed)

    # ========================================================================
    # PUBLIC API - History and statistics
    # ========================================================================

    async def get_activity_history(
        self, user_id: str, limit: Optional[int] = None
    ) -> List[ActivityCompletion]:
        """Completions, newest first."""
        user_id = InputValidator.validate_user_id(user_id)
        limit = InputValidator.validate_limit(
            limit, int(self.get_config("freemium.history.default_limit", 50))
        )
        completions = await self._load_completions(user_id)
        return completions[:limit]

    async def get_user_stats(self, user_id: str, period: str = "week") -> UserStats:
        """
        Aggregate completions over the last week (7 days) or month (30 days).

        Missing scores count as 0 in the average.
        """
        user_id = InputValidator.validate_user_id(user_id)
        period = InputValidator.validate_period(period)

        now = self.now()
        since = now - timedelta(days=STATS_PERIOD_DAYS[period])

        completions = [c for c in await self._load_completions(user_id) if c.completed_at >= since]
        streak = await self.get_streak(user_id)

        subjects: List[str] = []
        for completion in completions:
            if completion.subject and completion.subject not in subjects:
                subjects.append(completion.subject)

        total = len(completions)
        average = round(sum(c.score or 0 for c in completions) / total) if total else 0

        return UserStats(
            period=period,
            total_activities=total,
            total_time_spent=sum(c.time_spent for c in completions),
            average_score=average,
            current_streak=streak.current_as_of(now.date()),
            longest_streak=streak.longest,
            subjects_covered=subjects,
        )

    async def _load_completions(self, user_id: str) -> List[ActivityCompletion]:
        """Newest first, cut to ``freemium.history.stats_scan_limit`` after sorting."""
        keys = await self._store.scan_prefix(StorageKeys.progress_prefix(user_id))
        documents = await self._store.get_many(keys)
        completions = [ActivityCompletion.from_dict(doc) for doc in documents if doc is not None]
        completions.sort(key=lambda c: c.completed_at, reverse=True)

        scan_limit = int(self.get_config("freemium.history.stats_scan_limit", 1000))
        if len(completions) > scan_limit:
            self.log.warning(
                "Completion history truncated",
                extra={"user_id": user_id, "completions": len(completions), "scan_limit": scan_limit},
            )
            completions = completions[:scan_limit]
        return completions

    # ========================================================================
    # INTERNAL - callers must hold the user lock
    # ========================================================================

    async def _get_or_create_subscription_unlocked(self, user_id: str) -> Subscription:
        stored = await self._store.get(StorageKeys.subscription(user_id))
        if stored is not None:
            return Subscription.from_dict(stored)

        subscription = Subscription.default(user_id, self.now())
        await self._store.set(StorageKeys.subscription(user_id), subscription.to_dict())
        self.log_operation("subscription_created", user_id=user_id)
        return subscription

    async def _read_usage_unlocked(self, user_id: str, day: date) -> Optional[DailyUsage]:
        stored = await self._store.get(StorageKeys.daily_usage(user_id, day))
        return DailyUsage.from_dict(stored) if stored is not None else None

    async def _read_streak_unlocked(self, user_id: str) -> StreakRecord:
        stored = await self._store.get(StorageKeys.streak(user_id))
        if stored is None:
            return StreakRecord(user_id=user_id)
        return StreakRecord.from_dict(stored)
