"""
Analytics Service
=================

Purpose
-------
Best-effort reporting sink. Records raw events per user and keeps running
user and per-subject aggregates used for insights and exports.

Responsibilities
----------------
- ``track_event``: append to a capped per-user event log and fold the event
  into the aggregates
- Listen to ``activity.completed`` at LOW priority (fire-and-forget)
- Derive learning insights and export documents

Non-Responsibilities
--------------------
- Quota or progression decisions; nothing here feeds back into them
- Retrying failed writes; a lost analytics event is acceptable

Architecture Notes
------------------
- Aggregate updates run under ``lock:analytics:{user_id}``, separate from the
  ledger's user lock, so a slow sink never delays completions.
- Listener failures are isolated by the event bus scheduler.
"""

from __future__ import annotations

import re
import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from brightbuddy.core.event.types import EventPayload, ListenerPriority
from brightbuddy.core.storage.base import KeyValueStore, StorageKeys
from brightbuddy.core.validation.input_validator import InputValidator
from brightbuddy.domain.models.base import datetime_to_json
from brightbuddy.modules.analytics.models import (
    TIME_OF_DAY_SLOTS,
    LearningInsights,
    SubjectAnalytics,
    UserAnalytics,
)
from brightbuddy.modules.shared.base_service import BaseService, Clock
from brightbuddy.modules.shared.constants import EVENT_ACTIVITY_COMPLETED

if TYPE_CHECKING:
    from logging import Logger

    from brightbuddy.core.config.manager import ConfigManager
    from brightbuddy.core.event.bus import EventBus


# Event types understood by the aggregates
EVENT_TYPE_ACTIVITY_COMPLETED = "activity_completed"
EVENT_TYPE_SESSION_START = "session_start"
EVENT_TYPE_SESSION_END = "session_end"
EVENT_TYPE_PAGE_VIEW = "page_view"

DEFAULT_RECOMMENDED_SUBJECT = "Math"
EXPORT_RECENT_EVENTS = 100

_MOBILE_AGENT = re.compile(r"Mobile|Android|iPhone|iPad")
_TABLET_AGENT = re.compile(r"iPad|Tablet")


def time_of_day(hour: int) -> str:
    """Bucket an hour (0-23): morning 6-12, afternoon 12-17, evening 17-22."""
    if 6 <= hour < 12:
        return "morning"
    if 12 <= hour < 17:
        return "afternoon"
    if 17 <= hour < 22:
        return "evening"
    return "night"


def session_bucket(duration_minutes: float) -> str:
    if duration_minutes < 5:
        return "short"
    if duration_minutes < 15:
        return "medium"
    return "long"


def device_type(event_data: Dict[str, Any]) -> str:
    """Explicit ``device`` wins; otherwise classify ``user_agent``."""
    device = event_data.get("device")
    if device in ("desktop", "mobile", "tablet"):
        return device

    user_agent = str(event_data.get("user_agent") or "")
    if _TABLET_AGENT.search(user_agent):
        return "tablet"
    if _MOBILE_AGENT.search(user_agent):
        return "mobile"
    return "desktop"


class AnalyticsService(BaseService):
    """
    Per-user analytics aggregates.

    Public Methods
    --------------
    - register_listeners() -> Subscribe to domain events
    - track_event() -> Record one analytics event
    - get_user_analytics() / get_subject_analytics()
    - get_learning_insights() -> Best time, recommended subject, badges
    - export_analytics() -> Everything for one user
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

    def register_listeners(self) -> None:
        self._events.subscribe(
            EVENT_ACTIVITY_COMPLETED,
            self.on_activity_completed,
            priority=ListenerPriority.LOW,
            identifier="analytics.activity_completed",
        )

    async def on_activity_completed(self, payload: EventPayload) -> None:
        await self.track_event(
            payload["user_id"],
            EVENT_TYPE_ACTIVITY_COMPLETED,
            {
                "activity_id": payload.get("activity_id"),
                "subject": payload.get("subject"),
                "score": payload.get("score"),
                "time_spent": payload.get("time_spent"),
                "activity_type": payload.get("activity_type"),
                "difficulty": payload.get("difficulty"),
                "streak": payload.get("streak"),
            },
        )

    # ========================================================================
    # PUBLIC API - Recording
    # ========================================================================

    async def track_event(
        self,
        user_id: str,
        event_type: str,
        event_data: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Append an event to the user's log and update the aggregates.

        Returns:
            The stored event document

        Raises:
            StorageError: If the store fails
        """
        user_id = InputValidator.validate_user_id(user_id)
        event_data = dict(event_data or {})
        now = self.now()

        event = {
            "id": uuid.uuid4().hex,
            "user_id": user_id,
            "event_type": event_type,
            "event_data": event_data,
            "timestamp": datetime_to_json(now),
        }
        max_events = int(self.get_config("analytics.max_events_per_user", 1000))

        async with self._store.lock(StorageKeys.analytics_lock(user_id)):
            events = await self._store.get(StorageKeys.analytics_events(user_id)) or []
            events.append(event)
            await self._store.set(StorageKeys.analytics_events(user_id), events[-max_events:])

            analytics = await self._read_user_analytics(user_id)
            subjects = await self._read_subject_analytics(user_id)

            self._apply(analytics, subjects, event_type, event_data, now)
            analytics.favorite_subject = self._favorite_subject(subjects, analytics.favorite_subject)

            await self._store.set(StorageKeys.user_analytics(user_id), analytics.to_dict())
            await self._store.set(
                StorageKeys.subject_analytics(user_id),
                [subject.to_dict() for subject in subjects.values()],
            )

        self.log.debug(
            "Analytics event tracked",
            extra={"user_id": user_id, "event_type": event_type},
        )
        return event

    def _apply(
        self,
        analytics: UserAnalytics,
        subjects: Dict[str, SubjectAnalytics],
        event_type: str,
        event_data: Dict[str, Any],
        now: datetime,
    ) -> None:
        analytics.last_active = now

        if event_type == EVENT_TYPE_SESSION_START:
            analytics.total_sessions += 1

        elif event_type == EVENT_TYPE_SESSION_END:
            bucket = session_bucket(float(event_data.get("duration") or 0))
            analytics.session_duration[bucket] += 1

        elif event_type == EVENT_TYPE_PAGE_VIEW:
            analytics.learning_pattern[time_of_day(now.hour)] += 1
            analytics.device_usage[device_type(event_data)] += 1

        elif event_type == EVENT_TYPE_ACTIVITY_COMPLETED:
            subject = event_data.get("subject")
            score = event_data.get("score")
            minutes = int(event_data.get("time_spent") or 0)

            analytics.activities_completed += 1
            analytics.total_time_spent += minutes
            analytics.learning_pattern[time_of_day(now.hour)] += 1
            if subject and subject not in analytics.subjects_covered:
                analytics.subjects_covered.append(subject)
            if score is not None:
                analytics.record_score(int(score))
            if event_data.get("streak") is not None:
                analytics.streak_days = int(event_data["streak"])

            if subject:
                entry = subjects.setdefault(subject, SubjectAnalytics(subject=subject))
                entry.record(
                    now,
                    int(score) if score is not None else None,
                    minutes,
                    event_data.get("difficulty"),
                )

    @staticmethod
    def _favorite_subject(subjects: Dict[str, SubjectAnalytics], current: str) -> str:
        if not subjects:
            return current
        return max(subjects.values(), key=lambda s: s.activities_completed).subject

    # ========================================================================
    # PUBLIC API - Queries
    # ========================================================================

    async def get_user_analytics(self, user_id: str) -> UserAnalytics:
        """Stored aggregates, or empty ones for a user with no events."""
        user_id = InputValidator.validate_user_id(user_id)
        return await self._read_user_analytics(user_id)

    async def get_subject_analytics(self, user_id: str) -> List[SubjectAnalytics]:
        user_id = InputValidator.validate_user_id(user_id)
        return list((await self._read_subject_analytics(user_id)).values())

    async def get_learning_insights(self, user_id: str) -> LearningInsights:
        """
        Derived advice for a user.

        - best time: the busiest time-of-day slot (first slot on ties)
        - recommended subject: the least practised one, Math when none
        - improvement areas: average under 70, under 30 minutes in total,
          fewer than 3 subjects
        - badges: 10+ activities, 7+ day streak, average of 90+
        """
        analytics = await self.get_user_analytics(user_id)
        subjects = await self.get_subject_analytics(user_id)

        pattern = analytics.learning_pattern
        best_time = max(TIME_OF_DAY_SLOTS, key=lambda slot: pattern.get(slot, 0))

        recommended = (
            min(subjects, key=lambda s: s.activities_completed).subject
            if subjects
            else DEFAULT_RECOMMENDED_SUBJECT
        )

        improvement_areas: List[str] = []
        if analytics.average_score < 70:
            improvement_areas.append("Focus on accuracy and understanding")
        if analytics.total_time_spent < 30:
            improvement_areas.append("Spend more time on activities")
        if len(analytics.subjects_covered) < 3:
            improvement_areas.append("Explore more subjects")

        badges: List[str] = []
        if analytics.activities_completed >= 10:
            badges.append("Consistent Learner")
        if analytics.streak_days >= 7:
            badges.append("Week Warrior")
        if analytics.average_score >= 90:
            badges.append("High Performer")

        return LearningInsights(
            best_time_to_learn=best_time,
            recommended_subject=recommended,
            improvement_areas=improvement_areas,
            badges=badges,
        )

    async def export_analytics(self, user_id: str) -> Dict[str, Any]:
        user_id = InputValidator.validate_user_id(user_id)
        analytics = await self.get_user_analytics(user_id)
        subjects = await self.get_subject_analytics(user_id)
        insights = await self.get_learning_insights(user_id)
        events = await self._store.get(StorageKeys.analytics_events(user_id)) or []

        self.log_operation("export_analytics", user_id=user_id, events=len(events))
        return {
            "user_analytics": analytics.to_dict(),
            "subject_analytics": [subject.to_dict() for subject in subjects],
            "insights": insights.to_dict(),
            "recent_events": events[-EXPORT_RECENT_EVENTS:],
            "export_date": datetime_to_json(self.now()),
        }

    # ========================================================================
    # INTERNAL
    # ========================================================================

    async def _read_user_analytics(self, user_id: str) -> UserAnalytics:
        stored = await self._store.get(StorageKeys.user_analytics(user_id))
        if stored is None:
            return UserAnalytics(user_id=user_id)
        return UserAnalytics.from_dict(stored)

    async def _read_subject_analytics(self, user_id: str) -> Dict[str, SubjectAnalytics]:
        stored = await self._store.get(StorageKeys.subject_analytics(user_id)) or []
        entries = [SubjectAnalytics.from_dict(item) for item in stored]
        return {entry.subject: entry for entry in entries}
