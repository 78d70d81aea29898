"""
Notification Service
====================

Purpose
-------
Collects user-facing notifications (achievement unlocked, level up) so a
client can show them later, then clears them once acknowledged.

Architecture Notes
------------------
- Listens to ``achievement.unlocked`` at NORMAL priority; delivery timing is
  up to the client polling ``get_pending``.
- Pending notifications live in one list document per user, capped at
  ``notifications.max_pending`` (oldest dropped first).
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from brightbuddy.core.event.types import EventPayload, ListenerPriority
from brightbuddy.core.storage.base import KeyValueStore, StorageKeys
from brightbuddy.core.validation.input_validator import InputValidator
from brightbuddy.domain.models.base import datetime_to_json
from brightbuddy.modules.shared.base_service import BaseService, Clock
from brightbuddy.modules.shared.constants import EVENT_ACHIEVEMENT_UNLOCKED

if TYPE_CHECKING:
    from logging import Logger

    from brightbuddy.core.config.manager import ConfigManager
    from brightbuddy.core.event.bus import EventBus


KIND_ACHIEVEMENT = "achievement"
KIND_LEVEL_UP = "level_up"


class NotificationService(BaseService):
    """Pending notification inbox per user."""

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
            EVENT_ACHIEVEMENT_UNLOCKED,
            self.on_achievement_unlocked,
            priority=ListenerPriority.NORMAL,
            identifier="notifications.achievement_unlocked",
        )

    async def on_achievement_unlocked(self, payload: EventPayload) -> None:
        created_at = datetime_to_json(self.now())
        items: List[Dict[str, Any]] = [
            {
                "id": uuid.uuid4().hex,
                "kind": KIND_ACHIEVEMENT,
                "achievement": achievement,
                "created_at": created_at,
            }
            for achievement in payload.get("achievements", [])
        ]
        if payload.get("leveled_up"):
            items.append(
                {
                    "id": uuid.uuid4().hex,
                    "kind": KIND_LEVEL_UP,
                    "level": payload.get("level"),
                    "level_title": payload.get("level_title"),
                    "created_at": created_at,
                }
            )
        await self.push(payload["user_id"], items)

    async def push(self, user_id: str, items: List[Dict[str, Any]]) -> int:
        """Append notifications; returns how many are now pending."""
        user_id = InputValidator.validate_user_id(user_id)
        if not items:
            return len(await self.get_pending(user_id))

        max_pending = int(self.get_config("notifications.max_pending", 50))
        async with self._store.lock(StorageKeys.notifications_lock(user_id)):
            pending = await self._store.get(StorageKeys.notifications(user_id)) or []
            pending.extend(items)
            pending = pending[-max_pending:]
            await self._store.set(StorageKeys.notifications(user_id), pending)

        self.log_operation(
            "notifications_queued",
            user_id=user_id,
            kinds=[item["kind"] for item in items],
            pending=len(pending),
        )
        return len(pending)

    async def get_pending(self, user_id: str) -> List[Dict[str, Any]]:
        """Pending notifications, oldest first."""
        user_id = InputValidator.validate_user_id(user_id)
        return await self._store.get(StorageKeys.notifications(user_id)) or []

    async def acknowledge(self, user_id: str) -> int:
        """Clear the inbox; returns the number of notifications removed."""
        user_id = InputValidator.validate_user_id(user_id)
        async with self._store.lock(StorageKeys.notifications_lock(user_id)):
            pending = await self._store.get(StorageKeys.notifications(user_id)) or []
            if pending:
                await self._store.delete(StorageKeys.notifications(user_id))
        return len(pending)
