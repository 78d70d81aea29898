"""
Service Container
=================

Purpose
-------
Dependency injection container for the BrightBuddy domain services.
Builds each service once with explicit dependencies and hands out the
cached instance.

Responsibilities
----------------
- Construct services with store, config manager, event bus, clock, catalogs
- Subscribe the collaborator services (analytics, notifications) to the bus
- Drain background listeners on shutdown

Non-Responsibilities
--------------------
- Backend selection and store lifecycle (ApplicationContext)
- Business logic

Architecture Notes
------------------
- Instantiated by ApplicationContext, or directly by tests with an
  in-memory store.
- Domain services share the constructor shape
  ``(store, ..., config_manager, event_bus, logger, clock)``.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any, Dict, Optional

from brightbuddy.core.logging.logger import get_logger
from brightbuddy.modules.achievements import AchievementCatalog, ProgressionEngine
from brightbuddy.modules.activities import ActivityCatalog
from brightbuddy.modules.analytics import AnalyticsService
from brightbuddy.modules.freemium import UsageLedgerService
from brightbuddy.modules.learning import LearningService
from brightbuddy.modules.notifications import NotificationService

if TYPE_CHECKING:
    from logging import Logger

    from brightbuddy.core.config.manager import ConfigManager
    from brightbuddy.core.event.bus import EventBus
    from brightbuddy.core.storage.base import KeyValueStore
    from brightbuddy.modules.shared.base_service import Clock

logger = get_logger(__name__)


class ServiceContainer:
    """
    Cached construction of every domain service.

    Usage:
        container = ServiceContainer(store, config_manager, event_bus, logger)
        container.initialize()
        outcome = await container.learning.complete_activity("u1", "math_001", score=90)
    """

    def __init__(
        self,
        store: KeyValueStore,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
        *,
        clock: Optional[Clock] = None,
        achievement_catalog: Optional[AchievementCatalog] = None,
        activity_catalog: Optional[ActivityCatalog] = None,
    ) -> None:
        self._store = store
        self._config_manager = config_manager
        self._event_bus = event_bus
        self._logger = logger
        self._clock = clock

        self._achievement_catalog = achievement_catalog or AchievementCatalog()
        self._activity_catalog = activity_catalog or ActivityCatalog()

        self._ledger: Optional[UsageLedgerService] = None
        self._progression: Optional[ProgressionEngine] = None
        self._analytics: Optional[AnalyticsService] = None
        self._notifications: Optional[NotificationService] = None
        self._learning: Optional[LearningService] = None

        self._initialized = False

    # ========================================================================
    # LIFECYCLE
    # ========================================================================

    def initialize(self) -> None:
        """Build all services and subscribe collaborators. Safe to call once."""
        if self._initialized:
            return

        start = time.perf_counter()

        # Touch every property so construction errors surface here
        _ = self.ledger, self.progression, self.learning
        self.analytics.register_listeners()
        self.notifications.register_listeners()

        self._initialized = True
        logger.info(
            "ServiceContainer initialized",
            extra={
                "services": sorted(self.get_service_status().keys()),
                "elapsed_ms": round((time.perf_counter() - start) * 1000, 2),
            },
        )

    async def shutdown(self) -> None:
        """Wait for background listeners (analytics) to finish."""
        await self._event_bus.drain()
        self._initialized = False
        logger.info("ServiceContainer shut down")

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    # ========================================================================
    # SERVICES
    # ========================================================================

    def _service_logger(self, name: str) -> Logger:
        return get_logger(f"brightbuddy.modules.{name}")

    @property
    def ledger(self) -> UsageLedgerService:
        if self._ledger is None:
            self._ledger = UsageLedgerService(
                store=self._store,
                config_manager=self._config_manager,
                event_bus=self._event_bus,
                logger=self._service_logger("freemium"),
                clock=self._clock,
            )
        return self._ledger

    @property
    def progression(self) -> ProgressionEngine:
        if self._progression is None:
            self._progression = ProgressionEngine(
                store=self._store,
                catalog=self._achievement_catalog,
                config_manager=self._config_manager,
                event_bus=self._event_bus,
                logger=self._service_logger("achievements"),
                clock=self._clock,
            )
        return self._progression

    @property
    def analytics(self) -> AnalyticsService:
        if self._analytics is None:
            self._analytics = AnalyticsService(
                store=self._store,
                config_manager=self._config_manager,
                event_bus=self._event_bus,
                logger=self._service_logger("analytics"),
                clock=self._clock,
            )
        return self._analytics

    @property
    def notifications(self) -> NotificationService:
        if self._notifications is None:
            self._notifications = NotificationService(
                store=self._store,
                config_manager=self._config_manager,
                event_bus=self._event_bus,
                logger=self._service_logger("notifications"),
                clock=self._clock,
            )
        return self._notifications

    @property
    def learning(self) -> LearningService:
        if self._learning is None:
            self._learning = LearningService(
                ledger=self.ledger,
                progression=self.progression,
                catalog=self._activity_catalog,
                config_manager=self._config_manager,
                event_bus=self._event_bus,
                logger=self._service_logger("learning"),
                clock=self._clock,
            )
        return self._learning

    @property
    def activity_catalog(self) -> ActivityCatalog:
        return self._activity_catalog

    @property
    def achievement_catalog(self) -> AchievementCatalog:
        return self._achievement_catalog

    def get_service_status(self) -> Dict[str, Any]:
        """Which services have been constructed so far."""
        return {
            "ledger": self._ledger is not None,
            "progression": self._progression is not None,
            "analytics": self._analytics is not None,
            "notifications": self._notifications is not None,
            "learning": self._learning is not None,
        }
