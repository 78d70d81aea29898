"""
Application Context (Kernel) - BrightBuddy Infrastructure Orchestration
=======================================================================

Purpose
-------
Start the BrightBuddy runtime in dependency order, hand out the wired
ServiceContainer, and take everything down again in reverse.

Startup
-------
1. Logging (unless the caller manages it)
2. ConfigManager (built-in defaults, then YAML files)
3. KeyValueStore for the chosen backend; PostgreSQL creates its table here
4. EventBus
5. ServiceContainer, which subscribes analytics and notifications

Shutdown
--------
ServiceContainer (drains LOW listeners), then the store, then logging. A
failure in one step is logged and the remaining steps still run.

A failed startup closes whatever was already opened and raises
``RuntimeError`` chained to the original error.
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from dataclasses import asdict
from typing import Any, Awaitable, Callable, Dict, Iterator, Optional

from brightbuddy.core.config import Config, StorageBackend
from brightbuddy.core.config.manager import ConfigManager
from brightbuddy.core.event.bus import EventBus
from brightbuddy.core.logging.logger import (
    get_logger,
    get_logging_health,
    setup_logging,
    shutdown_logging,
)
from brightbuddy.core.services.container import ServiceContainer
from brightbuddy.core.storage import KeyValueStore, build_store

logger = get_logger(__name__)


@contextmanager
def _timed(step: str) -> Iterator[None]:
    started = time.perf_counter()
    yield
    logger.info(
        "Startup step ready: %s",
        step,
        extra={"step": step, "elapsed_ms": round((time.perf_counter() - started) * 1000, 2)},
    )


class ApplicationContext:
    """
    Owner of the process-wide infrastructure.

    >>> async with ApplicationContext(backend=StorageBackend.MEMORY) as context:
    ...     outcome = await context.services.learning.complete_activity("u1", "math_001")
    """

    def __init__(
        self,
        *,
        backend: Optional[StorageBackend] = None,
        config_manager: Optional[ConfigManager] = None,
        configure_logging: bool = True,
    ) -> None:
        """
        Args:
            backend: Storage backend; ``Config.STORAGE_BACKEND`` when omitted
            config_manager: Pre-built manager, e.g. one without YAML in tests
            configure_logging: Install and later remove the queue log handlers
        """
        self._backend = backend
        self._config_manager = config_manager
        self._configure_logging = configure_logging

        self._store: Optional[KeyValueStore] = None
        self._event_bus: Optional[EventBus] = None
        self._service_container: Optional[ServiceContainer] = None
        self._initialized = False

    async def __aenter__(self) -> "ApplicationContext":
        await self.initialize()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.shutdown()

    # ========================================================================
    # LIFECYCLE
    # ========================================================================

    async def initialize(self) -> None:
        """
        Raises:
            RuntimeError: Already initialized, or a startup step failed
        """
        if self._initialized:
            raise RuntimeError("ApplicationContext already initialized")

        if self._configure_logging:
            setup_logging()
        logger.info("Starting BrightBuddy", extra=Config.get_config_summary())
        started = time.perf_counter()

        try:
            with _timed("config"):
                if self._config_manager is None:
                    self._config_manager = ConfigManager()
                self._config_manager.initialize()

            self._backend = self._backend or Config.storage_backend()
            with _timed(f"store:{self._backend.value}"):
                self._store = build_store(self._backend, self._config_manager)
                await self._store.initialize()

            self._event_bus = EventBus(config_manager=self._config_manager)

            with _timed("services"):
                self._service_container = ServiceContainer(
                    store=self._store,
                    config_manager=self._config_manager,
                    event_bus=self._event_bus,
                    logger=get_logger("brightbuddy.core.services.container"),
                )
                self._service_container.initialize()
        except Exception as exc:
            logger.critical(
                "BrightBuddy startup failed",
                extra={"error": str(exc), "error_type": type(exc).__name__},
                exc_info=True,
            )
            await self._close_opened(quiet=True)
            raise RuntimeError("Failed to initialize application context") from exc

        self._initialized = True
        logger.info(
            "BrightBuddy started",
            extra={"elapsed_ms": round((time.perf_counter() - started) * 1000, 2)},
        )

    async def shutdown(self) -> None:
        """Tear down in reverse startup order; a no-op when not initialized."""
        if not self._initialized:
            logger.debug("ApplicationContext not initialized, nothing to shut down")
            return

        logger.info("Stopping BrightBuddy")
        await self._close_opened(quiet=False)
        self._initialized = False
        logger.info("BrightBuddy stopped")

        if self._configure_logging:
            shutdown_logging()

    async def _close_opened(self, *, quiet: bool) -> None:
        steps: list[tuple[str, Optional[Callable[[], Awaitable[None]]]]] = [
            ("services", self._service_container.shutdown if self._service_container else None),
            ("store", self._store.close if self._store else None),
        ]
        for name, close in steps:
            if close is None:
                continue
            try:
                await close()
            except Exception as exc:
                log = logger.debug if quiet else logger.error
                log(
                    "Error closing %s",
                    name,
                    extra={"step": name, "error": str(exc), "error_type": type(exc).__name__},
                    exc_info=not quiet,
                )

    # ========================================================================
    # ACCESSORS
    # ========================================================================

    def _require(self, component: Any, name: str) -> Any:
        if not self._initialized or component is None:
            raise RuntimeError(f"{name} not available: ApplicationContext not initialized")
        return component

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def config_manager(self) -> ConfigManager:
        return self._require(self._config_manager, "ConfigManager")

    @property
    def store(self) -> KeyValueStore:
        return self._require(self._store, "Store")

    @property
    def event_bus(self) -> EventBus:
        return self._require(self._event_bus, "EventBus")

    @property
    def services(self) -> ServiceContainer:
        return self._require(self._service_container, "ServiceContainer")

    # ========================================================================
    # HEALTH
    # ========================================================================

    def health_snapshot(self) -> Dict[str, Any]:
        """Point-in-time view of each subsystem; safe to call before initialization."""
        snapshot: Dict[str, Any] = {
            "initialized": self._initialized,
            "backend": self._backend.value if self._backend is not None else None,
            "logging": asdict(get_logging_health()),
        }
        if self._config_manager is not None:
            snapshot["config"] = self._config_manager.health_snapshot()
        if self._event_bus is not None:
            snapshot["events"] = self._event_bus.get_metrics_summary()
        if self._service_container is not None:
            snapshot["services"] = self._service_container.get_service_status()
        return snapshot
