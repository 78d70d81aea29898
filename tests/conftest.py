"""
Pytest Configuration and Fixtures for BrightBuddy Tests
=======================================================

Purpose
-------
Centralized fixtures for the BrightBuddy test suite: stores, clock, config,
event bus, service factories and testcontainers for integration tests.

Responsibilities
----------------
- In-memory store and a controllable UTC clock for unit tests
- ConfigManager built from the defaults only (no YAML on disk)
- Real EventBus plus a mocked one for isolation
- Factories for every domain service sharing the same store and clock
- Testcontainers for Redis and PostgreSQL (skipped when Docker is missing)

Architecture Notes
------------------
- Unit tests use the in-memory store (fast, isolated)
- Integration tests run the same store contract against real backends
- Containers are session scoped; stores are rebuilt and wiped per test
"""

from __future__ import annotations

import os
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator, Generator

os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("LOG_TO_FILE", "false")
os.environ.setdefault("STORAGE_BACKEND", "memory")

import pytest
import pytest_asyncio
from sqlalchemy import delete

from brightbuddy.core.config.manager import ConfigManager
from brightbuddy.core.database.service import DatabaseService
from brightbuddy.core.event.bus import EventBus
from brightbuddy.core.logging.logger import get_logger
from brightbuddy.core.redis.service import RedisService
from brightbuddy.core.services.container import ServiceContainer
from brightbuddy.core.storage.memory import InMemoryKeyValueStore
from brightbuddy.core.storage.redis_store import RedisKeyValueStore
from brightbuddy.core.storage.sql_store import DatabaseKeyValueStore
from brightbuddy.database.models.kv_entry import KVEntry
from brightbuddy.modules.achievements import AchievementCatalog, ProgressionEngine
from brightbuddy.modules.activities import ActivityCatalog
from brightbuddy.modules.analytics import AnalyticsService
from brightbuddy.modules.freemium import UsageLedgerService
from brightbuddy.modules.learning import LearningService
from brightbuddy.modules.notifications import NotificationService

logger = get_logger(__name__)

# Friday 2024-03-15, 10:00 UTC ("morning" in analytics)
DEFAULT_NOW = datetime(2024, 3, 15, 10, 0, tzinfo=timezone.utc)


# ============================================================================
# CLOCK
# ============================================================================


class FrozenClock:
    """
    Callable UTC clock that only moves when told to.

    Usage:
        clock = FrozenClock(DEFAULT_NOW)
        clock.advance(days=1)
    """

    def __init__(self, now: datetime) -> None:
        self.current = now

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs: float) -> datetime:
        self.current = self.current + timedelta(**kwargs)
        return self.current

    def set(self, now: datetime) -> None:
        self.current = now


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(DEFAULT_NOW)


# ============================================================================
# INFRASTRUCTURE FIXTURES (Unit Tests)
# ============================================================================


@pytest.fixture
def store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def config_manager() -> ConfigManager:
    """Defaults only; tests override values with ``config_manager.set``."""
    manager = ConfigManager(load_files=False)
    manager.initialize()
    return manager


@pytest.fixture
def event_bus(config_manager) -> EventBus:
    return EventBus(config_manager=config_manager)


@pytest.fixture
def mock_event_bus(mocker):
    """
    Mock EventBus for unit tests.

    Scope: function
    Uses: Unit tests asserting on published events
    """
    mock_bus = mocker.MagicMock()
    mock_bus.publish = mocker.AsyncMock(return_value=[])
    mock_bus.subscribe = mocker.MagicMock()
    mock_bus.drain = mocker.AsyncMock()
    return mock_bus


# ============================================================================
# SERVICE FACTORIES
# ============================================================================


@pytest.fixture
def achievement_catalog() -> AchievementCatalog:
    return AchievementCatalog()


@pytest.fixture
def activity_catalog() -> ActivityCatalog:
    return ActivityCatalog()


@pytest.fixture
def make_ledger(store, config_manager, event_bus, clock):
    """Build a UsageLedgerService; pass ``event_bus=`` to swap the bus."""

    def _make(**overrides) -> UsageLedgerService:
        kwargs = {
            "store": store,
            "config_manager": config_manager,
            "event_bus": event_bus,
            "logger": get_logger("tests.freemium"),
            "clock": clock,
        }
        kwargs.update(overrides)
        return UsageLedgerService(**kwargs)

    return _make


@pytest.fixture
def ledger(make_ledger) -> UsageLedgerService:
    return make_ledger()


@pytest.fixture
def progression(store, achievement_catalog, config_manager, event_bus, clock) -> ProgressionEngine:
    return ProgressionEngine(
        store=store,
        catalog=achievement_catalog,
        config_manager=config_manager,
        event_bus=event_bus,
        logger=get_logger("tests.achievements"),
        clock=clock,
    )


@pytest.fixture
def analytics(store, config_manager, event_bus, clock) -> AnalyticsService:
    return AnalyticsService(
        store=store,
        config_manager=config_manager,
        event_bus=event_bus,
        logger=get_logger("tests.analytics"),
        clock=clock,
    )


@pytest.fixture
def notifications(store, config_manager, event_bus, clock) -> NotificationService:
    return NotificationService(
        store=store,
        config_manager=config_manager,
        event_bus=event_bus,
        logger=get_logger("tests.notifications"),
        clock=clock,
    )


@pytest.fixture
def learning(
    ledger, progression, activity_catalog, config_manager, event_bus, clock
) -> LearningService:
    return LearningService(
        ledger=ledger,
        progression=progression,
        catalog=activity_catalog,
        config_manager=config_manager,
        event_bus=event_bus,
        logger=get_logger("tests.learning"),
        clock=clock,
    )


@pytest.fixture
def container(store, config_manager, event_bus, clock) -> ServiceContainer:
    """Fully wired container with collaborators subscribed."""
    service_container = ServiceContainer(
        store=store,
        config_manager=config_manager,
        event_bus=event_bus,
        logger=get_logger("tests.container"),
        clock=clock,
    )
    service_container.initialize()
    return service_container


# ============================================================================
# TESTCONTAINERS FIXTURES (Integration Tests)
# ============================================================================


@pytest.fixture(scope="session")
def redis_container() -> Generator:
    """
    Start a Redis testcontainer.

    Scope: session (container persists across all tests)
    Skips when Docker is not reachable.
    """
    from testcontainers.redis import RedisContainer

    container = RedisContainer(image="redis:7-alpine")
    try:
        container.start()
    except Exception as exc:
        pytest.skip(f"Docker unavailable for Redis testcontainer: {exc}")

    logger.info(
        "Redis testcontainer started: %s:%s",
        container.get_container_host_ip(),
        container.get_exposed_port(6379),
    )
    yield container

    logger.info("Stopping Redis testcontainer...")
    container.stop()


@pytest.fixture(scope="session")
def postgres_container() -> Generator:
    """
    Start a PostgreSQL testcontainer with the asyncpg driver.

    Scope: session (container persists across all tests)
    Skips when Docker is not reachable.
    """
    from testcontainers.postgres import PostgresContainer

    container = PostgresContainer(image="postgres:16-alpine", driver="asyncpg")
    try:
        container.start()
    except Exception as exc:
        pytest.skip(f"Docker unavailable for PostgreSQL testcontainer: {exc}")

    logger.info("PostgreSQL testcontainer started: %s", container.get_connection_url())
    yield container

    logger.info("Stopping PostgreSQL testcontainer...")
    container.stop()


@pytest_asyncio.fixture
async def redis_store(
    redis_container, config_manager
) -> AsyncGenerator[RedisKeyValueStore, None]:
    """Redis-backed store, flushed after each test."""
    host = redis_container.get_container_host_ip()
    port = redis_container.get_exposed_port(6379)
    redis = RedisService(config_manager, url=f"redis://{host}:{port}/0")
    kv_store = RedisKeyValueStore(redis)
    await kv_store.initialize()

    yield kv_store

    await redis.client().flushdb()
    await kv_store.close()


@pytest_asyncio.fixture
async def database_store(
    postgres_container, config_manager
) -> AsyncGenerator[DatabaseKeyValueStore, None]:
    """PostgreSQL-backed store; the ``kv_entries`` table is emptied after each test."""
    database = DatabaseService(config_manager, url=postgres_container.get_connection_url())
    kv_store = DatabaseKeyValueStore(database)
    await kv_store.initialize()

    yield kv_store

    async with database.get_transaction() as session:
        await session.execute(delete(KVEntry))
    await kv_store.close()
