"""
Unit tests for ServiceContainer and ApplicationContext.

Tests lazy service construction, collaborator subscriptions, the end-to-end
completion flow through the wired container and the application lifecycle.
"""

import pytest

from brightbuddy.core.config.config import StorageBackend
from brightbuddy.core.config.manager import ConfigManager
from brightbuddy.core.exceptions import StorageError
from brightbuddy.core.infra import ApplicationContext
from brightbuddy.core.logging.logger import get_logger
from brightbuddy.core.services import ServiceContainer
from brightbuddy.core.storage.memory import InMemoryKeyValueStore
from brightbuddy.modules.shared.constants import (
    EVENT_ACHIEVEMENT_UNLOCKED,
    EVENT_ACTIVITY_COMPLETED,
)


@pytest.mark.unit
class TestServiceContainer:
    def test_services_are_built_lazily_and_cached(self, store, config_manager, event_bus):
        services = ServiceContainer(store, config_manager, event_bus, get_logger("tests"))

        assert not any(services.get_service_status().values())
        assert services.ledger is services.ledger
        assert services.get_service_status()["ledger"] is True
        assert services.get_service_status()["analytics"] is False

    def test_initialize_subscribes_collaborators_once(self, container, event_bus):
        container.initialize()

        assert container.is_initialized
        assert all(container.get_service_status().values())
        assert event_bus.get_listener_count(EVENT_ACTIVITY_COMPLETED) == 1
        assert event_bus.get_listener_count(EVENT_ACHIEVEMENT_UNLOCKED) == 1

    def test_services_share_the_catalogs(self, container):
        assert len(container.activity_catalog) == 25
        assert len(container.achievement_catalog) == 18


@pytest.mark.unit
@pytest.mark.asyncio
class TestWiredCompletionFlow:
    async def test_completion_reaches_every_collaborator(self, container, event_bus):
        outcome = await container.learning.complete_activity("u1", "math_001", score=90, time_spent=6)
        await event_bus.drain()

        pending = await container.notifications.get_pending("u1")
        analytics = await container.analytics.get_user_analytics("u1")
        profile = await container.progression.get_profile("u1")

        assert outcome.remaining_activities == 2
        assert [item["achievement"]["id"] for item in pending] == ["first_activity"]
        assert analytics.activities_completed == 1
        assert analytics.average_score == 90
        assert profile.experience == 50

    async def test_shutdown_drains_background_listeners(self, container, event_bus):
        await container.ledger.record_activity_completion("u1", "math_001", subject="Math")

        await container.shutdown()

        assert event_bus.get_background_task_count() == 0
        assert not container.is_initialized
        assert (await container.analytics.get_user_analytics("u1")).activities_completed == 1


@pytest.fixture
def app_context() -> ApplicationContext:
    return ApplicationContext(
        backend=StorageBackend.MEMORY,
        config_manager=ConfigManager(load_files=False),
        configure_logging=False,
    )


@pytest.mark.unit
@pytest.mark.asyncio
class TestApplicationContext:
    async def test_properties_require_initialization(self, app_context):
        with pytest.raises(RuntimeError):
            _ = app_context.services
        with pytest.raises(RuntimeError):
            _ = app_context.store

    async def test_lifecycle(self, app_context):
        async with app_context as context:
            assert context.is_initialized
            assert isinstance(context.store, InMemoryKeyValueStore)
            assert context.services.is_initialized

            outcome = await context.services.learning.complete_activity("u1", "math_001")
            assert outcome.receipt.usage.activities_completed == 1

        assert not app_context.is_initialized
        with pytest.raises(RuntimeError):
            _ = app_context.event_bus

    async def test_health_snapshot(self, app_context):
        before = app_context.health_snapshot()
        assert before["initialized"] is False
        assert before["backend"] == "memory"
        assert "services" not in before

        async with app_context as context:
            await context.services.learning.complete_activity("u1", "math_001")
            during = context.health_snapshot()

        assert during["initialized"] is True
        assert during["config"]["initialized"] is True
        assert during["services"]["learning"] is True
        assert during["events"]["total_events_published"] >= 1
        assert set(during["logging"]) >= {"initialized", "records_dropped", "queue_capacity"}

    async def test_double_initialize_is_refused(self, app_context):
        await app_context.initialize()
        try:
            with pytest.raises(RuntimeError):
                await app_context.initialize()
        finally:
            await app_context.shutdown()

    async def test_failed_store_start_cleans_up(self, app_context, mocker):
        broken_store = mocker.MagicMock()
        broken_store.initialize = mocker.AsyncMock(
            side_effect=StorageError("initialize", "kv_entries", OSError("refused"))
        )
        broken_store.close = mocker.AsyncMock()
        mocker.patch(
            "brightbuddy.core.infra.application_context.build_store",
            return_value=broken_store,
        )

        with pytest.raises(RuntimeError) as exc_info:
            await app_context.initialize()

        assert isinstance(exc_info.value.__cause__, StorageError)
        broken_store.close.assert_awaited_once()
        assert not app_context.is_initialized

    async def test_shutdown_without_initialize_is_a_noop(self, app_context):
        await app_context.shutdown()

        assert not app_context.is_initialized
