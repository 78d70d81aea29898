"""
Integration Tests for the Key-Value Store Backends
==================================================

Purpose
-------
Run the same store contract against real Redis and PostgreSQL using
testcontainers, then drive the usage ledger through each backend to check
that the per-user lock holds across concurrent completions.

Test Coverage
-------------
- JSON round trip, missing keys and deletes
- Ordered, literal prefix scans
- Lock exclusion for read-modify-write
- Daily quota under concurrent completions
- Redis lock wait timeout
- PostgreSQL locked sections on a pool smaller than the number of lockers

Testing Strategy
----------------
- Containers are session scoped; each test gets a wiped store
- Tests skip when Docker is not reachable
"""

import asyncio
from datetime import datetime, timezone

import pytest

from brightbuddy.core.config import Config
from brightbuddy.core.database.service import DatabaseService
from brightbuddy.core.event.bus import EventBus
from brightbuddy.core.exceptions import LockAcquisitionError
from brightbuddy.core.logging.logger import get_logger
from brightbuddy.core.storage.base import StorageKeys
from brightbuddy.core.storage.sql_store import DatabaseKeyValueStore
from brightbuddy.modules.freemium import UsageLedgerService
from brightbuddy.modules.shared.exceptions import QuotaExceededError

NOW = datetime(2024, 3, 15, 10, 0, tzinfo=timezone.utc)


class StoreContract:
    """Behaviour every backend must share; subclasses provide ``kv_store``."""

    async def test_json_round_trip(self, kv_store):
        value = {"tier": "free", "subjects": ["Math", "Art"], "score": 87.5, "meta": None}

        await kv_store.set("subscription:u1", value)

        assert await kv_store.get("subscription:u1") == value

    async def test_overwrite(self, kv_store):
        await kv_store.set("streak:u1", {"current": 1})
        await kv_store.set("streak:u1", {"current": 2})

        assert await kv_store.get("streak:u1") == {"current": 2}

    async def test_missing_key_and_delete(self, kv_store):
        assert await kv_store.get("streak:nobody") is None

        await kv_store.set("streak:u1", {"current": 1})

        assert await kv_store.delete("streak:u1") is True
        assert await kv_store.delete("streak:u1") is False

    async def test_scan_prefix_is_ordered_and_literal(self, kv_store):
        keys = [
            "progress:u_1:math_002:b",
            "progress:u_1:math_001:a",
            "progress:ua1:math_001:c",
            "progress:u_10:math_001:d",
            "dailyUsage:u_1:2024-03-15",
        ]
        for key in keys:
            await kv_store.set(key, {})

        assert await kv_store.scan_prefix("progress:u_1:") == [
            "progress:u_1:math_001:a",
            "progress:u_1:math_002:b",
        ]

    async def test_get_many(self, kv_store):
        await kv_store.set("a", 1)
        await kv_store.set("c", [3])

        assert await kv_store.get_many(["a", "b", "c"]) == [1, None, [3]]

    async def test_lock_serializes_read_modify_write(self, kv_store):
        await kv_store.set("counter", 0)

        async def increment():
            async with kv_store.lock("lock:user:u1"):
                current = await kv_store.get("counter")
                await asyncio.sleep(0.01)
                await kv_store.set("counter", current + 1)

        await asyncio.gather(*(increment() for _ in range(8)))

        assert await kv_store.get("counter") == 8

    async def test_concurrent_completions_respect_the_daily_limit(self, kv_store, config_manager):
        ledger = UsageLedgerService(
            store=kv_store,
            config_manager=config_manager,
            event_bus=EventBus(config_manager=config_manager),
            logger=get_logger("tests.integration.freemium"),
            clock=lambda: NOW,
        )

        results = await asyncio.gather(
            *(ledger.record_activity_completion("u1", f"math_00{i}") for i in range(1, 7)),
            return_exceptions=True,
        )

        succeeded = [r for r in results if not isinstance(r, Exception)]
        refused = [r for r in results if isinstance(r, QuotaExceededError)]
        assert len(succeeded) == 3
        assert len(refused) == 3
        assert (await ledger.get_today_usage("u1")).activities_completed == 3
        assert len(await kv_store.scan_prefix(StorageKeys.progress_prefix("u1"))) == 3


@pytest.mark.integration
@pytest.mark.asyncio
class TestRedisStore(StoreContract):
    @pytest.fixture
    def kv_store(self, redis_store):
        return redis_store

    async def test_lock_wait_timeout(self, kv_store, config_manager):
        config_manager.set("storage.lock.wait_timeout_seconds", 0.1)

        async with kv_store.lock("lock:user:u1"):
            with pytest.raises(LockAcquisitionError):
                async with kv_store.lock("lock:user:u1"):
                    pass


@pytest.mark.integration
@pytest.mark.asyncio
class TestDatabaseStore(StoreContract):
    @pytest.fixture
    def kv_store(self, database_store):
        return database_store

    async def test_more_lockers_than_pooled_connections(
        self, postgres_container, config_manager, monkeypatch
    ):
        monkeypatch.setattr(Config, "is_testing", classmethod(lambda cls: False))
        monkeypatch.setattr(Config, "DATABASE_POOL_SIZE", 2)
        monkeypatch.setattr(Config, "DATABASE_MAX_OVERFLOW", 0)
        database = DatabaseService(config_manager, url=postgres_container.get_connection_url())
        kv_store = DatabaseKeyValueStore(database)
        await kv_store.initialize()
        await kv_store.set("counter:pool", 0)

        async def increment():
            async with kv_store.lock("lock:user:pool"):
                current = await kv_store.get("counter:pool")
                await kv_store.set("counter:pool", current + 1)

        try:
            await asyncio.wait_for(asyncio.gather(*(increment() for _ in range(6))), timeout=20)
            assert await kv_store.get("counter:pool") == 6
        finally:
            await kv_store.delete("counter:pool")
            await kv_store.close()

    async def test_failed_locked_section_rolls_back_its_writes(self, kv_store):
        with pytest.raises(RuntimeError):
            async with kv_store.lock("lock:user:u1"):
                await kv_store.set("streak:u1", {"current": 1})
                raise RuntimeError("boom")

        assert await kv_store.get("streak:u1") is None
