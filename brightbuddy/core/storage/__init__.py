"""
Key-value storage for BrightBuddy.

``build_store`` picks the backend named by ``Config.STORAGE_BACKEND``
(``memory``, ``redis`` or ``database``).
"""

from __future__ import annotations

from typing import Optional

from brightbuddy.core.config.config import Config, StorageBackend
from brightbuddy.core.config.manager import ConfigManager
from brightbuddy.core.storage.base import JSONValue, KeyValueStore, StorageKeys
from brightbuddy.core.storage.memory import InMemoryKeyValueStore


def build_store(
    backend: Optional[StorageBackend] = None,
    config_manager: Optional[ConfigManager] = None,
) -> KeyValueStore:
    """Construct (but do not initialize) the configured store."""
    backend = backend or Config.storage_backend()

    if backend == StorageBackend.MEMORY:
        return InMemoryKeyValueStore()

    if backend == StorageBackend.REDIS:
        from brightbuddy.core.redis.service import RedisService
        from brightbuddy.core.storage.redis_store import RedisKeyValueStore

        return RedisKeyValueStore(RedisService(config_manager))

    from brightbuddy.core.database.service import DatabaseService
    from brightbuddy.core.storage.sql_store import DatabaseKeyValueStore

    return DatabaseKeyValueStore(DatabaseService(config_manager))


__all__ = [
    "InMemoryKeyValueStore",
    "JSONValue",
    "KeyValueStore",
    "StorageKeys",
    "build_store",
]
