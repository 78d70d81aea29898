"""
Redis-backed key-value store.

Documents are JSON strings under their storage key. Locks delegate to
``RedisService.acquire_lock``; every other failure, including an open
circuit breaker, is wrapped in ``StorageError``.
"""

from __future__ import annotations

import json
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from redis.exceptions import RedisError

from brightbuddy.core.exceptions import CircuitBreakerError, StorageError
from brightbuddy.core.logging.logger import get_logger
from brightbuddy.core.redis.service import RedisService
from brightbuddy.core.storage.base import JSONValue, KeyValueStore

logger = get_logger(__name__)

_BACKEND_ERRORS = (RedisError, OSError, CircuitBreakerError, RuntimeError)


def _decode(key: str, raw: Optional[str]) -> Optional[JSONValue]:
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        logger.error("Corrupt JSON document in Redis", extra={"key": key})
        raise StorageError("decode", key, exc, error_code="STORAGE_CORRUPT") from exc


class RedisKeyValueStore(KeyValueStore):
    backend_name = "redis"

    def __init__(self, redis: RedisService) -> None:
        self._redis = redis

    async def initialize(self) -> None:
        await self._redis.initialize()

    async def close(self) -> None:
        await self._redis.shutdown()

    async def get(self, key: str) -> Optional[JSONValue]:
        try:
            raw = await self._redis.get(key)
        except _BACKEND_ERRORS as exc:
            raise StorageError("get", key, exc) from exc

        return _decode(key, raw)

    async def get_many(self, keys: list[str]) -> list[Optional[JSONValue]]:
        if not keys:
            return []
        try:
            raws = await self._redis.mget(keys)
        except _BACKEND_ERRORS as exc:
            raise StorageError("mget", ",".join(keys[:5]), exc) from exc
        return [_decode(key, raw) for key, raw in zip(keys, raws)]

    async def set(self, key: str, value: JSONValue) -> None:
        try:
            await self._redis.set(key, json.dumps(value))
        except _BACKEND_ERRORS as exc:
            raise StorageError("set", key, exc) from exc

    async def delete(self, key: str) -> bool:
        try:
            return await self._redis.delete(key) > 0
        except _BACKEND_ERRORS as exc:
            raise StorageError("delete", key, exc) from exc

    async def scan_prefix(self, prefix: str) -> list[str]:
        try:
            return sorted(await self._redis.scan_keys(prefix))
        except _BACKEND_ERRORS as exc:
            raise StorageError("scan", prefix, exc) from exc

    @asynccontextmanager
    async def lock(self, name: str) -> AsyncIterator[None]:
        try:
            self._redis.client()
        except RuntimeError as exc:
            raise StorageError("lock", name, exc) from exc
        async with self._redis.acquire_lock(name):
            yield
