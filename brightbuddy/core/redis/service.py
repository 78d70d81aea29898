"""
RedisService: async Redis client with resilience and distributed locks.

Purpose
-------
Owns the redis-py asyncio client used by the Redis-backed key-value store.
Every command flows through RedisResilience; locks use SET NX EX with a
random token and release through a compare-and-delete Lua script so a lock
is never released by someone who does not hold it.

Responsibilities
----------------
- Connect, ping and close the client
- get / set / delete / scan with structured logging
- ``acquire_lock`` async context manager for per-user critical sections

Non-Responsibilities
--------------------
- Key naming and JSON encoding (see ``brightbuddy.core.storage``)
- Business rules

Architecture Notes
------------------
One instance per process, owned by the ServiceContainer and handed to the
store. Values are stored without TTL; ledger data is durable.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

from redis.asyncio import Redis as AsyncRedis
from redis.exceptions import RedisError

from brightbuddy.core.config.config import Config
from brightbuddy.core.config.manager import ConfigManager
from brightbuddy.core.exceptions import LockAcquisitionError, RedisConnectionError
from brightbuddy.core.logging.logger import get_logger
from brightbuddy.core.redis.resilience import RedisResilience

logger = get_logger(__name__)


class RedisService:
    """
    Async Redis client wrapper.

    >>> redis = RedisService(config_manager)
    >>> await redis.initialize()
    >>> async with redis.acquire_lock("lock:user:u1"):
    ...     await redis.set("streak:u1", "{...}")
    """

    _LUA_UNLOCK_SCRIPT = """
    if redis.call("GET", KEYS[1]) == ARGV[1] then
        return redis.call("DEL", KEYS[1])
    else
        return 0
    end
    """

    def __init__(
        self,
        config_manager: Optional[ConfigManager] = None,
        *,
        url: Optional[str] = None,
        client: Optional[AsyncRedis] = None,
    ) -> None:
        self._config_manager = config_manager
        self._url = url or Config.REDIS_URL
        self._client: Optional[AsyncRedis] = client
        self._resilience = RedisResilience(config_manager)
        self._init_lock = asyncio.Lock()
        self._is_healthy = client is not None

    # ========================================================================
    # LIFECYCLE MANAGEMENT
    # ========================================================================

    async def initialize(self) -> None:
        """
        Connect and verify with PING. Idempotent.

        Raises
        ------
        RedisConnectionError
            If the server cannot be reached.
        """
        if self._client is not None:
            return

        async with self._init_lock:
            if self._client is not None:
                return

            start_time = time.monotonic()
            client: Optional[AsyncRedis] = None
            try:
                client = AsyncRedis.from_url(
                    self._url,
                    socket_timeout=Config.REDIS_SOCKET_TIMEOUT,
                    encoding=self._get_config("core.redis.encoding", "utf-8"),
                    decode_responses=True,
                    max_connections=Config.REDIS_MAX_CONNECTIONS,
                    retry_on_timeout=False,
                    health_check_interval=30,
                )
                await client.ping()
            except (RedisError, OSError) as exc:
                if client is not None:
                    await client.aclose()
                logger.critical(
                    "Failed to initialize RedisService",
                    extra={
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                        "url_scheme": self._url.split("://")[0],
                    },
                    exc_info=True,
                )
                raise RedisConnectionError("initialize", exc) from exc

            self._client = client
            self._is_healthy = True
            logger.info(
                "RedisService initialized successfully",
                extra={
                    "url_scheme": self._url.split("://")[0],
                    "initialization_time_ms": round((time.monotonic() - start_time) * 1000, 2),
                },
            )

    async def shutdown(self) -> None:
        client, self._client = self._client, None
        self._is_healthy = False
        if client is None:
            return

        try:
            await client.aclose()
            logger.info("RedisService shutdown complete")
        except RedisError as exc:
            logger.error(
                "Error during RedisService shutdown",
                extra={"error": str(exc), "error_type": type(exc).__name__},
                exc_info=True,
            )

    async def health_check(self) -> bool:
        if self._client is None:
            self._is_healthy = False
            return False

        try:
            self._is_healthy = bool(await self._client.ping())
        except (RedisError, OSError) as exc:
            logger.warning(
                "Redis health check failed",
                extra={"error": str(exc), "error_type": type(exc).__name__},
            )
            self._is_healthy = False
        return self._is_healthy

    @property
    def is_healthy(self) -> bool:
        return self._is_healthy

    @property
    def resilience(self) -> RedisResilience:
        return self._resilience

    def client(self) -> AsyncRedis:
        if self._client is None:
            raise RuntimeError("RedisService not initialized; call initialize() first")
        return self._client

    def _get_config(self, key: str, default: Any) -> Any:
        if self._config_manager is None:
            return default
        return self._config_manager.get(key, default)

    # ========================================================================
    # BASIC OPERATIONS
    # ========================================================================

    async def get(self, key: str) -> Optional[str]:
        client = self.client()
        result = await self._resilience.execute(
            operation=lambda: client.get(key),
            operation_name=f"GET:{key}",
        )
        logger.debug("Redis GET operation", extra={"key": key, "found": result is not None})
        return result

    async def set(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> bool:
        client = self.client()
        result = await self._resilience.execute(
            operation=lambda: client.set(key, value, ex=ttl_seconds),
            operation_name=f"SET:{key}",
        )
        logger.debug("Redis SET operation", extra={"key": key, "ttl_seconds": ttl_seconds})
        return bool(result)

    async def delete(self, key: str) -> int:
        client = self.client()
        return int(
            await self._resilience.execute(
                operation=lambda: client.delete(key),
                operation_name=f"DEL:{key}",
            )
        )

    async def scan_keys(self, prefix: str, count: int = 500) -> list[str]:
        """Return every key starting with ``prefix`` (glob characters escaped)."""
        client = self.client()
        escaped = "".join(f"\\{ch}" if ch in "*?[]\\" else ch for ch in prefix)

        async def _scan() -> list[str]:
            return [key async for key in client.scan_iter(match=f"{escaped}*", count=count)]

        return await self._resilience.execute(
            operation=_scan,
            operation_name=f"SCAN:{prefix}",
        )

    async def mget(self, keys: list[str]) -> list[Optional[str]]:
        if not keys:
            return []
        client = self.client()
        return await self._resilience.execute(
            operation=lambda: client.mget(keys),
            operation_name=f"MGET:{len(keys)}",
        )

    # ========================================================================
    # DISTRIBUTED LOCKING
    # ========================================================================

    @asynccontextmanager
    async def acquire_lock(
        self,
        key: str,
        timeout: Optional[float] = None,
        wait_timeout: Optional[float] = None,
        retry_interval: Optional[float] = None,
    ) -> AsyncIterator[None]:
        """
        Hold a distributed lock for the duration of the ``async with`` block.

        The lock expires after ``timeout`` seconds if the holder dies.

        Raises
        ------
        LockAcquisitionError
            If the lock is not acquired within ``wait_timeout`` seconds.
        """
        client = self.client()

        if timeout is None:
            timeout = float(self._get_config("storage.lock.timeout_seconds", 5))
        if wait_timeout is None:
            wait_timeout = float(self._get_config("storage.lock.wait_timeout_seconds", 5))
        if retry_interval is None:
            retry_interval = float(self._get_config("storage.lock.retry_interval_seconds", 0.05))

        token = str(uuid.uuid4())
        deadline = time.monotonic() + max(0.0, wait_timeout)
        acquired = False

        try:
            while True:
                try:
                    acquired = bool(
                        await client.set(
                            name=key,
                            value=token,
                            nx=True,
                            px=max(1, int(timeout * 1000)),
                        )
                    )
                except RedisError as exc:
                    logger.error(
                        "Redis lock acquisition error",
                        extra={"lock_key": key, "error": str(exc), "error_type": type(exc).__name__},
                        exc_info=True,
                    )

                if acquired:
                    logger.debug("Redis lock acquired", extra={"lock_key": key})
                    break

                if time.monotonic() >= deadline:
                    logger.warning(
                        "Failed to acquire Redis lock within timeout",
                        extra={"lock_key": key, "wait_timeout_seconds": wait_timeout},
                    )
                    raise LockAcquisitionError(key, wait_timeout)

                await asyncio.sleep(retry_interval)

            yield

        finally:
            if acquired:
                try:
                    released = await client.eval(self._LUA_UNLOCK_SCRIPT, 1, key, token)
                    if not released:
                        logger.warning(
                            "Redis lock already expired or stolen",
                            extra={"lock_key": key},
                        )
                except RedisError as exc:
                    logger.warning(
                        "Failed to release Redis lock (will expire automatically)",
                        extra={"lock_key": key, "error": str(exc)},
                        exc_info=True,
                    )
