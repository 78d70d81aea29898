"""
Retry and circuit breaking for Redis calls.

Purpose
-------
Every command RedisService sends goes through ``RedisResilience.execute``.
Connection blips are retried with capped exponential backoff; a run of
failures opens the circuit so ledger operations fail fast with
``CircuitBreakerError`` (wrapped into ``StorageError`` by the store) instead
of each waiting out its own socket timeout.

Circuit States
--------------
CLOSED lets calls through and counts consecutive failures. OPEN rejects
calls until ``timeout_seconds`` have passed, then moves to HALF_OPEN.
HALF_OPEN lets calls through; ``success_threshold`` successes close the
circuit and one failure reopens it.

Configuration (ConfigManager, ``core.redis.resilience.``)
---------------------------------------------------------
circuit.failure_threshold (5), circuit.success_threshold (2),
circuit.timeout_seconds (60), retry.max_attempts (3),
retry.initial_delay_seconds (0.1), retry.max_delay_seconds (2.0),
retry.backoff_multiplier (2.0), retry.jitter (true)
"""

from __future__ import annotations

import asyncio
import random
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from brightbuddy.core.config.manager import ConfigManager
from brightbuddy.core.exceptions import CircuitBreakerError
from brightbuddy.core.logging.logger import get_logger

logger = get_logger(__name__)

_PREFIX = "core.redis.resilience"

TRANSIENT_ERRORS = (RedisConnectionError, RedisTimeoutError, OSError)


class CircuitState(Enum):
    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"


def _setting(config_manager: Optional[ConfigManager], key: str, default: Any) -> Any:
    if config_manager is None:
        return default
    value = config_manager.get(f"{_PREFIX}.{key}", default)
    return default if value is None else value


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    initial_delay: float = 0.1
    max_delay: float = 2.0
    multiplier: float = 2.0
    jitter: bool = True

    @classmethod
    def from_config(cls, config_manager: Optional[ConfigManager]) -> "RetryPolicy":
        return cls(
            max_attempts=int(_setting(config_manager, "retry.max_attempts", 3)),
            initial_delay=float(_setting(config_manager, "retry.initial_delay_seconds", 0.1)),
            max_delay=float(_setting(config_manager, "retry.max_delay_seconds", 2.0)),
            multiplier=float(_setting(config_manager, "retry.backoff_multiplier", 2.0)),
            jitter=bool(_setting(config_manager, "retry.jitter", True)),
        )

    def delay_after(self, attempt: int) -> float:
        """Backoff before attempt ``attempt + 1``, with +/-10% jitter when enabled."""
        delay = min(self.initial_delay * self.multiplier ** (attempt - 1), self.max_delay)
        if self.jitter:
            delay += random.uniform(-0.1, 0.1) * delay
        return max(0.0, delay)


class RedisResilience:
    """
    Circuit breaker and retry loop shared by every RedisService command.

    >>> resilience = RedisResilience(config_manager)
    >>> value = await resilience.execute(lambda: client.get("subscription:u1"), "get")
    """

    def __init__(
        self,
        config_manager: Optional[ConfigManager] = None,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.retry = RetryPolicy.from_config(config_manager)
        self.failure_threshold = int(_setting(config_manager, "circuit.failure_threshold", 5))
        self.success_threshold = int(_setting(config_manager, "circuit.success_threshold", 2))
        self.open_seconds = float(_setting(config_manager, "circuit.timeout_seconds", 60))

        self._clock = clock
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self._state = CircuitState.CLOSED
        self._failures = 0
        self._successes = 0
        self._opened_at: Optional[float] = None

    # ========================================================================
    # EXECUTION
    # ========================================================================

    async def execute(
        self,
        operation: Callable[[], Awaitable[Any]],
        operation_name: str,
        max_attempts: Optional[int] = None,
    ) -> Any:
        """
        Await ``operation()``, retrying transient Redis and socket errors.

        Raises:
            CircuitBreakerError: The circuit is open
            Exception: The last transient error once attempts run out, or
                any other error straight away
        """
        await self._admit()

        attempts = max(1, max_attempts or self.retry.max_attempts)
        attempt = 1
        while True:
            try:
                result = await operation()
            except TRANSIENT_ERRORS as exc:
                await self._on_failure()
                if attempt >= attempts:
                    logger.error(
                        "Redis %s failed after %d attempt(s)",
                        operation_name,
                        attempt,
                        extra={
                            "operation": operation_name,
                            "circuit_state": self._state.value,
                            "error_type": type(exc).__name__,
                        },
                    )
                    raise
                delay = self.retry.delay_after(attempt)
                logger.warning(
                    "Redis %s failed, retrying",
                    operation_name,
                    extra={"operation": operation_name, "attempt": attempt, "delay_seconds": round(delay, 3)},
                )
                await self._sleep(delay)
                attempt += 1
                continue

            await self._on_success()
            return result

    # ========================================================================
    # CIRCUIT
    # ========================================================================

    async def _admit(self) -> None:
        async with self._lock:
            if self._state is not CircuitState.OPEN:
                return
            elapsed = self._clock() - (self._opened_at or 0.0)
            if elapsed >= self.open_seconds:
                self._move_to(CircuitState.HALF_OPEN)
                return
            raise CircuitBreakerError("redis", self._failures, self.open_seconds - elapsed)

    async def _on_success(self) -> None:
        async with self._lock:
            self._failures = 0
            self._successes += 1
            if self._state is CircuitState.HALF_OPEN and self._successes >= self.success_threshold:
                self._move_to(CircuitState.CLOSED)

    async def _on_failure(self) -> None:
        async with self._lock:
            self._successes = 0
            self._failures += 1
            if self._state is CircuitState.HALF_OPEN or (
                self._state is CircuitState.CLOSED and self._failures >= self.failure_threshold
            ):
                self._move_to(CircuitState.OPEN)

    def _move_to(self, state: CircuitState) -> None:
        previous, self._state = self._state, state
        self._successes = 0
        if state is CircuitState.OPEN:
            self._opened_at = self._clock()
        else:
            self._failures = 0
            if state is CircuitState.CLOSED:
                self._opened_at = None

        level = logger.warning if state is CircuitState.OPEN else logger.info
        level(
            "Redis circuit %s -> %s",
            previous.value,
            state.value,
            extra={"service": "redis", "circuit_state": state.value},
        )

    # ========================================================================
    # STATUS
    # ========================================================================

    async def reset(self) -> None:
        async with self._lock:
            self._move_to(CircuitState.CLOSED)

    @property
    def state(self) -> CircuitState:
        return self._state

    def get_status(self) -> dict[str, Any]:
        return {
            "circuit_state": self._state.value,
            "failure_count": self._failures,
            "success_count": self._successes,
            "opened_at": self._opened_at,
            "retry_max_attempts": self.retry.max_attempts,
        }
