"""
Unit tests for RedisResilience.

Tests the retry loop and circuit transitions with a fake clock and a
no-op sleep; no Redis server is involved.
"""

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from brightbuddy.core.exceptions import CircuitBreakerError
from brightbuddy.core.redis.resilience import CircuitState, RedisResilience, RetryPolicy


class FakeMonotonic:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


@pytest.fixture
def monotonic():
    return FakeMonotonic()


@pytest.fixture
def resilience(config_manager, monotonic, mocker):
    config_manager.set("core.redis.resilience.circuit.failure_threshold", 2)
    config_manager.set("core.redis.resilience.circuit.success_threshold", 2)
    config_manager.set("core.redis.resilience.circuit.timeout_seconds", 30)
    config_manager.set("core.redis.resilience.retry.max_attempts", 3)
    return RedisResilience(config_manager, clock=monotonic, sleep=mocker.AsyncMock())


def flaky(failures, result="ok"):
    calls = {"count": 0}

    async def operation():
        calls["count"] += 1
        if calls["count"] <= failures:
            raise RedisConnectionError("connection reset")
        return result

    operation.calls = calls
    return operation


@pytest.mark.unit
class TestRetryPolicy:
    def test_backoff_is_capped(self):
        policy = RetryPolicy(initial_delay=0.1, max_delay=0.3, multiplier=2.0, jitter=False)

        assert [policy.delay_after(n) for n in (1, 2, 3, 4)] == pytest.approx([0.1, 0.2, 0.3, 0.3])

    def test_jitter_stays_within_ten_percent(self):
        policy = RetryPolicy(initial_delay=1.0, max_delay=1.0, jitter=True)

        assert all(0.9 <= policy.delay_after(1) <= 1.1 for _ in range(50))


@pytest.mark.unit
@pytest.mark.asyncio
class TestRedisResilience:
    async def test_transient_error_is_retried(self, resilience):
        operation = flaky(failures=1)

        assert await resilience.execute(operation, "get") == "ok"
        assert operation.calls["count"] == 2
        assert resilience.state is CircuitState.CLOSED

    async def test_non_transient_error_is_not_retried(self, resilience):
        calls = []

        async def broken():
            calls.append(1)
            raise ValueError("bad payload")

        with pytest.raises(ValueError):
            await resilience.execute(broken, "set")

        assert calls == [1]
        assert resilience.get_status()["failure_count"] == 0

    async def test_circuit_opens_then_half_opens_then_closes(self, resilience, monotonic):
        with pytest.raises(RedisConnectionError):
            await resilience.execute(flaky(failures=5), "get", max_attempts=2)

        assert resilience.state is CircuitState.OPEN

        skipped = flaky(failures=0)
        with pytest.raises(CircuitBreakerError) as exc_info:
            await resilience.execute(skipped, "get")
        assert skipped.calls["count"] == 0
        assert exc_info.value.retry_after == pytest.approx(30)

        monotonic.now += 30
        await resilience.execute(flaky(failures=0), "get")
        assert resilience.state is CircuitState.HALF_OPEN

        await resilience.execute(flaky(failures=0), "get")
        assert resilience.state is CircuitState.CLOSED

    async def test_failure_while_half_open_reopens(self, resilience, monotonic):
        with pytest.raises(RedisConnectionError):
            await resilience.execute(flaky(failures=5), "get", max_attempts=2)
        monotonic.now += 31

        with pytest.raises(RedisConnectionError):
            await resilience.execute(flaky(failures=5), "get", max_attempts=1)

        assert resilience.state is CircuitState.OPEN

    async def test_reset_closes_the_circuit(self, resilience):
        with pytest.raises(RedisConnectionError):
            await resilience.execute(flaky(failures=5), "get", max_attempts=2)

        await resilience.reset()

        assert resilience.get_status() == {
            "circuit_state": "CLOSED",
            "failure_count": 0,
            "success_count": 0,
            "opened_at": None,
            "retry_max_attempts": 3,
        }
