"""Redis client, resilience layer and distributed locks."""

from brightbuddy.core.redis.resilience import CircuitState, RedisResilience
from brightbuddy.core.redis.service import RedisService

__all__ = ["CircuitState", "RedisResilience", "RedisService"]
