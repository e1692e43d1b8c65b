"""
Redis Counter Store
===================
Redis-backed fixed-window counters using a Lua script for atomic operations.
"""

import structlog
from redis.asyncio import Redis
from redis.exceptions import RedisError

from .base import CounterStore, CounterStoreUnavailable
from .models import WindowCount

logger = structlog.get_logger(__name__)

# Lua script for an atomic fixed window in Redis
FIXED_WINDOW_SCRIPT = """
local count = redis.call('INCR', KEYS[1])
if count == 1 then
    redis.call('PEXPIRE', KEYS[1], ARGV[1])
end

local ttl = redis.call('PTTL', KEYS[1])
if ttl < 0 then
    redis.call('PEXPIRE', KEYS[1], ARGV[1])
    ttl = tonumber(ARGV[1])
end

return {count, ttl}
"""


def create_redis_client(url: str, timeout_seconds: float = 1.0) -> Redis:
    """Create an async Redis client with short timeouts for the hot path."""
    return Redis.from_url(
        url,
        decode_responses=True,
        socket_connect_timeout=timeout_seconds,
        socket_timeout=timeout_seconds,
    )


class RedisCounterStore(CounterStore):
    """
    Shared counter store. All replicas pointing at the same Redis observe
    the same counters.
    """

    name = "redis"

    def __init__(self, redis_client: Redis, key_prefix: str = "ratelimit"):
        """
        Args:
            redis_client: Async Redis client
            key_prefix: Namespace for counter keys
        """
        self.redis = redis_client
        self.key_prefix = key_prefix
        self._script = redis_client.register_script(FIXED_WINDOW_SCRIPT)

    def get_key(self, key: str) -> str:
        """Generate a namespaced counter key."""
        return f"{self.key_prefix}:{key}"

    async def increment(self, key: str, window_ms: int) -> WindowCount:
        try:
            count, ttl = await self._script(keys=[self.get_key(key)], args=[window_ms])
        except (RedisError, OSError) as e:
            raise CounterStoreUnavailable(f"Redis increment failed: {e}") from e

        return WindowCount(count=int(count), expires_in_ms=max(0, int(ttl)))

    async def ping(self) -> bool:
        try:
            return bool(await self.redis.ping())
        except (RedisError, OSError) as e:
            logger.warning("redis_ping_failed", error=str(e))
            return False

    async def close(self) -> None:
        await self.redis.aclose()
