"""
Rate Limiting
=============
Fixed-window limiter with a Redis backend and an in-process fallback.
"""

from .models import RateLimitDecision, RateLimitResult, RateLimitWindow, WindowCount
from .base import CounterStore, CounterStoreUnavailable
from .in_memory import InMemoryCounterStore
from .redis_store import FIXED_WINDOW_SCRIPT, RedisCounterStore, create_redis_client
from .limiter import RateLimiter

__all__ = [
    # Models
    "RateLimitDecision",
    "RateLimitResult",
    "RateLimitWindow",
    "WindowCount",
    # Stores
    "CounterStore",
    "CounterStoreUnavailable",
    "InMemoryCounterStore",
    "RedisCounterStore",
    "create_redis_client",
    # Scripts
    "FIXED_WINDOW_SCRIPT",
    # Limiter
    "RateLimiter",
]
