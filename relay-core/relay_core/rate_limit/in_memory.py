"""
In-Memory Counter Store
=======================
Process-local fixed-window counters. Authoritative only within one process.
"""

import asyncio
import time
from typing import Callable, Dict

from .base import CounterStore
from .models import RateLimitWindow, WindowCount


class InMemoryCounterStore(CounterStore):
    """
    Process-local counter store.

    Used on its own when no shared store is configured, and as the
    fallback while the shared store is unreachable.
    """

    name = "memory"

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        cleanup_threshold: int = 10000,
    ):
        self._clock = clock
        self._cleanup_threshold = cleanup_threshold
        self._windows: Dict[str, RateLimitWindow] = {}
        self._lock = asyncio.Lock()

    async def increment(self, key: str, window_ms: int) -> WindowCount:
        async with self._lock:
            now = self._clock()
            window = self._windows.get(key)

            # Reset if the window elapsed
            if window is None or window.expires_at <= now:
                window = RateLimitWindow(count=0, expires_at=now + window_ms / 1000.0)
                self._windows[key] = window

            window.count += 1

            if len(self._windows) > self._cleanup_threshold:
                self._cleanup(now)

            return WindowCount(
                count=window.count,
                expires_in_ms=max(0, int((window.expires_at - now) * 1000)),
            )

    def _cleanup(self, now: float) -> None:
        """Remove expired windows."""
        expired = [key for key, window in self._windows.items() if window.expires_at <= now]
        for key in expired:
            del self._windows[key]

    def __len__(self) -> int:
        return len(self._windows)
