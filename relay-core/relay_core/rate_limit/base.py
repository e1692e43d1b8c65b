"""
Counter Stores
==============
Storage abstraction behind the rate limiter.
"""

from abc import ABC, abstractmethod

from .models import WindowCount


class CounterStoreUnavailable(Exception):
    """Raised when a counter store cannot serve an increment."""
    pass


class CounterStore(ABC):
    """
    Atomic increment-and-read of fixed-window counters.

    Implementations must make the increment and the window bookkeeping a
    single atomic step per key.
    """

    name: str = "store"

    @abstractmethod
    async def increment(self, key: str, window_ms: int) -> WindowCount:
        """
        Increment the counter for ``key``, creating a window of
        ``window_ms`` when none is active.

        Raises:
            CounterStoreUnavailable: The backing store could not be reached
        """

    async def ping(self) -> bool:
        """Liveness probe for health checks."""
        return True
