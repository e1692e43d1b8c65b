"""
Fixed-Window Rate Limiter
=========================
Per-identity request limiting with a shared store and a local fallback.

When the shared store is unreachable the limiter counts in the local store
instead. Each replica then enforces the limit on its own, so a deployment
of N replicas admits up to N times the configured limit for the duration
of the outage.
"""

import time
from typing import Callable, Optional, Tuple

from relay_core.observability.events import RelayEvents

from .base import CounterStore, CounterStoreUnavailable
from .models import RateLimitDecision, WindowCount


class RateLimiter:
    """
    Fixed-window limiter: at most ``limit`` requests per identity per window.

    The window starts with the identity's first request and is recreated
    once it has elapsed.
    """

    def __init__(
        self,
        limit: int,
        window_ms: int,
        store: CounterStore,
        fallback: Optional[CounterStore] = None,
        recheck_interval_ms: int = 5000,
        events: Optional[RelayEvents] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            limit: Requests allowed per window
            window_ms: Window length in milliseconds
            store: Primary (usually shared) counter store
            fallback: Store used while the primary is unreachable
            recheck_interval_ms: How long to stay on the fallback before
                probing the primary again
        """
        self.limit = limit
        self.window_ms = window_ms
        self.store = store
        self.fallback = fallback
        self.recheck_interval_ms = recheck_interval_ms
        self._events = events or RelayEvents()
        self._clock = clock
        self._store_down_until: Optional[float] = None

    @property
    def using_fallback(self) -> bool:
        """True while the primary store is considered unreachable."""
        return self._store_down_until is not None and self._clock() < self._store_down_until

    async def should_allow(self, identity: str) -> RateLimitDecision:
        """
        Count a request for ``identity`` and decide whether to admit it.

        Never raises on store outages.
        """
        counted, backend = await self._increment(identity)

        if counted is None:
            decision = RateLimitDecision(
                allowed=True, limit=self.limit, backend=backend, degraded=True,
            )
        elif counted.count > self.limit:
            decision = RateLimitDecision(
                allowed=False,
                limit=self.limit,
                count=counted.count,
                retry_after_ms=counted.expires_in_ms,
                backend=backend,
            )
        else:
            decision = RateLimitDecision(
                allowed=True, limit=self.limit, count=counted.count, backend=backend,
            )

        self._events.emit(
            "rate_limit_decision",
            level="debug" if decision.allowed else "warning",
            identity=identity,
            result=decision.result.value,
            backend=backend,
            count=decision.count,
            limit=self.limit,
            retry_after_ms=decision.retry_after_ms,
        )
        return decision

    async def _increment(self, identity: str) -> Tuple[Optional[WindowCount], str]:
        if not self.using_fallback:
            try:
                counted = await self.store.increment(identity, self.window_ms)
            except CounterStoreUnavailable as e:
                self._mark_down(e)
            else:
                self._mark_up()
                return counted, self.store.name

        if self.fallback is not None:
            return await self.fallback.increment(identity, self.window_ms), self.fallback.name

        # No fallback: fail open
        return None, self.store.name

    def _mark_down(self, error: Exception) -> None:
        was_up = self._store_down_until is None
        self._store_down_until = self._clock() + self.recheck_interval_ms / 1000.0
        if was_up:
            self._events.emit(
                "rate_limit_store_unavailable",
                level="warning",
                store=self.store.name,
                fallback=self.fallback.name if self.fallback else None,
                error=str(error),
            )

    def _mark_up(self) -> None:
        if self._store_down_until is not None:
            self._store_down_until = None
            self._events.emit("rate_limit_store_recovered", store=self.store.name)
