"""
Circuit Breaker Core
====================
Async circuit breaker guarding one named downstream dependency.
"""

import asyncio
import inspect
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar, Union

from relay_core.exceptions import OperationTimeoutError
from relay_core.observability.events import RelayEvents

from .models import (
    BreakerConfig,
    BreakerCounters,
    BreakerOpenError,
    CircuitState,
)

T = TypeVar("T")

Fallback = Callable[[], Union[T, Awaitable[T]]]


@dataclass(frozen=True)
class _Admission:
    generation: int
    trial: bool


class CircuitBreaker:
    """
    Async-compatible circuit breaker.

    Outcomes are tagged with the generation they were admitted under; a
    result arriving after a state change (or a manual reset) is counted in
    the totals but never moves the state machine.

    Example:
        breaker = CircuitBreaker("query-service", BreakerConfig(failure_threshold=5))

        answer = await breaker.execute(
            lambda: client.query(normalized),
            fallback=lambda: "Sorry, the system is currently busy.",
        )
    """

    def __init__(
        self,
        name: str,
        config: Optional[BreakerConfig] = None,
        events: Optional[RelayEvents] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.name = name
        self.config = config or BreakerConfig()
        self._events = events or RelayEvents()
        self._clock = clock
        self._counters = BreakerCounters()
        self._lock = asyncio.Lock()

    @property
    def state(self) -> CircuitState:
        """Current circuit state."""
        return self._counters.state

    @property
    def failure_count(self) -> int:
        return self._counters.failure_count

    @property
    def success_count(self) -> int:
        return self._counters.success_count

    @property
    def metrics(self) -> Dict[str, Any]:
        """Get circuit breaker metrics."""
        counters = self._counters
        return {
            "name": self.name,
            "state": counters.state.value,
            "failure_count": counters.failure_count,
            "success_count": counters.success_count,
            "half_open_in_flight": counters.half_open_in_flight,
            "total_calls": counters.total_calls,
            "total_failures": counters.total_failures,
            "total_successes": counters.total_successes,
            "total_rejections": counters.total_rejections,
            "total_fallbacks": counters.total_fallbacks,
            "opened_at": counters.opened_at,
            "last_failure": counters.last_failure_time,
        }

    def retry_after(self) -> float:
        """Seconds until an open breaker admits a trial."""
        if self._counters.state != CircuitState.OPEN or self._counters.opened_at is None:
            return 0.0
        elapsed = self._clock() - self._counters.opened_at
        return max(0.0, self.config.reset_timeout_ms / 1000.0 - elapsed)

    def reset(self) -> None:
        """Return to CLOSED with zeroed counters (operator recovery)."""
        previous = self._counters.state
        self._counters = BreakerCounters(generation=self._counters.generation + 1)
        self._events.emit("breaker_reset", breaker=self.name, from_state=previous.value)
        if previous != CircuitState.CLOSED:
            self._emit_transition(previous, CircuitState.CLOSED)

    def _emit_transition(self, old: CircuitState, new: CircuitState) -> None:
        self._events.emit(
            "breaker_state_changed",
            level="warning" if new == CircuitState.OPEN else "info",
            breaker=self.name,
            from_state=old.value,
            to_state=new.value,
            failures=self._counters.failure_count,
        )

    def _transition(self, new_state: CircuitState, now: float) -> None:
        counters = self._counters
        old_state = counters.state
        counters.state = new_state
        counters.generation += 1
        counters.half_open_in_flight = 0
        counters.success_count = 0

        if new_state == CircuitState.OPEN:
            counters.opened_at = now
        elif new_state == CircuitState.CLOSED:
            counters.failure_count = 0
            counters.opened_at = None

        self._emit_transition(old_state, new_state)

    async def _admit(self) -> Optional[_Admission]:
        """Check and possibly transition state. Returns None if rejected."""
        async with self._lock:
            counters = self._counters
            now = self._clock()

            if counters.state == CircuitState.CLOSED:
                return _Admission(counters.generation, trial=False)

            if counters.state == CircuitState.OPEN:
                opened_at = counters.opened_at if counters.opened_at is not None else now
                if (now - opened_at) * 1000 >= self.config.reset_timeout_ms:
                    self._transition(CircuitState.HALF_OPEN, now)
                    counters.half_open_in_flight = 1
                    return _Admission(counters.generation, trial=True)
                counters.total_rejections += 1
                return None

            # HALF_OPEN
            if counters.half_open_in_flight < self.config.half_open_max_calls:
                counters.half_open_in_flight += 1
                return _Admission(counters.generation, trial=True)
            counters.total_rejections += 1
            return None

    def _release_trial(self, admission: _Admission) -> None:
        # No await: must complete even while the task is being cancelled.
        counters = self._counters
        if admission.trial and admission.generation == counters.generation:
            counters.half_open_in_flight = max(0, counters.half_open_in_flight - 1)

    async def _record_success(self, admission: _Admission) -> None:
        async with self._lock:
            counters = self._counters
            counters.total_calls += 1
            counters.total_successes += 1

            if admission.generation != counters.generation:
                return
            self._release_trial(admission)

            if counters.state == CircuitState.HALF_OPEN:
                counters.success_count += 1
                if counters.success_count >= self.config.success_threshold:
                    self._transition(CircuitState.CLOSED, self._clock())
            elif counters.state == CircuitState.CLOSED:
                counters.failure_count = 0

    async def _record_failure(self, admission: _Admission, exc: Exception) -> None:
        async with self._lock:
            counters = self._counters
            counters.total_calls += 1

            if isinstance(exc, self.config.excluded_exceptions):
                self._release_trial(admission)
                return

            now = self._clock()
            counters.total_failures += 1
            counters.last_failure_time = now

            if admission.generation != counters.generation:
                return
            self._release_trial(admission)

            if counters.state == CircuitState.HALF_OPEN:
                self._transition(CircuitState.OPEN, now)
            elif counters.state == CircuitState.CLOSED:
                counters.failure_count += 1
                if counters.failure_count >= self.config.failure_threshold:
                    self._transition(CircuitState.OPEN, now)

    async def _invoke(self, operation: Callable[[], Awaitable[T]]) -> T:
        if not self.config.timeout_ms:
            return await operation()
        try:
            return await asyncio.wait_for(operation(), timeout=self.config.timeout_ms / 1000.0)
        except asyncio.TimeoutError as exc:
            raise OperationTimeoutError(
                f"Protected call exceeded {self.config.timeout_ms}ms",
                service=self.name,
            ) from exc

    async def _fallback(self, fallback: Fallback, reason: str) -> T:
        self._counters.total_fallbacks += 1
        self._events.emit("breaker_fallback", breaker=self.name, reason=reason)
        result = fallback()
        if inspect.isawaitable(result):
            result = await result
        return result

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        fallback: Optional[Fallback] = None,
    ) -> T:
        """
        Execute ``operation`` with circuit breaker protection.

        Args:
            operation: Zero-argument coroutine function
            fallback: Non-throwing substitute (sync or async). Used when the
                call is short-circuited or fails.

        Raises:
            BreakerOpenError: Short-circuited and no fallback supplied
        """
        admission = await self._admit()

        if admission is None:
            if fallback is not None:
                return await self._fallback(fallback, reason=self.state.value)
            raise BreakerOpenError(self.name, self.state, self.retry_after())

        try:
            result = await self._invoke(operation)
        except asyncio.CancelledError:
            self._release_trial(admission)
            raise
        except Exception as exc:
            await self._record_failure(admission, exc)
            if fallback is None:
                raise
            return await self._fallback(fallback, reason="failure")

        await self._record_success(admission)
        return result
