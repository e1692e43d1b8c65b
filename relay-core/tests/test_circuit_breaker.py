"""
Tests for the Circuit Breaker
=============================
"""

import asyncio

import pytest

from relay_core.circuit_breaker import (
    BreakerConfig,
    BreakerOpenError,
    BreakerRegistry,
    CircuitBreaker,
    CircuitState,
)
from relay_core.exceptions import OperationTimeoutError, ServerError


async def _fail():
    raise ServerError("down", status_code=503)


async def _ok():
    return "ok"


def make_breaker(clock, events, **overrides):
    config = BreakerConfig(
        failure_threshold=overrides.pop("failure_threshold", 3),
        success_threshold=overrides.pop("success_threshold", 2),
        timeout_ms=overrides.pop("timeout_ms", 1000),
        reset_timeout_ms=overrides.pop("reset_timeout_ms", 30000),
        **overrides,
    )
    return CircuitBreaker("query-service", config, events=events, clock=clock)


class TestStateMachine:
    """Tests for the CLOSED -> OPEN -> HALF_OPEN -> CLOSED cycle."""

    @pytest.mark.asyncio
    async def test_opens_after_consecutive_failures(self, clock, events):
        """Should open once failure_threshold consecutive failures are seen."""
        breaker = make_breaker(clock, events)

        for _ in range(3):
            assert await breaker.execute(_fail, fallback=lambda: "busy") == "busy"

        assert breaker.state == CircuitState.OPEN
        transitions = events.named("breaker_state_changed")
        assert transitions[-1]["to_state"] == "open"

    @pytest.mark.asyncio
    async def test_success_resets_failure_count(self, clock, events):
        breaker = make_breaker(clock, events)

        await breaker.execute(_fail, fallback=lambda: None)
        await breaker.execute(_fail, fallback=lambda: None)
        await breaker.execute(_ok)
        await breaker.execute(_fail, fallback=lambda: None)

        assert breaker.state == CircuitState.CLOSED
        assert breaker.failure_count == 1

    @pytest.mark.asyncio
    async def test_open_short_circuits_without_calling(self, clock, events):
        """Should return the fallback without invoking the operation."""
        breaker = make_breaker(clock, events, failure_threshold=1)
        await breaker.execute(_fail, fallback=lambda: None)
        called = False

        async def operation():
            nonlocal called
            called = True
            return "real"

        result = await breaker.execute(operation, fallback=lambda: "busy")

        assert result == "busy"
        assert called is False
        assert breaker.metrics["total_rejections"] == 1

    @pytest.mark.asyncio
    async def test_open_without_fallback_raises(self, clock, events):
        breaker = make_breaker(clock, events, failure_threshold=1)
        await breaker.execute(_fail, fallback=lambda: None)

        with pytest.raises(BreakerOpenError) as exc_info:
            await breaker.execute(_ok)

        assert exc_info.value.service_name == "query-service"
        assert exc_info.value.retry_after == pytest.approx(30.0)

    @pytest.mark.asyncio
    async def test_half_open_successes_close_breaker(self, clock, events):
        """Should close after success_threshold trial successes."""
        breaker = make_breaker(clock, events, failure_threshold=1)
        await breaker.execute(_fail, fallback=lambda: None)

        clock.advance(30)
        assert await breaker.execute(_ok) == "ok"
        assert breaker.state == CircuitState.HALF_OPEN

        assert await breaker.execute(_ok) == "ok"
        assert breaker.state == CircuitState.CLOSED
        assert breaker.failure_count == 0
        assert breaker.success_count == 0

    @pytest.mark.asyncio
    async def test_half_open_failure_reopens_and_restarts_clock(self, clock, events):
        breaker = make_breaker(clock, events, failure_threshold=1)
        await breaker.execute(_fail, fallback=lambda: None)

        clock.advance(30)
        assert await breaker.execute(_fail, fallback=lambda: "busy") == "busy"
        assert breaker.state == CircuitState.OPEN

        clock.advance(29)
        assert await breaker.execute(_ok, fallback=lambda: "busy") == "busy"

        clock.advance(1)
        assert await breaker.execute(_ok) == "ok"
        assert breaker.state == CircuitState.HALF_OPEN

    @pytest.mark.asyncio
    async def test_half_open_admits_single_trial(self, clock, events):
        """Concurrent calls while a trial is in flight short-circuit."""
        breaker = make_breaker(clock, events, failure_threshold=1)
        await breaker.execute(_fail, fallback=lambda: None)
        clock.advance(30)

        release = asyncio.Event()

        async def slow_trial():
            await release.wait()
            return "trial"

        trial = asyncio.create_task(breaker.execute(slow_trial, fallback=lambda: "busy"))
        await asyncio.sleep(0)
        second = await breaker.execute(_ok, fallback=lambda: "busy")
        release.set()

        assert second == "busy"
        assert await trial == "trial"

    @pytest.mark.asyncio
    async def test_slow_call_counts_as_failure(self, clock, events):
        """Should bound protected calls by timeout_ms."""
        breaker = make_breaker(clock, events, failure_threshold=1, timeout_ms=20)

        async def hang():
            await asyncio.sleep(10)

        with pytest.raises(OperationTimeoutError):
            await breaker.execute(hang)

        assert breaker.state == CircuitState.OPEN

    @pytest.mark.asyncio
    async def test_late_result_after_reset_is_ignored(self, clock, events):
        """An outcome admitted before a reset must not move the new state."""
        breaker = make_breaker(clock, events, failure_threshold=1)
        release = asyncio.Event()

        async def slow_failure():
            await release.wait()
            raise ServerError("late", status_code=500)

        task = asyncio.create_task(breaker.execute(slow_failure, fallback=lambda: "busy"))
        await asyncio.sleep(0)
        breaker.reset()
        release.set()

        assert await task == "busy"
        assert breaker.state == CircuitState.CLOSED
        assert breaker.failure_count == 0

    @pytest.mark.asyncio
    async def test_async_fallback(self, clock, events):
        breaker = make_breaker(clock, events)

        async def fallback():
            return "async busy"

        assert await breaker.execute(_fail, fallback=fallback) == "async busy"

    @pytest.mark.asyncio
    async def test_excluded_exceptions_do_not_count(self, clock, events):
        breaker = make_breaker(clock, events, failure_threshold=1, excluded_exceptions=(ValueError,))

        async def invalid():
            raise ValueError("local validation")

        with pytest.raises(ValueError):
            await breaker.execute(invalid)

        assert breaker.state == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_reset_returns_to_closed(self, clock, events):
        breaker = make_breaker(clock, events, failure_threshold=1)
        await breaker.execute(_fail, fallback=lambda: None)

        breaker.reset()

        assert breaker.state == CircuitState.CLOSED
        assert await breaker.execute(_ok) == "ok"


class TestBreakerRegistry:
    """Tests for named breaker management."""

    def test_get_returns_same_instance(self, events):
        registry = BreakerRegistry(events=events)

        first = registry.get("query-service", BreakerConfig(failure_threshold=2))
        second = registry.get("query-service")

        assert first is second
        assert first.config.failure_threshold == 2
        assert "query-service" in registry

    @pytest.mark.asyncio
    async def test_metrics_and_reset(self, clock, events):
        registry = BreakerRegistry(events=events, clock=clock)
        breaker = registry.get("query-service", BreakerConfig(failure_threshold=1))
        await breaker.execute(_fail, fallback=lambda: None)

        assert registry.metrics()["query-service"]["state"] == "open"
        assert registry.reset("query-service") is True
        assert registry.reset("unknown") is False
        assert breaker.state == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_reset_all(self, clock, events):
        registry = BreakerRegistry(events=events, clock=clock)
        for name in ("a", "b"):
            await registry.get(name, BreakerConfig(failure_threshold=1)).execute(
                _fail, fallback=lambda: None
            )

        registry.reset_all()

        assert {m["state"] for m in registry.metrics().values()} == {"closed"}
