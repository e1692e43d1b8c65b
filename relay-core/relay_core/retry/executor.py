"""
Resilient Call Wrapper
======================
Timeout + retry engine around any asynchronous unit of work.

Every attempt runs under its own deadline; an attempt that misses it is
cancelled and surfaces as ``OperationTimeoutError``. Failures are handed to
the policy's ``should_retry`` predicate and retried with the policy delay
until ``max_retries + 1`` attempts have been made.

Usage:
    caller = ResilientCaller("whatsapp")
    response = await caller.execute(
        lambda: client.post(url, json=payload),
        CallPolicy(timeout_ms=15000, max_retries=2, retry_delay_ms=1000),
    )
"""

import asyncio
import time
from typing import Any, Awaitable, Callable, Optional, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    retry_if_result,
    stop_after_attempt,
)

from relay_core.exceptions import OperationTimeoutError
from relay_core.observability.events import RelayEvents

from .policy import CallPolicy

T = TypeVar("T")

SleepFunc = Callable[[float], Awaitable[Any]]


def _last_outcome(retry_state: RetryCallState) -> Any:
    # Re-raises the last error, or hands back the last (retryable) response.
    return retry_state.outcome.result()


class ResilientCaller:
    """
    Applies a ``CallPolicy`` to operations against one named dependency.

    The wrapper does not deduplicate: operations must tolerate being
    invoked more than once.
    """

    def __init__(
        self,
        name: str = "default",
        events: Optional[RelayEvents] = None,
        sleep: SleepFunc = asyncio.sleep,
    ):
        self.name = name
        self._events = events or RelayEvents()
        self._sleep = sleep

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        policy: CallPolicy,
    ) -> T:
        """
        Run ``operation`` under ``policy``.

        Returns:
            The first result the policy accepts, or the last response when
            retries ran out on a response-shaped failure.

        Raises:
            OperationTimeoutError: The final attempt timed out
            Exception: The final attempt's error when it is not retried
        """
        attempts = 0

        async def attempt() -> T:
            nonlocal attempts
            attempts += 1
            return await self._run_attempt(operation, policy, attempts)

        retrying = AsyncRetrying(
            stop=stop_after_attempt(policy.max_attempts),
            wait=lambda state: policy.delay_ms(state.attempt_number) / 1000.0,
            retry=(
                retry_if_exception(
                    lambda exc: isinstance(exc, Exception) and policy.should_retry(exc, None)
                )
                | retry_if_result(lambda result: policy.should_retry(None, result))
            ),
            retry_error_callback=_last_outcome,
            before_sleep=self._report_retry,
            sleep=self._sleep,
        )
        return await retrying(attempt)

    async def _run_attempt(
        self,
        operation: Callable[[], Awaitable[T]],
        policy: CallPolicy,
        attempt: int,
    ) -> T:
        self._events.emit(
            "call_attempt_started",
            level="debug",
            dependency=self.name,
            attempt=attempt,
            max_attempts=policy.max_attempts,
        )
        start = time.perf_counter()
        outcome = "error"
        fields = {}
        try:
            result = await asyncio.wait_for(operation(), timeout=policy.timeout_ms / 1000.0)
        except asyncio.TimeoutError as exc:
            outcome = "timeout"
            raise OperationTimeoutError(
                f"Attempt {attempt} timed out after {policy.timeout_ms}ms",
                service=self.name,
            ) from exc
        except Exception as exc:
            fields["error"] = str(exc)
            fields["error_type"] = type(exc).__name__
            raise
        else:
            status_code = getattr(result, "status_code", None)
            if isinstance(status_code, int):
                fields["status_code"] = status_code
            outcome = "retryable_response" if policy.should_retry(None, result) else "success"
            return result
        finally:
            self._events.emit(
                "call_attempt_finished",
                level="debug" if outcome == "success" else "warning",
                dependency=self.name,
                attempt=attempt,
                outcome=outcome,
                duration_ms=round((time.perf_counter() - start) * 1000, 2),
                **fields,
            )

    def _report_retry(self, retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome.failed else None
        self._events.emit(
            "call_retry_scheduled",
            level="warning",
            dependency=self.name,
            attempt=retry_state.attempt_number,
            delay_ms=round(retry_state.next_action.sleep * 1000, 2),
            error=str(error) if error else None,
        )


async def execute(
    operation: Callable[[], Awaitable[T]],
    policy: CallPolicy,
    name: str = "default",
    events: Optional[RelayEvents] = None,
) -> T:
    """One-shot helper around ``ResilientCaller.execute``."""
    return await ResilientCaller(name, events=events).execute(operation, policy)
