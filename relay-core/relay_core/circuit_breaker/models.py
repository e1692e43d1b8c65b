"""
Circuit Breaker Models
======================
Data models and enums for the circuit breaker pattern.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from relay_core.exceptions import RelayError


class CircuitState(str, Enum):
    """Circuit breaker states."""
    CLOSED = "closed"        # Normal operation
    OPEN = "open"            # Failing, short-circuit to fallback
    HALF_OPEN = "half_open"  # Trial calls test recovery


class BreakerOpenError(RelayError):
    """Raised when a call is short-circuited and no fallback was supplied."""

    def __init__(self, service_name: str, state: CircuitState, retry_after: float):
        self.service_name = service_name
        self.state = state
        self.retry_after = retry_after
        super().__init__(
            f"Circuit breaker for '{service_name}' is {state.value}. "
            f"Retry after {retry_after:.1f}s"
        )


@dataclass(frozen=True)
class BreakerConfig:
    """Configuration for a circuit breaker bound to one dependency."""
    failure_threshold: int = 5           # Consecutive failures before opening
    success_threshold: int = 2           # Trial successes to close from half-open
    timeout_ms: Optional[int] = 60000    # Bound on a single protected attempt
    reset_timeout_ms: int = 30000        # Time spent open before a trial
    half_open_max_calls: int = 1         # Concurrent trials while half-open
    excluded_exceptions: tuple = ()      # Exceptions that don't count as failures


@dataclass
class BreakerCounters:
    """Runtime state of a circuit breaker."""
    state: CircuitState = CircuitState.CLOSED
    failure_count: int = 0
    success_count: int = 0
    opened_at: Optional[float] = None
    last_failure_time: Optional[float] = None
    half_open_in_flight: int = 0
    generation: int = 0

    # Metrics
    total_calls: int = 0
    total_failures: int = 0
    total_successes: int = 0
    total_rejections: int = 0
    total_fallbacks: int = 0
