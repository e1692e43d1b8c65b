"""
Circuit Breaker
===============
Async circuit breaker for downstream resilience.

States:

1. CLOSED: Normal operation, calls flow through
2. OPEN: Dependency is failing, calls short-circuit to the fallback
3. HALF-OPEN: A bounded number of trial calls test recovery

Usage:
    from relay_core.circuit_breaker import BreakerRegistry, BreakerConfig

    breakers = BreakerRegistry()
    breaker = breakers.get("query-service", BreakerConfig(failure_threshold=5))
    answer = await breaker.execute(call_backend, fallback=lambda: BUSY_TEXT)
"""

from .models import (
    BreakerConfig,
    BreakerCounters,
    BreakerOpenError,
    CircuitState,
)
from .breaker import CircuitBreaker
from .registry import BreakerRegistry

__all__ = [
    # Models
    "BreakerConfig",
    "BreakerCounters",
    "BreakerOpenError",
    "CircuitState",
    # Breaker
    "CircuitBreaker",
    # Registry
    "BreakerRegistry",
]
