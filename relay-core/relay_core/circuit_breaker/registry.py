"""
Circuit Breaker Registry
========================
Injectable registry of named circuit breakers, one per downstream dependency.
"""

import time
from typing import Any, Callable, Dict, Optional

import structlog

from relay_core.observability.events import RelayEvents

from .breaker import CircuitBreaker
from .models import BreakerConfig

logger = structlog.get_logger(__name__)


class BreakerRegistry:
    """
    Holds the breakers of one relay instance.

    Breaker state is process-lifetime state owned by whoever owns the
    registry; tests and embedders create their own instance.
    """

    def __init__(
        self,
        events: Optional[RelayEvents] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._breakers: Dict[str, CircuitBreaker] = {}
        self._events = events or RelayEvents()
        self._clock = clock

    def get(
        self,
        service_name: str,
        config: Optional[BreakerConfig] = None,
    ) -> CircuitBreaker:
        """
        Get or create the circuit breaker for a service.

        Args:
            service_name: Name of the downstream service
            config: Optional configuration (only used if creating new breaker)
        """
        if service_name not in self._breakers:
            self._breakers[service_name] = CircuitBreaker(
                name=service_name,
                config=config,
                events=self._events,
                clock=self._clock,
            )
        return self._breakers[service_name]

    def __contains__(self, service_name: str) -> bool:
        return service_name in self._breakers

    def metrics(self) -> Dict[str, Dict[str, Any]]:
        """Get metrics for all registered circuit breakers."""
        return {
            name: breaker.metrics
            for name, breaker in self._breakers.items()
        }

    def reset(self, service_name: str) -> bool:
        """Reset a circuit breaker to closed state. Returns False if unknown."""
        breaker = self._breakers.get(service_name)
        if breaker is None:
            return False
        breaker.reset()
        logger.info("circuit_reset", service=service_name)
        return True

    def reset_all(self) -> None:
        """Reset all circuit breakers to closed state."""
        for name in list(self._breakers):
            self.reset(name)
