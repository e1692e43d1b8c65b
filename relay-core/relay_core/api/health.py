"""
Health and Metrics Routes
=========================
Health checks with component status, plus the Prometheus scrape endpoint.
"""

import time
from enum import Enum
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel

from relay_core.circuit_breaker import CircuitState
from relay_core.observability import METRICS_CONTENT_TYPE, get_metrics_text
from relay_core.pipeline import RelayRuntime
from relay_core.rate_limit import CounterStore

from .dependencies import get_runtime


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


class ComponentHealth(BaseModel):
    status: str
    latency_ms: Optional[float] = None
    error: Optional[str] = None
    details: Optional[Dict[str, Any]] = None


class HealthResponse(BaseModel):
    status: HealthStatus
    service: str
    version: str
    components: Dict[str, ComponentHealth]
    timestamp: float


async def check_store(store: CounterStore) -> ComponentHealth:
    """Check the rate-limit store's connectivity and latency."""
    start = time.time()
    reachable = await store.ping()
    latency = (time.time() - start) * 1000
    if not reachable:
        return ComponentHealth(status="error", error=f"{store.name} store unreachable")
    return ComponentHealth(status="connected", latency_ms=round(latency, 2))


def check_breakers(runtime: RelayRuntime) -> Dict[str, ComponentHealth]:
    """One component per circuit breaker, named after its dependency."""
    components = {}
    for name, metrics in runtime.breakers.metrics().items():
        components[f"breaker:{name}"] = ComponentHealth(status=metrics["state"], details=metrics)
    return components


def create_health_router(version: str = "1.0.0") -> APIRouter:
    """
    Create the health check router.

    Returns:
        FastAPI router with /health, /health/live, /health/ready and /metrics
    """
    router = APIRouter(tags=["Health"])

    @router.get("/health", response_model=HealthResponse)
    async def health_check(runtime: RelayRuntime = Depends(get_runtime)) -> HealthResponse:
        """Comprehensive health check with all component statuses."""
        components: Dict[str, ComponentHealth] = {}
        overall_status = HealthStatus.HEALTHY

        # Store outages only loosen rate limiting
        store = runtime.rate_limiter.store
        store_health = await check_store(store)
        components[store.name] = store_health
        if store_health.status == "error":
            overall_status = HealthStatus.DEGRADED

        for name, breaker_health in check_breakers(runtime).items():
            components[name] = breaker_health
            if breaker_health.status != CircuitState.CLOSED.value:
                overall_status = HealthStatus.DEGRADED

        components["rate_limiter"] = ComponentHealth(
            status="fallback" if runtime.rate_limiter.using_fallback else "ok",
            details={"store": runtime.rate_limiter.store.name},
        )

        return HealthResponse(
            status=overall_status,
            service=runtime.settings.service_name,
            version=version,
            components=components,
            timestamp=time.time(),
        )

    @router.get("/health/live")
    async def liveness_probe():
        """Kubernetes liveness probe - always returns 200 if service is running."""
        return {"status": "alive"}

    @router.get("/health/ready")
    async def readiness_probe(runtime: RelayRuntime = Depends(get_runtime)):
        """Kubernetes readiness probe - ready once settings are complete."""
        missing = runtime.settings.missing_required()
        if missing:
            return Response(
                content='{"status": "not_ready", "reason": "configuration_incomplete"}',
                status_code=503,
                media_type="application/json",
            )
        return {"status": "ready"}

    @router.get("/metrics")
    async def metrics():
        return Response(content=get_metrics_text(), media_type=METRICS_CONTENT_TYPE)

    return router
