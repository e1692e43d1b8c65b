"""
HTTP Surface
============
FastAPI routes for the webhook, health checks and metrics.
"""

from .app import create_app, create_app_from_env
from .dependencies import client_identity, get_runtime
from .health import ComponentHealth, HealthResponse, HealthStatus, create_health_router
from .webhook import router as webhook_router

__all__ = [
    # App
    "create_app",
    "create_app_from_env",
    # Dependencies
    "client_identity",
    "get_runtime",
    # Health
    "ComponentHealth",
    "HealthResponse",
    "HealthStatus",
    "create_health_router",
    # Webhook
    "webhook_router",
]
