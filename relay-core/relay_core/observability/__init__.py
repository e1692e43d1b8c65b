"""
Observability
=============
Structured logging, relay events and Prometheus metrics.
"""

from .events import RelayEvents
from .logging import RequestLoggingMiddleware, setup_logging
from .metrics import (
    METRICS_CONTENT_TYPE,
    RELAY_REGISTRY,
    get_metrics_text,
    record_event,
)

__all__ = [
    "RelayEvents",
    "RequestLoggingMiddleware",
    "setup_logging",
    "METRICS_CONTENT_TYPE",
    "RELAY_REGISTRY",
    "get_metrics_text",
    "record_event",
]
