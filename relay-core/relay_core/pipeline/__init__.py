"""
Relay Pipeline
==============
Per-event orchestration of the relay and the runtime that hosts it.
"""

from .models import (
    EventOutcome,
    FailureReason,
    InboundEvent,
    MessageOutcome,
    PartialDeliveryError,
    PipelineState,
)
from .orchestrator import RelayOrchestrator
from .factory import (
    QUERY_SERVICE,
    WHATSAPP_API,
    RelayRuntime,
    build_rate_limiter,
    build_runtime,
)

__all__ = [
    # Models
    "EventOutcome",
    "FailureReason",
    "InboundEvent",
    "MessageOutcome",
    "PartialDeliveryError",
    "PipelineState",
    # Orchestrator
    "RelayOrchestrator",
    # Runtime
    "QUERY_SERVICE",
    "WHATSAPP_API",
    "RelayRuntime",
    "build_rate_limiter",
    "build_runtime",
]
