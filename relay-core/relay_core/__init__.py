"""
Relay Core Library
==================
WhatsApp webhook relay with a resilience layer for its downstream calls.
"""

__version__ = "0.1.0"

# Exceptions
from relay_core.exceptions import (
    RETRYABLE_ERRORS,
    ClientError,
    ConfigurationError,
    DownstreamError,
    MessageTooLongError,
    NormalizationError,
    OperationTimeoutError,
    RateLimitedError,
    RelayError,
    ServerError,
    TransientNetworkError,
)

# Configuration
from relay_core.config import RelaySettings

# Resilient Call Wrapper
from relay_core.retry import (
    BackoffStrategy,
    CallPolicy,
    ResilientCaller,
    default_should_retry,
    execute,
)

# Circuit Breaker
from relay_core.circuit_breaker import (
    BreakerConfig,
    BreakerOpenError,
    BreakerRegistry,
    CircuitBreaker,
    CircuitState,
)

# Rate Limiting
from relay_core.rate_limit import (
    InMemoryCounterStore,
    RateLimitDecision,
    RateLimiter,
    RateLimitResult,
    RedisCounterStore,
)

# Webhook Auth
from relay_core.webhook_auth import (
    SignatureConfigError,
    SignatureInvalid,
    compute_signature,
    is_valid,
    require_valid,
    verify_subscription,
)

# Messaging
from relay_core.messaging import (
    MessageChunk,
    plan_chunks,
    split_message,
)

# WhatsApp
from relay_core.whatsapp import (
    NormalizedQuery,
    WhatsAppSender,
    extract_messages,
    normalize_message,
)

# Query Service
from relay_core.query_service import QueryServiceClient

# Observability
from relay_core.observability import RelayEvents, setup_logging

# Pipeline
from relay_core.pipeline import (
    EventOutcome,
    InboundEvent,
    PartialDeliveryError,
    PipelineState,
    RelayOrchestrator,
    build_runtime,
)

# HTTP
from relay_core.api import create_app

__all__ = [
    # Exceptions
    "RETRYABLE_ERRORS",
    "ClientError",
    "ConfigurationError",
    "DownstreamError",
    "MessageTooLongError",
    "NormalizationError",
    "OperationTimeoutError",
    "RateLimitedError",
    "RelayError",
    "ServerError",
    "TransientNetworkError",
    # Configuration
    "RelaySettings",
    # Resilient Call Wrapper
    "BackoffStrategy",
    "CallPolicy",
    "ResilientCaller",
    "default_should_retry",
    "execute",
    # Circuit Breaker
    "BreakerConfig",
    "BreakerOpenError",
    "BreakerRegistry",
    "CircuitBreaker",
    "CircuitState",
    # Rate Limiting
    "InMemoryCounterStore",
    "RateLimitDecision",
    "RateLimiter",
    "RateLimitResult",
    "RedisCounterStore",
    # Webhook Auth
    "SignatureConfigError",
    "SignatureInvalid",
    "compute_signature",
    "is_valid",
    "require_valid",
    "verify_subscription",
    # Messaging
    "MessageChunk",
    "plan_chunks",
    "split_message",
    # WhatsApp
    "NormalizedQuery",
    "WhatsAppSender",
    "extract_messages",
    "normalize_message",
    # Query Service
    "QueryServiceClient",
    # Observability
    "RelayEvents",
    "setup_logging",
    # Pipeline
    "EventOutcome",
    "InboundEvent",
    "PartialDeliveryError",
    "PipelineState",
    "RelayOrchestrator",
    "build_runtime",
    # HTTP
    "create_app",
]
