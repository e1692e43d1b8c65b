"""
Relay Runtime
=============
Builds the long-lived collaborators of one relay process from settings.
"""

import asyncio
from dataclasses import dataclass
from typing import Optional

import httpx
import structlog
from redis.asyncio import Redis

from relay_core.circuit_breaker import BreakerConfig, BreakerRegistry
from relay_core.config import RelaySettings
from relay_core.exceptions import MessageTooLongError
from relay_core.http import ResilientHttpClient
from relay_core.observability.events import RelayEvents
from relay_core.query_service import QueryServiceClient
from relay_core.rate_limit import (
    InMemoryCounterStore,
    RateLimiter,
    RedisCounterStore,
    create_redis_client,
)
from relay_core.retry.executor import SleepFunc
from relay_core.whatsapp import WhatsAppSender

from .orchestrator import RelayOrchestrator

logger = structlog.get_logger(__name__)

QUERY_SERVICE = "query-service"
WHATSAPP_API = "whatsapp-api"

# Attempts are bounded by the call policy; local validation errors are not counted
WHATSAPP_BREAKER = BreakerConfig(
    failure_threshold=5,
    success_threshold=2,
    timeout_ms=None,
    excluded_exceptions=(MessageTooLongError, ValueError),
)


@dataclass
class RelayRuntime:
    """Everything a running relay owns and must close on shutdown."""
    settings: RelaySettings
    orchestrator: RelayOrchestrator
    breakers: BreakerRegistry
    rate_limiter: RateLimiter
    query_client: QueryServiceClient
    sender: WhatsAppSender
    redis_client: Optional[Redis] = None

    async def aclose(self) -> None:
        await self.query_client.aclose()
        await self.sender.aclose()
        if self.redis_client is not None:
            await self.redis_client.aclose()
        logger.info("relay_runtime_closed")


def build_rate_limiter(
    settings: RelaySettings,
    redis_client: Optional[Redis] = None,
    events: Optional[RelayEvents] = None,
) -> RateLimiter:
    """Redis-backed limiter with a local fallback, or local-only without Redis."""
    limits = settings.rate_limit
    if redis_client is not None:
        store = RedisCounterStore(redis_client)
        fallback = InMemoryCounterStore()
    else:
        store = InMemoryCounterStore()
        fallback = None
    return RateLimiter(
        limit=limits.max_requests,
        window_ms=limits.window_ms,
        store=store,
        fallback=fallback,
        recheck_interval_ms=limits.recheck_ms,
        events=events,
    )


def build_runtime(
    settings: RelaySettings,
    events: Optional[RelayEvents] = None,
    redis_client: Optional[Redis] = None,
    query_transport: Optional[httpx.AsyncBaseTransport] = None,
    whatsapp_transport: Optional[httpx.AsyncBaseTransport] = None,
    sleep: SleepFunc = asyncio.sleep,
) -> RelayRuntime:
    """
    Wire a relay from settings.

    Args:
        settings: Validated settings
        events: Shared event sink
        redis_client: Use this client instead of connecting to ``REDIS_URL``
        query_transport: httpx transport for the query service (tests)
        whatsapp_transport: httpx transport for the Cloud API (tests)
        sleep: Sleep used for retry and inter-chunk delays
    """
    events = events or RelayEvents()

    if redis_client is None and settings.rate_limit.redis_url:
        redis_client = create_redis_client(settings.rate_limit.redis_url)
    rate_limiter = build_rate_limiter(settings, redis_client, events)

    breakers = BreakerRegistry(events=events)
    query_breaker = breakers.get(QUERY_SERVICE, settings.query_service.breaker_config)
    send_breaker = breakers.get(WHATSAPP_API, WHATSAPP_BREAKER)

    query_policy = settings.query_service.call_policy
    query_http = ResilientHttpClient(
        QUERY_SERVICE,
        query_policy,
        client=httpx.AsyncClient(
            timeout=query_policy.timeout_ms / 1000.0,
            transport=query_transport,
        ),
        events=events,
        sleep=sleep,
    )
    whatsapp_policy = settings.whatsapp.call_policy
    whatsapp_http = ResilientHttpClient(
        WHATSAPP_API,
        whatsapp_policy,
        client=httpx.AsyncClient(
            timeout=whatsapp_policy.timeout_ms / 1000.0,
            transport=whatsapp_transport,
        ),
        events=events,
        sleep=sleep,
    )

    query_client = QueryServiceClient(query_http, settings.query_service.url)
    sender = WhatsAppSender(
        whatsapp_http,
        token=settings.whatsapp.token,
        phone_number_id=settings.whatsapp.phone_number_id,
        api_version=settings.whatsapp.api_version,
        max_length=settings.messaging.max_length,
    )

    orchestrator = RelayOrchestrator(
        rate_limiter=rate_limiter,
        query_client=query_client,
        sender=sender,
        query_breaker=query_breaker,
        send_breaker=send_breaker,
        app_secret=settings.whatsapp.app_secret,
        allow_unsigned=settings.whatsapp.allow_unsigned,
        fallback_answer=settings.messaging.fallback_answer,
        enable_splitting=settings.messaging.enable_splitting,
        max_length=settings.messaging.max_length,
        chunk_delay_ms=settings.messaging.chunk_delay_ms,
        events=events,
        sleep=sleep,
    )

    logger.info(
        "relay_runtime_built",
        rate_limit_store=rate_limiter.store.name,
        query_url=query_client.url,
        splitting=settings.messaging.enable_splitting,
    )
    return RelayRuntime(
        settings=settings,
        orchestrator=orchestrator,
        breakers=breakers,
        rate_limiter=rate_limiter,
        query_client=query_client,
        sender=sender,
        redis_client=redis_client,
    )
