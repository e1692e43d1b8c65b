"""
Relay Orchestrator
==================
Per-event pipeline composing the rate limiter, signature check,
normalizer, breaker-protected backend call and chunked reply.

Event states::

    RECEIVED -> RATE_CHECKED -> AUTHENTICATED

Message states (each message of an accepted event, in payload order)::

    NORMALIZED -> FORWARDED -> REPLIED -> DONE

Any step may end in FAILED. A failed message never affects its siblings.
The HTTP layer calls ``admit`` while the request is open and ``deliver``
after it has acknowledged the webhook.
"""

import asyncio
import json
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional

import structlog

from relay_core.circuit_breaker import CircuitBreaker
from relay_core.config import DEFAULT_FALLBACK_ANSWER
from relay_core.exceptions import NormalizationError, RelayError
from relay_core.messaging import WHATSAPP_MESSAGE_MAX_LENGTH, split_message
from relay_core.observability.events import RelayEvents
from relay_core.query_service import QueryServiceClient
from relay_core.rate_limit import RateLimiter
from relay_core.webhook_auth import SignatureConfigError, SignatureInvalid, require_valid
from relay_core.whatsapp import NormalizedQuery, WhatsAppSender, extract_messages, normalize_message

from .models import (
    EventOutcome,
    FailureReason,
    InboundEvent,
    MessageOutcome,
    PartialDeliveryError,
    PipelineState,
)

logger = structlog.get_logger(__name__)

SleepFunc = Callable[[float], Awaitable[Any]]


class RelayOrchestrator:
    """
    Drives inbound webhook events through the relay pipeline.

    Example:
        orchestrator = RelayOrchestrator(
            rate_limiter=limiter,
            query_client=query_client,
            sender=sender,
            query_breaker=breakers.get("query-service", config),
            app_secret=settings.whatsapp.app_secret,
        )
        outcome = await orchestrator.handle(InboundEvent(ip, body, signature))
    """

    def __init__(
        self,
        rate_limiter: RateLimiter,
        query_client: QueryServiceClient,
        sender: WhatsAppSender,
        query_breaker: CircuitBreaker,
        send_breaker: Optional[CircuitBreaker] = None,
        app_secret: Optional[str] = None,
        allow_unsigned: bool = False,
        fallback_answer: str = DEFAULT_FALLBACK_ANSWER,
        enable_splitting: bool = True,
        max_length: int = WHATSAPP_MESSAGE_MAX_LENGTH,
        chunk_delay_ms: int = 500,
        events: Optional[RelayEvents] = None,
        sleep: SleepFunc = asyncio.sleep,
    ):
        self.rate_limiter = rate_limiter
        self.query_client = query_client
        self.sender = sender
        self.query_breaker = query_breaker
        self.send_breaker = send_breaker
        self.app_secret = app_secret
        self.allow_unsigned = allow_unsigned
        self.fallback_answer = fallback_answer
        self.enable_splitting = enable_splitting
        self.max_length = max_length
        self.chunk_delay_ms = chunk_delay_ms
        self._events = events or RelayEvents()
        self._sleep = sleep

    async def handle(self, event: InboundEvent) -> EventOutcome:
        """Admit and deliver an event in one go."""
        outcome = await self.admit(event)
        if outcome.accepted:
            await self.deliver(outcome)
        return outcome

    # =========================================================================
    # Admission
    # =========================================================================

    async def admit(self, event: InboundEvent) -> EventOutcome:
        """
        Run the gates that decide the webhook response.

        Nothing is sent or forwarded here. A rejected event comes back in
        FAILED; an accepted one in AUTHENTICATED with its messages queued.
        """
        outcome = EventOutcome()

        decision = await self.rate_limiter.should_allow(event.identity)
        outcome.rate_limit = decision
        if not decision.allowed:
            return self._reject(event, outcome, FailureReason.RATE_LIMITED)
        outcome.advance(PipelineState.RATE_CHECKED)

        reason = self._authenticate(event)
        if reason is not None:
            return self._reject(event, outcome, reason)
        outcome.advance(PipelineState.AUTHENTICATED)

        try:
            payload = json.loads(event.raw_body)
            outcome.pending = extract_messages(payload)
        except (ValueError, UnicodeDecodeError, NormalizationError) as e:
            return self._reject(event, outcome, FailureReason.INVALID_PAYLOAD, error=str(e))

        return outcome

    def _authenticate(self, event: InboundEvent) -> Optional[FailureReason]:
        try:
            require_valid(event.raw_body, event.signature_header, self.app_secret)
        except SignatureConfigError:
            if self.allow_unsigned:
                logger.warning("webhook_signature_skipped", identity=event.identity)
                return None
            return FailureReason.SIGNATURE_NOT_CONFIGURED
        except SignatureInvalid:
            return FailureReason.INVALID_SIGNATURE
        return None

    def _reject(
        self,
        event: InboundEvent,
        outcome: EventOutcome,
        reason: FailureReason,
        **fields: Any,
    ) -> EventOutcome:
        outcome.fail(reason)
        self._events.emit(
            "event_finished",
            level="warning",
            state=outcome.state.value,
            reason=reason.value,
            identity=event.identity,
            request_id=event.request_id,
            **fields,
        )
        return outcome

    # =========================================================================
    # Delivery
    # =========================================================================

    async def deliver(self, outcome: EventOutcome) -> EventOutcome:
        """
        Relay every queued message of an admitted event, in order.

        Always leaves the event in DONE; per-message results are in
        ``outcome.messages``.
        """
        start = time.perf_counter()
        pending, outcome.pending = outcome.pending, []

        for index, (message, value) in enumerate(pending, start=1):
            result = MessageOutcome(index=index)
            outcome.messages.append(result)
            try:
                await self._relay_message(message, value, result)
            except Exception as e:  # noqa: BLE001
                # isolate the failure to this message
                logger.exception("message_relay_crashed", index=index, user_id=result.user_id)
                result.fail(FailureReason.INTERNAL_ERROR, e)
            self._events.emit(
                "message_finished",
                level="info" if result.state == PipelineState.DONE else "warning",
                index=index,
                user_id=result.user_id,
                state=result.state.value,
                reason=result.reason.value if result.reason else None,
                used_fallback=result.used_fallback,
                chunks_sent=result.chunks_sent,
                chunks_total=result.chunks_total,
                error=result.error,
            )

        outcome.advance(PipelineState.DONE)
        self._events.emit(
            "event_finished",
            state=outcome.state.value,
            reason=None,
            messages=len(outcome.messages),
            failed=sum(1 for m in outcome.messages if m.state == PipelineState.FAILED),
            duration_ms=round((time.perf_counter() - start) * 1000, 2),
        )
        return outcome

    async def _relay_message(
        self,
        message: Dict[str, Any],
        value: Dict[str, Any],
        result: MessageOutcome,
    ) -> None:
        try:
            normalized = normalize_message(message, value)
        except NormalizationError as e:
            result.fail(FailureReason.NORMALIZATION_FAILED, e)
            return
        result.user_id = normalized.user_id
        result.advance(PipelineState.NORMALIZED)

        answer = await self._ask(normalized, result)
        result.advance(PipelineState.FORWARDED)

        try:
            await self._reply(normalized.user_id, answer, result)
        except PartialDeliveryError as e:
            reason = FailureReason.PARTIAL_DELIVERY if e.total > 1 else FailureReason.DELIVERY_FAILED
            result.fail(reason, e)
            return
        result.advance(PipelineState.REPLIED)
        result.advance(PipelineState.DONE)

    async def _ask(self, normalized: NormalizedQuery, result: MessageOutcome) -> str:
        def fallback() -> str:
            result.used_fallback = True
            return self.fallback_answer

        answer = await self.query_breaker.execute(
            lambda: self.query_client.query(normalized),
            fallback=fallback,
        )
        if not answer or not answer.strip():
            return fallback()
        return answer

    def _plan_reply(self, answer: str) -> List[str]:
        if self.enable_splitting and len(answer) > self.max_length:
            return split_message(answer, self.max_length)
        # Over-long text is left for the sender's length check to reject
        return [answer]

    async def _reply(self, recipient: str, answer: str, result: MessageOutcome) -> None:
        chunks = self._plan_reply(answer)
        result.chunks_total = len(chunks)

        for position, chunk in enumerate(chunks):
            if position > 0 and self.chunk_delay_ms > 0:
                await self._sleep(self.chunk_delay_ms / 1000.0)
            try:
                await self._send(recipient, chunk)
            except (RelayError, ValueError) as e:
                raise PartialDeliveryError(result.chunks_sent, len(chunks), cause=e) from e
            result.chunks_sent += 1
            self._events.emit(
                "chunk_sent",
                level="debug",
                recipient=recipient,
                index=position + 1,
                total=len(chunks),
                length=len(chunk),
            )

    async def _send(self, recipient: str, text: str) -> Any:
        if self.send_breaker is None:
            return await self.sender.send(recipient, text)
        return await self.send_breaker.execute(lambda: self.sender.send(recipient, text))
