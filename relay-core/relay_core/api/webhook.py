"""
Webhook Routes
==============
Subscription handshake and inbound event receiver.
"""

from typing import Optional

import structlog
from fastapi import APIRouter, BackgroundTasks, Depends, Request, status
from fastapi.responses import JSONResponse, PlainTextResponse

from relay_core.pipeline import FailureReason, InboundEvent, RelayRuntime
from relay_core.webhook_auth import SIGNATURE_HEADER, verify_subscription

from .dependencies import client_identity, get_runtime

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["Webhook"])

_REJECTION_STATUS = {
    FailureReason.RATE_LIMITED: status.HTTP_429_TOO_MANY_REQUESTS,
    FailureReason.INVALID_SIGNATURE: status.HTTP_401_UNAUTHORIZED,
    FailureReason.SIGNATURE_NOT_CONFIGURED: status.HTTP_401_UNAUTHORIZED,
    FailureReason.INVALID_PAYLOAD: status.HTTP_400_BAD_REQUEST,
}

_REJECTION_MESSAGE = {
    FailureReason.RATE_LIMITED: "Too many requests",
    FailureReason.INVALID_SIGNATURE: "Invalid signature",
    FailureReason.SIGNATURE_NOT_CONFIGURED: "Invalid signature",
    FailureReason.INVALID_PAYLOAD: "Invalid JSON",
}


def _identity(request: Request, runtime: RelayRuntime) -> str:
    settings = runtime.settings
    return client_identity(request, settings.trust_proxy, settings.trusted_proxy_hops)


def _too_many_requests(retry_after_seconds: Optional[int]) -> JSONResponse:
    headers = {}
    if retry_after_seconds is not None:
        headers["Retry-After"] = str(retry_after_seconds)
    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content={"error": "Too many requests"},
        headers=headers,
    )


@router.get("/")
async def service_status(runtime: RelayRuntime = Depends(get_runtime)):
    return {"status": "ok", "service": runtime.settings.service_name}


@router.get("/webhook")
async def verify_webhook(request: Request, runtime: RelayRuntime = Depends(get_runtime)):
    """
    Subscription handshake.

    Echoes ``hub.challenge`` as plain text when the verify token matches.
    """
    identity = _identity(request, runtime)
    decision = await runtime.rate_limiter.should_allow(identity)
    if not decision.allowed:
        return _too_many_requests(decision.retry_after_seconds)

    params = request.query_params
    challenge = verify_subscription(
        params.get("hub.mode"),
        params.get("hub.verify_token"),
        params.get("hub.challenge"),
        runtime.settings.whatsapp.verify_token,
    )
    if challenge is None:
        logger.warning("webhook_verification_failed", identity=identity, mode=params.get("hub.mode"))
        return PlainTextResponse("Forbidden", status_code=status.HTTP_403_FORBIDDEN)

    logger.info("webhook_verified", identity=identity)
    return PlainTextResponse(challenge)


@router.post("/webhook")
async def receive_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    runtime: RelayRuntime = Depends(get_runtime),
):
    """
    Inbound events.

    The admission gates run before responding; relaying runs after the
    acknowledgement has been sent.
    """
    event = InboundEvent(
        identity=_identity(request, runtime),
        raw_body=await request.body(),
        signature_header=request.headers.get(SIGNATURE_HEADER),
        request_id=request.headers.get("x-request-id"),
    )
    orchestrator = runtime.orchestrator
    outcome = await orchestrator.admit(event)

    if not outcome.accepted:
        if outcome.reason == FailureReason.RATE_LIMITED:
            return _too_many_requests(outcome.rate_limit.retry_after_seconds)
        return JSONResponse(
            status_code=_REJECTION_STATUS.get(outcome.reason, status.HTTP_400_BAD_REQUEST),
            content={"error": _REJECTION_MESSAGE.get(outcome.reason, "Rejected")},
        )

    background_tasks.add_task(orchestrator.deliver, outcome)
    return {"status": "ok"}
