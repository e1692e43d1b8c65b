"""
Pipeline Models
===============
States, outcomes and errors of the per-event relay pipeline.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from relay_core.exceptions import RelayError
from relay_core.rate_limit import RateLimitDecision


class PipelineState(str, Enum):
    """Steps an inbound event (and each of its messages) moves through."""
    RECEIVED = "received"
    RATE_CHECKED = "rate_checked"
    AUTHENTICATED = "authenticated"
    NORMALIZED = "normalized"
    FORWARDED = "forwarded"
    REPLIED = "replied"
    DONE = "done"
    FAILED = "failed"


class FailureReason(str, Enum):
    RATE_LIMITED = "rate_limited"
    INVALID_SIGNATURE = "invalid_signature"
    SIGNATURE_NOT_CONFIGURED = "signature_not_configured"
    INVALID_PAYLOAD = "invalid_payload"
    NORMALIZATION_FAILED = "normalization_failed"
    DELIVERY_FAILED = "delivery_failed"
    PARTIAL_DELIVERY = "partial_delivery"
    INTERNAL_ERROR = "internal_error"


class PartialDeliveryError(RelayError):
    """A reply chunk failed for good; the chunks after it were not sent."""

    def __init__(self, sent: int, total: int, cause: Optional[BaseException] = None):
        self.sent = sent
        self.total = total
        self.cause = cause
        super().__init__(f"Delivered {sent} of {total} chunks: {cause}")


@dataclass(frozen=True)
class InboundEvent:
    """One webhook delivery as received over HTTP."""
    identity: str
    raw_body: bytes
    signature_header: Optional[str] = None
    request_id: Optional[str] = None


@dataclass
class MessageOutcome:
    """Result of relaying one message of an event."""
    index: int
    state: PipelineState = PipelineState.AUTHENTICATED
    reason: Optional[FailureReason] = None
    user_id: Optional[str] = None
    trail: List[PipelineState] = field(default_factory=list)
    used_fallback: bool = False
    chunks_sent: int = 0
    chunks_total: int = 0
    error: Optional[str] = None

    def advance(self, state: PipelineState) -> None:
        self.state = state
        self.trail.append(state)

    def fail(self, reason: FailureReason, error: Optional[BaseException] = None) -> None:
        self.reason = reason
        self.error = str(error) if error is not None else None
        self.advance(PipelineState.FAILED)


@dataclass
class EventOutcome:
    """Result of processing one inbound event."""
    state: PipelineState = PipelineState.RECEIVED
    reason: Optional[FailureReason] = None
    trail: List[PipelineState] = field(default_factory=lambda: [PipelineState.RECEIVED])
    rate_limit: Optional[RateLimitDecision] = None
    messages: List[MessageOutcome] = field(default_factory=list)
    pending: List[Tuple[Dict[str, Any], Dict[str, Any]]] = field(default_factory=list, repr=False)

    @property
    def accepted(self) -> bool:
        """True once the event has passed every admission gate."""
        return self.state != PipelineState.FAILED

    def advance(self, state: PipelineState) -> None:
        self.state = state
        self.trail.append(state)

    def fail(self, reason: FailureReason) -> None:
        self.reason = reason
        self.advance(PipelineState.FAILED)
