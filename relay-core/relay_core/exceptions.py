"""
Relay Exceptions
================
Failure taxonomy for calls to the query service and the WhatsApp Cloud API.
"""

from typing import Any, Optional


class RelayError(Exception):
    """Base exception for every failure the relay raises itself."""
    pass


class ConfigurationError(RelayError):
    """Raised when required settings are missing or malformed."""
    pass


class DownstreamError(RelayError):
    """Base exception for all downstream communication errors."""

    def __init__(
        self,
        message: str,
        service: str = "unknown",
        status_code: Optional[int] = None,
        details: Any = None,
    ):
        self.message = message
        self.service = service
        self.status_code = status_code
        self.details = details
        super().__init__(f"[{service}] {message} (Status: {status_code})")


class OperationTimeoutError(DownstreamError):
    """Raised when a single attempt does not settle before its deadline."""
    pass


class TransientNetworkError(DownstreamError):
    """Raised on connection refused/reset and similar network failures."""
    pass


class RateLimitedError(DownstreamError):
    """Raised when the downstream answers 429."""

    def __init__(self, message: str, retry_after: Optional[float] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.retry_after = retry_after


class ServerError(DownstreamError):
    """Raised when the downstream answers 5xx."""
    pass


class ClientError(DownstreamError):
    """Raised on 4xx responses other than 429. Never retried."""
    pass


class MessageTooLongError(RelayError):
    """Outbound text exceeds the channel's hard length limit."""

    def __init__(self, length: int, limit: int):
        self.length = length
        self.limit = limit
        super().__init__(f"Message length {length} exceeds limit of {limit} characters")


class NormalizationError(RelayError):
    """Inbound message could not be converted into a query."""
    pass


RETRYABLE_ERRORS = (
    OperationTimeoutError,
    TransientNetworkError,
    RateLimitedError,
    ServerError,
)
