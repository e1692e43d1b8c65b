from .client import ResilientHttpClient
from relay_core.exceptions import (
    RETRYABLE_ERRORS,
    ClientError,
    DownstreamError,
    OperationTimeoutError,
    RateLimitedError,
    ServerError,
    TransientNetworkError,
)

__all__ = [
    "ResilientHttpClient",
    "RETRYABLE_ERRORS",
    "ClientError",
    "DownstreamError",
    "OperationTimeoutError",
    "RateLimitedError",
    "ServerError",
    "TransientNetworkError",
]
