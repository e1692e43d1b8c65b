"""
Call Policies
=============
Per-call-site timeout and retry configuration.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

from relay_core.exceptions import RETRYABLE_ERRORS, ClientError

RetryPredicate = Callable[[Optional[BaseException], Any], bool]


class BackoffStrategy(str, Enum):
    """How the delay grows between attempts."""
    FIXED = "fixed"
    EXPONENTIAL = "exponential"


def is_retryable_status(status_code: int) -> bool:
    """429 and 5xx responses are worth another attempt."""
    return status_code == 429 or 500 <= status_code < 600


def default_should_retry(error: Optional[BaseException], response: Any) -> bool:
    """
    Retry timeouts, transient network errors, 429 and 5xx.

    Args:
        error: Exception raised by the attempt, if any
        response: Value returned by the attempt, if any. Objects exposing a
            ``status_code`` attribute are treated as HTTP responses.
    """
    if error is not None:
        if isinstance(error, ClientError):
            return False
        return isinstance(error, RETRYABLE_ERRORS)

    status_code = getattr(response, "status_code", None)
    if isinstance(status_code, int):
        return is_retryable_status(status_code)
    return False


@dataclass(frozen=True)
class CallPolicy:
    """Timeout and retry settings for one call site."""
    timeout_ms: int = 15000
    max_retries: int = 2
    retry_delay_ms: int = 1000
    should_retry: RetryPredicate = default_should_retry
    backoff: BackoffStrategy = BackoffStrategy.FIXED
    backoff_multiplier: float = 2.0
    max_delay_ms: int = 30000

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def delay_ms(self, attempt: int) -> float:
        """Delay to wait after the given (1-based) failed attempt."""
        if self.backoff == BackoffStrategy.FIXED:
            return float(self.retry_delay_ms)
        delay = self.retry_delay_ms * (self.backoff_multiplier ** (attempt - 1))
        return float(min(delay, self.max_delay_ms))
