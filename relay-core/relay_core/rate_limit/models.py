"""
Rate Limit Models
=================
Data models for fixed-window rate limiting.
"""

from typing import Optional
from dataclasses import dataclass
from enum import Enum


class RateLimitResult(str, Enum):
    """Rate limit decision result."""
    ALLOWED = "allowed"
    BLOCKED = "blocked"
    DEGRADED = "degraded"


@dataclass
class RateLimitWindow:
    """Counter for one identity within its current window."""
    count: int
    expires_at: float  # monotonic seconds


@dataclass(frozen=True)
class WindowCount:
    """Post-increment view of a window returned by a counter store."""
    count: int
    expires_in_ms: int


@dataclass
class RateLimitDecision:
    """Rate limit check result with quota information."""
    allowed: bool
    limit: int
    count: int = 0
    retry_after_ms: Optional[int] = None  # Set when blocked
    backend: str = "memory"
    degraded: bool = False

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.count)

    @property
    def retry_after_seconds(self) -> Optional[int]:
        if self.retry_after_ms is None:
            return None
        return max(1, -(-self.retry_after_ms // 1000))

    @property
    def result(self) -> RateLimitResult:
        if self.degraded:
            return RateLimitResult.DEGRADED
        return RateLimitResult.ALLOWED if self.allowed else RateLimitResult.BLOCKED
