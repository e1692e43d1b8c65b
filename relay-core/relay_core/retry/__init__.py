"""
Resilient Call Wrapper
======================
Per-attempt timeouts and policy-driven retries for downstream calls.
"""

from .policy import (
    BackoffStrategy,
    CallPolicy,
    RetryPredicate,
    default_should_retry,
    is_retryable_status,
)
from .executor import ResilientCaller, execute

__all__ = [
    # Policy
    "BackoffStrategy",
    "CallPolicy",
    "RetryPredicate",
    "default_should_retry",
    "is_retryable_status",
    # Executor
    "ResilientCaller",
    "execute",
]
