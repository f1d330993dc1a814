"""
Package: ratelimit
Description: Admission control for the read API.

Per-identity fixed-window counters in a shared store, failing open
when the store cannot be reached.
"""

from .limiter import FixedWindowRateLimiter, RateLimitPolicy, RateLimitResult
from .stores import CounterState, DynamoDBCounterStore, InMemoryCounterStore

__all__ = [
    "FixedWindowRateLimiter",
    "RateLimitPolicy",
    "RateLimitResult",
    "CounterState",
    "DynamoDBCounterStore",
    "InMemoryCounterStore",
]
