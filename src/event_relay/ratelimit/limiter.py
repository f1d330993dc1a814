"""
Module: limiter.py
Description: Per-identity fixed-window rate limiter.

Each identity gets a budget of points per fixed window (1000 per 60
seconds by default, overridable per tier or per call). Every call adds
its cost to the identity's counter in the shared store; a count above
the budget is denied with the seconds left until the window resets.

When the store is unreachable the limiter fails open: the call is
allowed and a warning is logged. Rate limiting protects the read path,
it does not guard correctness, so availability wins.
"""

import math
from dataclasses import dataclass
from typing import Dict, Optional

from event_relay.errors import StoreUnavailableError
from event_relay.ratelimit.stores import CounterStore
from event_relay.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class RateLimitPolicy:
    """Point budget per fixed window."""

    points: int = 1000
    duration: int = 60

    def __post_init__(self):
        if self.points < 1:
            raise ValueError("points must be at least 1")
        if self.duration < 1:
            raise ValueError("duration must be at least 1 second")


@dataclass(frozen=True)
class RateLimitResult:
    """
    Outcome of one consume call.

    Attributes:
        allowed: Whether the call may proceed
        limit: Budget of the window that was applied
        remaining: Points left in the window
        retry_after_seconds: Seconds until the next window (0 when allowed)
        consumed: Points consumed in the window so far
        fail_open: True when allowed only because the store was unreachable
    """

    allowed: bool
    limit: int
    remaining: int
    retry_after_seconds: int = 0
    consumed: int = 0
    fail_open: bool = False


class FixedWindowRateLimiter:
    """
    Fixed-window rate limiter over a shared counter store.

    Example:
        >>> limiter = FixedWindowRateLimiter(InMemoryCounterStore())
        >>> result = await limiter.consume("key_abc123")
        >>> result.allowed
        True
    """

    def __init__(
        self,
        store: CounterStore,
        default_policy: Optional[RateLimitPolicy] = None,
        key_prefix: str = "rate",
        tiers: Optional[Dict[str, int]] = None
    ):
        self.store = store
        self.default_policy = default_policy or RateLimitPolicy()
        self.key_prefix = key_prefix
        self.tiers = dict(tiers or {})

    def policy_for_tier(self, tier: Optional[str]) -> RateLimitPolicy:
        """Policy for an API key tier; unknown tiers get the default."""
        points = self.tiers.get(tier) if tier else None
        if points is None:
            return self.default_policy
        return RateLimitPolicy(points=points, duration=self.default_policy.duration)

    async def consume(
        self,
        identity_key: str,
        cost: int = 1,
        policy: Optional[RateLimitPolicy] = None
    ) -> RateLimitResult:
        """
        Spend points from an identity's budget.

        Args:
            identity_key: Identity being limited (e.g. API key id)
            cost: Points this call costs
            policy: Override for the default policy

        Returns:
            RateLimitResult; a denial is a result, never an exception
        """
        if not identity_key or not isinstance(identity_key, str):
            raise ValueError("identity_key must be a non-empty string")
        if cost < 1:
            raise ValueError("cost must be at least 1")

        policy = policy or self.default_policy
        key = f"{self.key_prefix}:{identity_key}"

        try:
            state = await self.store.increment(key, cost, policy.duration)
        except StoreUnavailableError as e:
            logger.warning(
                "Rate limit store unavailable, allowing request",
                identity=identity_key,
                error=str(e)
            )
            return RateLimitResult(
                allowed=True,
                limit=policy.points,
                remaining=policy.points,
                fail_open=True
            )

        remaining = max(0, policy.points - state.count)

        if state.count > policy.points:
            retry_after = max(1, math.ceil(state.ttl_remaining))
            logger.info(
                "Rate limit exceeded",
                identity=identity_key,
                consumed=state.count,
                limit=policy.points,
                retry_after_seconds=retry_after
            )
            return RateLimitResult(
                allowed=False,
                limit=policy.points,
                remaining=0,
                retry_after_seconds=retry_after,
                consumed=state.count
            )

        return RateLimitResult(
            allowed=True,
            limit=policy.points,
            remaining=remaining,
            consumed=state.count
        )
