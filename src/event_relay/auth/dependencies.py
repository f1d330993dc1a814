"""
Module: dependencies.py
Description: FastAPI dependencies for identity and admission control.

Every /v1 request goes through require_identity: the x-api-key header
is hashed and looked up, revoked or unknown keys are rejected, and the
key's rate limit budget is charged one point. Last-used and daily usage
writes happen in the background after the request is admitted.

Key Components:
- Identity: Resolved caller
- RateLimitExceededError: 429 carrying retry-after seconds
- get_services(): Services bundle from the app state
- require_identity(): Authentication + rate limiting dependency

Dependencies: FastAPI, datetime
Author: Event Relay Team
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request, Response
from fastapi import status as status_codes

from event_relay.auth.api_key import hash_api_key
from event_relay.services import Services
from event_relay.utils.logger import get_logger
from event_relay.utils.telemetry import spawn_best_effort

logger = get_logger(__name__)


@dataclass(frozen=True)
class Identity:
    """Authenticated API caller."""

    key_id: str
    owner_id: str
    tier: str


class RateLimitExceededError(HTTPException):
    """Raised by require_identity when the caller's budget is spent."""

    def __init__(self, retry_after: int):
        super().__init__(
            status_code=status_codes.HTTP_429_TOO_MANY_REQUESTS,
            detail="Rate limit exceeded",
            headers={"Retry-After": str(retry_after)}
        )
        self.retry_after = retry_after


def get_services(request: Request) -> Services:
    """Dependency returning the app's service bundle."""
    return request.app.state.services


async def require_identity(
    response: Response,
    x_api_key: Optional[str] = Header(default=None),
    services: Services = Depends(get_services)
) -> Identity:
    """
    Authenticate the caller and charge its rate limit budget.

    Raises:
        HTTPException: 401 if the key is missing, unknown or revoked
        RateLimitExceededError: 429 if the budget for the window is spent
    """
    if not x_api_key:
        raise HTTPException(
            status_code=status_codes.HTTP_401_UNAUTHORIZED,
            detail="Missing x-api-key header"
        )

    key_hash = hash_api_key(x_api_key)
    record = await services.api_keys.get_by_hash(key_hash)

    if record is None or record.revoked:
        logger.warning("Rejected API key", revoked=bool(record and record.revoked))
        raise HTTPException(
            status_code=status_codes.HTTP_401_UNAUTHORIZED,
            detail="Invalid or revoked API key"
        )

    limiter = services.limiter
    result = await limiter.consume(record.key_id, 1, limiter.policy_for_tier(record.tier))
    if not result.allowed:
        raise RateLimitExceededError(result.retry_after_seconds)

    response.headers["X-RateLimit-Limit"] = str(result.limit)
    response.headers["X-RateLimit-Remaining"] = str(result.remaining)

    # Non-authoritative telemetry; failures are dropped
    spawn_best_effort(services.api_keys.touch_last_used(key_hash), "touch_last_used")
    spawn_best_effort(
        services.api_keys.increment_usage(record.key_id, datetime.now(timezone.utc).date()),
        "increment_usage"
    )

    return Identity(key_id=record.key_id, owner_id=record.owner_id, tier=record.tier)
