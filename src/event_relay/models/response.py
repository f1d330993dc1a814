"""
Module: response.py
Description: API response models for the Event Relay.

Key Components:
- SubscriptionResponse: Subscription as returned to its owner (secret redacted)
- SubscriptionListResponse: Wrapper for list endpoints
- DeliveryRecordResponse / DeliveryListResponse: Ledger history
- RateLimitErrorResponse: 429 body

Dependencies: pydantic, datetime, typing
Author: Event Relay Team
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from event_relay.models.delivery import DeliveryRecord
from event_relay.models.subscription import Subscription


class SubscriptionResponse(BaseModel):
    """
    Subscription as returned by the API.

    The signing secret is never echoed back; ``has_secret`` tells the
    owner whether deliveries are signed.
    """

    id: str = Field(..., description="Subscription identifier")
    name: str
    url: str
    event: str
    filters: Dict[str, str]
    active: bool
    has_secret: bool
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_subscription(cls, subscription: Subscription) -> "SubscriptionResponse":
        return cls(
            id=subscription.subscription_id,
            name=subscription.name,
            url=subscription.url,
            event=subscription.event_type,
            filters=subscription.filters,
            active=subscription.active,
            has_secret=subscription.has_secret,
            created_at=subscription.created_at,
            updated_at=subscription.updated_at,
        )


class SubscriptionListResponse(BaseModel):
    data: List[SubscriptionResponse]


class DeliveryRecordResponse(BaseModel):
    """One ledger entry."""

    id: str
    job_id: str
    status: str
    attempt: int
    error: Optional[str] = None
    status_code: Optional[int] = None
    payload: Dict[str, Any]
    created_at: datetime

    @classmethod
    def from_record(cls, record: DeliveryRecord) -> "DeliveryRecordResponse":
        return cls(
            id=record.record_id,
            job_id=record.job_id,
            status=record.status,
            attempt=record.attempt,
            error=record.error,
            status_code=record.status_code,
            payload=record.payload,
            created_at=record.created_at,
        )


class DeliveryListResponse(BaseModel):
    data: List[DeliveryRecordResponse]


class RateLimitErrorResponse(BaseModel):
    """Body returned with HTTP 429."""

    error: str = Field(default="Rate limit exceeded")
    retry_after: int = Field(..., ge=1, description="Seconds until the next window")
