"""
Module: delivery.py
Description: Delivery job and delivery ledger record models.

A DeliveryJob is one unit of work: deliver one event payload to one
subscription. A DeliveryRecord is the append-only audit entry written
for every attempt of a job.

Key Components:
- DeliveryJob: Queue work item with attempt tracking and visibility time
- DeliveryRecord: Immutable per-attempt ledger entry
- JOB_* / RECORD_* status constants

Dependencies: pydantic, datetime, typing
Author: Event Relay Team
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

JOB_PENDING = "pending"
JOB_IN_FLIGHT = "in_flight"
JOB_DELIVERED = "delivered"
JOB_EXHAUSTED = "exhausted"

RECORD_DELIVERED = "delivered"
RECORD_FAILED = "failed"

DEFAULT_MAX_ATTEMPTS = 5


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DeliveryJob(BaseModel):
    """
    Work item held by the delivery queue.

    Ownership moves from the dispatcher to the queue on enqueue, then to
    whichever worker holds the current lease. The lease token identifies
    that lease and is never serialized into the stored message.

    Attributes:
        job_id: Unique job identifier
        subscription_id: Subscription being delivered to
        target_url: Snapshot of the subscription URL at match time
        secret: Snapshot of the signing secret at match time
        event_type: Event type being delivered
        payload: Event payload (opaque to the queue)
        attempt: Current attempt number, starting at 1
        max_attempts: Attempts allowed before the job is exhausted
        next_eligible_at: Earliest time the job may be dequeued
        status: pending, in_flight, delivered or exhausted
        lease_token: Handle of the current lease, if dequeued
    """

    model_config = ConfigDict(validate_assignment=True)

    job_id: str = Field(default_factory=lambda: f"job_{uuid4().hex[:12]}")
    subscription_id: str = Field(..., min_length=1)
    target_url: str = Field(...)
    secret: Optional[str] = Field(default=None)
    event_type: str = Field(..., min_length=1)
    payload: Dict[str, Any] = Field(default_factory=dict)
    attempt: int = Field(default=1, ge=1)
    max_attempts: int = Field(default=DEFAULT_MAX_ATTEMPTS, ge=1)
    next_eligible_at: datetime = Field(default_factory=_utcnow)
    status: str = Field(
        default=JOB_PENDING,
        pattern=r"^(pending|in_flight|delivered|exhausted)$"
    )
    created_at: datetime = Field(default_factory=_utcnow)
    lease_token: Optional[str] = Field(default=None, exclude=True)

    @property
    def is_terminal(self) -> bool:
        return self.status in (JOB_DELIVERED, JOB_EXHAUSTED)

    @property
    def has_attempts_left(self) -> bool:
        """True if a retry after this attempt is still allowed."""
        return self.attempt < self.max_attempts


class DeliveryRecord(BaseModel):
    """
    Ledger entry for a single delivery attempt.

    Records are appended once and never updated or deleted.
    """

    model_config = ConfigDict(frozen=True)

    record_id: str = Field(default_factory=lambda: f"dlv_{uuid4().hex[:12]}")
    subscription_id: str = Field(..., min_length=1)
    job_id: str = Field(..., min_length=1)
    status: str = Field(..., pattern=r"^(delivered|failed)$")
    payload: Dict[str, Any] = Field(default_factory=dict)
    error: Optional[str] = Field(default=None)
    status_code: Optional[int] = Field(default=None)
    attempt: int = Field(..., ge=1)
    created_at: datetime = Field(default_factory=_utcnow)

    @classmethod
    def for_attempt(
        cls,
        job: DeliveryJob,
        status: str,
        error: Optional[str] = None,
        status_code: Optional[int] = None,
    ) -> "DeliveryRecord":
        """Build the record for the job's current attempt."""
        return cls(
            subscription_id=job.subscription_id,
            job_id=job.job_id,
            status=status,
            payload=job.payload,
            error=error,
            status_code=status_code,
            attempt=job.attempt,
        )
