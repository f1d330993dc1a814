"""
Module: queue.py
Description: Delivery queue with lease semantics and bounded retries.

DeliveryQueue owns the job lifecycle rules and delegates storage to an
injected backend:

    pending -> in_flight -> delivered                (ack)
                         -> pending, attempt + 1     (reschedule)
                         -> exhausted                (reschedule on the last attempt)

A dequeued job is invisible to other consumers until its lease expires.
ack and reschedule only succeed for the current lease holder.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from event_relay.delivery.retry import BackoffPolicy
from event_relay.delivery_queue.base import QueueBackend
from event_relay.models.delivery import (
    JOB_DELIVERED,
    JOB_EXHAUSTED,
    JOB_PENDING,
    DeliveryJob,
)
from event_relay.utils.logger import get_logger

logger = get_logger(__name__)


class DeliveryQueue:
    """
    Work queue of delivery jobs.

    Attributes:
        backend: Job storage (in-memory or SQS)
        policy: Backoff policy and attempt limit
        lease_timeout: Seconds a dequeued job stays invisible
        poll_interval: Upper bound on one idle wait inside dequeue
    """

    def __init__(
        self,
        backend: QueueBackend,
        policy: Optional[BackoffPolicy] = None,
        lease_timeout: float = 60,
        poll_interval: float = 1.0,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.backend = backend
        self.policy = policy or BackoffPolicy()
        self.lease_timeout = lease_timeout
        self.poll_interval = poll_interval
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._closed = asyncio.Event()

    @property
    def max_attempts(self) -> int:
        return self.policy.max_attempts

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    async def enqueue(self, job: DeliveryJob) -> None:
        """Hand a new job to the queue."""
        job.status = JOB_PENDING
        await self.backend.put(job)

        logger.info(
            "Job enqueued",
            job_id=job.job_id,
            subscription_id=job.subscription_id,
            event_type=job.event_type
        )

    async def dequeue(self) -> Optional[DeliveryJob]:
        """
        Wait for the next ready job and lease it.

        Returns:
            The leased job, or None once the queue has been shut down
        """
        while not self._closed.is_set():
            job = await self.backend.lease(self.lease_timeout)
            if job is not None:
                return job
            await self.backend.wait_for_ready(self.poll_interval)
        return None

    async def ack(self, job: DeliveryJob) -> bool:
        """
        Mark a leased job delivered and remove it.

        Returns:
            False if the caller no longer holds the lease
        """
        if not await self.backend.complete(job):
            logger.warning(
                "Ack rejected, lease not held",
                job_id=job.job_id,
                attempt=job.attempt
            )
            return False

        job.status = JOB_DELIVERED
        return True

    async def reschedule(self, job: DeliveryJob, delay: Optional[float] = None) -> Optional[str]:
        """
        Return a failed job to the queue for another attempt.

        The attempt counter increments and the job becomes visible again
        after the backoff delay. A job on its last attempt is exhausted
        instead and never becomes visible again.

        Args:
            job: Leased job whose attempt just failed
            delay: Override for the backoff delay, in seconds

        Returns:
            The job's new status ('pending' or 'exhausted'), or None if
            the caller no longer holds the lease
        """
        if not job.has_attempts_left:
            if not await self.backend.complete(job):
                logger.warning("Reschedule rejected, lease not held", job_id=job.job_id)
                return None

            job.status = JOB_EXHAUSTED
            logger.error(
                "Delivery exhausted",
                job_id=job.job_id,
                subscription_id=job.subscription_id,
                attempt=job.attempt,
                max_attempts=job.max_attempts
            )
            return JOB_EXHAUSTED

        next_attempt = job.attempt + 1
        if delay is None:
            delay = self.policy.delay_before(next_attempt)

        retry = job.model_copy(update={
            'attempt': next_attempt,
            'next_eligible_at': self._clock() + timedelta(seconds=delay),
            'status': JOB_PENDING,
        })

        if not await self.backend.requeue(retry):
            logger.warning("Reschedule rejected, lease not held", job_id=job.job_id)
            return None

        job.attempt = next_attempt
        job.next_eligible_at = retry.next_eligible_at
        job.status = JOB_PENDING

        logger.info(
            "Job rescheduled",
            job_id=job.job_id,
            subscription_id=job.subscription_id,
            next_attempt=next_attempt,
            delay_seconds=delay
        )
        return JOB_PENDING

    def resume(self) -> None:
        """Allow dequeue again after a shutdown."""
        self._closed.clear()

    async def shutdown(self) -> None:
        """Stop handing out jobs; idle dequeue calls return None."""
        self._closed.set()
        await self.backend.wake()
