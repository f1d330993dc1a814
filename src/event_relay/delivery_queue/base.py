"""
Module: base.py
Description: Backend interface for the delivery queue.

A backend stores jobs, hands out leases and applies the outcome of a
lease. Every method that acts on a leased job must check the job's
lease token and refuse (return False) when the lease is no longer the
current one, which is what keeps a job single-owner.
"""

from typing import Optional, Protocol

from event_relay.models.delivery import DeliveryJob


class QueueBackend(Protocol):
    async def put(self, job: DeliveryJob) -> None:
        """Store a job, invisible until job.next_eligible_at."""
        ...

    async def lease(self, lease_seconds: float) -> Optional[DeliveryJob]:
        """
        Take the next visible job, hiding it for lease_seconds.

        Returns None when nothing is ready. The returned job carries a
        fresh lease_token. Backends that can tell a job's previous lease
        expired count that lease as a spent attempt.
        """
        ...

    async def complete(self, job: DeliveryJob) -> bool:
        """Remove a leased job for good."""
        ...

    async def requeue(self, job: DeliveryJob) -> bool:
        """Replace a leased job with its updated copy (new attempt and visibility)."""
        ...

    async def wait_for_ready(self, timeout: float) -> None:
        """Suspend until a job may be ready, a put happens, or timeout elapses."""
        ...

    async def wake(self) -> None:
        """Release anything suspended in wait_for_ready."""
        ...
