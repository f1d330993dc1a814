"""
Module: memory.py
Description: In-process delivery queue backend.

All state lives behind one asyncio.Condition, which makes lease,
complete and requeue atomic with respect to each other on a single
event loop. A leased job is simply pushed out of view until its lease
expires; if the worker never acks or requeues it, it becomes visible
again with its attempt counter advanced and the next lease gets a new
token. A job whose expired lease was its last attempt is dropped.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Optional
from uuid import uuid4

from event_relay.models.delivery import JOB_IN_FLIGHT, JOB_PENDING, DeliveryJob
from event_relay.utils.logger import get_logger

logger = get_logger(__name__)

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class _Entry:
    job: DeliveryJob
    visible_at: datetime
    token: Optional[str] = None


class InMemoryQueueBackend:
    """Dict-backed queue with per-job visibility time and lease token."""

    def __init__(self, clock: Optional[Clock] = None):
        self._entries: Dict[str, _Entry] = {}
        self._cond = asyncio.Condition()
        self._clock = clock or utcnow

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, job_id: str) -> bool:
        return job_id in self._entries

    async def put(self, job: DeliveryJob) -> None:
        stored = job.model_copy(deep=True, update={'status': JOB_PENDING, 'lease_token': None})
        async with self._cond:
            self._entries[job.job_id] = _Entry(stored, job.next_eligible_at)
            self._cond.notify_all()

    async def lease(self, lease_seconds: float) -> Optional[DeliveryJob]:
        async with self._cond:
            now = self._clock()
            while True:
                ready = [e for e in self._entries.values() if e.visible_at <= now]
                if not ready:
                    return None

                entry = min(ready, key=lambda e: e.visible_at)
                if entry.token is None:
                    break

                # The previous holder never finished: that counts as an attempt
                job = entry.job
                job.attempt += 1
                if job.attempt <= job.max_attempts:
                    logger.warning(
                        "Lease expired, job visible again",
                        job_id=job.job_id,
                        attempt=job.attempt
                    )
                    break

                del self._entries[job.job_id]
                logger.error(
                    "Delivery exhausted after lease expiry",
                    job_id=job.job_id,
                    subscription_id=job.subscription_id,
                    max_attempts=job.max_attempts
                )

            entry.token = uuid4().hex
            entry.visible_at = now + timedelta(seconds=lease_seconds)
            return entry.job.model_copy(
                deep=True,
                update={'status': JOB_IN_FLIGHT, 'lease_token': entry.token}
            )

    def _owns(self, job: DeliveryJob) -> bool:
        entry = self._entries.get(job.job_id)
        return entry is not None and entry.token is not None and entry.token == job.lease_token

    async def complete(self, job: DeliveryJob) -> bool:
        async with self._cond:
            if not self._owns(job):
                return False
            del self._entries[job.job_id]
            return True

    async def requeue(self, job: DeliveryJob) -> bool:
        async with self._cond:
            if not self._owns(job):
                return False
            stored = job.model_copy(deep=True, update={'status': JOB_PENDING, 'lease_token': None})
            self._entries[job.job_id] = _Entry(stored, job.next_eligible_at)
            self._cond.notify_all()
            return True

    async def wait_for_ready(self, timeout: float) -> None:
        async with self._cond:
            now = self._clock()
            if self._entries:
                soonest = min(e.visible_at for e in self._entries.values())
                timeout = min(timeout, (soonest - now).total_seconds())
            if timeout <= 0:
                return
            try:
                await asyncio.wait_for(self._cond.wait(), timeout)
            except asyncio.TimeoutError:
                pass

    async def wake(self) -> None:
        async with self._cond:
            self._cond.notify_all()
