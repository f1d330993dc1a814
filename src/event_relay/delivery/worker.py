"""
Module: delivery/worker.py
Description: Worker pool that drains the delivery queue.

Each worker leases one job at a time, attempts the signed HTTP
delivery, writes the outcome to the delivery ledger and then either
acks the job or hands it back for a retry. Workers never share a job:
the queue's lease guarantees a single owner.

Delivery is at-least-once. The HTTP call and the ledger write are not
transactional, so a crash between them can leave a delivery without a
ledger record, or a failed record followed by a retry. An unexpected
error while processing a job counts as a failed attempt like any
delivery error.
"""

import asyncio
from typing import List, Optional

from event_relay.delivery.push import WebhookDeliveryClient
from event_relay.delivery_queue.queue import DeliveryQueue
from event_relay.errors import DeliveryError, PermanentDeliveryError
from event_relay.models.delivery import (
    JOB_EXHAUSTED,
    RECORD_DELIVERED,
    RECORD_FAILED,
    DeliveryJob,
    DeliveryRecord,
)
from event_relay.storage.base import DeliveryLedger
from event_relay.utils.logger import get_logger
from event_relay.utils.metrics import MetricsClient
from event_relay.utils.telemetry import spawn_best_effort

logger = get_logger(__name__)

DEFAULT_POOL_SIZE = 10


class DeliveryWorkerPool:
    """
    Fixed-size pool of delivery workers.

    Attributes:
        queue: Delivery queue to drain
        client: HTTP delivery client shared by all workers
        ledger: Delivery ledger receiving one record per attempt
        size: Number of concurrent workers
    """

    def __init__(
        self,
        queue: DeliveryQueue,
        client: WebhookDeliveryClient,
        ledger: DeliveryLedger,
        size: int = DEFAULT_POOL_SIZE,
        metrics: Optional[MetricsClient] = None
    ):
        if size < 1:
            raise ValueError("size must be at least 1")

        self.queue = queue
        self.client = client
        self.ledger = ledger
        self.size = size
        self.metrics = metrics
        self._tasks: List[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return any(not t.done() for t in self._tasks)

    async def start(self) -> None:
        """Start the workers."""
        if self.running:
            return

        self.queue.resume()
        self._tasks = [
            asyncio.create_task(self._run(worker_id), name=f"delivery-worker-{worker_id}")
            for worker_id in range(self.size)
        ]
        logger.info("Delivery worker pool started", size=self.size)

    async def stop(self, drain: bool = True) -> None:
        """
        Stop the workers.

        Args:
            drain: Let in-flight deliveries finish (True) or cancel them
                (False). A cancelled job stays leased until its lease
                expires, then becomes deliverable again.
        """
        await self.queue.shutdown()

        if not drain:
            for task in self._tasks:
                task.cancel()

        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        logger.info("Delivery worker pool stopped", drained=drain)

    async def _run(self, worker_id: int) -> None:
        while True:
            job = await self.queue.dequeue()
            if job is None:
                return

            try:
                await self.process(job)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(
                    "Unexpected error processing job",
                    worker_id=worker_id,
                    job_id=job.job_id,
                    subscription_id=job.subscription_id,
                    attempt=job.attempt,
                    error=str(e),
                    error_type=type(e).__name__
                )
                await self._fail_safely(job, f"{type(e).__name__}: {e}")

    async def process(self, job: DeliveryJob) -> str:
        """
        Run one delivery attempt for a leased job.

        Args:
            job: Job leased from the queue

        Returns:
            Resulting job status
        """
        try:
            status_code = await self.client.send(job)

        except DeliveryError as e:
            logger.warning(
                "Delivery attempt failed",
                job_id=job.job_id,
                subscription_id=job.subscription_id,
                attempt=job.attempt,
                status_code=e.status_code,
                permanent=isinstance(e, PermanentDeliveryError),
                error=str(e)
            )
            return await self._fail(job, str(e), status_code=e.status_code)

        if not await self.queue.ack(job):
            # Lease expired mid-flight; the current owner will deliver again
            logger.warning(
                "Delivered after lease expired",
                job_id=job.job_id,
                subscription_id=job.subscription_id,
                attempt=job.attempt,
                status_code=status_code
            )
            await self._record(DeliveryRecord.for_attempt(
                job,
                RECORD_FAILED,
                error=f"Lease lost after HTTP {status_code}",
                status_code=status_code
            ))
            return job.status

        await self._record(DeliveryRecord.for_attempt(
            job, RECORD_DELIVERED, status_code=status_code
        ))
        self._metric("WebhookDelivered", job)
        return job.status

    async def _fail(self, job: DeliveryJob, error: str, status_code: Optional[int] = None) -> str:
        """Record a failed attempt and hand the job back for a retry."""
        await self._record(DeliveryRecord.for_attempt(
            job, RECORD_FAILED, error=error, status_code=status_code
        ))
        self._metric("WebhookDeliveryFailed", job)

        status = await self.queue.reschedule(job)
        if status == JOB_EXHAUSTED:
            self._metric("WebhookExhausted", job)
        return status or job.status

    async def _fail_safely(self, job: DeliveryJob, error: str) -> None:
        try:
            await self._fail(job, error)
        except Exception as e:
            # Left leased; lease expiry counts the attempt
            logger.error(
                "Failed to reschedule job",
                job_id=job.job_id,
                subscription_id=job.subscription_id,
                attempt=job.attempt,
                error=str(e)
            )

    async def _record(self, record: DeliveryRecord) -> None:
        """Append to the ledger; a failed write never blocks the job outcome."""
        try:
            await self.ledger.append(record)
        except Exception as e:
            logger.error(
                "Failed to write delivery record",
                subscription_id=record.subscription_id,
                job_id=record.job_id,
                attempt=record.attempt,
                status=record.status,
                error=str(e)
            )

    def _metric(self, name: str, job: DeliveryJob) -> None:
        if self.metrics is None:
            return
        spawn_best_effort(
            asyncio.to_thread(
                self.metrics.put_metric,
                name,
                1,
                'Count',
                {'EventType': job.event_type}
            ),
            name
        )
