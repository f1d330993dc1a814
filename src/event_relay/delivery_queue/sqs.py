"""
Module: sqs.py
Description: SQS backend for the delivery queue.

Maps the queue contract onto SQS primitives:
- scheduled visibility -> DelaySeconds on send (capped at 900s)
- lease                -> VisibilityTimeout on receive
- lease token          -> receipt handle
- ack                  -> delete_message
- reschedule           -> confirm the lease by extending visibility, send
                          the updated job, then delete the leased copy

A stale receipt handle is rejected before anything is sent. The
send-then-delete step itself is not atomic: if the delete fails the
job exists twice, which the at-least-once contract already allows.

SQS cannot tell a crashed holder from a slow one, so jobs abandoned by
a dead worker are bounded by the queue's redrive policy
(maxReceiveCount) rather than by the attempt counter.
"""

import asyncio
import math
from datetime import datetime, timezone
from typing import Optional

from aioboto3 import Session
from botocore.exceptions import ClientError

from event_relay.models.delivery import JOB_IN_FLIGHT, JOB_PENDING, DeliveryJob
from event_relay.utils.logger import get_logger

logger = get_logger(__name__)

MAX_DELAY_SECONDS = 900
MAX_VISIBILITY_SECONDS = 43200
REQUEUE_HOLD_SECONDS = 30

STALE_HANDLE_CODES = (
    'ReceiptHandleIsInvalid',
    'AWS.SimpleQueueService.ReceiptHandleIsInvalid',
    'InvalidParameterValue',
    'MessageNotInflight',
    'AWS.SimpleQueueService.MessageNotInflight',
)


def _is_stale_handle(error: ClientError) -> bool:
    return error.response['Error']['Code'] in STALE_HANDLE_CODES


class SQSQueueBackend:
    """
    Delivery queue backend on an SQS standard queue.

    Attributes:
        queue_url: URL of the SQS queue
        wait_seconds: Long-poll wait per receive call
    """

    def __init__(
        self,
        queue_url: str,
        region_name: Optional[str] = None,
        wait_seconds: int = 20,
        session: Optional[Session] = None
    ):
        """
        Initialize SQS backend.

        Args:
            queue_url: URL of the SQS queue
            region_name: AWS region
            wait_seconds: Long-poll wait (0-20 seconds)
            session: Optional aioboto3 session
        """
        if not queue_url or not isinstance(queue_url, str):
            raise ValueError("queue_url must be a non-empty string")

        self.queue_url = queue_url
        self.region_name = region_name
        self.wait_seconds = max(0, min(wait_seconds, 20))
        self.session = session or Session()

        logger.info(
            "SQS queue backend initialized",
            queue_url=queue_url
        )

    def _client(self):
        return self.session.client('sqs', region_name=self.region_name)

    @staticmethod
    def _seconds_until(when: datetime) -> int:
        remaining = (when - datetime.now(timezone.utc)).total_seconds()
        return max(0, math.ceil(remaining))

    async def put(self, job: DeliveryJob) -> None:
        """
        Send a job to SQS.

        Raises:
            ClientError: If SQS operation fails
        """
        body = job.model_copy(update={'status': JOB_PENDING}).model_dump_json()
        delay = min(self._seconds_until(job.next_eligible_at), MAX_DELAY_SECONDS)

        try:
            async with self._client() as sqs:
                response = await sqs.send_message(
                    QueueUrl=self.queue_url,
                    MessageBody=body,
                    MessageAttributes={
                        'JobId': {
                            'StringValue': job.job_id,
                            'DataType': 'String'
                        },
                        'SubscriptionId': {
                            'StringValue': job.subscription_id,
                            'DataType': 'String'
                        }
                    },
                    DelaySeconds=delay
                )

        except ClientError as e:
            logger.error(
                "Failed to send job to SQS",
                job_id=job.job_id,
                error_code=e.response['Error']['Code'],
                error_message=e.response['Error']['Message']
            )
            raise

        logger.debug(
            "Job sent to SQS",
            job_id=job.job_id,
            message_id=response['MessageId'],
            delay_seconds=delay
        )

    async def lease(self, lease_seconds: float) -> Optional[DeliveryJob]:
        visibility = max(1, min(int(lease_seconds), MAX_VISIBILITY_SECONDS))

        async with self._client() as sqs:
            response = await sqs.receive_message(
                QueueUrl=self.queue_url,
                MaxNumberOfMessages=1,
                WaitTimeSeconds=self.wait_seconds,
                VisibilityTimeout=visibility
            )

            messages = response.get('Messages', [])
            if not messages:
                return None

            message = messages[0]
            job = DeliveryJob.model_validate_json(message['Body'])

            # Delays beyond the SQS cap: hide the message for the remainder
            remaining = self._seconds_until(job.next_eligible_at)
            if remaining > 0:
                await sqs.change_message_visibility(
                    QueueUrl=self.queue_url,
                    ReceiptHandle=message['ReceiptHandle'],
                    VisibilityTimeout=min(remaining, MAX_VISIBILITY_SECONDS)
                )
                return None

        job.status = JOB_IN_FLIGHT
        job.lease_token = message['ReceiptHandle']
        return job

    async def complete(self, job: DeliveryJob) -> bool:
        if not job.lease_token:
            return False

        try:
            async with self._client() as sqs:
                await sqs.delete_message(
                    QueueUrl=self.queue_url,
                    ReceiptHandle=job.lease_token
                )
        except ClientError as e:
            if _is_stale_handle(e):
                logger.warning("Lease no longer held", job_id=job.job_id)
                return False
            logger.error(
                "Failed to delete job from SQS",
                job_id=job.job_id,
                error_code=e.response['Error']['Code'],
                error_message=e.response['Error']['Message']
            )
            raise

        return True

    async def requeue(self, job: DeliveryJob) -> bool:
        if not await self._hold(job):
            return False
        await self.put(job)
        return await self.complete(job)

    async def _hold(self, job: DeliveryJob) -> bool:
        """Confirm the lease is still ours and keep the message hidden while it is replaced."""
        if not job.lease_token:
            return False

        try:
            async with self._client() as sqs:
                await sqs.change_message_visibility(
                    QueueUrl=self.queue_url,
                    ReceiptHandle=job.lease_token,
                    VisibilityTimeout=REQUEUE_HOLD_SECONDS
                )
        except ClientError as e:
            if _is_stale_handle(e):
                logger.warning("Lease no longer held", job_id=job.job_id)
                return False
            logger.error(
                "Failed to extend job visibility",
                job_id=job.job_id,
                error_code=e.response['Error']['Code'],
                error_message=e.response['Error']['Message']
            )
            raise

        return True

    async def wait_for_ready(self, timeout: float) -> None:
        # receive_message already long-polls
        if self.wait_seconds == 0:
            await asyncio.sleep(timeout)

    async def wake(self) -> None:
        return None
