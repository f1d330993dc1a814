"""
Module: test_sqs_backend.py
Description: Unit tests for the SQS delivery queue backend.

The aioboto3 session is replaced with mocks; these tests check how the
queue contract is mapped onto SQS calls.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from botocore.exceptions import ClientError

from event_relay.delivery.retry import BackoffPolicy
from event_relay.delivery_queue.queue import DeliveryQueue
from event_relay.delivery_queue.sqs import MAX_DELAY_SECONDS, SQSQueueBackend
from event_relay.models.delivery import JOB_IN_FLIGHT, DeliveryJob

QUEUE_URL = "https://sqs.us-east-1.amazonaws.com/123456789012/event-relay-deliveries"


def _job(**overrides):
    fields = {
        "subscription_id": "sub_abc123def456",
        "target_url": "https://hooks.example.com/t",
        "event_type": "token_transfer",
        "payload": {"mint": "X"},
    }
    fields.update(overrides)
    return DeliveryJob(**fields)


@pytest.fixture
def sqs():
    client = AsyncMock()
    client.send_message.return_value = {"MessageId": "msg-1"}
    client.receive_message.return_value = {"Messages": []}
    return client


@pytest.fixture
def backend(sqs):
    session = MagicMock()
    context = MagicMock()
    context.__aenter__ = AsyncMock(return_value=sqs)
    context.__aexit__ = AsyncMock(return_value=False)
    session.client.return_value = context
    return SQSQueueBackend(QUEUE_URL, region_name="us-east-1", wait_seconds=0, session=session)


def _client_error(code):
    return ClientError({"Error": {"Code": code, "Message": "nope"}}, "DeleteMessage")


class TestSQSQueueBackend:

    def test_requires_queue_url(self):
        with pytest.raises(ValueError):
            SQSQueueBackend("")

    @pytest.mark.asyncio
    async def test_put_sends_job_without_delay(self, backend, sqs):
        job = _job()

        await backend.put(job)

        kwargs = sqs.send_message.call_args.kwargs
        assert kwargs["QueueUrl"] == QUEUE_URL
        assert kwargs["DelaySeconds"] == 0
        assert kwargs["MessageAttributes"]["JobId"]["StringValue"] == job.job_id
        assert DeliveryJob.model_validate_json(kwargs["MessageBody"]).job_id == job.job_id
        assert "lease_token" not in kwargs["MessageBody"]

    @pytest.mark.asyncio
    async def test_put_caps_delay(self, backend, sqs):
        job = _job(next_eligible_at=datetime.now(timezone.utc) + timedelta(hours=2))

        await backend.put(job)

        assert sqs.send_message.call_args.kwargs["DelaySeconds"] == MAX_DELAY_SECONDS

    @pytest.mark.asyncio
    async def test_lease_uses_receipt_handle_as_token(self, backend, sqs):
        job = _job()
        sqs.receive_message.return_value = {
            "Messages": [{"Body": job.model_dump_json(), "ReceiptHandle": "rh-1"}]
        }

        leased = await backend.lease(60)

        assert leased.job_id == job.job_id
        assert leased.lease_token == "rh-1"
        assert leased.status == JOB_IN_FLIGHT
        assert sqs.receive_message.call_args.kwargs["VisibilityTimeout"] == 60

    @pytest.mark.asyncio
    async def test_lease_empty_queue(self, backend):
        assert await backend.lease(60) is None

    @pytest.mark.asyncio
    async def test_lease_hides_job_not_yet_eligible(self, backend, sqs):
        job = _job(next_eligible_at=datetime.now(timezone.utc) + timedelta(hours=1))
        sqs.receive_message.return_value = {
            "Messages": [{"Body": job.model_dump_json(), "ReceiptHandle": "rh-1"}]
        }

        assert await backend.lease(60) is None

        kwargs = sqs.change_message_visibility.call_args.kwargs
        assert kwargs["ReceiptHandle"] == "rh-1"
        assert 3590 <= kwargs["VisibilityTimeout"] <= 3600

    @pytest.mark.asyncio
    async def test_complete_deletes_message(self, backend, sqs):
        job = _job(lease_token="rh-1")

        assert await backend.complete(job) is True
        sqs.delete_message.assert_awaited_once_with(QueueUrl=QUEUE_URL, ReceiptHandle="rh-1")

    @pytest.mark.asyncio
    async def test_complete_without_lease(self, backend, sqs):
        assert await backend.complete(_job()) is False
        sqs.delete_message.assert_not_called()

    @pytest.mark.asyncio
    async def test_complete_with_stale_handle(self, backend, sqs):
        sqs.delete_message.side_effect = _client_error("ReceiptHandleIsInvalid")

        assert await backend.complete(_job(lease_token="rh-old")) is False

    @pytest.mark.asyncio
    async def test_complete_propagates_other_errors(self, backend, sqs):
        sqs.delete_message.side_effect = _client_error("AccessDenied")

        with pytest.raises(ClientError):
            await backend.complete(_job(lease_token="rh-1"))

    @pytest.mark.asyncio
    async def test_requeue_holds_sends_then_deletes(self, backend, sqs):
        job = _job(lease_token="rh-1", attempt=2)

        assert await backend.requeue(job) is True

        assert [c[0] for c in sqs.method_calls] == [
            "change_message_visibility", "send_message", "delete_message"
        ]
        assert sqs.change_message_visibility.call_args.kwargs["ReceiptHandle"] == "rh-1"
        body = sqs.send_message.call_args.kwargs["MessageBody"]
        assert DeliveryJob.model_validate_json(body).attempt == 2

    @pytest.mark.asyncio
    @pytest.mark.parametrize("code", ["ReceiptHandleIsInvalid", "MessageNotInflight"])
    async def test_requeue_with_stale_handle_sends_nothing(self, backend, sqs, code):
        sqs.change_message_visibility.side_effect = _client_error(code)
        queue = DeliveryQueue(backend, policy=BackoffPolicy(max_attempts=5))

        assert await queue.reschedule(_job(lease_token="rh-stale")) is None

        sqs.send_message.assert_not_called()
        sqs.delete_message.assert_not_called()

    @pytest.mark.asyncio
    async def test_requeue_propagates_other_errors(self, backend, sqs):
        sqs.change_message_visibility.side_effect = _client_error("AccessDenied")

        with pytest.raises(ClientError):
            await backend.requeue(_job(lease_token="rh-1"))
        sqs.send_message.assert_not_called()
