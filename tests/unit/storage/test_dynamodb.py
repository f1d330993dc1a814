"""
Module: test_dynamodb.py
Description: Unit tests for the DynamoDB storage implementations.

Runs the subscription repository, delivery ledger and API key store
against moto tables with the production schema. Covers serialization,
owner scoping, index queries and error handling.
"""

from datetime import date
from unittest.mock import patch

import pytest
from botocore.exceptions import ClientError

from event_relay.auth.api_key import ApiKeyRecord, hash_api_key
from event_relay.errors import SubscriptionNotFoundError
from event_relay.models.delivery import DeliveryRecord
from event_relay.models.subscription import Subscription
from event_relay.storage.dynamodb import (
    DynamoDBApiKeyStore,
    DynamoDBDeliveryLedger,
    DynamoDBSubscriptionRepository,
)


@pytest.fixture
def repository(dynamodb_tables, test_settings):
    return DynamoDBSubscriptionRepository(test_settings.subscriptions_table_name, "us-east-1")


@pytest.fixture
def ledger(dynamodb_tables, test_settings):
    return DynamoDBDeliveryLedger(test_settings.deliveries_table_name, "us-east-1")


@pytest.fixture
def key_store(dynamodb_tables, test_settings):
    return DynamoDBApiKeyStore(
        test_settings.api_keys_table_name, test_settings.usage_table_name, "us-east-1"
    )


class TestDynamoDBSubscriptionRepository:
    """Test cases for DynamoDBSubscriptionRepository operations."""

    def test_invalid_table_name(self):
        with pytest.raises(ValueError, match="table_name must be a non-empty string"):
            DynamoDBSubscriptionRepository(table_name="")

        with pytest.raises(ValueError, match="table_name must be a non-empty string"):
            DynamoDBSubscriptionRepository(table_name=None)

    @pytest.mark.asyncio
    async def test_create_and_find(self, repository, sample_subscription, dynamodb_tables):
        await repository.create(sample_subscription)

        item = dynamodb_tables['subscriptions'].get_item(
            Key={'subscription_id': sample_subscription.subscription_id}
        )['Item']
        assert item['owner_id'] == "user_1"
        assert item['filters'] == {"mint": "X"}
        assert isinstance(item['created_at'], str)

        found = await repository.find_by_id(sample_subscription.subscription_id)
        assert found.model_dump() == sample_subscription.model_dump()

    @pytest.mark.asyncio
    async def test_create_omits_empty_secret(self, repository, unsigned_subscription, dynamodb_tables):
        await repository.create(unsigned_subscription)

        item = dynamodb_tables['subscriptions'].get_item(
            Key={'subscription_id': unsigned_subscription.subscription_id}
        )['Item']
        assert 'secret' not in item
        assert (await repository.find_by_id(unsigned_subscription.subscription_id)).secret is None

    @pytest.mark.asyncio
    async def test_create_duplicate_id_fails(self, repository, sample_subscription):
        await repository.create(sample_subscription)

        with pytest.raises(ClientError):
            await repository.create(sample_subscription)

    @pytest.mark.asyncio
    async def test_find_missing(self, repository):
        assert await repository.find_by_id("sub_missing") is None

    @pytest.mark.asyncio
    async def test_find_active_by_event(self, repository, sample_subscription, unsigned_subscription):
        await repository.create(sample_subscription)
        await repository.create(unsigned_subscription)
        disabled = Subscription(
            owner_id="user_2",
            name="Disabled",
            url="https://hooks.example.com/off",
            event_type="token_transfer",
            active=False,
        )
        await repository.create(disabled)

        found = await repository.find_active_by_event("token_transfer")

        assert [s.subscription_id for s in found] == [sample_subscription.subscription_id]

    @pytest.mark.asyncio
    async def test_list_by_owner_newest_first(self, repository, sample_subscription, unsigned_subscription):
        await repository.create(sample_subscription)
        await repository.create(unsigned_subscription)

        owned = await repository.list_by_owner("user_1")

        assert [s.subscription_id for s in owned] == [
            unsigned_subscription.subscription_id,
            sample_subscription.subscription_id,
        ]
        assert await repository.list_by_owner("user_2") == []

    @pytest.mark.asyncio
    async def test_update(self, repository, sample_subscription):
        await repository.create(sample_subscription)

        updated = await repository.update(
            "user_1",
            sample_subscription.subscription_id,
            {"active": False, "filters": {"mint": "Y"}}
        )

        assert updated.active is False
        stored = await repository.find_by_id(sample_subscription.subscription_id)
        assert stored.filters == {"mint": "Y"}
        assert stored.active is False

    @pytest.mark.asyncio
    async def test_update_other_owner_not_found(self, repository, sample_subscription):
        await repository.create(sample_subscription)

        with pytest.raises(SubscriptionNotFoundError):
            await repository.update("user_2", sample_subscription.subscription_id, {"name": "x"})

    @pytest.mark.asyncio
    async def test_delete(self, repository, sample_subscription):
        await repository.create(sample_subscription)

        with pytest.raises(SubscriptionNotFoundError):
            await repository.delete("user_2", sample_subscription.subscription_id)

        await repository.delete("user_1", sample_subscription.subscription_id)
        assert await repository.find_by_id(sample_subscription.subscription_id) is None

        with pytest.raises(SubscriptionNotFoundError):
            await repository.delete("user_1", sample_subscription.subscription_id)

    @pytest.mark.asyncio
    async def test_query_error_propagates(self, repository):
        error = ClientError(
            {"Error": {"Code": "ProvisionedThroughputExceededException", "Message": "slow down"}},
            "Query"
        )
        with patch.object(repository.table, "query", side_effect=error):
            with pytest.raises(ClientError):
                await repository.find_active_by_event("token_transfer")


class TestDynamoDBDeliveryLedger:

    @pytest.mark.asyncio
    async def test_append_and_list_newest_first(self, ledger):
        payload = {"mint": "X", "amount": 10.5}
        for attempt in range(1, 4):
            await ledger.append(DeliveryRecord(
                subscription_id="sub_a",
                job_id="job_1",
                status="failed",
                payload=payload,
                error="HTTP 500: boom",
                status_code=500,
                attempt=attempt,
            ))
        await ledger.append(DeliveryRecord(
            subscription_id="sub_b", job_id="job_2", status="delivered", attempt=1
        ))

        history = await ledger.list_for_subscription("sub_a")

        assert [r.attempt for r in history] == [3, 2, 1]
        assert history[0].payload == payload
        assert history[0].status_code == 500
        assert history[0].error == "HTTP 500: boom"

    @pytest.mark.asyncio
    async def test_list_respects_limit(self, ledger):
        for attempt in range(1, 6):
            await ledger.append(DeliveryRecord(
                subscription_id="sub_a", job_id="job_1", status="failed", attempt=attempt
            ))

        assert len(await ledger.list_for_subscription("sub_a", limit=2)) == 2

    @pytest.mark.asyncio
    async def test_list_unknown_subscription(self, ledger):
        assert await ledger.list_for_subscription("sub_none") == []


class TestDynamoDBApiKeyStore:

    @pytest.mark.asyncio
    async def test_put_and_get_by_hash(self, key_store):
        record = ApiKeyRecord(owner_id="user_1", key_hash=hash_api_key("sk_abc"), tier="pro")
        await key_store.put(record)

        found = await key_store.get_by_hash(record.key_hash)

        assert found.key_id == record.key_id
        assert found.owner_id == "user_1"
        assert found.tier == "pro"
        assert found.revoked is False
        assert await key_store.get_by_hash(hash_api_key("sk_other")) is None

    @pytest.mark.asyncio
    async def test_touch_last_used(self, key_store):
        record = ApiKeyRecord(owner_id="user_1", key_hash=hash_api_key("sk_abc"))
        await key_store.put(record)

        await key_store.touch_last_used(record.key_hash)

        assert (await key_store.get_by_hash(record.key_hash)).last_used_at is not None

    @pytest.mark.asyncio
    async def test_increment_usage(self, key_store, dynamodb_tables):
        for _ in range(3):
            await key_store.increment_usage("key_1", date(2024, 5, 1))

        item = dynamodb_tables['usage'].get_item(
            Key={'key_id': 'key_1', 'period': '2024-05-01'}
        )['Item']
        assert int(item['requests']) == 3
