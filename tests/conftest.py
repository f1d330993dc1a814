"""
Module: conftest.py
Description: Shared pytest fixtures for Event Relay tests.

Provides test settings, controllable clocks, in-memory service
bundles, sample subscriptions and moto-backed DynamoDB tables.
"""

import asyncio
import os
from datetime import datetime, timedelta, timezone

import boto3
import httpx
import pytest
from moto import mock_aws

# boto3 must never see real credentials from the test environment
os.environ.setdefault("AWS_ACCESS_KEY_ID", "testing")
os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "testing")
os.environ.setdefault("AWS_SECURITY_TOKEN", "testing")
os.environ.setdefault("AWS_SESSION_TOKEN", "testing")
os.environ.setdefault("AWS_DEFAULT_REGION", "us-east-1")

from event_relay.config.settings import Settings  # noqa: E402
from event_relay.models.subscription import Subscription  # noqa: E402
from event_relay.services import build_services  # noqa: E402

REGION = "us-east-1"


class FakeClock:
    """Datetime clock that only moves when told to."""

    def __init__(self, start: datetime = None):
        # Start slightly ahead so jobs created with the real clock are ready
        self.now = start or datetime.now(timezone.utc) + timedelta(seconds=1)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class FakeTimer:
    """Epoch-seconds clock that only moves when told to."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


async def wait_until(predicate, timeout: float = 5.0, interval: float = 0.01) -> None:
    """Poll predicate until it is true or fail the test."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            pytest.fail("condition not reached before timeout")
        await asyncio.sleep(interval)


@pytest.fixture
def test_settings():
    """
    Provide test configuration settings.

    Ignores .env so tests are predictable, and shrinks backoff so a full
    retry sequence completes in well under a second.
    """
    return Settings(
        _env_file=None,
        app_name="Event Relay Test",
        app_version="0.3.0-test",
        log_level="DEBUG",
        stage="test",
        storage_backend="memory",
        aws_region=REGION,
        worker_pool_size=2,
        backoff_base_seconds=0.01,
        rate_limit_points=1000,
        rate_limit_duration=60,
    )


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def fake_timer():
    return FakeTimer()


@pytest.fixture
def ok_transport():
    """Transport that accepts every delivery and remembers the requests."""
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={"ok": True})

    transport = httpx.MockTransport(handler)
    transport.requests = requests
    return transport


@pytest.fixture
def memory_services(test_settings, ok_transport):
    """In-memory service bundle delivering through ok_transport."""
    return build_services(test_settings, transport=ok_transport)


@pytest.fixture
def sample_subscription():
    return Subscription(
        owner_id="user_1",
        name="USDC transfers",
        url="https://hooks.example.com/usdc",
        event_type="token_transfer",
        filters={"mint": "X"},
        secret="whsec_test",
    )


@pytest.fixture
def unsigned_subscription():
    return Subscription(
        owner_id="user_1",
        name="All swaps",
        url="https://hooks.example.com/swaps",
        event_type="swap",
    )


def _create_subscriptions_table(dynamodb, name):
    return dynamodb.create_table(
        TableName=name,
        KeySchema=[{'AttributeName': 'subscription_id', 'KeyType': 'HASH'}],
        AttributeDefinitions=[
            {'AttributeName': 'subscription_id', 'AttributeType': 'S'},
            {'AttributeName': 'event_type', 'AttributeType': 'S'},
            {'AttributeName': 'owner_id', 'AttributeType': 'S'},
            {'AttributeName': 'created_at', 'AttributeType': 'S'},
        ],
        GlobalSecondaryIndexes=[
            {
                'IndexName': 'EventTypeIndex',
                'KeySchema': [{'AttributeName': 'event_type', 'KeyType': 'HASH'}],
                'Projection': {'ProjectionType': 'ALL'}
            },
            {
                'IndexName': 'OwnerIndex',
                'KeySchema': [
                    {'AttributeName': 'owner_id', 'KeyType': 'HASH'},
                    {'AttributeName': 'created_at', 'KeyType': 'RANGE'}
                ],
                'Projection': {'ProjectionType': 'ALL'}
            }
        ],
        BillingMode='PAY_PER_REQUEST'
    )


@pytest.fixture
def dynamodb_tables(test_settings):
    """
    Create mock DynamoDB tables with the production schema.

    Yields a dict of table name -> boto3 Table while moto is active.
    """
    with mock_aws():
        dynamodb = boto3.resource('dynamodb', region_name=REGION)

        tables = {
            'subscriptions': _create_subscriptions_table(
                dynamodb, test_settings.subscriptions_table_name
            ),
            'deliveries': dynamodb.create_table(
                TableName=test_settings.deliveries_table_name,
                KeySchema=[
                    {'AttributeName': 'subscription_id', 'KeyType': 'HASH'},
                    {'AttributeName': 'sk', 'KeyType': 'RANGE'}
                ],
                AttributeDefinitions=[
                    {'AttributeName': 'subscription_id', 'AttributeType': 'S'},
                    {'AttributeName': 'sk', 'AttributeType': 'S'}
                ],
                BillingMode='PAY_PER_REQUEST'
            ),
            'api_keys': dynamodb.create_table(
                TableName=test_settings.api_keys_table_name,
                KeySchema=[{'AttributeName': 'key_hash', 'KeyType': 'HASH'}],
                AttributeDefinitions=[{'AttributeName': 'key_hash', 'AttributeType': 'S'}],
                BillingMode='PAY_PER_REQUEST'
            ),
            'usage': dynamodb.create_table(
                TableName=test_settings.usage_table_name,
                KeySchema=[
                    {'AttributeName': 'key_id', 'KeyType': 'HASH'},
                    {'AttributeName': 'period', 'KeyType': 'RANGE'}
                ],
                AttributeDefinitions=[
                    {'AttributeName': 'key_id', 'AttributeType': 'S'},
                    {'AttributeName': 'period', 'AttributeType': 'S'}
                ],
                BillingMode='PAY_PER_REQUEST'
            ),
            'rate_limits': dynamodb.create_table(
                TableName=test_settings.rate_limits_table_name,
                KeySchema=[{'AttributeName': 'key', 'KeyType': 'HASH'}],
                AttributeDefinitions=[{'AttributeName': 'key', 'AttributeType': 'S'}],
                BillingMode='PAY_PER_REQUEST'
            ),
        }

        yield tables


@pytest.fixture(name="wait_until")
def wait_until_fixture():
    return wait_until
