"""
Module: services.py
Description: Wiring of stores, queue, limiter and worker pool.

Builds one Services bundle from settings. The ``memory`` backend keeps
everything in process; the ``aws`` backend uses DynamoDB tables and an
SQS queue. Nothing here is a process-wide singleton: the API app and
tests each build their own bundle.
"""

from dataclasses import dataclass
from typing import Optional

import httpx

from event_relay.config.settings import Settings
from event_relay.delivery.dispatcher import EventDispatcher
from event_relay.delivery.matcher import SubscriptionMatcher
from event_relay.delivery.push import WebhookDeliveryClient
from event_relay.delivery.retry import BackoffPolicy
from event_relay.delivery.worker import DeliveryWorkerPool
from event_relay.delivery_queue.memory import InMemoryQueueBackend
from event_relay.delivery_queue.queue import DeliveryQueue
from event_relay.delivery_queue.sqs import SQSQueueBackend
from event_relay.ratelimit.limiter import FixedWindowRateLimiter, RateLimitPolicy
from event_relay.ratelimit.stores import DynamoDBCounterStore, InMemoryCounterStore
from event_relay.storage.base import ApiKeyStore, DeliveryLedger, SubscriptionRepository
from event_relay.storage.dynamodb import (
    DynamoDBApiKeyStore,
    DynamoDBDeliveryLedger,
    DynamoDBSubscriptionRepository,
)
from event_relay.storage.memory import (
    InMemoryApiKeyStore,
    InMemoryDeliveryLedger,
    InMemorySubscriptionRepository,
)
from event_relay.utils.logger import get_logger
from event_relay.utils.metrics import MetricsClient

logger = get_logger(__name__)


@dataclass
class Services:
    """Everything the API and the delivery pipeline need."""

    subscriptions: SubscriptionRepository
    ledger: DeliveryLedger
    api_keys: ApiKeyStore
    queue: DeliveryQueue
    limiter: FixedWindowRateLimiter
    client: WebhookDeliveryClient
    pool: DeliveryWorkerPool
    dispatcher: EventDispatcher

    async def notify(self, event_type: str, payload: dict):
        """Ingestion entry point; see EventDispatcher.notify."""
        return await self.dispatcher.notify(event_type, payload)


def build_services(
    settings: Settings,
    transport: Optional[httpx.AsyncBaseTransport] = None
) -> Services:
    """
    Build the service bundle for the configured backend.

    Args:
        settings: Application settings
        transport: Optional httpx transport for outbound deliveries

    Raises:
        ValueError: If the aws backend is selected without a queue URL
    """
    region = settings.aws_region

    if settings.storage_backend == "aws":
        if not settings.delivery_queue_url:
            raise ValueError("delivery_queue_url is required for the aws backend")

        subscriptions = DynamoDBSubscriptionRepository(settings.subscriptions_table_name, region)
        ledger = DynamoDBDeliveryLedger(settings.deliveries_table_name, region)
        api_keys = DynamoDBApiKeyStore(
            settings.api_keys_table_name, settings.usage_table_name, region
        )
        backend = SQSQueueBackend(
            settings.delivery_queue_url,
            region_name=region,
            wait_seconds=settings.queue_wait_seconds
        )
        counters = DynamoDBCounterStore(settings.rate_limits_table_name, region)
    else:
        subscriptions = InMemorySubscriptionRepository()
        ledger = InMemoryDeliveryLedger()
        api_keys = InMemoryApiKeyStore()
        backend = InMemoryQueueBackend()
        counters = InMemoryCounterStore()

    queue = DeliveryQueue(
        backend,
        policy=BackoffPolicy(
            base=settings.backoff_base_seconds,
            max_delay=settings.backoff_max_seconds,
            max_attempts=settings.max_delivery_attempts
        ),
        lease_timeout=settings.lease_timeout_seconds
    )
    limiter = FixedWindowRateLimiter(
        counters,
        default_policy=RateLimitPolicy(
            points=settings.rate_limit_points,
            duration=settings.rate_limit_duration
        ),
        key_prefix=settings.rate_limit_key_prefix,
        tiers=settings.rate_limit_tiers
    )
    client = WebhookDeliveryClient(settings.delivery_timeout, transport=transport)
    metrics = (
        MetricsClient(settings.metrics_namespace, region_name=region)
        if settings.metrics_enabled else None
    )
    pool = DeliveryWorkerPool(
        queue, client, ledger, size=settings.worker_pool_size, metrics=metrics
    )
    dispatcher = EventDispatcher(SubscriptionMatcher(subscriptions), queue)

    logger.info(
        "Services built",
        storage_backend=settings.storage_backend,
        worker_pool_size=settings.worker_pool_size
    )

    return Services(
        subscriptions=subscriptions,
        ledger=ledger,
        api_keys=api_keys,
        queue=queue,
        limiter=limiter,
        client=client,
        pool=pool,
        dispatcher=dispatcher,
    )
