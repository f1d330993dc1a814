"""
Module: delivery/dispatcher.py
Description: Entry point for domain events into the delivery pipeline.

The ingestion side calls ``notify(event_type, payload)`` whenever a
qualifying event is indexed. Each matched subscription gets its own
delivery job, so one failing endpoint never delays another.
"""

from typing import Any, List, Mapping

from event_relay.delivery.matcher import SubscriptionMatcher
from event_relay.delivery_queue.queue import DeliveryQueue
from event_relay.models.delivery import DeliveryJob
from event_relay.utils.logger import get_logger

logger = get_logger(__name__)


class EventDispatcher:
    """Fan an event out into one delivery job per matched subscription."""

    def __init__(self, matcher: SubscriptionMatcher, queue: DeliveryQueue):
        self.matcher = matcher
        self.queue = queue

    async def notify(self, event_type: str, payload: Mapping[str, Any]) -> List[DeliveryJob]:
        """
        Record that a domain event occurred.

        Args:
            event_type: Event type, e.g. 'token_transfer'
            payload: Event payload

        Returns:
            The jobs that were enqueued (one per matched subscription)
        """
        subscriptions = await self.matcher.match(event_type, payload)

        jobs = []
        for subscription in subscriptions:
            job = DeliveryJob(
                subscription_id=subscription.subscription_id,
                target_url=subscription.url,
                secret=subscription.secret,
                event_type=event_type,
                payload=dict(payload),
                max_attempts=self.queue.max_attempts,
            )
            await self.queue.enqueue(job)
            jobs.append(job)

        logger.info(
            "Event dispatched",
            event_type=event_type,
            jobs=len(jobs)
        )
        return jobs
