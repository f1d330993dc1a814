"""
Module: delivery/matcher.py
Description: Subscription matching for dispatched events.

Resolves which subscriptions should receive an event: active ones
listening to the event type whose filters all equal the corresponding
payload fields. Matching has no side effects.
"""

from typing import Any, List, Mapping

from event_relay.models.subscription import Subscription
from event_relay.storage.base import SubscriptionRepository
from event_relay.utils.filters import apply_filters_to_subscriptions
from event_relay.utils.logger import get_logger

logger = get_logger(__name__)


class SubscriptionMatcher:
    """Select the subscriptions interested in an event."""

    def __init__(self, repository: SubscriptionRepository):
        self.repository = repository

    async def match(self, event_type: str, payload: Mapping[str, Any]) -> List[Subscription]:
        """
        Return every active subscription whose type and filters match.

        The repository narrows candidates by event type; the filter
        check is re-applied here (including the active flag) so a
        repository returning extra rows cannot widen the result.

        Args:
            event_type: Event type name
            payload: Flat mapping of payload fields

        Returns:
            Matching subscriptions; an empty filter set matches every
            event of its type
        """
        candidates = await self.repository.find_active_by_event(event_type)
        matched = apply_filters_to_subscriptions(candidates, event_type, payload)

        logger.debug(
            "Subscriptions matched",
            event_type=event_type,
            candidates=len(candidates),
            matched=len(matched)
        )
        return matched
