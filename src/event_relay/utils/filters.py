"""
Module: filters.py
Description: Subscription filter evaluation.

Filters are a flat mapping of payload field name to required string
value. Every entry must hold for a subscription to match (AND); keys
are case-sensitive and a key missing from the payload never matches.
There is no negation, range or "any of" support.

Key Components:
- filters_match(): Evaluate a filter map against a payload
- subscription_matches(): Full match test for one subscription
- apply_filters_to_subscriptions(): Narrow a candidate list

Author: Event Relay Team
"""

from typing import Any, Iterable, List, Mapping

from event_relay.models.subscription import Subscription
from event_relay.utils.logger import get_logger

logger = get_logger(__name__)

_MISSING = object()


def filters_match(filters: Mapping[str, str], payload: Mapping[str, Any]) -> bool:
    """
    Check whether every filter entry equals the payload field.

    Args:
        filters: Field name -> required value
        payload: Flat event payload

    Returns:
        True if all filters hold (an empty filter map always holds)

    Examples:
        >>> filters_match({'mint': 'X'}, {'mint': 'X', 'amount': '10'})
        True
        >>> filters_match({'mint': 'X'}, {'amount': '10'})
        False
    """
    for field, expected in filters.items():
        actual = payload.get(field, _MISSING)
        if actual is _MISSING:
            return False
        # No coercion: 10 never equals "10"
        if not isinstance(actual, str) or actual != expected:
            return False
    return True


def subscription_matches(
    subscription: Subscription,
    event_type: str,
    payload: Mapping[str, Any]
) -> bool:
    """
    Check whether a subscription should receive an event.

    Args:
        subscription: Candidate subscription
        event_type: Event type being dispatched
        payload: Event payload

    Returns:
        True if the subscription is active, listens to event_type and
        its filters hold against the payload
    """
    if not subscription.active:
        return False
    if subscription.event_type != event_type:
        return False
    return filters_match(subscription.filters, payload)


def apply_filters_to_subscriptions(
    subscriptions: Iterable[Subscription],
    event_type: str,
    payload: Mapping[str, Any]
) -> List[Subscription]:
    """Return the subscriptions that match, preserving input order."""
    matched = []

    for subscription in subscriptions:
        if subscription_matches(subscription, event_type, payload):
            matched.append(subscription)
        else:
            logger.debug(
                "Subscription filtered out",
                subscription_id=subscription.subscription_id,
                event_type=event_type
            )

    return matched
