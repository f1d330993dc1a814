"""
Module: errors.py
Description: Exception hierarchy for the Event Relay.

Delivery errors are raised by the HTTP delivery client and handled by
the worker pool; none of them reach an API caller. Store errors are
handled inside the rate limiter, which fails open.

Key Components:
- EventRelayError: Base class for all relay errors
- TransientDeliveryError / PermanentDeliveryError: Delivery failures
- StoreUnavailableError: Shared counter store is unreachable
- SubscriptionNotFoundError: Lookup scoped to an owner found nothing

Author: Event Relay Team
"""

from typing import Optional


class EventRelayError(Exception):
    """Base class for Event Relay errors."""


class DeliveryError(EventRelayError):
    """
    A single webhook delivery attempt failed.

    Attributes:
        status_code: HTTP status returned by the target, if any
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class TransientDeliveryError(DeliveryError):
    """Network failure, timeout, or non-2xx response."""


class PermanentDeliveryError(DeliveryError):
    """
    Target can never succeed (e.g. malformed URL found at send time).

    Retried exactly like transient errors until attempts run out.
    """


class StoreUnavailableError(EventRelayError):
    """Shared counter store could not be reached."""


class SubscriptionNotFoundError(EventRelayError):
    """Subscription does not exist or belongs to another owner."""

    def __init__(self, subscription_id: str):
        super().__init__(f"Subscription {subscription_id} not found")
        self.subscription_id = subscription_id
