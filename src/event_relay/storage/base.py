"""
Module: base.py
Description: Storage interfaces consumed by the Event Relay.

The relay never talks to a database directly; it goes through these
narrow interfaces so that the matcher, worker pool and API can run
against in-memory stores in tests and DynamoDB in production.

Key Components:
- SubscriptionRepository: Webhook registrations, scoped to an owner
- DeliveryLedger: Append-only per-attempt audit trail
- ApiKeyStore: API key lookup by hash plus usage telemetry
"""

from datetime import date
from typing import Any, Dict, List, Optional, Protocol

from event_relay.auth.api_key import ApiKeyRecord
from event_relay.models.delivery import DeliveryRecord
from event_relay.models.subscription import Subscription


class SubscriptionRepository(Protocol):
    async def find_active_by_event(self, event_type: str) -> List[Subscription]:
        ...

    async def find_by_id(self, subscription_id: str) -> Optional[Subscription]:
        ...

    async def list_by_owner(self, owner_id: str) -> List[Subscription]:
        ...

    async def create(self, subscription: Subscription) -> Subscription:
        ...

    async def update(
        self,
        owner_id: str,
        subscription_id: str,
        changes: Dict[str, Any]
    ) -> Subscription:
        """Raises SubscriptionNotFoundError if missing or owned by someone else."""
        ...

    async def delete(self, owner_id: str, subscription_id: str) -> None:
        """Raises SubscriptionNotFoundError if missing or owned by someone else."""
        ...


class DeliveryLedger(Protocol):
    async def append(self, record: DeliveryRecord) -> None:
        ...

    async def list_for_subscription(
        self,
        subscription_id: str,
        limit: int = 100
    ) -> List[DeliveryRecord]:
        """Newest first."""
        ...


class ApiKeyStore(Protocol):
    async def get_by_hash(self, key_hash: str) -> Optional[ApiKeyRecord]:
        ...

    async def put(self, record: ApiKeyRecord) -> None:
        ...

    async def touch_last_used(self, key_hash: str) -> None:
        ...

    async def increment_usage(self, key_id: str, period: date) -> None:
        ...
