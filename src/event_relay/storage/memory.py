"""
Module: memory.py
Description: In-process implementations of the storage interfaces.

Used by tests and by local runs with ``STORAGE_BACKEND=memory``.
Reads return snapshots (copies), so callers never observe a
subscription changing underneath them.

Key Components:
- InMemorySubscriptionRepository
- InMemoryDeliveryLedger
- InMemoryApiKeyStore
"""

import asyncio
from collections import defaultdict
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from event_relay.auth.api_key import ApiKeyRecord
from event_relay.errors import SubscriptionNotFoundError
from event_relay.models.delivery import DeliveryRecord
from event_relay.models.subscription import Subscription
from event_relay.utils.logger import get_logger

logger = get_logger(__name__)


class InMemorySubscriptionRepository:
    """Subscription repository backed by a dict."""

    def __init__(self):
        self._items: Dict[str, Subscription] = {}
        self._lock = asyncio.Lock()

    async def find_active_by_event(self, event_type: str) -> List[Subscription]:
        async with self._lock:
            return [
                s.model_copy(deep=True)
                for s in self._items.values()
                if s.active and s.event_type == event_type
            ]

    async def find_by_id(self, subscription_id: str) -> Optional[Subscription]:
        async with self._lock:
            found = self._items.get(subscription_id)
            return found.model_copy(deep=True) if found else None

    async def list_by_owner(self, owner_id: str) -> List[Subscription]:
        async with self._lock:
            owned = [s for s in self._items.values() if s.owner_id == owner_id]
        owned.sort(key=lambda s: s.created_at, reverse=True)
        return [s.model_copy(deep=True) for s in owned]

    async def create(self, subscription: Subscription) -> Subscription:
        async with self._lock:
            self._items[subscription.subscription_id] = subscription.model_copy(deep=True)

        logger.info(
            "Subscription created",
            subscription_id=subscription.subscription_id,
            owner_id=subscription.owner_id,
            event_type=subscription.event_type
        )
        return subscription

    async def update(
        self,
        owner_id: str,
        subscription_id: str,
        changes: Dict[str, Any]
    ) -> Subscription:
        async with self._lock:
            current = self._items.get(subscription_id)
            if current is None or current.owner_id != owner_id:
                raise SubscriptionNotFoundError(subscription_id)

            updated = Subscription.model_validate({
                **current.model_dump(),
                **changes,
                'updated_at': datetime.now(timezone.utc),
            })
            self._items[subscription_id] = updated

        logger.info(
            "Subscription updated",
            subscription_id=subscription_id,
            fields=sorted(changes)
        )
        return updated.model_copy(deep=True)

    async def delete(self, owner_id: str, subscription_id: str) -> None:
        async with self._lock:
            current = self._items.get(subscription_id)
            if current is None or current.owner_id != owner_id:
                raise SubscriptionNotFoundError(subscription_id)
            del self._items[subscription_id]

        logger.info("Subscription deleted", subscription_id=subscription_id)


class InMemoryDeliveryLedger:
    """Append-only list of delivery records."""

    def __init__(self):
        self._records: List[DeliveryRecord] = []
        self._lock = asyncio.Lock()

    async def append(self, record: DeliveryRecord) -> None:
        async with self._lock:
            self._records.append(record)

    async def list_for_subscription(
        self,
        subscription_id: str,
        limit: int = 100
    ) -> List[DeliveryRecord]:
        async with self._lock:
            matching = [r for r in self._records if r.subscription_id == subscription_id]
        return list(reversed(matching))[:limit]

    @property
    def records(self) -> List[DeliveryRecord]:
        """All records in append order."""
        return list(self._records)


class InMemoryApiKeyStore:
    """API keys keyed by hash, with per-day usage counters."""

    def __init__(self):
        self._keys: Dict[str, ApiKeyRecord] = {}
        self.usage: Dict[Tuple[str, str], int] = defaultdict(int)

    async def get_by_hash(self, key_hash: str) -> Optional[ApiKeyRecord]:
        found = self._keys.get(key_hash)
        return found.model_copy() if found else None

    async def put(self, record: ApiKeyRecord) -> None:
        self._keys[record.key_hash] = record.model_copy()

    async def touch_last_used(self, key_hash: str) -> None:
        found = self._keys.get(key_hash)
        if found is not None:
            found.last_used_at = datetime.now(timezone.utc)

    async def increment_usage(self, key_id: str, period: date) -> None:
        self.usage[(key_id, period.isoformat())] += 1
