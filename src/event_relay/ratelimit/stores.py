"""
Module: stores.py
Description: Shared counter stores backing the rate limiter.

A counter store offers one operation: atomically add to a key's count
and report how long the key has left to live. The first increment
after a key expires starts a fresh window with a TTL equal to the
window duration. Expired keys need no explicit cleanup.

Key Components:
- CounterState: Count after the increment plus remaining TTL
- InMemoryCounterStore: Single-process store (tests, local runs)
- DynamoDBCounterStore: Conditional UpdateItem counters with a TTL attribute

Dependencies: boto3, botocore, tenacity
Author: Event Relay Team
"""

import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Protocol, Tuple

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from tenacity import retry, retry_if_exception_type, stop_after_attempt

from event_relay.errors import StoreUnavailableError
from event_relay.utils.logger import get_logger

logger = get_logger(__name__)

Clock = Callable[[], float]


@dataclass(frozen=True)
class CounterState:
    """
    Counter value after an increment.

    Attributes:
        count: Points consumed in the current window, including this call
        ttl_remaining: Seconds until the window's key expires
    """

    count: int
    ttl_remaining: float


class CounterStore(Protocol):
    async def increment(self, key: str, amount: int, ttl_seconds: int) -> CounterState:
        """Raises StoreUnavailableError when the store cannot be reached."""
        ...


class InMemoryCounterStore:
    """
    Counters held in a dict of key -> (count, expires_at).

    Expired keys are dropped by a sweep that runs at most once per
    sweep_interval, so increments do not scan every key.

    Args:
        clock: Returns the current time in seconds (defaults to time.time)
        sweep_interval: Minimum seconds between sweeps of expired keys
    """

    def __init__(self, clock: Optional[Clock] = None, sweep_interval: float = 60):
        self._clock = clock or time.time
        self._counters: Dict[str, Tuple[int, float]] = {}
        self.sweep_interval = sweep_interval
        self._next_sweep = 0.0

    async def increment(self, key: str, amount: int, ttl_seconds: int) -> CounterState:
        now = self._clock()
        count, expires_at = self._counters.get(key, (0, 0.0))

        if expires_at <= now:
            count, expires_at = 0, now + ttl_seconds

        count += amount
        self._counters[key] = (count, expires_at)
        self._evict_expired(now)
        return CounterState(count=count, ttl_remaining=expires_at - now)

    def _evict_expired(self, now: float) -> None:
        if now < self._next_sweep:
            return
        self._next_sweep = now + self.sweep_interval

        expired = [k for k, (_, exp) in self._counters.items() if exp <= now]
        for k in expired:
            del self._counters[k]


class _WindowRace(Exception):
    """Another caller started the same window between our two writes."""


class DynamoDBCounterStore:
    """
    Rate limit counters in DynamoDB.

    Table layout: hash key ``key``; numeric ``consumed`` and
    ``expires_at`` (epoch seconds). Enable DynamoDB TTL on
    ``expires_at`` so old windows are removed automatically. Because
    TTL deletion is lazy, expiry is also checked in the write condition.
    """

    def __init__(
        self,
        table_name: str,
        region_name: Optional[str] = None,
        clock: Optional[Clock] = None
    ):
        if not table_name or not isinstance(table_name, str):
            raise ValueError("table_name must be a non-empty string")

        self.table_name = table_name
        self.table = boto3.resource('dynamodb', region_name=region_name).Table(table_name)
        self._clock = clock or time.time

        logger.info(
            "Rate limit counter store initialized",
            table_name=table_name
        )

    async def increment(self, key: str, amount: int, ttl_seconds: int) -> CounterState:
        try:
            return self._increment(key, amount, ttl_seconds)
        except _WindowRace:
            raise StoreUnavailableError(f"Could not settle rate limit window for {key}")
        except ClientError as e:
            raise StoreUnavailableError(
                f"{e.response['Error']['Code']}: {e.response['Error']['Message']}"
            )
        except BotoCoreError as e:
            raise StoreUnavailableError(str(e))

    @retry(
        stop=stop_after_attempt(3),
        retry=retry_if_exception_type(_WindowRace),
        reraise=True
    )
    def _increment(self, key: str, amount: int, ttl_seconds: int) -> CounterState:
        now = int(self._clock())

        try:
            response = self.table.update_item(
                Key={'key': key},
                UpdateExpression="ADD consumed :amount",
                ConditionExpression="attribute_exists(#k) AND expires_at > :now",
                ExpressionAttributeNames={'#k': 'key'},
                ExpressionAttributeValues={':amount': amount, ':now': now},
                ReturnValues="ALL_NEW"
            )
            item = response['Attributes']
            return CounterState(
                count=int(item['consumed']),
                ttl_remaining=float(int(item['expires_at']) - now)
            )

        except ClientError as e:
            if e.response['Error']['Code'] != 'ConditionalCheckFailedException':
                raise

        # No live window: start one
        expires_at = now + ttl_seconds
        try:
            self.table.put_item(
                Item={'key': key, 'consumed': amount, 'expires_at': expires_at},
                ConditionExpression="attribute_not_exists(#k) OR expires_at <= :now",
                ExpressionAttributeNames={'#k': 'key'},
                ExpressionAttributeValues={':now': now}
            )
        except ClientError as e:
            if e.response['Error']['Code'] == 'ConditionalCheckFailedException':
                raise _WindowRace(key)
            raise

        return CounterState(count=amount, ttl_remaining=float(ttl_seconds))
