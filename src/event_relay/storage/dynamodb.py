"""
Module: dynamodb.py
Description: DynamoDB implementations of the storage interfaces.

Provides the production subscription repository, delivery ledger and
API key store with proper error handling and logging.

Table layout:
- subscriptions: hash key ``subscription_id``; GSI ``EventTypeIndex``
  (hash ``event_type``) and GSI ``OwnerIndex`` (hash ``owner_id``,
  range ``created_at``)
- deliveries: hash key ``subscription_id``, range key ``sk``
  (``<created_at>#<record_id>``) so a query returns history in time order
- api keys: hash key ``key_hash``
- usage: hash key ``key_id``, range key ``period`` (YYYY-MM-DD)

Key Components:
- DynamoDBSubscriptionRepository
- DynamoDBDeliveryLedger
- DynamoDBApiKeyStore

Dependencies: boto3, botocore, datetime, json, typing
Author: Event Relay Team
"""

import json
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

import boto3
from boto3.dynamodb.conditions import Attr, Key
from botocore.exceptions import ClientError

from event_relay.auth.api_key import ApiKeyRecord
from event_relay.errors import SubscriptionNotFoundError
from event_relay.models.delivery import DeliveryRecord
from event_relay.models.subscription import Subscription
from event_relay.utils.logger import get_logger

logger = get_logger(__name__)

EVENT_TYPE_INDEX = "EventTypeIndex"
OWNER_INDEX = "OwnerIndex"


def _table(table_name: str, region_name: Optional[str] = None):
    if not table_name or not isinstance(table_name, str):
        raise ValueError("table_name must be a non-empty string")
    return boto3.resource('dynamodb', region_name=region_name).Table(table_name)


def _log_client_error(message: str, e: ClientError, **context) -> None:
    logger.error(
        message,
        error_code=e.response['Error']['Code'],
        error_message=e.response['Error']['Message'],
        **context
    )


def _is_conditional_failure(e: ClientError) -> bool:
    return e.response['Error']['Code'] == 'ConditionalCheckFailedException'


def _query_all(table, **kwargs) -> List[Dict[str, Any]]:
    """Run a query following LastEvaluatedKey until exhausted."""
    items: List[Dict[str, Any]] = []
    while True:
        response = table.query(**kwargs)
        items.extend(response.get('Items', []))
        last_key = response.get('LastEvaluatedKey')
        if not last_key:
            return items
        kwargs['ExclusiveStartKey'] = last_key


class DynamoDBSubscriptionRepository:
    """
    Subscription repository backed by DynamoDB.

    Example:
        >>> repo = DynamoDBSubscriptionRepository("event-relay-subscriptions")
        >>> await repo.create(subscription)
        >>> matches = await repo.find_active_by_event("token_transfer")
    """

    def __init__(self, table_name: str, region_name: Optional[str] = None):
        """
        Initialize the repository.

        Args:
            table_name: Name of the subscriptions table
            region_name: AWS region

        Raises:
            ValueError: If table_name is empty or invalid
        """
        self.table_name = table_name
        self.table = _table(table_name, region_name)

        logger.info(
            "Subscription repository initialized",
            table_name=table_name
        )

    @staticmethod
    def _to_item(subscription: Subscription) -> Dict[str, Any]:
        item = subscription.model_dump()
        item['created_at'] = subscription.created_at.isoformat()
        item['updated_at'] = subscription.updated_at.isoformat()
        # DynamoDB doesn't allow None values
        return {k: v for k, v in item.items() if v is not None}

    @staticmethod
    def _from_item(item: Dict[str, Any]) -> Subscription:
        item = dict(item)
        item['created_at'] = datetime.fromisoformat(item['created_at'])
        item['updated_at'] = datetime.fromisoformat(item['updated_at'])
        return Subscription(**item)

    async def find_active_by_event(self, event_type: str) -> List[Subscription]:
        try:
            items = _query_all(
                self.table,
                IndexName=EVENT_TYPE_INDEX,
                KeyConditionExpression=Key('event_type').eq(event_type),
                FilterExpression=Attr('active').eq(True)
            )
        except ClientError as e:
            _log_client_error(
                "Failed to query subscriptions by event",
                e,
                event_type=event_type,
                table_name=self.table_name
            )
            raise

        return [self._from_item(item) for item in items]

    async def find_by_id(self, subscription_id: str) -> Optional[Subscription]:
        if not subscription_id or not isinstance(subscription_id, str):
            raise ValueError("subscription_id must be a non-empty string")

        try:
            response = self.table.get_item(Key={'subscription_id': subscription_id})
        except ClientError as e:
            _log_client_error(
                "Failed to get subscription",
                e,
                subscription_id=subscription_id,
                table_name=self.table_name
            )
            raise

        if 'Item' not in response:
            return None
        return self._from_item(response['Item'])

    async def list_by_owner(self, owner_id: str) -> List[Subscription]:
        try:
            items = _query_all(
                self.table,
                IndexName=OWNER_INDEX,
                KeyConditionExpression=Key('owner_id').eq(owner_id),
                ScanIndexForward=False
            )
        except ClientError as e:
            _log_client_error(
                "Failed to list subscriptions",
                e,
                owner_id=owner_id,
                table_name=self.table_name
            )
            raise

        return [self._from_item(item) for item in items]

    async def create(self, subscription: Subscription) -> Subscription:
        if not isinstance(subscription, Subscription):
            raise ValueError("subscription must be a Subscription instance")

        try:
            self.table.put_item(
                Item=self._to_item(subscription),
                ConditionExpression=Attr('subscription_id').not_exists()
            )
        except ClientError as e:
            _log_client_error(
                "Failed to store subscription",
                e,
                subscription_id=subscription.subscription_id,
                table_name=self.table_name
            )
            raise

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
        current = await self.find_by_id(subscription_id)
        if current is None or current.owner_id != owner_id:
            raise SubscriptionNotFoundError(subscription_id)

        updated = Subscription.model_validate({
            **current.model_dump(),
            **changes,
            'updated_at': datetime.now(timezone.utc),
        })

        try:
            self.table.put_item(
                Item=self._to_item(updated),
                ConditionExpression=Attr('owner_id').eq(owner_id)
            )
        except ClientError as e:
            if _is_conditional_failure(e):
                raise SubscriptionNotFoundError(subscription_id)
            _log_client_error(
                "Failed to update subscription",
                e,
                subscription_id=subscription_id,
                table_name=self.table_name
            )
            raise

        logger.info(
            "Subscription updated",
            subscription_id=subscription_id,
            fields=sorted(changes)
        )
        return updated

    async def delete(self, owner_id: str, subscription_id: str) -> None:
        try:
            self.table.delete_item(
                Key={'subscription_id': subscription_id},
                ConditionExpression=Attr('owner_id').eq(owner_id)
            )
        except ClientError as e:
            if _is_conditional_failure(e):
                raise SubscriptionNotFoundError(subscription_id)
            _log_client_error(
                "Failed to delete subscription",
                e,
                subscription_id=subscription_id,
                table_name=self.table_name
            )
            raise

        logger.info("Subscription deleted", subscription_id=subscription_id)


class DynamoDBDeliveryLedger:
    """Append-only delivery ledger backed by DynamoDB."""

    def __init__(self, table_name: str, region_name: Optional[str] = None):
        self.table_name = table_name
        self.table = _table(table_name, region_name)

        logger.info(
            "Delivery ledger initialized",
            table_name=table_name
        )

    async def append(self, record: DeliveryRecord) -> None:
        """
        Store one delivery record.

        The write is conditional on the sort key being new, so an
        existing record is never overwritten.

        Raises:
            ClientError: If DynamoDB operation fails
        """
        item = record.model_dump()
        item['created_at'] = record.created_at.isoformat()
        item['sk'] = f"{item['created_at']}#{record.record_id}"
        # Payloads may hold floats, which DynamoDB rejects; store as JSON
        item['payload'] = json.dumps(record.payload)
        item = {k: v for k, v in item.items() if v is not None}

        try:
            self.table.put_item(
                Item=item,
                ConditionExpression=Attr('sk').not_exists()
            )
        except ClientError as e:
            _log_client_error(
                "Failed to append delivery record",
                e,
                subscription_id=record.subscription_id,
                job_id=record.job_id,
                attempt=record.attempt,
                table_name=self.table_name
            )
            raise

    async def list_for_subscription(
        self,
        subscription_id: str,
        limit: int = 100
    ) -> List[DeliveryRecord]:
        try:
            response = self.table.query(
                KeyConditionExpression=Key('subscription_id').eq(subscription_id),
                ScanIndexForward=False,
                Limit=limit
            )
        except ClientError as e:
            _log_client_error(
                "Failed to list delivery records",
                e,
                subscription_id=subscription_id,
                table_name=self.table_name
            )
            raise

        records = []
        for item in response.get('Items', []):
            item = dict(item)
            item.pop('sk', None)
            item['payload'] = json.loads(item['payload'])
            item['created_at'] = datetime.fromisoformat(item['created_at'])
            item['attempt'] = int(item['attempt'])
            if item.get('status_code') is not None:
                item['status_code'] = int(item['status_code'])
            records.append(DeliveryRecord(**item))
        return records


class DynamoDBApiKeyStore:
    """API keys and daily usage counters backed by DynamoDB."""

    def __init__(
        self,
        table_name: str,
        usage_table_name: str,
        region_name: Optional[str] = None
    ):
        self.table_name = table_name
        self.table = _table(table_name, region_name)
        self.usage_table = _table(usage_table_name, region_name)

        logger.info(
            "API key store initialized",
            table_name=table_name,
            usage_table_name=usage_table_name
        )

    async def get_by_hash(self, key_hash: str) -> Optional[ApiKeyRecord]:
        try:
            response = self.table.get_item(Key={'key_hash': key_hash})
        except ClientError as e:
            _log_client_error("Failed to look up API key", e, table_name=self.table_name)
            raise

        if 'Item' not in response:
            return None

        item = dict(response['Item'])
        item['created_at'] = datetime.fromisoformat(item['created_at'])
        if item.get('last_used_at'):
            item['last_used_at'] = datetime.fromisoformat(item['last_used_at'])
        return ApiKeyRecord(**item)

    async def put(self, record: ApiKeyRecord) -> None:
        item = record.model_dump()
        item['created_at'] = record.created_at.isoformat()
        if record.last_used_at is not None:
            item['last_used_at'] = record.last_used_at.isoformat()
        item = {k: v for k, v in item.items() if v is not None}

        try:
            self.table.put_item(Item=item)
        except ClientError as e:
            _log_client_error(
                "Failed to store API key",
                e,
                key_id=record.key_id,
                table_name=self.table_name
            )
            raise

    async def touch_last_used(self, key_hash: str) -> None:
        self.table.update_item(
            Key={'key_hash': key_hash},
            UpdateExpression="SET last_used_at = :now",
            ConditionExpression=Attr('key_hash').exists(),
            ExpressionAttributeValues={':now': datetime.now(timezone.utc).isoformat()}
        )

    async def increment_usage(self, key_id: str, period: date) -> None:
        self.usage_table.update_item(
            Key={'key_id': key_id, 'period': period.isoformat()},
            UpdateExpression="ADD requests :one",
            ExpressionAttributeValues={':one': 1}
        )
