"""
Module: models
Description: Package initialization for Pydantic data models.

This package contains all data models used by the Event Relay:
- Subscription: Webhook registration domain model
- DeliveryJob / DeliveryRecord: Queue work item and ledger entry
- Request and response models for the subscription API

All models are exported here for convenient importing.
"""

from .delivery import DeliveryJob, DeliveryRecord
from .request import CreateSubscriptionRequest, UpdateSubscriptionRequest
from .response import SubscriptionResponse
from .subscription import Subscription

__all__ = [
    "Subscription",
    "DeliveryJob",
    "DeliveryRecord",
    "CreateSubscriptionRequest",
    "UpdateSubscriptionRequest",
    "SubscriptionResponse",
]
