"""
Module: webhooks.py
Description: Webhook subscription management endpoints.

Implements the subscription CRUD surface. Every route is scoped to the
calling identity: a subscription owned by someone else behaves exactly
like one that does not exist.

- GET    /v1/webhooks                   List the caller's subscriptions
- POST   /v1/webhooks                   Register a subscription
- PUT    /v1/webhooks/{id}              Update, enable or disable
- DELETE /v1/webhooks/{id}              Remove
- GET    /v1/webhooks/{id}/deliveries   Delivery attempt history

Dependencies: FastAPI, typing, models, auth
Author: Event Relay Team
"""

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from fastapi import status as status_codes

from event_relay.auth.dependencies import Identity, get_services, require_identity
from event_relay.errors import SubscriptionNotFoundError
from event_relay.models.request import CreateSubscriptionRequest, UpdateSubscriptionRequest
from event_relay.models.response import (
    DeliveryListResponse,
    DeliveryRecordResponse,
    SubscriptionListResponse,
    SubscriptionResponse,
)
from event_relay.models.subscription import Subscription
from event_relay.services import Services
from event_relay.utils.logger import get_logger

router = APIRouter(prefix="/v1/webhooks", tags=["webhooks"])
logger = get_logger(__name__)


def _not_found(subscription_id: str) -> HTTPException:
    return HTTPException(
        status_code=status_codes.HTTP_404_NOT_FOUND,
        detail=f"Subscription {subscription_id} not found"
    )


@router.get("", response_model=SubscriptionListResponse)
async def list_webhooks(
    identity: Identity = Depends(require_identity),
    services: Services = Depends(get_services)
) -> SubscriptionListResponse:
    """List the caller's subscriptions, newest first."""
    subscriptions = await services.subscriptions.list_by_owner(identity.owner_id)
    return SubscriptionListResponse(
        data=[SubscriptionResponse.from_subscription(s) for s in subscriptions]
    )


@router.post(
    "",
    response_model=SubscriptionResponse,
    status_code=status_codes.HTTP_201_CREATED
)
async def create_webhook(
    request: CreateSubscriptionRequest,
    identity: Identity = Depends(require_identity),
    services: Services = Depends(get_services)
) -> SubscriptionResponse:
    """
    Register a webhook.

    Example:
        POST /v1/webhooks
        {
            "name": "USDC transfers",
            "url": "https://example.com/hooks/usdc",
            "event": "token_transfer",
            "filters": {"mint": "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"},
            "secret": "whsec_123"
        }

        Response (201):
        {"id": "sub_abc123def456", "event": "token_transfer", "has_secret": true, ...}
    """
    subscription = Subscription(
        owner_id=identity.owner_id,
        name=request.name,
        url=request.url,
        event_type=request.event,
        filters=request.filters,
        secret=request.secret or None,
    )
    created = await services.subscriptions.create(subscription)

    return SubscriptionResponse.from_subscription(created)


@router.put("/{subscription_id}", response_model=SubscriptionResponse)
async def update_webhook(
    subscription_id: str,
    request: UpdateSubscriptionRequest,
    identity: Identity = Depends(require_identity),
    services: Services = Depends(get_services)
) -> SubscriptionResponse:
    """Apply a partial update; ``active: false`` disables delivery."""
    try:
        updated = await services.subscriptions.update(
            identity.owner_id,
            subscription_id,
            request.to_changes()
        )
    except SubscriptionNotFoundError:
        raise _not_found(subscription_id)

    return SubscriptionResponse.from_subscription(updated)


@router.delete("/{subscription_id}", status_code=status_codes.HTTP_204_NO_CONTENT)
async def delete_webhook(
    subscription_id: str,
    identity: Identity = Depends(require_identity),
    services: Services = Depends(get_services)
) -> Response:
    """Delete a subscription. Jobs already queued are still attempted."""
    try:
        await services.subscriptions.delete(identity.owner_id, subscription_id)
    except SubscriptionNotFoundError:
        raise _not_found(subscription_id)

    return Response(status_code=status_codes.HTTP_204_NO_CONTENT)


@router.get("/{subscription_id}/deliveries", response_model=DeliveryListResponse)
async def list_deliveries(
    subscription_id: str,
    limit: int = Query(default=50, ge=1, le=500),
    identity: Identity = Depends(require_identity),
    services: Services = Depends(get_services)
) -> DeliveryListResponse:
    """Delivery attempts for one of the caller's subscriptions, newest first."""
    subscription = await services.subscriptions.find_by_id(subscription_id)
    if subscription is None or subscription.owner_id != identity.owner_id:
        raise _not_found(subscription_id)

    records = await services.ledger.list_for_subscription(subscription_id, limit)
    return DeliveryListResponse(
        data=[DeliveryRecordResponse.from_record(r) for r in records]
    )
