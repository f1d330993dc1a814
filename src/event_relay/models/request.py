"""
Module: request.py
Description: API request models for the Event Relay.

Defines request models for the webhook subscription endpoints. These
models handle input validation before anything reaches a repository.

Key Components:
- CreateSubscriptionRequest: Model for POST /v1/webhooks
- UpdateSubscriptionRequest: Model for PUT /v1/webhooks/{id}

Dependencies: pydantic, typing
Author: Event Relay Team
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from event_relay.models.subscription import validate_event_type, validate_filters, validate_target_url


class CreateSubscriptionRequest(BaseModel):
    """
    Request model for registering a webhook.

    Attributes:
        name: Human-readable label (required)
        url: Absolute HTTP/HTTPS delivery target (required)
        event: Event type to subscribe to (required)
        filters: Optional exact-match payload filters, string values only
        secret: Optional signing secret
    """

    model_config = ConfigDict(
        str_strip_whitespace=True,
        extra="forbid"
    )

    name: str = Field(..., min_length=1, max_length=100, description="Subscription label")
    url: str = Field(..., description="Webhook target URL")
    event: str = Field(..., min_length=1, max_length=100, description="Event type")
    filters: Dict[str, str] = Field(default_factory=dict, description="Exact-match filters")
    secret: Optional[str] = Field(default=None, max_length=256, description="Signing secret")

    @field_validator('url')
    @classmethod
    def check_url(cls, v: str) -> str:
        return validate_target_url(v)

    @field_validator('event')
    @classmethod
    def check_event(cls, v: str) -> str:
        return validate_event_type(v)

    @field_validator('filters', mode='before')
    @classmethod
    def check_filters(cls, v: Any) -> Dict[str, str]:
        return validate_filters(v)


class UpdateSubscriptionRequest(BaseModel):
    """
    Partial update for a webhook; omitted fields are left unchanged.

    Setting ``active`` to false disables delivery without deleting the
    subscription.
    """

    model_config = ConfigDict(
        str_strip_whitespace=True,
        extra="forbid"
    )

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    url: Optional[str] = Field(default=None)
    event: Optional[str] = Field(default=None, min_length=1, max_length=100)
    filters: Optional[Dict[str, str]] = Field(default=None)
    secret: Optional[str] = Field(default=None, max_length=256)
    active: Optional[bool] = Field(default=None)

    @field_validator('url')
    @classmethod
    def check_url(cls, v: Optional[str]) -> Optional[str]:
        return validate_target_url(v) if v is not None else v

    @field_validator('event')
    @classmethod
    def check_event(cls, v: Optional[str]) -> Optional[str]:
        return validate_event_type(v) if v is not None else v

    @field_validator('filters', mode='before')
    @classmethod
    def check_filters(cls, v: Any) -> Optional[Dict[str, str]]:
        return validate_filters(v) if v is not None else v

    def to_changes(self) -> Dict[str, Any]:
        """
        Map request fields onto Subscription attribute names.

        Only fields the caller actually sent are included. An explicit
        null is honoured for ``secret`` (turns signing off) and ignored
        elsewhere.
        """
        changes = {
            key: value
            for key, value in self.model_dump(exclude_unset=True).items()
            if value is not None or key == 'secret'
        }
        if 'event' in changes:
            changes['event_type'] = changes.pop('event')
        return changes
