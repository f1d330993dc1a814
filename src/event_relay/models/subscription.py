"""
Module: subscription.py
Description: Webhook subscription model.

A subscription is an owner's registered interest in one event type,
optionally narrowed by exact-match filters on payload fields, pointing
at the URL that receives the signed callbacks.

Key Components:
- Subscription: Subscription domain model
- validate_target_url(): Absolute HTTP(S) URL check shared with requests
- validate_filters(): String-only filter map check shared with requests

Dependencies: pydantic, datetime, urllib, typing
Author: Event Relay Team
"""

import re
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from urllib.parse import urlparse
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

EVENT_TYPE_PATTERN = re.compile(r'^[a-z0-9._]+$')


def generate_subscription_id() -> str:
    """Generate a new subscription identifier."""
    return f"sub_{uuid4().hex[:12]}"


def validate_target_url(v: str) -> str:
    """
    Ensure a webhook target is an absolute HTTP(S) URL.

    Raises:
        ValueError: If the URL has another scheme or no host
    """
    if not v or not isinstance(v, str):
        raise ValueError("url must be a non-empty string")

    parsed = urlparse(v)
    if parsed.scheme not in ('http', 'https') or not parsed.netloc:
        raise ValueError("url must be an absolute HTTP/HTTPS URL")

    return v


def validate_filters(v: Any) -> Dict[str, str]:
    """
    Ensure filters are a flat mapping of field name to string value.

    Keys are case-sensitive and kept as given. Non-string values are
    rejected rather than coerced.
    """
    if v is None:
        return {}
    if not isinstance(v, dict):
        raise ValueError("filters must be an object")

    for key, value in v.items():
        if not isinstance(key, str) or not key:
            raise ValueError("filter keys must be non-empty strings")
        if not isinstance(value, str):
            raise ValueError(f"filter '{key}' must have a string value")

    return dict(v)


def validate_event_type(v: str) -> str:
    """Event types are lowercase identifiers such as 'token_transfer'."""
    if not v or not isinstance(v, str):
        raise ValueError("event_type must be a non-empty string")
    if not EVENT_TYPE_PATTERN.match(v):
        raise ValueError(
            "event_type must contain only lowercase letters, numbers, dots, and underscores"
        )
    return v


class Subscription(BaseModel):
    """
    Webhook subscription owned by an API identity.

    Attributes:
        subscription_id: Unique subscription identifier
        owner_id: Identity that registered the subscription
        name: Human-readable label
        url: Delivery target (absolute HTTP/HTTPS URL)
        event_type: Event type this subscription listens to
        filters: Payload field -> required value, ANDed together
        secret: Optional HMAC signing secret
        active: Inactive subscriptions never match
        created_at: Registration timestamp
        updated_at: Last modification timestamp
    """

    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=True,
    )

    subscription_id: str = Field(
        default_factory=generate_subscription_id,
        description="Unique subscription identifier"
    )
    owner_id: str = Field(..., min_length=1, description="Owning identity")
    name: str = Field(..., min_length=1, max_length=100, description="Subscription label")
    url: str = Field(..., description="Webhook target URL")
    event_type: str = Field(..., min_length=1, max_length=100, description="Event type")
    filters: Dict[str, str] = Field(default_factory=dict, description="Exact-match filters")
    secret: Optional[str] = Field(default=None, description="HMAC signing secret")
    active: bool = Field(default=True, description="Whether the subscription receives events")
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator('url')
    @classmethod
    def check_url(cls, v: str) -> str:
        """Validate the delivery target URL."""
        return validate_target_url(v)

    @field_validator('event_type')
    @classmethod
    def check_event_type(cls, v: str) -> str:
        """Validate event type naming."""
        return validate_event_type(v)

    @field_validator('filters', mode='before')
    @classmethod
    def check_filters(cls, v: Any) -> Dict[str, str]:
        """Validate filters are string-valued."""
        return validate_filters(v)

    @property
    def has_secret(self) -> bool:
        """True when deliveries are signed."""
        return bool(self.secret)
