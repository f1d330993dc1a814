"""
Module: api_key.py
Description: API key generation, hashing and the stored key record.

Keys are looked up by hash on every request, so the hash must be
deterministic: a plain SHA-256 hex digest of the raw key. Raw keys are
high-entropy random tokens, which is what makes an unsalted digest
acceptable here.

Key Components:
- ApiKeyRecord: Stored API key (hash, owner, tier, revocation)
- generate_api_key(): Create a new raw key
- hash_api_key(): SHA-256 hex digest used as the lookup key
- verify_api_key(): Constant-time comparison against a stored hash

Dependencies: hashlib, secrets, pydantic
Author: Event Relay Team
"""

import hashlib
import secrets
from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from event_relay.utils.logger import get_logger

logger = get_logger(__name__)

API_KEY_PREFIX = "sk_"
API_KEY_BYTES = 32


class ApiKeyRecord(BaseModel):
    """
    Stored API key.

    Attributes:
        key_id: Stable identifier, used as the rate limit identity
        owner_id: Identity that owns subscriptions created with this key
        key_hash: SHA-256 hex digest of the raw key
        tier: Rate limit tier (free, pro, enterprise)
        revoked: Revoked keys are rejected
        created_at: Creation timestamp
        last_used_at: Best-effort last use timestamp
    """

    key_id: str = Field(default_factory=lambda: f"key_{uuid4().hex[:12]}")
    owner_id: str = Field(..., min_length=1)
    key_hash: str = Field(..., min_length=64, max_length=64)
    tier: str = Field(default="free", min_length=1)
    revoked: bool = Field(default=False)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    last_used_at: Optional[datetime] = Field(default=None)


def generate_api_key() -> str:
    """
    Generate a new raw API key.

    Returns:
        Key of the form ``sk_<urlsafe token>``; shown to the owner once
    """
    return f"{API_KEY_PREFIX}{secrets.token_urlsafe(API_KEY_BYTES)}"


def hash_api_key(api_key: str) -> str:
    """
    Hash an API key for storage and lookup.

    Args:
        api_key: Raw API key

    Returns:
        SHA-256 hex digest

    Raises:
        ValueError: If api_key is empty or not a string

    Example:
        >>> len(hash_api_key("sk_abc123xyz"))
        64
    """
    if not api_key or not isinstance(api_key, str):
        raise ValueError("api_key must be a non-empty string")

    if not api_key.strip():
        raise ValueError("api_key cannot be only whitespace")

    return hashlib.sha256(api_key.encode('utf-8')).hexdigest()


def verify_api_key(plain_key: str, hashed_key: str) -> bool:
    """
    Verify a raw API key against a stored hash.

    Args:
        plain_key: Raw API key from the request
        hashed_key: Stored SHA-256 hex digest

    Returns:
        True if the key matches, False otherwise (including bad input)
    """
    if not plain_key or not isinstance(plain_key, str):
        logger.warning("Invalid plain API key provided for verification")
        return False

    if not hashed_key or not isinstance(hashed_key, str):
        logger.warning("Invalid hashed API key provided for verification")
        return False

    return secrets.compare_digest(hash_api_key(plain_key), hashed_key)
