"""
Module: delivery/signing.py
Description: Webhook body construction and HMAC-SHA256 signing.

The body is serialized exactly once; those bytes are both signed and
sent, so a receiver can recompute the signature over the raw request
body it received.

Wire contract:
    POST <url>
    Content-Type: application/json
    X-Event-Type: <event>
    X-Signature: <hex HMAC-SHA256(secret, body)>   (only with a secret)

    {"event": "...", "data": {...}, "timestamp": "<ISO-8601>"}
"""

import hashlib
import hmac
import json
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

EVENT_TYPE_HEADER = "X-Event-Type"
SIGNATURE_HEADER = "X-Signature"


def build_body(
    event_type: str,
    data: Mapping[str, Any],
    timestamp: Optional[datetime] = None
) -> bytes:
    """
    Serialize the webhook body.

    Args:
        event_type: Event type name
        data: Event payload
        timestamp: Delivery time (defaults to now, UTC)

    Returns:
        UTF-8 encoded JSON bytes
    """
    when = timestamp or datetime.now(timezone.utc)
    body = {
        'event': event_type,
        'data': dict(data),
        'timestamp': when.isoformat().replace('+00:00', 'Z'),
    }
    return json.dumps(body, separators=(',', ':')).encode('utf-8')


def sign_body(secret: str, body: bytes) -> str:
    """Hex HMAC-SHA256 of the exact body bytes."""
    return hmac.new(secret.encode('utf-8'), body, hashlib.sha256).hexdigest()


def verify_signature(secret: str, body: bytes, signature: str) -> bool:
    """Constant-time check of a received signature."""
    return hmac.compare_digest(sign_body(secret, body), signature)


def build_headers(event_type: str, body: bytes, secret: Optional[str] = None) -> Dict[str, str]:
    """
    Headers for one delivery.

    The signature header is present only when the secret is non-empty.
    """
    headers = {
        'Content-Type': 'application/json',
        EVENT_TYPE_HEADER: event_type,
    }
    if secret:
        headers[SIGNATURE_HEADER] = sign_body(secret, body)
    return headers
