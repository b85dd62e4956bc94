"""HMAC signing and input validation for webhook deliveries.

Receivers authenticate a delivery by recomputing the HMAC-SHA256 of the
canonical body (every field except ``signature``) with their shared
secret and comparing it to the ``X-Relay-Signature`` header.

Example:
    ```python
    from hookrelay.signing import verify_payload

    body = json.loads(request_body)
    if not verify_payload(body, secret):
        return 401
    ```
"""

from __future__ import annotations

import hashlib
import hmac
import json
import re
import secrets
from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import TYPE_CHECKING, Any
from urllib.parse import urlsplit

from pydantic_core import to_jsonable_python

from hookrelay.models import VALID_EVENT_NAMES, RelayEventType, RelayPayload

if TYPE_CHECKING:
    from hookrelay.models import WebhookConfig

SIGNATURE_HEADER = "X-Relay-Signature"
EVENT_HEADER = "X-Relay-Event"
DELIVERY_HEADER = "X-Relay-Delivery"

# Headers a webhook's custom headers may never replace (compared lowercased)
RESERVED_HEADERS: frozenset[str] = frozenset(
    h.lower()
    for h in (SIGNATURE_HEADER, EVENT_HEADER, DELIVERY_HEADER, "Content-Type", "User-Agent")
)

LOOPBACK_HOSTS: frozenset[str] = frozenset({"localhost", "127.0.0.1"})

# RFC 9110 token characters for header names
HEADER_NAME = re.compile(r"[!#$%&'*+.^_`|~0-9A-Za-z-]+")

# Visible ASCII, space and tab for header values
HEADER_VALUE = re.compile(r"[\x20-\x7e\t]*")

SECRET_BYTES = 32
SECRET_PREVIEW_LENGTH = 8


def sign(payload_json: str | bytes, secret: str) -> str:
    """Compute the hex HMAC-SHA256 signature of a serialized payload."""
    if isinstance(payload_json, str):
        payload_json = payload_json.encode("utf-8")
    return hmac.new(
        key=secret.encode("utf-8"),
        msg=payload_json,
        digestmod=hashlib.sha256,
    ).hexdigest()


def verify(payload_json: str | bytes, signature: str, secret: str) -> bool:
    """Verify a signature in constant time.

    Returns False, never raises, for malformed input such as a missing
    signature, non-string values or non-ASCII signature text.
    """
    if not isinstance(payload_json, str | bytes):
        return False
    if not isinstance(signature, str) or not isinstance(secret, str) or not secret:
        return False
    try:
        expected = sign(payload_json, secret)
        return hmac.compare_digest(expected, signature)
    except (TypeError, ValueError):
        return False


def serialize_body(body: Mapping[str, Any]) -> str:
    """Canonical JSON serialization used for signing.

    Compact separators, keys in insertion order, non-ASCII kept as-is.
    Signer and verifier must both use this exact form.
    """
    return json.dumps(body, separators=(",", ":"), ensure_ascii=False)


def build_signed_payload(
    event: RelayEventType | str,
    timestamp: str,
    organization_id: str,
    data: Mapping[str, Any],
    secret: str,
) -> RelayPayload:
    """Build a RelayPayload signed with one webhook's secret."""
    unsigned = {
        "event": RelayEventType(event).value,
        "timestamp": timestamp,
        "organization_id": organization_id,
        "data": to_jsonable_python(dict(data)),
    }
    signature = sign(serialize_body(unsigned), secret)
    return RelayPayload(**unsigned, signature=signature)


def verify_payload(payload: Mapping[str, Any], secret: str) -> bool:
    """Verify a received delivery body that still carries its signature field."""
    try:
        unsigned = {
            "event": payload["event"],
            "timestamp": payload["timestamp"],
            "organization_id": payload["organization_id"],
            "data": payload["data"],
        }
        signature = payload["signature"]
        return verify(serialize_body(unsigned), signature, secret)
    except (KeyError, TypeError, ValueError):
        return False


def verify_for_webhook(
    payload_json: str | bytes,
    signature: str,
    webhook: WebhookConfig,
    now: datetime | None = None,
) -> bool:
    """Verify against the webhook's current secret or a rotated one still in grace."""
    return any(verify(payload_json, signature, s) for s in webhook.accepted_secrets(now))


def is_valid_webhook_url(url: str) -> bool:
    """Check that a URL is an acceptable delivery endpoint.

    HTTPS is required, except that localhost and 127.0.0.1 are also
    allowed over plain HTTP for local development.
    """
    if not isinstance(url, str) or not url:
        return False
    try:
        parts = urlsplit(url)
        hostname = parts.hostname
    except ValueError:
        return False
    if not hostname:
        return False
    if parts.scheme == "https":
        return True
    return parts.scheme == "http" and hostname in LOOPBACK_HOSTS


def validate_events(candidates: Iterable[Any]) -> list[str]:
    """Return every candidate that is not a known event name (empty means valid)."""
    invalid: list[str] = []
    for candidate in candidates:
        name = candidate.value if isinstance(candidate, RelayEventType) else candidate
        if not isinstance(name, str) or name not in VALID_EVENT_NAMES:
            invalid.append(str(name))
    return invalid


def reserved_header_names(headers: Mapping[str, str]) -> list[str]:
    """Custom header names that collide with headers set by the relay."""
    return [name for name in headers if name.lower() in RESERVED_HEADERS]


def malformed_header_names(headers: Mapping[str, str]) -> list[str]:
    """Custom headers whose name or value cannot be sent as an HTTP header."""
    return [
        name
        for name, value in headers.items()
        if not isinstance(name, str)
        or not isinstance(value, str)
        or not HEADER_NAME.fullmatch(name)
        or not HEADER_VALUE.fullmatch(value)
    ]


def generate_secret() -> str:
    """Generate a webhook secret: 32 random bytes, hex encoded."""
    return secrets.token_hex(SECRET_BYTES)


def secret_preview(secret: str | None) -> str:
    """Short non-reversible preview of a secret for API responses."""
    return f"{secret[:SECRET_PREVIEW_LENGTH]}..." if secret else ""
