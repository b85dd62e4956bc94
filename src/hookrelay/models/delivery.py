"""Delivery models: signed payloads, per-attempt records and relay summaries."""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from .base import generate_id, utc_now
from .webhook import RelayEventType

# Delivery status
DeliveryStatus = Literal["pending", "success", "failed", "retrying"]

TERMINAL_STATUSES: frozenset[str] = frozenset({"success", "failed"})

MAX_RESPONSE_BODY_LENGTH = 1000


class RelayPayload(BaseModel):
    """The JSON body delivered to a subscriber.

    The signature covers the canonical serialization of every other
    field (see hookrelay.signing.serialize_body), keyed by the target
    webhook's own secret.
    """

    model_config = ConfigDict(extra="forbid")

    event: RelayEventType
    timestamp: str = Field(description="ISO-8601 UTC time shared by one fan-out")
    organization_id: str
    data: dict[str, Any] = Field(default_factory=dict)
    signature: str = Field(description="Hex HMAC-SHA256 of the unsigned body")

    def unsigned_body(self) -> dict[str, Any]:
        """Signed fields in canonical key order."""
        return {
            "event": self.event.value,
            "timestamp": self.timestamp,
            "organization_id": self.organization_id,
            "data": self.data,
        }

    def wire_body(self) -> dict[str, Any]:
        """Full body as sent on the wire, signature last."""
        return {**self.unsigned_body(), "signature": self.signature}


class RelayDelivery(BaseModel):
    """Record of a single delivery attempt.

    Every attempt gets its own record. Attempts belonging to the same
    logical delivery share a chain_id.

    Attributes:
        id: Unique identifier, sent to receivers as the delivery header.
        webhook_id: Target webhook (may dangle after the webhook is deleted).
        organization_id: Owning organization.
        chain_id: Groups all attempts of one event-to-webhook delivery.
        event: Event type being delivered.
        payload: The exact payload sent.
        request_body: The serialized wire body, byte for byte.
        status: pending, success, failed or retrying.
        attempts: Attempt number of this record (1-indexed).
        next_retry_at: When the follow-up attempt is due, until it is claimed.
        delivered_at: When a 2xx response was received.
    """

    model_config = ConfigDict(extra="forbid")

    id: str = Field(default_factory=lambda: generate_id("dlv"))
    webhook_id: str
    organization_id: str
    chain_id: str = Field(default_factory=lambda: generate_id("chn"))
    event: RelayEventType
    payload: RelayPayload
    request_body: str | None = Field(
        default=None, description="Exact serialized body sent; retries resend it unchanged"
    )
    status: DeliveryStatus = Field(default="pending")
    response_code: int | None = Field(default=None)
    response_body: str | None = Field(default=None)
    error_message: str | None = Field(default=None)
    attempts: int = Field(default=1, ge=1)
    next_retry_at: datetime | None = Field(default=None)
    delivered_at: datetime | None = Field(default=None)
    created_at: datetime = Field(default_factory=utc_now)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def mark_success(
        self,
        response_code: int,
        response_body: str | None = None,
        limit: int = MAX_RESPONSE_BODY_LENGTH,
    ) -> "RelayDelivery":
        """Mark delivery as successful."""
        self.status = "success"
        self.delivered_at = utc_now()
        self.response_code = response_code
        self.response_body = response_body[:limit] if response_body else None
        self.error_message = None
        self.next_retry_at = None
        return self

    def mark_failed(
        self,
        error: str,
        response_code: int | None = None,
        response_body: str | None = None,
        limit: int = MAX_RESPONSE_BODY_LENGTH,
    ) -> "RelayDelivery":
        """Mark delivery as failed (no more retries)."""
        self.status = "failed"
        self.error_message = error
        self.response_code = response_code
        self.response_body = response_body[:limit] if response_body else None
        self.next_retry_at = None
        return self

    def mark_retrying(
        self,
        next_retry_at: datetime,
        error: str,
        response_code: int | None = None,
        response_body: str | None = None,
        limit: int = MAX_RESPONSE_BODY_LENGTH,
    ) -> "RelayDelivery":
        """Mark delivery as failed with a follow-up attempt owed."""
        self.status = "retrying"
        self.error_message = error
        self.response_code = response_code
        self.response_body = response_body[:limit] if response_body else None
        self.next_retry_at = next_retry_at
        return self


class RelaySummary(BaseModel):
    """Aggregate outcome of one relay fan-out."""

    model_config = ConfigDict(extra="forbid")

    event: RelayEventType
    delivered: int = Field(default=0, ge=0)
    failed: int = Field(default=0, ge=0)

    @property
    def total(self) -> int:
        return self.delivered + self.failed


class ProbeResult(BaseModel):
    """Outcome of a synthetic test delivery."""

    model_config = ConfigDict(extra="forbid")

    success: bool
    message: str
    response_code: int | None = None
    response: dict[str, Any] | None = None


__all__ = [
    "DeliveryStatus",
    "MAX_RESPONSE_BODY_LENGTH",
    "ProbeResult",
    "RelayDelivery",
    "RelayPayload",
    "RelaySummary",
    "TERMINAL_STATUSES",
]
