"""Pydantic schemas for API request/response models."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from hookrelay.models import (
    ProbeResult,
    RelayDelivery,
    RelayEventType,
    SanitizedWebhook,
    WebhookProvider,
)

# Upper bound on deliveries returned by any history endpoint
MAX_DELIVERY_LIMIT = 100


class HealthResponse(BaseModel):
    """Response for health check endpoint.

    Attributes:
        status: Service status.
        version: API version.
        storage_connected: Whether storage is connected.
    """

    model_config = ConfigDict(extra="forbid")

    status: Literal["healthy", "unhealthy"]
    version: str
    storage_connected: bool


class EventInfo(BaseModel):
    """One entry of the event catalog."""

    model_config = ConfigDict(extra="forbid")

    event: RelayEventType
    label: str


class EventCatalogResponse(BaseModel):
    """Every event a webhook can subscribe to, plus the provider tags."""

    model_config = ConfigDict(extra="forbid")

    events: list[EventInfo]
    providers: list[WebhookProvider]


class WebhookListResponse(BaseModel):
    """Sanitized webhooks of one organization."""

    model_config = ConfigDict(extra="forbid")

    webhooks: list[SanitizedWebhook]
    total: int


class WebhookCreatedResponse(BaseModel):
    """Response for webhook creation.

    The full secret is returned here and never again.
    """

    model_config = ConfigDict(extra="forbid")

    webhook: SanitizedWebhook
    secret: str = Field(description="Signing secret; store it now, it is not shown again")


class WebhookDetailResponse(BaseModel):
    """One webhook, optionally with its most recent deliveries."""

    model_config = ConfigDict(extra="forbid")

    webhook: SanitizedWebhook
    deliveries: list[RelayDelivery] | None = None


class SecretRotatedResponse(BaseModel):
    """Response for secret rotation.

    Attributes:
        webhook: The webhook after rotation.
        secret: The new signing secret, shown once.
        previous_secret_expires_at: When the old secret stops verifying, if it still does.
    """

    model_config = ConfigDict(extra="forbid")

    webhook: SanitizedWebhook
    secret: str
    previous_secret_expires_at: datetime | None = None


class UrlProbeRequest(BaseModel):
    """Request body for a test delivery to an unsaved URL."""

    model_config = ConfigDict(extra="forbid")

    url: str = Field(min_length=1, description="Endpoint to send the test event to")


class DeliveryListResponse(BaseModel):
    """Delivery attempts for a webhook, newest first."""

    model_config = ConfigDict(extra="forbid")

    deliveries: list[RelayDelivery]
    total: int


__all__ = [
    "DeliveryListResponse",
    "EventCatalogResponse",
    "EventInfo",
    "HealthResponse",
    "MAX_DELIVERY_LIMIT",
    "ProbeResult",
    "SecretRotatedResponse",
    "UrlProbeRequest",
    "WebhookCreatedResponse",
    "WebhookDetailResponse",
    "WebhookListResponse",
]
