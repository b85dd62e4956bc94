"""Webhook subscription models.

Provides the event catalog, provider tags, persisted webhook
configuration and the create/update inputs accepted by the registry.
"""

from collections.abc import Iterator
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from .base import generate_id, utc_now


class RelayEventType(str, Enum):
    """Internal events that can be relayed to external endpoints."""

    MEMBER_ADDED = "member.added"
    MEMBER_REMOVED = "member.removed"
    TASK_CREATED = "task.created"
    TASK_COMPLETED = "task.completed"
    EVIDENCE_UPLOADED = "evidence.uploaded"
    EVIDENCE_VERIFIED = "evidence.verified"
    POLICY_PUBLISHED = "policy.published"
    INCIDENT_CREATED = "incident.created"
    COMPLIANCE_SCORE_CHANGED = "compliance.score_changed"

    @property
    def label(self) -> str:
        """Human-readable name for UI and documentation."""
        return EVENT_LABELS[self]


# Every catalog entry must have a label
EVENT_LABELS: dict[RelayEventType, str] = {
    RelayEventType.MEMBER_ADDED: "Member Added",
    RelayEventType.MEMBER_REMOVED: "Member Removed",
    RelayEventType.TASK_CREATED: "Task Created",
    RelayEventType.TASK_COMPLETED: "Task Completed",
    RelayEventType.EVIDENCE_UPLOADED: "Evidence Uploaded",
    RelayEventType.EVIDENCE_VERIFIED: "Evidence Verified",
    RelayEventType.POLICY_PUBLISHED: "Policy Published",
    RelayEventType.INCIDENT_CREATED: "Incident Created",
    RelayEventType.COMPLIANCE_SCORE_CHANGED: "Compliance Score Changed",
}

VALID_EVENT_NAMES: frozenset[str] = frozenset(e.value for e in RelayEventType)


class WebhookProvider(str, Enum):
    """Which integration platform sits behind a webhook URL.

    Bookkeeping only; delivery treats all providers the same.
    """

    ZAPIER = "zapier"
    MAKE = "make"
    CUSTOM = "custom"


class WebhookConfig(BaseModel):
    """A registered outbound webhook subscription.

    Attributes:
        id: Unique identifier for this webhook.
        organization_id: Organization that owns the webhook.
        name: Display name.
        url: HTTPS (or loopback) endpoint receiving deliveries.
        secret: Shared HMAC secret, generated at creation.
        provider: Integration platform tag.
        events: Event types this webhook subscribes to.
        enabled: Whether the webhook receives deliveries.
        retry_count: Total delivery attempts per event (1-5).
        headers: Extra headers merged into every delivery request.
        description: Optional free-form description.
        previous_secret: Rotated-out secret still accepted during its grace window.
        previous_secret_expires_at: When previous_secret stops being accepted.
    """

    model_config = ConfigDict(extra="forbid")

    id: str = Field(default_factory=lambda: generate_id("whk"))
    organization_id: str = Field(description="Owning organization")
    name: str = Field(min_length=1, description="Display name")
    url: str = Field(description="Endpoint receiving deliveries")
    secret: str = Field(min_length=1, description="HMAC-SHA256 signing secret")
    provider: WebhookProvider = Field(default=WebhookProvider.CUSTOM)
    events: list[RelayEventType] = Field(min_length=1, description="Subscribed events")
    enabled: bool = Field(default=True)
    retry_count: int = Field(default=3, ge=1, le=10, description="Total delivery attempts")
    headers: dict[str, str] = Field(default_factory=dict)
    description: str = Field(default="")
    previous_secret: str | None = Field(default=None)
    previous_secret_expires_at: datetime | None = Field(default=None)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    def subscribes_to(self, event_type: RelayEventType | str) -> bool:
        """Check if this webhook is enabled and subscribed to the given event type."""
        return self.enabled and RelayEventType(event_type) in self.events

    def accepted_secrets(self, now: datetime | None = None) -> Iterator[str]:
        """Yield the secrets a signature may legitimately have been made with."""
        yield self.secret
        if self.previous_secret and self.previous_secret_expires_at:
            if (now or utc_now()) < self.previous_secret_expires_at:
                yield self.previous_secret


class WebhookCreate(BaseModel):
    """Input for registering a webhook.

    Event names and provider are plain strings here so the registry can
    report every unknown value instead of failing on the first one.
    """

    model_config = ConfigDict(extra="forbid")

    name: str
    url: str
    events: list[str]
    provider: str = WebhookProvider.CUSTOM.value
    enabled: bool = True
    retry_count: int | None = None
    headers: dict[str, str] = Field(default_factory=dict)
    description: str = ""


class WebhookUpdate(BaseModel):
    """Partial update for a webhook. Only fields that are set are applied."""

    model_config = ConfigDict(extra="forbid")

    name: str | None = None
    url: str | None = None
    events: list[str] | None = None
    provider: str | None = None
    enabled: bool | None = None
    retry_count: int | None = None
    headers: dict[str, str] | None = None
    description: str | None = None


class SanitizedWebhook(BaseModel):
    """Externally visible webhook representation without the secret."""

    model_config = ConfigDict(extra="forbid")

    id: str
    organization_id: str
    name: str
    url: str
    provider: WebhookProvider
    events: list[RelayEventType]
    enabled: bool
    retry_count: int
    headers: dict[str, str]
    description: str
    secret_preview: str
    created_at: datetime
    updated_at: datetime


__all__ = [
    "EVENT_LABELS",
    "RelayEventType",
    "SanitizedWebhook",
    "VALID_EVENT_NAMES",
    "WebhookConfig",
    "WebhookCreate",
    "WebhookProvider",
    "WebhookUpdate",
]
