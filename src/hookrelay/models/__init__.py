"""Data models for HookRelay."""

from .audit import AuditEntry, AuditEventType
from .base import generate_id, isoformat_z, utc_now
from .delivery import (
    MAX_RESPONSE_BODY_LENGTH,
    TERMINAL_STATUSES,
    DeliveryStatus,
    ProbeResult,
    RelayDelivery,
    RelayPayload,
    RelaySummary,
)
from .webhook import (
    EVENT_LABELS,
    VALID_EVENT_NAMES,
    RelayEventType,
    SanitizedWebhook,
    WebhookConfig,
    WebhookCreate,
    WebhookProvider,
    WebhookUpdate,
)

__all__ = [
    "AuditEntry",
    "AuditEventType",
    "DeliveryStatus",
    "EVENT_LABELS",
    "MAX_RESPONSE_BODY_LENGTH",
    "ProbeResult",
    "RelayDelivery",
    "RelayEventType",
    "RelayPayload",
    "RelaySummary",
    "SanitizedWebhook",
    "TERMINAL_STATUSES",
    "VALID_EVENT_NAMES",
    "WebhookConfig",
    "WebhookCreate",
    "WebhookProvider",
    "WebhookUpdate",
    "generate_id",
    "isoformat_z",
    "utc_now",
]
