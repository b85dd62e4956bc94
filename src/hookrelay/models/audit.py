"""AuditEntry model - operation logging for auditability."""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from .base import generate_id, utc_now

AuditEventType = Literal[
    "relay",
    "webhook_created",
    "webhook_updated",
    "webhook_deleted",
    "secret_rotated",
]


class AuditEntry(BaseModel):
    """Audit log entry for relay and registry operations.

    Stored in the audit collection, separate from per-attempt
    delivery records.

    Attributes:
        id: Unique identifier for this audit entry.
        timestamp: When the operation occurred.
        event: Type of operation.
        organization_id: Organization the operation belongs to.
        details: Event-specific data.
    """

    model_config = ConfigDict(extra="forbid")

    id: str = Field(default_factory=lambda: generate_id("audit"))
    timestamp: datetime = Field(default_factory=utc_now)
    event: AuditEventType
    organization_id: str
    details: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def for_relay(
        cls,
        organization_id: str,
        event_type: str,
        delivered: int,
        failed: int,
        total: int,
    ) -> "AuditEntry":
        """Create the summary entry for one relay fan-out."""
        return cls(
            event="relay",
            organization_id=organization_id,
            details={
                "provider": "webhook_relay",
                "event_type": event_type,
                "delivered": delivered,
                "failed": failed,
                "total": total,
            },
        )

    @classmethod
    def for_webhook(
        cls,
        event: AuditEventType,
        organization_id: str,
        webhook_id: str,
        **details: Any,
    ) -> "AuditEntry":
        """Create an entry for a registry change to a single webhook."""
        return cls(
            event=event,
            organization_id=organization_id,
            details={"webhook_id": webhook_id, **details},
        )


__all__ = ["AuditEntry", "AuditEventType"]
