"""Audit logging operations for HookRelay storage."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from qdrant_client import models

from hookrelay.storage.retry import storage_operation

if TYPE_CHECKING:
    from hookrelay.models import AuditEntry


class AuditMixin:
    """Mixin providing audit operations for RelayStorage."""

    _upsert_record: Any
    _scroll_all: Any
    _match: Any

    @storage_operation
    async def log_audit(self, entry: AuditEntry) -> str:
        """Log an audit entry.

        Returns:
            The audit entry ID.
        """
        await self._upsert_record("audit", entry.id, entry)
        return entry.id

    @storage_operation
    async def get_audit_log(
        self,
        organization_id: str,
        event_type: str | None = None,
        limit: int = 100,
    ) -> list[AuditEntry]:
        """Get audit log entries for an organization, newest first.

        Args:
            organization_id: Organization to get entries for.
            event_type: Optional event filter (relay, webhook_created, ...).
            limit: Maximum entries to return.
        """
        from hookrelay.models import AuditEntry

        filters = [self._match("organization_id", organization_id)]
        if event_type is not None:
            filters.append(self._match("event", event_type))

        entries: list[AuditEntry] = await self._scroll_all(
            "audit", models.Filter(must=filters), AuditEntry
        )
        entries.sort(key=lambda e: e.timestamp, reverse=True)
        return entries[:limit]
