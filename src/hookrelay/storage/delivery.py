"""Delivery record storage operations.

Provides methods to persist attempts, update their outcome and query
history for a webhook, a delivery chain, or due retries.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any

from qdrant_client import models

from hookrelay.storage.retry import storage_operation

if TYPE_CHECKING:
    from hookrelay.models import RelayDelivery


class DeliveryMixin:
    """Mixin providing delivery record operations for RelayStorage."""

    _upsert_record: Any
    _retrieve_record: Any
    _scroll_all: Any
    _match: Any

    @storage_operation
    async def log_delivery(self, delivery: RelayDelivery) -> str:
        """Persist a new delivery attempt record.

        Returns:
            The delivery ID.
        """
        await self._upsert_record("deliveries", delivery.id, delivery)
        return delivery.id

    @storage_operation
    async def update_delivery(self, delivery: RelayDelivery) -> str:
        """Persist the current state of an existing delivery record."""
        await self._upsert_record("deliveries", delivery.id, delivery)
        return delivery.id

    @storage_operation
    async def get_delivery(self, delivery_id: str) -> RelayDelivery | None:
        """Get one delivery record by ID."""
        from hookrelay.models import RelayDelivery

        delivery: RelayDelivery | None = await self._retrieve_record(
            "deliveries", delivery_id, RelayDelivery
        )
        return delivery

    @storage_operation
    async def get_deliveries(self, webhook_id: str, limit: int = 50) -> list[RelayDelivery]:
        """Get delivery records for a webhook, newest first.

        Works for deleted webhooks too; records keep their webhook_id.
        """
        from hookrelay.models import RelayDelivery

        deliveries: list[RelayDelivery] = await self._scroll_all(
            "deliveries",
            models.Filter(must=[self._match("webhook_id", webhook_id)]),
            RelayDelivery,
        )
        deliveries.sort(key=lambda d: d.created_at, reverse=True)
        return deliveries[:limit]

    @storage_operation
    async def get_chain(self, chain_id: str) -> list[RelayDelivery]:
        """Get every attempt of one delivery chain, in attempt order."""
        from hookrelay.models import RelayDelivery

        deliveries: list[RelayDelivery] = await self._scroll_all(
            "deliveries",
            models.Filter(must=[self._match("chain_id", chain_id)]),
            RelayDelivery,
        )
        deliveries.sort(key=lambda d: (d.attempts, d.created_at))
        return deliveries

    @storage_operation
    async def get_due_retries(self, now: datetime, limit: int = 100) -> list[RelayDelivery]:
        """Get retrying records whose follow-up attempt is due and unclaimed.

        Returns:
            Records ordered by next_retry_at, oldest first.
        """
        from hookrelay.models import RelayDelivery

        deliveries: list[RelayDelivery] = await self._scroll_all(
            "deliveries",
            models.Filter(must=[self._match("status", "retrying")]),
            RelayDelivery,
        )
        due = [d for d in deliveries if d.next_retry_at is not None and d.next_retry_at <= now]
        due.sort(key=lambda d: d.next_retry_at or d.created_at)
        return due[:limit]
