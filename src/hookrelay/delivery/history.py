"""Read-only access to delivery attempt records."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from hookrelay.models import RelayDelivery
    from hookrelay.storage import RelayStorage

DEFAULT_HISTORY_LIMIT = 50


class DeliveryHistory:
    """Query persisted delivery attempts for debugging and audit."""

    def __init__(self, storage: RelayStorage) -> None:
        self._storage = storage

    async def list_deliveries(
        self,
        webhook_id: str,
        limit: int = DEFAULT_HISTORY_LIMIT,
    ) -> list[RelayDelivery]:
        """Newest-first attempts for a webhook (deleted webhooks included)."""
        if limit <= 0:
            return []
        return await self._storage.get_deliveries(webhook_id, limit=limit)

    async def list_chain(self, chain_id: str) -> list[RelayDelivery]:
        """Every attempt of one logical delivery, first attempt first."""
        return await self._storage.get_chain(chain_id)
