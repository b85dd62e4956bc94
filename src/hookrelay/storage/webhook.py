"""Webhook configuration storage operations."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from qdrant_client import models

from hookrelay.storage.retry import storage_operation

if TYPE_CHECKING:
    from hookrelay.models import RelayEventType, WebhookConfig


class WebhookMixin:
    """Mixin providing webhook config operations for RelayStorage.

    This mixin expects the following attributes/methods from the base class:
    - _upsert_record(kind, record_id, record)
    - _retrieve_record(kind, record_id, model_class)
    - _scroll_all(kind, scroll_filter, model_class)
    - _match(key, value) -> FieldCondition
    - _collection_name(kind) -> str
    - _key_to_point_id(key) -> str
    - client: AsyncQdrantClient
    """

    _upsert_record: Any
    _retrieve_record: Any
    _scroll_all: Any
    _match: Any
    _collection_name: Any
    _key_to_point_id: Any
    client: Any

    @storage_operation
    async def store_webhook(self, webhook: WebhookConfig) -> str:
        """Insert or replace a webhook configuration.

        Returns:
            The webhook ID.
        """
        await self._upsert_record("webhooks", webhook.id, webhook)
        return webhook.id

    @storage_operation
    async def get_webhook(self, webhook_id: str) -> WebhookConfig | None:
        """Get a webhook by ID, or None if it does not exist."""
        from hookrelay.models import WebhookConfig

        webhook: WebhookConfig | None = await self._retrieve_record(
            "webhooks", webhook_id, WebhookConfig
        )
        return webhook

    @storage_operation
    async def list_webhooks(
        self,
        organization_id: str,
        enabled: bool | None = None,
    ) -> list[WebhookConfig]:
        """List an organization's webhooks, newest first.

        Args:
            organization_id: Owning organization.
            enabled: When set, only return webhooks with this enabled state.
        """
        from hookrelay.models import WebhookConfig

        filters = [self._match("organization_id", organization_id)]
        if enabled is not None:
            filters.append(self._match("enabled", enabled))

        webhooks: list[WebhookConfig] = await self._scroll_all(
            "webhooks", models.Filter(must=filters), WebhookConfig
        )
        webhooks.sort(key=lambda w: w.created_at, reverse=True)
        return webhooks

    @storage_operation
    async def get_webhooks_for_event(
        self,
        organization_id: str,
        event_type: RelayEventType,
    ) -> list[WebhookConfig]:
        """Get every enabled webhook of an organization subscribed to an event.

        Matching a keyword value against the ``events`` array selects
        points whose array contains that value.
        """
        from hookrelay.models import WebhookConfig

        scroll_filter = models.Filter(
            must=[
                self._match("organization_id", organization_id),
                self._match("enabled", True),
                self._match("events", event_type.value),
            ]
        )
        webhooks: list[WebhookConfig] = await self._scroll_all(
            "webhooks", scroll_filter, WebhookConfig
        )
        return [w for w in webhooks if w.subscribes_to(event_type)]

    @storage_operation
    async def delete_webhook(self, webhook_id: str) -> None:
        """Hard-delete a webhook configuration. Delivery records are untouched."""
        await self.client.delete(
            collection_name=self._collection_name("webhooks"),
            points_selector=models.PointIdsList(
                points=[self._key_to_point_id(webhook_id)],
            ),
        )
