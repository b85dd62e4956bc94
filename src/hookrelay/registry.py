"""Webhook registry: validated CRUD over webhook subscriptions.

Secrets are generated here once, at creation, and only change through
rotate_secret(). Everything returned to API clients after creation goes
through sanitize_for_response(), which never exposes the full secret.
"""

from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING, Any

from hookrelay.config import Settings
from hookrelay.exceptions import NotFoundError, PersistenceError, ValidationError
from hookrelay.logging import get_logger
from hookrelay.models import (
    AuditEntry,
    RelayEventType,
    SanitizedWebhook,
    WebhookConfig,
    WebhookCreate,
    WebhookProvider,
    WebhookUpdate,
    utc_now,
)
from hookrelay.signing import (
    generate_secret,
    is_valid_webhook_url,
    malformed_header_names,
    reserved_header_names,
    secret_preview,
    validate_events,
)

if TYPE_CHECKING:
    from hookrelay.storage import RelayStorage

logger = get_logger(__name__)


def sanitize_for_response(webhook: WebhookConfig) -> SanitizedWebhook:
    """Strip secrets from a webhook, keeping only a short preview."""
    data = webhook.model_dump(exclude={"secret", "previous_secret", "previous_secret_expires_at"})
    return SanitizedWebhook(**data, secret_preview=secret_preview(webhook.secret))


class WebhookRegistry:
    """Create, read, update and delete webhook subscriptions.

    Example:
        ```python
        registry = WebhookRegistry(storage, settings)
        webhook = await registry.create(
            "org_1",
            WebhookCreate(name="Zap", url="https://hooks.zapier.com/x", events=["task.created"]),
        )
        print(webhook.secret)  # shown once
        ```
    """

    def __init__(self, storage: RelayStorage, settings: Settings | None = None) -> None:
        self._storage = storage
        self._settings = settings or Settings()

    async def create(self, organization_id: str, data: WebhookCreate) -> WebhookConfig:
        """Register a webhook and return it with its full secret.

        Raises:
            ValidationError: On an invalid name, URL, event list, provider,
                header set or retry count.
            PersistenceError: If the webhook could not be stored.
        """
        name = self._validate_name(data.name)
        self._validate_url(data.url)
        events = self._validate_events(data.events)
        provider = self._validate_provider(data.provider)
        self._validate_headers(data.headers)
        retry_count = self._validate_retry_count(
            data.retry_count if data.retry_count is not None else self._settings.default_retry_count
        )

        webhook = WebhookConfig(
            organization_id=organization_id,
            name=name,
            url=data.url,
            secret=generate_secret(),
            provider=provider,
            events=events,
            enabled=data.enabled,
            retry_count=retry_count,
            headers=dict(data.headers),
            description=data.description,
        )
        await self._storage.store_webhook(webhook)

        logger.info(
            "Webhook created",
            webhook_id=webhook.id,
            organization_id=organization_id,
            events=[e.value for e in events],
            provider=provider.value,
        )
        await self._audit(
            AuditEntry.for_webhook(
                "webhook_created",
                organization_id,
                webhook.id,
                name=name,
                events=[e.value for e in events],
                provider=provider.value,
            )
        )
        return webhook

    async def list(
        self,
        organization_id: str,
        enabled: bool | None = None,
    ) -> list[WebhookConfig]:
        """List an organization's webhooks, newest first."""
        return await self._storage.list_webhooks(organization_id, enabled=enabled)

    async def get(self, webhook_id: str) -> WebhookConfig:
        """Fetch one webhook.

        Raises:
            NotFoundError: If no webhook has this ID.
        """
        webhook = await self._storage.get_webhook(webhook_id)
        if webhook is None:
            raise NotFoundError("webhook", webhook_id)
        return webhook

    async def update(self, webhook_id: str, changes: WebhookUpdate) -> WebhookConfig:
        """Apply the fields set on ``changes``; the secret is never touched.

        Raises:
            NotFoundError: If no webhook has this ID.
            ValidationError: If a supplied field is invalid.
        """
        webhook = await self.get(webhook_id)
        supplied = changes.model_dump(exclude_unset=True)
        updates: dict[str, Any] = {}

        for field, value in supplied.items():
            if value is None:
                continue
            if field == "name":
                updates["name"] = self._validate_name(value)
            elif field == "url":
                self._validate_url(value)
                updates["url"] = value
            elif field == "events":
                updates["events"] = self._validate_events(value)
            elif field == "provider":
                updates["provider"] = self._validate_provider(value)
            elif field == "headers":
                self._validate_headers(value)
                updates["headers"] = dict(value)
            elif field == "retry_count":
                updates["retry_count"] = self._validate_retry_count(value)
            else:
                updates[field] = value

        updated = webhook.model_copy(update={**updates, "updated_at": utc_now()})
        await self._storage.store_webhook(updated)

        logger.info("Webhook updated", webhook_id=webhook_id, fields=sorted(updates))
        await self._audit(
            AuditEntry.for_webhook(
                "webhook_updated", updated.organization_id, webhook_id, fields=sorted(updates)
            )
        )
        return updated

    async def delete(self, webhook_id: str) -> None:
        """Hard-delete a webhook. Its delivery history is kept for audit.

        Raises:
            NotFoundError: If no webhook has this ID.
        """
        webhook = await self.get(webhook_id)
        await self._storage.delete_webhook(webhook_id)
        logger.info("Webhook deleted", webhook_id=webhook_id)
        await self._audit(
            AuditEntry.for_webhook("webhook_deleted", webhook.organization_id, webhook_id)
        )

    async def rotate_secret(
        self,
        webhook_id: str,
        grace_seconds: int | None = None,
    ) -> WebhookConfig:
        """Replace a webhook's secret, keeping the old one valid for a grace window.

        Deliveries already signed with the old secret (including queued
        retries) still verify via WebhookConfig.accepted_secrets() until
        the window closes.

        Returns:
            The webhook with its new full secret.
        """
        webhook = await self.get(webhook_id)
        grace = (
            grace_seconds
            if grace_seconds is not None
            else self._settings.secret_rotation_grace_seconds
        )
        now = utc_now()
        rotated = webhook.model_copy(
            update={
                "secret": generate_secret(),
                "previous_secret": webhook.secret if grace > 0 else None,
                "previous_secret_expires_at": now + timedelta(seconds=grace) if grace > 0 else None,
                "updated_at": now,
            }
        )
        await self._storage.store_webhook(rotated)

        logger.info("Webhook secret rotated", webhook_id=webhook_id, grace_seconds=grace)
        await self._audit(
            AuditEntry.for_webhook(
                "secret_rotated", webhook.organization_id, webhook_id, grace_seconds=grace
            )
        )
        return rotated

    @staticmethod
    def sanitize_for_response(webhook: WebhookConfig) -> SanitizedWebhook:
        return sanitize_for_response(webhook)

    async def _audit(self, entry: AuditEntry) -> None:
        # The registry change itself already succeeded at this point
        try:
            await self._storage.log_audit(entry)
        except PersistenceError as e:
            logger.warning("Failed to write audit entry", audit_event=entry.event, error=str(e))

    @staticmethod
    def _validate_name(name: str) -> str:
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("name", "must be a non-empty string")
        return name.strip()

    @staticmethod
    def _validate_url(url: str) -> None:
        if not is_valid_webhook_url(url):
            raise ValidationError(
                "url", "must be HTTPS (or localhost for development)"
            )

    @staticmethod
    def _validate_events(events: list[str]) -> list[RelayEventType]:
        if not events:
            raise ValidationError("events", "must be a non-empty list of event types")
        invalid = validate_events(events)
        if invalid:
            raise ValidationError(
                "events",
                f"invalid event types: {', '.join(invalid)}",
                invalid_values=invalid,
            )
        # Preserve order, drop duplicates
        return list(dict.fromkeys(RelayEventType(e) for e in events))

    @staticmethod
    def _validate_provider(provider: str) -> WebhookProvider:
        try:
            return WebhookProvider(provider)
        except ValueError:
            allowed = ", ".join(p.value for p in WebhookProvider)
            raise ValidationError(
                "provider", f"must be one of: {allowed}", invalid_values=[str(provider)]
            ) from None

    @staticmethod
    def _validate_headers(headers: dict[str, str]) -> None:
        reserved = reserved_header_names(headers)
        if reserved:
            raise ValidationError(
                "headers",
                f"cannot override reserved headers: {', '.join(reserved)}",
                invalid_values=reserved,
            )
        malformed = malformed_header_names(headers)
        if malformed:
            raise ValidationError(
                "headers",
                "header names must be HTTP tokens and values printable ASCII: "
                f"{', '.join(malformed)}",
                invalid_values=malformed,
            )

    def _validate_retry_count(self, retry_count: int) -> int:
        if retry_count < 1:
            raise ValidationError("retry_count", "must be at least 1")
        return min(retry_count, self._settings.max_retry_count)
