"""Event relay fan-out.

Resolves every enabled webhook of an organization subscribed to an
event, signs one payload per subscriber with that subscriber's own
secret, and delivers to all of them concurrently. One subscriber's
failure never affects another's delivery.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from pydantic_core import PydanticSerializationError, to_jsonable_python

from hookrelay.exceptions import PersistenceError, ValidationError
from hookrelay.logging import get_logger, log_context
from hookrelay.models import (
    AuditEntry,
    RelayDelivery,
    RelayEventType,
    RelayPayload,
    RelaySummary,
    WebhookConfig,
    isoformat_z,
    utc_now,
)
from hookrelay.signing import build_signed_payload, validate_events

if TYPE_CHECKING:
    from hookrelay.delivery.engine import DeliveryEngine
    from hookrelay.storage import RelayStorage

logger = get_logger(__name__)


class RelayDispatcher:
    """Fans internal events out to subscribed webhooks.

    Example:
        ```python
        dispatcher = RelayDispatcher(storage, engine)
        summary = await dispatcher.relay_event("org_1", "task.completed", {"task_id": "t_9"})
        print(summary.delivered, summary.failed)
        ```
    """

    def __init__(self, storage: RelayStorage, engine: DeliveryEngine) -> None:
        self._storage = storage
        self._engine = engine

    async def relay_event(
        self,
        organization_id: str,
        event_type: RelayEventType | str,
        data: Mapping[str, Any],
    ) -> RelaySummary:
        """Relay one event to every interested webhook.

        Only failures to look up subscribers propagate; per-subscriber
        failures are counted in the summary.

        Args:
            organization_id: Organization the event belongs to.
            event_type: Catalog event name.
            data: Event-specific JSON-serializable data.

        Returns:
            Counts of subscribers whose chain ended in success vs. anything else.

        Raises:
            ValidationError: If event_type is not in the catalog.
            PersistenceError: If subscribers could not be looked up.
        """
        if validate_events([event_type]):
            raise ValidationError(
                "event", f"unknown event type: {event_type}", invalid_values=[str(event_type)]
            )
        event = RelayEventType(event_type)
        try:
            body_data = to_jsonable_python(dict(data))
        except PydanticSerializationError as e:
            raise ValidationError("data", f"must be JSON-serializable: {e}") from e
        with log_context(organization_id=organization_id, event_type=event.value):
            webhooks = await self._storage.get_webhooks_for_event(organization_id, event)
            if not webhooks:
                logger.debug("No webhooks subscribed to event")
                return RelaySummary(event=event)

            timestamp = isoformat_z(utc_now())
            started = time.monotonic()
            results = await asyncio.gather(
                *(
                    self._deliver(
                        webhook,
                        build_signed_payload(
                            event, timestamp, organization_id, body_data, webhook.secret
                        ),
                    )
                    for webhook in webhooks
                ),
                return_exceptions=True,
            )

            delivered = 0
            failed = 0
            for webhook, result in zip(webhooks, results, strict=True):
                if isinstance(result, RelayDelivery) and result.status == "success":
                    delivered += 1
                    continue
                failed += 1
                if isinstance(result, BaseException):
                    logger.error(
                        "Webhook delivery raised",
                        webhook_id=webhook.id,
                        error=str(result),
                        exc_info=result,
                    )

            summary = RelaySummary(event=event, delivered=delivered, failed=failed)
            logger.info(
                "Relay complete",
                delivered=delivered,
                failed=failed,
                total=len(webhooks),
                duration_ms=int((time.monotonic() - started) * 1000),
            )

            try:
                await self._storage.log_audit(
                    AuditEntry.for_relay(
                        organization_id,
                        event.value,
                        delivered=delivered,
                        failed=failed,
                        total=len(webhooks),
                    )
                )
            except PersistenceError as e:
                logger.warning("Failed to write relay audit entry", error=str(e))

        return summary

    async def _deliver(self, webhook: WebhookConfig, payload: RelayPayload) -> RelayDelivery:
        with log_context(webhook_id=webhook.id):
            return await self._engine.deliver(webhook, payload)
