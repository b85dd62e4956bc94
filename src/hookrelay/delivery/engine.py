"""Single-webhook delivery with durable attempt records and exponential backoff.

Every attempt is written as a ``pending`` record before the HTTP call and
updated with its outcome afterwards, so no attempt goes unrecorded. Failed
attempts are retried after ``2 ** attempt`` seconds until the webhook's
retry_count is exhausted. Each attempt gets its own record; attempts of
one logical delivery share a chain_id.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import timedelta
from typing import TYPE_CHECKING

import httpx

from hookrelay.config import Settings
from hookrelay.exceptions import PersistenceError
from hookrelay.logging import log_context
from hookrelay.models import RelayDelivery, RelayPayload, utc_now
from hookrelay.signing import (
    DELIVERY_HEADER,
    EVENT_HEADER,
    RESERVED_HEADERS,
    SIGNATURE_HEADER,
    serialize_body,
)

if TYPE_CHECKING:
    from hookrelay.models import WebhookConfig
    from hookrelay.storage import RelayStorage

logger = logging.getLogger(__name__)

Sleeper = Callable[[float], Awaitable[None]]


def backoff_delay(attempt: int) -> float:
    """Seconds to wait after a failed attempt: 2s, 4s, 8s, 16s, 32s for attempts 1-5."""
    return float(2**attempt)


def build_headers(
    payload: RelayPayload,
    user_agent: str,
    delivery_id: str | None = None,
    custom_headers: dict[str, str] | None = None,
) -> dict[str, str]:
    """Assemble outbound request headers.

    Custom headers are applied first and any that collide with a relay
    header (case-insensitively) are dropped.
    """
    headers = {
        name: value
        for name, value in (custom_headers or {}).items()
        if name.lower() not in RESERVED_HEADERS
    }
    headers.update(
        {
            "Content-Type": "application/json",
            SIGNATURE_HEADER: payload.signature,
            EVENT_HEADER: payload.event.value,
            "User-Agent": user_agent,
        }
    )
    if delivery_id is not None:
        headers[DELIVERY_HEADER] = delivery_id
    return headers


@dataclass
class AttemptOutcome:
    """Result of one HTTP attempt."""

    ok: bool
    response_code: int | None = None
    response_body: str | None = None
    error: str | None = None
    retryable: bool = True


class DeliveryEngine:
    """Delivers signed payloads to one webhook and drives its retry chain.

    Example:
        ```python
        engine = DeliveryEngine(storage, settings)
        delivery = await engine.deliver(webhook, payload)
        print(delivery.status, delivery.attempts)
        ```
    """

    def __init__(
        self,
        storage: RelayStorage,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Sleeper = asyncio.sleep,
    ) -> None:
        """Initialize the delivery engine.

        Args:
            storage: RelayStorage for delivery records.
            settings: Timeout, retry mode and truncation settings.
            transport: Optional httpx transport (e.g. httpx.MockTransport).
            sleep: Coroutine used to wait between inline retries.
        """
        self._storage = storage
        self._settings = settings or Settings()
        self._timeout = self._settings.delivery_timeout_seconds
        self._transport = transport
        self._sleep = sleep

    async def deliver(
        self,
        webhook: WebhookConfig,
        payload: RelayPayload,
        attempt: int = 1,
        chain_id: str | None = None,
        body: str | None = None,
    ) -> RelayDelivery:
        """Deliver a payload to a webhook, retrying on failure.

        Args:
            webhook: Target webhook configuration.
            payload: Payload already signed with the webhook's secret.
            attempt: Attempt number of this call (1-indexed).
            chain_id: Delivery chain to continue; a new chain when None.
            body: Exact body of an earlier attempt to resend; serialized
                from ``payload`` when None.

        Returns:
            The record of the last attempt made by this call. In inline
            mode that is the terminal attempt; in scheduled mode it may be
            a ``retrying`` record awaiting the retry worker.
        """
        delivery = RelayDelivery(
            webhook_id=webhook.id,
            organization_id=webhook.organization_id,
            event=payload.event,
            payload=payload,
            request_body=body if body is not None else serialize_body(payload.wire_body()),
            attempts=attempt,
        )
        if chain_id is not None:
            delivery.chain_id = chain_id

        with log_context(delivery_id=delivery.id, chain_id=delivery.chain_id, attempt=attempt):
            return await self._attempt(webhook, payload, delivery)

    async def _attempt(
        self,
        webhook: WebhookConfig,
        payload: RelayPayload,
        delivery: RelayDelivery,
    ) -> RelayDelivery:
        """Persist, send and record one attempt of a chain."""
        attempt = delivery.attempts
        try:
            await self._storage.log_delivery(delivery)
        except PersistenceError as e:
            logger.error(
                "Failed to create delivery record for webhook %s (attempt %d): %s",
                webhook.id,
                attempt,
                e,
            )
            return delivery.mark_failed(error="Failed to create delivery record")

        headers = build_headers(
            payload,
            user_agent=self._settings.user_agent,
            delivery_id=delivery.id,
            custom_headers=webhook.headers,
        )
        outcome = await self.send(webhook.url, payload, headers, body=delivery.request_body)
        limit = self._settings.max_response_body_length

        if outcome.ok:
            delivery.mark_success(
                response_code=outcome.response_code or 200,
                response_body=outcome.response_body,
                limit=limit,
            )
            await self._save(delivery)
            logger.info(
                "Webhook delivered: %s to %s (status %s, attempt %d)",
                payload.event.value,
                webhook.url,
                outcome.response_code,
                attempt,
            )
            return delivery

        error = outcome.error or "Unknown error"
        if outcome.retryable and attempt < webhook.retry_count:
            delay = backoff_delay(attempt)
            delivery.mark_retrying(
                next_retry_at=utc_now() + timedelta(seconds=delay),
                error=error,
                response_code=outcome.response_code,
                response_body=outcome.response_body,
                limit=limit,
            )
            await self._save(delivery)
            logger.info(
                "Webhook attempt %d failed for %s (%s); next attempt in %.0fs",
                attempt,
                webhook.url,
                error,
                delay,
            )
            if self._settings.retry_mode == "scheduled":
                return delivery
            await self._sleep(delay)
            try:
                await self.claim_retry(delivery)
            except PersistenceError as e:
                logger.warning("Could not clear next_retry_at on %s: %s", delivery.id, e)
            return await self.deliver(
                webhook, payload, attempt + 1, delivery.chain_id, body=delivery.request_body
            )

        delivery.mark_failed(
            error=error,
            response_code=outcome.response_code,
            response_body=outcome.response_body,
            limit=limit,
        )
        await self._save(delivery)
        logger.warning(
            "Webhook delivery failed: %s to %s after %d attempts (%s)",
            payload.event.value,
            webhook.url,
            attempt,
            error,
        )
        return delivery

    async def claim_retry(self, delivery: RelayDelivery) -> None:
        """Mark a retrying record's follow-up attempt as started.

        Raises:
            PersistenceError: If the claim could not be written.
        """
        delivery.next_retry_at = None
        await self._storage.update_delivery(delivery)

    async def send(
        self,
        url: str,
        payload: RelayPayload,
        headers: dict[str, str],
        body: str | None = None,
    ) -> AttemptOutcome:
        """POST a payload once. Never raises for transport or HTTP failures.

        The timeout bounds the whole attempt, not each connect or read.
        """
        content = (body if body is not None else serialize_body(payload.wire_body())).encode(
            "utf-8"
        )
        try:
            async with asyncio.timeout(self._timeout):
                async with httpx.AsyncClient(
                    timeout=self._timeout, transport=self._transport
                ) as client:
                    response = await client.post(url, content=content, headers=headers)
        except (httpx.TimeoutException, TimeoutError):
            return AttemptOutcome(ok=False, error=f"Request timed out after {self._timeout:g}s")
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            return AttemptOutcome(ok=False, error=str(e) or e.__class__.__name__)
        except Exception as e:
            logger.exception("Unexpected error delivering to %s", url)
            return AttemptOutcome(ok=False, error=f"Unexpected error: {e}", retryable=False)

        text = response.text or None
        if response.is_success:
            return AttemptOutcome(ok=True, response_code=response.status_code, response_body=text)
        return AttemptOutcome(
            ok=False,
            response_code=response.status_code,
            response_body=text,
            error=f"HTTP {response.status_code}: {response.reason_phrase}",
        )

    async def _save(self, delivery: RelayDelivery) -> None:
        """Persist an attempt's outcome; a failed write never aborts the chain."""
        try:
            await self._storage.update_delivery(delivery)
        except PersistenceError as e:
            logger.error("Failed to update delivery record %s: %s", delivery.id, e)
