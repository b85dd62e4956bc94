"""Synthetic test deliveries for checking a webhook endpoint."""

from __future__ import annotations

from typing import TYPE_CHECKING

from hookrelay.config import Settings
from hookrelay.models import ProbeResult, RelayEventType, isoformat_z, utc_now
from hookrelay.signing import build_signed_payload, generate_secret, is_valid_webhook_url

from .engine import build_headers

if TYPE_CHECKING:
    from hookrelay.delivery.engine import DeliveryEngine
    from hookrelay.storage import RelayStorage

TEST_EVENT = RelayEventType.TASK_CREATED

TEST_MESSAGE = "This is a test webhook delivery from HookRelay"


def _test_data() -> dict[str, object]:
    return {"test": True, "message": TEST_MESSAGE}


class WebhookProbe:
    """Sends test events to saved webhooks or to not-yet-saved URLs."""

    def __init__(
        self,
        storage: RelayStorage,
        engine: DeliveryEngine,
        settings: Settings | None = None,
    ) -> None:
        self._storage = storage
        self._engine = engine
        self._settings = settings or Settings()

    async def send_test_event(self, webhook_id: str) -> ProbeResult:
        """Deliver a test event to a saved webhook through the normal delivery path.

        The attempt is recorded in delivery history and retried like any
        other delivery.
        """
        webhook = await self._storage.get_webhook(webhook_id)
        if webhook is None:
            return ProbeResult(success=False, message="Webhook not found")

        payload = build_signed_payload(
            TEST_EVENT,
            isoformat_z(utc_now()),
            webhook.organization_id,
            _test_data(),
            webhook.secret,
        )
        delivery = await self._engine.deliver(webhook, payload)

        if delivery.status == "success":
            message = f"Test delivered successfully (HTTP {delivery.response_code})"
        else:
            message = f"Test delivery failed: {delivery.error_message}"

        return ProbeResult(
            success=delivery.status == "success",
            message=message,
            response_code=delivery.response_code,
            response={
                "delivery_id": delivery.id,
                "status": delivery.status,
                "response_code": delivery.response_code,
                "response_body": delivery.response_body,
            },
        )

    async def send_test_to_url(self, url: str, organization_id: str) -> ProbeResult:
        """Send one signed test event to a URL before a webhook exists for it.

        Uses a throwaway secret, makes a single attempt and records nothing.
        """
        if not is_valid_webhook_url(url):
            return ProbeResult(
                success=False,
                message="Invalid webhook URL. Must be HTTPS (or localhost for development).",
            )

        payload = build_signed_payload(
            TEST_EVENT,
            isoformat_z(utc_now()),
            organization_id,
            _test_data(),
            generate_secret(),
        )
        headers = build_headers(payload, user_agent=self._settings.user_agent)
        outcome = await self._engine.send(url, payload, headers)

        if outcome.ok:
            return ProbeResult(
                success=True,
                message=f"Test delivered successfully (HTTP {outcome.response_code})",
                response_code=outcome.response_code,
            )
        if outcome.response_code is not None:
            return ProbeResult(
                success=False,
                message=f"Endpoint returned {outcome.error}",
                response_code=outcome.response_code,
            )
        return ProbeResult(success=False, message=outcome.error or "Unknown error")
