"""HookRelay service layer.

Wires storage, the registry and the delivery components into a single
object that event producers and the REST API talk to.

Example:
    ```python
    from hookrelay.service import RelayService

    async with RelayService.create() as relay:
        webhook = await relay.registry.create(
            "org_1",
            WebhookCreate(
                name="Ops", url="https://ops.example.com/hook", events=["incident.created"]
            ),
        )
        summary = await relay.relay_event("org_1", "incident.created", {"incident_id": "inc_7"})
    ```
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import httpx

from hookrelay.config import Settings
from hookrelay.delivery import (
    DeliveryEngine,
    DeliveryHistory,
    RelayDispatcher,
    RetryWorker,
    WebhookProbe,
)
from hookrelay.delivery.engine import Sleeper
from hookrelay.models import ProbeResult, RelayDelivery, RelayEventType, RelaySummary
from hookrelay.registry import WebhookRegistry
from hookrelay.storage import RelayStorage


@dataclass
class RelayService:
    """High-level webhook relay service.

    Attributes:
        storage: Qdrant-backed store for configs, deliveries and audit entries.
        settings: Configuration settings.
        engine: Delivery engine used by the dispatcher, probe and worker.
    """

    storage: RelayStorage
    settings: Settings
    engine: DeliveryEngine
    registry: WebhookRegistry = field(init=False)
    dispatcher: RelayDispatcher = field(init=False)
    probe: WebhookProbe = field(init=False)
    history: DeliveryHistory = field(init=False)
    worker: RetryWorker = field(init=False)

    def __post_init__(self) -> None:
        self.registry = WebhookRegistry(self.storage, self.settings)
        self.dispatcher = RelayDispatcher(self.storage, self.engine)
        self.probe = WebhookProbe(self.storage, self.engine, self.settings)
        self.history = DeliveryHistory(self.storage)
        self.worker = RetryWorker(self.storage, self.engine, self.settings)

    @classmethod
    def create(
        cls,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Sleeper | None = None,
    ) -> RelayService:
        """Create a RelayService with default dependencies.

        Args:
            settings: Optional settings. Uses environment if None.
            transport: Optional httpx transport for outbound deliveries.
            sleep: Optional replacement for the inline backoff sleep.
        """
        if settings is None:
            settings = Settings()

        storage = RelayStorage(
            url=settings.qdrant_url,
            api_key=settings.qdrant_api_key,
            prefix=settings.collection_prefix,
        )
        engine_kwargs: dict[str, Any] = {"transport": transport}
        if sleep is not None:
            engine_kwargs["sleep"] = sleep
        engine = DeliveryEngine(storage, settings, **engine_kwargs)
        return cls(storage=storage, settings=settings, engine=engine)

    async def initialize(self) -> None:
        await self.storage.initialize()

    async def close(self) -> None:
        await self.storage.close()

    async def __aenter__(self) -> RelayService:
        await self.initialize()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def relay_event(
        self,
        organization_id: str,
        event_type: RelayEventType | str,
        data: Mapping[str, Any],
    ) -> RelaySummary:
        """Relay an internal event to all subscribed, enabled webhooks."""
        return await self.dispatcher.relay_event(organization_id, event_type, data)

    async def send_test_event(self, webhook_id: str) -> ProbeResult:
        return await self.probe.send_test_event(webhook_id)

    async def send_test_to_url(self, url: str, organization_id: str) -> ProbeResult:
        return await self.probe.send_test_to_url(url, organization_id)

    async def list_deliveries(self, webhook_id: str, limit: int = 50) -> list[RelayDelivery]:
        return await self.history.list_deliveries(webhook_id, limit=limit)
