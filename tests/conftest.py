"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import sys
from collections.abc import AsyncIterator, Callable, Sequence
from pathlib import Path
from typing import Any

import httpx
import pytest

# Add tests directory to path so helpers can be imported from conftest
tests_dir = Path(__file__).parent
if str(tests_dir) not in sys.path:
    sys.path.insert(0, str(tests_dir))

from hookrelay.config import Settings  # noqa: E402
from hookrelay.delivery import DeliveryEngine  # noqa: E402
from hookrelay.models import RelayEventType, WebhookConfig  # noqa: E402
from hookrelay.signing import generate_secret  # noqa: E402
from hookrelay.storage import RelayStorage  # noqa: E402

ORG_ID = "org_test"

# A reply is an HTTP status code or an exception raised by the transport
Reply = int | Exception


class Receiver:
    """Fake webhook receiver behind an httpx.MockTransport.

    Replies are consumed in order per host; the last one repeats once the
    script runs out. Every request is recorded.
    """

    def __init__(
        self,
        replies: Sequence[Reply] = (200,),
        by_host: dict[str, Sequence[Reply]] | None = None,
        body: str = "ok",
    ) -> None:
        self.replies = list(replies)
        self.by_host = {host: list(script) for host, script in (by_host or {}).items()}
        self.body = body
        self.requests: list[httpx.Request] = []
        self._seen: dict[str, int] = {}

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        host = request.url.host
        script = self.by_host.get(host, self.replies)
        index = self._seen.get(host, 0)
        self._seen[host] = index + 1
        reply = script[min(index, len(script) - 1)]
        if isinstance(reply, Exception):
            raise reply
        return httpx.Response(reply, text=self.body)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def requests_to(self, host: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.host == host]


class SleepRecorder:
    """Stand-in for asyncio.sleep that records delays without waiting."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def settings() -> Settings:
    """Settings for an isolated in-memory store."""
    return Settings(
        env="test",
        qdrant_url=":memory:",
        collection_prefix="test",
        delivery_timeout_seconds=5.0,
        log_format="text",
    )


@pytest.fixture
async def storage() -> AsyncIterator[RelayStorage]:
    """Create an in-memory storage instance for testing.

    Uses qdrant-client's local mode with in-memory storage.
    """
    store = RelayStorage(url=":memory:", prefix="test")
    await store.initialize()

    yield store

    await store.close()


@pytest.fixture
def receiver() -> Receiver:
    """Receiver that accepts every delivery with HTTP 200."""
    return Receiver()


@pytest.fixture
def sleeper() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def make_engine(
    storage: RelayStorage,
    settings: Settings,
    sleeper: SleepRecorder,
) -> Callable[..., DeliveryEngine]:
    """Build a DeliveryEngine wired to a receiver and the sleep recorder."""

    def _make(receiver: Receiver, engine_settings: Settings | None = None) -> DeliveryEngine:
        return DeliveryEngine(
            storage,
            engine_settings or settings,
            transport=receiver.transport,
            sleep=sleeper,
        )

    return _make


def make_webhook(
    url: str = "https://hooks.example.com/relay",
    events: Sequence[RelayEventType | str] = (RelayEventType.TASK_CREATED,),
    organization_id: str = ORG_ID,
    **overrides: Any,
) -> WebhookConfig:
    """Build a webhook config with a fresh secret."""
    fields: dict[str, Any] = {
        "organization_id": organization_id,
        "name": "Test hook",
        "url": url,
        "secret": generate_secret(),
        "events": list(events),
        "retry_count": 3,
    }
    fields.update(overrides)
    return WebhookConfig(**fields)
