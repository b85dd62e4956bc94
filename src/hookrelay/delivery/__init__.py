"""Webhook delivery for HookRelay.

Provides HMAC-signed fan-out with durable per-attempt records and
exponential backoff retry.

Example:
    ```python
    from hookrelay.delivery import DeliveryEngine, RelayDispatcher

    engine = DeliveryEngine(storage, settings)
    dispatcher = RelayDispatcher(storage, engine)
    summary = await dispatcher.relay_event("org_1", "member.added", {"user_id": "u_1"})
    ```
"""

from .dispatcher import RelayDispatcher
from .engine import AttemptOutcome, DeliveryEngine, backoff_delay, build_headers
from .history import DeliveryHistory
from .probe import WebhookProbe
from .worker import RetryWorker

__all__ = [
    "AttemptOutcome",
    "DeliveryEngine",
    "DeliveryHistory",
    "RelayDispatcher",
    "RetryWorker",
    "WebhookProbe",
    "backoff_delay",
    "build_headers",
]
