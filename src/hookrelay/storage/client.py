"""Qdrant storage client for HookRelay.

This module provides the RelayStorage class that combines
all storage operations through mixins.

Example:
    ```python
    from hookrelay.storage import RelayStorage

    async with RelayStorage(url=":memory:") as storage:
        await storage.store_webhook(webhook)
        subscribers = await storage.get_webhooks_for_event("org_1", event_type)
    ```
"""

from __future__ import annotations

from .audit import AuditMixin
from .base import StorageBase
from .delivery import DeliveryMixin
from .webhook import WebhookMixin


class RelayStorage(WebhookMixin, DeliveryMixin, AuditMixin, StorageBase):
    """Async Qdrant storage for webhook configs, delivery records and audit entries.

    This class combines functionality from multiple mixins:
    - WebhookMixin: store_webhook, get_webhook, list_webhooks,
      get_webhooks_for_event, delete_webhook
    - DeliveryMixin: log_delivery, update_delivery, get_delivery,
      get_deliveries, get_chain, get_due_retries
    - AuditMixin: log_audit, get_audit_log

    Every public operation retries transient Qdrant errors and raises
    PersistenceError when it ultimately fails.
    """
