"""Storage backends for HookRelay.

Persists webhook configurations, delivery attempt records and audit
entries to Qdrant.

Example:
    ```python
    from hookrelay.storage import RelayStorage

    async with RelayStorage() as storage:
        history = await storage.get_deliveries("whk_123")
    ```
"""

from .base import COLLECTION_NAMES
from .client import RelayStorage

__all__ = [
    "COLLECTION_NAMES",
    "RelayStorage",
]
