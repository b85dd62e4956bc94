"""Base storage class and helpers.

Contains initialization, collection management, and shared utilities.
Records are stored as Qdrant payloads; each point carries a one-dimensional
placeholder vector because no similarity search is needed.
"""

from __future__ import annotations

import hashlib
import re
from typing import Any, TypeVar

from pydantic import BaseModel
from qdrant_client import AsyncQdrantClient, models

from hookrelay.config import settings
from hookrelay.exceptions import ConfigurationError

ModelT = TypeVar("ModelT", bound=BaseModel)

# Collection suffixes, prefixed with the configured collection_prefix
COLLECTION_NAMES = {
    "webhooks": "webhooks",
    "deliveries": "webhook_deliveries",
    "audit": "audit",
}

# Keyword-indexed payload fields per collection
PAYLOAD_INDEXES: dict[str, dict[str, models.PayloadSchemaType]] = {
    "webhooks": {
        "organization_id": models.PayloadSchemaType.KEYWORD,
        "events": models.PayloadSchemaType.KEYWORD,
        "enabled": models.PayloadSchemaType.BOOL,
    },
    "deliveries": {
        "organization_id": models.PayloadSchemaType.KEYWORD,
        "webhook_id": models.PayloadSchemaType.KEYWORD,
        "chain_id": models.PayloadSchemaType.KEYWORD,
        "status": models.PayloadSchemaType.KEYWORD,
    },
    "audit": {
        "organization_id": models.PayloadSchemaType.KEYWORD,
        "event": models.PayloadSchemaType.KEYWORD,
    },
}

PLACEHOLDER_VECTOR = [0.0]

SCROLL_PAGE_SIZE = 256

VALID_PREFIX = re.compile(r"[A-Za-z0-9_-]+")


class StorageBase:
    """Base class for HookRelay storage with initialization and helpers.

    Provides:
    - Client initialization and lifecycle management
    - Collection creation and indexing
    - Point ID conversion
    - Payload serialization/deserialization and paged scrolling
    """

    def __init__(
        self,
        url: str | None = None,
        api_key: str | None = None,
        prefix: str | None = None,
    ) -> None:
        """Initialize storage client.

        Args:
            url: Qdrant server URL, or ":memory:" for local mode.
                Defaults to settings.qdrant_url.
            api_key: Qdrant API key. Defaults to settings.qdrant_api_key.
            prefix: Collection name prefix. Defaults to settings.collection_prefix.
        """
        self._url = url or settings.qdrant_url
        self._api_key = api_key or settings.qdrant_api_key
        self._prefix = prefix or settings.collection_prefix
        self._client: AsyncQdrantClient | None = None
        self._collections_initialized = False

    @property
    def client(self) -> AsyncQdrantClient:
        """Get the Qdrant client, raising if not initialized."""
        if self._client is None:
            raise RuntimeError("Storage not initialized. Call initialize() first.")
        return self._client

    async def initialize(self) -> None:
        """Initialize the storage client and ensure collections exist.

        Raises:
            ConfigurationError: If the collection prefix is not a valid name.
        """
        if not VALID_PREFIX.fullmatch(self._prefix):
            raise ConfigurationError(f"Invalid collection prefix: {self._prefix!r}")
        if self._url == ":memory:":
            self._client = AsyncQdrantClient(location=":memory:")
        else:
            self._client = AsyncQdrantClient(url=self._url, api_key=self._api_key)
        await self._ensure_collections()
        self._collections_initialized = True

    async def close(self) -> None:
        """Close the storage client connection."""
        if self._client is not None:
            await self._client.close()
            self._client = None
            self._collections_initialized = False

    async def __aenter__(self) -> StorageBase:
        await self.initialize()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    def _collection_name(self, kind: str) -> str:
        """Get full collection name with prefix."""
        suffix = COLLECTION_NAMES.get(kind, kind)
        return f"{self._prefix}_{suffix}"

    @staticmethod
    def _key_to_point_id(key: str) -> str:
        """Convert a record ID to a valid Qdrant point ID.

        Qdrant requires point IDs to be UUIDs or unsigned integers.
        We hash the key to create a deterministic UUID-format string.
        """
        h = hashlib.sha256(key.encode()).hexdigest()[:32]
        return f"{h[:8]}-{h[8:12]}-{h[12:16]}-{h[16:20]}-{h[20:32]}"

    async def _ensure_collections(self) -> None:
        """Ensure all required collections exist with payload indexes."""
        collections = await self.client.get_collections()
        existing = {c.name for c in collections.collections}

        for kind in COLLECTION_NAMES:
            collection_name = self._collection_name(kind)
            if collection_name in existing:
                continue
            await self.client.create_collection(
                collection_name=collection_name,
                vectors_config=models.VectorParams(
                    size=len(PLACEHOLDER_VECTOR),
                    distance=models.Distance.DOT,
                ),
            )
            for field_name, schema in PAYLOAD_INDEXES[kind].items():
                await self.client.create_payload_index(
                    collection_name=collection_name,
                    field_name=field_name,
                    field_schema=schema,
                )

    async def _upsert_record(self, kind: str, record_id: str, record: BaseModel) -> None:
        """Insert or replace one record keyed by its ID."""
        await self.client.upsert(
            collection_name=self._collection_name(kind),
            points=[
                models.PointStruct(
                    id=self._key_to_point_id(record_id),
                    vector=PLACEHOLDER_VECTOR,
                    payload=record.model_dump(mode="json"),
                )
            ],
        )

    async def _retrieve_record(
        self, kind: str, record_id: str, model_class: type[ModelT]
    ) -> ModelT | None:
        """Fetch one record by ID, or None when absent."""
        results = await self.client.retrieve(
            collection_name=self._collection_name(kind),
            ids=[self._key_to_point_id(record_id)],
            with_payload=True,
        )
        if not results or results[0].payload is None:
            return None
        return model_class.model_validate(results[0].payload)

    async def _scroll_all(
        self,
        kind: str,
        scroll_filter: models.Filter | None,
        model_class: type[ModelT],
    ) -> list[ModelT]:
        """Read every record matching a filter, following scroll pages."""
        records: list[ModelT] = []
        offset: Any = None
        while True:
            points, offset = await self.client.scroll(
                collection_name=self._collection_name(kind),
                scroll_filter=scroll_filter,
                limit=SCROLL_PAGE_SIZE,
                offset=offset,
                with_payload=True,
            )
            records.extend(
                model_class.model_validate(p.payload) for p in points if p.payload is not None
            )
            if offset is None:
                return records

    @staticmethod
    def _match(key: str, value: Any) -> models.FieldCondition:
        return models.FieldCondition(key=key, match=models.MatchValue(value=value))
