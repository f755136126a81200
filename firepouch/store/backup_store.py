"""
BackupStore: a DocumentStore holding one backup.

Adds the pieces backup and restore need on top of the raw store:
- Document writes keyed by "<collection>/<id>"
- The metadata singleton (meta.get / meta.set)
- Paging through the collection index
- JSON export of the whole backup

Invariants:
    - meta.get() returns None for missing or malformed metadata
    - JSON export groups documents by collection; "meta" only when valid
"""

from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable, Sequence
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from ..errors import ArgumentError, StorageError
from ..types import META_ID, BackupMeta, Document
from .base import DocumentStore

logger = logging.getLogger(__name__)


class MetadataFacade:
    """Reads and writes the BackupMeta singleton of a store."""

    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    async def set(self, metadata: BackupMeta) -> str:
        return await self._store.put(META_ID, metadata.to_dict())

    async def get(self) -> BackupMeta | None:
        value = await self._store.get(META_ID)
        if value is None:
            return None
        try:
            return BackupMeta.model_validate(value)
        except ValidationError:
            logger.warning("Ignoring malformed backup metadata", extra={"location": self._store.location})
            return None


class BackupStore:
    """A DocumentStore plus backup-specific helpers.

    Example:
        >>> backup = BackupStore(SqliteDocumentStore(path))
        >>> await backup.put_documents(page)
        >>> await backup.meta.set(BackupMeta(collection_names=["users"], created_at_epoch_ms=0))
    """

    def __init__(self, store: DocumentStore) -> None:
        self.store = store
        self.meta = MetadataFacade(store)

    @property
    def location(self) -> str:
        return self.store.location

    async def put_documents(self, documents: Sequence[Document]) -> list[str]:
        """Upsert documents, one record per (collection, id)."""
        if not documents:
            return []
        return await self.store.bulk_put(
            [doc.key for doc in documents],
            [doc.to_dict() for doc in documents],
        )

    async def collection_cursor(
        self,
        collection_name: str,
        limit: int,
        offset: int = 0,
    ) -> list[Document]:
        """One page of a collection from the local index."""
        return await self.store.find_by_collection(collection_name, limit, offset)

    async def for_each_collection_page(
        self,
        collection_name: str,
        limit: int,
        fn: Callable[[list[Document]], Awaitable[Any]],
    ) -> int:
        """Await fn for every non-empty page of a collection.

        Returns:
            Number of documents visited
        """
        if limit <= 0:
            raise ArgumentError(f"limit must be positive, got {limit}", limit=limit)

        offset = 0
        while True:
            page = await self.collection_cursor(collection_name, limit, offset)
            if page:
                await fn(page)
            offset += len(page)
            if len(page) < limit:
                return offset

    async def documents_by_collection(self) -> dict[str, list[dict[str, Any]]]:
        grouped: dict[str, list[dict[str, Any]]] = {}
        for value in await self.store.all():
            if Document.is_document(value):
                grouped.setdefault(value["collectionName"], []).append(value)
        return grouped

    async def dump_to_json(self, path: str | Path) -> Path:
        """Write the whole backup to a JSON file.

        Layout: {"<collection>": [{id, collectionName, payload}, ...],
        "meta": [metadata]}.
        """
        output: dict[str, Any] = dict(await self.documents_by_collection())
        metadata = await self.meta.get()
        if metadata is not None:
            output["meta"] = [metadata.to_dict()]

        target = Path(path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(json.dumps(output, indent=2, sort_keys=True))
        except OSError as e:
            raise StorageError(f"Cannot write JSON dump: {e}", location=str(target)) from e

        logger.info(
            "Backup dumped to JSON",
            extra={"path": str(target), "collections": len(output) - (1 if metadata else 0)},
        )
        return target

    async def recreate(self) -> None:
        await self.store.recreate()

    async def close(self) -> None:
        await self.store.close()
