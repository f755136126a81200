"""
In-memory document store.

Same behaviour as SqliteDocumentStore without touching disk. Used by
unit tests and for throwaway stores that never need to be archived.
"""

from __future__ import annotations

import asyncio
import copy
import logging
from collections.abc import Sequence

from ..errors import ArgumentError, NotFoundError, StorageError
from ..types import Document
from .base import AllWithIds, RecordValue, StoreRecord, index_fields, new_revision

logger = logging.getLogger(__name__)


class MemoryDocumentStore:
    """Dict-backed DocumentStore.

    Values are deep-copied on the way in and out so callers cannot
    mutate stored state.

    Example:
        >>> store = MemoryDocumentStore("scratch")
        >>> await store.open()
        >>> await store.put("k", {"a": 1})
        '1-...'
    """

    def __init__(self, name: str = "memory", recreate_yield_ms: int = 1) -> None:
        self.name = name
        self.recreate_yield_ms = recreate_yield_ms
        self._records: dict[str, StoreRecord] = {}
        self._opened = False
        self._closed = False
        self._lock = asyncio.Lock()

    @property
    def location(self) -> str:
        return self.name

    @property
    def is_open(self) -> bool:
        return self._opened and not self._closed

    def _check_open(self) -> None:
        if not self.is_open:
            raise StorageError("Store is not open", location=self.location)

    async def open(self) -> None:
        self._opened = True
        self._closed = False

    async def get(self, id: str) -> RecordValue | None:
        record = await self.get_record(id)
        return record.value if record else None

    async def get_record(self, id: str) -> StoreRecord | None:
        self._check_open()
        record = self._records.get(id)
        if record is None:
            return None
        return StoreRecord(id=record.id, revision=record.revision, value=copy.deepcopy(record.value))

    async def get_or_raise(self, id: str) -> RecordValue:
        value = await self.get(id)
        if value is None:
            raise NotFoundError(f"Record not found: {id}", resource_type="record", resource_id=id)
        return value

    async def put(self, id: str, value: RecordValue) -> str:
        revisions = await self.bulk_put([id], [value])
        return revisions[0]

    async def bulk_put(self, ids: Sequence[str], values: Sequence[RecordValue]) -> list[str]:
        if len(ids) != len(values):
            raise ArgumentError(
                "ids and values must have the same length",
                ids=len(ids),
                values=len(values),
            )
        if not ids:
            return []

        self._check_open()
        revisions: list[str] = []
        # The whole write runs under the lock, so no record can change
        # between listing and writing; conflicts only arise in SqliteDocumentStore.
        async with self._lock:
            for id, value in zip(ids, values):
                existing = self._records.get(id)
                generation = existing.generation + 1 if existing else 1
                revision = new_revision(generation)
                self._records[id] = StoreRecord(id=id, revision=revision, value=copy.deepcopy(value))
                revisions.append(revision)
        return revisions

    async def remove(self, id: str) -> bool:
        self._check_open()
        return self._records.pop(id, None) is not None

    async def count(self) -> int:
        self._check_open()
        return len(self._records)

    async def all(self) -> list[RecordValue]:
        return (await self.all_with_ids()).values

    async def all_with_ids(self) -> AllWithIds:
        self._check_open()
        ids = sorted(self._records)
        return AllWithIds(ids=ids, values=[copy.deepcopy(self._records[id].value) for id in ids])

    async def all_mapped_to_id(self) -> dict[str, RecordValue]:
        result = await self.all_with_ids()
        return dict(zip(result.ids, result.values))

    async def find_by_collection(
        self,
        collection_name: str,
        limit: int,
        offset: int = 0,
    ) -> list[Document]:
        if limit <= 0 or offset < 0:
            raise ArgumentError(
                "limit must be positive and offset non-negative",
                limit=limit,
                offset=offset,
            )
        self._check_open()
        matching = []
        for record in self._records.values():
            name, doc_id = index_fields(record.value)
            if name == collection_name:
                matching.append((doc_id, record.value))
        matching.sort(key=lambda item: item[0])
        return [
            Document.from_dict(copy.deepcopy(value))
            for _, value in matching[offset:offset + limit]
        ]

    async def close(self) -> None:
        self._closed = True

    async def destroy(self) -> None:
        self._records.clear()
        self._opened = False

    async def recreate(self) -> None:
        await self.destroy()
        await asyncio.sleep(self.recreate_yield_ms / 1000.0)
        await self.open()
