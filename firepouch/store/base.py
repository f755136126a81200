"""
DocumentStore protocol and record types.

A DocumentStore is a revisioned key/value store with a secondary index
over the origin collection of stored Documents. Two implementations
exist: SqliteDocumentStore (persistent) and MemoryDocumentStore.

Invariants:
    - Each key has at most one current record
    - Revisions are "<generation>-<random hex>"; generation increases by one
      per write of a key and tokens are never reused
    - bulk_put resolves current revisions with one listing before writing
    - A closed store rejects every operation with StorageError

How to change safely:
    - Protocol changes require updating both implementations
    - Keep the revision format stable; stores on disk depend on it
"""

from __future__ import annotations

import uuid
from abc import abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Sequence, runtime_checkable

from ..types import Document

RecordValue = Dict[str, Any]


def new_revision(generation: int) -> str:
    """Revision token for the given generation."""
    return f"{generation}-{uuid.uuid4().hex}"


def index_fields(value: RecordValue) -> tuple[Optional[str], Optional[str]]:
    """(collection_name, doc_id) for the secondary index, or (None, None)."""
    if Document.is_document(value):
        return value["collectionName"], value["id"]
    return None, None


@dataclass(frozen=True)
class StoreRecord:
    """A stored value with its revision.

    Attributes:
        id: Record key
        revision: Current revision token
        value: Stored value
    """

    id: str
    revision: str
    value: RecordValue

    @property
    def generation(self) -> int:
        return int(self.revision.split("-", 1)[0])


@dataclass
class AllWithIds:
    """Parallel lists of keys and values, ordered by key."""

    ids: List[str] = field(default_factory=list)
    values: List[RecordValue] = field(default_factory=list)


@runtime_checkable
class DocumentStore(Protocol):
    """Capability set shared by every local store."""

    @property
    @abstractmethod
    def location(self) -> str:
        """Where the store lives (directory path or in-memory name)."""
        ...

    @abstractmethod
    async def get(self, id: str) -> Optional[RecordValue]:
        """Value for id, or None."""
        ...

    @abstractmethod
    async def get_record(self, id: str) -> Optional[StoreRecord]:
        """Value and revision for id, or None."""
        ...

    @abstractmethod
    async def get_or_raise(self, id: str) -> RecordValue:
        """Value for id.

        Raises:
            NotFoundError: If id is absent
        """
        ...

    @abstractmethod
    async def put(self, id: str, value: RecordValue) -> str:
        """Insert or update one value. Returns the new revision."""
        ...

    @abstractmethod
    async def bulk_put(self, ids: Sequence[str], values: Sequence[RecordValue]) -> List[str]:
        """Insert or update many values.

        Returns:
            New revisions of the written ids, in input order

        Raises:
            ArgumentError: If ids and values differ in length
            StorageError: With conflicts, after writing every other id
        """
        ...

    @abstractmethod
    async def remove(self, id: str) -> bool:
        """Delete id. Returns False when it was absent."""
        ...

    @abstractmethod
    async def count(self) -> int:
        ...

    @abstractmethod
    async def all(self) -> List[RecordValue]:
        ...

    @abstractmethod
    async def all_with_ids(self) -> AllWithIds:
        ...

    @abstractmethod
    async def all_mapped_to_id(self) -> Dict[str, RecordValue]:
        ...

    @abstractmethod
    async def find_by_collection(
        self,
        collection_name: str,
        limit: int,
        offset: int = 0,
    ) -> List[Document]:
        """Documents tagged collection_name, ordered by id."""
        ...

    @abstractmethod
    async def destroy(self) -> None:
        """Delete every record and the backing storage."""
        ...

    @abstractmethod
    async def recreate(self) -> None:
        """destroy(), yield to the event loop, then reopen empty."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Flush and release the store. Later operations fail."""
        ...
