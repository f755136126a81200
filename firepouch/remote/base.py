"""
Protocols for the remote document collection.

A backup reads from a RemoteCollectionSource; a restore writes to a
RemoteBatchSink. Firestore implements both, as does the in-memory remote
used by tests.

Invariants:
    - fetch_documents returns documents ordered ascending by id
    - start_after is exclusive: the named id is never returned
    - write_batch is atomic: either every document is written or none is

How to change safely:
    - Protocol changes require updating every implementation
    - Keep ordering by id; the cursor relies on it for continuation
"""

from __future__ import annotations

from abc import abstractmethod
from typing import List, Optional, Protocol, Sequence, runtime_checkable

from ..types import Document, RemoteDocument


@runtime_checkable
class RemoteCollectionSource(Protocol):
    """Read side of a remote collection store."""

    @abstractmethod
    async def list_collections(self) -> List[str]:
        """Return the names of every top-level collection."""
        ...

    @abstractmethod
    async def fetch_documents(
        self,
        collection_name: str,
        limit: int,
        start_after: Optional[str] = None,
    ) -> List[RemoteDocument]:
        """Fetch up to limit documents ordered by id.

        Args:
            collection_name: Collection to read
            limit: Maximum number of documents to return
            start_after: Exclusive lower bound on document id

        Raises:
            RemoteError: If the remote call fails
        """
        ...


@runtime_checkable
class RemoteBatchSink(Protocol):
    """Write side of a remote collection store."""

    @abstractmethod
    async def write_batch(
        self,
        collection_name: str,
        documents: Sequence[Document],
    ) -> None:
        """Set every document (by id) in one atomic batch.

        Raises:
            RemoteError: If the batch is rejected
        """
        ...
