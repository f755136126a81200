"""
In-memory remote collection store for testing.

Implements both RemoteCollectionSource and RemoteBatchSink over plain
dicts, with helpers to seed data, inspect writes and inject failures.
"""

from __future__ import annotations

import asyncio
import copy
import logging
from collections import defaultdict
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from ..errors import RemoteError
from ..types import Document, RemoteDocument

logger = logging.getLogger(__name__)


class InMemoryRemote:
    """Dict-backed remote used by tests and local development.

    Attributes:
        collections: collection name -> {doc id -> data}
        fetch_calls: (collection, limit, start_after) for every fetch
        batches: (collection, [ids]) for every committed write_batch

    Example:
        >>> remote = InMemoryRemote({"users": {"a": {"n": 1}}})
        >>> await remote.fetch_documents("users", 10)
        [RemoteDocument(id='a', data={'n': 1})]
    """

    def __init__(
        self,
        collections: Optional[Mapping[str, Mapping[str, Dict[str, Any]]]] = None,
    ) -> None:
        self.collections: Dict[str, Dict[str, Dict[str, Any]]] = defaultdict(dict)
        for name, docs in (collections or {}).items():
            self.collections[name] = {doc_id: dict(data) for doc_id, data in docs.items()}
        self.fetch_calls: List[Tuple[str, int, Optional[str]]] = []
        self.batches: List[Tuple[str, List[str]]] = []
        self._fetch_failures: Dict[str, Exception] = {}
        self._write_failures: Dict[str, Exception] = {}
        self._lock = asyncio.Lock()

    async def list_collections(self) -> List[str]:
        return sorted(self.collections.keys())

    async def fetch_documents(
        self,
        collection_name: str,
        limit: int,
        start_after: Optional[str] = None,
    ) -> List[RemoteDocument]:
        self.fetch_calls.append((collection_name, limit, start_after))
        failure = self._fetch_failures.get(collection_name)
        if failure is not None:
            raise failure

        docs = self.collections.get(collection_name, {})
        ids = sorted(docs)
        if start_after is not None:
            ids = [doc_id for doc_id in ids if doc_id > start_after]
        return [
            RemoteDocument(id=doc_id, data=copy.deepcopy(docs[doc_id]))
            for doc_id in ids[:limit]
        ]

    async def write_batch(
        self,
        collection_name: str,
        documents: Sequence[Document],
    ) -> None:
        failure = self._write_failures.get(collection_name)
        if failure is not None:
            raise failure

        async with self._lock:
            target = self.collections[collection_name]
            for doc in documents:
                target[doc.id] = copy.deepcopy(doc.payload)
            self.batches.append((collection_name, [doc.id for doc in documents]))
        logger.debug(
            "Batch written",
            extra={"collection": collection_name, "documents": len(documents)},
        )

    # Testing helpers

    def fail_fetch(self, collection_name: str, exception: Optional[Exception] = None) -> None:
        """Make every fetch from collection_name raise."""
        self._fetch_failures[collection_name] = exception or RemoteError(
            "injected fetch failure", collection=collection_name, operation="fetch"
        )

    def fail_write(self, collection_name: str, exception: Optional[Exception] = None) -> None:
        """Make every write_batch to collection_name raise."""
        self._write_failures[collection_name] = exception or RemoteError(
            "injected write failure", collection=collection_name, operation="write_batch"
        )

    def snapshot(self) -> Dict[str, Dict[str, Dict[str, Any]]]:
        """Deep copy of non-empty collections."""
        return {name: copy.deepcopy(docs) for name, docs in self.collections.items() if docs}

    @property
    def write_count(self) -> int:
        return sum(len(ids) for _, ids in self.batches)
