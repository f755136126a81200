"""
Stateless pagination over a remote collection.

The cursor turns "order by id, limit N, start after X" queries into a
sequence of Pages. It holds no state between calls: the continuation
returned with each page is everything needed to fetch the next one.

Invariants:
    - Pages are ordered ascending by document id
    - A non-empty page continues from its last id; an empty page ends
    - for_each_page calls per_page for the terminating empty page too
    - At most one page is held in memory by for_each_page
    - No retries: fetch errors propagate to the caller
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, List, Optional

from ..errors import ArgumentError, FirepouchError, RemoteError
from ..types import Document, Page
from .base import RemoteCollectionSource

logger = logging.getLogger(__name__)

PageHandler = Callable[[List[Document]], Awaitable[None]]


class RemoteCollectionCursor:
    """Pages through remote collections in id order.

    Example:
        >>> cursor = RemoteCollectionCursor(source)
        >>> total = await cursor.for_each_page("users", 250, handle_page)
    """

    def __init__(self, source: RemoteCollectionSource) -> None:
        self.source = source

    async def fetch_page(
        self,
        collection_name: str,
        batch_size: int,
        after_id: Optional[str] = None,
    ) -> Page:
        """Fetch one page of documents.

        Args:
            collection_name: Collection to read
            batch_size: Maximum page size, must be positive
            after_id: Continuation from the previous page

        Returns:
            Page whose items are tagged with collection_name

        Raises:
            ArgumentError: If batch_size is not a positive integer
            RemoteError: If the remote fetch fails
        """
        check_batch_size(batch_size)

        try:
            remote_docs = await self.source.fetch_documents(
                collection_name, batch_size, start_after=after_id
            )
        except FirepouchError:
            raise
        except Exception as e:
            raise RemoteError(
                f"Failed to fetch page from {collection_name}: {e}",
                collection=collection_name,
                operation="fetch_page",
            ) from e

        items = [
            Document(id=doc.id, collection_name=collection_name, payload=dict(doc.data))
            for doc in remote_docs
        ]
        continuation = items[-1].id if items else None
        return Page(items=items, continuation=continuation)

    async def for_each_page(
        self,
        collection_name: str,
        batch_size: int,
        per_page: PageHandler,
    ) -> int:
        """Drive the cursor to completion.

        per_page is awaited once per page, in order, before the next page
        is fetched. The final empty page is delivered as well.

        Returns:
            Total number of documents visited
        """
        check_batch_size(batch_size)

        total = 0
        pages = 0
        after_id: Optional[str] = None
        while True:
            page = await self.fetch_page(collection_name, batch_size, after_id)
            await per_page(page.items)
            pages += 1
            total += len(page.items)
            if page.is_last:
                break
            after_id = page.continuation

        logger.debug(
            "Collection exhausted",
            extra={"collection": collection_name, "pages": pages, "documents": total},
        )
        return total


def check_batch_size(batch_size: int) -> None:
    """Raise ArgumentError unless batch_size is a positive int."""
    if isinstance(batch_size, bool) or not isinstance(batch_size, int) or batch_size <= 0:
        raise ArgumentError(
            f"batch_size must be a positive integer, got {batch_size!r}",
            batch_size=batch_size,
        )
