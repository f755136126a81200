"""
Restore orchestration.

RestoreOrchestrator writes a backup back to a remote:

    OPEN_STORE -> RESOLVE_COLLECTIONS -> PER_COLLECTION_RESTORE -> CLOSED
                  \\_____________ any error _____________/-> FAILED

Invariants:
    - Without an explicit collection list the backup metadata decides what
      is restored; missing metadata fails before any remote write
    - Each non-empty page of a collection is one atomic remote batch
    - Only documents present in the backup are written; nothing is deleted
      and payloads are written unchanged
    - The store is closed before run() returns or raises
"""

from __future__ import annotations

import logging
import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum

from ..config import DEFAULT_BATCH_SIZE
from ..errors import FirepouchError, NotFoundError, RemoteError
from ..remote.base import RemoteBatchSink
from ..remote.cursor import check_batch_size
from ..store.backup_store import BackupStore
from ..types import Document
from .backup import _store_name, resolve_names
from .chain import fold_sequential

logger = logging.getLogger(__name__)


class RestoreState(Enum):
    OPEN_STORE = "open_store"
    RESOLVE_COLLECTIONS = "resolve_collections"
    PER_COLLECTION_RESTORE = "per_collection_restore"
    CLOSED = "closed"
    FAILED = "failed"


@dataclass
class RestoreResult:
    """Result of a completed restore.

    Attributes:
        store_name: Name of the store restored from
        collection_names: Collections restored, in order
        document_counts: Documents written per collection
        duration_ms: Total restore duration
    """

    store_name: str
    collection_names: list[str]
    document_counts: dict[str, int] = field(default_factory=dict)
    duration_ms: int = 0

    @property
    def total_documents(self) -> int:
        return sum(self.document_counts.values())


class RestoreOrchestrator:
    """Writes the documents of a backup store to a remote sink.

    Example:
        >>> orchestrator = RestoreOrchestrator(backup_store, remote)
        >>> result = await orchestrator.run()
        >>> print(result.collection_names)
    """

    def __init__(
        self,
        store: BackupStore,
        sink: RemoteBatchSink,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> None:
        self.store = store
        self.sink = sink
        check_batch_size(batch_size)
        self.batch_size = batch_size
        self.state = RestoreState.OPEN_STORE

    async def run(
        self,
        collections: Sequence[str] | None = None,
        exclude: Sequence[str] = (),
    ) -> RestoreResult:
        """Run the restore.

        Args:
            collections: Explicit collection list; None means use metadata
            exclude: Collections to skip

        Raises:
            NotFoundError: If no list was given and the backup has no metadata
            RemoteError: If a batch write fails
        """
        start_time = time.time()
        current: str | None = None

        try:
            self.state = RestoreState.RESOLVE_COLLECTIONS
            names = await self._resolve_collections(collections, exclude)
            logger.info(
                "Starting restore",
                extra={"location": self.store.location, "collections": names},
            )

            self.state = RestoreState.PER_COLLECTION_RESTORE

            async def restore(counts: dict[str, int], name: str) -> dict[str, int]:
                nonlocal current
                current = name
                counts[name] = await self._restore_collection(name)
                return counts

            counts = await fold_sequential(names, restore, {})

            duration_ms = int((time.time() - start_time) * 1000)
            logger.info(
                "Restore completed",
                extra={
                    "location": self.store.location,
                    "documents": sum(counts.values()),
                    "duration_ms": duration_ms,
                },
            )
            return RestoreResult(
                store_name=_store_name(self.store.location),
                collection_names=names,
                document_counts=counts,
                duration_ms=duration_ms,
            )

        except Exception as e:
            self.state = RestoreState.FAILED
            if isinstance(e, FirepouchError):
                e.add_context(
                    collection=current,
                    elapsed_ms=int((time.time() - start_time) * 1000),
                )
            logger.error(
                f"Restore failed: {e}",
                extra={"location": self.store.location, "collection": current},
            )
            raise

        finally:
            await self._close_store()

    async def _close_store(self) -> None:
        # A close error must not mask the error of a failed run.
        try:
            await self.store.close()
        except Exception as e:
            if self.state == RestoreState.FAILED:
                logger.error(
                    f"Failed to close store after failed restore: {e}",
                    extra={"location": self.store.location},
                )
                return
            self.state = RestoreState.FAILED
            raise
        if self.state != RestoreState.FAILED:
            self.state = RestoreState.CLOSED

    async def _resolve_collections(
        self,
        collections: Sequence[str] | None,
        exclude: Sequence[str],
    ) -> list[str]:
        if collections is None:
            metadata = await self.store.meta.get()
            if metadata is None:
                raise NotFoundError(
                    "Backup has no metadata and no collections were given; "
                    "the backup may be incomplete",
                    resource_type="backup_metadata",
                    resource_id=self.store.location,
                )
            collections = metadata.collection_names
        return resolve_names(collections, exclude)

    async def _restore_collection(self, name: str) -> int:
        started = time.time()

        async def write_page(page: list[Document]) -> None:
            try:
                await self.sink.write_batch(name, page)
            except FirepouchError:
                raise
            except Exception as e:
                raise RemoteError(
                    f"Batch write to {name} failed: {e}",
                    collection=name,
                    operation="write_batch",
                ) from e

        total = await self.store.for_each_collection_page(name, self.batch_size, write_page)
        logger.info(
            "Collection restored",
            extra={
                "collection": name,
                "documents": total,
                "elapsed_ms": int((time.time() - started) * 1000),
            },
        )
        return total
