"""
Backup orchestration.

BackupOrchestrator copies remote collections into a BackupStore:

    IDLE -> RESOLVE_COLLECTIONS -> PER_COLLECTION_SYNC -> WRITE_METADATA -> CLOSED
                         \\________________ any error ________________/-> FAILED

Invariants:
    - Collections are synced one at a time, pages one at a time
    - Metadata is written exactly once, and only after every collection
      succeeded; its collection list is the resolved list
    - The store is closed before run() returns or raises
    - Errors carry the failing collection and elapsed_ms in details

How to change safely:
    - Never write metadata before the last collection completes; restore
      treats metadata as the marker of a complete backup
"""

from __future__ import annotations

import logging
import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum

from ..config import DEFAULT_BATCH_SIZE
from ..errors import FirepouchError, RemoteError, StorageError
from ..remote.base import RemoteCollectionSource
from ..remote.cursor import RemoteCollectionCursor, check_batch_size
from ..store.backup_store import BackupStore
from ..types import BackupMeta, Document
from .chain import fold_sequential

logger = logging.getLogger(__name__)


class BackupState(Enum):
    IDLE = "idle"
    RESOLVE_COLLECTIONS = "resolve_collections"
    PER_COLLECTION_SYNC = "per_collection_sync"
    WRITE_METADATA = "write_metadata"
    CLOSED = "closed"
    FAILED = "failed"


@dataclass
class BackupResult:
    """Result of a completed backup.

    Attributes:
        store_name: Name of the store (last path component)
        location: Store location
        collection_names: Collections written, in order
        document_counts: Documents written per collection
        created_at_ms: Backup start time (Unix ms), as recorded in metadata
        duration_ms: Total backup duration
        archive_path: Archive written after the backup, if any
        remote_key: Blob store key the archive was uploaded to, if any
    """

    store_name: str
    location: str
    collection_names: list[str]
    document_counts: dict[str, int] = field(default_factory=dict)
    created_at_ms: int = 0
    duration_ms: int = 0
    archive_path: str | None = None
    remote_key: str | None = None

    @property
    def total_documents(self) -> int:
        return sum(self.document_counts.values())


def resolve_names(
    names: Sequence[str],
    exclude: Sequence[str] = (),
) -> list[str]:
    """Drop excluded names and duplicates, keeping first occurrence order."""
    excluded = set(exclude)
    resolved: list[str] = []
    for name in names:
        if name not in excluded and name not in resolved:
            resolved.append(name)
    return resolved


class BackupOrchestrator:
    """Copies remote collections into a local backup store.

    Example:
        >>> orchestrator = BackupOrchestrator(remote, backup_store, batch_size=250)
        >>> result = await orchestrator.run(exclude=["sessions"])
        >>> print(result.document_counts)
    """

    def __init__(
        self,
        source: RemoteCollectionSource,
        store: BackupStore,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> None:
        self.source = source
        self.store = store
        check_batch_size(batch_size)
        self.batch_size = batch_size
        self.cursor = RemoteCollectionCursor(source)
        self.state = BackupState.IDLE

    async def run(
        self,
        collections: Sequence[str] | None = None,
        exclude: Sequence[str] = (),
    ) -> BackupResult:
        """Run the backup.

        Args:
            collections: Explicit include list; None means every remote collection
            exclude: Collections to skip

        Raises:
            RemoteError: If listing or fetching fails
            StorageError: If a local write fails
        """
        start_time = time.time()
        created_at_ms = int(start_time * 1000)
        current: str | None = None

        try:
            self.state = BackupState.RESOLVE_COLLECTIONS
            names = await self._resolve_collections(collections, exclude)
            logger.info(
                "Starting backup",
                extra={"location": self.store.location, "collections": names},
            )

            self.state = BackupState.PER_COLLECTION_SYNC

            async def sync(counts: dict[str, int], name: str) -> dict[str, int]:
                nonlocal current
                current = name
                counts[name] = await self._sync_collection(name)
                return counts

            counts = await fold_sequential(names, sync, {})
            current = None

            self.state = BackupState.WRITE_METADATA
            await self.store.meta.set(
                BackupMeta(collection_names=names, created_at_epoch_ms=created_at_ms)
            )

            duration_ms = int((time.time() - start_time) * 1000)
            logger.info(
                "Backup completed",
                extra={
                    "location": self.store.location,
                    "documents": sum(counts.values()),
                    "duration_ms": duration_ms,
                },
            )
            return BackupResult(
                store_name=_store_name(self.store.location),
                location=self.store.location,
                collection_names=names,
                document_counts=counts,
                created_at_ms=created_at_ms,
                duration_ms=duration_ms,
            )

        except Exception as e:
            self.state = BackupState.FAILED
            elapsed_ms = int((time.time() - start_time) * 1000)
            if isinstance(e, FirepouchError):
                e.add_context(collection=current, elapsed_ms=elapsed_ms)
            logger.error(
                f"Backup failed: {e}",
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
            if self.state == BackupState.FAILED:
                logger.error(
                    f"Failed to close store after failed backup: {e}",
                    extra={"location": self.store.location},
                )
                return
            self.state = BackupState.FAILED
            raise
        if self.state != BackupState.FAILED:
            self.state = BackupState.CLOSED

    async def _resolve_collections(
        self,
        collections: Sequence[str] | None,
        exclude: Sequence[str],
    ) -> list[str]:
        if collections is None:
            try:
                collections = await self.source.list_collections()
            except FirepouchError:
                raise
            except Exception as e:
                raise RemoteError(
                    f"Failed to list collections: {e}", operation="list_collections"
                ) from e
        return resolve_names(collections, exclude)

    async def _sync_collection(self, name: str) -> int:
        started = time.time()
        logger.info("Syncing collection", extra={"collection": name})

        async def write_page(items: list[Document]) -> None:
            try:
                await self.store.put_documents(items)
            except FirepouchError:
                raise
            except (TypeError, ValueError) as e:
                raise StorageError(f"Failed to store page: {e}", location=self.store.location) from e

        total = await self.cursor.for_each_page(name, self.batch_size, write_page)
        logger.info(
            "Collection synced",
            extra={
                "collection": name,
                "documents": total,
                "elapsed_ms": int((time.time() - started) * 1000),
            },
        )
        return total


def _store_name(location: str) -> str:
    return location.rstrip("/\\").replace("\\", "/").rsplit("/", 1)[-1]
