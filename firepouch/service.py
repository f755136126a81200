"""
Firepouch facade.

Entry points for every user-facing operation:
- create_backup / create_backup_to_archive / create_backup_to_cloud
- restore_backup / restore_from_archive / restore_from_cloud
- dump_to_json
- get_store_path

Store naming:
    A given name resolves against StoreConfig.root_dir unless absolute.
    Without a name a fresh "<ISO timestamp, ':' as '_'>---<short id>" is used.

Invariants:
    - Backups always start from an empty store at the resolved location
    - Restores never create a store; a missing location is NotFoundError
    - Temp directories created here are removed here, on success and failure
    - Archive and blob hand-offs happen only after a backup completed or
      before a restore starts
"""

from __future__ import annotations

import asyncio
import logging
import shutil
import tempfile
import uuid
from collections.abc import Sequence
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from .archive.packager import TEMP_PREFIX, pack_directory, unpack_archive
from .backup.backup import BackupOrchestrator, BackupResult
from .backup.restore import RestoreOrchestrator, RestoreResult
from .config import FirepouchConfig
from .errors import ConfigurationError, NotFoundError
from .remote.cursor import check_batch_size
from .store.backup_store import BackupStore
from .store.sqlite_store import DB_FILENAME, SqliteDocumentStore
from .transport.base import BlobTransport

logger = logging.getLogger(__name__)

NAME_SEPARATOR = "---"


def generate_store_name(now: datetime | None = None) -> str:
    """Fresh store name: ISO timestamp (':' replaced by '_') + short random id."""
    now = now or datetime.now(timezone.utc)
    stamp = now.isoformat(timespec="milliseconds").replace("+00:00", "Z").replace(":", "_")
    return f"{stamp}{NAME_SEPARATOR}{uuid.uuid4().hex[:12]}"


class Firepouch:
    """Backup and restore of remote document collections.

    Construction fails with ConfigurationError when no remote is given and
    Firestore has no project configured. Pass require_remote=False for
    local-only work such as dump_to_json; the remote is then checked on
    first use.

    Attributes:
        config: Complete configuration
        remote: Remote source and sink (Firestore unless injected)
        transport: Blob transport for cloud archives (S3 unless injected)

    Example:
        >>> firepouch = Firepouch(config=FirepouchConfig.from_env())
        >>> result = await firepouch.create_backup(name="nightly")
        >>> await firepouch.restore_backup(name="nightly")
    """

    def __init__(
        self,
        remote: Any = None,
        config: FirepouchConfig | None = None,
        transport: BlobTransport | None = None,
        require_remote: bool = True,
    ) -> None:
        self.config = config or FirepouchConfig()
        self._remote = remote
        self._transport = transport
        if require_remote and remote is None:
            self._check_remote_config()

    @property
    def remote(self) -> Any:
        """The remote collection store, created from config on first use.

        Raises:
            ConfigurationError: If no remote was given and Firestore is not configured
        """
        if self._remote is None:
            self._check_remote_config()
            from .remote.firestore import FirestoreRemote

            self._remote = FirestoreRemote(self.config.firestore)
        return self._remote

    def _check_remote_config(self) -> None:
        if not self.config.firestore.project_id:
            raise ConfigurationError(
                "Cannot use Firepouch without a remote or Firestore credentials",
                setting="GOOGLE_CLOUD_PROJECT",
            )

    @property
    def transport(self) -> BlobTransport:
        if self._transport is None:
            from .transport.s3 import S3Transport

            self._transport = S3Transport(self.config.s3)
        return self._transport

    def get_store_path(self, name: str | None = None) -> Path:
        """Resolve a store name to its directory."""
        if name:
            path = Path(name)
            if path.is_absolute():
                return path
            return (Path(self.config.store.root_dir) / path).resolve()
        return (Path(self.config.store.root_dir) / generate_store_name()).resolve()

    def _batch_size(self, batch_size: int | None) -> int:
        if batch_size is None:
            return self.config.backup.batch_size
        check_batch_size(batch_size)
        return batch_size

    def _open_store(self, location: str | Path) -> tuple[SqliteDocumentStore, BackupStore]:
        store = SqliteDocumentStore(location, self.config.store)
        return store, BackupStore(store)

    async def _open_existing(self, location: Path) -> BackupStore:
        if not (location / DB_FILENAME).is_file():
            raise NotFoundError(
                f"No backup found at {location}",
                resource_type="store",
                resource_id=str(location),
            )
        store, backup_store = self._open_store(location)
        await store.open()
        return backup_store

    async def create_backup(
        self,
        name: str | None = None,
        collections: Sequence[str] | None = None,
        exclude: Sequence[str] | None = None,
        batch_size: int | None = None,
    ) -> BackupResult:
        """Back up remote collections into a fresh local store.

        Args:
            name: Store name or absolute path; generated when omitted
            collections: Include list; defaults to config, then all collections
            exclude: Collections to skip; defaults to config
            batch_size: Page size; defaults to config

        Returns:
            BackupResult describing the written store
        """
        remote = self.remote
        location = self.get_store_path(name)
        store, backup_store = self._open_store(location)
        orchestrator = BackupOrchestrator(remote, backup_store, self._batch_size(batch_size))
        await store.recreate()

        return await orchestrator.run(
            collections=collections if collections is not None else self.config.backup.collections,
            exclude=exclude if exclude is not None else self.config.backup.exclude,
        )

    async def create_backup_to_archive(
        self,
        name: str | None = None,
        dest: str | Path | None = None,
        collections: Sequence[str] | None = None,
        exclude: Sequence[str] | None = None,
        batch_size: int | None = None,
    ) -> BackupResult:
        """Back up, then zip the store to dest (default "<store>.zip")."""
        result = await self.create_backup(name, collections, exclude, batch_size)
        archive_path = await self._pack(Path(result.location), dest)
        result.archive_path = str(archive_path)
        return result

    async def create_backup_to_cloud(
        self,
        name: str | None = None,
        remote_key: str | None = None,
        collections: Sequence[str] | None = None,
        exclude: Sequence[str] | None = None,
        batch_size: int | None = None,
    ) -> BackupResult:
        """Back up, zip into a temp file and upload it under remote_key."""
        result = await self.create_backup(name, collections, exclude, batch_size)
        key = remote_key or f"{result.store_name}.zip"

        work_dir = Path(tempfile.mkdtemp(prefix=TEMP_PREFIX))
        try:
            archive_path = await self._pack(Path(result.location), work_dir / f"{result.store_name}.zip")
            result.remote_key = await self.transport.upload(archive_path, key)
        finally:
            shutil.rmtree(work_dir, ignore_errors=True)
        return result

    async def restore_backup(
        self,
        name: str,
        collections: Sequence[str] | None = None,
        exclude: Sequence[str] | None = None,
        batch_size: int | None = None,
    ) -> RestoreResult:
        """Restore a local store to the remote.

        Raises:
            NotFoundError: If the store does not exist, or it has no metadata
                and no collections were given
        """
        return await self._restore_location(
            self.get_store_path(name), collections, exclude, batch_size
        )

    async def restore_from_archive(
        self,
        archive_path: str | Path,
        collections: Sequence[str] | None = None,
        exclude: Sequence[str] | None = None,
        batch_size: int | None = None,
    ) -> RestoreResult:
        """Unpack an archive into a temp directory and restore from it."""
        loop = asyncio.get_running_loop()
        location = await loop.run_in_executor(None, unpack_archive, archive_path)
        try:
            return await self._restore_location(location, collections, exclude, batch_size)
        finally:
            shutil.rmtree(location, ignore_errors=True)

    async def restore_from_cloud(
        self,
        remote_key: str,
        collections: Sequence[str] | None = None,
        exclude: Sequence[str] | None = None,
        batch_size: int | None = None,
    ) -> RestoreResult:
        """Download an archive, unpack it and restore from it."""
        work_dir = Path(tempfile.mkdtemp(prefix=TEMP_PREFIX))
        try:
            archive_path = await self.transport.download(remote_key, work_dir / "backup.zip")
            loop = asyncio.get_running_loop()
            location = await loop.run_in_executor(
                None, unpack_archive, archive_path, work_dir / "store"
            )
            return await self._restore_location(location, collections, exclude, batch_size)
        finally:
            shutil.rmtree(work_dir, ignore_errors=True)

    async def dump_to_json(
        self,
        name: str,
        destination: str | Path | None = None,
    ) -> Path:
        """Export a store to JSON (default "<store>/<store name>.json")."""
        location = self.get_store_path(name)
        backup_store = await self._open_existing(location)
        target = Path(destination) if destination else location / f"{location.name}.json"
        try:
            return await backup_store.dump_to_json(target)
        finally:
            await backup_store.close()

    async def _restore_location(
        self,
        location: Path,
        collections: Sequence[str] | None,
        exclude: Sequence[str] | None,
        batch_size: int | None,
    ) -> RestoreResult:
        remote = self.remote
        batch_size = self._batch_size(batch_size)
        backup_store = await self._open_existing(location)
        orchestrator = RestoreOrchestrator(backup_store, remote, batch_size)
        return await orchestrator.run(
            collections=collections if collections is not None else self.config.backup.collections,
            exclude=exclude if exclude is not None else self.config.backup.exclude,
        )

    async def _pack(self, location: Path, dest: str | Path | None) -> Path:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None,
            pack_directory,
            location,
            dest,
            self.config.archive.compression_level,
        )
