"""
Persistent SQLite document store.

A store location is a directory holding a single SQLite file. Every
value is one row keyed by id; Documents additionally populate the
collection_name/doc_id columns used by the secondary index.

Invariants:
    - All writes run inside BEGIN IMMEDIATE ... COMMIT
    - Updates are guarded by the revision observed in the listing
    - sqlite3.Error and OSError surface as StorageError
    - close() checkpoints the WAL; a closed store rejects every operation

How to change safely:
    - Schema changes must keep existing store files readable
    - Keep index creation tied to StoreConfig.index_collection_name

Table schema:
    records:
        - key TEXT PRIMARY KEY
        - revision TEXT
        - generation INTEGER
        - collection_name TEXT (NULL for non-document values)
        - doc_id TEXT (NULL for non-document values)
        - value_json TEXT
        - INDEX idx_records_collection on (collection_name, doc_id)
"""

from __future__ import annotations

import asyncio
import json
import logging
import shutil
import sqlite3
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from pathlib import Path

from ..config import StoreConfig
from ..errors import ArgumentError, NotFoundError, StorageError
from ..types import Document
from .base import AllWithIds, RecordValue, StoreRecord, index_fields, new_revision

logger = logging.getLogger(__name__)

DB_FILENAME = "store.sqlite3"


class SqliteDocumentStore:
    """SQLite-backed DocumentStore.

    Thread safety:
        A connection is created per operation and an asyncio lock
        serializes operations on one instance.

    Example:
        >>> store = SqliteDocumentStore("/tmp/backups/2024-01-01T00_00_00---ab12")
        >>> await store.open()
        >>> await store.put("users/a", {"id": "a", "collectionName": "users", "payload": {}})
        '1-5f0c...'
    """

    def __init__(self, location: str | Path, config: StoreConfig | None = None) -> None:
        """Initialize the store.

        Args:
            location: Store directory
            config: SQLite and index settings
        """
        self.config = config or StoreConfig()
        self._location = Path(location)
        self._opened = False
        self._closed = False
        self._lock = asyncio.Lock()

    @property
    def location(self) -> str:
        return str(self._location)

    @property
    def db_path(self) -> Path:
        return self._location / DB_FILENAME

    @property
    def is_open(self) -> bool:
        return self._opened and not self._closed

    @contextmanager
    def _get_connection(self) -> Iterator[sqlite3.Connection]:
        """Open a configured connection to the store file.

        Raises:
            StorageError: If the store is not open or SQLite fails
        """
        if not self.is_open:
            raise StorageError("Store is not open", location=self.location)

        try:
            conn = sqlite3.connect(
                str(self.db_path),
                timeout=self.config.busy_timeout_ms / 1000.0,
                isolation_level=None,
            )
        except sqlite3.Error as e:
            raise StorageError(f"Cannot open store: {e}", location=self.location) from e
        conn.row_factory = sqlite3.Row

        try:
            conn.execute(f"PRAGMA busy_timeout = {int(self.config.busy_timeout_ms)}")
            conn.execute(f"PRAGMA cache_size = {int(self.config.cache_size_pages)}")
            if self.config.wal_mode:
                conn.execute("PRAGMA journal_mode = WAL")
            conn.execute("PRAGMA synchronous = NORMAL")
            yield conn
        except sqlite3.Error as e:
            raise StorageError(f"SQLite error: {e}", location=self.location) from e
        finally:
            conn.close()

    def _create_schema(self, conn: sqlite3.Connection) -> None:
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS records (
                key TEXT PRIMARY KEY,
                revision TEXT NOT NULL,
                generation INTEGER NOT NULL,
                collection_name TEXT,
                doc_id TEXT,
                value_json TEXT NOT NULL
            );
        """)
        if self.config.index_collection_name:
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_records_collection "
                "ON records(collection_name, doc_id)"
            )

    async def open(self) -> None:
        """Create the store directory and schema if missing."""
        async with self._lock:
            try:
                self._location.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise StorageError(
                    f"Cannot create store directory: {e}", location=self.location
                ) from e
            self._opened = True
            self._closed = False
            with self._get_connection() as conn:
                self._create_schema(conn)
        logger.debug("Store opened", extra={"location": self.location})

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> StoreRecord:
        return StoreRecord(
            id=row["key"],
            revision=row["revision"],
            value=json.loads(row["value_json"]),
        )

    async def get(self, id: str) -> RecordValue | None:
        record = await self.get_record(id)
        return record.value if record else None

    async def get_record(self, id: str) -> StoreRecord | None:
        async with self._lock:
            with self._get_connection() as conn:
                row = conn.execute(
                    "SELECT key, revision, value_json FROM records WHERE key = ?",
                    (id,),
                ).fetchone()
        return self._row_to_record(row) if row else None

    async def get_or_raise(self, id: str) -> RecordValue:
        value = await self.get(id)
        if value is None:
            raise NotFoundError(f"Record not found: {id}", resource_type="record", resource_id=id)
        return value

    async def put(self, id: str, value: RecordValue) -> str:
        revisions = await self.bulk_put([id], [value])
        return revisions[0]

    async def bulk_put(self, ids: Sequence[str], values: Sequence[RecordValue]) -> list[str]:
        """Insert or update many values in one transaction.

        Current revisions are read with a single listing. Ids whose row
        changed after the listing are skipped and reported as conflicts
        once the remaining writes have been committed.
        """
        if len(ids) != len(values):
            raise ArgumentError(
                "ids and values must have the same length",
                ids=len(ids),
                values=len(values),
            )
        if not ids:
            return []

        conflicts: list[str] = []
        revisions: list[str] = []

        async with self._lock:
            with self._get_connection() as conn:
                rows = conn.execute(
                    "SELECT key, revision, generation FROM records "
                    "WHERE key IN (SELECT value FROM json_each(?))",
                    (json.dumps(list(ids)),),
                ).fetchall()
                current: dict[str, tuple[str, int]] = {
                    row["key"]: (row["revision"], row["generation"]) for row in rows
                }

                conn.execute("BEGIN IMMEDIATE")
                try:
                    for id, value in zip(ids, values):
                        revision = self._write_one(conn, id, value, current.get(id))
                        if revision is None:
                            conflicts.append(id)
                            continue
                        current[id] = (revision, int(revision.split("-", 1)[0]))
                        revisions.append(revision)
                    conn.execute("COMMIT")
                except Exception:
                    conn.execute("ROLLBACK")
                    raise

        if conflicts:
            logger.warning(
                "Revision conflicts during bulk write",
                extra={"location": self.location, "conflicts": len(conflicts)},
            )
            raise StorageError(
                f"{len(conflicts)} record(s) changed during write",
                location=self.location,
                conflicts=conflicts,
            )
        return revisions

    def _write_one(
        self,
        conn: sqlite3.Connection,
        id: str,
        value: RecordValue,
        observed: tuple[str, int] | None,
    ) -> str | None:
        """Write one row. Returns the new revision, or None on conflict."""
        collection_name, doc_id = index_fields(value)
        value_json = json.dumps(value)

        if observed is not None:
            old_revision, generation = observed
            revision = new_revision(generation + 1)
            cursor = conn.execute(
                """
                UPDATE records
                SET revision = ?, generation = ?, collection_name = ?, doc_id = ?, value_json = ?
                WHERE key = ? AND revision = ?
                """,
                (revision, generation + 1, collection_name, doc_id, value_json, id, old_revision),
            )
            return revision if cursor.rowcount == 1 else None

        revision = new_revision(1)
        try:
            conn.execute(
                """
                INSERT INTO records (key, revision, generation, collection_name, doc_id, value_json)
                VALUES (?, ?, 1, ?, ?, ?)
                """,
                (id, revision, collection_name, doc_id, value_json),
            )
        except sqlite3.IntegrityError:
            return None
        return revision

    async def remove(self, id: str) -> bool:
        async with self._lock:
            with self._get_connection() as conn:
                cursor = conn.execute("DELETE FROM records WHERE key = ?", (id,))
                return cursor.rowcount > 0

    async def count(self) -> int:
        async with self._lock:
            with self._get_connection() as conn:
                row = conn.execute("SELECT COUNT(*) AS n FROM records").fetchone()
        return int(row["n"])

    async def _all_rows(self) -> list[StoreRecord]:
        async with self._lock:
            with self._get_connection() as conn:
                rows = conn.execute(
                    "SELECT key, revision, value_json FROM records ORDER BY key"
                ).fetchall()
        return [self._row_to_record(row) for row in rows]

    async def all(self) -> list[RecordValue]:
        return [record.value for record in await self._all_rows()]

    async def all_with_ids(self) -> AllWithIds:
        records = await self._all_rows()
        return AllWithIds(
            ids=[record.id for record in records],
            values=[record.value for record in records],
        )

    async def all_mapped_to_id(self) -> dict[str, RecordValue]:
        return {record.id: record.value for record in await self._all_rows()}

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
        async with self._lock:
            with self._get_connection() as conn:
                rows = conn.execute(
                    """
                    SELECT value_json FROM records
                    WHERE collection_name = ?
                    ORDER BY doc_id
                    LIMIT ? OFFSET ?
                    """,
                    (collection_name, limit, offset),
                ).fetchall()
        return [Document.from_dict(json.loads(row["value_json"])) for row in rows]

    async def close(self) -> None:
        """Checkpoint the WAL into the main file and mark the store closed."""
        if not self.is_open:
            self._closed = True
            return
        async with self._lock:
            with self._get_connection() as conn:
                if self.config.wal_mode:
                    conn.execute("PRAGMA wal_checkpoint(TRUNCATE)")
            self._closed = True
        logger.debug("Store closed", extra={"location": self.location})

    async def destroy(self) -> None:
        """Remove the store directory and everything in it."""
        async with self._lock:
            self._opened = False
            try:
                if self._location.exists():
                    shutil.rmtree(self._location)
            except OSError as e:
                raise StorageError(f"Cannot destroy store: {e}", location=self.location) from e
        logger.debug("Store destroyed", extra={"location": self.location})

    async def recreate(self) -> None:
        await self.destroy()
        # Teardown must finish before the same location is reopened
        await asyncio.sleep(self.config.recreate_yield_ms / 1000.0)
        await self.open()

    def __repr__(self) -> str:
        return f"SqliteDocumentStore(location={self.location!r}, open={self.is_open})"
