"""
Unit tests for BackupStore.

Tests cover:
- Metadata set/get and shape validation
- Collection paging helpers
- JSON export layout
"""

import json
import tempfile
from pathlib import Path

import pytest
import pytest_asyncio

from firepouch.errors import ArgumentError
from firepouch.store.backup_store import BackupStore
from firepouch.store.memory import MemoryDocumentStore
from firepouch.types import META_ID, BackupMeta, Document


@pytest_asyncio.fixture
async def backup_store():
    store = MemoryDocumentStore("backup")
    await store.open()
    return BackupStore(store)


def users(*ids):
    return [Document(id=id, collection_name="users", payload={"name": id.upper()}) for id in ids]


class TestMetadata:
    """Tests for BackupStore.meta."""

    @pytest.mark.asyncio
    async def test_missing_metadata_is_none(self, backup_store):
        assert await backup_store.meta.get() is None

    @pytest.mark.asyncio
    async def test_set_then_get(self, backup_store):
        meta = BackupMeta(collection_names=["users", "orders"], created_at_epoch_ms=1700000000000)

        await backup_store.meta.set(meta)

        assert await backup_store.meta.get() == meta
        stored = await backup_store.store.get(META_ID)
        assert stored["collectionNames"] == ["users", "orders"]
        assert stored["createdAtEpochMs"] == 1700000000000

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "value",
        [
            {"collectionNames": ["users"], "createdAtEpochMs": "yesterday"},
            {"collectionNames": ["users", 3], "createdAtEpochMs": 1},
            {"collectionNames": "users", "createdAtEpochMs": 1},
            {"createdAtEpochMs": 1},
            {"collectionNames": ["users"]},
            {"collectionNames": ["users"], "createdAtEpochMs": True},
        ],
    )
    async def test_malformed_metadata_is_none(self, backup_store, value):
        """Invalid shapes read as absent metadata."""
        await backup_store.store.put(META_ID, value)

        assert await backup_store.meta.get() is None

    @pytest.mark.asyncio
    async def test_float_timestamp_accepted(self, backup_store):
        await backup_store.store.put(
            META_ID, {"collectionNames": [], "createdAtEpochMs": 1.5}
        )

        meta = await backup_store.meta.get()

        assert meta is not None
        assert meta.collection_names == []


class TestCollectionPaging:
    """Tests for collection_cursor and for_each_collection_page."""

    @pytest.mark.asyncio
    async def test_put_documents_keys_by_collection(self, backup_store):
        await backup_store.put_documents(users("a"))
        await backup_store.put_documents(
            [Document(id="a", collection_name="orders", payload={"total": 1})]
        )

        assert await backup_store.store.count() == 2
        assert (await backup_store.store.get("users/a"))["payload"] == {"name": "A"}
        assert (await backup_store.store.get("orders/a"))["payload"] == {"total": 1}

    @pytest.mark.asyncio
    async def test_for_each_collection_page(self, backup_store):
        await backup_store.put_documents(users("a", "b", "c", "d", "e"))
        pages = []

        async def record(page):
            pages.append([doc.id for doc in page])

        total = await backup_store.for_each_collection_page("users", 2, record)

        assert total == 5
        assert pages == [["a", "b"], ["c", "d"], ["e"]]

    @pytest.mark.asyncio
    async def test_for_each_collection_page_skips_empty(self, backup_store):
        """An empty collection never invokes the callback."""
        calls = []

        async def record(page):
            calls.append(page)

        total = await backup_store.for_each_collection_page("users", 2, record)

        assert total == 0
        assert calls == []

    @pytest.mark.asyncio
    async def test_for_each_collection_page_exact_multiple(self, backup_store):
        await backup_store.put_documents(users("a", "b", "c", "d"))
        pages = []

        async def record(page):
            pages.append(len(page))

        await backup_store.for_each_collection_page("users", 2, record)

        assert pages == [2, 2]

    @pytest.mark.asyncio
    async def test_invalid_limit(self, backup_store):
        async def record(page):
            pass

        with pytest.raises(ArgumentError):
            await backup_store.for_each_collection_page("users", 0, record)


class TestDumpToJson:
    """Tests for dump_to_json."""

    @pytest.fixture
    def out_dir(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            yield Path(tmpdir)

    @pytest.mark.asyncio
    async def test_dump_groups_by_collection(self, backup_store, out_dir):
        await backup_store.put_documents(users("a", "b"))
        await backup_store.put_documents(
            [Document(id="1", collection_name="orders", payload={"total": 9})]
        )
        await backup_store.meta.set(
            BackupMeta(collection_names=["users", "orders"], created_at_epoch_ms=5)
        )

        path = await backup_store.dump_to_json(out_dir / "dump.json")
        data = json.loads(path.read_text())

        assert set(data) == {"users", "orders", "meta"}
        assert data["users"] == [
            {"id": "a", "collectionName": "users", "payload": {"name": "A"}},
            {"id": "b", "collectionName": "users", "payload": {"name": "B"}},
        ]
        assert data["orders"][0]["payload"] == {"total": 9}
        assert data["meta"] == [
            {"id": META_ID, "collectionNames": ["users", "orders"], "createdAtEpochMs": 5}
        ]

    @pytest.mark.asyncio
    async def test_dump_without_metadata(self, backup_store, out_dir):
        """Incomplete backups are exported without a meta entry."""
        await backup_store.put_documents(users("a"))

        path = await backup_store.dump_to_json(out_dir / "nested" / "dump.json")
        data = json.loads(path.read_text())

        assert "meta" not in data
        assert list(data) == ["users"]
