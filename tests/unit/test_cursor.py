"""
Unit tests for remote collection pagination.

Tests cover:
- Page boundaries and continuation tokens
- Terminating empty page delivery
- Batch size validation
- Error wrapping
- Sequential fold
"""

import pytest

from firepouch.backup.chain import fold_sequential
from firepouch.errors import ArgumentError, RemoteError
from firepouch.remote.cursor import RemoteCollectionCursor
from firepouch.remote.memory import InMemoryRemote


def make_remote(count, name="users"):
    return InMemoryRemote({name: {f"doc{i:03d}": {"n": i} for i in range(count)}})


class TestFetchPage:
    """Tests for RemoteCollectionCursor.fetch_page."""

    @pytest.mark.asyncio
    async def test_first_page_ordered_by_id(self):
        """First page holds the lowest ids in order."""
        remote = InMemoryRemote({"users": {"c": {}, "a": {}, "b": {}}})
        cursor = RemoteCollectionCursor(remote)

        page = await cursor.fetch_page("users", 2)

        assert [doc.id for doc in page.items] == ["a", "b"]
        assert page.continuation == "b"
        assert all(doc.collection_name == "users" for doc in page.items)

    @pytest.mark.asyncio
    async def test_continuation_is_exclusive(self):
        """Next page starts strictly after the continuation id."""
        remote = InMemoryRemote({"users": {"a": {}, "b": {}, "c": {}}})
        cursor = RemoteCollectionCursor(remote)

        page = await cursor.fetch_page("users", 2, after_id="b")

        assert [doc.id for doc in page.items] == ["c"]
        assert page.continuation == "c"

    @pytest.mark.asyncio
    async def test_empty_page_has_no_continuation(self):
        """An exhausted collection yields an empty final page."""
        cursor = RemoteCollectionCursor(make_remote(0))

        page = await cursor.fetch_page("users", 10)

        assert page.items == []
        assert page.continuation is None
        assert page.is_last

    @pytest.mark.asyncio
    @pytest.mark.parametrize("batch_size", [0, -1, 2.5, True])
    async def test_invalid_batch_size(self, batch_size):
        """Non-positive or non-integer batch sizes are rejected."""
        cursor = RemoteCollectionCursor(make_remote(3))

        with pytest.raises(ArgumentError):
            await cursor.fetch_page("users", batch_size)

    @pytest.mark.asyncio
    async def test_foreign_errors_wrapped(self):
        """Source exceptions surface as RemoteError with the collection."""
        remote = make_remote(3)
        remote.fail_fetch("users", ConnectionError("network down"))
        cursor = RemoteCollectionCursor(remote)

        with pytest.raises(RemoteError) as exc_info:
            await cursor.fetch_page("users", 2)

        assert exc_info.value.collection == "users"
        assert "network down" in str(exc_info.value)


class TestForEachPage:
    """Tests for RemoteCollectionCursor.for_each_page."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "count,batch_size,expected_sizes",
        [
            (3, 2, [2, 1, 0]),
            (4, 2, [2, 2, 0]),
            (0, 5, [0]),
            (1, 1, [1, 0]),
        ],
    )
    async def test_page_sizes(self, count, batch_size, expected_sizes):
        """Visits ceil(N/B) pages plus one empty terminating page."""
        cursor = RemoteCollectionCursor(make_remote(count))
        sizes = []

        async def record(items):
            sizes.append(len(items))

        total = await cursor.for_each_page("users", batch_size, record)

        assert sizes == expected_sizes
        assert total == count

    @pytest.mark.asyncio
    async def test_pages_are_disjoint_and_complete(self):
        """Every document is delivered exactly once, in id order."""
        cursor = RemoteCollectionCursor(make_remote(7))
        seen = []

        async def record(items):
            seen.extend(doc.id for doc in items)

        await cursor.for_each_page("users", 3, record)

        assert seen == [f"doc{i:03d}" for i in range(7)]

    @pytest.mark.asyncio
    async def test_handler_error_stops_iteration(self):
        """An error in per_page propagates and no further page is fetched."""
        remote = make_remote(5)
        cursor = RemoteCollectionCursor(remote)

        async def fail(items):
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            await cursor.for_each_page("users", 2, fail)

        assert len(remote.fetch_calls) == 1


class TestFoldSequential:
    """Tests for fold_sequential."""

    @pytest.mark.asyncio
    async def test_accumulates_in_order(self):
        order = []

        async def step(acc, item):
            order.append(item)
            return acc + [item * 2]

        result = await fold_sequential([1, 2, 3], step, [])

        assert result == [2, 4, 6]
        assert order == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_fail_fast(self):
        """First failure stops the fold."""
        visited = []

        async def step(acc, item):
            visited.append(item)
            if item == "b":
                raise ValueError(item)
            return acc

        with pytest.raises(ValueError):
            await fold_sequential(["a", "b", "c"], step, None)

        assert visited == ["a", "b"]
