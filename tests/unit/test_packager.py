"""
Unit tests for archive packing.

Tests cover:
- pack -> unpack reproduces the file set
- Deterministic output
- Default destinations
- Missing inputs and path traversal
"""

import os
import shutil
import tempfile
import zipfile
from pathlib import Path

import pytest

from firepouch.archive.packager import TEMP_PREFIX, pack_directory, unpack_archive
from firepouch.errors import ArgumentError, NotFoundError, StorageError


def files_in(directory):
    root = Path(directory)
    return {
        path.relative_to(root).as_posix(): path.read_bytes()
        for path in root.rglob("*")
        if path.is_file()
    }


class TestPackager:
    """Tests for pack_directory and unpack_archive."""

    @pytest.fixture
    def work_dir(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            yield Path(tmpdir)

    @pytest.fixture
    def source(self, work_dir):
        source = work_dir / "my-backup"
        (source / "nested" / "deeper").mkdir(parents=True)
        (source / "store.sqlite3").write_bytes(os.urandom(4096))
        (source / "notes.txt").write_text("hello")
        (source / "nested" / "deeper" / "data.bin").write_bytes(b"\x00\x01" * 100)
        return source

    def test_round_trip(self, source, work_dir):
        """Unpacking a packed directory yields identical files."""
        archive = pack_directory(source, work_dir / "out.zip")
        target = unpack_archive(archive, work_dir / "restored")

        assert files_in(target) == files_in(source)

    def test_default_destination(self, source):
        archive = pack_directory(source)

        assert archive == source.with_name("my-backup.zip")
        assert archive.is_file()

    def test_paths_are_relative(self, source, work_dir):
        archive = pack_directory(source, work_dir / "out.zip")

        with zipfile.ZipFile(archive) as zipf:
            names = zipf.namelist()

        assert "store.sqlite3" in names
        assert "nested/deeper/data.bin" in names
        assert not any(name.startswith("/") or "my-backup" in name for name in names)

    def test_deterministic(self, source, work_dir):
        """Packing the same tree twice yields identical bytes."""
        first = pack_directory(source, work_dir / "a.zip")
        second = pack_directory(source, work_dir / "b.zip")

        assert first.read_bytes() == second.read_bytes()

    def test_compression_level_bounds(self, source, work_dir):
        with pytest.raises(ArgumentError):
            pack_directory(source, work_dir / "x.zip", compression_level=10)

    def test_store_level_still_round_trips(self, source, work_dir):
        archive = pack_directory(source, work_dir / "stored.zip", compression_level=0)
        target = unpack_archive(archive, work_dir / "restored")

        assert files_in(target) == files_in(source)

    def test_pack_missing_directory(self, work_dir):
        with pytest.raises(NotFoundError):
            pack_directory(work_dir / "absent")

    def test_unpack_to_fresh_temp_dir(self, source, work_dir):
        archive = pack_directory(source, work_dir / "out.zip")

        first = unpack_archive(archive)
        second = unpack_archive(archive)
        try:
            assert first != second
            assert files_in(first) == files_in(source)
        finally:
            shutil.rmtree(first)
            shutil.rmtree(second)

    def test_unpack_missing_archive(self, work_dir):
        with pytest.raises(NotFoundError):
            unpack_archive(work_dir / "absent.zip")

    def test_unpack_rejects_traversal(self, work_dir):
        """Entries escaping the destination are refused."""
        archive = work_dir / "evil.zip"
        with zipfile.ZipFile(archive, "w") as zipf:
            zipf.writestr("../escaped.txt", "nope")

        with pytest.raises(StorageError):
            unpack_archive(archive, work_dir / "target")

        assert not (work_dir / "escaped.txt").exists()

    def test_unpack_corrupt_archive(self, work_dir):
        archive = work_dir / "broken.zip"
        archive.write_bytes(b"not a zip")

        with pytest.raises(StorageError):
            unpack_archive(archive, work_dir / "target")

    @pytest.mark.parametrize("bad_entry", [None, "../escaped.txt"])
    def test_failed_unpack_removes_own_temp_dir(self, work_dir, monkeypatch, bad_entry):
        """A temp directory allocated for extraction does not outlive a failure."""
        scratch = work_dir / "scratch"
        scratch.mkdir()
        monkeypatch.setattr(tempfile, "tempdir", str(scratch))

        archive = work_dir / "bad.zip"
        if bad_entry is None:
            archive.write_bytes(b"not a zip")
        else:
            with zipfile.ZipFile(archive, "w") as zipf:
                zipf.writestr(bad_entry, "nope")

        with pytest.raises(StorageError):
            unpack_archive(archive)

        assert not list(scratch.glob(f"{TEMP_PREFIX}*"))

    def test_failed_unpack_keeps_caller_dest(self, work_dir):
        archive = work_dir / "broken.zip"
        archive.write_bytes(b"not a zip")
        target = work_dir / "target"

        with pytest.raises(StorageError):
            unpack_archive(archive, target)

        assert target.is_dir()
