"""
Zip packing and unpacking of backup store directories.

Archives hold the contents of the store directory with paths relative
to it, so an archive unpacked anywhere is directly a store location.

Invariants:
    - Packing is deterministic: sorted entries, fixed timestamps, fixed modes
    - Unpacking never writes outside the destination directory
    - unpack_archive without dest returns a new caller-owned temp directory,
      and removes it again when extraction fails
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
import zipfile
from pathlib import Path

from ..errors import ArgumentError, NotFoundError, StorageError

logger = logging.getLogger(__name__)

FIXED_DATE_TIME = (1980, 1, 1, 0, 0, 0)
FILE_MODE = 0o644 << 16
DIR_MODE = (0o40755 << 16) | 0x10
TEMP_PREFIX = "firepouch-"


def pack_directory(
    directory: str | Path,
    dest: str | Path | None = None,
    compression_level: int = 6,
) -> Path:
    """Zip a directory tree.

    Args:
        directory: Directory to pack
        dest: Archive path, defaults to "<directory>.zip"
        compression_level: Deflate level 0-9

    Returns:
        Path of the written archive

    Raises:
        NotFoundError: If directory does not exist
        ArgumentError: If compression_level is out of range
    """
    source = Path(directory)
    if not source.is_dir():
        raise NotFoundError(
            f"Directory to pack not found: {source}",
            resource_type="directory",
            resource_id=str(source),
        )
    if not 0 <= compression_level <= 9:
        raise ArgumentError(
            f"compression_level must be 0-9, got {compression_level}",
            compression_level=compression_level,
        )

    archive_path = Path(dest) if dest is not None else source.with_name(source.name + ".zip")
    archive_path.parent.mkdir(parents=True, exist_ok=True)

    entries = 0
    try:
        with zipfile.ZipFile(archive_path, "w", compression=zipfile.ZIP_DEFLATED) as zipf:
            for root, dirs, files in os.walk(source):
                dirs.sort()
                root_path = Path(root)
                rel_root = root_path.relative_to(source)
                if rel_root != Path(".") and not files and not dirs:
                    info = zipfile.ZipInfo(rel_root.as_posix() + "/", date_time=FIXED_DATE_TIME)
                    info.external_attr = DIR_MODE
                    zipf.writestr(info, b"")
                for name in sorted(files):
                    file_path = root_path / name
                    info = zipfile.ZipInfo(
                        file_path.relative_to(source).as_posix(), date_time=FIXED_DATE_TIME
                    )
                    info.external_attr = FILE_MODE
                    zipf.writestr(
                        info,
                        file_path.read_bytes(),
                        compress_type=zipf.compression,
                        compresslevel=compression_level,
                    )
                    entries += 1
    except OSError as e:
        raise StorageError(f"Failed to pack {source}: {e}", location=str(archive_path)) from e

    logger.info(
        "Directory packed",
        extra={
            "directory": str(source),
            "archive": str(archive_path),
            "files": entries,
            "size_bytes": archive_path.stat().st_size,
        },
    )
    return archive_path


def unpack_archive(
    archive_path: str | Path,
    dest: str | Path | None = None,
) -> Path:
    """Extract an archive.

    Args:
        archive_path: Zip file to extract
        dest: Target directory; a fresh temp directory when omitted

    Returns:
        Directory the archive was extracted into

    Raises:
        NotFoundError: If the archive does not exist
        StorageError: If the archive is corrupt or escapes the destination
    """
    source = Path(archive_path)
    if not source.is_file():
        raise NotFoundError(
            f"Archive not found: {source}",
            resource_type="archive",
            resource_id=str(source),
        )

    owns_target = dest is None
    target = Path(tempfile.mkdtemp(prefix=TEMP_PREFIX)) if owns_target else Path(dest)

    try:
        target.mkdir(parents=True, exist_ok=True)
        _extract_into(source, target.resolve())
    except Exception:
        if owns_target:
            shutil.rmtree(target, ignore_errors=True)
        raise

    logger.info(
        "Archive unpacked",
        extra={"archive": str(source), "directory": str(target)},
    )
    return target


def _extract_into(source: Path, target_root: Path) -> None:
    try:
        with zipfile.ZipFile(source, "r") as zipf:
            for member in zipf.namelist():
                member_path = (target_root / member).resolve()
                if member_path != target_root and target_root not in member_path.parents:
                    raise StorageError(
                        f"Archive entry escapes destination: {member}",
                        location=str(source),
                    )
            zipf.extractall(target_root)
    except zipfile.BadZipFile as e:
        raise StorageError(f"Corrupt archive {source}: {e}", location=str(source)) from e
    except OSError as e:
        raise StorageError(f"Failed to unpack {source}: {e}", location=str(source)) from e
