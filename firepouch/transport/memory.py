"""In-memory BlobTransport for testing."""

from __future__ import annotations

import logging
from pathlib import Path

from ..errors import NotFoundError, RemoteError

logger = logging.getLogger(__name__)


class InMemoryBlobTransport:
    """Keeps uploaded blobs in a dict keyed by remote key.

    Example:
        >>> transport = InMemoryBlobTransport()
        >>> await transport.upload("backup.zip", "backups/backup.zip")
        'backups/backup.zip'
    """

    def __init__(self, prefix: str = "") -> None:
        self.prefix = prefix
        self.blobs: dict[str, bytes] = {}
        self.fail_next: Exception | None = None

    def full_key(self, remote_key: str) -> str:
        if not self.prefix:
            return remote_key
        return f"{self.prefix.rstrip('/')}/{remote_key.lstrip('/')}"

    def _raise_injected(self) -> None:
        if self.fail_next is not None:
            error, self.fail_next = self.fail_next, None
            raise error

    async def upload(self, local_file: str | Path, remote_key: str) -> str:
        self._raise_injected()
        path = Path(local_file)
        if not path.is_file():
            raise NotFoundError(
                f"File to upload not found: {path}", resource_type="file", resource_id=str(path)
            )
        key = self.full_key(remote_key)
        self.blobs[key] = path.read_bytes()
        logger.debug("Blob stored", extra={"key": key, "size_bytes": len(self.blobs[key])})
        return key

    async def download(self, remote_key: str, local_file: str | Path) -> Path:
        self._raise_injected()
        key = self.full_key(remote_key)
        if key not in self.blobs:
            raise NotFoundError(f"Blob not found: {key}", resource_type="blob", resource_id=key)
        path = Path(local_file)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(self.blobs[key])
        except OSError as e:
            raise RemoteError(f"Cannot write {path}: {e}", operation="download") from e
        return path
