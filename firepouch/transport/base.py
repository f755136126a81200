"""
BlobTransport protocol.

Moves a single local file to and from a remote blob store under a key.

Invariants:
    - upload() returns only after the remote store acknowledged the object
    - download() of a missing key raises NotFoundError and leaves no file
"""

from __future__ import annotations

from abc import abstractmethod
from pathlib import Path
from typing import Protocol, runtime_checkable


@runtime_checkable
class BlobTransport(Protocol):
    """Upload/download of whole files."""

    @abstractmethod
    async def upload(self, local_file: str | Path, remote_key: str) -> str:
        """Upload local_file. Returns the full remote key.

        Raises:
            NotFoundError: If local_file does not exist
            RemoteError: If the upload fails
        """
        ...

    @abstractmethod
    async def download(self, remote_key: str, local_file: str | Path) -> Path:
        """Download remote_key into local_file.

        Raises:
            NotFoundError: If the key does not exist
            RemoteError: If the download fails
        """
        ...
