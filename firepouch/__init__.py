"""
Firepouch - point-in-time backups of remote document collections.

Copies every document of a remote collection store (Google Cloud
Firestore) into a local revisioned SQLite store, and writes such a
backup back to a remote. Backups can be zipped and shipped to S3.

    ┌───────────┐   pages   ┌──────────────┐  zip   ┌──────────┐
    │ Firestore │──────────▶│ BackupStore  │───────▶│ S3 / file│
    │ (remote)  │◀──────────│ (SQLite dir) │◀───────│ archive  │
    └───────────┘  batches  └──────────────┘ unzip  └──────────┘

Invariants:
    - One operation owns its store; collections are processed sequentially
    - A backup is complete only once its metadata has been written
    - Restores write only documents present in the backup

How to change safely:
    - Keep the store layout and archive format readable by older versions
    - Keep env variable names and CLI flags stable
"""

from ._version import __version__
from .errors import (
    ArgumentError,
    ConfigurationError,
    FirepouchError,
    NotFoundError,
    RemoteError,
    StorageError,
)
from .service import Firepouch
from .types import BackupMeta, Document, Page

__all__ = [
    "__version__",
    "ArgumentError",
    "BackupMeta",
    "ConfigurationError",
    "Document",
    "Firepouch",
    "FirepouchError",
    "NotFoundError",
    "Page",
    "RemoteError",
    "StorageError",
]
