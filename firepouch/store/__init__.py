"""
Local document stores.

- DocumentStore: protocol shared by every store
- SqliteDocumentStore: persistent store in a directory
- MemoryDocumentStore: in-memory store
- BackupStore: metadata, collection paging and JSON export on top of a store
"""

from .backup_store import BackupStore, MetadataFacade
from .base import AllWithIds, DocumentStore, StoreRecord
from .memory import MemoryDocumentStore
from .sqlite_store import SqliteDocumentStore

__all__ = [
    "AllWithIds",
    "BackupStore",
    "DocumentStore",
    "MemoryDocumentStore",
    "MetadataFacade",
    "SqliteDocumentStore",
    "StoreRecord",
]
