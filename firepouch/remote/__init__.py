"""
Remote document collections.

- RemoteCollectionSource / RemoteBatchSink: protocols
- RemoteCollectionCursor: stateless id-ordered pagination
- InMemoryRemote: dict-backed remote for tests
- FirestoreRemote: Google Cloud Firestore (firepouch.remote.firestore)
"""

from .base import RemoteBatchSink, RemoteCollectionSource
from .cursor import RemoteCollectionCursor
from .memory import InMemoryRemote

__all__ = [
    "InMemoryRemote",
    "RemoteBatchSink",
    "RemoteCollectionCursor",
    "RemoteCollectionSource",
]
