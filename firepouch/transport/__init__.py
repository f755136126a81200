"""
Blob transports for moving backup archives off the machine.

- BlobTransport: protocol
- S3Transport: S3 / MinIO via aiobotocore (firepouch.transport.s3)
- InMemoryBlobTransport: dict-backed transport for tests
"""

from .base import BlobTransport
from .memory import InMemoryBlobTransport

__all__ = ["BlobTransport", "InMemoryBlobTransport"]
