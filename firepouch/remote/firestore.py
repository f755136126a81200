"""
Google Cloud Firestore remote.

FirestoreRemote implements both RemoteCollectionSource and RemoteBatchSink
on top of google-cloud-firestore's AsyncClient. Pagination uses
order_by("__name__") with start_after on a document reference, which is
the "order by unique id, start after id" contract the cursor needs.

Firestore values that JSON cannot carry (timestamps, geo points, document
references, bytes) are converted by encode_value/decode_value into tagged
dicts so that a backup survives the local store and JSON export.

Invariants:
    - A batch never exceeds MAX_BATCH_WRITES writes
    - google.api_core errors surface as RemoteError with the collection
    - decode_value(encode_value(v)) == v for every supported value

How to change safely:
    - New tags must be added to both encode_value and decode_value
    - Never rename an existing tag; archived backups depend on it
"""

from __future__ import annotations

import base64
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from google.api_core import exceptions as google_exceptions
from google.cloud import firestore
from google.cloud.firestore_v1.base_document import BaseDocumentReference
from google.oauth2 import service_account

from ..config import FirestoreConfig
from ..errors import ArgumentError, ConfigurationError, RemoteError
from ..types import Document, RemoteDocument

logger = logging.getLogger(__name__)

MAX_BATCH_WRITES = 500
TYPE_TAG = "__firepouch_type__"
TOKEN_URI = "https://oauth2.googleapis.com/token"


def encode_value(value: Any) -> Any:
    """Convert a Firestore value into a JSON-safe value."""
    if isinstance(value, datetime):
        return {TYPE_TAG: "timestamp", "value": value.isoformat()}
    if isinstance(value, firestore.GeoPoint):
        return {TYPE_TAG: "geopoint", "latitude": value.latitude, "longitude": value.longitude}
    if isinstance(value, BaseDocumentReference):
        return {TYPE_TAG: "reference", "path": value.path}
    if isinstance(value, (bytes, bytearray)):
        return {TYPE_TAG: "bytes", "value": base64.b64encode(bytes(value)).decode("ascii")}
    if isinstance(value, dict):
        return {key: encode_value(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [encode_value(item) for item in value]
    return value


def decode_value(value: Any, client: Any = None) -> Any:
    """Reverse encode_value.

    Args:
        value: JSON-safe value
        client: Firestore client used to rebuild document references.
            Without one, references decode to their path string.
    """
    if isinstance(value, dict):
        tag = value.get(TYPE_TAG)
        if tag == "timestamp":
            return datetime.fromisoformat(value["value"])
        if tag == "geopoint":
            return firestore.GeoPoint(value["latitude"], value["longitude"])
        if tag == "reference":
            return client.document(value["path"]) if client is not None else value["path"]
        if tag == "bytes":
            return base64.b64decode(value["value"])
        return {key: decode_value(item, client) for key, item in value.items()}
    if isinstance(value, list):
        return [decode_value(item, client) for item in value]
    return value


def build_credentials(config: FirestoreConfig) -> Optional[Any]:
    """Credentials from inline service account fields or a key file.

    Returns None when Application Default Credentials should be used.
    """
    if config.has_inline_credentials:
        info = {
            "type": "service_account",
            "project_id": config.project_id,
            "client_email": config.client_email,
            "private_key": config.private_key,
            "token_uri": TOKEN_URI,
        }
        return service_account.Credentials.from_service_account_info(info)
    if config.credentials_file:
        return service_account.Credentials.from_service_account_file(config.credentials_file)
    return None


class FirestoreRemote:
    """Firestore-backed remote collection store.

    Example:
        >>> remote = FirestoreRemote(FirestoreConfig.from_env())
        >>> await remote.list_collections()
        ['orders', 'users']
    """

    def __init__(
        self,
        config: Optional[FirestoreConfig] = None,
        client: Any = None,
    ) -> None:
        """Initialize the remote.

        Args:
            config: Connection settings, used when client is not given
            client: Pre-built firestore.AsyncClient

        Raises:
            ConfigurationError: If neither a client nor a project is available
        """
        if client is None:
            config = config or FirestoreConfig()
            if not config.project_id:
                raise ConfigurationError(
                    "A Firestore client or project id is required",
                    setting="GOOGLE_CLOUD_PROJECT",
                )
            kwargs: Dict[str, Any] = {"project": config.project_id}
            credentials = build_credentials(config)
            if credentials is not None:
                kwargs["credentials"] = credentials
            if config.database:
                kwargs["database"] = config.database
            client = firestore.AsyncClient(**kwargs)
            logger.info(
                "Firestore client created",
                extra={"project": config.project_id, "database": config.database},
            )
        self.client = client

    async def list_collections(self) -> List[str]:
        try:
            names = [collection.id async for collection in self.client.collections()]
        except google_exceptions.GoogleAPIError as e:
            raise RemoteError(
                f"Failed to list collections: {e}", operation="list_collections"
            ) from e
        return sorted(names)

    async def fetch_documents(
        self,
        collection_name: str,
        limit: int,
        start_after: Optional[str] = None,
    ) -> List[RemoteDocument]:
        collection = self.client.collection(collection_name)
        query = collection.order_by("__name__").limit(limit)
        if start_after is not None:
            query = query.start_after({"__name__": collection.document(start_after)})

        try:
            return [
                RemoteDocument(id=snapshot.id, data=encode_value(snapshot.to_dict() or {}))
                async for snapshot in query.stream()
            ]
        except google_exceptions.GoogleAPIError as e:
            raise RemoteError(
                f"Failed to fetch documents from {collection_name}: {e}",
                collection=collection_name,
                operation="fetch_documents",
            ) from e

    async def write_batch(
        self,
        collection_name: str,
        documents: Sequence[Document],
    ) -> None:
        if len(documents) > MAX_BATCH_WRITES:
            raise ArgumentError(
                f"Firestore batches are limited to {MAX_BATCH_WRITES} writes",
                collection=collection_name,
                size=len(documents),
            )
        if not documents:
            return

        collection = self.client.collection(collection_name)
        batch = self.client.batch()
        for doc in documents:
            batch.set(collection.document(doc.id), decode_value(doc.payload, self.client))

        try:
            await batch.commit()
        except google_exceptions.GoogleAPIError as e:
            raise RemoteError(
                f"Batch write to {collection_name} failed: {e}",
                collection=collection_name,
                operation="write_batch",
            ) from e
        logger.debug(
            "Batch committed",
            extra={"collection": collection_name, "documents": len(documents)},
        )
