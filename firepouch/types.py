"""
Core data types shared by the cursor, the stores and the orchestrators.

Document:
    One remote record tagged with the collection it came from. Stored
    once per (collection_name, id) under the key "<collection>/<id>".

Page:
    A bounded slice of a collection plus the continuation token for the
    next fetch. An empty page carries no continuation and ends the cursor.

BackupMeta:
    Singleton describing a completed backup. Persisted with camelCase keys
    (collectionNames, createdAtEpochMs) under META_ID.

Invariants:
    - Document ids are unique per collection within one store
    - Page.continuation is the id of the last item, or None when empty
    - A store without a valid BackupMeta is an incomplete backup
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StrictFloat, StrictInt, StrictStr

META_ID = "firepouch-meta"


def document_key(collection_name: str, doc_id: str) -> str:
    """Store key for a document."""
    return f"{collection_name}/{doc_id}"


@dataclass(frozen=True)
class RemoteDocument:
    """A document as returned by a remote source (id plus raw data)."""

    id: str
    data: Dict[str, Any]


@dataclass
class Document:
    """A remote document tagged with its origin collection.

    Attributes:
        id: Document id, unique within collection_name
        collection_name: Name of the remote collection
        payload: Opaque key/value map of document fields
    """

    id: str
    collection_name: str
    payload: Dict[str, Any] = field(default_factory=dict)

    @property
    def key(self) -> str:
        return document_key(self.collection_name, self.id)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the persisted/exported representation."""
        return {
            "id": self.id,
            "collectionName": self.collection_name,
            "payload": self.payload,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Document:
        """Create from the persisted/exported representation."""
        return cls(
            id=data["id"],
            collection_name=data["collectionName"],
            payload=dict(data.get("payload") or {}),
        )

    @staticmethod
    def is_document(data: Any) -> bool:
        return (
            isinstance(data, Mapping)
            and isinstance(data.get("id"), str)
            and isinstance(data.get("collectionName"), str)
        )


@dataclass
class Page:
    """One page of a paginated collection read."""

    items: List[Document]
    continuation: Optional[str] = None

    @property
    def is_last(self) -> bool:
        return self.continuation is None

    def __len__(self) -> int:
        return len(self.items)


class BackupMeta(BaseModel):
    """Metadata recorded once a backup has fully completed."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    collection_names: List[StrictStr] = Field(alias="collectionNames")
    created_at_epoch_ms: Union[StrictInt, StrictFloat] = Field(alias="createdAtEpochMs")

    def to_dict(self) -> Dict[str, Any]:
        data = self.model_dump(by_alias=True)
        data["id"] = META_ID
        return data
