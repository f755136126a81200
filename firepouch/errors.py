"""
Error types for Firepouch.

This module defines every exception raised by the package:
- FirepouchError: Base exception
- ConfigurationError: Missing credentials or remote handle, invalid settings
- ArgumentError: Invalid call arguments (e.g. mismatched bulk ids/values)
- NotFoundError: Missing record, archive, blob or backup metadata
- RemoteError: Remote fetch/write/auth/quota failure
- StorageError: Local storage engine failure

Invariants:
    - All errors inherit from FirepouchError
    - Errors carry a stable code and a details dict for debugging
    - Orchestration failures add "collection" and "elapsed_ms" to details
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional


class FirepouchError(Exception):
    """Base exception for all Firepouch errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "FIREPOUCH_ERROR"
        self.details = details or {}

    def add_context(self, **context: Any) -> "FirepouchError":
        """Attach extra context without overwriting existing keys."""
        for key, value in context.items():
            self.details.setdefault(key, value)
        return self

    def __str__(self) -> str:
        context = {k: v for k, v in self.details.items() if v is not None}
        if not context:
            return self.message
        rendered = ", ".join(f"{k}={v}" for k, v in context.items())
        return f"{self.message} ({rendered})"


class ConfigurationError(FirepouchError):
    """Invalid or incomplete configuration.

    Raised when:
    - No remote handle and no credentials were supplied
    - A required setting (bucket, project) is missing
    - A numeric setting is out of range
    """

    def __init__(self, message: str, setting: Optional[str] = None) -> None:
        super().__init__(
            message,
            code="CONFIGURATION_ERROR",
            details={"setting": setting},
        )
        self.setting = setting


class ArgumentError(FirepouchError):
    """Invalid arguments passed to an operation."""

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message, code="ARGUMENT_ERROR", details=details)


class NotFoundError(FirepouchError):
    """Resource not found.

    Raised when:
    - A record id does not exist in a store
    - Restore has neither explicit collections nor valid metadata
    - An archive file or remote blob does not exist
    """

    def __init__(
        self,
        message: str,
        resource_type: str,
        resource_id: Optional[str] = None,
    ) -> None:
        super().__init__(
            message,
            code="NOT_FOUND",
            details={
                "resource_type": resource_type,
                "resource_id": resource_id,
            },
        )
        self.resource_type = resource_type
        self.resource_id = resource_id


class RemoteError(FirepouchError):
    """A remote call failed.

    Raised when:
    - Fetching a page from the remote collection fails
    - A remote batch write is rejected
    - Authentication or quota checks fail
    - A blob upload/download fails
    """

    def __init__(
        self,
        message: str,
        collection: Optional[str] = None,
        operation: Optional[str] = None,
    ) -> None:
        super().__init__(
            message,
            code="REMOTE_ERROR",
            details={"collection": collection, "operation": operation},
        )
        self.collection = collection
        self.operation = operation


class StorageError(FirepouchError):
    """Local storage engine failure.

    Attributes:
        location: Store location involved
        conflicts: Ids rejected because their revision changed mid-write
    """

    def __init__(
        self,
        message: str,
        location: Optional[str] = None,
        conflicts: Optional[List[str]] = None,
    ) -> None:
        super().__init__(
            message,
            code="STORAGE_ERROR",
            details={"location": location, "conflicts": conflicts or None},
        )
        self.location = location
        self.conflicts = conflicts or []
