"""Exceptions raised by the catalog synchronisation core."""

from __future__ import annotations


class CatalogError(Exception):
    """Base class for catalog synchronisation failures."""


class SyncValidationError(CatalogError, ValueError):
    """Raised when a sync request is missing or carries invalid input."""


class ItemConflictError(CatalogError):
    """Raised when adding an external id that is already stored."""

    def __init__(self, external_id: int, existing_id: int):
        super().__init__(f"Media item with external id {external_id} already exists")
        self.external_id = external_id
        self.existing_id = existing_id


class ItemNotFoundError(CatalogError, LookupError):
    """Raised when a stored media item cannot be located."""


class FatalFetchError(CatalogError):
    """Raised when a required provider fetch (detail or images) fails."""

    def __init__(self, resource: str, external_id: int, reason: str):
        super().__init__(f"Failed to fetch {resource} for {external_id}: {reason}")
        self.resource = resource
        self.external_id = external_id
        self.reason = reason


class PersistenceError(CatalogError):
    """Raised when the store rejects a write for the current item."""
