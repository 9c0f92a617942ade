from __future__ import annotations

from pathlib import Path


class StoreError(Exception):
    """Base class for every error the record store reports."""


class NotFound(StoreError):
    def __init__(self, collection: str, entity_id: str):
        super().__init__(f"{collection}: no entity with id {entity_id!r}")
        self.collection = collection
        self.entity_id = entity_id


class Conflict(StoreError):
    """A unique field (e.g. email) already holds this value in the collection."""

    def __init__(self, collection: str, field: str, value):
        super().__init__(f"{collection}: {field} {value!r} already exists")
        self.collection = collection
        self.field = field
        self.value = value


class CorruptDocument(StoreError):
    """The bytes on disk are not a valid document.

    Raised by the codec only; the backend absorbs it into an empty document.
    """

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class IOFailure(StoreError):
    """A filesystem operation failed (permissions, disk full, path removed)."""

    def __init__(self, path: Path | str, operation: str, detail: str = ""):
        message = f"{operation} failed for {path}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.path = Path(path)
        self.operation = operation
