"""
Abstract Storage Interface

The ledger talks to storage only through a document-per-entity contract:
each record is a flat dict of JSON-compatible fields, keyed by
(collection, id). This allows us to:
1. Swap the backing database without touching ledger rules
2. Use in-memory storage for testing

The interface is intentionally small - no query language, no foreign keys.
Multi-step changes go through batch(), which must be all-or-nothing.
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, model_validator

from pocketledger.models.audit import AuditEvent


class BatchOpType(str, Enum):
    """Kinds of write a batch can contain."""
    PUT = "put"
    UPDATE = "update"
    INCREMENT = "increment"
    DELETE = "delete"


class BatchOperation(BaseModel):
    """
    One write inside an atomic batch.

    Build these with the put/update/increment/delete constructors.
    """

    op: BatchOpType
    collection: str = Field(..., min_length=1)
    doc_id: str = Field(..., min_length=1)
    fields: dict[str, Any] = Field(default_factory=dict)
    field: Optional[str] = None
    amount: Optional[Decimal] = None

    @model_validator(mode='after')
    def validate_shape(self) -> 'BatchOperation':
        if self.op == BatchOpType.INCREMENT and (self.field is None or self.amount is None):
            raise ValueError("Increment needs a field and an amount")
        return self

    @classmethod
    def put(cls, collection: str, doc_id: str, fields: dict[str, Any]) -> 'BatchOperation':
        return cls(op=BatchOpType.PUT, collection=collection, doc_id=doc_id, fields=fields)

    @classmethod
    def update(cls, collection: str, doc_id: str, fields: dict[str, Any]) -> 'BatchOperation':
        return cls(op=BatchOpType.UPDATE, collection=collection, doc_id=doc_id, fields=fields)

    @classmethod
    def increment(
        cls,
        collection: str,
        doc_id: str,
        field: str,
        amount: Decimal,
    ) -> 'BatchOperation':
        return cls(
            op=BatchOpType.INCREMENT,
            collection=collection,
            doc_id=doc_id,
            field=field,
            amount=amount,
        )

    @classmethod
    def delete(cls, collection: str, doc_id: str) -> 'BatchOperation':
        return cls(op=BatchOpType.DELETE, collection=collection, doc_id=doc_id)


class DocumentStoreInterface(ABC):
    """
    Abstract interface for document storage.

    Any storage implementation (in-memory, SQLite, a hosted document
    database) must implement these methods. Documents always carry an
    "owner_id" field.
    """

    @abstractmethod
    async def put(self, collection: str, doc_id: str, fields: dict[str, Any]) -> None:
        """
        Create or replace a document.

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def get(self, collection: str, doc_id: str) -> Optional[dict[str, Any]]:
        """
        Retrieve a document by ID.

        Returns:
            A copy of the document fields if found, None otherwise
        """
        pass

    @abstractmethod
    async def query_by_owner(
        self,
        collection: str,
        owner_id: str,
        filters: Optional[dict[str, Any]] = None,
    ) -> list[dict[str, Any]]:
        """
        List an owner's documents in a collection.

        Args:
            collection: Collection to read
            owner_id: Only documents with this owner_id are returned
            filters: Extra field == value conditions, all of which must hold

        Returns:
            Copies of the matching documents
        """
        pass

    @abstractmethod
    async def update(self, collection: str, doc_id: str, fields: dict[str, Any]) -> None:
        """
        Merge fields into an existing document.

        Raises:
            NotFoundError: If the document doesn't exist
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def delete(self, collection: str, doc_id: str) -> bool:
        """
        Delete a document.

        Returns:
            True if a document was deleted, False if there was none
        """
        pass

    @abstractmethod
    async def batch(self, operations: list[BatchOperation]) -> None:
        """
        Apply all operations atomically, in order.

        Either every operation is applied or none is. Update and
        increment of a missing document abort the batch with
        NotFoundError; delete of a missing document is a no-op.

        Raises:
            NotFoundError: If an update/increment target doesn't exist
            StorageError: If the batch could not be committed
        """
        pass

    async def increment(
        self,
        collection: str,
        doc_id: str,
        field: str,
        amount: Decimal,
    ) -> None:
        """Add a signed amount to a stored decimal field."""
        await self.batch([BatchOperation.increment(collection, doc_id, field, amount)])


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(self, correlation_id) -> list[AuditEvent]:
        """
        Get all events of one session, in chronological order.
        """
        pass

    @abstractmethod
    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        """
        Get the most recent audit events (newest first).
        """
        pass


def apply_increment(current: Any, amount: Decimal) -> str:
    """Add amount to a stored decimal value, returning the stored form."""
    base = Decimal(str(current)) if current not in (None, "") else Decimal("0")
    return str(base + amount)


def matches_filters(fields: dict[str, Any], owner_id: str, filters: Optional[dict[str, Any]]) -> bool:
    """Check a document against an owner and equality filters."""
    if fields.get("owner_id") != owner_id:
        return False
    for key, value in (filters or {}).items():
        if fields.get(key) != value:
            return False
    return True


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
