"""Services package."""

from pocketledger.services.storage import (
    AuditStorageInterface,
    BatchOperation,
    ConnectionError,
    DocumentStoreInterface,
    DuplicateError,
    InMemoryAuditStorage,
    InMemoryDocumentStore,
    NotFoundError,
    SqliteAuditStorage,
    SqliteDocumentStore,
    StorageError,
    create_storage,
)

__all__ = [
    "AuditStorageInterface",
    "BatchOperation",
    "ConnectionError",
    "DocumentStoreInterface",
    "DuplicateError",
    "InMemoryAuditStorage",
    "InMemoryDocumentStore",
    "NotFoundError",
    "SqliteAuditStorage",
    "SqliteDocumentStore",
    "StorageError",
    "create_storage",
]
