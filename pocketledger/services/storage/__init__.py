"""
Storage Services Package

Provides the abstract document store contract and its implementations.
The in-memory backend is the default; SQLite persists to a file.
"""

from typing import Optional

from pocketledger.config import Settings, get_settings
from pocketledger.services.storage.interface import (
    AuditStorageInterface,
    BatchOperation,
    BatchOpType,
    ConnectionError,
    DocumentStoreInterface,
    DuplicateError,
    NotFoundError,
    StorageError,
)
from pocketledger.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryDocumentStore,
)
from pocketledger.services.storage.sqlite_store import (
    SqliteAuditStorage,
    SqliteClient,
    SqliteDocumentStore,
)


def create_storage(
    settings: Optional[Settings] = None,
) -> tuple[DocumentStoreInterface, AuditStorageInterface]:
    """
    Build the document store and audit storage the settings ask for.

    Raises:
        ConnectionError: If the configured backend cannot be opened
    """
    storage_settings = (settings or get_settings()).storage

    if storage_settings.backend == "sqlite":
        try:
            client = SqliteClient(
                storage_settings.sqlite_path,
                retry_attempts=storage_settings.retry_attempts,
            )
        except StorageError as e:
            raise ConnectionError(f"Could not open SQLite database: {e}")
        return SqliteDocumentStore(client), SqliteAuditStorage(client)

    return InMemoryDocumentStore(), InMemoryAuditStorage()


__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "BatchOperation",
    "BatchOpType",
    "DocumentStoreInterface",
    # Exceptions
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # Implementations
    "InMemoryAuditStorage",
    "InMemoryDocumentStore",
    "SqliteAuditStorage",
    "SqliteClient",
    "SqliteDocumentStore",
    # Factory
    "create_storage",
]
