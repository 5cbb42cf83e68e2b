"""
SQLite Storage Implementation

Documents live as JSON text in a single table keyed by
(collection, id), with owner_id pulled out into its own column for
owner-scoped reads. Field filters beyond the owner are applied in Python.

Each batch runs inside one BEGIN IMMEDIATE ... COMMIT transaction, so it
is all-or-nothing. A locked database (sqlite3.OperationalError) is retried
with tenacity; every other driver error surfaces as StorageError.
"""

import json
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Optional
from uuid import UUID

from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from pocketledger.config import get_settings
from pocketledger.models.audit import AuditEvent
from pocketledger.services.storage.interface import (
    AuditStorageInterface,
    BatchOperation,
    BatchOpType,
    DocumentStoreInterface,
    NotFoundError,
    StorageError,
    apply_increment,
    matches_filters,
)


SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS documents (
        collection TEXT NOT NULL,
        id TEXT NOT NULL,
        owner_id TEXT,
        body TEXT NOT NULL,
        PRIMARY KEY (collection, id)
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_documents_owner
    ON documents (collection, owner_id)
    """,
    """
    CREATE TABLE IF NOT EXISTS audit_events (
        event_id TEXT PRIMARY KEY,
        timestamp TEXT NOT NULL,
        event_type TEXT NOT NULL,
        severity TEXT NOT NULL,
        owner_id TEXT,
        entity_type TEXT,
        entity_id TEXT,
        correlation_id TEXT,
        description TEXT NOT NULL,
        details_json TEXT,
        error_message TEXT
    )
    """,
)


class SqliteClient:
    """
    Low-level SQLite wrapper.

    Opens a connection per call, except for ":memory:" databases, which
    only exist for the lifetime of a single shared connection.
    """

    def __init__(self, db_path: Optional[str] = None, retry_attempts: Optional[int] = None):
        settings = get_settings().storage
        self._db_path = db_path or settings.sqlite_path
        self._shared: Optional[sqlite3.Connection] = None
        self._retrying = Retrying(
            stop=stop_after_attempt(retry_attempts or settings.retry_attempts),
            wait=wait_exponential(multiplier=0.1, min=0.1, max=2),
            retry=retry_if_exception_type(sqlite3.OperationalError),
            reraise=True,
        )
        self.init_database()

    @property
    def db_path(self) -> str:
        return self._db_path

    def _open(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, isolation_level=None)
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        if self._db_path == ":memory:":
            if self._shared is None:
                self._shared = self._open()
            yield self._shared
            return

        conn = self._open()
        try:
            yield conn
        finally:
            conn.close()

    def run(self, fn, *args, **kwargs):
        """Call fn, retrying while the database is locked."""
        try:
            return self._retrying(fn, *args, **kwargs)
        except StorageError:
            raise
        except sqlite3.Error as e:
            raise StorageError(f"SQLite operation failed: {e}")

    def init_database(self) -> None:
        """Create tables if they don't exist."""
        if self._db_path != ":memory:":
            Path(self._db_path).expanduser().parent.mkdir(parents=True, exist_ok=True)

        def _create() -> None:
            with self.connection() as conn:
                for statement in SCHEMA:
                    conn.execute(statement)

        self.run(_create)


class SqliteDocumentStore(DocumentStoreInterface):
    """
    SQLite implementation of the document store.
    """

    def __init__(self, client: Optional[SqliteClient] = None):
        self._client = client or SqliteClient()

    async def put(self, collection: str, doc_id: str, fields: dict[str, Any]) -> None:
        await self.batch([BatchOperation.put(collection, doc_id, fields)])

    async def get(self, collection: str, doc_id: str) -> Optional[dict[str, Any]]:
        def _get() -> Optional[dict[str, Any]]:
            with self._client.connection() as conn:
                row = conn.execute(
                    "SELECT body FROM documents WHERE collection = ? AND id = ?",
                    (collection, doc_id),
                ).fetchone()
            return json.loads(row["body"]) if row else None

        return self._client.run(_get)

    async def query_by_owner(
        self,
        collection: str,
        owner_id: str,
        filters: Optional[dict[str, Any]] = None,
    ) -> list[dict[str, Any]]:
        def _query() -> list[dict[str, Any]]:
            with self._client.connection() as conn:
                rows = conn.execute(
                    "SELECT body FROM documents WHERE collection = ? AND owner_id = ? ORDER BY rowid",
                    (collection, owner_id),
                ).fetchall()
            docs = [json.loads(row["body"]) for row in rows]
            return [doc for doc in docs if matches_filters(doc, owner_id, filters)]

        return self._client.run(_query)

    async def update(self, collection: str, doc_id: str, fields: dict[str, Any]) -> None:
        await self.batch([BatchOperation.update(collection, doc_id, fields)])

    async def delete(self, collection: str, doc_id: str) -> bool:
        def _delete() -> bool:
            with self._client.connection() as conn:
                cursor = conn.execute(
                    "DELETE FROM documents WHERE collection = ? AND id = ?",
                    (collection, doc_id),
                )
                return cursor.rowcount > 0

        return self._client.run(_delete)

    def _load(self, conn: sqlite3.Connection, op: BatchOperation) -> dict[str, Any]:
        row = conn.execute(
            "SELECT body FROM documents WHERE collection = ? AND id = ?",
            (op.collection, op.doc_id),
        ).fetchone()
        if row is None:
            raise NotFoundError(f"{op.collection}/{op.doc_id} not found")
        return json.loads(row["body"])

    def _write(self, conn: sqlite3.Connection, collection: str, doc_id: str, doc: dict[str, Any]) -> None:
        conn.execute(
            "INSERT OR REPLACE INTO documents (collection, id, owner_id, body) VALUES (?, ?, ?, ?)",
            (collection, doc_id, doc.get("owner_id"), json.dumps(doc)),
        )

    def _apply(self, conn: sqlite3.Connection, op: BatchOperation) -> None:
        if op.op == BatchOpType.PUT:
            self._write(conn, op.collection, op.doc_id, op.fields)
        elif op.op == BatchOpType.UPDATE:
            doc = self._load(conn, op)
            doc.update(op.fields)
            self._write(conn, op.collection, op.doc_id, doc)
        elif op.op == BatchOpType.INCREMENT:
            doc = self._load(conn, op)
            try:
                doc[op.field] = apply_increment(doc.get(op.field), op.amount)
            except ArithmeticError as e:
                raise StorageError(
                    f"Field {op.field} of {op.collection}/{op.doc_id} is not numeric: {e}"
                )
            self._write(conn, op.collection, op.doc_id, doc)
        elif op.op == BatchOpType.DELETE:
            conn.execute(
                "DELETE FROM documents WHERE collection = ? AND id = ?",
                (op.collection, op.doc_id),
            )

    async def batch(self, operations: list[BatchOperation]) -> None:
        """Apply all operations inside one SQLite transaction."""
        def _batch() -> None:
            with self._client.connection() as conn:
                conn.execute("BEGIN IMMEDIATE")
                try:
                    for op in operations:
                        self._apply(conn, op)
                except BaseException:
                    conn.execute("ROLLBACK")
                    raise
                conn.execute("COMMIT")

        self._client.run(_batch)


class SqliteAuditStorage(AuditStorageInterface):
    """
    SQLite implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[SqliteClient] = None):
        self._client = client or SqliteClient()

    async def append_event(self, event: AuditEvent) -> bool:
        def _append() -> None:
            with self._client.connection() as conn:
                conn.execute(
                    "INSERT INTO audit_events VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    event.to_row(),
                )

        self._client.run(_append)
        return True

    def _select(self, where: str, params: tuple, order: str, limit: int = -1) -> list[AuditEvent]:
        def _query() -> list[AuditEvent]:
            with self._client.connection() as conn:
                rows = conn.execute(
                    f"SELECT * FROM audit_events {where} ORDER BY timestamp {order}, rowid {order} LIMIT ?",
                    (*params, limit),
                ).fetchall()
            return [AuditEvent.from_row(tuple(row)) for row in rows]

        return self._client.run(_query)

    async def get_events_by_correlation_id(self, correlation_id: UUID) -> list[AuditEvent]:
        return self._select("WHERE correlation_id = ?", (str(correlation_id),), "ASC")

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        return self._select("", (), "DESC", limit)
