"""
In-Memory Storage Implementation

Keeps every collection in a dict of documents. Used by tests and by the
default "memory" backend.

Batches are staged on a copy of the touched collections and swapped in
only after every operation succeeded, so a failing batch leaves the
store exactly as it was.
"""

import copy
from typing import Any, Optional
from uuid import UUID

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


class InMemoryDocumentStore(DocumentStoreInterface):
    """
    Dict-backed document store.

    Every read returns a deep copy, so callers can never mutate stored
    state by accident.
    """

    def __init__(self):
        self._collections: dict[str, dict[str, dict[str, Any]]] = {}

    def _collection(self, name: str) -> dict[str, dict[str, Any]]:
        return self._collections.setdefault(name, {})

    async def put(self, collection: str, doc_id: str, fields: dict[str, Any]) -> None:
        await self.batch([BatchOperation.put(collection, doc_id, fields)])

    async def get(self, collection: str, doc_id: str) -> Optional[dict[str, Any]]:
        doc = self._collection(collection).get(doc_id)
        return copy.deepcopy(doc) if doc is not None else None

    async def query_by_owner(
        self,
        collection: str,
        owner_id: str,
        filters: Optional[dict[str, Any]] = None,
    ) -> list[dict[str, Any]]:
        return [
            copy.deepcopy(doc)
            for doc in self._collection(collection).values()
            if matches_filters(doc, owner_id, filters)
        ]

    async def update(self, collection: str, doc_id: str, fields: dict[str, Any]) -> None:
        await self.batch([BatchOperation.update(collection, doc_id, fields)])

    async def delete(self, collection: str, doc_id: str) -> bool:
        existed = doc_id in self._collection(collection)
        await self.batch([BatchOperation.delete(collection, doc_id)])
        return existed

    async def batch(self, operations: list[BatchOperation]) -> None:
        """Apply operations to a staged copy, then swap it in."""
        touched = {op.collection for op in operations}
        staged = {
            name: copy.deepcopy(self._collection(name))
            for name in touched
        }

        for op in operations:
            docs = staged[op.collection]

            if op.op == BatchOpType.PUT:
                docs[op.doc_id] = copy.deepcopy(op.fields)
            elif op.op == BatchOpType.UPDATE:
                if op.doc_id not in docs:
                    raise NotFoundError(f"{op.collection}/{op.doc_id} not found")
                docs[op.doc_id].update(copy.deepcopy(op.fields))
            elif op.op == BatchOpType.INCREMENT:
                if op.doc_id not in docs:
                    raise NotFoundError(f"{op.collection}/{op.doc_id} not found")
                doc = docs[op.doc_id]
                try:
                    doc[op.field] = apply_increment(doc.get(op.field), op.amount)
                except ArithmeticError as e:
                    raise StorageError(
                        f"Field {op.field} of {op.collection}/{op.doc_id} is not numeric: {e}"
                    )
            elif op.op == BatchOpType.DELETE:
                docs.pop(op.doc_id, None)

        self._collections.update(staged)


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(self, correlation_id: UUID) -> list[AuditEvent]:
        events = [e for e in self._events if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        events = sorted(self._events, key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
