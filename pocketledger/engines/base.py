"""
Shared plumbing for the engines: owner-checked loads and audited commits.
"""

from enum import Enum
from typing import Any, Optional, TypeVar
from uuid import UUID

from pocketledger.audit import AuditLogger
from pocketledger.models.audit import AuditEvent
from pocketledger.models.ledger import LedgerRecord, Session
from pocketledger.services.storage import (
    BatchOperation,
    DocumentStoreInterface,
    NotFoundError,
    StorageError,
)
from pocketledger.validation import ValidationError


RecordT = TypeVar("RecordT", bound=LedgerRecord)
EnumT = TypeVar("EnumT", bound=Enum)


def coerce_enum(enum_cls: type[EnumT], value: Any, field: str) -> EnumT:
    """Turn a string or enum member into enum_cls, raising ValidationError."""
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationError(f"{field} must be one of: {allowed}", field)


class OwnedRecordEngine:
    """
    Base for engines that read and write records owned by a session.

    A record owned by somebody else is indistinguishable from a missing
    one: both raise NotFoundError.
    """

    def __init__(
        self,
        store: DocumentStoreInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._audit_logger = audit_logger

    async def _load(
        self,
        session: Session,
        collection: str,
        record_id: UUID,
        model_cls: type[RecordT],
        label: str,
    ) -> RecordT:
        fields = await self._store.get(collection, str(record_id))
        if fields is None or fields.get("owner_id") != session.owner_id:
            raise NotFoundError(f"{label} not found: {record_id}")
        return model_cls.from_document(fields)

    async def _list(
        self,
        session: Session,
        collection: str,
        model_cls: type[RecordT],
        filters: Optional[dict[str, Any]] = None,
    ) -> list[RecordT]:
        docs = await self._store.query_by_owner(collection, session.owner_id, filters)
        return [model_cls.from_document(doc) for doc in docs]

    async def _commit(
        self,
        session: Session,
        operation: str,
        operations: list[BatchOperation],
    ) -> None:
        """Write one atomic batch, auditing storage failures before re-raising."""
        if not operations:
            return
        try:
            await self._store.batch(operations)
        except NotFoundError:
            raise
        except StorageError as e:
            if self._audit_logger:
                await self._audit_logger.log_storage_error(session, operation, e)
            raise

    async def _audit(self, event: AuditEvent) -> None:
        if self._audit_logger:
            await self._audit_logger.log(event)
