"""
Tests for the document store backends.

Every contract test runs against both the in-memory store and SQLite.
"""

import pytest
from decimal import Decimal
from uuid import uuid4

from pocketledger.config import Settings
from pocketledger.models import AuditEvent, AuditEventType
from pocketledger.services.storage import (
    BatchOperation,
    InMemoryAuditStorage,
    InMemoryDocumentStore,
    NotFoundError,
    SqliteAuditStorage,
    SqliteClient,
    SqliteDocumentStore,
    StorageError,
    create_storage,
)


@pytest.fixture(params=["memory", "sqlite"])
def doc_store(request, tmp_path):
    if request.param == "memory":
        return InMemoryDocumentStore()
    return SqliteDocumentStore(SqliteClient(str(tmp_path / "ledger.db")))


def account_doc(owner_id="u1", balance="100"):
    return {"owner_id": owner_id, "name": "Bank Account", "balance": balance}


class TestDocumentStoreContract:
    """Tests for put/get/query/update/delete."""

    async def test_put_and_get(self, doc_store):
        """Test a stored document comes back unchanged."""
        await doc_store.put("accounts", "a1", account_doc())
        assert await doc_store.get("accounts", "a1") == account_doc()

    async def test_get_missing_returns_none(self, doc_store):
        """Test reading a missing document."""
        assert await doc_store.get("accounts", "nope") is None

    async def test_get_returns_copy(self, doc_store):
        """Test mutating a read document does not change the store."""
        await doc_store.put("accounts", "a1", account_doc())
        doc = await doc_store.get("accounts", "a1")
        doc["balance"] = "999"
        assert (await doc_store.get("accounts", "a1"))["balance"] == "100"

    async def test_query_by_owner_scopes_and_filters(self, doc_store):
        """Test owner scoping and extra equality filters."""
        await doc_store.put("transactions", "t1", {"owner_id": "u1", "kind": "expense"})
        await doc_store.put("transactions", "t2", {"owner_id": "u1", "kind": "income"})
        await doc_store.put("transactions", "t3", {"owner_id": "u2", "kind": "expense"})

        assert len(await doc_store.query_by_owner("transactions", "u1")) == 2
        expenses = await doc_store.query_by_owner("transactions", "u1", {"kind": "expense"})
        assert [d["kind"] for d in expenses] == ["expense"]

    async def test_update_merges_fields(self, doc_store):
        """Test a partial update keeps other fields."""
        await doc_store.put("accounts", "a1", account_doc())
        await doc_store.update("accounts", "a1", {"name": "Savings"})
        doc = await doc_store.get("accounts", "a1")
        assert doc["name"] == "Savings"
        assert doc["balance"] == "100"

    async def test_update_missing_raises(self, doc_store):
        """Test updating a missing document."""
        with pytest.raises(NotFoundError):
            await doc_store.update("accounts", "nope", {"name": "x"})

    async def test_delete(self, doc_store):
        """Test delete reports whether something was removed."""
        await doc_store.put("accounts", "a1", account_doc())
        assert await doc_store.delete("accounts", "a1") is True
        assert await doc_store.delete("accounts", "a1") is False
        assert await doc_store.get("accounts", "a1") is None


class TestBatches:
    """Tests for atomic batches and increments."""

    async def test_increment_adds_signed_amount(self, doc_store):
        """Test increment moves a decimal field in place."""
        await doc_store.put("accounts", "a1", account_doc())
        await doc_store.increment("accounts", "a1", "balance", Decimal("-40.50"))
        assert Decimal((await doc_store.get("accounts", "a1"))["balance"]) == Decimal("59.50")

    async def test_batch_applies_all_operations(self, doc_store):
        """Test a successful batch applies every operation."""
        await doc_store.put("accounts", "a1", account_doc())
        await doc_store.batch([
            BatchOperation.put("transactions", "t1", {"owner_id": "u1", "amount": "60"}),
            BatchOperation.increment("accounts", "a1", "balance", Decimal("60")),
        ])
        assert await doc_store.get("transactions", "t1") is not None
        assert Decimal((await doc_store.get("accounts", "a1"))["balance"]) == Decimal("160")

    async def test_batch_is_all_or_nothing(self, doc_store):
        """Test an increment of a missing document aborts the whole batch."""
        await doc_store.put("accounts", "a1", account_doc())

        with pytest.raises(NotFoundError):
            await doc_store.batch([
                BatchOperation.put("transactions", "t1", {"owner_id": "u1"}),
                BatchOperation.increment("accounts", "a1", "balance", Decimal("10")),
                BatchOperation.increment("accounts", "missing", "balance", Decimal("10")),
            ])

        assert await doc_store.get("transactions", "t1") is None
        assert (await doc_store.get("accounts", "a1"))["balance"] == "100"

    async def test_batch_delete_missing_is_noop(self, doc_store):
        """Test deleting a missing document inside a batch."""
        await doc_store.batch([BatchOperation.delete("accounts", "nope")])

    async def test_increment_non_numeric_field_fails(self, doc_store):
        """Test incrementing a non-numeric field is a storage error."""
        await doc_store.put("accounts", "a1", account_doc())
        with pytest.raises(StorageError):
            await doc_store.increment("accounts", "a1", "name", Decimal("1"))
        assert (await doc_store.get("accounts", "a1"))["name"] == "Bank Account"

    def test_increment_needs_field_and_amount(self):
        """Test an increment operation must name a field and an amount."""
        with pytest.raises(ValueError):
            BatchOperation(op="increment", collection="accounts", doc_id="a1")


class TestAuditStorage:
    """Tests for the append-only audit stores."""

    @pytest.fixture(params=["memory", "sqlite"])
    def audit_store(self, request, tmp_path):
        if request.param == "memory":
            return InMemoryAuditStorage()
        return SqliteAuditStorage(SqliteClient(str(tmp_path / "audit.db")))

    async def test_events_by_correlation_id(self, audit_store):
        """Test events are grouped by session and kept in order."""
        session_id = uuid4()
        first = AuditEvent(
            event_type=AuditEventType.ACCOUNT_CREATED,
            correlation_id=session_id,
            description="first",
        )
        second = AuditEvent(
            event_type=AuditEventType.TRANSACTION_CREATED,
            correlation_id=session_id,
            description="second",
        )
        other = AuditEvent(
            event_type=AuditEventType.DEBT_PAID,
            correlation_id=uuid4(),
            description="other",
        )
        for event in (first, second, other):
            assert await audit_store.append_event(event) is True

        events = await audit_store.get_events_by_correlation_id(session_id)
        assert [e.description for e in events] == ["first", "second"]

        recent = await audit_store.get_recent_events(limit=1)
        assert len(recent) == 1


class TestCreateStorage:
    """Tests for backend selection."""

    def test_memory_backend_is_default(self):
        """Test the default backend is in-memory."""
        store, audit_store = create_storage(Settings())
        assert isinstance(store, InMemoryDocumentStore)
        assert isinstance(audit_store, InMemoryAuditStorage)

    def test_sqlite_backend(self, tmp_path, monkeypatch):
        """Test the sqlite backend is selected from the environment."""
        monkeypatch.setenv("LEDGER_STORAGE_BACKEND", "sqlite")
        monkeypatch.setenv("LEDGER_STORAGE_SQLITE_PATH", str(tmp_path / "ledger.db"))
        store, audit_store = create_storage(Settings())
        assert isinstance(store, SqliteDocumentStore)
        assert isinstance(audit_store, SqliteAuditStorage)
        assert (tmp_path / "ledger.db").exists()
