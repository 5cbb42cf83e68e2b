"""
Tests for the ledger engine: accounts, transactions and the balance
invariant that ties them together.
"""

import pytest
from datetime import date
from decimal import Decimal
from uuid import uuid4

from pocketledger.engines import LedgerEngine, expected_balance
from pocketledger.models import AccountKind, AuditEventType, TransactionKind
from pocketledger.services.storage import (
    InMemoryDocumentStore,
    NotFoundError,
    StorageError,
)
from pocketledger.validation import ValidationError


class FailingBatchStore(InMemoryDocumentStore):
    """Store whose batches fail once armed."""

    def __init__(self):
        super().__init__()
        self.fail = False

    async def batch(self, operations):
        if self.fail:
            raise StorageError("disk full")
        await super().batch(operations)


class TestAccounts:
    """Tests for account lifecycle."""

    async def test_create_account(self, ledger, session):
        """Test an account opens with its initial balance."""
        account = await ledger.create_account(session, "Bank Account", initial_balance="1000")
        assert account.balance == Decimal("1000")
        assert account.initial_balance == Decimal("1000")
        assert account.kind == AccountKind.BANK
        assert (await ledger.get_account(session, account.id)).name == "Bank Account"

    async def test_create_credit_card(self, ledger, session):
        """Test kind can be given as text."""
        account = await ledger.create_account(session, "Visa", kind="credit_card")
        assert account.kind == AccountKind.CREDIT_CARD

    async def test_rejects_negative_initial_balance(self, ledger, session):
        """Test a negative opening balance is refused."""
        with pytest.raises(ValidationError) as exc:
            await ledger.create_account(session, "Bank", initial_balance="-5")
        assert exc.value.field == "initial_balance"

    async def test_rejects_oversized_initial_balance(self, ledger, session):
        """Test an opening balance too large to adjust later is refused."""
        with pytest.raises(ValidationError) as exc:
            await ledger.create_account(session, "Bank", initial_balance="1e1000000")
        assert exc.value.field == "initial_balance"
        assert await ledger.list_accounts(session) == []

    async def test_rejects_blank_name(self, ledger, session):
        """Test an account needs a name."""
        with pytest.raises(ValidationError):
            await ledger.create_account(session, "   ")

    async def test_rename_account(self, ledger, session):
        """Test renaming keeps the balance."""
        account = await ledger.create_account(session, "Bank", initial_balance="50")
        renamed = await ledger.rename_account(session, account.id, "Savings")
        stored = await ledger.get_account(session, account.id)
        assert renamed.name == stored.name == "Savings"
        assert stored.balance == Decimal("50")

    async def test_list_accounts_oldest_first(self, ledger, session, other_session):
        """Test listing is owner-scoped and ordered by creation."""
        first = await ledger.create_account(session, "First")
        second = await ledger.create_account(session, "Second")
        await ledger.create_account(other_session, "Not mine")

        accounts = await ledger.list_accounts(session)
        assert [a.id for a in accounts] == [first.id, second.id]

    async def test_other_owner_cannot_read(self, ledger, session, other_session):
        """Test a record owned by someone else looks missing."""
        account = await ledger.create_account(session, "Bank")
        with pytest.raises(NotFoundError):
            await ledger.get_account(other_session, account.id)

    async def test_update_account_balance_overwrites(self, ledger, session):
        """Test the absolute overwrite stores exactly what it is given."""
        account = await ledger.create_account(session, "Bank", initial_balance="100")
        updated = await ledger.update_account_balance(session, account.id, "250")
        assert updated.balance == Decimal("250")
        assert (await ledger.get_account(session, account.id)).balance == Decimal("250")

    async def test_apply_balance_delta(self, ledger, session):
        """Test a delta moves the stored balance."""
        account = await ledger.create_account(session, "Bank", initial_balance="100")
        updated = await ledger.apply_balance_delta(session, account.id, "-30")
        assert updated.balance == Decimal("70")


class TestTransactions:
    """Tests for transactions and the balance they move."""

    async def test_balance_invariant_over_sequence(self, ledger, session):
        """Test balance equals initial plus income minus expenses and subscriptions."""
        account = await ledger.create_account(session, "Bank", initial_balance="1000")
        await ledger.create_transaction(session, account.id, "income", "500", "Salary")
        await ledger.create_transaction(session, account.id, "expense", "120.50", "Food & Dining")
        await ledger.create_transaction(session, account.id, "subscription", "199", "Streaming")
        await ledger.create_transaction(session, account.id, "expense", "30", "Transportation")

        stored = await ledger.get_account(session, account.id)
        assert stored.balance == Decimal("1150.50")

        report = await ledger.reconcile_account(session, account.id)
        assert report.is_consistent
        assert report.transaction_count == 4

    async def test_create_transaction_defaults(self, ledger, session):
        """Test description and date defaults."""
        account = await ledger.create_account(session, "Bank")
        txn = await ledger.create_transaction(session, account.id, "income", 10, "Gift")
        assert txn.description == ""
        assert txn.date == date.today()

    async def test_create_transaction_parses_date_text(self, ledger, session):
        """Test ISO dates are accepted as text."""
        account = await ledger.create_account(session, "Bank")
        txn = await ledger.create_transaction(
            session, account.id, "expense", "5", "Food & Dining", date="2024-01-15"
        )
        assert txn.date == date(2024, 1, 15)

    async def test_invalid_amount_rejected(self, ledger, session):
        """Test zero, negative and non-numeric amounts write nothing."""
        account = await ledger.create_account(session, "Bank", initial_balance="10")
        for amount in ("0", "-10", "abc"):
            with pytest.raises(ValidationError):
                await ledger.create_transaction(session, account.id, "expense", amount, "Other")

        assert await ledger.list_transactions(session) == []
        assert (await ledger.get_account(session, account.id)).balance == Decimal("10")

    async def test_oversized_amount_rejected(self, ledger, session):
        """Test an amount outside the decimal range is a validation error."""
        account = await ledger.create_account(session, "Bank")
        with pytest.raises(ValidationError) as exc:
            await ledger.create_transaction(session, account.id, "expense", "1e1000000", "Other")
        assert exc.value.field == "amount"
        assert await ledger.list_transactions(session) == []

    async def test_unknown_account_rejected(self, ledger, session):
        """Test a transaction against a missing account."""
        with pytest.raises(NotFoundError):
            await ledger.create_transaction(session, uuid4(), "expense", "5", "Other")

    async def test_other_owners_account_rejected(self, ledger, session, other_session):
        """Test a transaction against another owner's account."""
        account = await ledger.create_account(other_session, "Theirs", initial_balance="100")
        with pytest.raises(NotFoundError):
            await ledger.create_transaction(session, account.id, "expense", "5", "Other")
        assert (await ledger.get_account(other_session, account.id)).balance == Decimal("100")

    async def test_delete_transaction_reverses_balance(self, ledger, session):
        """Test deleting restores the balance."""
        account = await ledger.create_account(session, "Bank", initial_balance="100")
        txn = await ledger.create_transaction(session, account.id, "expense", "40", "Other")

        await ledger.delete_transaction(session, txn.id)

        assert (await ledger.get_account(session, account.id)).balance == Decimal("100")
        with pytest.raises(NotFoundError):
            await ledger.get_transaction(session, txn.id)

    async def test_update_amount_and_kind(self, ledger, session):
        """Test changing amount and kind rebalances the account."""
        account = await ledger.create_account(session, "Bank", initial_balance="100")
        txn = await ledger.create_transaction(session, account.id, "expense", "40", "Other")

        updated = await ledger.update_transaction(session, txn.id, amount="25", kind="income")

        assert updated.kind == TransactionKind.INCOME
        assert (await ledger.get_account(session, account.id)).balance == Decimal("125")
        assert (await ledger.reconcile_account(session, account.id)).is_consistent

    async def test_update_moves_between_accounts(self, ledger, session):
        """Test moving a transaction to another account moves its effect."""
        bank = await ledger.create_account(session, "Bank", initial_balance="100")
        card = await ledger.create_account(session, "Card", initial_balance="100")
        txn = await ledger.create_transaction(session, bank.id, "expense", "30", "Other")

        await ledger.update_transaction(session, txn.id, account_id=card.id)

        assert (await ledger.get_account(session, bank.id)).balance == Decimal("100")
        assert (await ledger.get_account(session, card.id)).balance == Decimal("70")

    async def test_update_description_only(self, ledger, session):
        """Test a patch that doesn't touch money leaves the balance alone."""
        account = await ledger.create_account(session, "Bank", initial_balance="100")
        txn = await ledger.create_transaction(session, account.id, "expense", "30", "Other")

        updated = await ledger.update_transaction(session, txn.id, description="Lunch")

        assert updated.description == "Lunch"
        assert (await ledger.get_transaction(session, txn.id)).description == "Lunch"
        assert (await ledger.get_account(session, account.id)).balance == Decimal("70")

    async def test_update_rejects_immutable_fields(self, ledger, session):
        """Test id, owner and creation time cannot be patched."""
        account = await ledger.create_account(session, "Bank")
        txn = await ledger.create_transaction(session, account.id, "income", "5", "Gift")
        with pytest.raises(ValidationError):
            await ledger.update_transaction(session, txn.id, owner_id="someone-else")
        with pytest.raises(ValidationError):
            await ledger.update_transaction(session, txn.id, colour="red")

    async def test_list_transactions_newest_first(self, ledger, session):
        """Test ordering and account filter."""
        bank = await ledger.create_account(session, "Bank")
        card = await ledger.create_account(session, "Card")
        old = await ledger.create_transaction(session, bank.id, "income", "1", "Gift", date="2024-01-01")
        new = await ledger.create_transaction(session, bank.id, "income", "1", "Gift", date="2024-02-01")
        await ledger.create_transaction(session, card.id, "income", "1", "Gift", date="2024-03-01")

        listed = await ledger.list_transactions(session, bank.id)
        assert [t.id for t in listed] == [new.id, old.id]


class TestCascadeAndAtomicity:
    """Tests for cascading deletes and failed batches."""

    async def test_delete_account_cascades(self, ledger, session):
        """Test no transaction is left referencing a deleted account."""
        bank = await ledger.create_account(session, "Bank")
        card = await ledger.create_account(session, "Card")
        for _ in range(3):
            await ledger.create_transaction(session, bank.id, "expense", "1", "Other")
        kept = await ledger.create_transaction(session, card.id, "expense", "1", "Other")

        removed = await ledger.delete_account(session, bank.id)

        assert removed == 3
        remaining = await ledger.list_transactions(session)
        assert [t.id for t in remaining] == [kept.id]
        with pytest.raises(NotFoundError):
            await ledger.get_account(session, bank.id)

    async def test_failed_batch_leaves_no_partial_state(self, session, audit_logger, audit_storage):
        """Test a storage failure writes neither the transaction nor the balance."""
        store = FailingBatchStore()
        ledger = LedgerEngine(store, audit_logger)
        account = await ledger.create_account(session, "Bank", initial_balance="100")

        store.fail = True
        with pytest.raises(StorageError):
            await ledger.create_transaction(session, account.id, "expense", "40", "Other")
        store.fail = False

        assert await ledger.list_transactions(session) == []
        assert (await ledger.get_account(session, account.id)).balance == Decimal("100")

        events = await audit_storage.get_events_by_correlation_id(session.session_id)
        assert events[-1].event_type == AuditEventType.STORAGE_ERROR

    async def test_events_carry_session_id(self, ledger, session, audit_storage):
        """Test every event of a session is correlated to it."""
        account = await ledger.create_account(session, "Bank")
        await ledger.create_transaction(session, account.id, "income", "10", "Gift")

        events = await audit_storage.get_events_by_correlation_id(session.session_id)
        assert [e.event_type for e in events] == [
            AuditEventType.ACCOUNT_CREATED,
            AuditEventType.TRANSACTION_CREATED,
        ]


class TestExpectedBalance:
    """Tests for the pure balance check."""

    async def test_ignores_other_accounts(self, ledger, session):
        """Test only the account's own transactions count."""
        bank = await ledger.create_account(session, "Bank", initial_balance="10")
        card = await ledger.create_account(session, "Card")
        await ledger.create_transaction(session, bank.id, "income", "5", "Gift")
        await ledger.create_transaction(session, card.id, "income", "7", "Gift")

        transactions = await ledger.list_transactions(session)
        assert expected_balance(bank, transactions) == Decimal("15")
