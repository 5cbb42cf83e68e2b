"""
Ledger Engine

Keeps account balances consistent with the transactions recorded
against them. For every account:

    balance == initial_balance + income - expenses - subscriptions

Every operation that touches both a transaction and a balance is a
single atomic storage batch, and balances only ever move by a signed
delta applied inside the store (an increment), never by writing back a
balance computed from an earlier read.
"""

from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Any, Iterable, Optional, Union
from uuid import UUID

from pocketledger.engines.base import OwnedRecordEngine, coerce_enum
from pocketledger.models.audit import AuditEventBuilder
from pocketledger.models.ledger import (
    Account,
    AccountKind,
    AccountReconciliation,
    Collections,
    Session,
    Transaction,
    TransactionKind,
)
from pocketledger.services.storage import BatchOperation
from pocketledger.validation import (
    ValidationError,
    build_model,
    parse_amount,
    parse_date,
    parse_decimal,
    require_text,
)


# Fields update_transaction may change
UPDATABLE_TRANSACTION_FIELDS = frozenset(
    {"account_id", "kind", "amount", "category", "description", "date"}
)
IMMUTABLE_FIELDS = frozenset({"id", "owner_id", "created_at"})


def expected_balance(account: Account, transactions: Iterable[Transaction]) -> Decimal:
    """The balance an account's transactions imply."""
    total = account.initial_balance
    for txn in transactions:
        if txn.account_id == account.id:
            total += txn.signed_amount
    return total


def balance_delta_ops(deltas: dict[UUID, Decimal]) -> list[BatchOperation]:
    """One increment per account with a non-zero net delta."""
    return [
        BatchOperation.increment(Collections.ACCOUNTS, str(account_id), "balance", delta)
        for account_id, delta in deltas.items()
        if delta != 0
    ]


class LedgerEngine(OwnedRecordEngine):
    """
    Accounts and the transactions that move their balances.
    """

    # =========================================================================
    # Accounts
    # =========================================================================

    async def create_account(
        self,
        session: Session,
        name: str,
        kind: Union[AccountKind, str] = AccountKind.BANK,
        initial_balance: Any = Decimal("0"),
    ) -> Account:
        """
        Open an account.

        Raises:
            ValidationError: If the name is blank or the balance negative
        """
        name = require_text(name, "name")
        balance = parse_decimal(initial_balance, "initial_balance")
        if balance < 0:
            raise ValidationError("Initial balance cannot be negative", "initial_balance")

        account = build_model(
            Account,
            owner_id=session.owner_id,
            name=name,
            kind=coerce_enum(AccountKind, kind, "kind"),
            balance=balance,
            initial_balance=balance,
        )
        await self._commit(session, "create_account", [
            BatchOperation.put(Collections.ACCOUNTS, str(account.id), account.to_document()),
        ])

        await self._audit(AuditEventBuilder.account_created(
            owner_id=session.owner_id,
            account_id=account.id,
            name=account.name,
            initial_balance=balance,
            correlation_id=session.session_id,
        ))
        return account

    async def get_account(self, session: Session, account_id: UUID) -> Account:
        """
        Raises:
            NotFoundError: If the session owns no such account
        """
        return await self._load(session, Collections.ACCOUNTS, account_id, Account, "Account")

    async def list_accounts(self, session: Session) -> list[Account]:
        """The owner's accounts, oldest first."""
        accounts = await self._list(session, Collections.ACCOUNTS, Account)
        accounts.sort(key=lambda a: a.created_at)
        return accounts

    async def rename_account(self, session: Session, account_id: UUID, new_name: str) -> Account:
        new_name = require_text(new_name, "name")
        account = await self.get_account(session, account_id)
        renamed = build_model(Account, **{**account.model_dump(), "name": new_name})

        await self._commit(session, "rename_account", [
            BatchOperation.update(Collections.ACCOUNTS, str(account.id), {"name": renamed.name}),
        ])
        await self._audit(AuditEventBuilder.account_renamed(
            owner_id=session.owner_id,
            account_id=account.id,
            old_name=account.name,
            new_name=renamed.name,
            correlation_id=session.session_id,
        ))
        return renamed

    async def update_account_balance(
        self,
        session: Session,
        account_id: UUID,
        new_balance: Any,
    ) -> Account:
        """
        Overwrite a balance with an absolute value.

        No check is made against the ledger sum, and a concurrent writer's
        change can be lost. Callers must pass the current stored balance
        plus their delta; prefer apply_balance_delta.
        """
        balance = parse_decimal(new_balance, "balance")
        account = await self.get_account(session, account_id)

        await self._commit(session, "update_account_balance", [
            BatchOperation.update(Collections.ACCOUNTS, str(account.id), {"balance": str(balance)}),
        ])
        await self._audit(AuditEventBuilder.balance_overwritten(
            owner_id=session.owner_id,
            account_id=account.id,
            old_balance=account.balance,
            new_balance=balance,
            correlation_id=session.session_id,
        ))
        return account.model_copy(update={"balance": balance})

    async def apply_balance_delta(
        self,
        session: Session,
        account_id: UUID,
        delta: Any,
    ) -> Account:
        """Move a balance by a signed amount, applied inside the store."""
        amount = parse_decimal(delta, "delta")
        account = await self.get_account(session, account_id)

        await self._commit(session, "apply_balance_delta", balance_delta_ops({account.id: amount}))
        await self._audit(AuditEventBuilder.balance_adjusted(
            owner_id=session.owner_id,
            account_id=account.id,
            delta=amount,
            correlation_id=session.session_id,
        ))
        return await self.get_account(session, account_id)

    async def delete_account(self, session: Session, account_id: UUID) -> int:
        """
        Delete an account and every transaction recorded against it.

        The dependent transactions are gathered first, then removed
        together with the account in one batch.

        Returns:
            Number of transactions removed
        """
        account = await self.get_account(session, account_id)
        transactions = await self._list(
            session,
            Collections.TRANSACTIONS,
            Transaction,
            {"account_id": str(account.id)},
        )

        operations = [
            BatchOperation.delete(Collections.TRANSACTIONS, str(txn.id))
            for txn in transactions
        ]
        operations.append(BatchOperation.delete(Collections.ACCOUNTS, str(account.id)))
        await self._commit(session, "delete_account", operations)

        await self._audit(AuditEventBuilder.account_deleted(
            owner_id=session.owner_id,
            account_id=account.id,
            transactions_removed=len(transactions),
            correlation_id=session.session_id,
        ))
        return len(transactions)

    # =========================================================================
    # Transactions
    # =========================================================================

    async def create_transaction(
        self,
        session: Session,
        account_id: UUID,
        kind: Union[TransactionKind, str],
        amount: Any,
        category: str,
        description: str = "",
        date: Any = None,
    ) -> Transaction:
        """
        Record a transaction and move its account's balance, atomically.

        Income adds the amount; expense and subscription subtract it.

        Raises:
            ValidationError: If amount, kind, category or date is invalid
            NotFoundError: If the session owns no such account
        """
        txn = build_model(
            Transaction,
            owner_id=session.owner_id,
            account_id=account_id,
            kind=coerce_enum(TransactionKind, kind, "kind"),
            amount=parse_amount(amount),
            category=require_text(category, "category"),
            description=(description or "").strip(),
            date=parse_date(date) if date is not None else _today(),
        )
        account = await self.get_account(session, txn.account_id)

        await self._commit(session, "create_transaction", [
            BatchOperation.put(Collections.TRANSACTIONS, str(txn.id), txn.to_document()),
            *balance_delta_ops({account.id: txn.signed_amount}),
        ])

        await self._audit(AuditEventBuilder.transaction_created(
            owner_id=session.owner_id,
            transaction_id=txn.id,
            account_id=account.id,
            kind=txn.kind.value,
            amount=txn.amount,
            correlation_id=session.session_id,
        ))
        return txn

    async def get_transaction(self, session: Session, transaction_id: UUID) -> Transaction:
        return await self._load(
            session, Collections.TRANSACTIONS, transaction_id, Transaction, "Transaction"
        )

    async def list_transactions(
        self,
        session: Session,
        account_id: Optional[UUID] = None,
    ) -> list[Transaction]:
        """The owner's transactions, newest first."""
        filters = {"account_id": str(account_id)} if account_id else None
        transactions = await self._list(session, Collections.TRANSACTIONS, Transaction, filters)
        transactions.sort(key=lambda t: (t.date, t.created_at), reverse=True)
        return transactions

    async def update_transaction(
        self,
        session: Session,
        transaction_id: UUID,
        **changes: Any,
    ) -> Transaction:
        """
        Patch a transaction's fields.

        When the patch changes the amount, kind or account, the old
        balance effect is reversed and the new one applied in the same
        batch as the record update.

        Raises:
            ValidationError: If a field cannot be patched or is invalid
            NotFoundError: If the transaction or a new account is missing
        """
        forbidden = sorted(set(changes) & IMMUTABLE_FIELDS)
        if forbidden:
            raise ValidationError(f"Cannot update {', '.join(forbidden)}", forbidden[0])
        unknown = sorted(set(changes) - UPDATABLE_TRANSACTION_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown transaction fields: {', '.join(unknown)}", unknown[0])

        current = await self.get_transaction(session, transaction_id)
        if not changes:
            return current

        if "amount" in changes:
            changes["amount"] = parse_amount(changes["amount"])
        if "kind" in changes:
            changes["kind"] = coerce_enum(TransactionKind, changes["kind"], "kind")
        if "date" in changes:
            changes["date"] = parse_date(changes["date"])
        if "category" in changes:
            changes["category"] = require_text(changes["category"], "category")

        updated = build_model(Transaction, **{**current.model_dump(), **changes})
        if updated.account_id != current.account_id:
            await self.get_account(session, updated.account_id)

        deltas: dict[UUID, Decimal] = defaultdict(Decimal)
        deltas[current.account_id] -= current.signed_amount
        deltas[updated.account_id] += updated.signed_amount

        document = updated.to_document()
        changed = {key: document[key] for key in changes}
        await self._commit(session, "update_transaction", [
            BatchOperation.update(Collections.TRANSACTIONS, str(updated.id), changed),
            *balance_delta_ops(deltas),
        ])

        await self._audit(AuditEventBuilder.transaction_updated(
            owner_id=session.owner_id,
            transaction_id=updated.id,
            changed_fields=sorted(changes),
            correlation_id=session.session_id,
        ))
        return updated

    async def delete_transaction(self, session: Session, transaction_id: UUID) -> None:
        """
        Delete a transaction and reverse its effect on the account balance,
        atomically.
        """
        txn = await self.get_transaction(session, transaction_id)
        operations = [BatchOperation.delete(Collections.TRANSACTIONS, str(txn.id))]

        # An orphan left behind by a failed cascade has no balance to fix
        account_doc = await self._store.get(Collections.ACCOUNTS, str(txn.account_id))
        if account_doc is not None:
            operations.extend(balance_delta_ops({txn.account_id: -txn.signed_amount}))

        await self._commit(session, "delete_transaction", operations)
        await self._audit(AuditEventBuilder.transaction_deleted(
            owner_id=session.owner_id,
            transaction_id=txn.id,
            account_id=txn.account_id,
            reversed_delta=-txn.signed_amount,
            correlation_id=session.session_id,
        ))

    async def reconcile_account(self, session: Session, account_id: UUID) -> AccountReconciliation:
        """Compare an account's stored balance with the one its transactions imply."""
        account = await self.get_account(session, account_id)
        transactions = await self.list_transactions(session, account.id)
        return AccountReconciliation(
            account_id=account.id,
            stored_balance=account.balance,
            expected_balance=expected_balance(account, transactions),
            transaction_count=len(transactions),
        )


def _today() -> date:
    return date.today()
