"""
Data Export

Two formats leave the ledger:
- A JSON backup of every collection the owner has, stamped with exportDate
- A CSV of transactions for spreadsheets

Both are rendered to strings. Writing them somewhere is the caller's job.
"""

import csv
import io
import json
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable, Optional

from pocketledger.engines.base import OwnedRecordEngine
from pocketledger.models.ledger import (
    Account,
    Collections,
    Session,
    Transaction,
    utc_now,
)


CSV_HEADERS = ("Date", "Description", "Category", "Type", "Amount", "Account")
UNKNOWN_ACCOUNT = "Unknown"

# Backup key for each collection
BACKUP_KEYS = {
    Collections.ACCOUNTS: "accounts",
    Collections.TRANSACTIONS: "transactions",
    Collections.BUDGETS: "budgets",
    Collections.CATEGORIES: "categories",
    Collections.PERSON_DEBTS: "personDebts",
    Collections.DEBTS: "debts",
}


def format_amount(amount: Decimal) -> str:
    return str(amount.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def format_date(day: date) -> str:
    return day.strftime("%d/%m/%Y")


def export_transactions_csv(
    transactions: Iterable[Transaction],
    accounts: Iterable[Account],
) -> str:
    """
    Render transactions as CSV.

    The header row is bare; every value below it is quoted.
    """
    names = {account.id: account.name for account in accounts}
    buffer = io.StringIO()
    buffer.write(",".join(CSV_HEADERS) + "\n")

    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    for txn in transactions:
        writer.writerow([
            format_date(txn.date),
            txn.description,
            txn.category,
            txn.kind.value,
            format_amount(txn.amount),
            names.get(txn.account_id, UNKNOWN_ACCOUNT),
        ])

    return buffer.getvalue().rstrip("\n")


def backup_filename(prefix: str, day: Optional[date] = None) -> str:
    """e.g. pocketledger-backup-2024-01-15.json"""
    return f"{prefix}-backup-{(day or date.today()).isoformat()}.json"


class LedgerExporter(OwnedRecordEngine):
    """Reads everything an owner has and renders it for export."""

    async def build_backup(self, session: Session) -> dict[str, Any]:
        backup: dict[str, Any] = {"user": {"owner_id": session.owner_id}}
        for collection, key in BACKUP_KEYS.items():
            backup[key] = await self._store.query_by_owner(collection, session.owner_id)
        backup["exportDate"] = _iso_timestamp(utc_now())
        return backup

    async def export_json(self, session: Session) -> str:
        return json.dumps(await self.build_backup(session), indent=2, ensure_ascii=False)

    async def export_csv(self, session: Session) -> str:
        """All of the owner's transactions, newest first, as CSV."""
        transactions = await self._list(session, Collections.TRANSACTIONS, Transaction)
        transactions.sort(key=lambda t: (t.date, t.created_at), reverse=True)
        accounts = await self._list(session, Collections.ACCOUNTS, Account)
        return export_transactions_csv(transactions, accounts)


def _iso_timestamp(moment: datetime) -> str:
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")
