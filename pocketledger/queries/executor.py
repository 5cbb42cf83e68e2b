"""
Transaction Query Execution

Filtering is DETERMINISTIC and pure: apply_filters works on any list of
transactions. TransactionQuery reads the owner's transactions through
the ledger and applies the same filters, so a query can only ever
return records that really are stored.
"""

from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Iterable, Literal, Optional

from pydantic import BaseModel, Field

from pocketledger.engines.ledger import LedgerEngine
from pocketledger.models.ledger import Session, Transaction, TransactionFilter


GroupBy = Literal["category", "kind", "account", "month", "year"]


class TransactionQueryResult(BaseModel):
    """Transactions matching a filter, with their total."""

    transactions: list[Transaction] = Field(default_factory=list)
    total_amount: Decimal = Decimal("0")
    query_description: str = ""

    @property
    def result_count(self) -> int:
        return len(self.transactions)

    @property
    def data_found(self) -> bool:
        return bool(self.transactions)


def matches(txn: Transaction, query_filter: TransactionFilter) -> bool:
    """Whether one transaction passes every set field of the filter."""
    if query_filter.search and query_filter.search.lower() not in txn.description.lower():
        return False
    if query_filter.kind and txn.kind != query_filter.kind:
        return False
    if query_filter.category and txn.category != query_filter.category:
        return False
    if query_filter.account_id and txn.account_id != query_filter.account_id:
        return False
    if query_filter.start_date and txn.date < query_filter.start_date:
        return False
    if query_filter.end_date and txn.date > query_filter.end_date:
        return False
    if query_filter.min_amount is not None and txn.amount < query_filter.min_amount:
        return False
    if query_filter.max_amount is not None and txn.amount > query_filter.max_amount:
        return False
    return True


def apply_filters(
    transactions: Iterable[Transaction],
    query_filter: TransactionFilter,
) -> list[Transaction]:
    """Transactions passing the filter, in their original order."""
    return [txn for txn in transactions if matches(txn, query_filter)]


def group_totals(transactions: Iterable[Transaction], group_by: GroupBy) -> dict[str, Decimal]:
    """Sum of amounts per group key."""
    groups: dict[str, Decimal] = defaultdict(Decimal)

    for txn in transactions:
        if group_by == "category":
            key = txn.category
        elif group_by == "kind":
            key = txn.kind.value
        elif group_by == "account":
            key = str(txn.account_id)
        elif group_by == "month":
            key = txn.date.strftime("%Y-%m")
        else:
            key = str(txn.date.year)
        groups[key] += txn.amount

    return dict(groups)


class TransactionQuery:
    """
    Runs transaction filters against stored data.

    Usage:
        query = TransactionQuery(ledger)
        result = await query.execute(session, TransactionFilter(search="rent"))
    """

    def __init__(self, ledger: LedgerEngine):
        self._ledger = ledger

    async def execute(
        self,
        session: Session,
        query_filter: Optional[TransactionFilter] = None,
    ) -> TransactionQueryResult:
        """Filtered transactions, newest first."""
        query_filter = query_filter or TransactionFilter()
        transactions = await self._ledger.list_transactions(session, query_filter.account_id)
        matched = apply_filters(transactions, query_filter)

        return TransactionQueryResult(
            transactions=matched,
            total_amount=sum((txn.amount for txn in matched), Decimal("0")),
            query_description=describe(query_filter),
        )

    async def aggregate(
        self,
        session: Session,
        group_by: GroupBy,
        query_filter: Optional[TransactionFilter] = None,
    ) -> dict[str, Decimal]:
        result = await self.execute(session, query_filter)
        return group_totals(result.transactions, group_by)


def describe(query_filter: TransactionFilter) -> str:
    """Human-readable summary of a filter."""
    parts = ["Transactions"]
    if query_filter.kind:
        parts.append(f"type: {query_filter.kind.value}")
    if query_filter.category:
        parts.append(f"category: {query_filter.category}")
    if query_filter.search:
        parts.append(f"matching \"{query_filter.search}\"")
    if query_filter.start_date or query_filter.end_date:
        parts.append(_date_range_str(query_filter.start_date, query_filter.end_date))
    if query_filter.min_amount is not None or query_filter.max_amount is not None:
        low = query_filter.min_amount if query_filter.min_amount is not None else "any"
        high = query_filter.max_amount if query_filter.max_amount is not None else "any"
        parts.append(f"amount: {low} to {high}")
    return " | ".join(parts)


def _date_range_str(date_from: Optional[date], date_to: Optional[date]) -> str:
    """Format date range for description."""
    if date_from and date_to:
        if date_from == date_to:
            return f"on {date_from.strftime('%d %b %Y')}"
        elif date_from.month == date_to.month and date_from.year == date_to.year:
            return f"in {date_from.strftime('%B %Y')}"
        elif date_from.year == date_to.year:
            return f"from {date_from.strftime('%b')} to {date_to.strftime('%b %Y')}"
        else:
            return f"from {date_from.strftime('%b %Y')} to {date_to.strftime('%b %Y')}"
    elif date_from:
        return f"from {date_from.strftime('%d %b %Y')}"
    elif date_to:
        return f"until {date_to.strftime('%d %b %Y')}"
    return ""
