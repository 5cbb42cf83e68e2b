"""
Analytics Aggregator

Read-only views over a list of transactions. Nothing here touches
storage: every function takes the transactions it summarises.
"""

from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable, Optional, Union

from pocketledger.models.ledger import (
    AnalyticsSummary,
    CategoryTotal,
    SeriesBucket,
    TimeRange,
    Transaction,
    TransactionKind,
)


# Look-back windows, in days
RANGE_DAYS = {
    TimeRange.MONTHLY: 30,
    TimeRange.YEARLY: 365,
}


def summarize(transactions: Iterable[Transaction]) -> AnalyticsSummary:
    """Totals per transaction kind."""
    summary = AnalyticsSummary()
    for txn in transactions:
        if txn.kind == TransactionKind.INCOME:
            summary.income += txn.amount
        elif txn.kind == TransactionKind.EXPENSE:
            summary.expenses += txn.amount
        else:
            summary.subscriptions += txn.amount
    return summary


def category_breakdown(transactions: Iterable[Transaction]) -> list[CategoryTotal]:
    """
    Spending per category, largest first.

    Expenses and subscriptions are counted; income is not.
    """
    totals: dict[str, Decimal] = {}
    for txn in transactions:
        if txn.kind == TransactionKind.INCOME:
            continue
        totals[txn.category] = totals.get(txn.category, Decimal("0")) + txn.amount

    return sorted(
        (CategoryTotal(name=name, value=value) for name, value in totals.items()),
        key=lambda total: total.value,
        reverse=True,
    )


def range_start(
    transactions: list[Transaction],
    time_range: TimeRange,
    today: date,
) -> Optional[date]:
    """First day a range covers. None for ALL over no transactions."""
    if time_range == TimeRange.ALL:
        return min((txn.date for txn in transactions), default=None)
    return today - timedelta(days=RANGE_DAYS[time_range])


def time_series(
    transactions: Iterable[Transaction],
    time_range: Union[TimeRange, str] = TimeRange.MONTHLY,
    today: Optional[date] = None,
) -> list[SeriesBucket]:
    """
    Per-kind totals bucketed by day (monthly, all) or by month (yearly),
    oldest bucket first.

    Labels look like "Jan 15" for a day and "Jan 24" for a month.
    """
    time_range = TimeRange(time_range)
    today = today or date.today()
    transactions = list(transactions)

    start = range_start(transactions, time_range, today)
    if start is None:
        return []

    by_month = time_range == TimeRange.YEARLY
    buckets: dict[date, SeriesBucket] = {}

    for txn in transactions:
        if txn.date < start:
            continue

        key = txn.date.replace(day=1) if by_month else txn.date
        bucket = buckets.get(key)
        if bucket is None:
            bucket = SeriesBucket(label=_label(key, by_month), start=key)
            buckets[key] = bucket

        if txn.kind == TransactionKind.INCOME:
            bucket.income += txn.amount
        elif txn.kind == TransactionKind.EXPENSE:
            bucket.expense += txn.amount
        else:
            bucket.subscription += txn.amount

    return [buckets[key] for key in sorted(buckets)]


def _label(day: date, by_month: bool) -> str:
    if by_month:
        return day.strftime("%b %y")
    return f"{day.strftime('%b')} {day.day}"
