"""
Tests for analytics and transaction queries.
"""

import pytest
from datetime import date
from decimal import Decimal
from uuid import uuid4

from pocketledger.analytics import category_breakdown, summarize, time_series
from pocketledger.models import TimeRange, Transaction, TransactionFilter, TransactionKind
from pocketledger.queries import TransactionQuery, apply_filters, describe, group_totals


ACCOUNT = uuid4()


def txn(kind, amount, category="Other", day=date(2024, 1, 15), description=""):
    return Transaction(
        owner_id="u1",
        account_id=ACCOUNT,
        kind=kind,
        amount=Decimal(amount),
        category=category,
        description=description,
        date=day,
    )


INCOME = TransactionKind.INCOME
EXPENSE = TransactionKind.EXPENSE
SUBSCRIPTION = TransactionKind.SUBSCRIPTION


class TestSummary:
    """Tests for per-kind totals."""

    def test_summary(self):
        """Test totals and net."""
        summary = summarize([
            txn(INCOME, "1000"),
            txn(EXPENSE, "300"),
            txn(EXPENSE, "50"),
            txn(SUBSCRIPTION, "199"),
        ])
        assert summary.income == Decimal("1000")
        assert summary.expenses == Decimal("350")
        assert summary.subscriptions == Decimal("199")
        assert summary.net == Decimal("451")

    def test_empty(self):
        """Test no transactions sums to zero."""
        assert summarize([]).net == Decimal("0")


class TestCategoryBreakdown:
    """Tests for spending per category."""

    def test_sorted_descending_without_income(self):
        """Test expenses and subscriptions grouped, largest first."""
        totals = category_breakdown([
            txn(EXPENSE, "100", "Food & Dining"),
            txn(EXPENSE, "50", "Food & Dining"),
            txn(SUBSCRIPTION, "200", "Streaming"),
            txn(EXPENSE, "20", "Transportation"),
            txn(INCOME, "5000", "Salary"),
        ])
        assert [(t.name, t.value) for t in totals] == [
            ("Streaming", Decimal("200")),
            ("Food & Dining", Decimal("150")),
            ("Transportation", Decimal("20")),
        ]


class TestTimeSeries:
    """Tests for time-bucketed totals."""

    def test_monthly_buckets_by_day(self):
        """Test the last 30 days, one bucket per day, oldest first."""
        today = date(2024, 3, 31)
        series = time_series(
            [
                txn(EXPENSE, "10", day=date(2024, 3, 20)),
                txn(INCOME, "100", day=date(2024, 3, 5)),
                txn(EXPENSE, "5", day=date(2024, 3, 20)),
                txn(SUBSCRIPTION, "9", day=date(2024, 3, 20)),
                txn(EXPENSE, "999", day=date(2024, 2, 1)),
            ],
            TimeRange.MONTHLY,
            today=today,
        )

        assert [b.label for b in series] == ["Mar 5", "Mar 20"]
        assert series[0].income == Decimal("100")
        assert series[1].expense == Decimal("15")
        assert series[1].subscription == Decimal("9")

    def test_yearly_buckets_by_month(self):
        """Test the last 365 days, one bucket per month."""
        series = time_series(
            [
                txn(EXPENSE, "10", day=date(2024, 1, 3)),
                txn(EXPENSE, "20", day=date(2024, 1, 28)),
                txn(EXPENSE, "30", day=date(2023, 12, 31)),
                txn(EXPENSE, "999", day=date(2022, 12, 31)),
            ],
            "yearly",
            today=date(2024, 2, 1),
        )

        assert [b.label for b in series] == ["Dec 23", "Jan 24"]
        assert series[1].expense == Decimal("30")

    def test_all_keeps_years_apart(self):
        """Test the same day in different years stays in separate buckets."""
        series = time_series(
            [
                txn(INCOME, "1", day=date(2024, 1, 15)),
                txn(INCOME, "2", day=date(2023, 1, 15)),
            ],
            TimeRange.ALL,
            today=date(2024, 2, 1),
        )
        assert [b.start for b in series] == [date(2023, 1, 15), date(2024, 1, 15)]
        assert [b.label for b in series] == ["Jan 15", "Jan 15"]

    def test_all_without_transactions(self):
        """Test an empty history gives no buckets."""
        assert time_series([], TimeRange.ALL) == []


class TestFilters:
    """Tests for the pure transaction filter."""

    @pytest.fixture
    def transactions(self):
        return [
            txn(EXPENSE, "500", "Food & Dining", date(2024, 1, 15), "Lunch with team"),
            txn(EXPENSE, "40", "Transportation", date(2024, 1, 20), "Metro card"),
            txn(INCOME, "50000", "Salary", date(2024, 1, 31), "January salary"),
            txn(SUBSCRIPTION, "199", "Streaming", date(2024, 2, 1), "Music"),
        ]

    def test_search_is_case_insensitive(self, transactions):
        """Test description search."""
        matched = apply_filters(transactions, TransactionFilter(search="LUNCH"))
        assert [t.description for t in matched] == ["Lunch with team"]

    def test_bounds_are_inclusive(self, transactions):
        """Test date and amount bounds include their ends."""
        matched = apply_filters(transactions, TransactionFilter(
            start_date=date(2024, 1, 15),
            end_date=date(2024, 1, 31),
            min_amount=Decimal("40"),
            max_amount=Decimal("500"),
        ))
        assert [t.amount for t in matched] == [Decimal("500"), Decimal("40")]

    def test_kind_and_category(self, transactions):
        """Test kind and exact category filters."""
        assert len(apply_filters(transactions, TransactionFilter(kind="expense"))) == 2
        assert apply_filters(transactions, TransactionFilter(category="Food")) == []

    def test_empty_filter_matches_all(self, transactions):
        """Test an empty filter."""
        assert apply_filters(transactions, TransactionFilter()) == transactions

    def test_group_totals(self, transactions):
        """Test grouping by month."""
        assert group_totals(transactions, "month") == {
            "2024-01": Decimal("50540"),
            "2024-02": Decimal("199"),
        }

    def test_describe(self):
        """Test filter descriptions."""
        text = describe(TransactionFilter(
            kind="expense",
            start_date=date(2024, 1, 1),
            end_date=date(2024, 1, 31),
        ))
        assert text == "Transactions | type: expense | in January 2024"


class TestTransactionQuery:
    """Tests for queries through the ledger."""

    async def test_execute(self, ledger, session, other_session):
        """Test queries only see the owner's stored transactions."""
        account = await ledger.create_account(session, "Bank")
        theirs = await ledger.create_account(other_session, "Theirs")
        await ledger.create_transaction(session, account.id, "expense", "30", "Food", "Lunch")
        await ledger.create_transaction(session, account.id, "expense", "70", "Food", "Dinner")
        await ledger.create_transaction(other_session, theirs.id, "expense", "5", "Food", "Lunch")

        query = TransactionQuery(ledger)
        result = await query.execute(session, TransactionFilter(category="Food"))

        assert result.result_count == 2
        assert result.total_amount == Decimal("100")
        assert result.data_found

        lunch = await query.execute(session, TransactionFilter(search="lunch"))
        assert lunch.result_count == 1

    async def test_aggregate(self, ledger, session):
        """Test grouped totals through the ledger."""
        account = await ledger.create_account(session, "Bank")
        await ledger.create_transaction(session, account.id, "expense", "30", "Food")
        await ledger.create_transaction(session, account.id, "income", "70", "Salary")

        totals = await TransactionQuery(ledger).aggregate(session, "kind")
        assert totals == {"expense": Decimal("30"), "income": Decimal("70")}
