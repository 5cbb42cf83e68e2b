"""
Core Data Models for Pocket Ledger

These models define the strict schemas for every record the ledger stores
and every derived value it computes. They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Round-trip through the document store as plain JSON fields

Stored records carry their owner; derived values (budget status, debt
summaries, analytics) are never stored.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    model_validator,
)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class AccountKind(str, Enum):
    """Kinds of money accounts."""
    BANK = "bank"
    CREDIT_CARD = "credit_card"


class TransactionKind(str, Enum):
    """
    Transaction kinds.

    SUBSCRIPTION moves money like an EXPENSE but is reported separately.
    """
    INCOME = "income"
    EXPENSE = "expense"
    SUBSCRIPTION = "subscription"


class CategoryKind(str, Enum):
    """Which kind of record a category is offered for."""
    INCOME = "income"
    EXPENSE = "expense"
    SUBSCRIPTION = "subscription"
    DEBT = "debt"


class DebtKind(str, Enum):
    """Direction of a peer debt."""
    LENT = "lent"           # money you gave them
    BORROWED = "borrowed"   # money you took


class DebtStatus(str, Enum):
    """
    Debt lifecycle.

    PAID is terminal. There is no transition back to PENDING.
    """
    PENDING = "pending"
    PAID = "paid"


class BudgetState(str, Enum):
    """Spend-vs-limit classification of a budget."""
    NORMAL = "normal"
    WARNING = "warning"
    EXCEEDED = "exceeded"


class TimeRange(str, Enum):
    """Range selector for time-bucketed analytics."""
    MONTHLY = "monthly"     # last 30 days, bucketed by day
    YEARLY = "yearly"       # last 365 days, bucketed by month
    ALL = "all"             # from the earliest transaction, bucketed by day


class Collections:
    """Document store collection names."""
    ACCOUNTS = "accounts"
    TRANSACTIONS = "transactions"
    BUDGETS = "budgets"
    CATEGORIES = "categories"
    PERSON_DEBTS = "person_debts"
    DEBTS = "debts"

    ALL = (ACCOUNTS, TRANSACTIONS, BUDGETS, CATEGORIES, PERSON_DEBTS, DEBTS)


# =============================================================================
# SESSION CONTEXT
# =============================================================================

class Session(BaseModel):
    """
    The caller context threaded into every engine operation.

    owner_id scopes every read and write. session_id doubles as the
    correlation id of the audit events the call produces.
    """
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    owner_id: str = Field(
        ...,
        min_length=1,
        max_length=128,
        description="Identity all records are scoped to"
    )
    session_id: UUID = Field(
        default_factory=uuid4,
        description="Identifier of this client session"
    )
    started_at: datetime = Field(
        default_factory=utc_now
    )


# =============================================================================
# STORED RECORDS
# =============================================================================

class LedgerRecord(BaseModel):
    """Base for every record persisted in the document store."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique record ID"
    )
    owner_id: str = Field(
        ...,
        min_length=1,
        description="Owner of this record"
    )

    def to_document(self) -> dict[str, Any]:
        """Convert to plain JSON-compatible fields for the document store."""
        return self.model_dump(mode="json")

    @classmethod
    def from_document(cls, fields: dict[str, Any]):
        """Rebuild a record from document store fields."""
        return cls.model_validate(fields)


class Account(LedgerRecord):
    """
    A bank account or credit card.

    balance is a stored running total. It must always equal
    initial_balance plus income minus expenses and subscriptions over the
    account's transactions.
    """

    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Display name"
    )
    kind: AccountKind = Field(
        default=AccountKind.BANK,
        description="Account kind"
    )
    balance: Decimal = Field(
        ...,
        description="Current balance"
    )
    initial_balance: Decimal = Field(
        default=Decimal("0"),
        description="Balance the account was opened with"
    )
    created_at: datetime = Field(
        default_factory=utc_now
    )


class Transaction(LedgerRecord):
    """A single income, expense or subscription payment against an account."""

    account_id: UUID = Field(
        ...,
        description="Account this transaction moves money in"
    )
    kind: TransactionKind
    amount: Decimal = Field(
        ...,
        gt=0,
        description="Unsigned amount"
    )
    category: str = Field(
        ...,
        min_length=1,
        max_length=100
    )
    description: str = Field(
        default="",
        max_length=500
    )
    date: date
    created_at: datetime = Field(
        default_factory=utc_now
    )

    @property
    def signed_amount(self) -> Decimal:
        """Effect of this transaction on its account's balance."""
        return signed_amount(self.kind, self.amount)


class Budget(LedgerRecord):
    """
    A monthly spending limit for one category.

    How much was spent is never stored here; see the budget engine.
    """

    category: str = Field(
        ...,
        min_length=1,
        max_length=100
    )
    month: str = Field(
        ...,
        pattern=r"^\d{4}-(0[1-9]|1[0-2])$",
        description="Month in YYYY-MM format"
    )
    limit: Decimal = Field(
        ...,
        gt=0,
        description="Spending limit for the month"
    )


class Category(LedgerRecord):
    """A free-form category offered when recording transactions."""

    name: str = Field(
        ...,
        min_length=1,
        max_length=100
    )
    kind: CategoryKind
    color: Optional[str] = Field(
        default="#000000",
        pattern=r"^#[0-9a-fA-F]{6}$"
    )


class PersonDebt(LedgerRecord):
    """A contact that money is lent to or borrowed from."""

    person_name: str = Field(
        ...,
        min_length=1,
        max_length=100
    )
    created_at: datetime = Field(
        default_factory=utc_now
    )


class Debt(LedgerRecord):
    """
    One lent or borrowed amount with a person.

    Debts are reminders only. They never touch account balances.
    """

    person_debt_id: UUID
    kind: DebtKind
    amount: Decimal = Field(
        ...,
        gt=0
    )
    description: str = Field(
        default="",
        max_length=500
    )
    status: DebtStatus = Field(
        default=DebtStatus.PENDING
    )
    created_at: datetime = Field(
        default_factory=utc_now
    )


def signed_amount(kind: TransactionKind, amount: Decimal) -> Decimal:
    """+amount for income, -amount for expense and subscription."""
    return amount if kind == TransactionKind.INCOME else -amount


# =============================================================================
# CSV IMPORT MODELS
# =============================================================================

class TransactionDraft(BaseModel):
    """
    A transaction parsed from an import file, not yet persisted.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    account_id: UUID
    kind: TransactionKind
    amount: Decimal = Field(
        ...,
        gt=0
    )
    category: str = Field(
        ...,
        min_length=1,
        max_length=100
    )
    description: str = Field(
        default="",
        max_length=500
    )
    date: date
    row_number: Optional[int] = Field(
        default=None,
        ge=2,
        description="Line of the source file this draft came from"
    )

    @property
    def signed_amount(self) -> Decimal:
        return signed_amount(self.kind, self.amount)


class RowError(BaseModel):
    """A problem with one row of an import file."""

    row: int = Field(
        ...,
        ge=1,
        description="1-based line number in the file (header is row 1)"
    )
    field: Optional[str] = None
    message: str

    def __str__(self) -> str:
        return f"Row {self.row}: {self.message}"


class CsvParseResult(BaseModel):
    """Drafts that parsed cleanly plus the rows that did not."""

    drafts: list[TransactionDraft] = Field(default_factory=list)
    errors: list[RowError] = Field(default_factory=list)

    @property
    def valid_count(self) -> int:
        return len(self.drafts)

    @property
    def error_count(self) -> int:
        return len(self.errors)


class CsvImportResult(BaseModel):
    """Outcome of applying an import: what was written and what was skipped."""

    transactions: list[Transaction] = Field(default_factory=list)
    balance_deltas: dict[UUID, Decimal] = Field(
        default_factory=dict,
        description="Net balance change applied per account"
    )
    errors: list[RowError] = Field(default_factory=list)

    @property
    def imported_count(self) -> int:
        return len(self.transactions)


# =============================================================================
# DERIVED VIEWS - recomputed on every read, never stored
# =============================================================================

class BudgetStatus(BaseModel):
    """A budget with its spend recomputed from transactions."""

    budget: Budget
    spent: Decimal
    percentage: float = Field(
        ...,
        ge=0.0
    )
    state: BudgetState

    @property
    def remaining(self) -> Decimal:
        """Limit minus spent. Negative once the budget is exceeded."""
        return self.budget.limit - self.spent


class PersonDebtSummary(BaseModel):
    """Pending totals for one person. Paid debts only count toward paid_count."""

    person: PersonDebt
    lent: Decimal = Decimal("0")
    borrowed: Decimal = Decimal("0")
    pending_count: int = 0
    paid_count: int = 0

    @property
    def net(self) -> Decimal:
        """Positive when they owe you, negative when you owe them."""
        return self.lent - self.borrowed


class AccountReconciliation(BaseModel):
    """Stored balance of an account against the one its transactions imply."""

    account_id: UUID
    stored_balance: Decimal
    expected_balance: Decimal
    transaction_count: int

    @property
    def drift(self) -> Decimal:
        return self.stored_balance - self.expected_balance

    @property
    def is_consistent(self) -> bool:
        return self.drift == 0


class AnalyticsSummary(BaseModel):
    """Income, expense and subscription totals for a transaction set."""

    income: Decimal = Decimal("0")
    expenses: Decimal = Decimal("0")
    subscriptions: Decimal = Decimal("0")

    @property
    def net(self) -> Decimal:
        return self.income - self.expenses - self.subscriptions


class CategoryTotal(BaseModel):
    name: str
    value: Decimal


class SeriesBucket(BaseModel):
    """Per-kind totals for one day or one month."""

    label: str
    start: date
    income: Decimal = Decimal("0")
    expense: Decimal = Decimal("0")
    subscription: Decimal = Decimal("0")


# =============================================================================
# QUERY MODELS
# =============================================================================

class TransactionFilter(BaseModel):
    """
    Filters for listing transactions. Every bound is inclusive and
    every unset field matches everything.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    search: Optional[str] = Field(
        default=None,
        description="Case-insensitive substring of the description"
    )
    kind: Optional[TransactionKind] = None
    category: Optional[str] = None
    account_id: Optional[UUID] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    min_amount: Optional[Decimal] = Field(
        default=None,
        ge=0
    )
    max_amount: Optional[Decimal] = Field(
        default=None,
        ge=0
    )

    @model_validator(mode='after')
    def validate_ranges(self) -> 'TransactionFilter':
        """Validate range bounds."""
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("End date cannot be before start date")

        if (
            self.min_amount is not None
            and self.max_amount is not None
            and self.max_amount < self.min_amount
        ):
            raise ValueError("Maximum amount cannot be below minimum amount")

        return self
