"""
Data Models Package

This package contains all Pydantic models used in Pocket Ledger.
All data flowing through the system must conform to these schemas.
"""

from pocketledger.models.ledger import (
    Account,
    AccountKind,
    AccountReconciliation,
    AnalyticsSummary,
    Budget,
    BudgetState,
    BudgetStatus,
    Category,
    CategoryKind,
    CategoryTotal,
    Collections,
    CsvImportResult,
    CsvParseResult,
    Debt,
    DebtKind,
    DebtStatus,
    LedgerRecord,
    PersonDebt,
    PersonDebtSummary,
    RowError,
    SeriesBucket,
    Session,
    TimeRange,
    Transaction,
    TransactionDraft,
    TransactionFilter,
    TransactionKind,
    signed_amount,
)
from pocketledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "Account",
    "AccountKind",
    "AccountReconciliation",
    "AnalyticsSummary",
    "Budget",
    "BudgetState",
    "BudgetStatus",
    "Category",
    "CategoryKind",
    "CategoryTotal",
    "Collections",
    "CsvImportResult",
    "CsvParseResult",
    "Debt",
    "DebtKind",
    "DebtStatus",
    "LedgerRecord",
    "PersonDebt",
    "PersonDebtSummary",
    "RowError",
    "SeriesBucket",
    "Session",
    "TimeRange",
    "Transaction",
    "TransactionDraft",
    "TransactionFilter",
    "TransactionKind",
    "signed_amount",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
