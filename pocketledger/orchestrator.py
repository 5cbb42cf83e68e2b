"""
Main Orchestrator for Pocket Ledger

This module ties the engines together behind one facade and defines the
dashboard load flow:
1. Seed default categories for a new owner
2. Load accounts, transactions, people and debts
3. Recompute budget statuses and debt summaries

DESIGN DECISION: The orchestrator holds no state of its own. Every call
takes the Session it acts for, and every derived figure is recomputed
from stored records on each load.
"""

from decimal import Decimal
from typing import Optional

import structlog
from pydantic import BaseModel, Field

from pocketledger.analytics import summarize
from pocketledger.audit import AuditLogger, configure_logging
from pocketledger.config import Settings, get_settings
from pocketledger.engines import BudgetEngine, CategoryEngine, DebtEngine, LedgerEngine
from pocketledger.exports import LedgerExporter
from pocketledger.models.ledger import (
    Account,
    AnalyticsSummary,
    BudgetStatus,
    Category,
    Debt,
    PersonDebt,
    PersonDebtSummary,
    Session,
    Transaction,
)
from pocketledger.queries import TransactionQuery
from pocketledger.reconciliation import CsvReconciler
from pocketledger.services.storage import DocumentStoreInterface, create_storage


logger = structlog.get_logger("pocketledger.orchestrator")


class DashboardSnapshot(BaseModel):
    """Everything the dashboard shows, loaded in one call."""

    accounts: list[Account] = Field(default_factory=list)
    transactions: list[Transaction] = Field(default_factory=list)
    categories: list[Category] = Field(default_factory=list)
    people: list[PersonDebt] = Field(default_factory=list)
    debts: list[Debt] = Field(default_factory=list)
    debt_summaries: list[PersonDebtSummary] = Field(default_factory=list)
    budget_statuses: list[BudgetStatus] = Field(default_factory=list)
    summary: AnalyticsSummary = Field(default_factory=AnalyticsSummary)
    total_balance: Decimal = Decimal("0")
    currency_code: str = "INR"
    currency_symbol: str = "₹"


class FinanceTracker:
    """
    Facade over every engine, sharing one store and one audit logger.

    Usage:
        tracker = create_app_components()
        session = Session(owner_id="user-1")
        account = await tracker.ledger.create_account(session, "Bank Account")
        snapshot = await tracker.load_dashboard(session)
    """

    def __init__(
        self,
        store: DocumentStoreInterface,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[Settings] = None,
    ):
        settings = settings or get_settings()
        self._store = store
        self._app_settings = settings.app
        self.audit_logger = audit_logger or AuditLogger()

        self.ledger = LedgerEngine(store, self.audit_logger)
        self.debts = DebtEngine(store, self.audit_logger)
        self.budgets = BudgetEngine(store, self.audit_logger, settings.budgets)
        self.categories = CategoryEngine(store, self.audit_logger)
        self.reconciler = CsvReconciler(store, self.ledger, self.audit_logger, settings.imports)
        self.queries = TransactionQuery(self.ledger)
        self.exporter = LedgerExporter(store, self.audit_logger)

    @property
    def store(self) -> DocumentStoreInterface:
        return self._store

    async def load_dashboard(self, session: Session) -> DashboardSnapshot:
        """
        Load the owner's full picture, seeding default categories first
        if the owner has none.
        """
        categories = await self.categories.ensure_default_categories(session)
        accounts = await self.ledger.list_accounts(session)
        transactions = await self.ledger.list_transactions(session)
        people = await self.debts.list_people(session)
        debts = await self.debts.list_debts(session)

        snapshot = DashboardSnapshot(
            accounts=accounts,
            transactions=transactions,
            categories=categories,
            people=people,
            debts=debts,
            debt_summaries=await self.debts.summaries(session),
            budget_statuses=await self.budgets.budget_statuses(session),
            summary=summarize(transactions),
            total_balance=sum((a.balance for a in accounts), Decimal("0")),
            currency_code=self._app_settings.currency_code,
            currency_symbol=self._app_settings.currency_symbol,
        )

        logger.info(
            "dashboard_loaded",
            owner_id=session.owner_id,
            accounts=len(accounts),
            transactions=len(transactions),
        )
        return snapshot


def create_app_components(
    settings: Optional[Settings] = None,
) -> FinanceTracker:
    """
    Factory function to create all application components.

    The storage backend comes from LEDGER_STORAGE_BACKEND; the audit
    trail is persisted next to the documents.

    Raises:
        ConnectionError: If the configured storage backend cannot be opened
    """
    settings = settings or get_settings()
    configure_logging(settings.app.log_level, settings.app.debug_mode)

    store, audit_storage = create_storage(settings)
    audit_logger = AuditLogger(audit_storage)

    logger.info(
        "components_created",
        backend=settings.storage.backend,
        environment=settings.app.app_environment,
    )
    return FinanceTracker(store, audit_logger, settings)


__all__ = [
    "DashboardSnapshot",
    "FinanceTracker",
    "create_app_components",
]
