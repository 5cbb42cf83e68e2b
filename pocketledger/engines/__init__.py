"""Ledger, debt, budget and category engines."""

from pocketledger.engines.budgets import BudgetEngine, budget_status, classify, compute_spent
from pocketledger.engines.categories import (
    DEFAULT_EXPENSE_CATEGORIES,
    DEFAULT_INCOME_CATEGORIES,
    DEFAULT_SUBSCRIPTION_CATEGORIES,
    SEED_CATEGORIES,
    CategoryEngine,
)
from pocketledger.engines.debts import DebtEngine, person_summary
from pocketledger.engines.ledger import LedgerEngine, balance_delta_ops, expected_balance

__all__ = [
    "BudgetEngine",
    "CategoryEngine",
    "DebtEngine",
    "LedgerEngine",
    "DEFAULT_EXPENSE_CATEGORIES",
    "DEFAULT_INCOME_CATEGORIES",
    "DEFAULT_SUBSCRIPTION_CATEGORIES",
    "SEED_CATEGORIES",
    "balance_delta_ops",
    "budget_status",
    "classify",
    "compute_spent",
    "expected_balance",
    "person_summary",
]
