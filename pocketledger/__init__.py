"""
Pocket Ledger - Source Package

A personal finance ledger: accounts, transactions, subscriptions,
monthly budgets and informal peer debts, kept mutually consistent.

DESIGN PRINCIPLES:
1. Every multi-step change is one atomic storage batch
2. Balances move by deltas, never by recomputed absolutes
3. Derived figures (budget spend, debt totals) are recomputed on read
4. Bad import rows are reported, not fatal
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Pocket Ledger Team"
