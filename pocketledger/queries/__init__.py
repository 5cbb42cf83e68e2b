"""Transaction queries."""

from pocketledger.queries.executor import (
    TransactionQuery,
    TransactionQueryResult,
    apply_filters,
    describe,
    group_totals,
    matches,
)

__all__ = [
    "TransactionQuery",
    "TransactionQueryResult",
    "apply_filters",
    "describe",
    "group_totals",
    "matches",
]
