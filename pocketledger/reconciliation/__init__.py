"""CSV import reconciliation."""

from pocketledger.reconciliation.csv_import import (
    EXPECTED_COLUMNS,
    CsvImportError,
    CsvReconciler,
    net_deltas,
    parse_csv,
    resolve_account,
)

__all__ = [
    "EXPECTED_COLUMNS",
    "CsvImportError",
    "CsvReconciler",
    "net_deltas",
    "parse_csv",
    "resolve_account",
]
