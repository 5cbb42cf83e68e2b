"""JSON backup and CSV export."""

from pocketledger.exports.exporter import (
    CSV_HEADERS,
    LedgerExporter,
    backup_filename,
    export_transactions_csv,
)

__all__ = [
    "CSV_HEADERS",
    "LedgerExporter",
    "backup_filename",
    "export_transactions_csv",
]
