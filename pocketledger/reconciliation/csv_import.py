"""
CSV Import Reconciliation

Turns an untrusted CSV file into transactions in two steps:

1. PARSE (pure): every data row becomes either a TransactionDraft or a
   RowError. A bad row never stops the others.
2. APPLY: the drafts are written together with one balance increment per
   account, holding the account's net delta, in a single atomic batch.

Expected header (case-insensitive, any order):

    date,account,type,category,description,amount

Row numbers are 1-based lines of the file; the header is row 1.
"""

import csv
import io
from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional, Sequence
from uuid import UUID

import structlog

from pocketledger.audit import AuditLogger
from pocketledger.config import ImportSettings, get_settings
from pocketledger.engines.base import OwnedRecordEngine
from pocketledger.engines.ledger import LedgerEngine, balance_delta_ops
from pocketledger.models.audit import AuditEventBuilder
from pocketledger.models.ledger import (
    Account,
    Collections,
    CsvImportResult,
    CsvParseResult,
    RowError,
    Session,
    Transaction,
    TransactionDraft,
    TransactionKind,
)
from pocketledger.services.storage import BatchOperation, DocumentStoreInterface, NotFoundError
from pocketledger.validation import ValidationError, build_model, parse_amount, parse_date


logger = structlog.get_logger("pocketledger.reconciliation")

EXPECTED_COLUMNS = ("date", "account", "type", "category", "description", "amount")


class CsvImportError(ValidationError):
    """No row of an import file could be used."""

    def __init__(self, message: str, errors: Optional[list[RowError]] = None):
        super().__init__(message)
        self.errors = errors or []


def resolve_account(name: str, accounts: Sequence[Account]) -> Optional[Account]:
    """
    Pick the account a row refers to.

    Exact name first, then an account whose name contains the given
    text, then the first account. All comparisons ignore case.
    """
    if not accounts:
        return None

    wanted = name.strip().lower()
    if wanted:
        for account in accounts:
            if account.name.lower() == wanted:
                return account
        for account in accounts:
            if wanted in account.name.lower():
                return account

    return accounts[0]


def parse_csv(
    text: str,
    accounts: Sequence[Account],
    settings: Optional[ImportSettings] = None,
    today: Optional[date] = None,
) -> CsvParseResult:
    """
    Parse CSV text into transaction drafts and per-row errors.

    Raises:
        CsvImportError: If the file has no header, no data rows, or more
            rows than the configured maximum
    """
    settings = settings or get_settings().imports
    today = today or date.today()

    reader = csv.reader(io.StringIO(text.lstrip("\ufeff")))
    header = next(reader, None)
    if not header or not any(cell.strip() for cell in header):
        raise CsvImportError("CSV file is empty", [RowError(row=1, message="Missing header row")])

    columns = [cell.strip().lower() for cell in header]
    result = CsvParseResult()
    data_rows = 0

    for values in reader:
        if not any(value.strip() for value in values):
            continue

        data_rows += 1
        if data_rows > settings.max_rows:
            raise CsvImportError(f"CSV file has more than {settings.max_rows} data rows")

        row = {
            column: values[index].strip() if index < len(values) else ""
            for index, column in enumerate(columns)
        }
        draft_or_error = _parse_row(row, reader.line_num, accounts, settings, today)
        if isinstance(draft_or_error, RowError):
            result.errors.append(draft_or_error)
        else:
            result.drafts.append(draft_or_error)

    if data_rows == 0:
        raise CsvImportError("No valid data found in CSV file")

    return result


def _parse_row(
    row: dict[str, str],
    row_number: int,
    accounts: Sequence[Account],
    settings: ImportSettings,
    today: date,
):
    try:
        amount = parse_amount(row.get("amount", ""))
        txn_date = (
            parse_date(row["date"], settings.date_formats_list)
            if row.get("date")
            else today
        )
    except ValidationError as e:
        return RowError(row=row_number, field=e.field, message=e.message)

    account = resolve_account(row.get("account", ""), accounts)
    if account is None:
        return RowError(row=row_number, field="account", message="No account to import into")

    raw_type = row.get("type", "").lower()
    valid_types = {kind.value for kind in TransactionKind}
    kind = raw_type if raw_type in valid_types else settings.default_type

    try:
        return build_model(
            TransactionDraft,
            account_id=account.id,
            kind=kind,
            amount=amount,
            category=row.get("category") or settings.default_category,
            description=row.get("description", ""),
            date=txn_date,
            row_number=row_number,
        )
    except ValidationError as e:
        return RowError(row=row_number, field=e.field, message=e.message)


def net_deltas(drafts: Iterable[TransactionDraft]) -> dict[UUID, Decimal]:
    """Signed sum of the drafts' amounts per account."""
    deltas: dict[UUID, Decimal] = defaultdict(Decimal)
    for draft in drafts:
        deltas[draft.account_id] += draft.signed_amount
    return dict(deltas)


class CsvReconciler(OwnedRecordEngine):
    """
    Imports CSV files into the ledger.

    Usage:
        reconciler = CsvReconciler(store, ledger, audit_logger)
        result = await reconciler.import_csv(session, text)
    """

    def __init__(
        self,
        store: DocumentStoreInterface,
        ledger: LedgerEngine,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[ImportSettings] = None,
    ):
        super().__init__(store, audit_logger)
        self._ledger = ledger
        self._settings = settings or get_settings().imports

    async def parse(self, session: Session, text: str) -> CsvParseResult:
        """Parse against the session's accounts without writing anything."""
        accounts = await self._ledger.list_accounts(session)
        return parse_csv(text, accounts, self._settings)

    async def apply(
        self,
        session: Session,
        drafts: Sequence[TransactionDraft],
    ) -> CsvImportResult:
        """
        Persist drafts and their net balance changes in one batch.

        Each account with a non-zero net delta gets exactly one increment.

        Raises:
            NotFoundError: If a draft names an account the session doesn't own
        """
        owned = {account.id for account in await self._ledger.list_accounts(session)}
        missing = sorted({str(d.account_id) for d in drafts if d.account_id not in owned})
        if missing:
            raise NotFoundError(f"Account not found: {', '.join(missing)}")

        transactions = [
            build_model(
                Transaction,
                owner_id=session.owner_id,
                **draft.model_dump(exclude={"row_number"}),
            )
            for draft in drafts
        ]
        deltas = net_deltas(drafts)

        operations = [
            BatchOperation.put(Collections.TRANSACTIONS, str(txn.id), txn.to_document())
            for txn in transactions
        ]
        operations.extend(balance_delta_ops(deltas))
        await self._commit(session, "import_csv", operations)

        return CsvImportResult(
            transactions=transactions,
            balance_deltas={k: v for k, v in deltas.items() if v != 0},
        )

    async def import_csv(self, session: Session, text: str) -> CsvImportResult:
        """
        Parse and apply a CSV file.

        Valid rows are imported even when others are rejected; the
        rejected rows come back in result.errors.

        Raises:
            CsvImportError: If no row is valid
        """
        try:
            parsed = await self.parse(session, text)
            if not parsed.drafts:
                raise CsvImportError(
                    f"Failed to parse CSV: {len(parsed.errors)} invalid rows",
                    parsed.errors,
                )
        except CsvImportError as e:
            await self._audit(AuditEventBuilder.csv_import_failed(
                owner_id=session.owner_id,
                errors=[str(err) for err in e.errors] or [e.message],
                correlation_id=session.session_id,
            ))
            raise

        result = await self.apply(session, parsed.drafts)
        result.errors = parsed.errors

        logger.info(
            "csv_import_applied",
            owner_id=session.owner_id,
            imported=result.imported_count,
            skipped=len(result.errors),
        )
        await self._audit(AuditEventBuilder.csv_import_completed(
            owner_id=session.owner_id,
            imported=result.imported_count,
            skipped=len(result.errors),
            balance_deltas=result.balance_deltas,
            correlation_id=session.session_id,
        ))
        return result
