"""
Audit Models for Pocket Ledger

Every change the ledger makes is logged for audit purposes.
This provides:
1. A history of balance-affecting operations
2. Debugging information when a balance drifts
3. Ability to reconstruct what an import did

Audit logs are append-only. Events are never modified or deleted.
"""

import json
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    Types of events we audit.
    """
    # Accounts
    ACCOUNT_CREATED = "account_created"
    ACCOUNT_RENAMED = "account_renamed"
    ACCOUNT_DELETED = "account_deleted"
    BALANCE_OVERWRITTEN = "balance_overwritten"
    BALANCE_ADJUSTED = "balance_adjusted"

    # Transactions
    TRANSACTION_CREATED = "transaction_created"
    TRANSACTION_UPDATED = "transaction_updated"
    TRANSACTION_DELETED = "transaction_deleted"

    # CSV import
    CSV_IMPORT_COMPLETED = "csv_import_completed"
    CSV_IMPORT_FAILED = "csv_import_failed"

    # Budgets and categories
    BUDGET_CREATED = "budget_created"
    BUDGET_UPDATED = "budget_updated"
    BUDGET_DELETED = "budget_deleted"
    CATEGORIES_SEEDED = "categories_seeded"
    CATEGORY_CREATED = "category_created"

    # Debts
    PERSON_CREATED = "person_created"
    PERSON_REMOVED = "person_removed"
    DEBT_CREATED = "debt_created"
    DEBT_PAID = "debt_paid"
    DEBT_REMOVED = "debt_removed"

    # System events
    STORAGE_ERROR = "storage_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    Every significant ledger change creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Who and what
    owner_id: Optional[str] = Field(
        default=None,
        description="Owner whose records were touched"
    )
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'account', 'transaction', 'debt')"
    )
    entity_id: Optional[UUID] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - the session that caused the event
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="Session ID of the call that produced this event"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "owner_id": self.owner_id,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }

    def to_row(self) -> tuple:
        """
        Convert to a row for tabular audit storage.

        Columns in order:
        (event_id, timestamp, event_type, severity, owner_id, entity_type,
         entity_id, correlation_id, description, details_json, error_message)
        """
        return (
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.owner_id or "",
            self.entity_type or "",
            str(self.entity_id) if self.entity_id else "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details) if self.details else "",
            self.error_message or "",
        )

    @classmethod
    def from_row(cls, row) -> "AuditEvent":
        """Rebuild an event from a row produced by to_row()."""
        return cls(
            event_id=UUID(row[0]),
            timestamp=datetime.fromisoformat(row[1]),
            event_type=AuditEventType(row[2]),
            severity=AuditSeverity(row[3]),
            owner_id=row[4] or None,
            entity_type=row[5] or None,
            entity_id=UUID(row[6]) if row[6] else None,
            correlation_id=UUID(row[7]) if row[7] else None,
            description=row[8],
            details=json.loads(row[9]) if row[9] else {},
            error_message=row[10] or None,
        )


def _money(amount: Decimal) -> str:
    return str(amount)


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.account_created(owner_id, account_id, name, balance, session_id)
        event = AuditEventBuilder.debt_paid(owner_id, debt_id, amount, session_id)
    """

    @staticmethod
    def account_created(
        owner_id: str,
        account_id: UUID,
        name: str,
        initial_balance: Decimal,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCOUNT_CREATED,
            owner_id=owner_id,
            entity_type="account",
            entity_id=account_id,
            correlation_id=correlation_id,
            description=f"Account created: {name}",
            details={"name": name, "initial_balance": _money(initial_balance)},
        )

    @staticmethod
    def account_renamed(
        owner_id: str,
        account_id: UUID,
        old_name: str,
        new_name: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCOUNT_RENAMED,
            owner_id=owner_id,
            entity_type="account",
            entity_id=account_id,
            correlation_id=correlation_id,
            description=f"Account renamed from {old_name} to {new_name}",
            details={"old_name": old_name, "new_name": new_name},
        )

    @staticmethod
    def account_deleted(
        owner_id: str,
        account_id: UUID,
        transactions_removed: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCOUNT_DELETED,
            severity=AuditSeverity.WARNING,
            owner_id=owner_id,
            entity_type="account",
            entity_id=account_id,
            correlation_id=correlation_id,
            description=f"Account deleted with {transactions_removed} transactions",
            details={"transactions_removed": transactions_removed},
        )

    @staticmethod
    def balance_overwritten(
        owner_id: str,
        account_id: UUID,
        old_balance: Decimal,
        new_balance: Decimal,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BALANCE_OVERWRITTEN,
            severity=AuditSeverity.WARNING,
            owner_id=owner_id,
            entity_type="account",
            entity_id=account_id,
            correlation_id=correlation_id,
            description="Account balance overwritten directly",
            details={
                "old_balance": _money(old_balance),
                "new_balance": _money(new_balance),
            },
        )

    @staticmethod
    def balance_adjusted(
        owner_id: str,
        account_id: UUID,
        delta: Decimal,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BALANCE_ADJUSTED,
            owner_id=owner_id,
            entity_type="account",
            entity_id=account_id,
            correlation_id=correlation_id,
            description=f"Account balance adjusted by {delta}",
            details={"delta": _money(delta)},
        )

    @staticmethod
    def transaction_created(
        owner_id: str,
        transaction_id: UUID,
        account_id: UUID,
        kind: str,
        amount: Decimal,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_CREATED,
            owner_id=owner_id,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Recorded {kind} of {amount}",
            details={
                "account_id": str(account_id),
                "kind": kind,
                "amount": _money(amount),
            },
        )

    @staticmethod
    def transaction_updated(
        owner_id: str,
        transaction_id: UUID,
        changed_fields: list[str],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_UPDATED,
            owner_id=owner_id,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Transaction updated: {', '.join(changed_fields)}",
            details={"changed_fields": changed_fields},
        )

    @staticmethod
    def transaction_deleted(
        owner_id: str,
        transaction_id: UUID,
        account_id: UUID,
        reversed_delta: Decimal,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_DELETED,
            owner_id=owner_id,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description="Transaction deleted and its balance effect reversed",
            details={
                "account_id": str(account_id),
                "reversed_delta": _money(reversed_delta),
            },
        )

    @staticmethod
    def csv_import_completed(
        owner_id: str,
        imported: int,
        skipped: int,
        balance_deltas: dict[UUID, Decimal],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CSV_IMPORT_COMPLETED,
            severity=AuditSeverity.WARNING if skipped else AuditSeverity.INFO,
            owner_id=owner_id,
            entity_type="import",
            correlation_id=correlation_id,
            description=f"Imported {imported} transactions, skipped {skipped} rows",
            details={
                "imported": imported,
                "skipped": skipped,
                "balance_deltas": {
                    str(account_id): _money(delta)
                    for account_id, delta in balance_deltas.items()
                },
            },
        )

    @staticmethod
    def csv_import_failed(
        owner_id: str,
        errors: list[str],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CSV_IMPORT_FAILED,
            severity=AuditSeverity.ERROR,
            owner_id=owner_id,
            entity_type="import",
            correlation_id=correlation_id,
            description="CSV import produced no valid rows",
            details={"errors": errors[:50]},
        )

    @staticmethod
    def budget_changed(
        event_type: AuditEventType,
        owner_id: str,
        budget_id: UUID,
        category: str,
        month: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        verb = {
            AuditEventType.BUDGET_CREATED: "created",
            AuditEventType.BUDGET_UPDATED: "updated",
            AuditEventType.BUDGET_DELETED: "deleted",
        }[event_type]
        return AuditEvent(
            event_type=event_type,
            owner_id=owner_id,
            entity_type="budget",
            entity_id=budget_id,
            correlation_id=correlation_id,
            description=f"Budget {verb}: {category} {month}",
            details={"category": category, "month": month},
        )

    @staticmethod
    def categories_seeded(
        owner_id: str,
        names: list[str],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORIES_SEEDED,
            owner_id=owner_id,
            entity_type="category",
            correlation_id=correlation_id,
            description=f"Seeded {len(names)} default categories",
            details={"names": names},
        )

    @staticmethod
    def category_created(
        owner_id: str,
        category_id: UUID,
        name: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORY_CREATED,
            owner_id=owner_id,
            entity_type="category",
            entity_id=category_id,
            correlation_id=correlation_id,
            description=f"Category created: {name}",
        )

    @staticmethod
    def person_created(
        owner_id: str,
        person_id: UUID,
        person_name: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PERSON_CREATED,
            owner_id=owner_id,
            entity_type="person_debt",
            entity_id=person_id,
            correlation_id=correlation_id,
            description=f"Person added: {person_name}",
        )

    @staticmethod
    def person_removed(
        owner_id: str,
        person_id: UUID,
        debts_removed: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PERSON_REMOVED,
            severity=AuditSeverity.WARNING,
            owner_id=owner_id,
            entity_type="person_debt",
            entity_id=person_id,
            correlation_id=correlation_id,
            description=f"Person removed with {debts_removed} debts",
            details={"debts_removed": debts_removed},
        )

    @staticmethod
    def debt_created(
        owner_id: str,
        debt_id: UUID,
        kind: str,
        amount: Decimal,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DEBT_CREATED,
            owner_id=owner_id,
            entity_type="debt",
            entity_id=debt_id,
            correlation_id=correlation_id,
            description=f"Debt recorded: {kind} {amount}",
            details={"kind": kind, "amount": _money(amount)},
        )

    @staticmethod
    def debt_paid(
        owner_id: str,
        debt_id: UUID,
        amount: Decimal,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DEBT_PAID,
            owner_id=owner_id,
            entity_type="debt",
            entity_id=debt_id,
            correlation_id=correlation_id,
            description=f"Debt of {amount} marked as paid",
            details={"amount": _money(amount)},
        )

    @staticmethod
    def debt_removed(
        owner_id: str,
        debt_id: UUID,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DEBT_REMOVED,
            owner_id=owner_id,
            entity_type="debt",
            entity_id=debt_id,
            correlation_id=correlation_id,
            description="Debt removed",
        )

    @staticmethod
    def storage_error(
        operation: str,
        error_message: str,
        owner_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_ERROR,
            severity=AuditSeverity.ERROR,
            owner_id=owner_id,
            correlation_id=correlation_id,
            description=f"Storage failure during {operation}",
            details={"operation": operation},
            error_message=error_message,
        )
