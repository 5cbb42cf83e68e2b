"""
Budget Engine

A budget stores only a category, a month and a limit. How much of it is
spent is recomputed from the transactions on every read:

    spent = sum of EXPENSE amounts with the budget's exact category
            and a date in the budget's month

Subscriptions are not counted against budgets.

Status, checked in this order:
    exceeded  percentage > 100
    warning   80 <= percentage <= 100
    normal    otherwise
"""

from decimal import Decimal
from typing import Any, Iterable, Optional
from uuid import UUID

from pocketledger.config import BudgetSettings, get_settings
from pocketledger.engines.base import OwnedRecordEngine
from pocketledger.models.audit import AuditEventBuilder, AuditEventType
from pocketledger.models.ledger import (
    Budget,
    BudgetState,
    BudgetStatus,
    Collections,
    Session,
    Transaction,
    TransactionKind,
)
from pocketledger.services.storage import BatchOperation
from pocketledger.validation import (
    ValidationError,
    build_model,
    parse_amount,
    require_text,
    validate_month,
)


UPDATABLE_BUDGET_FIELDS = frozenset({"category", "month", "limit"})


def compute_spent(budget: Budget, transactions: Iterable[Transaction]) -> Decimal:
    """Sum of the budget's category expenses within its month."""
    return sum(
        (
            txn.amount
            for txn in transactions
            if txn.kind == TransactionKind.EXPENSE
            and txn.category == budget.category
            and txn.date.isoformat().startswith(budget.month)
        ),
        Decimal("0"),
    )


def classify(
    spent: Decimal,
    limit: Decimal,
    settings: Optional[BudgetSettings] = None,
) -> tuple[float, BudgetState]:
    """
    Percentage of the limit spent and the resulting state.

    Returns:
        (percentage, state)
    """
    settings = settings or get_settings().budgets
    percentage = spent * 100 / limit

    if percentage > Decimal(str(settings.exceeded_threshold_percent)):
        state = BudgetState.EXCEEDED
    elif percentage >= Decimal(str(settings.warning_threshold_percent)):
        state = BudgetState.WARNING
    else:
        state = BudgetState.NORMAL

    return float(percentage), state


def budget_status(
    budget: Budget,
    transactions: Iterable[Transaction],
    settings: Optional[BudgetSettings] = None,
) -> BudgetStatus:
    spent = compute_spent(budget, transactions)
    percentage, state = classify(spent, budget.limit, settings)
    return BudgetStatus(budget=budget, spent=spent, percentage=percentage, state=state)


class BudgetEngine(OwnedRecordEngine):
    """Monthly category budgets."""

    def __init__(self, store, audit_logger=None, settings: Optional[BudgetSettings] = None):
        super().__init__(store, audit_logger)
        self._settings = settings or get_settings().budgets

    async def create_budget(
        self,
        session: Session,
        category: str,
        month: Any,
        limit: Any,
    ) -> Budget:
        """
        Raises:
            ValidationError: If month isn't YYYY-MM or limit isn't positive
        """
        budget = build_model(
            Budget,
            owner_id=session.owner_id,
            category=require_text(category, "category"),
            month=validate_month(month),
            limit=parse_amount(limit, "limit"),
        )
        await self._commit(session, "create_budget", [
            BatchOperation.put(Collections.BUDGETS, str(budget.id), budget.to_document()),
        ])
        await self._audit(AuditEventBuilder.budget_changed(
            AuditEventType.BUDGET_CREATED,
            owner_id=session.owner_id,
            budget_id=budget.id,
            category=budget.category,
            month=budget.month,
            correlation_id=session.session_id,
        ))
        return budget

    async def get_budget(self, session: Session, budget_id: UUID) -> Budget:
        return await self._load(session, Collections.BUDGETS, budget_id, Budget, "Budget")

    async def list_budgets(self, session: Session, month: Optional[str] = None) -> list[Budget]:
        filters = {"month": validate_month(month)} if month else None
        budgets = await self._list(session, Collections.BUDGETS, Budget, filters)
        budgets.sort(key=lambda b: (b.month, b.category))
        return budgets

    async def update_budget(self, session: Session, budget_id: UUID, **changes: Any) -> Budget:
        """
        Patch category, month or limit.

        Raises:
            ValidationError: If a field cannot be patched or is invalid
        """
        rejected = sorted(set(changes) - UPDATABLE_BUDGET_FIELDS)
        if rejected:
            raise ValidationError(f"Cannot update {', '.join(rejected)}", rejected[0])

        budget = await self.get_budget(session, budget_id)
        if not changes:
            return budget

        if "category" in changes:
            changes["category"] = require_text(changes["category"], "category")
        if "month" in changes:
            changes["month"] = validate_month(changes["month"])
        if "limit" in changes:
            changes["limit"] = parse_amount(changes["limit"], "limit")

        updated = build_model(Budget, **{**budget.model_dump(), **changes})
        document = updated.to_document()
        await self._commit(session, "update_budget", [
            BatchOperation.update(
                Collections.BUDGETS,
                str(updated.id),
                {key: document[key] for key in changes},
            ),
        ])
        await self._audit(AuditEventBuilder.budget_changed(
            AuditEventType.BUDGET_UPDATED,
            owner_id=session.owner_id,
            budget_id=updated.id,
            category=updated.category,
            month=updated.month,
            correlation_id=session.session_id,
        ))
        return updated

    async def delete_budget(self, session: Session, budget_id: UUID) -> None:
        budget = await self.get_budget(session, budget_id)
        await self._commit(session, "delete_budget", [
            BatchOperation.delete(Collections.BUDGETS, str(budget.id)),
        ])
        await self._audit(AuditEventBuilder.budget_changed(
            AuditEventType.BUDGET_DELETED,
            owner_id=session.owner_id,
            budget_id=budget.id,
            category=budget.category,
            month=budget.month,
            correlation_id=session.session_id,
        ))

    async def budget_statuses(
        self,
        session: Session,
        month: Optional[str] = None,
    ) -> list[BudgetStatus]:
        """Budgets with their spend recomputed from the current transactions."""
        budgets = await self.list_budgets(session, month)
        transactions = await self._list(
            session,
            Collections.TRANSACTIONS,
            Transaction,
            {"kind": TransactionKind.EXPENSE.value},
        )
        return [budget_status(b, transactions, self._settings) for b in budgets]
