"""
Debt Engine

Tracks money lent to and borrowed from people. Debts are reminders:
they never touch account balances.

A debt starts PENDING and can move to PAID once. PAID is terminal.
Per-person totals count pending debts only and are recomputed from the
debt records on every read.
"""

from decimal import Decimal
from typing import Any, Iterable, Optional, Union
from uuid import UUID

from pocketledger.engines.base import OwnedRecordEngine, coerce_enum
from pocketledger.models.audit import AuditEventBuilder
from pocketledger.models.ledger import (
    Collections,
    Debt,
    DebtKind,
    DebtStatus,
    PersonDebt,
    PersonDebtSummary,
    Session,
)
from pocketledger.services.storage import BatchOperation
from pocketledger.validation import build_model, parse_amount, require_text


def person_summary(person: PersonDebt, debts: Iterable[Debt]) -> PersonDebtSummary:
    """Pending lent/borrowed totals and status counts for one person."""
    lent = Decimal("0")
    borrowed = Decimal("0")
    pending_count = 0
    paid_count = 0

    for debt in debts:
        if debt.person_debt_id != person.id:
            continue
        if debt.status == DebtStatus.PAID:
            paid_count += 1
            continue
        pending_count += 1
        if debt.kind == DebtKind.LENT:
            lent += debt.amount
        else:
            borrowed += debt.amount

    return PersonDebtSummary(
        person=person,
        lent=lent,
        borrowed=borrowed,
        pending_count=pending_count,
        paid_count=paid_count,
    )


class DebtEngine(OwnedRecordEngine):
    """People and the debts recorded with them."""

    async def create_person(self, session: Session, person_name: str) -> PersonDebt:
        person = build_model(
            PersonDebt,
            owner_id=session.owner_id,
            person_name=require_text(person_name, "person_name"),
        )
        await self._commit(session, "create_person", [
            BatchOperation.put(Collections.PERSON_DEBTS, str(person.id), person.to_document()),
        ])
        await self._audit(AuditEventBuilder.person_created(
            owner_id=session.owner_id,
            person_id=person.id,
            person_name=person.person_name,
            correlation_id=session.session_id,
        ))
        return person

    async def get_person(self, session: Session, person_id: UUID) -> PersonDebt:
        return await self._load(session, Collections.PERSON_DEBTS, person_id, PersonDebt, "Person")

    async def list_people(self, session: Session, search: Optional[str] = None) -> list[PersonDebt]:
        """People sorted by name, optionally filtered by a name substring."""
        people = await self._list(session, Collections.PERSON_DEBTS, PersonDebt)
        if search:
            needle = search.strip().lower()
            people = [p for p in people if needle in p.person_name.lower()]
        people.sort(key=lambda p: p.person_name.lower())
        return people

    async def remove_person(self, session: Session, person_id: UUID) -> int:
        """
        Remove a person together with all of their debts, in one batch.

        Returns:
            Number of debts removed
        """
        person = await self.get_person(session, person_id)
        debts = await self.list_debts(session, person.id)

        operations = [
            BatchOperation.delete(Collections.DEBTS, str(debt.id))
            for debt in debts
        ]
        operations.append(BatchOperation.delete(Collections.PERSON_DEBTS, str(person.id)))
        await self._commit(session, "remove_person", operations)

        await self._audit(AuditEventBuilder.person_removed(
            owner_id=session.owner_id,
            person_id=person.id,
            debts_removed=len(debts),
            correlation_id=session.session_id,
        ))
        return len(debts)

    async def create_debt(
        self,
        session: Session,
        person_id: UUID,
        kind: Union[DebtKind, str],
        amount: Any,
        description: str = "",
    ) -> Debt:
        """
        Record a pending debt with a person.

        Raises:
            ValidationError: If kind or amount is invalid
            NotFoundError: If the session owns no such person
        """
        debt_kind = coerce_enum(DebtKind, kind, "kind")
        debt_amount = parse_amount(amount)
        person = await self.get_person(session, person_id)

        debt = build_model(
            Debt,
            owner_id=session.owner_id,
            person_debt_id=person.id,
            kind=debt_kind,
            amount=debt_amount,
            description=(description or "").strip(),
            status=DebtStatus.PENDING,
        )
        await self._commit(session, "create_debt", [
            BatchOperation.put(Collections.DEBTS, str(debt.id), debt.to_document()),
        ])
        await self._audit(AuditEventBuilder.debt_created(
            owner_id=session.owner_id,
            debt_id=debt.id,
            kind=debt.kind.value,
            amount=debt.amount,
            correlation_id=session.session_id,
        ))
        return debt

    async def get_debt(self, session: Session, debt_id: UUID) -> Debt:
        return await self._load(session, Collections.DEBTS, debt_id, Debt, "Debt")

    async def list_debts(
        self,
        session: Session,
        person_id: Optional[UUID] = None,
        status: Optional[DebtStatus] = None,
    ) -> list[Debt]:
        """Debts, newest first."""
        filters: dict[str, Any] = {}
        if person_id:
            filters["person_debt_id"] = str(person_id)
        if status:
            filters["status"] = coerce_enum(DebtStatus, status, "status").value
        debts = await self._list(session, Collections.DEBTS, Debt, filters or None)
        debts.sort(key=lambda d: d.created_at, reverse=True)
        return debts

    async def mark_paid(self, session: Session, debt_id: UUID) -> Debt:
        """
        Move a debt from pending to paid.

        Marking a paid debt again writes nothing and returns it unchanged.
        """
        debt = await self.get_debt(session, debt_id)
        if debt.status == DebtStatus.PAID:
            return debt

        await self._commit(session, "mark_paid", [
            BatchOperation.update(Collections.DEBTS, str(debt.id), {"status": DebtStatus.PAID.value}),
        ])
        await self._audit(AuditEventBuilder.debt_paid(
            owner_id=session.owner_id,
            debt_id=debt.id,
            amount=debt.amount,
            correlation_id=session.session_id,
        ))
        return debt.model_copy(update={"status": DebtStatus.PAID})

    async def remove_debt(self, session: Session, debt_id: UUID) -> None:
        """Delete a debt whatever its status."""
        debt = await self.get_debt(session, debt_id)
        await self._commit(session, "remove_debt", [
            BatchOperation.delete(Collections.DEBTS, str(debt.id)),
        ])
        await self._audit(AuditEventBuilder.debt_removed(
            owner_id=session.owner_id,
            debt_id=debt.id,
            correlation_id=session.session_id,
        ))

    async def summaries(self, session: Session) -> list[PersonDebtSummary]:
        """Per-person totals, recomputed from the stored debts."""
        people = await self.list_people(session)
        debts = await self.list_debts(session)
        return [person_summary(person, debts) for person in people]
