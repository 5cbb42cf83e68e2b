"""
Category Engine

Categories are free-form labels. An owner with no categories at all gets
a small default set on first load.
"""

from typing import Optional, Union

from pocketledger.engines.base import OwnedRecordEngine, coerce_enum
from pocketledger.models.audit import AuditEventBuilder
from pocketledger.models.ledger import Category, CategoryKind, Collections, Session
from pocketledger.services.storage import BatchOperation
from pocketledger.validation import build_model, require_text


DEFAULT_EXPENSE_CATEGORIES = (
    "Food & Dining",
    "Transportation",
    "Shopping",
    "Entertainment",
    "Utilities",
    "Healthcare",
    "Education",
    "Travel",
    "Personal Care",
    "Other",
)

DEFAULT_INCOME_CATEGORIES = (
    "Salary",
    "Freelance",
    "Bonus",
    "Investment",
    "Gift",
    "Other",
)

DEFAULT_SUBSCRIPTION_CATEGORIES = (
    "Streaming",
    "Cloud Storage",
    "Productivity",
    "Entertainment",
    "Health & Fitness",
    "Shopping",
    "Other",
)

# Seeded for a new owner
SEED_CATEGORIES = (
    ("Food & Dining", CategoryKind.EXPENSE),
    ("Transportation", CategoryKind.EXPENSE),
    ("Shopping", CategoryKind.EXPENSE),
    ("Entertainment", CategoryKind.EXPENSE),
    ("Salary", CategoryKind.INCOME),
)

DEFAULT_COLOR = "#000000"


class CategoryEngine(OwnedRecordEngine):

    async def create_category(
        self,
        session: Session,
        name: str,
        kind: Union[CategoryKind, str],
        color: Optional[str] = None,
    ) -> Category:
        category = build_model(
            Category,
            owner_id=session.owner_id,
            name=require_text(name, "name"),
            kind=coerce_enum(CategoryKind, kind, "kind"),
            color=color or DEFAULT_COLOR,
        )
        await self._commit(session, "create_category", [
            BatchOperation.put(Collections.CATEGORIES, str(category.id), category.to_document()),
        ])
        await self._audit(AuditEventBuilder.category_created(
            owner_id=session.owner_id,
            category_id=category.id,
            name=category.name,
            correlation_id=session.session_id,
        ))
        return category

    async def list_categories(
        self,
        session: Session,
        kind: Optional[Union[CategoryKind, str]] = None,
    ) -> list[Category]:
        filters = None
        if kind:
            filters = {"kind": coerce_enum(CategoryKind, kind, "kind").value}
        categories = await self._list(session, Collections.CATEGORIES, Category, filters)
        categories.sort(key=lambda c: (c.kind.value, c.name.lower()))
        return categories

    async def ensure_default_categories(self, session: Session) -> list[Category]:
        """
        Seed the default categories, in one batch, if the owner has none.

        Returns:
            The owner's categories after seeding
        """
        existing = await self.list_categories(session)
        if existing:
            return existing

        seeded = [
            build_model(
                Category,
                owner_id=session.owner_id,
                name=name,
                kind=kind,
                color=DEFAULT_COLOR,
            )
            for name, kind in SEED_CATEGORIES
        ]
        await self._commit(session, "ensure_default_categories", [
            BatchOperation.put(Collections.CATEGORIES, str(c.id), c.to_document())
            for c in seeded
        ])
        await self._audit(AuditEventBuilder.categories_seeded(
            owner_id=session.owner_id,
            names=[c.name for c in seeded],
            correlation_id=session.session_id,
        ))
        return await self.list_categories(session)
