"""
Shared fixtures.

Engines run against the in-memory store; nothing touches the network.
"""

import pytest

from pocketledger.audit import AuditLogger
from pocketledger.config import get_settings
from pocketledger.engines import BudgetEngine, CategoryEngine, DebtEngine, LedgerEngine
from pocketledger.models import Session
from pocketledger.reconciliation import CsvReconciler
from pocketledger.services.storage import InMemoryAuditStorage, InMemoryDocumentStore


@pytest.fixture(autouse=True)
def fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def store():
    return InMemoryDocumentStore()


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage):
    return AuditLogger(audit_storage)


@pytest.fixture
def session():
    return Session(owner_id="owner-1")


@pytest.fixture
def other_session():
    return Session(owner_id="owner-2")


@pytest.fixture
def ledger(store, audit_logger):
    return LedgerEngine(store, audit_logger)


@pytest.fixture
def debts(store, audit_logger):
    return DebtEngine(store, audit_logger)


@pytest.fixture
def budgets(store, audit_logger):
    return BudgetEngine(store, audit_logger)


@pytest.fixture
def categories(store, audit_logger):
    return CategoryEngine(store, audit_logger)


@pytest.fixture
def reconciler(store, ledger, audit_logger):
    return CsvReconciler(store, ledger, audit_logger)
