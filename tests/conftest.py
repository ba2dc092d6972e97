"""Shared fixtures: a fixed "today", in-memory storage and a store wired to it."""

from datetime import date

import pytest

from billbook.audit import AuditLogger
from billbook.models.bill import AppSnapshot, Bill
from billbook.services.persistence import SnapshotPersistence
from billbook.services.storage import InMemorySnapshotStorage
from billbook.store import HouseholdStore, default_snapshot

TODAY = date(2024, 3, 1)


def make_bill(**overrides) -> Bill:
    fields = {
        "id": "b1",
        "title": "Internet",
        "amount": 60,
        "due_iso": date(2024, 3, 16),
        "category": "Internet",
        "paid": False,
        "created_by": "u1",
    }
    fields.update(overrides)
    return Bill(**fields)


@pytest.fixture
def today() -> date:
    return TODAY


@pytest.fixture
def storage() -> InMemorySnapshotStorage:
    return InMemorySnapshotStorage()


@pytest.fixture
def audit_logger() -> AuditLogger:
    return AuditLogger(history_size=100)


@pytest.fixture
def persistence(storage, audit_logger) -> SnapshotPersistence:
    return SnapshotPersistence(storage, audit_logger=audit_logger)


@pytest.fixture
def snapshot() -> AppSnapshot:
    return default_snapshot(today=TODAY, seed_sample_bills=False)


@pytest.fixture
def store(snapshot, persistence, audit_logger) -> HouseholdStore:
    return HouseholdStore(
        snapshot=snapshot,
        persistence=persistence,
        audit_logger=audit_logger,
        clock=lambda: TODAY,
    )


@pytest.fixture
def bill_factory():
    """Build a valid Bill, overriding any field by attribute name."""
    return make_bill
