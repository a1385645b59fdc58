from __future__ import annotations

import pytest

from shiftledger.db import Database
from shiftledger.errors import NotFoundError, UniqueConstraintError, ValidationError
from shiftledger.ledger import TimeEntryManager
from shiftledger.workers import WorkerRegistry
from tests.conftest import FakeClock


def test_create_list_update(backend_db: Database) -> None:
    reg = WorkerRegistry(backend_db)
    bo = reg.create_worker(name="Bo", employee_id="E-2", role="driver", hourly_rate="18.5", phone="555-0101")
    reg.create_worker(name="Ana", employee_id="E-1")
    assert bo.hourly_rate == 18.5
    assert [w.name for w in reg.list_workers()] == ["Ana", "Bo"]

    updated = reg.update_worker(bo.id, name="Bo B", employee_id="E-2", role="lead", hourly_rate=20, phone="")
    assert updated.name == "Bo B"
    assert updated.role == "lead"
    assert reg.get_worker(bo.id) == updated


def test_duplicate_employee_id(backend_db: Database) -> None:
    reg = WorkerRegistry(backend_db)
    ana = reg.create_worker(name="Ana", employee_id="E-1")
    bo = reg.create_worker(name="Bo", employee_id="E-2")
    with pytest.raises(UniqueConstraintError, match="Employee ID already exists"):
        reg.create_worker(name="Other", employee_id="E-1")
    with pytest.raises(UniqueConstraintError):
        reg.update_worker(bo.id, name="Bo", employee_id="E-1")
    # Keeping your own employee id is not a conflict.
    reg.update_worker(ana.id, name="Ana A", employee_id="E-1")
    assert len(reg.list_workers()) == 2


@pytest.mark.parametrize(
    "fields",
    [
        {"name": "", "employee_id": "E-1"},
        {"name": "Ana", "employee_id": "  "},
        {"name": "Ana", "employee_id": "E-1", "hourly_rate": -1},
        {"name": "Ana", "employee_id": "E-1", "hourly_rate": "lots"},
    ],
)
def test_validation(sqlite_db: Database, fields: dict) -> None:
    with pytest.raises(ValidationError):
        WorkerRegistry(sqlite_db).create_worker(**fields)


@pytest.mark.parametrize("rate", ["Infinity", "-inf", "NaN", "nan", float("inf")])
def test_non_finite_rate_rejected_and_not_stored(sqlite_db: Database, rate: object) -> None:
    reg = WorkerRegistry(sqlite_db)
    with pytest.raises(ValidationError, match="Hourly rate must be a number"):
        reg.create_worker(name="Ana", employee_id="E-1", hourly_rate=rate)
    assert reg.list_workers() == []

    bo = reg.create_worker(name="Bo", employee_id="E-2", hourly_rate=10)
    with pytest.raises(ValidationError):
        reg.update_worker(bo.id, name="Bo", employee_id="E-2", hourly_rate=rate)
    assert reg.require_worker(bo.id).hourly_rate == 10


def test_unknown_worker(sqlite_db: Database) -> None:
    reg = WorkerRegistry(sqlite_db)
    assert reg.get_worker(1) is None
    with pytest.raises(NotFoundError):
        reg.update_worker(1, name="x", employee_id="y")
    with pytest.raises(NotFoundError):
        reg.delete_worker(1)


def test_delete_removes_time_entries(backend_db: Database, clock: FakeClock) -> None:
    reg = WorkerRegistry(backend_db)
    ledger = TimeEntryManager(backend_db, clock=clock)
    ana = reg.create_worker(name="Ana", employee_id="E-1")
    bo = reg.create_worker(name="Bo", employee_id="E-2")
    ledger.clock_in(ana.id)
    clock.advance(hours=1)
    ledger.clock_out(ana.id)
    ledger.clock_in(ana.id)
    ledger.clock_in(bo.id)

    reg.delete_worker(ana.id)

    assert reg.get_worker(ana.id) is None
    assert backend_db.prepare("SELECT * FROM time_entries WHERE worker_id = ?").all(ana.id) == []
    assert [e.worker_id for e in ledger.list_entries()] == [bo.id]
