from __future__ import annotations

import os
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Iterator

import pytest

from shiftledger.db import Database, PostgresDatabase, SQLiteDatabase

PG_URL_ENV = "SHIFTLEDGER_TEST_DATABASE_URL"


class FakeClock:
    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def set(self, value: datetime) -> None:
        self.now = value

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


def utc(year: int, month: int, day: int, hour: int = 0, minute: int = 0, second: int = 0) -> datetime:
    return datetime(year, month, day, hour, minute, second, tzinfo=timezone.utc)


def _sqlite(tmp_path: Path) -> SQLiteDatabase:
    db = SQLiteDatabase(tmp_path / "ledger.sqlite3")
    db.init_schema()
    return db


def _postgres() -> PostgresDatabase:
    url = (os.getenv(PG_URL_ENV, "") or "").strip()
    if not url:
        pytest.skip(f"{PG_URL_ENV} is not set")
    db = PostgresDatabase.from_url(url)
    db.init_schema()
    db.execute_script(["TRUNCATE time_entries, workers RESTART IDENTITY CASCADE"])
    return db


@pytest.fixture()
def sqlite_db(tmp_path: Path) -> Iterator[SQLiteDatabase]:
    db = _sqlite(tmp_path)
    yield db
    db.close()


@pytest.fixture(params=["sqlite", "postgres"])
def backend_db(request: pytest.FixtureRequest, tmp_path: Path) -> Iterator[Database]:
    db: Database = _sqlite(tmp_path) if request.param == "sqlite" else _postgres()
    yield db
    db.close()


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock(utc(2026, 3, 2, 9, 0, 0))


def add_worker(db: Database, name: str, employee_id: str, hourly_rate: float = 0.0) -> int:
    result = db.prepare("INSERT INTO workers (name, employee_id, role, hourly_rate, phone) VALUES (?, ?, ?, ?, ?)").run(
        name, employee_id, "crew", hourly_rate, ""
    )
    assert result.row is not None
    return int(result.row["id"])
