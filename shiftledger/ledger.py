"""Clock-in / clock-out ledger.

Each ``(worker_id, date)`` pair has at most one open entry (``clock_out`` is
NULL). The check before the insert gives the friendly error; the partial
unique index ``uq_time_entries_open`` is what holds the line when two
clock-ins race.

"Today" is the clock's current UTC date. A shift that crosses midnight is
looked up under the new date at clock-out and will not be found.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Callable

from shiftledger.db import Database, Row
from shiftledger.errors import InvariantViolation, NotFoundError, ValidationError
from shiftledger.predicates import Predicates


log = logging.getLogger("shiftledger")

NOTES_SEPARATOR = "; "

_ENTRY_SELECT = """
    SELECT te.*, w.name AS worker_name, w.employee_id, w.role, w.hourly_rate
    FROM time_entries te
    JOIN workers w ON te.worker_id = w.id
"""


def utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


def _iso(dt: datetime) -> str:
    return dt.replace(microsecond=0).isoformat()


def _parse_ts(raw: str) -> datetime:
    dt = datetime.fromisoformat(str(raw))
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def hours_between(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() / 3600.0


def append_notes(existing: str | None, extra: str | None) -> str:
    current = str(existing or "")
    addition = str(extra or "").strip()
    if not addition:
        return current
    if not current:
        return addition
    return current + NOTES_SEPARATOR + addition


def parse_day(raw: Any, field_name: str) -> str | None:
    if raw is None or str(raw).strip() == "":
        return None
    text = str(raw).strip()
    try:
        return date.fromisoformat(text).isoformat()
    except ValueError as e:
        raise ValidationError(f"{field_name} must be YYYY-MM-DD") from e


def parse_worker_id(raw: Any) -> int:
    if raw is None or str(raw).strip() == "":
        raise ValidationError("Worker ID is required")
    try:
        return int(str(raw).strip())
    except ValueError as e:
        raise ValidationError("Worker ID must be an integer") from e


@dataclass(frozen=True)
class TimeEntryRow:
    id: int
    worker_id: int
    date: str
    clock_in: str
    clock_out: str | None
    hours_worked: float | None
    notes: str
    worker_name: str
    employee_id: str
    role: str
    hourly_rate: float

    @property
    def is_open(self) -> bool:
        return self.clock_out is None


def _to_entry(row: Row) -> TimeEntryRow:
    return TimeEntryRow(
        id=int(row["id"]),
        worker_id=int(row["worker_id"]),
        date=str(row["date"]),
        clock_in=str(row["clock_in"]),
        clock_out=str(row["clock_out"]) if row["clock_out"] is not None else None,
        hours_worked=float(row["hours_worked"]) if row["hours_worked"] is not None else None,
        notes=str(row["notes"] or ""),
        worker_name=str(row["worker_name"]),
        employee_id=str(row["employee_id"] or ""),
        role=str(row["role"] or ""),
        hourly_rate=float(row["hourly_rate"] or 0),
    )


class TimeEntryManager:
    def __init__(self, db: Database, *, clock: Callable[[], datetime] = utc_now) -> None:
        self._db = db
        self._clock = clock

    def _now(self) -> datetime:
        return self._clock().astimezone(timezone.utc).replace(microsecond=0)

    def get_entry(self, entry_id: int) -> TimeEntryRow | None:
        row = self._db.prepare(_ENTRY_SELECT + " WHERE te.id = ?").get(int(entry_id))
        if row is None:
            return None
        return _to_entry(row)

    def _open_row(self, worker_id: int, day: str) -> Row | None:
        return self._db.prepare(
            "SELECT * FROM time_entries WHERE worker_id = ? AND date = ? AND clock_out IS NULL"
        ).get(int(worker_id), day)

    def open_entry(self, worker_id: int, day: str | None = None) -> TimeEntryRow | None:
        target = day or self._now().date().isoformat()
        row = self._open_row(worker_id, target)
        if row is None:
            return None
        return self.get_entry(int(row["id"]))

    def list_entries(
        self,
        *,
        worker_id: Any = None,
        date_from: Any = None,
        date_to: Any = None,
    ) -> list[TimeEntryRow]:
        where = Predicates()
        if worker_id is not None and str(worker_id).strip() != "":
            where.add("te.worker_id = ?", parse_worker_id(worker_id))
        where.add_if(parse_day(date_from, "dateFrom"), "te.date >= ?")
        where.add_if(parse_day(date_to, "dateTo"), "te.date <= ?")
        sql = _ENTRY_SELECT + where.where() + " ORDER BY te.date DESC, te.clock_in DESC"
        rows = self._db.prepare(sql).all(*where.args)
        return [_to_entry(r) for r in rows]

    def clock_in(self, worker_id: Any, notes: str | None = "") -> TimeEntryRow:
        wid = parse_worker_id(worker_id)
        worker = self._db.prepare("SELECT id FROM workers WHERE id = ?").get(wid)
        if worker is None:
            raise NotFoundError("Worker not found")

        now = self._now()
        today = now.date().isoformat()
        if self._open_row(wid, today) is not None:
            raise InvariantViolation("Worker is already clocked in today")

        stmt = self._db.prepare("INSERT INTO time_entries (worker_id, clock_in, date, notes) VALUES (?, ?, ?, ?)")
        try:
            result = stmt.run(wid, _iso(now), today, str(notes or ""))
        except self._db.integrity_error:
            if self._open_row(wid, today) is not None:
                log.warning("Concurrent clock-in rejected worker_id=%s date=%s", wid, today)
                raise InvariantViolation("Worker is already clocked in today") from None
            raise

        if result.row is None:
            raise RuntimeError("time_entry_not_found_after_clock_in")
        entry = self.get_entry(int(result.row["id"]))
        if entry is None:
            raise RuntimeError("time_entry_not_found_after_clock_in")
        log.info("Clock-in worker_id=%s entry_id=%s date=%s", wid, entry.id, today)
        return entry

    def clock_out(self, worker_id: Any, notes: str | None = "") -> TimeEntryRow:
        wid = parse_worker_id(worker_id)
        now = self._now()
        today = now.date().isoformat()
        row = self._open_row(wid, today)
        if row is None:
            raise InvariantViolation("No active clock-in found for today")

        hours = hours_between(_parse_ts(row["clock_in"]), now)
        merged_notes = append_notes(row["notes"], notes)
        result = self._db.prepare(
            "UPDATE time_entries SET clock_out = ?, hours_worked = ?, notes = ? WHERE id = ? AND clock_out IS NULL"
        ).run(_iso(now), hours, merged_notes, int(row["id"]))
        if result.changes == 0:
            raise InvariantViolation("No active clock-in found for today")

        entry = self.get_entry(int(row["id"]))
        if entry is None:
            raise RuntimeError("time_entry_not_found_after_clock_out")
        log.info("Clock-out worker_id=%s entry_id=%s hours=%.2f", wid, entry.id, hours)
        return entry
