from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any

from shiftledger.db import Database, Row
from shiftledger.errors import NotFoundError, UniqueConstraintError, ValidationError


log = logging.getLogger("shiftledger")


@dataclass(frozen=True)
class WorkerRow:
    id: int
    name: str
    employee_id: str
    role: str
    hourly_rate: float
    phone: str
    created_at: str | None


def _to_worker(row: Row) -> WorkerRow:
    return WorkerRow(
        id=int(row["id"]),
        name=str(row["name"]),
        employee_id=str(row["employee_id"] or ""),
        role=str(row["role"] or ""),
        hourly_rate=float(row["hourly_rate"] or 0),
        phone=str(row["phone"] or ""),
        created_at=str(row["created_at"]) if row.get("created_at") is not None else None,
    )


def _parse_rate(raw: Any) -> float:
    if raw is None or str(raw).strip() == "":
        return 0.0
    try:
        rate = float(raw)
    except (TypeError, ValueError) as e:
        raise ValidationError("Hourly rate must be a number") from e
    if not math.isfinite(rate):
        raise ValidationError("Hourly rate must be a number")
    if rate < 0:
        raise ValidationError("Hourly rate must not be negative")
    return rate


class WorkerRegistry:
    def __init__(self, db: Database) -> None:
        self._db = db

    def list_workers(self) -> list[WorkerRow]:
        rows = self._db.prepare("SELECT * FROM workers ORDER BY name").all()
        return [_to_worker(r) for r in rows]

    def get_worker(self, worker_id: int) -> WorkerRow | None:
        row = self._db.prepare("SELECT * FROM workers WHERE id = ?").get(int(worker_id))
        if row is None:
            return None
        return _to_worker(row)

    def require_worker(self, worker_id: int) -> WorkerRow:
        worker = self.get_worker(worker_id)
        if worker is None:
            raise NotFoundError("Worker not found")
        return worker

    def _employee_id_taken(self, employee_id: str, *, exclude_id: int | None = None) -> bool:
        if exclude_id is None:
            row = self._db.prepare("SELECT 1 AS found FROM workers WHERE employee_id = ?").get(employee_id)
        else:
            row = self._db.prepare("SELECT 1 AS found FROM workers WHERE employee_id = ? AND id <> ?").get(
                employee_id, int(exclude_id)
            )
        return row is not None

    def create_worker(
        self,
        *,
        name: str,
        employee_id: str,
        role: str = "",
        hourly_rate: Any = 0,
        phone: str = "",
    ) -> WorkerRow:
        name = str(name or "").strip()
        employee_id = str(employee_id or "").strip()
        if not name or not employee_id:
            raise ValidationError("Name and employee ID are required")
        rate = _parse_rate(hourly_rate)

        stmt = self._db.prepare("INSERT INTO workers (name, employee_id, role, hourly_rate, phone) VALUES (?, ?, ?, ?, ?)")
        try:
            result = stmt.run(name, employee_id, str(role or ""), rate, str(phone or ""))
        except self._db.integrity_error:
            if self._employee_id_taken(employee_id):
                raise UniqueConstraintError("Employee ID already exists") from None
            raise

        if result.row is None:
            raise RuntimeError("worker_not_found_after_insert")
        worker = _to_worker(result.row)
        log.info("Created worker id=%s employee_id=%s", worker.id, worker.employee_id)
        return worker

    def update_worker(
        self,
        worker_id: int,
        *,
        name: str,
        employee_id: str,
        role: str = "",
        hourly_rate: Any = 0,
        phone: str = "",
    ) -> WorkerRow:
        self.require_worker(worker_id)
        name = str(name or "").strip()
        employee_id = str(employee_id or "").strip()
        if not name or not employee_id:
            raise ValidationError("Name and employee ID are required")
        rate = _parse_rate(hourly_rate)

        stmt = self._db.prepare("UPDATE workers SET name = ?, employee_id = ?, role = ?, hourly_rate = ?, phone = ? WHERE id = ?")
        try:
            stmt.run(name, employee_id, str(role or ""), rate, str(phone or ""), int(worker_id))
        except self._db.integrity_error:
            if self._employee_id_taken(employee_id, exclude_id=worker_id):
                raise UniqueConstraintError("Employee ID already exists") from None
            raise
        return self.require_worker(worker_id)

    def delete_worker(self, worker_id: int) -> None:
        self.require_worker(worker_id)
        # Covers SQLite files created before foreign keys were enforced.
        self._db.prepare("DELETE FROM time_entries WHERE worker_id = ?").run(int(worker_id))
        result = self._db.prepare("DELETE FROM workers WHERE id = ?").run(int(worker_id))
        if result.changes == 0:
            raise NotFoundError("Worker not found")
        log.info("Deleted worker id=%s", worker_id)
