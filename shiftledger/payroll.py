from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from shiftledger.db import Database, Row
from shiftledger.ledger import parse_day
from shiftledger.predicates import Predicates


@dataclass(frozen=True)
class PayrollRow:
    id: int
    name: str
    employee_id: str
    role: str
    hourly_rate: float
    total_hours: float
    total_pay: float


def _to_payroll(row: Row) -> PayrollRow:
    return PayrollRow(
        id=int(row["id"]),
        name=str(row["name"]),
        employee_id=str(row["employee_id"] or ""),
        role=str(row["role"] or ""),
        hourly_rate=float(row["hourly_rate"] or 0),
        total_hours=float(row["total_hours"] or 0),
        total_pay=float(row["total_pay"] or 0),
    )


class PayrollAggregator:
    def __init__(self, db: Database) -> None:
        self._db = db

    def payroll(self, *, date_from: Any = None, date_to: Any = None) -> list[PayrollRow]:
        # Bounds live in the join so workers without entries keep zero totals.
        bounds = Predicates()
        bounds.add_if(parse_day(date_from, "dateFrom"), "te.date >= ?")
        bounds.add_if(parse_day(date_to, "dateTo"), "te.date <= ?")
        sql = (
            """
            SELECT
              w.id,
              w.name,
              w.employee_id,
              w.role,
              w.hourly_rate,
              COALESCE(SUM(te.hours_worked), 0) AS total_hours,
              COALESCE(SUM(te.hours_worked * w.hourly_rate), 0) AS total_pay
            FROM workers w
            LEFT JOIN time_entries te
              ON te.worker_id = w.id
            """
            + bounds.and_()
            + " GROUP BY w.id, w.name, w.employee_id, w.role, w.hourly_rate ORDER BY w.name"
        )
        rows = self._db.prepare(sql).all(*bounds.args)
        return [_to_payroll(r) for r in rows]
