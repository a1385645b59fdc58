from __future__ import annotations

import pytest

from shiftledger.dialect import POSTGRES, SQLITE, Dialect, count_markers, translate

NUMBERED = Dialect(name="numbered", now_sql="NOW()", placeholder=lambda n: f"${n}")


@pytest.mark.parametrize(
    "sql, expected",
    [
        ("SELECT COUNT(*) FROM workers", "SELECT COUNT(*) FROM workers"),
        ("SELECT * FROM workers WHERE id = ?", "SELECT * FROM workers WHERE id = $1"),
        (
            "INSERT INTO workers (name, employee_id, role, hourly_rate, phone) VALUES (?, ?, ?, ?, ?)",
            "INSERT INTO workers (name, employee_id, role, hourly_rate, phone) VALUES ($1, $2, $3, $4, $5)",
        ),
    ],
)
def test_markers_numbered_in_source_order(sql: str, expected: str) -> None:
    assert translate(sql, NUMBERED) == expected


def test_same_value_twice_still_gets_two_parameters() -> None:
    sql = "SELECT * FROM time_entries WHERE date >= ? AND date <= ?"
    assert translate(sql, NUMBERED) == "SELECT * FROM time_entries WHERE date >= $1 AND date <= $2"


def test_now_call_replaced_for_postgres() -> None:
    sql = "INSERT INTO time_entries (worker_id, notes, created_at) VALUES (?, ?, datetime(\"now\"))"
    assert translate(sql, POSTGRES) == "INSERT INTO time_entries (worker_id, notes, created_at) VALUES (%s, %s, NOW())"
    assert translate("SELECT DATETIME('now')", POSTGRES) == "SELECT NOW()"


def test_postgres_doubles_literal_percent() -> None:
    sql = "SELECT * FROM workers WHERE name LIKE '%a%' AND id = ?"
    assert translate(sql, POSTGRES) == "SELECT * FROM workers WHERE name LIKE '%%a%%' AND id = %s"


def test_sqlite_is_identity() -> None:
    sql = "UPDATE time_entries SET clock_out = ?, notes = ? WHERE id = ? AND created_at < datetime('now')"
    assert translate(sql, SQLITE) == sql


def test_marker_inside_literal_is_also_replaced() -> None:
    assert translate("SELECT '?' AS q, ?", NUMBERED) == "SELECT '$1' AS q, $2"


@pytest.mark.parametrize("n", [0, 1, 5])
def test_marker_count_preserved(n: int) -> None:
    sql = "SELECT 1" + "".join(f" AND c{i} = ?" for i in range(n))
    out = translate(sql, POSTGRES)
    assert count_markers(sql) == n
    assert out.count("%s") == n
    numbered = translate(sql, NUMBERED)
    assert [f"${i}" for i in range(1, n + 1)] == [tok for tok in numbered.split() if tok.startswith("$")]
