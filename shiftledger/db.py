from __future__ import annotations

import contextlib
import logging
import re
import sqlite3
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterator, Sequence

from shiftledger.dialect import POSTGRES, SQLITE, Dialect, translate
from shiftledger.errors import BackendError

try:
    import psycopg2  # type: ignore
    from psycopg2.extras import RealDictCursor  # type: ignore
    from psycopg2.pool import ThreadedConnectionPool  # type: ignore
except Exception:  # pragma: no cover - only needed when DATABASE_URL is set
    psycopg2 = None
    RealDictCursor = None
    ThreadedConnectionPool = None


log = logging.getLogger("shiftledger")

Row = dict[str, Any]

_INSERT_RE = re.compile(r"^\s*INSERT\s+INTO\s+([A-Za-z_][A-Za-z0-9_]*)", re.IGNORECASE)
_RETURNING_RE = re.compile(r"\bRETURNING\b", re.IGNORECASE)


SQLITE_SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS workers (
      id INTEGER PRIMARY KEY AUTOINCREMENT,
      name TEXT NOT NULL,
      employee_id TEXT UNIQUE,
      role TEXT,
      hourly_rate REAL DEFAULT 0,
      phone TEXT,
      created_at TEXT DEFAULT (datetime('now'))
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS time_entries (
      id INTEGER PRIMARY KEY AUTOINCREMENT,
      worker_id INTEGER NOT NULL,
      clock_in TEXT,
      clock_out TEXT,
      hours_worked REAL,
      date TEXT,
      notes TEXT,
      created_at TEXT DEFAULT (datetime('now')),
      FOREIGN KEY(worker_id) REFERENCES workers(id) ON DELETE CASCADE
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_time_entries_worker_date ON time_entries(worker_id, date)",
    """
    CREATE UNIQUE INDEX IF NOT EXISTS uq_time_entries_open
    ON time_entries(worker_id, date) WHERE clock_out IS NULL
    """,
]

POSTGRES_SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS workers (
      id SERIAL PRIMARY KEY,
      name TEXT NOT NULL,
      employee_id TEXT UNIQUE,
      role TEXT,
      hourly_rate DOUBLE PRECISION DEFAULT 0,
      phone TEXT,
      created_at TEXT DEFAULT to_char(timezone('utc', now()), 'YYYY-MM-DD HH24:MI:SS')
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS time_entries (
      id SERIAL PRIMARY KEY,
      worker_id INTEGER NOT NULL REFERENCES workers(id) ON DELETE CASCADE,
      clock_in TEXT,
      clock_out TEXT,
      hours_worked DOUBLE PRECISION,
      date TEXT,
      notes TEXT,
      created_at TEXT DEFAULT to_char(timezone('utc', now()), 'YYYY-MM-DD HH24:MI:SS')
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_time_entries_worker_date ON time_entries(worker_id, date)",
    """
    CREATE UNIQUE INDEX IF NOT EXISTS uq_time_entries_open
    ON time_entries(worker_id, date) WHERE clock_out IS NULL
    """,
]


@dataclass(frozen=True)
class RunResult:
    changes: int
    rows: list[Row] = field(default_factory=list)
    last_insert_id: int | None = None

    @property
    def row(self) -> Row | None:
        return self.rows[0] if self.rows else None


def _insert_table(sql: str) -> str | None:
    m = _INSERT_RE.match(sql)
    return m.group(1) if m else None


def _has_returning(sql: str) -> bool:
    return _RETURNING_RE.search(sql) is not None


class Statement:
    """A dialect-translated statement bound to one database.

    ``run`` on an INSERT always carries the inserted row in ``RunResult.rows``,
    whichever backend executed it.
    """

    def __init__(self, db: "Database", sql: str) -> None:
        self._db = db
        self.sql = translate(db.prepare_source(sql), db.dialect)
        self.insert_table = _insert_table(sql)
        self.returning = _has_returning(self.sql)

    def get(self, *args: Any) -> Row | None:
        rows = self._db.fetch(self.sql, args)
        return rows[0] if rows else None

    def all(self, *args: Any) -> list[Row]:
        return self._db.fetch(self.sql, args)

    def run(self, *args: Any) -> RunResult:
        return self._db.run(self, args)


class Database:
    name: str
    dialect: Dialect

    def prepare(self, sql: str) -> Statement:
        return Statement(self, sql)

    def prepare_source(self, sql: str) -> str:
        return sql

    @property
    def integrity_error(self) -> type[Exception]:  # pragma: no cover - interface
        raise NotImplementedError

    def fetch(self, sql: str, args: Sequence[Any]) -> list[Row]:  # pragma: no cover - interface
        raise NotImplementedError

    def run(self, stmt: Statement, args: Sequence[Any]) -> RunResult:  # pragma: no cover - interface
        raise NotImplementedError

    def execute_script(self, statements: Sequence[str]) -> None:  # pragma: no cover - interface
        raise NotImplementedError

    def init_schema(self) -> None:  # pragma: no cover - interface
        raise NotImplementedError

    def close(self) -> None:  # pragma: no cover - interface
        raise NotImplementedError


class SQLiteDatabase(Database):
    name = "sqlite"
    dialect = SQLITE

    def __init__(self, db_path: Path | str) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.RLock()
        self._conn = sqlite3.connect(str(self._db_path), check_same_thread=False, timeout=30)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA foreign_keys=ON;")
        self._conn.execute("PRAGMA journal_mode=WAL;")

    @property
    def integrity_error(self) -> type[Exception]:
        return sqlite3.IntegrityError

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def init_schema(self) -> None:
        self.execute_script(SQLITE_SCHEMA)

    def execute_script(self, statements: Sequence[str]) -> None:
        with self._lock:
            try:
                for sql in statements:
                    self._conn.execute(sql)
                self._conn.commit()
            except Exception:
                self._conn.rollback()
                raise

    def fetch(self, sql: str, args: Sequence[Any]) -> list[Row]:
        with self._lock:
            rows = self._conn.execute(sql, tuple(args)).fetchall()
        return [dict(row) for row in rows]

    def run(self, stmt: Statement, args: Sequence[Any]) -> RunResult:
        with self._lock:
            try:
                cur = self._conn.execute(stmt.sql, tuple(args))
                if stmt.returning:
                    rows = [dict(row) for row in cur.fetchall()]
                    changes = len(rows)
                else:
                    rows = []
                    changes = max(int(cur.rowcount or 0), 0)
                last_id = int(cur.lastrowid) if stmt.insert_table and cur.lastrowid else None
                self._conn.commit()
            except Exception:
                self._conn.rollback()
                raise

            # No RETURNING: look the new row up by rowid.
            if stmt.insert_table and not stmt.returning and last_id is not None:
                found = self._conn.execute(
                    f"SELECT * FROM {stmt.insert_table} WHERE rowid = ?",
                    (last_id,),
                ).fetchone()
                if found is not None:
                    rows = [dict(found)]
        return RunResult(changes=changes, rows=rows, last_insert_id=last_id)


class PostgresDatabase(Database):
    name = "postgres"
    dialect = POSTGRES

    def __init__(self, pool: Any) -> None:
        self._pool = pool

    @classmethod
    def from_url(cls, database_url: str, *, minconn: int = 1, maxconn: int = 10) -> "PostgresDatabase":
        if psycopg2 is None or ThreadedConnectionPool is None:
            raise BackendError("psycopg2 is not installed")
        try:
            pool = ThreadedConnectionPool(minconn, maxconn, dsn=database_url)
        except psycopg2.Error as e:
            raise BackendError(f"Could not connect to Postgres: {e}") from e
        return cls(pool)

    @property
    def integrity_error(self) -> type[Exception]:
        if psycopg2 is None:
            raise BackendError("psycopg2 is not installed")
        return psycopg2.IntegrityError

    def close(self) -> None:
        self._pool.closeall()

    def prepare_source(self, sql: str) -> str:
        # The inserted row comes back in the same round-trip.
        if _insert_table(sql) and not _has_returning(sql):
            return sql.rstrip().rstrip(";") + " RETURNING *"
        return sql

    @contextlib.contextmanager
    def _cursor(self) -> Iterator[Any]:
        conn = self._pool.getconn()
        try:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                yield cur
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            self._pool.putconn(conn)

    def init_schema(self) -> None:
        self.execute_script(POSTGRES_SCHEMA)

    def execute_script(self, statements: Sequence[str]) -> None:
        with self._cursor() as cur:
            for sql in statements:
                cur.execute(sql)

    def fetch(self, sql: str, args: Sequence[Any]) -> list[Row]:
        with self._cursor() as cur:
            cur.execute(sql, tuple(args))
            rows = cur.fetchall() if cur.description is not None else []
        return [dict(row) for row in rows]

    def run(self, stmt: Statement, args: Sequence[Any]) -> RunResult:
        with self._cursor() as cur:
            cur.execute(stmt.sql, tuple(args))
            rows = [dict(row) for row in cur.fetchall()] if cur.description is not None else []
            changes = max(int(cur.rowcount or 0), 0)
        last_id = None
        if stmt.insert_table and rows and rows[0].get("id") is not None:
            last_id = int(rows[0]["id"])
        return RunResult(changes=changes, rows=rows, last_insert_id=last_id)


def create_database(database_url: str | None, sqlite_path: Path) -> Database:
    url = (database_url or "").strip()
    if url:
        db: Database = PostgresDatabase.from_url(url)
    else:
        try:
            db = SQLiteDatabase(sqlite_path)
        except sqlite3.Error as e:
            raise BackendError(f"Could not open SQLite database at {sqlite_path}: {e}") from e
    db.init_schema()
    log.info("Database backend: %s", db.name)
    return db
