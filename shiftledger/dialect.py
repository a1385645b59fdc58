"""SQL dialect translation.

Queries are written once, in SQLite flavour: positional ``?`` markers and
``datetime('now')`` for the current timestamp. :func:`translate` rewrites that
text for the backend that will run it.

Markers are replaced wherever they appear, including inside string literals.
None of the ledger queries put ``?`` in a literal.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable

MARKER = "?"

_NOW_RE = re.compile(r"""datetime\(\s*(["'])now\1\s*\)""", re.IGNORECASE)


@dataclass(frozen=True)
class Dialect:
    name: str
    now_sql: str
    placeholder: Callable[[int], str]
    escape_percent: bool = False


SQLITE = Dialect(name="sqlite", now_sql="datetime('now')", placeholder=lambda n: "?")

# psycopg2 binds positionally with %s, so a literal % must be doubled.
POSTGRES = Dialect(name="postgres", now_sql="NOW()", placeholder=lambda n: "%s", escape_percent=True)


def count_markers(sql: str) -> int:
    return sql.count(MARKER)


def translate(sql: str, dialect: Dialect) -> str:
    out = _NOW_RE.sub(lambda _m: dialect.now_sql, sql)
    if dialect.escape_percent:
        out = out.replace("%", "%%")

    parts = out.split(MARKER)
    if len(parts) == 1:
        return out
    pieces = [parts[0]]
    for i, part in enumerate(parts[1:], start=1):
        pieces.append(dialect.placeholder(i))
        pieces.append(part)
    return "".join(pieces)
