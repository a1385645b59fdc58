from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


DATABASE_URL_ENV = "DATABASE_URL"
DATA_DIR_ENV = "SHIFTLEDGER_DATA_DIR"
LOG_LEVEL_ENV = "SHIFTLEDGER_LOG_LEVEL"

DEFAULT_DATA_DIR = ".shiftledger"
SQLITE_FILENAME = "shiftledger.sqlite3"


@dataclass(frozen=True)
class Settings:
    database_url: str
    data_dir: Path
    log_level: str

    @property
    def sqlite_path(self) -> Path:
        return self.data_dir / SQLITE_FILENAME

    @property
    def backend(self) -> str:
        return "postgres" if self.database_url else "sqlite"


def resolve_data_dir(raw: str | Path) -> Path:
    p = Path(raw)
    if not p.is_absolute():
        p = (Path.cwd() / p).resolve()
    return p


def load_settings() -> Settings:
    database_url = (os.getenv(DATABASE_URL_ENV, "") or "").strip()
    data_dir = resolve_data_dir((os.getenv(DATA_DIR_ENV, DEFAULT_DATA_DIR) or DEFAULT_DATA_DIR).strip())
    log_level = (os.getenv(LOG_LEVEL_ENV, "INFO") or "INFO").strip().upper()
    return Settings(database_url=database_url, data_dir=data_dir, log_level=log_level)
