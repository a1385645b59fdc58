from __future__ import annotations

import argparse
import logging
import os
from pathlib import Path

from dotenv import load_dotenv

from shiftledger.config import DATA_DIR_ENV, load_settings, resolve_data_dir


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="shiftledger")
    parser.add_argument("--verbose", action="store_true")
    parser.add_argument("--data-dir", type=Path, default=None, help="Directory for the SQLite file when DATABASE_URL is unset")
    sub = parser.add_subparsers(dest="command", required=True)

    web = sub.add_parser("web", help="Run the HTTP API")
    web.add_argument("--host", default="127.0.0.1")
    web.add_argument("--port", type=int, default=8010)
    web.add_argument("--reload", action="store_true")

    sub.add_parser("check", help="Open the configured database and print row counts")
    return parser


def _check() -> int:
    from shiftledger.db import create_database
    from shiftledger.errors import BackendError

    settings = load_settings()
    try:
        db = create_database(settings.database_url, settings.sqlite_path)
    except BackendError as e:
        logging.error("%s", e)
        return 1
    try:
        workers = db.prepare("SELECT COUNT(*) AS c FROM workers").get()
        entries = db.prepare("SELECT COUNT(*) AS c FROM time_entries").get()
        open_entries = db.prepare("SELECT COUNT(*) AS c FROM time_entries WHERE clock_out IS NULL").get()
    finally:
        db.close()

    print(f"backend: {db.name}")
    if db.name == "sqlite":
        print(f"path: {settings.sqlite_path}")
    print(f"workers: {int((workers or {}).get('c') or 0)}")
    print(f"time_entries: {int((entries or {}).get('c') or 0)}")
    print(f"open_entries: {int((open_entries or {}).get('c') or 0)}")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    load_dotenv()
    if args.data_dir is not None:
        os.environ[DATA_DIR_ENV] = str(resolve_data_dir(args.data_dir))

    settings = load_settings()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else settings.log_level,
        format="%(asctime)s %(levelname)s %(message)s",
    )

    if args.command == "check":
        return _check()

    if args.command == "web":
        try:
            import uvicorn  # type: ignore
        except Exception:
            logging.error("uvicorn is not installed. Install dependencies: pip install -e .")
            return 1
        uvicorn.run("shiftledger.app:app", host=args.host, port=int(args.port), reload=bool(args.reload))
        return 0

    parser.error(f"Unknown command: {args.command}")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
