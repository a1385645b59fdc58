from __future__ import annotations

import logging
from typing import Any

from fastapi import Body, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse

from shiftledger.config import load_settings
from shiftledger.db import Database, create_database
from shiftledger.errors import LedgerError
from shiftledger.ledger import TimeEntryManager
from shiftledger.payroll import PayrollAggregator
from shiftledger.workers import WorkerRegistry


log = logging.getLogger("shiftledger")


def _api_error(message: str, code: int = 400) -> JSONResponse:
    return JSONResponse(status_code=code, content={"ok": False, "error": message})


def _first(*values: Any) -> Any:
    for value in values:
        if value not in (None, ""):
            return value
    return None


def _worker_id_from(payload: dict[str, Any] | None) -> Any:
    payload = payload or {}
    return _first(payload.get("workerId"), payload.get("worker_id"))


def _notes_from(payload: dict[str, Any] | None) -> str:
    return str((payload or {}).get("notes") or "")


def _worker_fields(payload: dict[str, Any] | None) -> dict[str, Any]:
    payload = payload or {}
    return {
        "name": payload.get("name", ""),
        "employee_id": payload.get("employee_id", payload.get("employeeId", "")),
        "role": payload.get("role", ""),
        "hourly_rate": payload.get("hourly_rate", payload.get("hourlyRate", 0)),
        "phone": payload.get("phone", ""),
    }


def create_app(db: Database, *, owns_db: bool = False, log_level: str = "INFO") -> FastAPI:
    workers = WorkerRegistry(db)
    ledger = TimeEntryManager(db)
    payroll = PayrollAggregator(db)

    app = FastAPI(title="Shiftledger")
    app.state.db = db
    app.state.workers = workers
    app.state.ledger = ledger
    app.state.payroll = payroll

    @app.on_event("startup")
    def _startup() -> None:
        logging.basicConfig(level=log_level, format="%(asctime)s %(levelname)s %(message)s")
        log.info("Serving with %s backend", db.name)

    @app.on_event("shutdown")
    def _shutdown() -> None:
        if owns_db:
            db.close()

    @app.exception_handler(LedgerError)
    async def _ledger_error(request: Request, exc: LedgerError) -> JSONResponse:
        if exc.status_code >= 500:
            log.error("%s %s failed: %s", request.method, request.url.path, exc)
        return _api_error(str(exc), exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def _request_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        return _api_error("Invalid request", 400)

    @app.exception_handler(Exception)
    async def _unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        log.exception("Unhandled error on %s %s", request.method, request.url.path)
        return _api_error("Internal server error", 500)

    @app.get("/health", response_class=PlainTextResponse)
    def health() -> str:
        return "ok"

    @app.get("/api/workers")
    def api_list_workers():
        return [w.__dict__ for w in workers.list_workers()]

    @app.get("/api/workers/{worker_id}")
    def api_get_worker(worker_id: int):
        return workers.require_worker(worker_id).__dict__

    @app.post("/api/workers")
    def api_create_worker(payload: dict[str, Any] | None = Body(None)):
        return workers.create_worker(**_worker_fields(payload)).__dict__

    @app.put("/api/workers/{worker_id}")
    def api_update_worker(worker_id: int, payload: dict[str, Any] | None = Body(None)):
        return workers.update_worker(worker_id, **_worker_fields(payload)).__dict__

    @app.delete("/api/workers/{worker_id}")
    def api_delete_worker(worker_id: int):
        workers.delete_worker(worker_id)
        return {"ok": True, "message": "Worker deleted successfully"}

    @app.get("/api/time-entries")
    def api_time_entries(
        worker_id: str | None = Query(None, alias="workerId"),
        date_from: str | None = Query(None, alias="dateFrom"),
        date_to: str | None = Query(None, alias="dateTo"),
        worker_id_snake: str | None = Query(None, alias="worker_id"),
        date_from_snake: str | None = Query(None, alias="date_from"),
        date_to_snake: str | None = Query(None, alias="date_to"),
    ):
        rows = ledger.list_entries(
            worker_id=_first(worker_id, worker_id_snake),
            date_from=_first(date_from, date_from_snake),
            date_to=_first(date_to, date_to_snake),
        )
        return [r.__dict__ for r in rows]

    @app.post("/api/time-entries/clock-in")
    def api_clock_in(payload: dict[str, Any] | None = Body(None)):
        return ledger.clock_in(_worker_id_from(payload), _notes_from(payload)).__dict__

    @app.post("/api/time-entries/clock-out")
    def api_clock_out(payload: dict[str, Any] | None = Body(None)):
        return ledger.clock_out(_worker_id_from(payload), _notes_from(payload)).__dict__

    @app.get("/api/reports/payroll")
    def api_payroll(
        date_from: str | None = Query(None, alias="dateFrom"),
        date_to: str | None = Query(None, alias="dateTo"),
        date_from_snake: str | None = Query(None, alias="date_from"),
        date_to_snake: str | None = Query(None, alias="date_to"),
    ):
        rows = payroll.payroll(
            date_from=_first(date_from, date_from_snake),
            date_to=_first(date_to, date_to_snake),
        )
        return [r.__dict__ for r in rows]

    return app


def build_app_from_env() -> FastAPI:
    settings = load_settings()
    db = create_database(settings.database_url, settings.sqlite_path)
    return create_app(db, owns_db=True, log_level=settings.log_level)


_app: FastAPI | None = None


def __getattr__(name: str):
    # uvicorn resolves "shiftledger.app:app" through this.
    global _app
    if name == "app":
        if _app is None:
            _app = build_app_from_env()
        return _app
    raise AttributeError(f"module 'shiftledger.app' has no attribute {name!r}")
