from __future__ import annotations


class LedgerError(RuntimeError):
    status_code = 500


class ValidationError(LedgerError):
    status_code = 400


class NotFoundError(LedgerError):
    status_code = 404


class InvariantViolation(LedgerError):
    status_code = 400


class UniqueConstraintError(LedgerError):
    status_code = 400


class BackendError(LedgerError):
    status_code = 500
