# Overview: Service-layer helpers for row locking and retrying conflicted transactions.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from .exceptions import ConflictError


RETRYABLE_ERRORS = (OperationalError, StaleDataError, ConflictError)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def configured_attempts(default: int = 3) -> int:
    try:
        return int(current_app.config.get("POSTING_RETRY_ATTEMPTS", default))
    except RuntimeError:
        # outside an app context
        return default


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks), StaleDataError and
    ConflictError (ledger sequence or document sequence races). The session
    is rolled back before each retry, so func must redo all of its work.
    """
    if attempts is None:
        attempts = configured_attempts()
    attempts = max(1, attempts)

    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except RETRYABLE_ERRORS as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc
