# Overview: Transaction isolation, row locking and bounded retry for the write paths.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..errors import ConcurrencyConflictError

# Driver messages of OperationalErrors that mean "another transaction got there first"
TRANSIENT_OPERATIONAL_MARKERS = (
    "database is locked",
    "database table is locked",
    "could not serialize access",
    "deadlock detected",
    "lock wait timeout",
    "could not obtain lock",
)

# SQLSTATEs for serialization failure, deadlock and lock-not-available
TRANSIENT_SQLSTATES = {"40001", "40P01", "55P03"}


def is_transient_error(exc: BaseException) -> bool:
    """True for conflicts with a concurrent transaction, never for business or schema errors."""
    if isinstance(exc, (StaleDataError, ConcurrencyConflictError)):
        return True
    if not isinstance(exc, OperationalError):
        return False
    sqlstate = getattr(exc.orig, "pgcode", None) or getattr(exc.orig, "sqlstate", None)
    if sqlstate in TRANSIENT_SQLSTATES:
        return True
    message = str(exc.orig).lower()
    return any(marker in message for marker in TRANSIENT_OPERATIONAL_MARKERS)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; the BEGIN IMMEDIATE issued by
    begin_serializable() already holds the database write lock there.
    """
    return query.with_for_update()


def begin_isolated(level: str) -> None:
    """
    Acquire the session's connection at the given isolation level.

    Isolation can only be set when the connection is first acquired, so any
    transaction the session already holds (e.g. the actor lookup done by the
    request decorator) is rolled back first.
    """
    if db.session().in_transaction():
        db.session.rollback()
    db.session.connection(execution_options={"isolation_level": level})


def begin_serializable() -> None:
    """
    Open the session's unit of work at the strongest isolation the engine offers.

    Discards whatever transaction the session already holds.
    - SQLite: BEGIN IMMEDIATE (write lock taken up front; SQLite is serializable)
    - others: SERIALIZABLE isolation on a freshly acquired connection
    """
    if db.engine.dialect.name == "sqlite":
        if db.session().in_transaction():
            db.session.rollback()
        db.session.execute(text("BEGIN IMMEDIATE"))
    else:
        begin_isolated("SERIALIZABLE")


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float | None = None):
    """
    Execute a DB unit of work with retry on concurrency-related failures.

    Retries only what is_transient_error() accepts: lock, serialization and
    deadlock OperationalErrors, StaleDataError and ConcurrencyConflictError.
    Every other exception, including OperationalErrors such as a missing
    table, is rolled back and re-raised untouched. When attempts are exhausted the
    last failure surfaces as ConcurrencyConflictError.
    """
    if attempts is None:
        attempts = current_app.config.get("SALE_RETRY_ATTEMPTS", 3)
    if backoff_base is None:
        backoff_base = current_app.config.get("SALE_RETRY_BACKOFF", 0.1)
    attempts = max(1, attempts)

    for attempt in range(attempts):
        try:
            return func()
        except Exception as exc:
            db.session.rollback()
            if not is_transient_error(exc):
                raise
            current_app.logger.warning(
                "Transient conflict on attempt %d/%d: %s", attempt + 1, attempts, exc
            )
            if attempt >= attempts - 1:
                if isinstance(exc, ConcurrencyConflictError):
                    raise
                raise ConcurrencyConflictError(
                    "concurrency-conflict",
                    details={"attempts": attempts},
                ) from exc
            time.sleep(backoff_base * (2 ** attempt))
