# Overview: Transaction helpers for ledger mutations (locking, retry on write conflicts).

from __future__ import annotations

import time

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


RETRYABLE_ERRORS = (OperationalError, StaleDataError)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    On SQLite, begin_write() takes the database write lock up front instead.
    """
    return query.with_for_update()


def begin_write() -> None:
    """
    Start the write transaction before the first read.

    SQLite defers the write lock to the first INSERT/UPDATE, which lets two
    read-then-write merges interleave. BEGIN IMMEDIATE serializes them.
    """
    if db.engine.dialect.name == "sqlite":
        db.session.execute(text("BEGIN IMMEDIATE"))


def run_with_retry(
    func,
    *,
    attempts: int = 3,
    backoff_base: float = 0.1,
    retry_on_integrity: bool = False,
):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). With retry_on_integrity, a unique
    constraint violation is also retried: two writers raced to create the
    same merge target, and the next attempt will find the winner's row.

    Any other exception rolls the session back and propagates.
    """
    retryable = RETRYABLE_ERRORS + ((IntegrityError,) if retry_on_integrity else ())
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except retryable as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            db.session.rollback()
            raise
    if last_exc:
        raise last_exc
