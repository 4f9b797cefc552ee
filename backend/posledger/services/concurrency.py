# Overview: Locking, write-transaction and retry helpers shared by every mutating service.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; begin_write() takes the
    database write lock there instead.
    """
    return query.with_for_update()


def begin_write() -> None:
    """
    Open the write transaction up front on SQLite.

    pysqlite defers BEGIN until the first DML statement, so two requests
    could both read stock before either writes. BEGIN IMMEDIATE takes the
    RESERVED lock before any read. No-op when the connection is already
    inside a transaction or the engine is not SQLite.
    """
    if db.engine.dialect.name != "sqlite":
        return
    conn = db.session.connection()
    raw = conn.connection.dbapi_connection
    if getattr(raw, "in_transaction", False):
        return
    conn.exec_driver_sql("BEGIN IMMEDIATE")


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, "database is locked") and
    StaleDataError (optimistic locking conflicts). The session is rolled
    back before every retry so each attempt starts clean.
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            current_app.logger.warning(
                "Transient database error, retrying (attempt %s/%s): %s",
                attempt + 1, attempts, exc,
            )
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc


def atomic(func, *, attempts: int = 3):
    """
    Run func() as one committed unit of work.

    func does its writes without committing. On success the session is
    committed; on any exception it is rolled back and the error re-raised.
    Transient lock errors are retried.
    """
    def _op():
        try:
            begin_write()
            result = func()
            db.session.commit()
            return result
        except (OperationalError, StaleDataError):
            raise
        except Exception:
            db.session.rollback()
            raise

    return run_with_retry(_op, attempts=attempts)
