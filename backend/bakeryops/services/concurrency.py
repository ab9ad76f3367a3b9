# Overview: Transaction helpers shared by every read-modify-write in the engine.

from __future__ import annotations

import time

from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..validation import ConcurrencyError


_CONTENTION_MARKERS = ("locked", "deadlock", "could not serialize", "busy")


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; begin_write() covers it there.
    """
    return query.with_for_update()


def begin_write() -> None:
    """
    Take the database write lock up front on SQLite.

    SQLite has no row locks, so every critical section starts with
    BEGIN IMMEDIATE: concurrent writers queue on the busy timeout instead of
    racing between their read and their write. No-op on other dialects and
    when the connection is already inside a transaction.
    """
    if db.engine.dialect.name != "sqlite":
        return
    raw = db.session.connection().connection.dbapi_connection
    if not raw.in_transaction:
        db.session.execute(text("BEGIN IMMEDIATE"))


def _is_contention(exc: Exception) -> bool:
    if isinstance(exc, StaleDataError):
        return True
    message = str(getattr(exc, "orig", exc)).lower()
    return any(marker in message for marker in _CONTENTION_MARKERS)


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (locks, deadlocks) and StaleDataError
    (optimistic locking conflicts). Lock contention that survives every
    attempt surfaces as ConcurrencyError; other storage errors propagate.
    Any other exception rolls the session back before propagating so no
    partial write or held lock outlives the operation.
    """
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                if _is_contention(exc):
                    raise ConcurrencyError(
                        "Concurrent update detected, please retry",
                        details={"attempts": attempts},
                    ) from exc
                raise
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            db.session.rollback()
            raise
