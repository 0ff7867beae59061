# Overview: Locking and retry helpers shared by every service that writes.

from __future__ import annotations

import time

from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; call serialize_writes() first
    so the whole transaction holds SQLite's write lock instead.
    """
    return query.with_for_update()


def serialize_writes() -> None:
    """
    Take the database write lock up front on SQLite (BEGIN IMMEDIATE).

    Makes check-then-insert sequences atomic on SQLite, where row locks are
    unavailable. No-op on other dialects and when a transaction is already
    open on this connection.
    """
    if db.engine.dialect.name != "sqlite":
        return
    raw = db.session.connection().connection.dbapi_connection
    if not raw.in_transaction:
        db.session.execute(text("BEGIN IMMEDIATE"))


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). Domain errors propagate immediately,
    after the session is rolled back. A lock wait that is still timing out
    on the last attempt is raised as StorageTimeoutError.
    """
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                if is_storage_timeout(exc):
                    raise StorageTimeoutError("Storage timeout, please retry") from exc
                raise
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            db.session.rollback()
            raise


class StorageTimeoutError(Exception):
    """A storage call exceeded STORAGE_TIMEOUT_SECONDS (lock wait or statement timeout)."""
    pass


_TIMEOUT_MARKERS = (
    "database is locked",
    "statement timeout",
    "lock timeout",
    "timeout expired",
    "queuepool limit",
)


def is_storage_timeout(exc: BaseException) -> bool:
    """True for driver errors that mean a bounded wait ran out."""
    if isinstance(exc, StorageTimeoutError):
        return True
    message = str(getattr(exc, "orig", None) or exc).lower()
    return any(marker in message for marker in _TIMEOUT_MARKERS)
