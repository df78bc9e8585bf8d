from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine, text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session, sessionmaker

from pos_backend.app.core.config import DATABASE_URL, DB_LOCK_TIMEOUT_MS
from pos_backend.services.errors import ConcurrencyError

logger = logging.getLogger(__name__)

engine = create_engine(DATABASE_URL, pool_pre_ping=True)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)

# serialization_failure, deadlock_detected, lock_not_available, query_canceled
RETRYABLE_SQLSTATES = {"40001", "40P01", "55P03", "57014"}


def _sqlstate(exc: DBAPIError) -> str | None:
    orig = exc.orig
    # psycopg 3 exposes sqlstate, psycopg2 pgcode
    return getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)


def _is_retryable(exc: DBAPIError) -> bool:
    if _sqlstate(exc) in RETRYABLE_SQLSTATES:
        return True
    # SQLite reports lock contention only through the message
    return "database is locked" in str(exc.orig)


def _apply_lock_timeout(db: Session) -> None:
    if DB_LOCK_TIMEOUT_MS <= 0:
        return
    if db.get_bind().dialect.name != "postgresql":
        return
    db.execute(text(f"SET LOCAL lock_timeout = {int(DB_LOCK_TIMEOUT_MS)}"))


@contextmanager
def transaction(db: Session) -> Iterator[Session]:
    """
    Unit of work over one Session.

    Commits when the block exits normally. Any exception rolls back every
    write staged in the block and is re-raised unchanged, except driver
    errors meaning lock timeout / deadlock / serialization failure which
    become ConcurrencyError.
    """
    try:
        _apply_lock_timeout(db)
        yield db
        db.commit()
    except DBAPIError as exc:
        db.rollback()
        if _is_retryable(exc):
            logger.warning("transaction aborted by lock conflict: %s", exc.orig)
            raise ConcurrencyError(
                "Concurrent update conflict, retry the request",
                sqlstate=_sqlstate(exc),
            ) from exc
        raise
    except BaseException:
        db.rollback()
        raise
