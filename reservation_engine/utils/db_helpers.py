"""
Database Helper Utilities for Concurrency Control

Provides:
- Database dialect detection (PostgreSQL vs SQLite)
- Row locking helpers
- The serializable write transaction used by every calendar mutation,
  which turns storage-level conflicts into RangeNotAvailableError
"""

import logging
from contextlib import contextmanager
from typing import Optional, TypeVar, Type

from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError, OperationalError, DBAPIError

from ..errors import RangeNotAvailableError
from ..models.availability import CALENDAR_UNIQUE_CONSTRAINT

logger = logging.getLogger(__name__)

T = TypeVar('T')

# serialization_failure, deadlock_detected, lock_not_available
POSTGRES_CONCURRENCY_SQLSTATES = {"40001", "40P01", "55P03"}


def is_postgres(db: Session) -> bool:
    """Check if the database is PostgreSQL"""
    bind = db.get_bind()
    return bind is not None and bind.dialect.name == 'postgresql'


def acquire_row_lock(
    db: Session,
    model: Type[T],
    filter_condition,
    nowait: bool = False
) -> Optional[T]:
    """
    Acquire a row-level lock on a database record.

    Only PostgreSQL gets SELECT ... FOR UPDATE; SQLite serialises writers
    at the database level anyway.

    Raises:
        OperationalError: If nowait=True and row is locked by another transaction
    """
    query = db.query(model).filter(filter_condition)

    if is_postgres(db):
        query = query.with_for_update(nowait=nowait)

    return query.first()


def is_calendar_conflict(exc: IntegrityError) -> bool:
    """True if the violation is the one-row-per-(property, date) constraint"""
    message = str(exc.orig)
    return (
        CALENDAR_UNIQUE_CONSTRAINT in message
        or "availability_records.property_id" in message
    )


def is_concurrency_failure(exc: DBAPIError) -> bool:
    """Serialization failures and lock contention from a concurrent writer"""
    orig = exc.orig
    sqlstate = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if sqlstate in POSTGRES_CONCURRENCY_SQLSTATES:
        return True
    return "database is locked" in str(orig).lower()


@contextmanager
def serializable_transaction(db: Session):
    """
    Run a check-then-write sequence as one transaction and commit it.

    On PostgreSQL the transaction is opened at SERIALIZABLE isolation. The
    unique (property_id, date) constraint stays the real guard: a violation
    of it, or a serialization failure, is reported as RangeNotAvailableError
    exactly like a conflict found by the pre-check. Any other error rolls
    back and propagates unchanged.
    """
    if is_postgres(db):
        if db.in_transaction():
            logger.debug("Session already in a transaction, keeping its isolation level")
        else:
            db.connection(execution_options={"isolation_level": "SERIALIZABLE"})

    try:
        yield db
        db.commit()
    except IntegrityError as e:
        db.rollback()
        if is_calendar_conflict(e):
            logger.warning(f"Calendar uniqueness violation, concurrent write detected: {e.orig}")
            raise RangeNotAvailableError("Selected dates were taken by a concurrent request") from e
        raise
    except OperationalError as e:
        db.rollback()
        if is_concurrency_failure(e):
            logger.warning(f"Concurrent transaction conflict: {e.orig}")
            raise RangeNotAvailableError("Selected dates were taken by a concurrent request") from e
        raise
    except Exception:
        db.rollback()
        raise
