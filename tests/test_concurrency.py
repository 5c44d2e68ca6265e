"""
Concurrency Tests for Double-Booking Prevention

Tests cover:
- Translation of storage-level conflicts into RangeNotAvailableError
- Row locking and isolation on PostgreSQL (mocked dialect)
- A lost pre-check race stopped by the unique calendar constraint
- Two threads booking the same range: exactly one wins
"""

import threading
from datetime import date
from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import sessionmaker

from reservation_engine.database import Base
from reservation_engine.errors import RangeNotAvailableError
from reservation_engine.models.availability import AvailabilityRecord
from reservation_engine.models.property import Property
from reservation_engine.models.reservation import Reservation
from reservation_engine.services.calendar_store import CalendarStore
from reservation_engine.services.conflict_checker import AvailabilityConflicts, ConflictChecker
from reservation_engine.services.reservation_lifecycle import ReservationLifecycle
from reservation_engine.utils.db_helpers import (
    acquire_row_lock, is_calendar_conflict, is_concurrency_failure, serializable_transaction
)

from .conftest import ADMIN, TODAY, make_request

MARCH_1 = date(2024, 3, 1)
MARCH_4 = date(2024, 3, 4)


def postgres_session():
    db = MagicMock()
    db.get_bind.return_value.dialect.name = 'postgresql'
    db.in_transaction.return_value = False
    return db


def sqlite_session():
    db = MagicMock()
    db.get_bind.return_value.dialect.name = 'sqlite'
    return db


class PgError(Exception):
    def __init__(self, message, pgcode=None):
        super().__init__(message)
        self.pgcode = pgcode


class TestDbHelpers:
    """Dialect handling and error translation"""

    def test_acquire_row_lock_uses_for_update_on_postgres(self):
        db = postgres_session()
        filter_mock = db.query.return_value.filter.return_value

        acquire_row_lock(db, Reservation, Reservation.id == 'r-1', nowait=True)

        filter_mock.with_for_update.assert_called_once_with(nowait=True)

    def test_acquire_row_lock_skips_locking_on_sqlite(self):
        db = sqlite_session()
        filter_mock = db.query.return_value.filter.return_value

        acquire_row_lock(db, Reservation, Reservation.id == 'r-1')

        filter_mock.with_for_update.assert_not_called()
        filter_mock.first.assert_called_once()

    def test_serializable_isolation_on_postgres(self):
        db = postgres_session()

        with serializable_transaction(db):
            pass

        db.connection.assert_called_once_with(execution_options={"isolation_level": "SERIALIZABLE"})
        db.commit.assert_called_once()

    def test_no_isolation_change_on_sqlite(self):
        db = sqlite_session()

        with serializable_transaction(db):
            pass

        db.connection.assert_not_called()
        db.commit.assert_called_once()

    def test_unique_violation_becomes_range_not_available(self):
        db = sqlite_session()
        error = IntegrityError(
            "INSERT ...", {},
            PgError('duplicate key value violates unique constraint "uq_availability_property_date"')
        )

        with pytest.raises(RangeNotAvailableError):
            with serializable_transaction(db):
                raise error

        db.rollback.assert_called_once()
        db.commit.assert_not_called()

    def test_sqlite_unique_violation_recognised(self):
        error = IntegrityError(
            "INSERT ...", {},
            Exception("UNIQUE constraint failed: availability_records.property_id, availability_records.date")
        )
        assert is_calendar_conflict(error)

    def test_other_integrity_errors_propagate(self):
        db = sqlite_session()
        error = IntegrityError("INSERT ...", {}, Exception("CHECK constraint failed: ck_reservation_guest_count"))

        with pytest.raises(IntegrityError):
            with serializable_transaction(db):
                raise error
        db.rollback.assert_called_once()

    @pytest.mark.parametrize("pgcode", ["40001", "40P01", "55P03"])
    def test_serialization_failures_become_range_not_available(self, pgcode):
        db = postgres_session()
        error = OperationalError("UPDATE ...", {}, PgError("could not serialize access", pgcode=pgcode))

        assert is_concurrency_failure(error)
        with pytest.raises(RangeNotAvailableError):
            with serializable_transaction(db):
                raise error

    def test_sqlite_lock_becomes_range_not_available(self):
        db = sqlite_session()
        error = OperationalError("INSERT ...", {}, Exception("database is locked"))

        with pytest.raises(RangeNotAvailableError):
            with serializable_transaction(db):
                raise error

    def test_unrelated_operational_error_propagates(self):
        db = sqlite_session()
        error = OperationalError("SELECT ...", {}, Exception("no such table: reservations"))

        with pytest.raises(OperationalError):
            with serializable_transaction(db):
                raise error


class TestLostPreCheckRace:
    """The pre-check said 'available' but another writer got there first"""

    def test_constraint_rejects_second_booking(self, db_session, lifecycle, property_x):
        lifecycle.create(make_request(property_x.id, MARCH_1, MARCH_4), ADMIN)

        stale = AvailabilityConflicts(property_id=property_x.id, start_date=MARCH_1, end_date=MARCH_4)
        with patch.object(ConflictChecker, "find_conflicts", return_value=stale), \
                patch.object(CalendarStore, "get_records", return_value=[]):
            with pytest.raises(RangeNotAvailableError):
                lifecycle.create(make_request(property_x.id, MARCH_1, MARCH_4, guest_email="late@example.com"), ADMIN)

        assert db_session.query(Reservation).count() == 1
        assert db_session.query(AvailabilityRecord).count() == 3

    def test_block_rejected_by_constraint(self, db_session, lifecycle, property_x):
        from reservation_engine.services.block_manager import BlockManager

        lifecycle.create(make_request(property_x.id, MARCH_1, MARCH_4), ADMIN)

        stale = AvailabilityConflicts(property_id=property_x.id, start_date=MARCH_1, end_date=MARCH_4)
        with patch.object(ConflictChecker, "find_conflicts", return_value=stale), \
                patch.object(CalendarStore, "get_records", return_value=[]):
            with pytest.raises(RangeNotAvailableError):
                BlockManager(db_session).block(property_x.id, MARCH_1, MARCH_4, "maintenance")

        rows = db_session.query(AvailabilityRecord).all()
        assert {r.blocked_reason for r in rows} == {"booked"}


class TestConcurrentCreate:
    """Two requests for the same range on a shared database file"""

    @pytest.fixture
    def file_engine(self, tmp_path):
        engine = create_engine(
            f"sqlite:///{tmp_path / 'race.db'}",
            connect_args={"check_same_thread": False, "timeout": 30},
        )
        Base.metadata.create_all(bind=engine)
        yield engine
        engine.dispose()

    def test_exactly_one_wins(self, file_engine):
        Session = sessionmaker(bind=file_engine)

        setup = Session()
        prop = Property(
            name="Loft X",
            price_per_night=Decimal("5000"),
            cleaning_fee=Decimal("1000"),
            service_fee=Decimal("500"),
            tax_rate_percent=Decimal("10"),
            max_guests=4,
        )
        setup.add(prop)
        setup.commit()
        property_id = prop.id
        setup.close()

        workers = 2
        barrier = threading.Barrier(workers)
        results = []
        lock = threading.Lock()

        def book(n):
            session = Session()
            lifecycle = ReservationLifecycle(session, notifier=MagicMock(), today_provider=lambda: TODAY)
            request = make_request(property_id, MARCH_1, MARCH_4, guest_email=f"guest{n}@example.com",
                                   guest_phone=None)
            try:
                barrier.wait()
                lifecycle.create(request, ADMIN)
                outcome = "ok"
            except RangeNotAvailableError:
                outcome = "conflict"
            except Exception as e:
                outcome = f"unexpected: {e!r}"
            finally:
                session.close()
            with lock:
                results.append(outcome)

        threads = [threading.Thread(target=book, args=(n,)) for n in range(workers)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=60)

        assert sorted(results) == ["conflict", "ok"]

        check = Session()
        try:
            assert check.query(Reservation).count() == 1
            assert check.query(AvailabilityRecord).count() == 3
        finally:
            check.close()
