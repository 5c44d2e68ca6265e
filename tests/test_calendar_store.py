"""
Tests for the Calendar Store

Low-level write behaviour: one row per date, no overwriting of unavailable
rows, and release of a reservation's booked rows.
"""

from datetime import date
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import patch

import pytest
from sqlalchemy.exc import IntegrityError

from reservation_engine.errors import RangeNotAvailableError
from reservation_engine.models.availability import AvailabilityRecord, BlockedReason
from reservation_engine.models.reservation import Reservation
from reservation_engine.services.calendar_store import CalendarStore

MARCH_1 = date(2024, 3, 1)
MARCH_4 = date(2024, 3, 4)


def add_reservation(db, prop):
    reservation = Reservation(
        property_id=prop.id,
        guest_name="Test Guest",
        check_in_date=MARCH_1,
        check_out_date=MARCH_4,
    )
    db.add(reservation)
    db.flush()
    return reservation


class TestReads:

    def test_entries_fill_missing_dates(self, db_session, property_x):
        entries = CalendarStore(db_session).entries(property_x.id, MARCH_1, MARCH_4)

        assert len(entries) == 3
        assert all(e.is_available and e.price_override is None and e.minimum_stay == 1 for e in entries)

    def test_price_overrides(self, db_session, property_x):
        store = CalendarStore(db_session)
        store.set_rates(property_x.id, date(2024, 3, 2), date(2024, 3, 3), price_override=Decimal("7500"))
        db_session.commit()

        assert store.price_overrides(property_x.id, MARCH_1, MARCH_4) == {date(2024, 3, 2): Decimal("7500.00")}

    def test_range_is_half_open(self, db_session, property_x):
        store = CalendarStore(db_session)
        store.block_range(property_x.id, MARCH_1, MARCH_4, BlockedReason.MAINTENANCE)
        db_session.commit()

        assert store.unavailable_dates(property_x.id, date(2024, 3, 3), date(2024, 3, 5)) == [date(2024, 3, 3)]
        assert store.unavailable_dates(property_x.id, MARCH_4, date(2024, 3, 6)) == []


class TestWrites:

    def test_mark_booked_tags_rows_with_reservation(self, db_session, property_x):
        reservation = add_reservation(db_session, property_x)
        store = CalendarStore(db_session)

        assert store.mark_booked(property_x.id, MARCH_1, MARCH_4, reservation.id) == 3
        db_session.commit()

        rows = store.get_records(property_x.id, MARCH_1, MARCH_4)
        assert all(r.is_booked and r.reservation_id == reservation.id for r in rows)

    def test_never_overwrites_unavailable_row(self, db_session, property_x):
        store = CalendarStore(db_session)
        store.block_range(property_x.id, date(2024, 3, 2), date(2024, 3, 3), BlockedReason.PERSONAL)
        db_session.commit()
        reservation = add_reservation(db_session, property_x)

        with pytest.raises(RangeNotAvailableError) as exc_info:
            store.mark_booked(property_x.id, MARCH_1, MARCH_4, reservation.id)
        assert exc_info.value.unavailable_dates == [date(2024, 3, 2)]

    def test_duplicate_insert_hits_unique_constraint(self, db_session, property_x):
        """A writer that missed an existing row is stopped by the (property_id, date) constraint"""
        store = CalendarStore(db_session)
        store.block_range(property_x.id, MARCH_1, MARCH_4, BlockedReason.MAINTENANCE)
        db_session.commit()

        with patch.object(CalendarStore, "get_records", return_value=[]):
            with pytest.raises(IntegrityError):
                store.block_range(property_x.id, MARCH_1, MARCH_4, BlockedReason.RENOVATION)
        db_session.rollback()

    def test_conditional_update_loses_race(self, db_session, property_x):
        """A row seen as available but taken meanwhile updates zero rows"""
        store = CalendarStore(db_session)
        store.block_range(property_x.id, MARCH_1, date(2024, 3, 2), BlockedReason.MAINTENANCE)
        db_session.commit()
        taken = store.get_record(property_x.id, MARCH_1)
        stale = SimpleNamespace(id=taken.id, date=MARCH_1, is_available=True)

        with patch.object(CalendarStore, "get_records", return_value=[stale]):
            with pytest.raises(RangeNotAvailableError):
                store.block_range(property_x.id, MARCH_1, date(2024, 3, 2), BlockedReason.PERSONAL)
        db_session.rollback()

        assert store.get_record(property_x.id, MARCH_1).blocked_reason == "maintenance"

    def test_release_deletes_plain_rows_and_reverts_rate_rows(self, db_session, property_x):
        store = CalendarStore(db_session)
        store.set_rates(property_x.id, MARCH_1, date(2024, 3, 2), price_override=Decimal("9000"), minimum_stay=2)
        reservation = add_reservation(db_session, property_x)
        store.mark_booked(property_x.id, MARCH_1, MARCH_4, reservation.id)
        db_session.commit()

        assert store.release_booking(reservation.id) == 3
        db_session.commit()

        rows = store.get_records(property_x.id, MARCH_1, MARCH_4)
        assert len(rows) == 1
        assert rows[0].date == MARCH_1
        assert rows[0].is_available
        assert rows[0].price_override == Decimal("9000.00")
        assert rows[0].minimum_stay == 2

    def test_delete_manual_blocks_keeps_booked(self, db_session, property_x):
        store = CalendarStore(db_session)
        reservation = add_reservation(db_session, property_x)
        store.mark_booked(property_x.id, MARCH_1, date(2024, 3, 2), reservation.id)
        store.block_range(property_x.id, date(2024, 3, 2), MARCH_4, BlockedReason.OTHER)
        db_session.commit()

        assert store.delete_manual_blocks(property_x.id, MARCH_1, MARCH_4) == 2
        db_session.commit()

        remaining = db_session.query(AvailabilityRecord).all()
        assert [(r.date, r.blocked_reason) for r in remaining] == [(MARCH_1, "booked")]


class TestRates:

    def test_minimum_stay_only_update_keeps_price(self, db_session, property_x):
        store = CalendarStore(db_session)
        store.set_rates(property_x.id, MARCH_1, MARCH_4, price_override=Decimal("8000"))
        store.set_rates(property_x.id, MARCH_1, MARCH_4, minimum_stay=2)
        db_session.commit()

        rows = store.get_records(property_x.id, MARCH_1, MARCH_4)
        assert [(r.price_override, r.minimum_stay) for r in rows] == [(Decimal("8000.00"), 2)] * 3

    def test_price_only_update_keeps_minimum_stay(self, db_session, property_x):
        store = CalendarStore(db_session)
        store.set_rates(property_x.id, MARCH_1, MARCH_4, minimum_stay=3)
        store.set_rates(property_x.id, MARCH_1, MARCH_4, price_override=Decimal("6000"))
        db_session.commit()

        rows = store.get_records(property_x.id, MARCH_1, MARCH_4)
        assert [(r.price_override, r.minimum_stay) for r in rows] == [(Decimal("6000.00"), 3)] * 3

    def test_booked_rows_are_left_alone(self, db_session, property_x):
        store = CalendarStore(db_session)
        reservation = add_reservation(db_session, property_x)
        store.mark_booked(property_x.id, MARCH_1, MARCH_4, reservation.id)
        db_session.commit()

        count = store.set_rates(property_x.id, MARCH_1, date(2024, 3, 6), price_override=Decimal("1"), minimum_stay=9)
        db_session.commit()

        assert count == 2
        booked = store.get_records(property_x.id, MARCH_1, MARCH_4)
        assert all(r.is_booked and r.price_override is None and r.minimum_stay == 1 for r in booked)
        assert store.get_record(property_x.id, MARCH_4).price_override == Decimal("1.00")

    def test_release_restores_minimum_stay_rows(self, db_session, property_x):
        store = CalendarStore(db_session)
        store.set_rates(property_x.id, MARCH_1, date(2024, 3, 2), minimum_stay=3)
        reservation = add_reservation(db_session, property_x)
        store.mark_booked(property_x.id, MARCH_1, MARCH_4, reservation.id)
        db_session.commit()

        store.release_booking(reservation.id)
        db_session.commit()

        rows = store.get_records(property_x.id, MARCH_1, MARCH_4)
        assert [(r.date, r.is_available, r.minimum_stay) for r in rows] == [(MARCH_1, True, 3)]
