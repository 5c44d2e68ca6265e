"""
Tests for ORM model helpers
"""

from datetime import date
from decimal import Decimal

from reservation_engine.models import AvailabilityRecord, Reservation
from reservation_engine.models.availability import BlockedReason


class TestAvailabilityRecord:

    def test_is_booked(self):
        assert AvailabilityRecord(blocked_reason=BlockedReason.BOOKED.value).is_booked
        assert not AvailabilityRecord(blocked_reason=BlockedReason.MAINTENANCE.value).is_booked
        assert not AvailabilityRecord(blocked_reason=None).is_booked

    def test_has_rate_rule(self):
        assert AvailabilityRecord(price_override=Decimal("5000"), minimum_stay=1).has_rate_rule
        assert AvailabilityRecord(minimum_stay=2).has_rate_rule
        assert not AvailabilityRecord(minimum_stay=1).has_rate_rule
        assert not AvailabilityRecord().has_rate_rule

    def test_property_relationship_is_mapped(self):
        assert "property" in AvailabilityRecord.__mapper__.relationships


class TestReservation:

    def test_nights(self):
        reservation = Reservation(check_in_date=date(2024, 3, 1), check_out_date=date(2024, 3, 4))
        assert reservation.nights == 3

    def test_property_relationship_is_mapped(self):
        assert "property" in Reservation.__mapper__.relationships
