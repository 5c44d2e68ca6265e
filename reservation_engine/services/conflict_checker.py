"""
Conflict Checker

Answers "is this property bookable for [start, end)?" by looking at both
the calendar (any unavailable row, whatever the reason) and reservations in
a blocking status. Two stays sharing a boundary date do not conflict.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional

from sqlalchemy.orm import Session

from ..errors import NotFoundError
from ..models.property import Property
from ..models.reservation import Reservation, BLOCKING_STATUSES
from ..utils.date_ranges import require_valid_range
from .calendar_store import CalendarStore


@dataclass
class AvailabilityConflicts:
    """What stands in the way of a stay"""
    property_id: str
    start_date: date
    end_date: date
    unavailable_dates: List[date] = field(default_factory=list)
    reservation_ids: List[str] = field(default_factory=list)

    @property
    def is_available(self) -> bool:
        return not self.unavailable_dates and not self.reservation_ids


class ConflictChecker:

    def __init__(self, db: Session):
        self.db = db
        self.calendar = CalendarStore(db)

    def get_property(self, property_id: str) -> Property:
        prop = self.db.query(Property).filter(Property.id == property_id).first()
        if not prop:
            raise NotFoundError("Property", property_id)
        return prop

    def overlapping_reservations(
        self,
        property_id: str,
        start_date: date,
        end_date: date,
        exclude_reservation_id: Optional[str] = None
    ) -> List[Reservation]:
        """Reservations in a blocking status whose stay overlaps [start_date, end_date)"""
        query = self.db.query(Reservation).filter(
            Reservation.property_id == property_id,
            Reservation.status.in_([s.value for s in BLOCKING_STATUSES]),
            Reservation.check_in_date < end_date,
            Reservation.check_out_date > start_date
        )

        if exclude_reservation_id:
            query = query.filter(Reservation.id != exclude_reservation_id)

        return query.order_by(Reservation.check_in_date).all()

    def find_conflicts(
        self,
        property_id: str,
        start_date: date,
        end_date: date,
        exclude_reservation_id: Optional[str] = None
    ) -> AvailabilityConflicts:
        """
        Collect unavailable dates and overlapping reservations.

        Raises:
            InvalidRangeError: start_date >= end_date
            NotFoundError: unknown property
        """
        require_valid_range(start_date, end_date)
        self.get_property(property_id)

        unavailable = self.calendar.unavailable_dates(property_id, start_date, end_date)

        reservations = self.overlapping_reservations(
            property_id, start_date, end_date, exclude_reservation_id
        )

        if exclude_reservation_id:
            # Rows booked by the excluded reservation are not a conflict for it
            own = {
                r.date for r in self.calendar.get_records(property_id, start_date, end_date)
                if r.reservation_id == exclude_reservation_id
            }
            unavailable = [d for d in unavailable if d not in own]

        return AvailabilityConflicts(
            property_id=property_id,
            start_date=start_date,
            end_date=end_date,
            unavailable_dates=unavailable,
            reservation_ids=[r.id for r in reservations],
        )

    def is_available(self, property_id: str, start_date: date, end_date: date) -> bool:
        return self.find_conflicts(property_id, start_date, end_date).is_available
