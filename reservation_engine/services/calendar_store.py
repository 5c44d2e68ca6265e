"""
Calendar Store

Persists one AvailabilityRecord per (property, date). It is the single
source of truth for blocked/available days and is queried fresh on every
call; nothing here caches.

Writes never overwrite an unavailable row. Existing available rows (rate
rows carrying a price override) are taken with a conditional UPDATE, and
missing rows are INSERTed, so a concurrent writer either sees zero updated
rows or trips the (property_id, date) unique constraint. Callers run these
writes inside ``serializable_transaction`` which translates the latter.
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy import or_, update
from sqlalchemy.orm import Session

from ..errors import RangeNotAvailableError
from ..models.availability import AvailabilityRecord, BlockedReason
from ..utils.date_ranges import iter_nights


@dataclass
class CalendarDay:
    """One calendar entry, whether or not a row exists for it"""
    date: date
    is_available: bool
    blocked_reason: Optional[str]
    price_override: Optional[Decimal]
    minimum_stay: int
    reservation_id: Optional[str]


class CalendarStore:

    def __init__(self, db: Session):
        self.db = db

    # ---------------------------------------------------------------
    # Reads
    # ---------------------------------------------------------------

    def get_records(self, property_id: str, start_date: date, end_date: date) -> List[AvailabilityRecord]:
        """Stored rows in [start_date, end_date), ordered by date"""
        return self.db.query(AvailabilityRecord).filter(
            AvailabilityRecord.property_id == property_id,
            AvailabilityRecord.date >= start_date,
            AvailabilityRecord.date < end_date
        ).order_by(AvailabilityRecord.date).all()

    def get_record(self, property_id: str, day: date) -> Optional[AvailabilityRecord]:
        return self.db.query(AvailabilityRecord).filter(
            AvailabilityRecord.property_id == property_id,
            AvailabilityRecord.date == day
        ).first()

    def unavailable_dates(self, property_id: str, start_date: date, end_date: date) -> List[date]:
        rows = self.db.query(AvailabilityRecord.date).filter(
            AvailabilityRecord.property_id == property_id,
            AvailabilityRecord.is_available.is_(False),
            AvailabilityRecord.date >= start_date,
            AvailabilityRecord.date < end_date
        ).order_by(AvailabilityRecord.date).all()
        return [row.date for row in rows]

    def price_overrides(self, property_id: str, start_date: date, end_date: date) -> Dict[date, Decimal]:
        rows = self.db.query(AvailabilityRecord.date, AvailabilityRecord.price_override).filter(
            AvailabilityRecord.property_id == property_id,
            AvailabilityRecord.price_override.isnot(None),
            AvailabilityRecord.date >= start_date,
            AvailabilityRecord.date < end_date
        ).all()
        return {row.date: Decimal(str(row.price_override)) for row in rows}

    def entries(self, property_id: str, start_date: date, end_date: date) -> List[CalendarDay]:
        """
        One entry per date in [start_date, end_date).
        Dates without a row are reported as available at the default price.
        """
        records = {r.date: r for r in self.get_records(property_id, start_date, end_date)}
        days = []
        for day in iter_nights(start_date, end_date):
            record = records.get(day)
            if record is None:
                days.append(CalendarDay(
                    date=day,
                    is_available=True,
                    blocked_reason=None,
                    price_override=None,
                    minimum_stay=1,
                    reservation_id=None,
                ))
            else:
                days.append(CalendarDay(
                    date=day,
                    is_available=record.is_available,
                    blocked_reason=record.blocked_reason,
                    price_override=record.price_override,
                    minimum_stay=record.minimum_stay or 1,
                    reservation_id=record.reservation_id,
                ))
        return days

    # ---------------------------------------------------------------
    # Writes
    # ---------------------------------------------------------------

    def mark_booked(self, property_id: str, start_date: date, end_date: date, reservation_id: str) -> int:
        """Tag every night of a stay as booked by ``reservation_id``"""
        return self._occupy(
            property_id, start_date, end_date,
            blocked_reason=BlockedReason.BOOKED,
            reservation_id=reservation_id,
        )

    def block_range(
        self,
        property_id: str,
        start_date: date,
        end_date: date,
        reason: BlockedReason,
        price_override: Optional[Decimal] = None,
        minimum_stay: Optional[int] = None,
        notes: Optional[str] = None
    ) -> int:
        return self._occupy(
            property_id, start_date, end_date,
            blocked_reason=reason,
            price_override=price_override,
            minimum_stay=minimum_stay,
            notes=notes,
        )

    def release_booking(self, reservation_id: str) -> int:
        """
        Free the dates held by a reservation.

        Rows that carry a rate rule (price override or minimum stay above 1)
        go back to being available rate rows; the rest are deleted so the
        date falls back to the default.
        """
        records = self.db.query(AvailabilityRecord).filter(
            AvailabilityRecord.reservation_id == reservation_id,
            AvailabilityRecord.blocked_reason == BlockedReason.BOOKED.value
        ).all()

        for record in records:
            if record.has_rate_rule:
                record.is_available = True
                record.blocked_reason = None
                record.reservation_id = None
                record.updated_at = datetime.utcnow()
            else:
                self.db.delete(record)

        self.db.flush()
        return len(records)

    def delete_manual_blocks(self, property_id: str, start_date: date, end_date: date) -> int:
        """Delete rows in range except booked ones, which belong to reservations"""
        deleted = self.db.query(AvailabilityRecord).filter(
            AvailabilityRecord.property_id == property_id,
            AvailabilityRecord.date >= start_date,
            AvailabilityRecord.date < end_date,
            or_(
                AvailabilityRecord.blocked_reason.is_(None),
                AvailabilityRecord.blocked_reason != BlockedReason.BOOKED.value
            )
        ).delete(synchronize_session=False)
        self.db.flush()
        return deleted

    def set_rates(
        self,
        property_id: str,
        start_date: date,
        end_date: date,
        price_override: Optional[Decimal] = None,
        minimum_stay: Optional[int] = None
    ) -> int:
        """
        Upsert rate rules without touching availability.

        Only the fields passed are written. Booked dates belong to their
        reservation and are skipped.
        """
        existing = {r.date: r for r in self.get_records(property_id, start_date, end_date)}
        count = 0
        for day in iter_nights(start_date, end_date):
            record = existing.get(day)
            if record is not None and record.is_booked:
                continue
            if record is None:
                self.db.add(AvailabilityRecord(
                    property_id=property_id,
                    date=day,
                    is_available=True,
                    blocked_reason=None,
                    price_override=price_override,
                    minimum_stay=minimum_stay or 1,
                ))
            else:
                if price_override is not None:
                    record.price_override = price_override
                if minimum_stay is not None:
                    record.minimum_stay = minimum_stay
                record.updated_at = datetime.utcnow()
            count += 1

        self.db.flush()
        return count

    def _occupy(
        self,
        property_id: str,
        start_date: date,
        end_date: date,
        blocked_reason: BlockedReason,
        reservation_id: Optional[str] = None,
        price_override: Optional[Decimal] = None,
        minimum_stay: Optional[int] = None,
        notes: Optional[str] = None
    ) -> int:
        existing = {r.date: r for r in self.get_records(property_id, start_date, end_date)}

        taken = [day for day, record in existing.items() if not record.is_available]
        if taken:
            raise RangeNotAvailableError(unavailable_dates=taken)

        count = 0
        for day in iter_nights(start_date, end_date):
            record = existing.get(day)
            if record is None:
                self.db.add(AvailabilityRecord(
                    property_id=property_id,
                    date=day,
                    is_available=False,
                    blocked_reason=blocked_reason.value,
                    price_override=price_override,
                    minimum_stay=minimum_stay or 1,
                    reservation_id=reservation_id,
                    notes=notes,
                ))
            else:
                values = {
                    "is_available": False,
                    "blocked_reason": blocked_reason.value,
                    "reservation_id": reservation_id,
                    "updated_at": datetime.utcnow(),
                }
                if price_override is not None:
                    values["price_override"] = price_override
                if minimum_stay is not None:
                    values["minimum_stay"] = minimum_stay
                if notes is not None:
                    values["notes"] = notes

                # Only an available row may be taken; zero rows means a concurrent writer won
                result = self.db.execute(
                    update(AvailabilityRecord)
                    .where(
                        AvailabilityRecord.id == record.id,
                        AvailabilityRecord.is_available.is_(True)
                    )
                    .values(**values)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount != 1:
                    raise RangeNotAvailableError(unavailable_dates=[day])
                self.db.expire(record)
            count += 1

        self.db.flush()
        return count
