"""
Block Manager

Administrative calendar operations: block a range for maintenance or owner
use, unblock it, and set per-date rates. Booked dates belong to their
reservation and are never touched here.
"""

from datetime import date
from decimal import Decimal
from typing import List, Optional, Union

from sqlalchemy.orm import Session

from ..errors import RangeNotAvailableError, ValidationError
from ..models.audit_log import ActivityType, EntityType
from ..models.availability import BlockedReason, MANUAL_BLOCK_REASONS
from ..utils.date_ranges import require_valid_range
from ..utils.db_helpers import serializable_transaction
from ..utils.logging_config import get_logger
from ..utils.security import Principal
from .audit_service import record_activity
from .calendar_store import CalendarDay, CalendarStore
from .conflict_checker import ConflictChecker

logger = get_logger(__name__)


def _validate_rate_fields(price_override: Optional[Decimal], minimum_stay: Optional[int]) -> None:
    if price_override is not None and Decimal(str(price_override)) < 0:
        raise ValidationError("Price override cannot be negative")
    if minimum_stay is not None and minimum_stay < 1:
        raise ValidationError("Minimum stay must be at least 1 night")


class BlockManager:

    def __init__(self, db: Session):
        self.db = db
        self.calendar = CalendarStore(db)
        self.checker = ConflictChecker(db)

    def block(
        self,
        property_id: str,
        start_date: date,
        end_date: date,
        reason: Union[BlockedReason, str],
        price_override: Optional[Decimal] = None,
        minimum_stay: Optional[int] = None,
        notes: Optional[str] = None,
        actor: Optional[Principal] = None
    ) -> int:
        """
        Mark every date in [start_date, end_date) unavailable.
        All or nothing: any conflict leaves the calendar unchanged.

        Raises:
            ValidationError: reason is 'booked' or unknown
            RangeNotAvailableError: a date is booked, blocked or reserved
        """
        try:
            reason = BlockedReason(reason)
        except ValueError:
            raise ValidationError(f"Unknown block reason: {reason}")

        if reason not in MANUAL_BLOCK_REASONS:
            raise ValidationError("Dates can only be booked through a reservation")
        _validate_rate_fields(price_override, minimum_stay)

        with serializable_transaction(self.db):
            conflicts = self.checker.find_conflicts(property_id, start_date, end_date)
            if not conflicts.is_available:
                raise RangeNotAvailableError(unavailable_dates=conflicts.unavailable_dates)

            count = self.calendar.block_range(
                property_id, start_date, end_date, reason,
                price_override=price_override,
                minimum_stay=minimum_stay,
                notes=notes,
            )

        logger.calendar_changed("blocked", property_id, start_date, end_date, count, reason.value)
        record_activity(
            self.db, actor,
            activity_type=ActivityType.DATES_BLOCK,
            entity_type=EntityType.PROPERTY,
            entity_id=property_id,
            description=notes,
            new_values={
                "start_date": start_date,
                "end_date": end_date,
                "reason": reason.value,
                "count": count,
            },
        )
        return count

    def unblock(
        self,
        property_id: str,
        start_date: date,
        end_date: date,
        actor: Optional[Principal] = None
    ) -> int:
        """
        Clear manual blocks and rate rows in [start_date, end_date).
        Booked dates in the range are skipped, not reported as errors.
        """
        require_valid_range(start_date, end_date)

        with serializable_transaction(self.db):
            self.checker.get_property(property_id)
            count = self.calendar.delete_manual_blocks(property_id, start_date, end_date)

        logger.calendar_changed("unblocked", property_id, start_date, end_date, count)
        record_activity(
            self.db, actor,
            activity_type=ActivityType.DATES_UNBLOCK,
            entity_type=EntityType.PROPERTY,
            entity_id=property_id,
            new_values={"start_date": start_date, "end_date": end_date, "count": count},
        )
        return count

    def set_rates(
        self,
        property_id: str,
        start_date: date,
        end_date: date,
        price_override: Optional[Decimal] = None,
        minimum_stay: Optional[int] = None,
        actor: Optional[Principal] = None
    ) -> int:
        """Set price override and minimum stay without changing availability"""
        require_valid_range(start_date, end_date)
        _validate_rate_fields(price_override, minimum_stay)

        with serializable_transaction(self.db):
            self.checker.get_property(property_id)
            count = self.calendar.set_rates(
                property_id, start_date, end_date,
                price_override=price_override,
                minimum_stay=minimum_stay,
            )

        logger.calendar_changed("rates updated", property_id, start_date, end_date, count)
        record_activity(
            self.db, actor,
            activity_type=ActivityType.RATES_UPDATE,
            entity_type=EntityType.PROPERTY,
            entity_id=property_id,
            new_values={
                "start_date": start_date,
                "end_date": end_date,
                "price_override": price_override,
                "minimum_stay": minimum_stay,
                "count": count,
            },
        )
        return count

    def calendar_entries(self, property_id: str, start_date: date, end_date: date) -> List[CalendarDay]:
        """Per-date view of the calendar, read at the default isolation level"""
        require_valid_range(start_date, end_date)
        self.checker.get_property(property_id)
        return self.calendar.entries(property_id, start_date, end_date)
