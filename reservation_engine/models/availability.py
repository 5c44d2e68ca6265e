"""
Availability Record Model

One row per (property, date). This table is the only authority on
bookability: a missing row means "available at the default price".
"""

import uuid
import enum
from datetime import datetime
from sqlalchemy import (
    Column, String, Date, DateTime, Boolean, Integer, Numeric, Text, ForeignKey,
    Index, UniqueConstraint, CheckConstraint
)
from sqlalchemy.orm import relationship
from ..database import Base


CALENDAR_UNIQUE_CONSTRAINT = "uq_availability_property_date"


class BlockedReason(str, enum.Enum):
    """Why a date is unavailable"""
    BOOKED = "booked"            # Owned by a reservation
    MAINTENANCE = "maintenance"
    RENOVATION = "renovation"
    PERSONAL = "personal"        # Owner use
    OTHER = "other"


MANUAL_BLOCK_REASONS = frozenset(r for r in BlockedReason if r is not BlockedReason.BOOKED)


class AvailabilityRecord(Base):
    """
    Daily calendar state for a property.

    Rows tagged ``booked`` belong to the reservation in ``reservation_id``;
    every other reason belongs to the block manager.
    """
    __tablename__ = "availability_records"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    property_id = Column(String(36), ForeignKey("properties.id", ondelete="CASCADE"), nullable=False)
    date = Column(Date, nullable=False)

    # Availability state
    is_available = Column(Boolean, nullable=False, default=True)
    blocked_reason = Column(String(20), nullable=True)  # None on available rate rows

    # Rate rules
    price_override = Column(Numeric(12, 2), nullable=True)
    minimum_stay = Column(Integer, nullable=False, default=1)

    # Set only on booked rows
    reservation_id = Column(String(36), ForeignKey("reservations.id", ondelete="SET NULL"), nullable=True)

    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def is_booked(self) -> bool:
        return self.blocked_reason == BlockedReason.BOOKED.value

    @property
    def has_rate_rule(self) -> bool:
        """Carries a price override or a minimum stay above the default"""
        return self.price_override is not None or (self.minimum_stay or 1) > 1

    # Keep below the @property methods: this name shadows the builtin for the rest of the class body
    property = relationship("Property", back_populates="availability_records")
    reservation = relationship("Reservation", back_populates="calendar_entries")

    __table_args__ = (
        # One entry per property per date - the storage-level double-booking guard
        UniqueConstraint("property_id", "date", name=CALENDAR_UNIQUE_CONSTRAINT),
        CheckConstraint("minimum_stay >= 1", name="ck_availability_minimum_stay"),
        Index("ix_availability_unavailable", "property_id", "is_available", "date"),
        Index("ix_availability_reservation", "reservation_id"),
    )

    def __repr__(self):
        state = "available" if self.is_available else self.blocked_reason
        return f"<AvailabilityRecord {self.property_id} {self.date} {state}>"
