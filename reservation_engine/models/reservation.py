import uuid
from datetime import datetime
from sqlalchemy import (
    Column, String, Date, Numeric, Text, ForeignKey, DateTime, Integer, Index, CheckConstraint
)
from sqlalchemy.orm import relationship
from ..database import Base
import enum


class ReservationStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PARTIAL = "partial"
    PAID = "paid"
    REFUNDED = "refunded"
    FAILED = "failed"


# Reservations in these states hold their dates
BLOCKING_STATUSES = frozenset({
    ReservationStatus.PENDING,
    ReservationStatus.CONFIRMED,
    ReservationStatus.COMPLETED,
})


class Reservation(Base):
    __tablename__ = "reservations"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    property_id = Column(String(36), ForeignKey("properties.id", ondelete="CASCADE"), nullable=False)
    customer_id = Column(String(36), ForeignKey("customers.id", ondelete="SET NULL"), nullable=True)

    # Guest snapshot at booking time
    guest_name = Column(String(255), nullable=False)
    guest_email = Column(String(255), nullable=True)
    guest_phone = Column(String(50), nullable=True)
    guest_nationality = Column(String(100), nullable=True)
    guest_count = Column(Integer, nullable=False, default=1)

    check_in_date = Column(Date, nullable=False)
    check_out_date = Column(Date, nullable=False)

    # Pricing breakdown
    base_price = Column(Numeric(12, 2), nullable=False, default=0)
    cleaning_fee = Column(Numeric(12, 2), nullable=False, default=0)
    service_fee = Column(Numeric(12, 2), nullable=False, default=0)
    taxes = Column(Numeric(12, 2), nullable=False, default=0)
    total_amount = Column(Numeric(12, 2), nullable=False, default=0)
    currency = Column(String(3), nullable=True)

    status = Column(String(20), nullable=False, default=ReservationStatus.PENDING.value)
    payment_status = Column(String(20), nullable=False, default=PaymentStatus.PENDING.value)

    special_requests = Column(Text, nullable=True)

    # Principal that created the reservation (user id from the auth subsystem)
    created_by_id = Column(String(36), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    cancelled_at = Column(DateTime, nullable=True)
    cancellation_reason = Column(Text, nullable=True)

    @property
    def nights(self) -> int:
        return (self.check_out_date - self.check_in_date).days

    # Keep below the @property methods: this name shadows the builtin for the rest of the class body
    property = relationship("Property", back_populates="reservations")
    customer = relationship("Customer", back_populates="reservations")
    calendar_entries = relationship("AvailabilityRecord", back_populates="reservation")

    __table_args__ = (
        CheckConstraint("check_out_date > check_in_date", name="ck_reservation_date_order"),
        CheckConstraint("guest_count >= 1", name="ck_reservation_guest_count"),
        Index("ix_reservation_property_dates", "property_id", "check_in_date", "check_out_date"),
        Index("ix_reservation_status", "status"),
        Index("ix_reservation_customer", "customer_id"),
    )

    def __repr__(self):
        return f"<Reservation {self.guest_name} - {self.check_in_date} -> {self.check_out_date} ({self.status})>"
