import uuid
from datetime import datetime
from sqlalchemy import Column, String, Numeric, Integer, DateTime, CheckConstraint
from sqlalchemy.orm import relationship
from ..database import Base
import enum


class PropertyStatus(str, enum.Enum):
    AVAILABLE = "available"
    MAINTENANCE = "maintenance"
    INACTIVE = "inactive"


class Property(Base):
    """
    Rentable property (loft).

    Owned by the listings subsystem; the reservation engine only reads it.
    """
    __tablename__ = "properties"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(255), nullable=False)

    # Pricing inputs
    price_per_night = Column(Numeric(12, 2), nullable=True)  # No rate means the property cannot be priced
    cleaning_fee = Column(Numeric(12, 2), nullable=False, default=0)
    service_fee = Column(Numeric(12, 2), nullable=False, default=0)
    tax_rate_percent = Column(Numeric(5, 2), nullable=True)  # Falls back to DEFAULT_TAX_RATE_PERCENT
    currency = Column(String(3), nullable=True)

    # Stay rules
    minimum_stay = Column(Integer, nullable=False, default=1)
    maximum_stay = Column(Integer, nullable=True)
    max_guests = Column(Integer, nullable=True)

    status = Column(String(20), nullable=False, default=PropertyStatus.AVAILABLE.value)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    reservations = relationship("Reservation", back_populates="property")
    availability_records = relationship("AvailabilityRecord", back_populates="property")

    __table_args__ = (
        CheckConstraint("minimum_stay >= 1", name="ck_property_minimum_stay"),
    )

    def __repr__(self):
        return f"<Property {self.name}>"
