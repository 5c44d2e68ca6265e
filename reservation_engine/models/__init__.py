# Models package
from .property import Property, PropertyStatus
from .availability import AvailabilityRecord, BlockedReason, MANUAL_BLOCK_REASONS, CALENDAR_UNIQUE_CONSTRAINT
from .customer import Customer, CustomerStatus
from .reservation import Reservation, ReservationStatus, PaymentStatus, BLOCKING_STATUSES
from .audit_log import AuditLog, ActivityType, EntityType

__all__ = [
    "Property", "PropertyStatus",
    "AvailabilityRecord", "BlockedReason", "MANUAL_BLOCK_REASONS", "CALENDAR_UNIQUE_CONSTRAINT",
    "Customer", "CustomerStatus",
    "Reservation", "ReservationStatus", "PaymentStatus", "BLOCKING_STATUSES",
    "AuditLog", "ActivityType", "EntityType",
]
