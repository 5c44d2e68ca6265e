"""
Audit Log Model
Records every mutating call made against the reservation engine
"""
from sqlalchemy import Column, String, DateTime, Text, JSON
from datetime import datetime, date
from decimal import Decimal
import uuid
import enum

from ..database import Base


def _serialize_for_json(obj):
    """Convert non-JSON-serializable types to serializable ones"""
    if obj is None:
        return None
    if isinstance(obj, dict):
        return {k: _serialize_for_json(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_serialize_for_json(i) for i in obj]
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, enum.Enum):
        return obj.value
    return obj


class ActivityType(str, enum.Enum):
    # Reservations
    RESERVATION_CREATE = "reservation_create"
    RESERVATION_CONFIRM = "reservation_confirm"
    RESERVATION_COMPLETE = "reservation_complete"
    RESERVATION_CANCEL = "reservation_cancel"
    RESERVATION_NO_SHOW = "reservation_no_show"
    RESERVATION_REASSIGN = "reservation_reassign"
    PAYMENT_STATUS_CHANGE = "payment_status_change"

    # Calendar
    DATES_BLOCK = "dates_block"
    DATES_UNBLOCK = "dates_unblock"
    RATES_UPDATE = "rates_update"


class EntityType(str, enum.Enum):
    RESERVATION = "reservation"
    PROPERTY = "property"
    CUSTOMER = "customer"


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    # Who did it (principal from the auth subsystem, None for system)
    user_id = Column(String(36), nullable=True, index=True)
    user_role = Column(String(20), nullable=True)

    activity_type = Column(String(40), nullable=False, index=True)

    entity_type = Column(String(20), nullable=False, index=True)
    entity_id = Column(String(36), nullable=True, index=True)

    description = Column(Text, nullable=True)
    old_values = Column(JSON, nullable=True)
    new_values = Column(JSON, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    def __repr__(self):
        return f"<AuditLog {self.activity_type} {self.entity_type} {self.entity_id} by {self.user_id or 'system'}>"

    @classmethod
    def log(cls, db, principal, activity_type: ActivityType, entity_type: EntityType,
            entity_id: str = None, description: str = None,
            old_values: dict = None, new_values: dict = None):
        """
        Write an audit entry and commit it
        """
        log_entry = cls(
            user_id=principal.user_id if principal else None,
            user_role=principal.role.value if principal else None,
            activity_type=activity_type.value,
            entity_type=entity_type.value,
            entity_id=entity_id,
            description=description,
            old_values=_serialize_for_json(old_values),
            new_values=_serialize_for_json(new_values),
        )
        db.add(log_entry)
        db.commit()
        return log_entry
