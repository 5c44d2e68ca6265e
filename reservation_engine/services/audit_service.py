"""
Audit Logging Service
Helper used by every mutating operation to leave an AuditLog row
"""
import logging
from typing import Optional, Any, Dict

from sqlalchemy.orm import Session

from ..models.audit_log import AuditLog, ActivityType, EntityType
from ..utils.security import Principal

logger = logging.getLogger(__name__)


def record_activity(
    db: Session,
    principal: Optional[Principal],
    activity_type: ActivityType,
    entity_type: EntityType,
    entity_id: Optional[str] = None,
    description: Optional[str] = None,
    old_values: Optional[Dict[str, Any]] = None,
    new_values: Optional[Dict[str, Any]] = None
) -> Optional[AuditLog]:
    """
    Write an audit entry after the audited change has been committed.

    An audit failure is logged and the session rolled back; the change it
    describes stays committed.
    """
    try:
        return AuditLog.log(
            db,
            principal,
            activity_type=activity_type,
            entity_type=entity_type,
            entity_id=entity_id,
            description=description,
            old_values=old_values,
            new_values=new_values,
        )
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to write audit log for {activity_type.value} {entity_id}: {e}")
        return None
