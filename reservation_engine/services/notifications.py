"""
Notification dispatch

Delivery itself (email, SMS, push) lives in another subsystem. The engine
only hands events to a dispatcher after a reservation is created, cancelled
or reassigned, and never lets a dispatch failure undo the operation.
"""

import enum
import logging

from ..models.reservation import Reservation
from ..utils.logging_config import get_logger

logger = get_logger(__name__)


class NotificationEvent(str, enum.Enum):
    RESERVATION_CREATED = "reservation_created"
    RESERVATION_CANCELLED = "reservation_cancelled"
    RESERVATION_REASSIGNED = "reservation_reassigned"


class NotificationDispatcher:
    """Interface of the delivery subsystem"""

    def send(self, event: NotificationEvent, reservation: Reservation) -> None:
        raise NotImplementedError


class LogNotificationDispatcher(NotificationDispatcher):
    """Default dispatcher: records the event in the application log"""

    def send(self, event: NotificationEvent, reservation: Reservation) -> None:
        logger.log_with_context(
            logging.INFO,
            f"Notification queued: {event.value}",
            entity_type="reservation",
            entity_id=reservation.id,
            event=event.value,
            property_id=reservation.property_id,
            guest_email=reservation.guest_email,
        )


def dispatch_safely(dispatcher: NotificationDispatcher, event: NotificationEvent, reservation: Reservation) -> None:
    """Fire-and-forget; failures are logged, never raised"""
    if dispatcher is None:
        return
    try:
        dispatcher.send(event, reservation)
    except Exception as e:
        logger.warning(f"Failed to dispatch {event.value} for reservation {reservation.id}: {e}")
