"""
Typed errors raised by the reservation engine.

Every failure inside the engine maps to one of these; the HTTP layer turns
them into 4xx responses (see ``main.py``). None of them are retried by the
engine itself.
"""

from datetime import date
from typing import Iterable, List, Optional


class ReservationEngineError(Exception):
    """Base class for all engine errors"""

    code = "reservation_engine_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"detail": self.message, "code": self.code}


class InvalidRangeError(ReservationEngineError):
    """check_out <= check_in, check-in in the past, or outside the booking window"""

    code = "invalid_range"

    def __init__(self, message: str, start_date: Optional[date] = None, end_date: Optional[date] = None):
        super().__init__(message)
        self.start_date = start_date
        self.end_date = end_date


class RangeNotAvailableError(ReservationEngineError):
    """Conflict detected, either by the pre-check or by the storage constraint"""

    code = "range_not_available"

    def __init__(self, message: str = "Selected dates are not available",
                 unavailable_dates: Optional[Iterable[date]] = None):
        super().__init__(message)
        self.unavailable_dates: List[date] = sorted(unavailable_dates or [])

    def to_dict(self) -> dict:
        data = super().to_dict()
        if self.unavailable_dates:
            data["unavailable_dates"] = [d.isoformat() for d in self.unavailable_dates]
        return data


class InvalidTransitionError(ReservationEngineError):
    code = "invalid_transition"

    def __init__(self, current: str, target: str, field: str = "status"):
        super().__init__(f"Cannot change {field} from '{current}' to '{target}'")
        self.current = current
        self.target = target
        self.field = field

    def to_dict(self) -> dict:
        data = super().to_dict()
        data.update({"field": self.field, "current": self.current, "target": self.target})
        return data


class NotFoundError(ReservationEngineError):
    code = "not_found"

    def __init__(self, entity: str, entity_id: str):
        super().__init__(f"{entity} '{entity_id}' not found")
        self.entity = entity
        self.entity_id = entity_id


class ValidationError(ReservationEngineError):
    """Malformed guest data or a request the property rules reject"""

    code = "validation_error"


class PricingUnavailableError(ValidationError):
    """A night has neither a price override nor a base nightly rate"""

    code = "pricing_unavailable"
