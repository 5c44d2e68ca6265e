# Services package
from .calendar_store import CalendarStore, CalendarDay
from .conflict_checker import ConflictChecker, AvailabilityConflicts
from .pricing_calculator import PricingCalculator, PriceBreakdown, NightlyRate
from .customer_matcher import CustomerMatcher
from .reservation_lifecycle import ReservationLifecycle, ReservationRequest, ClientPricing
from .block_manager import BlockManager
from .notifications import NotificationDispatcher, NotificationEvent, LogNotificationDispatcher

__all__ = [
    "CalendarStore", "CalendarDay",
    "ConflictChecker", "AvailabilityConflicts",
    "PricingCalculator", "PriceBreakdown", "NightlyRate",
    "CustomerMatcher",
    "ReservationLifecycle", "ReservationRequest", "ClientPricing",
    "BlockManager",
    "NotificationDispatcher", "NotificationEvent", "LogNotificationDispatcher",
]
