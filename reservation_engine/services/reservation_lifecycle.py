"""
Reservation Lifecycle

State machine for a reservation's status and payment_status, together with
the calendar side effects of each transition.

    pending ──> confirmed ──> completed
       │            │
       ├────────────┴──> cancelled
       └────────────┴──> no_show

Dates are blocked at creation, not at confirmation. Every status write and
its calendar change commit in the same transaction.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Callable, Dict, FrozenSet, List, Optional, Union

from sqlalchemy.orm import Session

from ..config import settings
from ..errors import (
    InvalidTransitionError, NotFoundError, RangeNotAvailableError, ValidationError
)
from ..models.audit_log import ActivityType, EntityType
from ..models.property import Property, PropertyStatus
from ..models.reservation import Reservation, ReservationStatus, PaymentStatus
from ..utils.date_ranges import count_nights, validate_stay_window
from ..utils.db_helpers import acquire_row_lock, serializable_transaction
from ..utils.logging_config import get_logger
from ..utils.security import Principal, TRUSTED_PRICING_ROLES
from .audit_service import record_activity
from .calendar_store import CalendarStore
from .conflict_checker import ConflictChecker
from .customer_matcher import CustomerMatcher, sanitize_name, validate_guest_info
from .notifications import (
    LogNotificationDispatcher, NotificationDispatcher, NotificationEvent, dispatch_safely
)
from .pricing_calculator import PriceBreakdown, PricingCalculator, to_money, validate_guest_count

logger = get_logger(__name__)


STATUS_TRANSITIONS: Dict[ReservationStatus, FrozenSet[ReservationStatus]] = {
    ReservationStatus.PENDING: frozenset({
        ReservationStatus.CONFIRMED,
        ReservationStatus.CANCELLED,
        ReservationStatus.NO_SHOW,
    }),
    ReservationStatus.CONFIRMED: frozenset({
        ReservationStatus.COMPLETED,
        ReservationStatus.CANCELLED,
        ReservationStatus.NO_SHOW,
    }),
    ReservationStatus.COMPLETED: frozenset(),
    ReservationStatus.CANCELLED: frozenset(),
    ReservationStatus.NO_SHOW: frozenset(),
}

PAYMENT_TRANSITIONS: Dict[PaymentStatus, FrozenSet[PaymentStatus]] = {
    PaymentStatus.PENDING: frozenset({PaymentStatus.PARTIAL, PaymentStatus.PAID, PaymentStatus.FAILED}),
    PaymentStatus.PARTIAL: frozenset({PaymentStatus.PAID, PaymentStatus.REFUNDED, PaymentStatus.FAILED}),
    PaymentStatus.PAID: frozenset({PaymentStatus.REFUNDED}),
    PaymentStatus.FAILED: frozenset({PaymentStatus.PENDING}),
    PaymentStatus.REFUNDED: frozenset(),
}

# Leaving the blocking statuses gives the dates back
RELEASES_CALENDAR = frozenset({ReservationStatus.CANCELLED, ReservationStatus.NO_SHOW})

STATUS_ACTIVITY: Dict[ReservationStatus, ActivityType] = {
    ReservationStatus.PENDING: ActivityType.RESERVATION_CREATE,
    ReservationStatus.CONFIRMED: ActivityType.RESERVATION_CONFIRM,
    ReservationStatus.COMPLETED: ActivityType.RESERVATION_COMPLETE,
    ReservationStatus.CANCELLED: ActivityType.RESERVATION_CANCEL,
    ReservationStatus.NO_SHOW: ActivityType.RESERVATION_NO_SHOW,
}


@dataclass
class ClientPricing:
    """Price breakdown computed by the caller"""
    base_price: Decimal
    cleaning_fee: Decimal
    service_fee: Decimal
    taxes: Decimal
    total_amount: Decimal


@dataclass
class ReservationRequest:
    property_id: str
    guest_name: str
    check_in_date: date
    check_out_date: date
    guest_count: int = 1
    guest_email: Optional[str] = None
    guest_phone: Optional[str] = None
    guest_nationality: Optional[str] = None
    special_requests: Optional[str] = None
    pricing: Optional[ClientPricing] = None


def enforce_stay_rules(prop: Property, check_in: date, check_out: date, check_in_minimum_stay: int = 1) -> None:
    """Minimum stay is the stricter of the property's and the check-in date's"""
    nights = count_nights(check_in, check_out)
    minimum = max(prop.minimum_stay or 1, check_in_minimum_stay or 1)
    if nights < minimum:
        raise ValidationError(f"Minimum stay is {minimum} night(s), requested {nights}")
    if prop.maximum_stay is not None and nights > prop.maximum_stay:
        raise ValidationError(f"Maximum stay is {prop.maximum_stay} night(s), requested {nights}")


def parse_status(enum_cls, value, field: str = "status"):
    """Coerce a status value, rejecting unknown ones as a ValidationError"""
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(s.value for s in enum_cls)
        raise ValidationError(f"Unknown {field} '{value}', expected one of: {allowed}")


def reservation_snapshot(reservation: Reservation) -> dict:
    return {
        "property_id": reservation.property_id,
        "check_in_date": reservation.check_in_date,
        "check_out_date": reservation.check_out_date,
        "status": reservation.status,
        "payment_status": reservation.payment_status,
        "total_amount": reservation.total_amount,
    }


class ReservationLifecycle:

    def __init__(
        self,
        db: Session,
        notifier: Optional[NotificationDispatcher] = None,
        today_provider: Callable[[], date] = date.today
    ):
        self.db = db
        self.notifier = notifier if notifier is not None else LogNotificationDispatcher()
        self.today_provider = today_provider
        self.calendar = CalendarStore(db)
        self.checker = ConflictChecker(db)
        self.pricing = PricingCalculator(db)
        self.customers = CustomerMatcher(db)

    # ---------------------------------------------------------------
    # Reads
    # ---------------------------------------------------------------

    def get(self, reservation_id: str) -> Reservation:
        reservation = self.db.query(Reservation).filter(Reservation.id == reservation_id).first()
        if not reservation:
            raise NotFoundError("Reservation", reservation_id)
        return reservation

    def list(
        self,
        property_id: Optional[str] = None,
        status: Optional[Union[ReservationStatus, str]] = None,
        customer_id: Optional[str] = None,
        skip: int = 0,
        limit: int = 100
    ) -> List[Reservation]:
        query = self.db.query(Reservation)

        if property_id:
            query = query.filter(Reservation.property_id == property_id)
        if status:
            query = query.filter(Reservation.status == parse_status(ReservationStatus, status).value)
        if customer_id:
            query = query.filter(Reservation.customer_id == customer_id)

        return query.order_by(Reservation.check_in_date.desc()).offset(skip).limit(limit).all()

    # ---------------------------------------------------------------
    # Create
    # ---------------------------------------------------------------

    def create(self, request: ReservationRequest, actor: Optional[Principal] = None) -> Reservation:
        """
        Book a stay: validate, check availability, price, match the
        customer, insert the reservation and block its dates.

        Raises:
            InvalidRangeError: bad dates or outside the booking window
            ValidationError: bad guest data, stay rules, pricing
            NotFoundError: unknown property
            RangeNotAvailableError: dates taken, before or during the write
        """
        validate_stay_window(
            request.check_in_date,
            request.check_out_date,
            today=self.today_provider(),
            max_advance_days=settings.max_advance_days,
            max_stay_nights=settings.max_stay_nights,
        )
        validate_guest_info(request.guest_name, request.guest_email, request.guest_phone)

        with serializable_transaction(self.db):
            prop = self.checker.get_property(request.property_id)
            self._ensure_bookable(prop, request.check_in_date, request.check_out_date)
            validate_guest_count(prop, request.guest_count)

            breakdown = self._price(prop, request, actor)

            customer = self.customers.find_or_create(
                email=request.guest_email,
                phone=request.guest_phone,
                name=request.guest_name,
                nationality=request.guest_nationality,
            )

            reservation = Reservation(
                property_id=prop.id,
                customer_id=customer.id,
                guest_name=sanitize_name(request.guest_name),
                guest_email=customer.email if request.guest_email else None,
                guest_phone=customer.phone if request.guest_phone else None,
                guest_nationality=request.guest_nationality,
                guest_count=request.guest_count,
                check_in_date=request.check_in_date,
                check_out_date=request.check_out_date,
                base_price=breakdown.base_price,
                cleaning_fee=breakdown.cleaning_fee,
                service_fee=breakdown.service_fee,
                taxes=breakdown.taxes,
                total_amount=breakdown.total_amount,
                currency=breakdown.currency,
                status=ReservationStatus.PENDING.value,
                payment_status=PaymentStatus.PENDING.value,
                special_requests=request.special_requests,
                created_by_id=actor.user_id if actor else None,
            )
            self.db.add(reservation)
            self.db.flush()

            self.calendar.mark_booked(
                prop.id, request.check_in_date, request.check_out_date, reservation.id
            )

        self.db.refresh(reservation)

        logger.reservation_created(
            reservation.id, reservation.property_id,
            reservation.check_in_date, reservation.check_out_date,
            reservation.total_amount
        )
        record_activity(
            self.db, actor,
            activity_type=ActivityType.RESERVATION_CREATE,
            entity_type=EntityType.RESERVATION,
            entity_id=reservation.id,
            description=f"Reservation for {reservation.guest_name}",
            new_values=reservation_snapshot(reservation),
        )
        dispatch_safely(self.notifier, NotificationEvent.RESERVATION_CREATED, reservation)
        return reservation

    def _ensure_bookable(self, prop: Property, check_in: date, check_out: date,
                         exclude_reservation_id: Optional[str] = None) -> None:
        if prop.status != PropertyStatus.AVAILABLE.value:
            raise RangeNotAvailableError(f"Property is not accepting reservations ({prop.status})")

        conflicts = self.checker.find_conflicts(prop.id, check_in, check_out, exclude_reservation_id)
        if not conflicts.is_available:
            raise RangeNotAvailableError(unavailable_dates=conflicts.unavailable_dates)

        check_in_record = self.calendar.get_record(prop.id, check_in)
        enforce_stay_rules(
            prop, check_in, check_out,
            check_in_minimum_stay=check_in_record.minimum_stay if check_in_record else 1
        )

    def _price(self, prop: Property, request: ReservationRequest, actor: Optional[Principal]) -> PriceBreakdown:
        """Server-side price unless a trusted caller supplied a consistent breakdown"""
        supplied = request.pricing
        trusted = (
            supplied is not None
            and settings.trust_client_pricing
            and actor is not None
            and actor.role in TRUSTED_PRICING_ROLES
        )

        if not trusted:
            if supplied is not None:
                logger.info("Ignoring client-supplied pricing, recomputing server-side")
            return self.pricing.calculate_price(
                prop.id, request.check_in_date, request.check_out_date, request.guest_count
            )

        parts = {
            "base_price": to_money(supplied.base_price),
            "cleaning_fee": to_money(supplied.cleaning_fee),
            "service_fee": to_money(supplied.service_fee),
            "taxes": to_money(supplied.taxes),
            "total_amount": to_money(supplied.total_amount),
        }
        negative = [name for name, value in parts.items() if value < 0]
        if negative:
            raise ValidationError(f"Pricing values cannot be negative: {', '.join(negative)}")

        expected_total = parts["base_price"] + parts["cleaning_fee"] + parts["service_fee"] + parts["taxes"]
        if expected_total != parts["total_amount"]:
            raise ValidationError(
                f"Inconsistent pricing: total {parts['total_amount']} != components {expected_total}"
            )

        logger.log_with_context(
            logging.INFO,
            "Using trusted client-supplied pricing",
            entity_type="property",
            entity_id=prop.id,
            actor=actor.user_id,
            total_amount=str(parts["total_amount"]),
        )
        return PriceBreakdown(
            property_id=prop.id,
            check_in_date=request.check_in_date,
            check_out_date=request.check_out_date,
            nights=count_nights(request.check_in_date, request.check_out_date),
            nightly_rates=[],
            tax_rate_percent=self.pricing.tax_rate_for(prop),
            currency=prop.currency or settings.default_currency,
            **parts
        )

    # ---------------------------------------------------------------
    # Status transitions
    # ---------------------------------------------------------------

    def transition(
        self,
        reservation_id: str,
        target: Union[ReservationStatus, str],
        actor: Optional[Principal] = None,
        reason: Optional[str] = None
    ) -> Reservation:
        """
        Move a reservation to ``target`` and apply the calendar side effect.

        Raises:
            NotFoundError: unknown reservation
            InvalidTransitionError: target not reachable from the current status
            ValidationError: unknown target status
        """
        target = parse_status(ReservationStatus, target)

        with serializable_transaction(self.db):
            reservation = self._lock(reservation_id)
            current = ReservationStatus(reservation.status)

            if target not in STATUS_TRANSITIONS[current]:
                raise InvalidTransitionError(current.value, target.value)

            reservation.status = target.value
            reservation.updated_at = datetime.utcnow()

            if target == ReservationStatus.CANCELLED:
                reservation.cancelled_at = datetime.utcnow()
                if reason:
                    reservation.cancellation_reason = reason

            released = 0
            if target in RELEASES_CALENDAR:
                released = self.calendar.release_booking(reservation.id)

        self.db.refresh(reservation)

        logger.reservation_status_changed(reservation.id, current.value, target.value)
        if released:
            logger.calendar_changed(
                "released", reservation.property_id,
                reservation.check_in_date, reservation.check_out_date, released
            )

        record_activity(
            self.db, actor,
            activity_type=STATUS_ACTIVITY[target],
            entity_type=EntityType.RESERVATION,
            entity_id=reservation.id,
            description=reason,
            old_values={"status": current.value},
            new_values={"status": target.value},
        )

        if target == ReservationStatus.CANCELLED:
            dispatch_safely(self.notifier, NotificationEvent.RESERVATION_CANCELLED, reservation)
        return reservation

    def confirm(self, reservation_id: str, actor: Optional[Principal] = None) -> Reservation:
        return self.transition(reservation_id, ReservationStatus.CONFIRMED, actor)

    def cancel(self, reservation_id: str, actor: Optional[Principal] = None,
               reason: Optional[str] = None) -> Reservation:
        return self.transition(reservation_id, ReservationStatus.CANCELLED, actor, reason=reason)

    def complete(self, reservation_id: str, actor: Optional[Principal] = None) -> Reservation:
        return self.transition(reservation_id, ReservationStatus.COMPLETED, actor)

    def mark_no_show(self, reservation_id: str, actor: Optional[Principal] = None) -> Reservation:
        return self.transition(reservation_id, ReservationStatus.NO_SHOW, actor)

    # ---------------------------------------------------------------
    # Payment bookkeeping
    # ---------------------------------------------------------------

    def update_payment_status(
        self,
        reservation_id: str,
        target: Union[PaymentStatus, str],
        actor: Optional[Principal] = None
    ) -> Reservation:
        target = parse_status(PaymentStatus, target, field="payment_status")

        with serializable_transaction(self.db):
            reservation = self._lock(reservation_id)
            current = PaymentStatus(reservation.payment_status)

            if target not in PAYMENT_TRANSITIONS[current]:
                raise InvalidTransitionError(current.value, target.value, field="payment_status")

            reservation.payment_status = target.value
            reservation.updated_at = datetime.utcnow()

        self.db.refresh(reservation)
        logger.info(f"Reservation {reservation.id} payment status: {current.value} -> {target.value}")

        record_activity(
            self.db, actor,
            activity_type=ActivityType.PAYMENT_STATUS_CHANGE,
            entity_type=EntityType.RESERVATION,
            entity_id=reservation.id,
            old_values={"payment_status": current.value},
            new_values={"payment_status": target.value},
        )
        return reservation

    # ---------------------------------------------------------------
    # Reassign
    # ---------------------------------------------------------------

    def reassign(self, reservation_id: str, new_property_id: str,
                 actor: Optional[Principal] = None) -> Reservation:
        """
        Move an active reservation to another property for the same dates.
        The stay is repriced on the new property.
        """
        with serializable_transaction(self.db):
            reservation = self._lock(reservation_id)
            current = ReservationStatus(reservation.status)

            if not STATUS_TRANSITIONS[current]:
                raise InvalidTransitionError(current.value, "reassigned")

            if reservation.property_id == new_property_id:
                raise ValidationError("Reservation is already assigned to this property")

            old_values = reservation_snapshot(reservation)

            prop = self.checker.get_property(new_property_id)
            self._ensure_bookable(prop, reservation.check_in_date, reservation.check_out_date)

            breakdown = self.pricing.calculate_price(
                prop.id, reservation.check_in_date, reservation.check_out_date, reservation.guest_count
            )

            self.calendar.release_booking(reservation.id)

            reservation.property_id = prop.id
            reservation.base_price = breakdown.base_price
            reservation.cleaning_fee = breakdown.cleaning_fee
            reservation.service_fee = breakdown.service_fee
            reservation.taxes = breakdown.taxes
            reservation.total_amount = breakdown.total_amount
            reservation.currency = breakdown.currency
            reservation.updated_at = datetime.utcnow()
            self.db.flush()

            self.calendar.mark_booked(
                prop.id, reservation.check_in_date, reservation.check_out_date, reservation.id
            )

        self.db.refresh(reservation)

        logger.log_with_context(
            logging.INFO,
            f"Reservation reassigned: {old_values['property_id']} -> {reservation.property_id}",
            entity_type="reservation",
            entity_id=reservation.id,
            old_property_id=old_values["property_id"],
            new_property_id=reservation.property_id,
        )
        record_activity(
            self.db, actor,
            activity_type=ActivityType.RESERVATION_REASSIGN,
            entity_type=EntityType.RESERVATION,
            entity_id=reservation.id,
            old_values=old_values,
            new_values=reservation_snapshot(reservation),
        )
        dispatch_safely(self.notifier, NotificationEvent.RESERVATION_REASSIGNED, reservation)
        return reservation

    def _lock(self, reservation_id: str) -> Reservation:
        reservation = acquire_row_lock(self.db, Reservation, Reservation.id == reservation_id)
        if not reservation:
            raise NotFoundError("Reservation", reservation_id)
        return reservation
