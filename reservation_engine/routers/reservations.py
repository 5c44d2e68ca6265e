from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session
from typing import List, Optional

from ..database import get_db
from ..models.reservation import ReservationStatus
from ..schemas.reservation import (
    ReservationCreate, ReservationResponse, ReservationStatusUpdate,
    PaymentStatusUpdate, ReservationReassign
)
from ..services.reservation_lifecycle import ReservationLifecycle, ReservationRequest, ClientPricing
from ..services.notifications import NotificationDispatcher, LogNotificationDispatcher
from ..utils.dependencies import get_current_principal, require_roles
from ..utils.rate_limiter import limiter, get_rate_limit
from ..utils.security import Principal, Role

router = APIRouter(prefix="/reservations", tags=["Reservations"])

staff_only = require_roles(Role.ADMIN, Role.MANAGER, Role.PARTNER)


def get_notifier() -> NotificationDispatcher:
    return LogNotificationDispatcher()


def get_lifecycle(
    db: Session = Depends(get_db),
    notifier: NotificationDispatcher = Depends(get_notifier)
) -> ReservationLifecycle:
    return ReservationLifecycle(db, notifier=notifier)


@router.post("", response_model=ReservationResponse, status_code=status.HTTP_201_CREATED)
@router.post("/", response_model=ReservationResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(get_rate_limit("reservation_create"))
async def create_reservation(
    request: Request,
    payload: ReservationCreate,
    lifecycle: ReservationLifecycle = Depends(get_lifecycle),
    principal: Principal = Depends(get_current_principal)
):
    """Book a stay; 409 when the dates are taken"""
    pricing = None
    if payload.pricing is not None:
        pricing = ClientPricing(**payload.pricing.model_dump())

    reservation_request = ReservationRequest(
        property_id=payload.property_id,
        guest_name=payload.guest_name,
        guest_email=payload.guest_email,
        guest_phone=payload.guest_phone,
        guest_nationality=payload.guest_nationality,
        guest_count=payload.guest_count,
        check_in_date=payload.check_in_date,
        check_out_date=payload.check_out_date,
        special_requests=payload.special_requests,
        pricing=pricing,
    )
    return lifecycle.create(reservation_request, principal)


@router.get("", response_model=List[ReservationResponse])
@router.get("/", response_model=List[ReservationResponse])
async def list_reservations(
    property_id: Optional[str] = None,
    status_filter: Optional[ReservationStatus] = Query(None, alias="status"),
    customer_id: Optional[str] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    lifecycle: ReservationLifecycle = Depends(get_lifecycle),
    principal: Principal = Depends(get_current_principal)
):
    return lifecycle.list(
        property_id=property_id,
        status=status_filter,
        customer_id=customer_id,
        skip=skip,
        limit=limit,
    )


@router.get("/{reservation_id}", response_model=ReservationResponse)
async def get_reservation(
    reservation_id: str,
    lifecycle: ReservationLifecycle = Depends(get_lifecycle),
    principal: Principal = Depends(get_current_principal)
):
    return lifecycle.get(reservation_id)


@router.patch("/{reservation_id}/status", response_model=ReservationResponse)
@limiter.limit(get_rate_limit("reservation_update"))
async def update_reservation_status(
    request: Request,
    reservation_id: str,
    payload: ReservationStatusUpdate,
    lifecycle: ReservationLifecycle = Depends(get_lifecycle),
    principal: Principal = Depends(staff_only)
):
    """Move a reservation through its lifecycle; 409 on an illegal transition"""
    return lifecycle.transition(
        reservation_id,
        payload.status,
        actor=principal,
        reason=payload.cancellation_reason,
    )


@router.patch("/{reservation_id}/payment-status", response_model=ReservationResponse)
@limiter.limit(get_rate_limit("reservation_update"))
async def update_payment_status(
    request: Request,
    reservation_id: str,
    payload: PaymentStatusUpdate,
    lifecycle: ReservationLifecycle = Depends(get_lifecycle),
    principal: Principal = Depends(staff_only)
):
    return lifecycle.update_payment_status(reservation_id, payload.payment_status, actor=principal)


@router.post("/{reservation_id}/reassign", response_model=ReservationResponse)
@limiter.limit(get_rate_limit("reservation_update"))
async def reassign_reservation(
    request: Request,
    reservation_id: str,
    payload: ReservationReassign,
    lifecycle: ReservationLifecycle = Depends(get_lifecycle),
    principal: Principal = Depends(staff_only)
):
    """Move the stay to another property for the same dates"""
    return lifecycle.reassign(reservation_id, payload.property_id, actor=principal)
