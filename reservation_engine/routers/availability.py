from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session
from datetime import date

from ..database import get_db
from ..errors import ValidationError
from ..schemas.availability import (
    AvailabilityCheckResponse, BlockRequest, CalendarEntry, CalendarResponse, CalendarWriteResponse,
    DateRangeRequest, PriceQuote, RatesRequest
)
from ..services.block_manager import BlockManager
from ..services.conflict_checker import ConflictChecker
from ..services.pricing_calculator import PricingCalculator
from ..utils.dependencies import get_current_principal, require_roles
from ..utils.rate_limiter import limiter, get_rate_limit
from ..utils.security import Principal, Role

router = APIRouter(prefix="/availability", tags=["Availability"])

staff_only = require_roles(Role.ADMIN, Role.MANAGER, Role.PARTNER)


@router.get("", response_model=CalendarResponse)
@router.get("/", response_model=CalendarResponse)
@limiter.limit(get_rate_limit("availability_read"))
async def get_calendar(
    request: Request,
    property_id: str = Query(...),
    start_date: date = Query(...),
    end_date: date = Query(...),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal)
):
    """One entry per date in [start_date, end_date)"""
    entries = BlockManager(db).calendar_entries(property_id, start_date, end_date)
    return CalendarResponse(
        property_id=property_id,
        start_date=start_date,
        end_date=end_date,
        entries=[CalendarEntry.model_validate(e) for e in entries],
    )


@router.get("/check", response_model=AvailabilityCheckResponse)
@limiter.limit(get_rate_limit("availability_read"))
async def check_availability(
    request: Request,
    property_id: str = Query(...),
    start_date: date = Query(...),
    end_date: date = Query(...),
    guest_count: int = Query(1),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal)
):
    """Availability plus a price quote for the stay"""
    conflicts = ConflictChecker(db).find_conflicts(property_id, start_date, end_date)

    quote = None
    pricing_error = None
    try:
        quote = PricingCalculator(db).calculate_price(property_id, start_date, end_date, guest_count)
    except ValidationError as e:
        # Availability is still reported when the stay cannot be priced
        pricing_error = e.message

    return AvailabilityCheckResponse(
        property_id=property_id,
        start_date=start_date,
        end_date=end_date,
        available=conflicts.is_available,
        unavailable_dates=conflicts.unavailable_dates,
        conflicting_reservation_ids=conflicts.reservation_ids,
        pricing=PriceQuote.model_validate(quote) if quote else None,
        pricing_error=pricing_error,
    )


@router.post("/block", response_model=CalendarWriteResponse)
@limiter.limit(get_rate_limit("calendar_write"))
async def block_dates(
    request: Request,
    payload: BlockRequest,
    db: Session = Depends(get_db),
    principal: Principal = Depends(staff_only)
):
    """Block a date range; 409 if any date is booked or already blocked"""
    count = BlockManager(db).block(
        payload.property_id,
        payload.start_date,
        payload.end_date,
        payload.reason,
        price_override=payload.price_override,
        minimum_stay=payload.minimum_stay,
        notes=payload.notes,
        actor=principal,
    )
    return CalendarWriteResponse(
        property_id=payload.property_id,
        start_date=payload.start_date,
        end_date=payload.end_date,
        count=count,
    )


@router.delete("/block", response_model=CalendarWriteResponse)
@limiter.limit(get_rate_limit("calendar_write"))
async def unblock_dates(
    request: Request,
    payload: DateRangeRequest,
    db: Session = Depends(get_db),
    principal: Principal = Depends(staff_only)
):
    """Clear manual blocks in a range; booked dates are left alone"""
    count = BlockManager(db).unblock(
        payload.property_id, payload.start_date, payload.end_date, actor=principal
    )
    return CalendarWriteResponse(
        property_id=payload.property_id,
        start_date=payload.start_date,
        end_date=payload.end_date,
        count=count,
    )


@router.post("/rates", response_model=CalendarWriteResponse)
@limiter.limit(get_rate_limit("calendar_write"))
async def set_rates(
    request: Request,
    payload: RatesRequest,
    db: Session = Depends(get_db),
    principal: Principal = Depends(staff_only)
):
    count = BlockManager(db).set_rates(
        payload.property_id,
        payload.start_date,
        payload.end_date,
        price_override=payload.price_override,
        minimum_stay=payload.minimum_stay,
        actor=principal,
    )
    return CalendarWriteResponse(
        property_id=payload.property_id,
        start_date=payload.start_date,
        end_date=payload.end_date,
        count=count,
    )
