from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import date
from decimal import Decimal

from ..models.availability import BlockedReason


class CalendarEntry(BaseModel):
    date: date
    is_available: bool
    blocked_reason: Optional[BlockedReason] = None
    price_override: Optional[Decimal] = None
    minimum_stay: int = 1
    reservation_id: Optional[str] = None

    class Config:
        from_attributes = True


class CalendarResponse(BaseModel):
    property_id: str
    start_date: date
    end_date: date
    entries: List[CalendarEntry]


class NightlyRateResponse(BaseModel):
    date: date
    price: Decimal
    is_override: bool

    class Config:
        from_attributes = True


class PriceQuote(BaseModel):
    nights: int
    nightly_rates: List[NightlyRateResponse] = []
    base_price: Decimal
    cleaning_fee: Decimal
    service_fee: Decimal
    tax_rate_percent: Decimal
    taxes: Decimal
    total_amount: Decimal
    currency: str

    class Config:
        from_attributes = True


class AvailabilityCheckResponse(BaseModel):
    property_id: str
    start_date: date
    end_date: date
    available: bool
    unavailable_dates: List[date] = []
    conflicting_reservation_ids: List[str] = []
    pricing: Optional[PriceQuote] = None
    pricing_error: Optional[str] = None


class DateRangeRequest(BaseModel):
    property_id: str = Field(..., min_length=1, max_length=36)
    start_date: date
    end_date: date


class BlockRequest(DateRangeRequest):
    reason: BlockedReason = BlockedReason.MAINTENANCE
    price_override: Optional[Decimal] = Field(None, ge=0)
    minimum_stay: Optional[int] = Field(None, ge=1)
    notes: Optional[str] = Field(None, max_length=1000)


class RatesRequest(DateRangeRequest):
    price_override: Optional[Decimal] = Field(None, ge=0)
    minimum_stay: Optional[int] = Field(None, ge=1)


class CalendarWriteResponse(BaseModel):
    property_id: str
    start_date: date
    end_date: date
    count: int
