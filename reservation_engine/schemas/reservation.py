from pydantic import BaseModel, Field, field_validator
from typing import Optional
from datetime import datetime, date
from decimal import Decimal
import re

from ..models.reservation import ReservationStatus, PaymentStatus


def _strip_markup(v):
    """Drop script tags and inline event handlers from free text"""
    if v is None or not isinstance(v, str):
        return v
    v = re.sub(r'<script[^>]*>.*?</script>', '', v, flags=re.IGNORECASE | re.DOTALL)
    v = re.sub(r'on\w+\s*=', '', v, flags=re.IGNORECASE)
    return v


class ReservationPricing(BaseModel):
    """Pre-computed breakdown; only honoured for trusted callers"""
    base_price: Decimal = Field(..., ge=0)
    cleaning_fee: Decimal = Field(Decimal("0"), ge=0)
    service_fee: Decimal = Field(Decimal("0"), ge=0)
    taxes: Decimal = Field(Decimal("0"), ge=0)
    total_amount: Decimal = Field(..., ge=0)


class ReservationCreate(BaseModel):
    property_id: str = Field(..., min_length=1, max_length=36)
    guest_name: str = Field(..., min_length=1, max_length=255)
    guest_email: Optional[str] = Field(None, max_length=255)
    guest_phone: Optional[str] = Field(None, max_length=50)
    guest_nationality: Optional[str] = Field(None, max_length=100)
    guest_count: int = Field(1, description="Number of guests")
    # Date ordering is checked by the engine so it can answer 422
    check_in_date: date
    check_out_date: date
    special_requests: Optional[str] = Field(None, max_length=2000)
    pricing: Optional[ReservationPricing] = None

    @field_validator('guest_name', 'special_requests', mode='before')
    @classmethod
    def sanitize_text_fields(cls, v):
        return _strip_markup(v)


class ReservationStatusUpdate(BaseModel):
    status: ReservationStatus
    cancellation_reason: Optional[str] = Field(None, max_length=1000)

    @field_validator('cancellation_reason', mode='before')
    @classmethod
    def sanitize_reason(cls, v):
        return _strip_markup(v)


class PaymentStatusUpdate(BaseModel):
    payment_status: PaymentStatus


class ReservationReassign(BaseModel):
    property_id: str = Field(..., min_length=1, max_length=36)


class ReservationResponse(BaseModel):
    id: str
    property_id: str
    customer_id: Optional[str] = None
    guest_name: str
    guest_email: Optional[str] = None
    guest_phone: Optional[str] = None
    guest_nationality: Optional[str] = None
    guest_count: int
    check_in_date: date
    check_out_date: date
    base_price: Decimal
    cleaning_fee: Decimal
    service_fee: Decimal
    taxes: Decimal
    total_amount: Decimal
    currency: Optional[str] = None
    status: ReservationStatus
    payment_status: PaymentStatus
    special_requests: Optional[str] = None
    created_by_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None

    class Config:
        from_attributes = True
