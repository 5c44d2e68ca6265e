"""
Pricing Calculator

Computes the price of a stay from nightly rates.

Pricing Formula:
1. nightly rate = price_override of the date's calendar row, else the
   property's price_per_night
2. base_price = sum of nightly rates over [check_in, check_out)
3. cleaning_fee and service_fee are added once per stay
4. taxes = (base_price + cleaning_fee + service_fee) * tax_rate / 100
5. total_amount = base_price + cleaning_fee + service_fee + taxes

Guest count is validated against the property's capacity but does not
change the price.
"""

from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional
from dataclasses import dataclass

from sqlalchemy.orm import Session

from ..config import settings
from ..errors import NotFoundError, PricingUnavailableError, ValidationError
from ..models.property import Property
from ..utils.date_ranges import iter_nights, require_valid_range
from .calendar_store import CalendarStore

CENTS = Decimal("0.01")


def to_money(value) -> Decimal:
    """Round half-up to two decimal places"""
    return Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)


@dataclass
class NightlyRate:
    date: date
    price: Decimal
    is_override: bool


@dataclass
class PriceBreakdown:
    """Priced stay for one property"""
    property_id: str
    check_in_date: date
    check_out_date: date
    nights: int
    nightly_rates: List[NightlyRate]
    base_price: Decimal
    cleaning_fee: Decimal
    service_fee: Decimal
    tax_rate_percent: Decimal
    taxes: Decimal
    total_amount: Decimal
    currency: str

    def to_dict(self) -> dict:
        return {
            "nights": self.nights,
            "base_price": self.base_price,
            "cleaning_fee": self.cleaning_fee,
            "service_fee": self.service_fee,
            "tax_rate_percent": self.tax_rate_percent,
            "taxes": self.taxes,
            "total_amount": self.total_amount,
            "currency": self.currency,
        }


def validate_guest_count(prop: Property, guest_count: int) -> None:
    if guest_count is None or guest_count < 1:
        raise ValidationError("Guest count must be at least 1")
    if prop.max_guests is not None and guest_count > prop.max_guests:
        raise ValidationError(
            f"Guest count ({guest_count}) exceeds the capacity of this property ({prop.max_guests})"
        )


class PricingCalculator:

    def __init__(self, db: Session, tax_rate_percent: Optional[Decimal] = None):
        self.db = db
        self.calendar = CalendarStore(db)
        # Fallback when a property carries no tax rate of its own
        self.default_tax_rate_percent = (
            tax_rate_percent if tax_rate_percent is not None else settings.default_tax_rate_percent
        )

    def get_property(self, property_id: str) -> Property:
        prop = self.db.query(Property).filter(Property.id == property_id).first()
        if not prop:
            raise NotFoundError("Property", property_id)
        return prop

    def tax_rate_for(self, prop: Property) -> Decimal:
        if prop.tax_rate_percent is not None:
            return Decimal(str(prop.tax_rate_percent))
        return Decimal(str(self.default_tax_rate_percent))

    def nightly_rates(self, prop: Property, start_date: date, end_date: date) -> List[NightlyRate]:
        """
        Rate for every night of the stay.

        Raises:
            PricingUnavailableError: a night has neither an override nor a base rate
        """
        overrides = self.calendar.price_overrides(prop.id, start_date, end_date)
        base_rate = Decimal(str(prop.price_per_night)) if prop.price_per_night is not None else None

        rates = []
        for night in iter_nights(start_date, end_date):
            if night in overrides:
                rates.append(NightlyRate(date=night, price=to_money(overrides[night]), is_override=True))
            elif base_rate is not None:
                rates.append(NightlyRate(date=night, price=to_money(base_rate), is_override=False))
            else:
                raise PricingUnavailableError(
                    f"No nightly rate defined for {prop.name} on {night}"
                )
        return rates

    def calculate_price(
        self,
        property_id: str,
        start_date: date,
        end_date: date,
        guest_count: int = 1
    ) -> PriceBreakdown:
        require_valid_range(start_date, end_date)
        prop = self.get_property(property_id)
        validate_guest_count(prop, guest_count)

        rates = self.nightly_rates(prop, start_date, end_date)

        base_price = to_money(sum((r.price for r in rates), Decimal("0")))
        cleaning_fee = to_money(prop.cleaning_fee or 0)
        service_fee = to_money(prop.service_fee or 0)
        tax_rate = self.tax_rate_for(prop)

        taxable = base_price + cleaning_fee + service_fee
        taxes = to_money(taxable * tax_rate / Decimal("100"))
        total_amount = to_money(taxable + taxes)

        return PriceBreakdown(
            property_id=prop.id,
            check_in_date=start_date,
            check_out_date=end_date,
            nights=len(rates),
            nightly_rates=rates,
            base_price=base_price,
            cleaning_fee=cleaning_fee,
            service_fee=service_fee,
            tax_rate_percent=tax_rate,
            taxes=taxes,
            total_amount=total_amount,
            currency=prop.currency or settings.default_currency,
        )
