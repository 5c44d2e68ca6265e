"""
Customer Matcher - Guest deduplication
======================================
This service handles:
1. Email / phone normalization
2. Name sanitization and first/last split
3. Customer find-or-create (email first, then phone) with a
   non-destructive merge: incoming values replace stored ones,
   empty incoming values never erase anything
"""

import re
from typing import Optional, Tuple
from sqlalchemy.orm import Session

from ..errors import ValidationError
from ..models.customer import Customer, CustomerStatus
from ..utils.logging_config import get_logger

logger = get_logger(__name__)

EMAIL_PATTERN = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')


def normalize_email(email: Optional[str]) -> str:
    """Trim and lower-case; empty string when absent"""
    if not email:
        return ""
    return email.strip().lower()


def normalize_phone(phone: Optional[str]) -> str:
    """
    Reduce a phone number to digits with an optional leading '+'.

    Supported formats:
    - +213 555 12 34 56 -> +213555123456
    - 00213555123456    -> +213555123456
    - (0555) 12-34-56   -> 0555123456
    """
    if not phone:
        return ""

    stripped = phone.strip()
    has_plus = stripped.startswith('+')
    digits_only = re.sub(r'\D', '', stripped)

    if not digits_only:
        return ""

    if not has_plus and digits_only.startswith('00') and len(digits_only) > 2:
        return '+' + digits_only[2:]

    return ('+' + digits_only) if has_plus else digits_only


def sanitize_name(name: Optional[str]) -> str:
    """Collapse inner whitespace and trim"""
    if not name:
        return ""
    return ' '.join(name.split())


def split_name(name: Optional[str]) -> Tuple[str, str]:
    """First word is the first name, the rest is the last name"""
    clean = sanitize_name(name)
    if not clean:
        return "", ""
    parts = clean.split(' ', 1)
    return parts[0], parts[1] if len(parts) > 1 else ""


def validate_guest_info(name: Optional[str], email: Optional[str], phone: Optional[str]) -> None:
    """
    Raise ValidationError on malformed guest data.
    A name and at least one contact channel are required.
    """
    clean_name = sanitize_name(name)
    if len(clean_name) < 2:
        raise ValidationError("Guest name is required (at least 2 characters)")
    if len(clean_name) > 255:
        raise ValidationError("Guest name is too long (maximum 255 characters)")

    normalized_email = normalize_email(email)
    normalized_phone = normalize_phone(phone)

    if not normalized_email and not normalized_phone:
        raise ValidationError("Guest email or phone is required")

    if normalized_email and not EMAIL_PATTERN.match(normalized_email):
        raise ValidationError(f"Invalid email address: {email}")

    if phone and phone.strip():
        digits = normalized_phone.lstrip('+')
        if len(digits) < 6:
            raise ValidationError("Invalid phone number (at least 6 digits)")
        if len(digits) > 20:
            raise ValidationError("Phone number is too long")


class CustomerMatcher:

    def __init__(self, db: Session):
        self.db = db

    def find_existing(self, email: str, phone: str) -> Optional[Customer]:
        """Exact email match first, then exact phone match"""
        if email:
            customer = self.db.query(Customer).filter(
                Customer.email == email
            ).order_by(Customer.created_at).first()
            if customer:
                return customer

        if phone:
            return self.db.query(Customer).filter(
                Customer.phone == phone
            ).order_by(Customer.created_at).first()

        return None

    def find_or_create(
        self,
        email: Optional[str],
        phone: Optional[str],
        name: Optional[str],
        nationality: Optional[str] = None
    ) -> Customer:
        """
        Return the customer for this guest, creating one if needed.

        The session is flushed, not committed; the caller owns the transaction.

        Raises:
            ValidationError: the matched customer is blocked
        """
        normalized_email = normalize_email(email)
        normalized_phone = normalize_phone(phone)
        first_name, last_name = split_name(name)
        clean_nationality = sanitize_name(nationality)

        customer = self.find_existing(normalized_email, normalized_phone)

        if customer:
            if customer.status == CustomerStatus.BLOCKED.value:
                raise ValidationError("This customer is not allowed to make reservations")

            incoming = {
                "email": normalized_email,
                "phone": normalized_phone,
                "first_name": first_name,
                "last_name": last_name,
                "nationality": clean_nationality,
            }
            changed = []
            for field_name, value in incoming.items():
                # Empty values never erase what we already know
                if value and getattr(customer, field_name) != value:
                    setattr(customer, field_name, value)
                    changed.append(field_name)

            if changed:
                logger.info(f"Customer {customer.id} updated fields: {', '.join(changed)}")
            self.db.flush()
            return customer

        customer = Customer(
            first_name=first_name or None,
            last_name=last_name or None,
            email=normalized_email or None,
            phone=normalized_phone or None,
            nationality=clean_nationality or None,
            status=CustomerStatus.ACTIVE.value,
        )
        self.db.add(customer)
        self.db.flush()
        logger.info(f"Customer {customer.id} created")
        return customer
