"""
Half-open date range helpers.

A stay from day X to day X+3 occupies X, X+1 and X+2 but not X+3, so two
stays can share a boundary date.
"""

from datetime import date, timedelta
from typing import Iterator

from ..errors import InvalidRangeError


def iter_nights(start_date: date, end_date: date) -> Iterator[date]:
    """Yield every date in [start_date, end_date)"""
    current = start_date
    while current < end_date:
        yield current
        current += timedelta(days=1)


def count_nights(start_date: date, end_date: date) -> int:
    return max((end_date - start_date).days, 0)


def require_valid_range(start_date: date, end_date: date) -> None:
    """Raise InvalidRangeError unless start_date < end_date"""
    if start_date is None or end_date is None:
        raise InvalidRangeError("Start and end dates are required", start_date, end_date)
    if start_date >= end_date:
        raise InvalidRangeError(
            f"End date ({end_date}) must be after start date ({start_date})",
            start_date, end_date
        )


def validate_stay_window(
    check_in: date,
    check_out: date,
    today: date,
    max_advance_days: int,
    max_stay_nights: int
) -> None:
    """
    Booking-time checks on top of the range ordering:
    no past check-in, no check-in beyond the booking window, no overlong stay.
    """
    require_valid_range(check_in, check_out)

    if check_in < today:
        raise InvalidRangeError(f"Check-in date ({check_in}) cannot be in the past", check_in, check_out)

    if check_in > today + timedelta(days=max_advance_days):
        raise InvalidRangeError(
            f"Check-in date ({check_in}) is more than {max_advance_days} days ahead",
            check_in, check_out
        )

    nights = count_nights(check_in, check_out)
    if nights > max_stay_nights:
        raise InvalidRangeError(
            f"Stay of {nights} nights exceeds the maximum of {max_stay_nights}",
            check_in, check_out
        )
