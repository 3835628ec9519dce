"""Slot arithmetic for boardroom bookings."""
from datetime import time
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional

from boardroom.models.booking import Booking, BookingStatus


def _minutes(value: time) -> int:
    return value.hour * 60 + value.minute


def compute_duration_hours(start_time: time, end_time: time) -> Optional[Decimal]:
    """Hours between two same-day times, to two decimals. None if end <= start."""
    start_m = _minutes(start_time)
    end_m = _minutes(end_time)
    if end_m <= start_m:
        return None
    hours = Decimal(end_m - start_m) / Decimal(60)
    return hours.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def overlaps(start_a: time, end_a: time, start_b: time, end_b: time) -> bool:
    """Half-open interval overlap; back-to-back slots do not clash."""
    return _minutes(start_a) < _minutes(end_b) and _minutes(end_a) > _minutes(start_b)


def find_conflict(
    bookings: Iterable[Booking],
    start_time: time,
    end_time: time,
    exclude_booking_id: Optional[int] = None,
) -> Optional[Booking]:
    """First active booking overlapping the requested slot, if any.

    Callers pass bookings of a single date.
    """
    for booking in bookings:
        if booking.status == BookingStatus.CANCELLED:
            continue
        if exclude_booking_id is not None and booking.id == exclude_booking_id:
            continue
        if overlaps(start_time, end_time, booking.start_time, booking.end_time):
            return booking
    return None


def within_business_hours(start_time: time, end_time: time, opens: int, closes: int) -> bool:
    return _minutes(start_time) >= opens * 60 and _minutes(end_time) <= closes * 60
