"""Booking report aggregation."""
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Mapping, Optional

from boardroom.models.booking import Booking, BookingStatus, BookingType
from boardroom.models.organization import normalize_organization_name

CENT = Decimal("0.01")


def _round(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass
class ReportSummary:
    total_bookings: int = 0
    total_hours: Decimal = Decimal("0.00")
    free_hours_used: Decimal = Decimal("0.00")
    paid_hours: Decimal = Decimal("0.00")
    confirmed_held_hours: Decimal = Decimal("0.00")
    revenue: Decimal = Decimal("0.00")
    by_status: dict[str, int] = field(
        default_factory=lambda: {s.value: 0 for s in BookingStatus}
    )


def month_bounds(month: str) -> tuple[date, date]:
    """First and last day of a YYYY-MM month."""
    year, month_num = (int(part) for part in month.split("-"))
    start = date(year, month_num, 1)
    if month_num == 12:
        next_month = date(year + 1, 1, 1)
    else:
        next_month = date(year, month_num + 1, 1)
    return start, date.fromordinal(next_month.toordinal() - 1)


def summarize_bookings(
    bookings: Iterable[Booking],
    billing_rates: Optional[Mapping[str, Decimal]] = None,
    today: Optional[date] = None,
) -> ReportSummary:
    """
    Aggregate hours and revenue over bookings.

    Args:
        bookings: Bookings to include
        billing_rates: Hire rate per normalized organization name
        today: Meetings before this date count as held

    Returns:
        Summary with hour totals rounded to cents
    """
    today = today or date.today()
    billing_rates = billing_rates or {}
    summary = ReportSummary()

    for booking in bookings:
        summary.total_bookings += 1
        summary.by_status[booking.status.value] += 1

        hours = booking.duration_hours
        if hours is None:
            continue
        hours = Decimal(hours)

        summary.total_hours += hours
        if booking.booking_type == BookingType.FREE_HOURS:
            summary.free_hours_used += hours
        elif booking.booking_type == BookingType.HIRE:
            summary.paid_hours += hours
            rate = billing_rates.get(normalize_organization_name(booking.organization_name))
            if rate is not None:
                summary.revenue += hours * Decimal(rate)

        if booking.status == BookingStatus.CONFIRMED and booking.booking_date < today:
            summary.confirmed_held_hours += hours

    summary.total_hours = _round(summary.total_hours)
    summary.free_hours_used = _round(summary.free_hours_used)
    summary.paid_hours = _round(summary.paid_hours)
    summary.confirmed_held_hours = _round(summary.confirmed_held_hours)
    summary.revenue = _round(summary.revenue)
    return summary
