"""Booking reports API."""
import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from boardroom.auth.dependencies import get_current_active_user
from boardroom.bookings.schemas import BookingResponse
from boardroom.core.database import get_db
from boardroom.models.booking import Booking
from boardroom.models.organization import Organization, normalize_organization_name
from boardroom.models.user import User
from boardroom.reports.summary import month_bounds, summarize_bookings


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reports", tags=["Reports"])


class DateRange(BaseModel):
    start: Optional[date]
    end: Optional[date]


class ReportMetadata(BaseModel):
    date_range: DateRange
    organization_filter: Optional[str]
    generated_at: datetime


class ReportSummaryResponse(BaseModel):
    total_bookings: int
    total_hours: Decimal
    free_hours_used: Decimal
    paid_hours: Decimal
    confirmed_held_hours: Decimal
    revenue: Decimal
    by_status: dict[str, int]


class ReportResponse(BaseModel):
    metadata: ReportMetadata
    summary: ReportSummaryResponse
    bookings: list[BookingResponse]


@router.get("", response_model=ReportResponse)
async def get_report(
    organization_name: Optional[str] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    month: Optional[str] = Query(None, pattern=r"^\d{4}-(0[1-9]|1[0-2])$"),
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Booking report with hour totals.

    Regular users only see their own company's bookings; admins see all
    organizations or filter by name. ``month`` takes precedence over
    ``start_date``/``end_date``.
    """
    start, end = None, None
    if month:
        start, end = month_bounds(month)
    elif start_date and end_date:
        if end_date < start_date:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="end_date must not be before start_date",
            )
        start, end = start_date, end_date

    if current_user.is_superuser:
        org_filter = organization_name.strip() if organization_name and organization_name.strip() else None
    else:
        org_filter = (current_user.company_name or "").strip() or None
        if org_filter is None:
            return ReportResponse(
                metadata=ReportMetadata(
                    date_range=DateRange(start=start, end=end),
                    organization_filter=None,
                    generated_at=datetime.utcnow(),
                ),
                summary=ReportSummaryResponse(**vars(summarize_bookings([]))),
                bookings=[],
            )

    query = select(Booking)
    if org_filter:
        query = query.where(
            func.lower(func.trim(Booking.organization_name)) == normalize_organization_name(org_filter)
        )
    if start:
        query = query.where(Booking.booking_date >= start)
    if end:
        query = query.where(Booking.booking_date <= end)
    query = query.order_by(Booking.booking_date.desc(), Booking.start_time.asc())

    bookings = (await db.execute(query)).scalars().all()

    rates_result = await db.execute(
        select(Organization.normalized_name, Organization.billing_rate_per_hour).where(
            Organization.billing_rate_per_hour.is_not(None)
        )
    )
    billing_rates = dict(rates_result.all())

    summary = summarize_bookings(bookings, billing_rates)
    logger.debug(f"Report for user {current_user.id}: {summary.total_bookings} bookings")

    return ReportResponse(
        metadata=ReportMetadata(
            date_range=DateRange(start=start, end=end),
            organization_filter=org_filter,
            generated_at=datetime.utcnow(),
        ),
        summary=ReportSummaryResponse(**vars(summary)),
        bookings=[BookingResponse.model_validate(b) for b in bookings],
    )
