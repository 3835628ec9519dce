"""Bookings API: create, list and change status."""
import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from boardroom.auth.dependencies import get_current_active_user
from boardroom.billing.free_hours import get_free_hours_policy
from boardroom.bookings.scheduling import compute_duration_hours, find_conflict, within_business_hours
from boardroom.bookings.schemas import BookingCreate, BookingResponse, BookingStatusUpdate
from boardroom.core.config import settings
from boardroom.core.database import get_db
from boardroom.models.booking import Booking, BookingStatus, STATUS_TRANSITIONS
from boardroom.models.user import User


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bookings", tags=["Bookings"])


async def _bookings_on(db: AsyncSession, booking_date: date) -> list[Booking]:
    result = await db.execute(
        select(Booking)
        .where(Booking.booking_date == booking_date, Booking.status != BookingStatus.CANCELLED)
        .order_by(Booking.start_time)
    )
    return list(result.scalars().all())


@router.get("", response_model=list[BookingResponse])
async def list_bookings(
    date_filter: Optional[date] = Query(None, alias="date"),
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    """List bookings, optionally for one date."""
    query = select(Booking)
    if date_filter is not None:
        query = query.where(Booking.booking_date == date_filter)
    query = query.order_by(Booking.booking_date.desc(), Booking.start_time.asc())

    result = await db.execute(query)
    return [BookingResponse.model_validate(b) for b in result.scalars().all()]


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: int,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    """Get booking details."""
    booking = await db.get(Booking, booking_id)
    if not booking:
        raise HTTPException(status_code=404, detail="Booking not found")
    return BookingResponse.model_validate(booking)


@router.post("", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    booking_data: BookingCreate,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Request a boardroom slot.

    The duration and booking type are computed here and stored with the
    booking; later changes to the organization do not alter them.

    Raises:
        HTTPException: 400 outside business hours, 409 if the slot is taken
    """
    if not within_business_hours(
        booking_data.start_time,
        booking_data.end_time,
        settings.business_hours_start,
        settings.business_hours_end,
    ):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=(
                f"Bookings must fall between {settings.business_hours_start:02d}:00 "
                f"and {settings.business_hours_end:02d}:00"
            ),
        )

    conflict = find_conflict(
        await _bookings_on(db, booking_data.date),
        booking_data.start_time,
        booking_data.end_time,
    )
    if conflict:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Time slot conflicts with existing booking by {conflict.organization_name}",
        )

    duration = compute_duration_hours(booking_data.start_time, booking_data.end_time)
    booking_type = await get_free_hours_policy(db).classify(booking_data.organization_name, duration)

    booking = Booking(
        user_id=current_user.id,
        organization_name=booking_data.organization_name,
        contact_name=booking_data.contact_name,
        contact_email=booking_data.contact_email,
        contact_phone=booking_data.contact_phone,
        booking_date=booking_data.date,
        start_time=booking_data.start_time,
        end_time=booking_data.end_time,
        duration_hours=duration,
        purpose=booking_data.purpose,
        attendees=booking_data.attendees,
        attendance_type=booking_data.attendance_type,
        catering_option=booking_data.catering_option,
        needs_display_screen=booking_data.needs_display_screen,
        needs_video_conferencing=booking_data.needs_video_conferencing,
        needs_projector=booking_data.needs_projector,
        needs_whiteboard=booking_data.needs_whiteboard,
        needs_conference_phone=booking_data.needs_conference_phone,
        needs_extension_power=booking_data.needs_extension_power,
        booking_type=booking_type,
        status=BookingStatus.PENDING,
    )
    db.add(booking)
    await db.commit()
    await db.refresh(booking)

    logger.info(
        f"Booking {booking.id} created for {booking.organization_name} on {booking.booking_date} "
        f"({duration}h, {booking_type.value})"
    )
    return BookingResponse.model_validate(booking)


@router.patch("/{booking_id}/status", response_model=BookingResponse)
async def update_booking_status(
    booking_id: int,
    update: BookingStatusUpdate,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Confirm or cancel a booking.

    Admins may make any allowed transition; the user who made the booking
    may only cancel it. Admin comments are kept when confirming.
    """
    booking = await db.get(Booking, booking_id)
    if not booking:
        raise HTTPException(status_code=404, detail="Booking not found")

    is_owner = booking.user_id is not None and booking.user_id == current_user.id
    if not current_user.is_superuser:
        if not (is_owner and update.status == BookingStatus.CANCELLED):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Admin access required",
            )

    if update.status == booking.status:
        return BookingResponse.model_validate(booking)

    if update.status not in STATUS_TRANSITIONS[booking.status]:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Cannot change booking status from {booking.status.value} to {update.status.value}",
        )

    previous = booking.status
    booking.status = update.status
    if update.status == BookingStatus.CONFIRMED and update.admin_comments:
        booking.admin_approval_comments = update.admin_comments
    await db.commit()
    await db.refresh(booking)

    logger.info(f"Booking {booking.id} status {previous.value} -> {booking.status.value} by user {current_user.id}")
    return BookingResponse.model_validate(booking)
