"""Pydantic schemas for bookings."""
import datetime as dt
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

from boardroom.models.booking import AttendanceType, BookingStatus, BookingType, CateringOption


class BookingCreate(BaseModel):
    """Booking request schema."""
    organization_name: str = Field(..., min_length=1, max_length=255)
    contact_name: str = Field(..., min_length=1, max_length=255)
    contact_email: EmailStr
    contact_phone: Optional[str] = Field(None, max_length=50)
    date: dt.date
    start_time: dt.time
    end_time: dt.time
    purpose: Optional[str] = None
    attendees: int = Field(1, ge=1)
    attendance_type: AttendanceType = AttendanceType.INTERNAL
    catering_option: CateringOption = CateringOption.NONE
    needs_display_screen: bool = False
    needs_video_conferencing: bool = False
    needs_projector: bool = False
    needs_whiteboard: bool = False
    needs_conference_phone: bool = False
    needs_extension_power: bool = False

    @field_validator("organization_name", "contact_name")
    @classmethod
    def strip_text(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Must not be blank")
        return v

    @field_validator("start_time", "end_time")
    @classmethod
    def drop_seconds(cls, v: dt.time) -> dt.time:
        """Slots are minute-granular."""
        return v.replace(second=0, microsecond=0, tzinfo=None)

    @model_validator(mode="after")
    def end_after_start(self):
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class BookingResponse(BaseModel):
    """Booking response schema."""
    id: int
    user_id: Optional[int]
    organization_name: str
    contact_name: str
    contact_email: str
    contact_phone: Optional[str]
    date: dt.date = Field(validation_alias="booking_date")
    start_time: dt.time
    end_time: dt.time
    duration_hours: Optional[Decimal]
    purpose: Optional[str]
    attendees: int
    attendance_type: AttendanceType
    catering_option: CateringOption
    needs_display_screen: bool
    needs_video_conferencing: bool
    needs_projector: bool
    needs_whiteboard: bool
    needs_conference_phone: bool
    needs_extension_power: bool
    booking_type: BookingType
    free_hours_applied: bool
    status: BookingStatus
    admin_approval_comments: Optional[str] = None
    created_at: dt.datetime

    class Config:
        from_attributes = True
        populate_by_name = True


class BookingStatusUpdate(BaseModel):
    """Status change request schema."""
    status: BookingStatus
    admin_comments: Optional[str] = Field(None, max_length=2000)

    @field_validator("admin_comments")
    @classmethod
    def blank_comments_to_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return v.strip() or None
