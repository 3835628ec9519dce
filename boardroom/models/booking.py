"""Booking models."""
from datetime import datetime, date, time
from decimal import Decimal
from enum import Enum
from typing import Optional
from sqlalchemy import String, Boolean, Date, DateTime, Time, Integer, ForeignKey, Numeric, Text, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates
from boardroom.core.database import Base
from boardroom.models.organization import clean_organization_name


class BookingType(str, Enum):
    """Financial classification, fixed when the booking is created."""
    FREE_HOURS = "FREE_HOURS"
    HIRE = "HIRE"


class BookingStatus(str, Enum):
    """Booking status enum."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class AttendanceType(str, Enum):
    INTERNAL = "INTERNAL"
    EXTERNAL = "EXTERNAL"


class CateringOption(str, Enum):
    NONE = "NONE"
    TEA_COFFEE_WATER = "TEA_COFFEE_WATER"
    LIGHT_SNACKS = "LIGHT_SNACKS"


# Allowed status changes; anything else is rejected
STATUS_TRANSITIONS: dict[BookingStatus, set[BookingStatus]] = {
    BookingStatus.PENDING: {BookingStatus.CONFIRMED, BookingStatus.CANCELLED},
    BookingStatus.CONFIRMED: {BookingStatus.CANCELLED},
    BookingStatus.CANCELLED: set(),
}


class Booking(Base):
    """Boardroom booking."""

    __tablename__ = "bookings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), index=True
    )

    # Denormalized, matched case-insensitively against organizations.normalized_name
    organization_name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)

    # Contact
    contact_name: Mapped[str] = mapped_column(String(255), nullable=False)
    contact_email: Mapped[str] = mapped_column(String(255), nullable=False)
    contact_phone: Mapped[Optional[str]] = mapped_column(String(50))

    # Slot
    booking_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)
    duration_hours: Mapped[Optional[Decimal]] = mapped_column(Numeric(5, 2))

    # Meeting
    purpose: Mapped[Optional[str]] = mapped_column(Text)
    attendees: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    attendance_type: Mapped[AttendanceType] = mapped_column(
        SQLEnum(AttendanceType, native_enum=False), default=AttendanceType.INTERNAL, nullable=False
    )
    catering_option: Mapped[CateringOption] = mapped_column(
        SQLEnum(CateringOption, native_enum=False), default=CateringOption.NONE, nullable=False
    )

    # Equipment
    needs_display_screen: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    needs_video_conferencing: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    needs_projector: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    needs_whiteboard: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    needs_conference_phone: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    needs_extension_power: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Billing
    booking_type: Mapped[BookingType] = mapped_column(
        SQLEnum(BookingType, native_enum=False), default=BookingType.HIRE, nullable=False
    )
    free_hours_applied: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    status: Mapped[BookingStatus] = mapped_column(
        SQLEnum(BookingStatus, native_enum=False), default=BookingStatus.PENDING, nullable=False, index=True
    )
    # Note from the admin who confirmed the booking
    admin_approval_comments: Mapped[Optional[str]] = mapped_column(Text)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    # Relationships
    user: Mapped[Optional["User"]] = relationship("User", back_populates="bookings")

    @validates("organization_name")
    def _clean_organization_name(self, key: str, value: str) -> str:
        return clean_organization_name(value)

    def __repr__(self) -> str:
        return (
            f"<Booking(id={self.id}, organization={self.organization_name}, "
            f"date={self.booking_date}, type={self.booking_type})>"
        )
