"""Database models."""
from boardroom.core.database import Base
from boardroom.models.user import User
from boardroom.models.organization import Organization
from boardroom.models.booking import Booking, BookingType, BookingStatus

__all__ = [
    "Base",
    "User",
    "Organization",
    "Booking",
    "BookingType",
    "BookingStatus",
]
