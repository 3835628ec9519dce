"""Organization model."""
from datetime import datetime
from decimal import Decimal
from typing import Optional
from sqlalchemy import String, Boolean, DateTime, Integer, Numeric
from sqlalchemy.orm import Mapped, mapped_column, validates
from boardroom.core.database import Base


def clean_organization_name(name: Optional[str]) -> str:
    """Drop surrounding whitespace of any kind; names are stored this way."""
    return (name or "").strip()


def normalize_organization_name(name: Optional[str]) -> str:
    """Key used to match organization names: trimmed and lowercased."""
    return clean_organization_name(name).lower()


class Organization(Base):
    """Organization that books the boardroom; tenants receive free hours."""

    __tablename__ = "organizations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    # Matching key; "Acme" and "ACME " are the same organization
    normalized_name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)

    # Free hours
    is_tenant: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    monthly_free_hours: Mapped[Decimal] = mapped_column(
        Numeric(6, 2), default=Decimal("0.00"), nullable=False
    )
    used_free_hours_this_month: Mapped[Decimal] = mapped_column(
        Numeric(8, 2), default=Decimal("0.00"), nullable=False
    )

    # Hire
    billing_rate_per_hour: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2))

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    @validates("name")
    def _set_name(self, key: str, value: str) -> str:
        value = clean_organization_name(value)
        self.normalized_name = value.lower()
        return value

    def __repr__(self) -> str:
        return f"<Organization(id={self.id}, name={self.name}, is_tenant={self.is_tenant})>"
