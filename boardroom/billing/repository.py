"""Persistence seam for free-hours billing."""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional, Sequence

from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession

from boardroom.models.booking import Booking, BookingStatus, BookingType
from boardroom.models.organization import Organization, normalize_organization_name


class ReconciliationConflict(Exception):
    """Bookings changed underneath a reconciliation run."""


@dataclass
class PendingFreeHours:
    """Unreconciled free-hours bookings of one organization."""
    organization_id: int
    organization_name: str
    hours: Decimal = Decimal("0.00")
    booking_ids: list[int] = field(default_factory=list)


class FreeHoursRepository(ABC):
    """Storage operations the free-hours policy depends on."""

    @abstractmethod
    async def find_organization_by_normalized_name(self, normalized_name: str) -> Optional[Organization]:
        ...

    @abstractmethod
    async def sum_unreconciled_free_hours_bookings(
        self, before: date, exempt_names: Iterable[str]
    ) -> Sequence[PendingFreeHours]:
        ...

    @abstractmethod
    async def apply_reconciliation(self, organization_id: int, hours: Decimal, booking_ids: Sequence[int]) -> None:
        ...

    @abstractmethod
    async def reset_usage(self, organization_id: Optional[int] = None, allowance: Optional[Decimal] = None) -> int:
        ...

    @abstractmethod
    async def commit(self) -> None:
        ...

    @abstractmethod
    async def rollback(self) -> None:
        ...


def _normalized(column):
    return func.lower(func.trim(column))


class SQLAlchemyFreeHoursRepository(FreeHoursRepository):
    """Free-hours storage backed by an async SQLAlchemy session."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_organization_by_normalized_name(self, normalized_name: str) -> Optional[Organization]:
        # Balances are changed by bulk UPDATEs; always read the current row
        result = await self.db.execute(
            select(Organization)
            .where(Organization.normalized_name == normalized_name)
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    async def sum_unreconciled_free_hours_bookings(
        self, before: date, exempt_names: Iterable[str]
    ) -> Sequence[PendingFreeHours]:
        exempt = [normalize_organization_name(n) for n in exempt_names]

        query = (
            select(Booking.id, Booking.duration_hours, Organization.id, Organization.name)
            .join(Organization, _normalized(Booking.organization_name) == Organization.normalized_name)
            .where(
                Booking.status == BookingStatus.CONFIRMED,
                Booking.booking_date < before,
                Booking.free_hours_applied == False,  # noqa: E712
                Booking.duration_hours.is_not(None),
                Booking.booking_type == BookingType.FREE_HOURS,
                Organization.is_tenant == True,  # noqa: E712
            )
            .order_by(Organization.id, Booking.id)
            .with_for_update(of=Organization)
        )
        if exempt:
            query = query.where(Organization.normalized_name.not_in(exempt))

        rows = (await self.db.execute(query)).all()

        pending: dict[int, PendingFreeHours] = {}
        for booking_id, duration, org_id, org_name in rows:
            entry = pending.setdefault(org_id, PendingFreeHours(org_id, org_name))
            entry.hours += Decimal(duration)
            entry.booking_ids.append(booking_id)
        return list(pending.values())

    async def apply_reconciliation(self, organization_id: int, hours: Decimal, booking_ids: Sequence[int]) -> None:
        flagged = await self.db.execute(
            update(Booking)
            .where(Booking.id.in_(booking_ids), Booking.free_hours_applied == False)  # noqa: E712
            .values(free_hours_applied=True)
            .execution_options(synchronize_session=False)
        )
        if flagged.rowcount != len(booking_ids):
            raise ReconciliationConflict(
                f"Expected to flag {len(booking_ids)} bookings for organization "
                f"{organization_id}, flagged {flagged.rowcount}"
            )

        await self.db.execute(
            update(Organization)
            .where(Organization.id == organization_id)
            .values(used_free_hours_this_month=Organization.used_free_hours_this_month + hours)
            .execution_options(synchronize_session=False)
        )

    async def reset_usage(self, organization_id: Optional[int] = None, allowance: Optional[Decimal] = None) -> int:
        values: dict = {"used_free_hours_this_month": Decimal("0.00")}
        if allowance is not None:
            values["monthly_free_hours"] = allowance

        stmt = update(Organization).values(**values).execution_options(synchronize_session=False)
        if organization_id is not None:
            stmt = stmt.where(Organization.id == organization_id)
        else:
            stmt = stmt.where(Organization.is_tenant == True)  # noqa: E712

        result = await self.db.execute(stmt)
        return result.rowcount

    async def commit(self) -> None:
        await self.db.commit()

    async def rollback(self) -> None:
        await self.db.rollback()
