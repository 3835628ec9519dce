"""Free-hours policy: booking-type classification and reconciliation.

A booking's financial type is decided once, when it is created, from the
organization's current balance:

* the configured exempt organizations are always free while they are tenants
  and their balance is never touched;
* other tenants get ``FREE_HOURS`` while the remaining allowance covers the
  whole meeting;
* everything else is ``HIRE``.

Balances only move when :meth:`FreeHoursPolicy.reconcile` runs over confirmed
meetings that have already taken place. Each booking is counted at most once,
guarded by ``Booking.free_hours_applied``. Usage is not scoped to calendar
months: it accumulates until an admin resets it.
"""
import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Iterable, Optional, Union

from sqlalchemy.ext.asyncio import AsyncSession

from boardroom.billing.repository import FreeHoursRepository, SQLAlchemyFreeHoursRepository
from boardroom.core.config import settings
from boardroom.models.booking import BookingType
from boardroom.models.organization import Organization, normalize_organization_name


logger = logging.getLogger(__name__)

HoursLike = Union[Decimal, int, float, str, None]


class ReconciliationError(Exception):
    """Reconciliation failed and nothing was applied."""


@dataclass
class ReconciliationResult:
    """Outcome of one reconciliation run."""
    updated: int = 0
    hours_by_organization: dict[str, Decimal] = field(default_factory=dict)


def _to_hours(value: HoursLike) -> Decimal:
    """Coerce to Decimal hours; unusable input counts as zero."""
    if value is None or isinstance(value, bool):
        return Decimal("0")
    try:
        hours = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except InvalidOperation:
        return Decimal("0")
    return hours if hours.is_finite() else Decimal("0")


class FreeHoursPolicy:
    """Classifies bookings and reconciles free-hours balances."""

    def __init__(self, repository: FreeHoursRepository, exempt_organizations: Optional[Iterable[str]] = None):
        self.repository = repository
        if exempt_organizations is None:
            exempt_organizations = settings.free_hours_exempt_organizations
        self.exempt_organizations = {
            normalize_organization_name(name) for name in exempt_organizations if name and name.strip()
        }

    def is_exempt(self, organization: Organization) -> bool:
        """True for tenants on the exempt list."""
        return organization.is_tenant and organization.normalized_name in self.exempt_organizations

    def remaining_free_hours(self, organization: Organization) -> Optional[Decimal]:
        """Free hours still available; None means unlimited."""
        if not organization.is_tenant:
            return Decimal("0.00")
        if self.is_exempt(organization):
            return None
        remaining = _to_hours(organization.monthly_free_hours) - _to_hours(organization.used_free_hours_this_month)
        return max(remaining, Decimal("0.00"))

    async def classify(self, organization_name: Optional[str], duration_hours: HoursLike) -> BookingType:
        """Decide whether a new booking is FREE_HOURS or HIRE.

        Never mutates organization state. Lookup errors propagate.
        """
        duration = _to_hours(duration_hours)
        if not organization_name or not organization_name.strip() or duration <= 0:
            return BookingType.HIRE

        normalized = normalize_organization_name(organization_name)
        organization = await self.repository.find_organization_by_normalized_name(normalized)

        if organization is not None and self.is_exempt(organization):
            return BookingType.FREE_HOURS

        if organization is None or not organization.is_tenant:
            return BookingType.HIRE

        remaining = _to_hours(organization.monthly_free_hours) - _to_hours(organization.used_free_hours_this_month)
        if remaining >= duration:
            return BookingType.FREE_HOURS
        return BookingType.HIRE

    async def reconcile(self, as_of: Optional[date] = None) -> ReconciliationResult:
        """Deduct past confirmed free-hours bookings from tenant balances.

        All organizations are applied in one transaction. On any failure the
        transaction is rolled back and ReconciliationError is raised.
        """
        as_of = as_of or date.today()
        result = ReconciliationResult()

        try:
            pending = await self.repository.sum_unreconciled_free_hours_bookings(
                before=as_of, exempt_names=self.exempt_organizations
            )
            for entry in pending:
                await self.repository.apply_reconciliation(entry.organization_id, entry.hours, entry.booking_ids)
                result.updated += len(entry.booking_ids)
                result.hours_by_organization[entry.organization_name] = entry.hours
                logger.info(
                    f"Applied {entry.hours} free hours to {entry.organization_name} "
                    f"({len(entry.booking_ids)} bookings)"
                )
            await self.repository.commit()
        except Exception as e:
            await self.repository.rollback()
            logger.error(f"Free-hours reconciliation failed, rolled back: {e}")
            raise ReconciliationError("Reconciliation failed; no changes applied") from e

        logger.info(f"Free-hours reconciliation as of {as_of}: {result.updated} bookings updated")
        return result

    async def reset_usage(
        self,
        organization_id: Optional[int] = None,
        allowance: HoursLike = None,
    ) -> int:
        """Start a new billing period for one organization or all tenants."""
        new_allowance = _to_hours(allowance) if allowance is not None else None
        try:
            count = await self.repository.reset_usage(organization_id, new_allowance)
            await self.repository.commit()
        except Exception:
            await self.repository.rollback()
            raise
        target = f"organization {organization_id}" if organization_id is not None else "all tenants"
        logger.info(f"Reset free-hours usage for {target} ({count} organizations)")
        return count


def get_free_hours_policy(db: AsyncSession) -> FreeHoursPolicy:
    """Policy bound to a session, using configured exemptions."""
    return FreeHoursPolicy(SQLAlchemyFreeHoursRepository(db))
