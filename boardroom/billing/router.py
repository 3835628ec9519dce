"""Admin API routes for organization free hours."""
import logging
from datetime import date
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from boardroom.auth.dependencies import get_current_active_user, require_admin
from boardroom.billing.free_hours import FreeHoursPolicy, ReconciliationError, get_free_hours_policy
from boardroom.core.config import settings
from boardroom.core.database import get_db
from boardroom.models.organization import Organization
from boardroom.models.user import User


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"])


class OrganizationFreeHoursResponse(BaseModel):
    id: int
    name: str
    is_tenant: bool
    monthly_free_hours: Decimal
    used_free_hours_this_month: Decimal
    remaining_free_hours: Optional[Decimal]
    is_exempt: bool
    billing_rate_per_hour: Optional[Decimal] = None


class UpdateFreeHoursRequest(BaseModel):
    is_tenant: Optional[bool] = None
    monthly_free_hours: Optional[Decimal] = Field(None, ge=0)
    billing_rate_per_hour: Optional[Decimal] = Field(None, ge=0)


class ResetFreeHoursRequest(BaseModel):
    monthly_free_hours: Optional[Decimal] = Field(None, ge=0)


class ReconciliationResponse(BaseModel):
    updated: int
    as_of: date
    organizations: dict[str, Decimal]


class ResetResponse(BaseModel):
    organizations_reset: int


def _to_response(policy: FreeHoursPolicy, org: Organization) -> OrganizationFreeHoursResponse:
    return OrganizationFreeHoursResponse(
        id=org.id,
        name=org.name,
        is_tenant=org.is_tenant,
        monthly_free_hours=org.monthly_free_hours,
        used_free_hours_this_month=org.used_free_hours_this_month,
        remaining_free_hours=policy.remaining_free_hours(org),
        is_exempt=policy.is_exempt(org),
        billing_rate_per_hour=org.billing_rate_per_hour,
    )


async def _get_organization(db: AsyncSession, org_id: int) -> Organization:
    result = await db.execute(select(Organization).where(Organization.id == org_id))
    org = result.scalar_one_or_none()
    if not org:
        raise HTTPException(status_code=404, detail="Organization not found")
    return org


@router.get("/organizations/free-hours", response_model=list[OrganizationFreeHoursResponse])
async def list_free_hours(
    current_user: User = Depends(get_current_active_user),
    _: None = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """List free-hours balances of all organizations."""
    policy = get_free_hours_policy(db)
    result = await db.execute(select(Organization).order_by(Organization.normalized_name))
    return [_to_response(policy, org) for org in result.scalars().all()]


@router.patch("/organizations/{org_id}/free-hours", response_model=OrganizationFreeHoursResponse)
async def update_free_hours(
    org_id: int,
    request: UpdateFreeHoursRequest,
    current_user: User = Depends(get_current_active_user),
    _: None = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Edit tenant flag, allowance or hire rate.

    Existing bookings keep the type they were given at creation.
    """
    org = await _get_organization(db, org_id)

    if request.is_tenant is not None:
        # New tenants start with the default allowance unless one is given
        if request.is_tenant and not org.is_tenant and request.monthly_free_hours is None and not org.monthly_free_hours:
            org.monthly_free_hours = settings.default_monthly_free_hours
        org.is_tenant = request.is_tenant
    if request.monthly_free_hours is not None:
        org.monthly_free_hours = request.monthly_free_hours
    if request.billing_rate_per_hour is not None:
        org.billing_rate_per_hour = request.billing_rate_per_hour

    await db.commit()
    await db.refresh(org)

    logger.info(f"Free-hours settings updated for {org.name} by admin {current_user.id}")
    return _to_response(get_free_hours_policy(db), org)


@router.post("/free-hours/reconcile", response_model=ReconciliationResponse)
async def reconcile_free_hours(
    as_of: Optional[date] = Query(None, description="Treat bookings before this date as held (default: today)"),
    current_user: User = Depends(get_current_active_user),
    _: None = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Deduct held, confirmed free-hours bookings from tenant balances."""
    as_of = as_of or date.today()
    try:
        result = await get_free_hours_policy(db).reconcile(as_of=as_of)
    except ReconciliationError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e),
        )

    return ReconciliationResponse(
        updated=result.updated,
        as_of=as_of,
        organizations=result.hours_by_organization,
    )


@router.post("/free-hours/reset", response_model=ResetResponse)
async def reset_all_free_hours(
    request: Optional[ResetFreeHoursRequest] = None,
    current_user: User = Depends(get_current_active_user),
    _: None = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Start a new billing period for every tenant."""
    allowance = request.monthly_free_hours if request else None
    count = await get_free_hours_policy(db).reset_usage(allowance=allowance)
    return ResetResponse(organizations_reset=count)


@router.post("/organizations/{org_id}/free-hours/reset", response_model=OrganizationFreeHoursResponse)
async def reset_organization_free_hours(
    org_id: int,
    request: Optional[ResetFreeHoursRequest] = None,
    current_user: User = Depends(get_current_active_user),
    _: None = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Zero one organization's usage, optionally assigning a new allowance."""
    org = await _get_organization(db, org_id)
    policy = get_free_hours_policy(db)
    await policy.reset_usage(organization_id=org_id, allowance=request.monthly_free_hours if request else None)

    await db.refresh(org)
    return _to_response(policy, org)
