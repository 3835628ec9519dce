"""Tests for free-hours reconciliation and usage reset."""
from datetime import date, time
from decimal import Decimal

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from boardroom.billing.free_hours import (
    FreeHoursPolicy,
    ReconciliationError,
    get_free_hours_policy,
)
from boardroom.billing.repository import (
    PendingFreeHours,
    ReconciliationConflict,
    SQLAlchemyFreeHoursRepository,
)
from boardroom.models.booking import Booking, BookingStatus, BookingType


AS_OF = date(2025, 2, 1)


@pytest.mark.asyncio
async def test_end_to_end_two_unreconciled_bookings(db_session, organization_factory, booking_factory):
    """Both bookings classify against the untouched balance, then both are deducted."""
    org = await organization_factory(name="Acme", monthly_free_hours="10", used_free_hours_this_month="0")
    policy = get_free_hours_policy(db_session)

    type_a = await policy.classify("Acme", Decimal("3"))
    booking_a = await booking_factory(
        booking_date=date(2025, 1, 10), start_time=time(9, 0), end_time=time(12, 0),
        duration_hours="3", booking_type=type_a, status=BookingStatus.PENDING,
    )
    type_b = await policy.classify("Acme", Decimal("9"))
    booking_b = await booking_factory(
        booking_date=date(2025, 1, 11), start_time=time(8, 0), end_time=time(17, 0),
        duration_hours="9", booking_type=type_b, status=BookingStatus.PENDING,
    )
    assert type_a == BookingType.FREE_HOURS
    assert type_b == BookingType.FREE_HOURS

    booking_a.status = BookingStatus.CONFIRMED
    booking_b.status = BookingStatus.CONFIRMED
    await db_session.commit()

    result = await policy.reconcile(as_of=AS_OF)

    assert result.updated == 2
    assert result.hours_by_organization == {"Acme": Decimal("12")}

    await db_session.refresh(org)
    await db_session.refresh(booking_a)
    await db_session.refresh(booking_b)
    assert org.used_free_hours_this_month == Decimal("12")
    assert booking_a.free_hours_applied is True
    assert booking_b.free_hours_applied is True


@pytest.mark.asyncio
async def test_reconcile_is_idempotent(db_session, organization_factory, booking_factory):
    org = await organization_factory(name="Acme")
    await booking_factory(duration_hours="2.5")
    policy = get_free_hours_policy(db_session)

    first = await policy.reconcile(as_of=AS_OF)
    second = await policy.reconcile(as_of=AS_OF)

    assert first.updated == 1
    assert second.updated == 0
    await db_session.refresh(org)
    assert org.used_free_hours_this_month == Decimal("2.5")


@pytest.mark.asyncio
async def test_reconcile_only_touches_eligible_bookings(db_session, organization_factory, booking_factory):
    org = await organization_factory(name="Acme")
    eligible = await booking_factory(duration_hours="1")
    skipped = [
        await booking_factory(booking_type=BookingType.HIRE),
        await booking_factory(booking_date=AS_OF),  # not strictly before
        await booking_factory(booking_date=date(2025, 3, 1)),
        await booking_factory(status=BookingStatus.PENDING),
        await booking_factory(status=BookingStatus.CANCELLED),
        await booking_factory(duration_hours=None),
        await booking_factory(free_hours_applied=True),
    ]

    result = await get_free_hours_policy(db_session).reconcile(as_of=AS_OF)

    assert result.updated == 1
    await db_session.refresh(org)
    await db_session.refresh(eligible)
    assert org.used_free_hours_this_month == Decimal("1")
    assert eligible.free_hours_applied is True
    for booking in skipped[:-1]:
        await db_session.refresh(booking)
        assert booking.free_hours_applied is False


@pytest.mark.asyncio
async def test_reconcile_skips_exempt_and_non_tenants(db_session, organization_factory, booking_factory):
    lab = await organization_factory(name="Lab Partners")
    walk_in = await organization_factory(name="Walk In", is_tenant=False)
    lab_booking = await booking_factory(organization_name="lab partners ", duration_hours="4")
    await booking_factory(organization_name="Walk In", duration_hours="4")

    result = await get_free_hours_policy(db_session).reconcile(as_of=AS_OF)

    assert result.updated == 0
    await db_session.refresh(lab)
    await db_session.refresh(walk_in)
    await db_session.refresh(lab_booking)
    assert lab.used_free_hours_this_month == Decimal("0")
    assert walk_in.used_free_hours_this_month == Decimal("0")
    assert lab_booking.free_hours_applied is False


@pytest.mark.asyncio
async def test_reconcile_groups_by_organization_name_ignoring_case(
    db_session, organization_factory, booking_factory
):
    acme = await organization_factory(name="Acme")
    globex = await organization_factory(name="Globex", used_free_hours_this_month="1")
    await booking_factory(organization_name="ACME", duration_hours="1.5")
    await booking_factory(organization_name=" acme", duration_hours="2")
    await booking_factory(organization_name="Globex", duration_hours="0.5")

    result = await get_free_hours_policy(db_session).reconcile(as_of=AS_OF)

    assert result.updated == 3
    await db_session.refresh(acme)
    await db_session.refresh(globex)
    assert acme.used_free_hours_this_month == Decimal("3.5")
    assert globex.used_free_hours_this_month == Decimal("1.5")


@pytest.mark.asyncio
async def test_failed_reconciliation_applies_nothing(db_session, organization_factory, booking_factory):
    """A failure on the second organization rolls back the first one too."""
    acme = await organization_factory(name="Acme")
    await organization_factory(name="Globex")
    acme_booking = await booking_factory(organization_name="Acme", duration_hours="2")
    await booking_factory(organization_name="Globex", duration_hours="2")

    class FailingRepository(SQLAlchemyFreeHoursRepository):
        calls = 0

        async def apply_reconciliation(self, organization_id, hours, booking_ids):
            FailingRepository.calls += 1
            if FailingRepository.calls == 2:
                raise RuntimeError("disk full")
            await super().apply_reconciliation(organization_id, hours, booking_ids)

    policy = FreeHoursPolicy(FailingRepository(db_session), exempt_organizations=[])

    with pytest.raises(ReconciliationError, match="no changes applied"):
        await policy.reconcile(as_of=AS_OF)

    await db_session.refresh(acme)
    await db_session.refresh(acme_booking)
    assert acme.used_free_hours_this_month == Decimal("0")
    assert acme_booking.free_hours_applied is False


@pytest.mark.asyncio
async def test_concurrently_applied_booking_aborts_run(db_session, organization_factory, booking_factory):
    org = await organization_factory(name="Acme")
    booking = await booking_factory(duration_hours="2", free_hours_applied=True)
    repo = SQLAlchemyFreeHoursRepository(db_session)

    with pytest.raises(ReconciliationConflict):
        await repo.apply_reconciliation(org.id, Decimal("2"), [booking.id])
    await repo.rollback()

    await db_session.refresh(org)
    assert org.used_free_hours_this_month == Decimal("0")


@pytest.mark.asyncio
async def test_sum_unreconciled_returns_per_organization_totals(
    db_session, organization_factory, booking_factory
):
    acme = await organization_factory(name="Acme")
    first = await booking_factory(duration_hours="1")
    second = await booking_factory(duration_hours="2.25", booking_date=date(2025, 1, 20))
    repo = SQLAlchemyFreeHoursRepository(db_session)

    pending = await repo.sum_unreconciled_free_hours_bookings(before=AS_OF, exempt_names=["Lab Partners"])

    assert pending == [
        PendingFreeHours(acme.id, "Acme", Decimal("3.25"), [first.id, second.id])
    ]


@pytest.mark.asyncio
async def test_reset_usage_for_all_tenants(db_session, organization_factory):
    acme = await organization_factory(name="Acme", used_free_hours_this_month="7")
    globex = await organization_factory(name="Globex", used_free_hours_this_month="3")
    walk_in = await organization_factory(name="Walk In", is_tenant=False, used_free_hours_this_month="1")

    count = await get_free_hours_policy(db_session).reset_usage(allowance="12")

    assert count == 2
    for org in (acme, globex, walk_in):
        await db_session.refresh(org)
    assert acme.used_free_hours_this_month == Decimal("0")
    assert acme.monthly_free_hours == Decimal("12")
    assert globex.used_free_hours_this_month == Decimal("0")
    assert walk_in.used_free_hours_this_month == Decimal("1")


@pytest.mark.asyncio
async def test_reset_usage_restores_free_classification(db_session, organization_factory):
    org = await organization_factory(name="Acme", used_free_hours_this_month="10")
    policy = get_free_hours_policy(db_session)
    assert await policy.classify("Acme", 2) == BookingType.HIRE

    await policy.reset_usage(organization_id=org.id)

    assert await policy.classify("Acme", 2) == BookingType.FREE_HOURS


@pytest.mark.asyncio
async def test_bookings_from_older_months_still_count(db_session, organization_factory, booking_factory):
    """Usage is not month-scoped: late reconciliation charges the current balance."""
    org = await organization_factory(name="Acme")
    await booking_factory(booking_date=date(2024, 11, 5), duration_hours="2")

    await get_free_hours_policy(db_session).reconcile(as_of=AS_OF)

    await db_session.refresh(org)
    assert org.used_free_hours_this_month == Decimal("2")
    rows = (await db_session.execute(select(Booking.free_hours_applied))).scalars().all()
    assert rows == [True]


@pytest.mark.asyncio
async def test_organization_names_are_unique_ignoring_case_and_spaces(
    db_session, organization_factory, booking_factory
):
    acme = await organization_factory(name="Acme")
    globex = await organization_factory(name="Globex")

    with pytest.raises(IntegrityError):
        await organization_factory(name="ACME ")
    await db_session.rollback()

    await booking_factory(organization_name="Acme", duration_hours="2")
    await booking_factory(organization_name="Globex", duration_hours="1")

    result = await get_free_hours_policy(db_session).reconcile(as_of=AS_OF)

    assert result.updated == 2
    await db_session.refresh(acme)
    await db_session.refresh(globex)
    assert acme.used_free_hours_this_month == Decimal("2")
    assert globex.used_free_hours_this_month == Decimal("1")


@pytest.mark.asyncio
async def test_names_with_tabs_and_newlines_still_match(db_session, organization_factory, booking_factory):
    org = await organization_factory(name="\tAcme\n", monthly_free_hours="4")
    await booking_factory(organization_name="acme\r\n", duration_hours="1.5")
    policy = get_free_hours_policy(db_session)

    assert org.name == "Acme"
    assert org.normalized_name == "acme"
    assert await policy.classify("\tACME ", Decimal("4")) == BookingType.FREE_HOURS

    result = await policy.reconcile(as_of=AS_OF)

    assert result.updated == 1
    await db_session.refresh(org)
    assert org.used_free_hours_this_month == Decimal("1.5")
