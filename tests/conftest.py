import os
from datetime import date, time
from decimal import Decimal

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

# Ensure required env vars exist before app imports settings
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("FREE_HOURS_EXEMPT_ORGANIZATIONS", '["Lab Partners"]')

from boardroom.core.database import Base, get_db  # noqa: E402
from boardroom.core.security import create_access_token  # noqa: E402
from boardroom.main import app as fastapi_app  # noqa: E402
from boardroom.models.booking import Booking, BookingStatus, BookingType  # noqa: E402
from boardroom.models.organization import Organization  # noqa: E402
from boardroom.models.user import User  # noqa: E402

TEST_DATABASE_URL = os.environ["DATABASE_URL"]


@pytest.fixture()
async def engine():
    """Fresh in-memory database per test."""
    test_engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture()
def session_maker(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture()
async def db_session(session_maker):
    """Yield a database session and roll back after test."""
    async with session_maker() as session:
        try:
            yield session
        finally:
            await session.rollback()


@pytest.fixture()
async def client(session_maker):
    """FastAPI test client with DB dependency overridden."""

    async def override_get_db():
        async with session_maker() as session:
            try:
                yield session
            finally:
                await session.rollback()

    fastapi_app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(transport=ASGITransport(app=fastapi_app), base_url="http://test") as ac:
        yield ac

    fastapi_app.dependency_overrides.clear()


@pytest.fixture()
async def user_factory(db_session):
    """Factory to create users in the test DB."""

    async def _create_user(
        email: str = "user@example.com",
        company_name: str | None = "Acme",
        **kwargs,
    ) -> User:
        user = User(email=email, company_name=company_name, **kwargs)
        db_session.add(user)
        await db_session.commit()
        await db_session.refresh(user)
        return user

    return _create_user


@pytest.fixture()
async def organization_factory(db_session):
    """Factory to create organizations in the test DB."""

    async def _create_organization(
        name: str = "Acme",
        is_tenant: bool = True,
        monthly_free_hours: str = "10",
        used_free_hours_this_month: str = "0",
        **kwargs,
    ) -> Organization:
        org = Organization(
            name=name,
            is_tenant=is_tenant,
            monthly_free_hours=Decimal(monthly_free_hours),
            used_free_hours_this_month=Decimal(used_free_hours_this_month),
            **kwargs,
        )
        db_session.add(org)
        await db_session.commit()
        await db_session.refresh(org)
        return org

    return _create_organization


@pytest.fixture()
async def booking_factory(db_session):
    """Factory to create bookings directly, bypassing the API."""

    async def _create_booking(
        organization_name: str = "Acme",
        booking_date: date = date(2025, 1, 10),
        start_time: time = time(9, 0),
        end_time: time = time(12, 0),
        duration_hours: str | None = "3",
        booking_type: BookingType = BookingType.FREE_HOURS,
        status: BookingStatus = BookingStatus.CONFIRMED,
        **kwargs,
    ) -> Booking:
        booking = Booking(
            organization_name=organization_name,
            contact_name="Jane Doe",
            contact_email="jane@example.com",
            booking_date=booking_date,
            start_time=start_time,
            end_time=end_time,
            duration_hours=Decimal(duration_hours) if duration_hours is not None else None,
            booking_type=booking_type,
            status=status,
            **kwargs,
        )
        db_session.add(booking)
        await db_session.commit()
        await db_session.refresh(booking)
        return booking

    return _create_booking


@pytest.fixture()
async def user(user_factory):
    """Default regular user belonging to Acme."""
    return await user_factory()


@pytest.fixture()
async def auth_header(user):
    """Create Authorization header for the test user."""
    token = create_access_token({"sub": user.id})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
async def admin_user(user_factory):
    return await user_factory(email="admin@example.com", company_name=None, is_superuser=True)


@pytest.fixture()
async def admin_header(admin_user):
    token = create_access_token({"sub": admin_user.id})
    return {"Authorization": f"Bearer {token}"}
