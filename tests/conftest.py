from __future__ import annotations

import os
from datetime import datetime
from typing import TYPE_CHECKING, Any

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool

from cleanpay.db import get_session
from cleanpay.main import app
from cleanpay.models import EmployeeRate, ServiceJob, SQLModel, Timesheet, UserProfile

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Callable

    from sqlalchemy.ext.asyncio import AsyncEngine

TEST_DATABASE_URL = os.environ.get("TEST_DATABASE_URL", "sqlite+aiosqlite:///:memory:")

ADMIN_ID = "admin-1"
WORKER_ID = "worker-1"


@pytest.fixture
async def engine() -> AsyncIterator[AsyncEngine]:
    """Create a fresh database per test so committed writes never leak between tests."""
    kwargs: dict[str, Any] = {}
    if TEST_DATABASE_URL.startswith("sqlite"):
        kwargs = {"poolclass": StaticPool, "connect_args": {"check_same_thread": False}}
    _engine = create_async_engine(TEST_DATABASE_URL, **kwargs)
    async with _engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield _engine
    async with _engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.drop_all)
    await _engine.dispose()


@pytest.fixture
async def db_session(engine: AsyncEngine) -> AsyncIterator[AsyncSession]:
    """Yield a database session bound to the per-test engine."""
    session = AsyncSession(bind=engine, expire_on_commit=False)
    yield session
    await session.close()


@pytest.fixture
async def async_client(db_session: AsyncSession) -> AsyncIterator[AsyncClient]:
    """Async HTTP client with the database session dependency overridden."""

    async def _override_get_session() -> AsyncIterator[AsyncSession]:
        yield db_session

    app.dependency_overrides[get_session] = _override_get_session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Record factories
# ---------------------------------------------------------------------------


@pytest.fixture
def make_user(db_session: AsyncSession) -> Callable[..., Awaitable[UserProfile]]:
    async def _make(user_id: str, **fields: Any) -> UserProfile:
        user = UserProfile(id=user_id, **fields)
        db_session.add(user)
        await db_session.commit()
        return user

    return _make


@pytest.fixture
def make_rate(db_session: AsyncSession) -> Callable[..., Awaitable[EmployeeRate]]:
    async def _make(employee_id: str, effective_date: datetime | None, **fields: Any) -> EmployeeRate:
        rate = EmployeeRate(employee_id=employee_id, effective_date=effective_date, **fields)
        db_session.add(rate)
        await db_session.commit()
        return rate

    return _make


@pytest.fixture
def make_job(db_session: AsyncSession) -> Callable[..., Awaitable[ServiceJob]]:
    async def _make(service_date: datetime, assigned: list[str], **fields: Any) -> ServiceJob:
        fields.setdefault("status", "completed")
        fields.setdefault("duration_minutes", 120)
        job = ServiceJob(service_date=service_date, assigned_employees=assigned, **fields)
        db_session.add(job)
        await db_session.commit()
        return job

    return _make


@pytest.fixture
def make_timesheet(db_session: AsyncSession) -> Callable[..., Awaitable[Timesheet]]:
    async def _make(employee_id: str, start: datetime, **fields: Any) -> Timesheet:
        timesheet = Timesheet(employee_id=employee_id, start=start, **fields)
        db_session.add(timesheet)
        await db_session.commit()
        return timesheet

    return _make


@pytest.fixture
async def admin_user(make_user: Callable[..., Awaitable[UserProfile]]) -> UserProfile:
    """A caller with the admin flag set on their profile."""
    return await make_user(ADMIN_ID, admin=True)


@pytest.fixture
async def worker_user(make_user: Callable[..., Awaitable[UserProfile]]) -> UserProfile:
    """A caller with no finance role."""
    return await make_user(WORKER_ID, role="employee")
