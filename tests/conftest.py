import os
from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import date, datetime, timedelta
from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import UUID, uuid4

# Settings are read at import time; give them safe test values first
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-not-for-production")
os.environ.setdefault("LOG_FORMAT", "console")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import insert
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from app.core.redis_client import get_redis_client
from app.core.security import create_access_token
from app.core.time_utils import combine_slot
from app.database import get_db
from app.main import app
from app.models import appointments, doctor_availability, doctors, metadata, users
from app.services.email_service import EmailService

# Tests never touch the configured database
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite+aiosqlite:///:memory:")


def _test_engine() -> AsyncEngine:
    if TEST_DATABASE_URL.startswith("sqlite"):
        # One shared connection so every session sees the same in-memory db
        return create_async_engine(
            TEST_DATABASE_URL,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    return create_async_engine(TEST_DATABASE_URL)


@pytest_asyncio.fixture
async def db_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Fresh schema per test."""
    engine = _test_engine()
    async with engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)
        await conn.run_sync(metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    session_factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session


@pytest.fixture
def redis_mock() -> MagicMock:
    """Redis stand-in; every caller is on their first hit of the window."""
    mock = MagicMock()
    mock.incr.return_value = 1
    return mock


@pytest.fixture(autouse=True)
def email_mock() -> AsyncMock:
    """Replace the Resend transport for every test."""
    with patch.object(
        EmailService, "send_email", new=AsyncMock(return_value={"id": "email_test"})
    ) as mock:
        yield mock


@pytest_asyncio.fixture
async def client(
    db_session: AsyncSession,
    redis_mock: MagicMock,
) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis_client] = lambda: redis_mock

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def create_user(db_session: AsyncSession) -> Callable[..., Awaitable[dict[str, Any]]]:
    """Factory inserting a user row."""

    async def _create(
        role: str = "PATIENT",
        full_name: str = "Test User",
        email: str | None = None,
    ) -> dict[str, Any]:
        user = {
            "id": uuid4(),
            "email": email or f"{uuid4().hex[:8]}@example.com",
            "full_name": full_name,
            "phone": "+1234567890",
            "role": role,
            "is_active": True,
        }
        await db_session.execute(insert(users).values(**user))
        await db_session.commit()
        return user

    return _create


@pytest_asyncio.fixture
async def patient(create_user) -> dict[str, Any]:
    return await create_user(full_name="Pat Patient", email="patient@example.com")


@pytest_asyncio.fixture
async def other_patient(create_user) -> dict[str, Any]:
    return await create_user(full_name="Olive Other", email="other@example.com")


@pytest_asyncio.fixture
async def admin(create_user) -> dict[str, Any]:
    return await create_user(role="ADMIN", full_name="Ada Admin", email="admin@example.com")


@pytest_asyncio.fixture
async def doctor(create_user, db_session: AsyncSession) -> dict[str, Any]:
    """Doctor account plus profile; ``id`` is the doctor profile id."""
    user = await create_user(role="DOCTOR", full_name="Dr. Dana Doe", email="doctor@example.com")
    doctor_id = uuid4()
    await db_session.execute(
        insert(doctors).values(id=doctor_id, user_id=user["id"], specialization="General")
    )
    await db_session.commit()
    return {"id": doctor_id, "user": user}


@pytest.fixture
def next_monday() -> date:
    """The first Monday strictly after today."""
    today = date.today()
    return today + timedelta(days=(7 - today.weekday()) or 7)


@pytest_asyncio.fixture
async def monday_availability(db_session: AsyncSession, doctor: dict) -> dict[str, Any]:
    """Monday 09:00-12:00, no break."""
    row = {
        "doctor_id": doctor["id"],
        "day_of_week": 1,
        "start_time": "09:00",
        "end_time": "12:00",
        "is_active": True,
    }
    await db_session.execute(insert(doctor_availability).values(**row))
    await db_session.commit()
    return row


@pytest.fixture
def make_appointment(db_session: AsyncSession) -> Callable[..., Awaitable[dict[str, Any]]]:
    """Factory inserting an appointment row directly, bypassing the service."""

    async def _create(
        patient_id: UUID,
        doctor_id: UUID,
        appointment_date: date | None = None,
        time_slot: str = "10:00",
        scheduled_at: datetime | None = None,
        **values: Any,
    ) -> dict[str, Any]:
        if scheduled_at is not None:
            appointment_date = scheduled_at.date()
            time_slot = scheduled_at.strftime("%H:%M")
        appointment_date = appointment_date or date.today() + timedelta(days=7)
        row = {
            "id": uuid4(),
            "patient_id": patient_id,
            "doctor_id": doctor_id,
            "appointment_date": appointment_date,
            "time_slot": time_slot,
            "duration": 30,
            "scheduled_at": combine_slot(appointment_date, time_slot),
            "status": "PENDING",
            **values,
        }
        await db_session.execute(insert(appointments).values(**row))
        await db_session.commit()
        return row

    return _create


def auth_headers_for(user: dict[str, Any]) -> dict[str, str]:
    """Bearer header for a user row."""
    token = create_access_token(
        data={"sub": str(user["id"]), "email": user["email"]},
        expires_delta=timedelta(minutes=30),
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def patient_headers(patient) -> dict[str, str]:
    return auth_headers_for(patient)


@pytest.fixture
def other_patient_headers(other_patient) -> dict[str, str]:
    return auth_headers_for(other_patient)


@pytest.fixture
def doctor_headers(doctor) -> dict[str, str]:
    return auth_headers_for(doctor["user"])


@pytest.fixture
def admin_headers(admin) -> dict[str, str]:
    return auth_headers_for(admin)
