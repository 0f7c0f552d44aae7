"""
Shared pytest fixtures for all tests.

Every test gets its own file-backed SQLite database so that concurrent
sessions really contend for the same rows.
"""

import os
from datetime import date, datetime, time, timedelta, timezone
from typing import AsyncGenerator, Dict

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

# Ensure test environment before settings are loaded
os.environ["APP_ENV"] = "test"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./telecare-test.db"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["JWT_ALGORITHM"] = "HS256"
os.environ["UPSTREAM_RETRY_BASE_DELAY_SECONDS"] = "0"

from telecare.core.clock import Clock, get_clock  # noqa: E402
from telecare.core.security import security  # noqa: E402
from telecare.db.base import build_engine, build_session_factory, init_models  # noqa: E402
from telecare.db.session import get_db_session  # noqa: E402
from telecare.models import Doctor, Patient  # noqa: E402


TODAY = date(2025, 5, 30)
TOMORROW = TODAY + timedelta(days=1)


class TickingClock(Clock):
    """Fixed calendar day in UTC; every ``now()`` call is one second later."""

    timezone = timezone.utc

    def __init__(self, start: datetime):
        self.current = start

    def now(self) -> datetime:
        self.current += timedelta(seconds=1)
        return self.current

    def today(self) -> date:
        return self.current.date()


# ============================================================================
# DATABASE FIXTURES
# ============================================================================


@pytest_asyncio.fixture
async def engine(tmp_path):
    """Fresh database with all tables for one test."""
    test_engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'telecare.db'}")
    await init_models(test_engine)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest_asyncio.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as db_session:
        yield db_session


@pytest.fixture
def clock() -> TickingClock:
    return TickingClock(datetime.combine(TODAY, time(8, 0), tzinfo=timezone.utc))


# ============================================================================
# TEST DATA FIXTURES
# ============================================================================


async def _persist(session_factory, *objects):
    async with session_factory() as db_session:
        db_session.add_all(objects)
        await db_session.commit()
    return objects


@pytest_asyncio.fixture
async def doctor(session_factory) -> Doctor:
    (created,) = await _persist(session_factory, Doctor(
        user_id="doctor-1",
        full_name="Dr. Sarah Johnson",
        specialization="Cardiology",
        experience_years=12,
        bio="Treats chest pain and hypertension.",
    ))
    return created


@pytest_asyncio.fixture
async def other_doctor(session_factory) -> Doctor:
    (created,) = await _persist(session_factory, Doctor(
        user_id="doctor-2",
        full_name="Dr. Michael Chen",
        specialization="Dermatology",
        experience_years=6,
        bio="Acne and eczema.",
    ))
    return created


@pytest_asyncio.fixture
async def patient(session_factory) -> Patient:
    (created,) = await _persist(session_factory, Patient(
        user_id="patient-1",
        full_name="Alex Morgan",
        email="alex@example.com",
    ))
    return created


@pytest_asyncio.fixture
async def other_patient(session_factory) -> Patient:
    (created,) = await _persist(session_factory, Patient(
        user_id="patient-2",
        full_name="Jamie Lee",
        email="jamie@example.com",
    ))
    return created


# ============================================================================
# API FIXTURES
# ============================================================================


def auth_headers(user_id: str, role: str) -> Dict[str, str]:
    token = security.create_access_token({"sub": user_id, "role": role})
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def client(session_factory, clock) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client bound to the test database and clock."""
    from telecare.main import app

    async def override_db_session():
        async with session_factory() as db_session:
            yield db_session

    app.dependency_overrides[get_db_session] = override_db_session
    app.dependency_overrides[get_clock] = lambda: clock

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as http_client:
        yield http_client

    app.dependency_overrides.clear()
