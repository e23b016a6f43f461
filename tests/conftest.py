"""
Shared test fixtures and configuration for pytest.
"""

import os

# Must be set before the app modules build their engine
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "test")

import datetime as dt
from typing import Any, AsyncGenerator, Dict, Optional

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.main import app
from app.db.base import Base
from app.models import Appointment, Patient
from app.api.dependencies import get_db
from app.repositories.ordered_query import OrderedFetcher
from app.repositories.patient_repo import PatientRepository
from app.schemas.appointment_schemas import AppointmentStatus
from app.schemas.patient_schemas import PatientStatus


# Test database configuration
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# One shared connection so every session sees the same in-memory database
test_engine = create_async_engine(
    TEST_DATABASE_URL,
    poolclass=StaticPool,
    connect_args={"check_same_thread": False},
    echo=False,
)

TestSessionLocal = async_sessionmaker(
    test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


@pytest.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Create a fresh database session for each test.

    This fixture:
    - Creates all tables
    - Forgets any ordering fallbacks remembered by earlier tests
    - Yields a session
    - Drops all tables after test
    """
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    OrderedFetcher.reset_capabilities()

    async with TestSessionLocal() as session:
        yield session

    OrderedFetcher.reset_capabilities()
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
def override_get_db(db_session: AsyncSession):
    """Override the get_db dependency for testing."""

    async def _override_get_db():
        yield db_session

    return _override_get_db


@pytest.fixture
async def client(override_get_db) -> AsyncGenerator[AsyncClient, None]:
    """Test client talking to the app in-process with the database override."""
    app.dependency_overrides[get_db] = override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def make_patient(db_session: AsyncSession):
    """Factory inserting a patient directly."""

    async def _make(
        patient_id: str = "P-001",
        name: str = "Asha Verma",
        patient_type: Optional[str] = None,
        total_sessions_required: Optional[int] = None,
        status: PatientStatus = PatientStatus.ONGOING,
        report_data: Optional[Dict[str, Any]] = None,
    ) -> Patient:
        patient = Patient(
            patient_id=patient_id,
            name=name,
            patient_type=patient_type,
            total_sessions_required=total_sessions_required,
            status=status.value,
            report_data=report_data or {},
        )
        db_session.add(patient)
        await db_session.commit()
        await db_session.refresh(patient)
        return patient

    return _make


@pytest.fixture
def make_appointment(db_session: AsyncSession):
    """Factory inserting an appointment directly."""

    async def _make(
        appointment_id: str,
        patient_id: str = "P-001",
        on: dt.date = dt.date(2026, 3, 2),
        time: Optional[str] = "10:00",
        status: AppointmentStatus = AppointmentStatus.PENDING,
        doctor: Optional[str] = "Dr. Rao",
    ) -> Appointment:
        appointment = Appointment(
            appointment_id=appointment_id,
            patient_id=patient_id,
            date=on,
            time=time,
            status=status.value,
            doctor=doctor,
        )
        db_session.add(appointment)
        await db_session.commit()
        await db_session.refresh(appointment)
        return appointment

    return _make


@pytest.fixture
def reload_patient(db_session: AsyncSession):
    """Read a patient's current row state."""

    async def _reload(patient_id: str = "P-001") -> Patient:
        return await PatientRepository(db_session).get_patient_by_patient_id(patient_id)

    return _reload


@pytest.fixture
def sample_report() -> Dict[str, Any]:
    """A filled-in report as the admin UI sends it."""
    return {
        "date_of_consultation": "2026-03-02",
        "chief_complaint": "Lower back pain",
        "present_history": "Pain after lifting, two weeks",
        "vas_scale": 6,
        "med_xray": True,
        "rom": {"lumbar_flexion": "limited"},
        "clinical_diagnosis": "Mechanical low back pain",
        "treatment_plan": [{"modality": "IFT", "sessions": 5}],
        "physio_name": "Dr. Rao",
    }
