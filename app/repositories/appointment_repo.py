from datetime import date
from typing import List, Optional, Sequence
from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from app.models.appointment_model import Appointment
from app.repositories.ordered_query import OrderedFetcher
from app.schemas.appointment_schemas import AppointmentStatus


class AppointmentRepository:
    """Repository layer for appointment data access."""

    def __init__(self, db: AsyncSession, fetcher: Optional[OrderedFetcher] = None):
        self.db = db
        self.fetcher = fetcher or OrderedFetcher(db)

    async def create_appointment(self, appointment: Appointment) -> Appointment:
        """Create a new appointment."""
        self.db.add(appointment)
        await self.db.commit()
        await self.db.refresh(appointment)
        return appointment

    async def get_appointment_by_appointment_id(
        self, appointment_id: str
    ) -> Optional[Appointment]:
        """Get appointment by external appointment ID."""
        result = await self.db.execute(
            select(Appointment)
            .where(Appointment.appointment_id == appointment_id)
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    async def get_patient_appointments(self, patient_id: str) -> List[Appointment]:
        """Get all appointments for a patient, newest first."""
        return await self.fetcher.fetch(
            select(Appointment)
            .where(Appointment.patient_id == patient_id)
            .execution_options(populate_existing=True),
            [Appointment.date, Appointment.time],
            capability="appointments_by_patient_date",
            descending=True,
        )

    async def get_open_appointment_on_date(
        self,
        patient_id: str,
        on_date: date,
        statuses: Sequence[AppointmentStatus],
    ) -> Optional[Appointment]:
        """First appointment for the patient on an exact date with one of the given statuses."""
        result = await self.db.execute(
            select(Appointment)
            .where(
                Appointment.patient_id == patient_id,
                Appointment.status.in_([s.value for s in statuses]),
                Appointment.date == on_date,
            )
            .limit(1)
        )
        return result.scalars().first()

    async def get_latest_open_appointment(
        self,
        patient_id: str,
        statuses: Sequence[AppointmentStatus],
    ) -> Optional[Appointment]:
        """Most recent appointment by date then time with one of the given statuses."""
        rows = await self.fetcher.fetch(
            select(Appointment).where(
                Appointment.patient_id == patient_id,
                Appointment.status.in_([s.value for s in statuses]),
            ),
            [Appointment.date, Appointment.time],
            capability="appointments_by_patient_status_date",
            descending=True,
            limit=1,
        )
        return rows[0] if rows else None

    async def count_by_status(self, patient_id: str, status: AppointmentStatus) -> int:
        """Count a patient's appointments with the given status."""
        result = await self.db.execute(
            select(func.count(Appointment.id)).where(
                Appointment.patient_id == patient_id,
                Appointment.status == status.value,
            )
        )
        return result.scalar() or 0

    async def update_appointment(self, appointment: Appointment) -> Appointment:
        """Persist changes to an appointment."""
        self.db.add(appointment)
        await self.db.commit()
        await self.db.refresh(appointment)
        return appointment
