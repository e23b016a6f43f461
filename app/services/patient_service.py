from typing import List, Optional
from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.utils import LoggerMixin
from app.models.patient_model import Patient
from app.repositories.appointment_repo import AppointmentRepository
from app.repositories.patient_repo import PatientRepository
from app.schemas.appointment_schemas import TERMINAL_APPOINTMENT_STATUSES
from app.schemas.patient_schemas import (
    PatientCreateSchema,
    PatientStatus,
    PatientSyncSchema,
    PatientUpdateSchema,
    SyncReportSchema,
)
from app.services.session_ledger import SessionLedgerService


class PatientService(LoggerMixin):
    """Service layer for patient business logic."""

    def __init__(self, db: AsyncSession):
        super().__init__()
        self.db = db
        self.repo = PatientRepository(self.db)
        self.appointment_repo = AppointmentRepository(self.db)

    # ============= Patient Services =============
    async def register_patient(self, patient_data: PatientCreateSchema) -> Patient:
        """Register a new patient."""
        existing = await self.repo.get_patient_by_patient_id(patient_data.patient_id)
        if existing:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Patient with this ID already exists",
            )

        patient_dict = patient_data.model_dump()
        patient_dict["status"] = patient_data.status.value
        patient_dict["report_data"] = {}

        db_patient = Patient(**patient_dict)
        return await self.repo.create_patient(db_patient)

    async def get_patient(self, patient_id: str) -> Patient:
        """Get patient by external ID."""
        patient = await self.repo.get_patient_by_patient_id(patient_id)
        if not patient:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Patient not found",
            )
        return patient

    async def list_patients(
        self,
        patient_type: Optional[str] = None,
        patient_status: Optional[PatientStatus] = None,
    ) -> List[Patient]:
        return await self.repo.get_patients(
            patient_type=patient_type,
            status=patient_status.value if patient_status else None,
        )

    async def update_patient(
        self, patient_id: str, update_data: PatientUpdateSchema
    ) -> Patient:
        """Admin edit of a patient's details and session counters."""
        patient = await self.get_patient(patient_id)

        update_dict = update_data.model_dump(exclude_unset=True)
        if "status" in update_dict and update_dict["status"] is not None:
            update_dict["status"] = update_dict["status"].value

        for field, value in update_dict.items():
            setattr(patient, field, value)

        patient = await self.repo.update_patient(patient)
        self.log_info(
            {
                "event": "patient_updated",
                "patient_id": patient_id,
                "fields": ",".join(sorted(update_dict)),
            }
        )
        return patient

    # ============= Status sweep =============
    async def sweep_patient_status(self, patient_id: str) -> bool:
        """
        Mark the patient completed once every appointment is completed or cancelled.

        Returns True only when the status actually changed. Patients without
        appointments are left alone.
        """
        appointments = await self.appointment_repo.get_patient_appointments(patient_id)
        if not appointments:
            return False

        patient = await self.repo.get_patient_by_patient_id(patient_id)
        if not patient or patient.is_completed:
            return False

        terminal = {s.value for s in TERMINAL_APPOINTMENT_STATUSES}
        if not all(a.status in terminal for a in appointments):
            return False

        patient.status = PatientStatus.COMPLETED.value
        await self.repo.update_patient(patient)
        self.log_info(
            {
                "event": "patient_status_completed",
                "patient_id": patient_id,
                "appointments": len(appointments),
            }
        )
        return True

    # ============= Repair =============
    async def resync_patient(self, patient_id: str) -> PatientSyncSchema:
        """Recompute remaining sessions and status for one patient from its appointments."""
        patient = await self.get_patient(patient_id)
        before = patient.remaining_sessions

        ledger = await SessionLedgerService(self.db).record_session_usage(patient_id)
        swept = await self.sweep_patient_status(patient_id)

        patient = await self.get_patient(patient_id)
        return PatientSyncSchema(
            patient_id=patient_id,
            remaining_sessions=patient.remaining_sessions,
            remaining_updated=ledger.applicable and ledger.remaining_sessions != before,
            status=PatientStatus(patient.status),
            status_completed=ledger.status_completed or swept,
        )

    async def resync_all(self) -> SyncReportSchema:
        """Full rescan of patients against their appointments."""
        report = SyncReportSchema()
        for patient_id in await self.repo.get_all_patient_ids():
            report.patients_scanned += 1
            try:
                synced = await self.resync_patient(patient_id)
            except Exception as e:
                await self.db.rollback()
                report.failures[patient_id] = str(e)
                self.log_error(
                    {"event": "resync_failed", "patient_id": patient_id},
                    exc_info=True,
                )
                continue

            if synced.remaining_updated:
                report.remaining_updated += 1
            if synced.status_completed:
                report.statuses_completed += 1

        self.log_info(
            {
                "event": "resync_finished",
                "patients": report.patients_scanned,
                "remaining_updated": report.remaining_updated,
                "statuses_completed": report.statuses_completed,
                "failures": len(report.failures),
            }
        )
        return report
