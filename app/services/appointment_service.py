from typing import List
from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.utils import LoggerMixin
from app.models.appointment_model import Appointment
from app.repositories.appointment_repo import AppointmentRepository
from app.repositories.patient_repo import PatientRepository
from app.schemas.appointment_schemas import (
    AppointmentCreateSchema,
    AppointmentStatus,
    AppointmentStatusUpdateSchema,
)
from app.schemas.workflow_schemas import CompletionResultSchema, WorkflowStep
from app.services.completion_workflow import CompletionWorkflow


class AppointmentService(LoggerMixin):
    """Service layer for appointment booking and status changes."""

    def __init__(self, db: AsyncSession):
        super().__init__()
        self.db = db
        self.repo = AppointmentRepository(self.db)
        self.patient_repo = PatientRepository(self.db)

    async def book_appointment(self, appointment_data: AppointmentCreateSchema) -> Appointment:
        """Book a pending appointment for an existing patient."""
        patient = await self.patient_repo.get_patient_by_patient_id(
            appointment_data.patient_id
        )
        if not patient:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Patient not found",
            )

        existing = await self.repo.get_appointment_by_appointment_id(
            appointment_data.appointment_id
        )
        if existing:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Appointment with this ID already exists",
            )

        appointment_dict = appointment_data.model_dump()
        appointment_dict["status"] = AppointmentStatus.PENDING.value

        db_appointment = Appointment(**appointment_dict)
        return await self.repo.create_appointment(db_appointment)

    async def get_appointment(self, appointment_id: str) -> Appointment:
        appointment = await self.repo.get_appointment_by_appointment_id(appointment_id)
        if not appointment:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Appointment not found",
            )
        return appointment

    async def list_patient_appointments(self, patient_id: str) -> List[Appointment]:
        """Appointments for a patient, newest first."""
        return await self.repo.get_patient_appointments(patient_id)

    async def update_appointment_status(
        self, appointment_id: str, update_data: AppointmentStatusUpdateSchema
    ) -> CompletionResultSchema:
        """
        Change an appointment's status and cascade to the patient.

        Any change recomputes the remaining sessions and re-runs the status
        sweep. Moving into completed also bills the session for auto-billed
        patients.
        """
        appointment = await self.get_appointment(appointment_id)
        patient_id = appointment.patient_id
        old_status = appointment.status
        new_status = update_data.status.value

        if old_status == new_status:
            return CompletionResultSchema(
                patient_id=patient_id, appointment_id=appointment_id
            )

        appointment.status = new_status
        await self.repo.update_appointment(appointment)
        self.log_info(
            {
                "event": "appointment_status_changed",
                "appointment_id": appointment_id,
                "from": old_status,
                "to": new_status,
            }
        )

        steps = [WorkflowStep.RECORD_SESSION_USAGE]
        if new_status == AppointmentStatus.COMPLETED.value:
            steps.append(WorkflowStep.CREATE_BILLING)
        steps.append(WorkflowStep.SWEEP_PATIENT_STATUS)

        return await CompletionWorkflow(self.db).run_steps(
            patient_id, appointment_id, steps, update_data.performed_by
        )
