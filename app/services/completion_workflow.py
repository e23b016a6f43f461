from dataclasses import dataclass
from datetime import date
from typing import Awaitable, Callable, Optional, Sequence
from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.utils import LoggerMixin
from app.models.appointment_model import Appointment
from app.models.patient_model import Patient
from app.repositories.appointment_repo import AppointmentRepository
from app.repositories.patient_repo import PatientRepository
from app.schemas.appointment_schemas import (
    OPEN_APPOINTMENT_STATUSES,
    AppointmentStatus,
)
from app.schemas.workflow_schemas import (
    RETRYABLE_STEPS,
    CompletionResultSchema,
    StepOutcome,
    StepStatus,
    WorkflowStep,
)
from app.services.billing_service import BillingService, is_auto_billed
from app.services.patient_service import PatientService
from app.services.session_ledger import SessionLedgerService


COMPLETION_STEPS = (
    WorkflowStep.COMPLETE_APPOINTMENT,
    WorkflowStep.RECORD_SESSION_USAGE,
    WorkflowStep.CREATE_BILLING,
    WorkflowStep.SWEEP_PATIENT_STATUS,
)

# Steps that only make sense once the appointment is marked completed
_DEPENDS_ON_COMPLETION = (
    WorkflowStep.RECORD_SESSION_USAGE,
    WorkflowStep.CREATE_BILLING,
    WorkflowStep.SWEEP_PATIENT_STATUS,
)


@dataclass(frozen=True)
class AppointmentContext:
    """Plain values a workflow run needs, read once before any step commits."""

    patient_id: str
    patient_name: Optional[str]
    patient_type: Optional[str]
    appointment_id: str
    appointment_date: Optional[date]
    doctor: Optional[str]

    @classmethod
    def from_records(cls, patient: Patient, appointment: Appointment) -> "AppointmentContext":
        return cls(
            patient_id=patient.patient_id,
            patient_name=patient.name,
            patient_type=patient.patient_type,
            appointment_id=appointment.appointment_id,
            appointment_date=appointment.date,
            doctor=appointment.doctor,
        )


class CompletionWorkflow(LoggerMixin):
    """
    Session completion saga.

    Runs locate -> complete appointment -> record session usage -> billing
    -> patient status sweep. Each step commits on its own and is recorded in
    a :class:`CompletionResultSchema`. A failing step is logged and recorded
    but does not undo earlier steps or stop the independent ones after it;
    repair goes through :meth:`retry_step` or a patient re-sync.
    """

    def __init__(self, db: AsyncSession, reservation: Optional[int] = None):
        super().__init__()
        self.db = db
        self.patient_repo = PatientRepository(db)
        self.appointment_repo = AppointmentRepository(db)
        self.ledger = SessionLedgerService(db, reservation=reservation)
        self.billing = BillingService(db)
        self.patient_service = PatientService(db)

    # ============= Entry points =============
    async def run(
        self,
        patient_id: str,
        report_date: Optional[date] = None,
        performed_by: Optional[str] = None,
    ) -> CompletionResultSchema:
        """
        Complete the patient's current session.

        With ``report_date`` only an open appointment on exactly that date
        qualifies; otherwise the latest open one by date and time. Finding
        none is not an error: the run stops with a skipped locate step.
        """
        result = CompletionResultSchema(patient_id=patient_id)

        try:
            context = await self._locate(patient_id, report_date)
        except Exception as e:
            await self.db.rollback()
            self._record_failure(result, WorkflowStep.LOCATE_APPOINTMENT, patient_id, e)
            return result

        if context is None:
            self.log_info(
                {
                    "event": "completion_no_open_appointment",
                    "patient_id": patient_id,
                    "report_date": report_date,
                }
            )
            result.steps.append(
                StepOutcome(
                    step=WorkflowStep.LOCATE_APPOINTMENT,
                    status=StepStatus.SKIPPED,
                    detail="No open appointment to complete",
                )
            )
            return result

        result.appointment_id = context.appointment_id
        result.steps.append(
            StepOutcome(
                step=WorkflowStep.LOCATE_APPOINTMENT,
                status=StepStatus.SUCCEEDED,
                detail=f"Appointment {context.appointment_id}",
            )
        )
        await self._run_steps(result, context, COMPLETION_STEPS, performed_by)
        return result

    async def run_steps(
        self,
        patient_id: str,
        appointment_id: str,
        steps: Sequence[WorkflowStep],
        performed_by: Optional[str] = None,
    ) -> CompletionResultSchema:
        """Run the given steps, in order, for one known appointment of the patient."""
        context = await self._context_for(patient_id, appointment_id)
        result = CompletionResultSchema(
            patient_id=patient_id, appointment_id=appointment_id
        )
        await self._run_steps(result, context, steps, performed_by)
        return result

    async def retry_step(
        self,
        step: WorkflowStep,
        patient_id: str,
        appointment_id: str,
        performed_by: Optional[str] = None,
    ) -> CompletionResultSchema:
        """Re-run exactly one step of a previous completion."""
        if step not in RETRYABLE_STEPS:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Step '{step.value}' cannot be retried",
            )
        self.log_info(
            {
                "event": "workflow_step_retry",
                "step": step.value,
                "patient_id": patient_id,
                "appointment_id": appointment_id,
            }
        )
        return await self.run_steps(patient_id, appointment_id, [step], performed_by)

    # ============= Locate =============
    async def _locate(
        self, patient_id: str, report_date: Optional[date]
    ) -> Optional[AppointmentContext]:
        if report_date:
            appointment = await self.appointment_repo.get_open_appointment_on_date(
                patient_id, report_date, OPEN_APPOINTMENT_STATUSES
            )
        else:
            appointment = await self.appointment_repo.get_latest_open_appointment(
                patient_id, OPEN_APPOINTMENT_STATUSES
            )
        if not appointment:
            return None

        patient = await self.patient_repo.get_patient_by_patient_id(patient_id)
        if not patient:
            return None
        return AppointmentContext.from_records(patient, appointment)

    async def _context_for(
        self, patient_id: str, appointment_id: str
    ) -> AppointmentContext:
        patient = await self.patient_repo.get_patient_by_patient_id(patient_id)
        if not patient:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Patient not found",
            )
        appointment = await self.appointment_repo.get_appointment_by_appointment_id(
            appointment_id
        )
        if not appointment or appointment.patient_id != patient_id:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Appointment not found for this patient",
            )
        return AppointmentContext.from_records(patient, appointment)

    # ============= Steps =============
    async def _run_steps(
        self,
        result: CompletionResultSchema,
        context: AppointmentContext,
        steps: Sequence[WorkflowStep],
        performed_by: Optional[str],
    ) -> None:
        actions = {
            WorkflowStep.COMPLETE_APPOINTMENT: lambda: self._complete_appointment(context),
            WorkflowStep.RECORD_SESSION_USAGE: lambda: self._record_session_usage(
                context, result
            ),
            WorkflowStep.CREATE_BILLING: lambda: self._create_billing(context, performed_by),
            WorkflowStep.SWEEP_PATIENT_STATUS: lambda: self._sweep(context),
        }

        appointment_failed = False
        for step in steps:
            if appointment_failed and step in _DEPENDS_ON_COMPLETION:
                result.steps.append(
                    StepOutcome(
                        step=step,
                        status=StepStatus.SKIPPED,
                        detail="Appointment was not completed",
                    )
                )
                continue

            outcome = await self._run_step(result, step, context, actions[step])
            if (
                step == WorkflowStep.COMPLETE_APPOINTMENT
                and outcome.status == StepStatus.FAILED
            ):
                appointment_failed = True

    async def _run_step(
        self,
        result: CompletionResultSchema,
        step: WorkflowStep,
        context: AppointmentContext,
        action: Callable[[], Awaitable[StepOutcome]],
    ) -> StepOutcome:
        try:
            outcome = await action()
        except Exception as e:
            await self.db.rollback()
            return self._record_failure(result, step, context.patient_id, e)

        self.log_info(
            {
                "event": "workflow_step_done",
                "step": step.value,
                "status": outcome.status.value,
                "patient_id": context.patient_id,
                "appointment_id": context.appointment_id,
            }
        )
        result.steps.append(outcome)
        return outcome

    def _record_failure(
        self,
        result: CompletionResultSchema,
        step: WorkflowStep,
        patient_id: str,
        error: Exception,
    ) -> StepOutcome:
        self.log_error(
            {
                "event": "workflow_step_failed",
                "step": step.value,
                "patient_id": patient_id,
                "appointment_id": result.appointment_id,
                "error": str(error),
            },
            exc_info=True,
        )
        outcome = StepOutcome(step=step, status=StepStatus.FAILED, error=str(error))
        result.steps.append(outcome)
        return outcome

    async def _complete_appointment(self, context: AppointmentContext) -> StepOutcome:
        appointment = await self.appointment_repo.get_appointment_by_appointment_id(
            context.appointment_id
        )
        if not appointment:
            raise LookupError(f"Appointment {context.appointment_id} no longer exists")

        if appointment.status == AppointmentStatus.COMPLETED.value:
            return StepOutcome(
                step=WorkflowStep.COMPLETE_APPOINTMENT,
                status=StepStatus.SKIPPED,
                detail="Appointment already completed",
            )

        appointment.status = AppointmentStatus.COMPLETED.value
        await self.appointment_repo.update_appointment(appointment)
        return StepOutcome(
            step=WorkflowStep.COMPLETE_APPOINTMENT, status=StepStatus.SUCCEEDED
        )

    async def _record_session_usage(
        self, context: AppointmentContext, result: CompletionResultSchema
    ) -> StepOutcome:
        ledger = await self.ledger.record_session_usage(context.patient_id)
        result.ledger = ledger
        if not ledger.applicable:
            return StepOutcome(
                step=WorkflowStep.RECORD_SESSION_USAGE,
                status=StepStatus.NOT_APPLICABLE,
                detail="Total sessions unknown",
            )
        return StepOutcome(
            step=WorkflowStep.RECORD_SESSION_USAGE,
            status=StepStatus.SUCCEEDED,
            detail=f"{ledger.remaining_sessions} sessions remaining",
        )

    async def _create_billing(
        self, context: AppointmentContext, performed_by: Optional[str]
    ) -> StepOutcome:
        if not is_auto_billed(context.patient_type):
            return StepOutcome(
                step=WorkflowStep.CREATE_BILLING,
                status=StepStatus.NOT_APPLICABLE,
                detail="Patient type is not auto-billed",
            )

        record, created = await self.billing.bill_completed_session(
            appointment_id=context.appointment_id,
            patient_id=context.patient_id,
            patient_name=context.patient_name,
            doctor=context.doctor,
            billing_date=context.appointment_date,
            created_by=performed_by,
        )
        if not created:
            return StepOutcome(
                step=WorkflowStep.CREATE_BILLING,
                status=StepStatus.SKIPPED,
                detail="Appointment already billed",
            )
        return StepOutcome(
            step=WorkflowStep.CREATE_BILLING,
            status=StepStatus.SUCCEEDED,
            detail=record.billing_id,
        )

    async def _sweep(self, context: AppointmentContext) -> StepOutcome:
        changed = await self.patient_service.sweep_patient_status(context.patient_id)
        if not changed:
            return StepOutcome(
                step=WorkflowStep.SWEEP_PATIENT_STATUS,
                status=StepStatus.SKIPPED,
                detail="No status change",
            )
        return StepOutcome(
            step=WorkflowStep.SWEEP_PATIENT_STATUS,
            status=StepStatus.SUCCEEDED,
            detail="Patient marked completed",
        )
