from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from app.config.config import settings
from app.core.utils import LoggerMixin
from app.repositories.appointment_repo import AppointmentRepository
from app.repositories.patient_repo import PatientRepository
from app.schemas.appointment_schemas import AppointmentStatus
from app.schemas.patient_schemas import PatientStatus
from app.schemas.workflow_schemas import LedgerUpdateSchema


# Sessions counted as spent before any completed appointment is subtracted.
# Carried over from existing clinic behaviour; whether the reservation of the
# in-progress visit is intended is still open with product, so it stays a
# named, overridable value (settings.SESSION_RESERVATION_OFFSET).
SESSION_RESERVATION_OFFSET = 1


def compute_remaining(
    total: int,
    completed_count: int,
    reservation: int = SESSION_RESERVATION_OFFSET,
) -> int:
    """
    Remaining treatment sessions for a patient.

    Returns ``max(0, total - reservation - completed_count)``, so the result
    is never negative.

    Args:
        total: Sessions the patient is entitled to
        completed_count: Appointments already completed
        reservation: Sessions reserved up front (defaults to the
            module-level reservation offset)
    """
    if total < 0 or completed_count < 0 or reservation < 0:
        raise ValueError("Session counts cannot be negative")
    return max(0, total - reservation - completed_count)


class SessionLedgerService(LoggerMixin):
    """Computes and persists a patient's remaining-session counter."""

    def __init__(self, db: AsyncSession, reservation: Optional[int] = None):
        super().__init__()
        self.db = db
        self.patient_repo = PatientRepository(db)
        self.appointment_repo = AppointmentRepository(db)
        self.reservation = (
            settings.SESSION_RESERVATION_OFFSET if reservation is None else reservation
        )

    async def record_session_usage(
        self, patient_id: str, total_override: Optional[int] = None
    ) -> LedgerUpdateSchema:
        """
        Recompute and store ``remaining_sessions`` from completed appointments.

        When the patient has no known total (and none is supplied) nothing is
        written and the result is marked not applicable. When the remaining
        count reaches zero the patient is marked completed.

        A concurrent write to the same patient surfaces as ``StaleDataError``;
        the read-compute-write is retried, which is safe because the value
        is derived, not decremented.
        """
        attempts = max(1, settings.LEDGER_MAX_RETRIES)
        attempt = 1
        while True:
            try:
                return await self._recompute(patient_id, total_override)
            except StaleDataError:
                await self.db.rollback()
                if attempt >= attempts:
                    raise
                self.log_warning(
                    {
                        "event": "ledger_concurrent_update",
                        "patient_id": patient_id,
                        "attempt": attempt,
                    }
                )
                attempt += 1

    async def _recompute(
        self, patient_id: str, total_override: Optional[int]
    ) -> LedgerUpdateSchema:
        patient = await self.patient_repo.get_patient_by_patient_id(patient_id)
        if not patient:
            return LedgerUpdateSchema(applicable=False)

        total = (
            total_override
            if total_override is not None
            else patient.total_sessions_required
        )
        if total is None:
            self.log_debug(
                {"event": "ledger_not_applicable", "patient_id": patient_id}
            )
            return LedgerUpdateSchema(applicable=False)

        completed_count = await self.appointment_repo.count_by_status(
            patient_id, AppointmentStatus.COMPLETED
        )
        remaining = compute_remaining(total, completed_count, self.reservation)

        status_completed = False
        patient.remaining_sessions = remaining
        if remaining == 0 and not patient.is_completed:
            patient.status = PatientStatus.COMPLETED.value
            status_completed = True
        await self.patient_repo.update_patient(patient)

        self.log_info(
            {
                "event": "ledger_updated",
                "patient_id": patient_id,
                "total": total,
                "completed": completed_count,
                "remaining": remaining,
            }
        )
        return LedgerUpdateSchema(
            applicable=True,
            total_sessions_required=total,
            completed_count=completed_count,
            remaining_sessions=remaining,
            status_completed=status_completed,
        )

