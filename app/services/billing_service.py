from datetime import date
from typing import List, Optional, Tuple
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config.config import settings
from app.core.utils import LoggerMixin
from app.models.billing_model import BillingRecord
from app.repositories.appointment_repo import AppointmentRepository
from app.repositories.billing_repo import BillingRepository
from app.schemas.billing_schemas import BillingStatus, PaymentMode


def is_auto_billed(patient_type: Optional[str]) -> bool:
    """True for the patient category billed automatically per completed session."""
    if not patient_type:
        return False
    return patient_type.strip().upper() == settings.DYES_PATIENT_TYPE


def billing_id_for(appointment_id: str) -> str:
    return f"BILL-{appointment_id}"


class BillingService(LoggerMixin):
    """Creates the fixed-rate, auto-paid session bill for DYES patients."""

    def __init__(self, db: AsyncSession):
        super().__init__()
        self.db = db
        self.repo = BillingRepository(db)
        self.appointment_repo = AppointmentRepository(db)

    async def list_patient_billing(self, patient_id: str) -> List[BillingRecord]:
        return await self.repo.get_patient_billing(patient_id)

    async def bill_completed_session(
        self,
        appointment_id: str,
        patient_id: str,
        patient_name: Optional[str] = None,
        doctor: Optional[str] = None,
        billing_date: Optional[date] = None,
        created_by: Optional[str] = None,
    ) -> Tuple[Optional[BillingRecord], bool]:
        """
        Create the billing record for an appointment unless one exists.

        Returns ``(record, created)``. ``created`` is False when the
        appointment was already billed, including when a concurrent writer
        won the race on the unique appointment key.
        """
        existing = await self.repo.get_billing_by_appointment_id(appointment_id)
        if existing:
            self.log_debug(
                {"event": "billing_exists", "appointment_id": appointment_id}
            )
            return existing, False

        amount = settings.DYES_SESSION_RATE
        record = BillingRecord(
            billing_id=billing_id_for(appointment_id),
            appointment_id=appointment_id,
            patient_id=patient_id,
            patient_name=patient_name,
            doctor=doctor,
            amount=amount,
            billing_date=billing_date or date.today(),
            status=BillingStatus.COMPLETED.value,
            payment_mode=PaymentMode.AUTO_PAID.value,
            created_by_name=created_by,
        )
        try:
            record = await self.repo.create_billing(record)
        except IntegrityError:
            await self.db.rollback()
            self.log_warning(
                {"event": "billing_race_lost", "appointment_id": appointment_id}
            )
            return await self.repo.get_billing_by_appointment_id(appointment_id), False

        appointment = await self.appointment_repo.get_appointment_by_appointment_id(
            appointment_id
        )
        if appointment:
            appointment.billing_amount = record.amount
            appointment.billing_date = record.billing_date
            await self.appointment_repo.update_appointment(appointment)

        self.log_info(
            {
                "event": "billing_created",
                "billing_id": record.billing_id,
                "patient_id": patient_id,
                "amount": str(amount),
            }
        )
        return record, True
