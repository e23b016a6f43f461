from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from app.models.billing_model import BillingRecord


class BillingRepository:
    """Repository layer for billing data access."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_billing_by_appointment_id(
        self, appointment_id: str
    ) -> Optional[BillingRecord]:
        """Get the billing record for an appointment, if any."""
        result = await self.db.execute(
            select(BillingRecord).where(BillingRecord.appointment_id == appointment_id)
        )
        return result.scalars().first()

    async def get_patient_billing(self, patient_id: str) -> List[BillingRecord]:
        """Get all billing records for a patient."""
        result = await self.db.execute(
            select(BillingRecord)
            .where(BillingRecord.patient_id == patient_id)
            .order_by(BillingRecord.billing_date.desc())
        )
        return list(result.scalars().all())

    async def create_billing(self, record: BillingRecord) -> BillingRecord:
        """Create a new billing record."""
        self.db.add(record)
        await self.db.commit()
        await self.db.refresh(record)
        return record
