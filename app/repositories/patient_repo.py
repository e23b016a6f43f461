from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from app.models.patient_model import Patient


class PatientRepository:
    """Repository layer for patient data access."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_patient(self, patient: Patient) -> Patient:
        """Create a new patient."""
        self.db.add(patient)
        await self.db.commit()
        await self.db.refresh(patient)
        return patient

    async def get_patient_by_patient_id(self, patient_id: str) -> Optional[Patient]:
        """Get patient by external patient ID, always reading current row state."""
        result = await self.db.execute(
            select(Patient)
            .where(Patient.patient_id == patient_id)
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    async def get_patients(
        self,
        patient_type: Optional[str] = None,
        status: Optional[str] = None,
    ) -> List[Patient]:
        """Get filtered list of patients."""
        query = select(Patient)

        if patient_type:
            query = query.where(Patient.patient_type == patient_type)
        if status:
            query = query.where(Patient.status == status)

        query = query.order_by(Patient.created_at.desc())

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_all_patient_ids(self) -> List[str]:
        """External IDs of every patient, for full rescans."""
        result = await self.db.execute(select(Patient.patient_id))
        return list(result.scalars().all())

    async def update_patient(self, patient: Patient) -> Patient:
        """Persist changes to a patient."""
        self.db.add(patient)
        await self.db.commit()
        await self.db.refresh(patient)
        return patient
