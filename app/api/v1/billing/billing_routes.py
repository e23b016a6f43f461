from typing import List
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies import get_db
from app.schemas.billing_schemas import BillingResponseSchema
from app.services.billing_service import BillingService
from app.core.utils import logger


router = APIRouter(prefix="/billing", tags=["billing"])


@router.get("/patient/{patient_id}", response_model=List[BillingResponseSchema])
async def list_patient_billing(
    patient_id: str,
    db: AsyncSession = Depends(get_db),
):
    """Billing records for a patient, latest billing date first."""
    service = BillingService(db)
    try:
        records = await service.list_patient_billing(patient_id)
        return [
            BillingResponseSchema.model_validate(r, from_attributes=True)
            for r in records
        ]

    except Exception as e:
        logger.log_error(
            {"event": "list_billing_error", "patient_id": patient_id, "error": str(e)},
            exc_info=True,
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An error occurred while retrieving billing records",
        )
