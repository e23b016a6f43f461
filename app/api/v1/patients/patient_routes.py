from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies import get_db
from app.schemas.patient_schemas import (
    PatientCreateSchema,
    PatientResponseSchema,
    PatientStatus,
    PatientSyncSchema,
    PatientUpdateSchema,
    SyncReportSchema,
)
from app.services.patient_service import PatientService
from app.core.utils import logger


router = APIRouter(prefix="/patients", tags=["patients"])


@router.post(
    "",
    response_model=PatientResponseSchema,
    status_code=status.HTTP_201_CREATED,
)
async def register_patient(
    patient_data: PatientCreateSchema,
    db: AsyncSession = Depends(get_db),
):
    """
    Register a new patient.

    Args:
        patient_data: Patient registration data
        db: Database session

    Returns:
        PatientResponseSchema: Created patient
    """
    service = PatientService(db)
    try:
        patient = await service.register_patient(patient_data)

        logger.log_info(
            {
                "event": "patient_registered",
                "patient_id": patient.patient_id,
                "patient_type": patient.patient_type,
            }
        )
        return PatientResponseSchema.model_validate(patient, from_attributes=True)

    except HTTPException:
        raise

    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    except SQLAlchemyError as e:
        logger.log_error(
            {"event": "register_patient_store_error", "error": str(e)},
            exc_info=True,
        )
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Data store unavailable",
        )

    except Exception as e:
        logger.log_error(
            {
                "event": "register_patient_error",
                "error": str(e),
                "error_type": type(e).__name__,
            },
            exc_info=True,
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An unexpected error occurred while registering patient",
        )


@router.get("", response_model=List[PatientResponseSchema])
async def list_patients(
    patient_type: Optional[str] = Query(None),
    patient_status: Optional[PatientStatus] = Query(None, alias="status"),
    db: AsyncSession = Depends(get_db),
):
    """List patients, optionally filtered by type and status."""
    service = PatientService(db)
    try:
        patients = await service.list_patients(patient_type, patient_status)
        return [
            PatientResponseSchema.model_validate(p, from_attributes=True)
            for p in patients
        ]

    except SQLAlchemyError as e:
        logger.log_error(
            {"event": "list_patients_store_error", "error": str(e)}, exc_info=True
        )
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Data store unavailable",
        )

    except Exception as e:
        logger.log_error({"event": "list_patients_error", "error": str(e)}, exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An error occurred while retrieving patients",
        )


@router.post("/resync", response_model=SyncReportSchema)
async def resync_all_patients(db: AsyncSession = Depends(get_db)):
    """
    Recompute remaining sessions and status for every patient.

    Repair path for completion runs that stopped part way.
    """
    service = PatientService(db)
    try:
        return await service.resync_all()

    except SQLAlchemyError as e:
        logger.log_error({"event": "resync_store_error", "error": str(e)}, exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Data store unavailable",
        )

    except Exception as e:
        logger.log_error({"event": "resync_error", "error": str(e)}, exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An error occurred while re-syncing patients",
        )


@router.get("/{patient_id}", response_model=PatientResponseSchema)
async def get_patient(
    patient_id: str,
    db: AsyncSession = Depends(get_db),
):
    """
    Get patient by ID.

    Args:
        patient_id: External patient ID
        db: Database session

    Returns:
        PatientResponseSchema: Patient information
    """
    service = PatientService(db)
    try:
        patient = await service.get_patient(patient_id)
        return PatientResponseSchema.model_validate(patient, from_attributes=True)

    except HTTPException:
        raise

    except SQLAlchemyError as e:
        logger.log_error(
            {"event": "get_patient_store_error", "patient_id": patient_id, "error": str(e)},
            exc_info=True,
        )
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Data store unavailable",
        )

    except Exception as e:
        logger.log_error(
            {"event": "get_patient_error", "patient_id": patient_id, "error": str(e)},
            exc_info=True,
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An error occurred while retrieving patient",
        )


@router.patch("/{patient_id}", response_model=PatientResponseSchema)
async def update_patient(
    patient_id: str,
    update_data: PatientUpdateSchema,
    db: AsyncSession = Depends(get_db),
):
    """Admin edit of a patient's details and session counters."""
    service = PatientService(db)
    try:
        patient = await service.update_patient(patient_id, update_data)
        return PatientResponseSchema.model_validate(patient, from_attributes=True)

    except HTTPException:
        raise

    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    except SQLAlchemyError as e:
        logger.log_error(
            {"event": "update_patient_store_error", "patient_id": patient_id, "error": str(e)},
            exc_info=True,
        )
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Data store unavailable",
        )

    except Exception as e:
        logger.log_error(
            {"event": "update_patient_error", "patient_id": patient_id, "error": str(e)},
            exc_info=True,
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An error occurred while updating patient",
        )


@router.post("/{patient_id}/resync", response_model=PatientSyncSchema)
async def resync_patient(
    patient_id: str,
    db: AsyncSession = Depends(get_db),
):
    """Recompute one patient's remaining sessions and status from its appointments."""
    service = PatientService(db)
    try:
        return await service.resync_patient(patient_id)

    except HTTPException:
        raise

    except SQLAlchemyError as e:
        logger.log_error(
            {"event": "resync_patient_store_error", "patient_id": patient_id, "error": str(e)},
            exc_info=True,
        )
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Data store unavailable",
        )

    except Exception as e:
        logger.log_error(
            {"event": "resync_patient_error", "patient_id": patient_id, "error": str(e)},
            exc_info=True,
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An error occurred while re-syncing patient",
        )
