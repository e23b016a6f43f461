from typing import List
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies import get_db
from app.schemas.appointment_schemas import (
    AppointmentCreateSchema,
    AppointmentResponseSchema,
    AppointmentStatusUpdateSchema,
)
from app.schemas.workflow_schemas import CompletionResultSchema
from app.services.appointment_service import AppointmentService
from app.core.utils import logger


router = APIRouter(prefix="/appointments", tags=["appointments"])


@router.post(
    "",
    response_model=AppointmentResponseSchema,
    status_code=status.HTTP_201_CREATED,
)
async def book_appointment(
    appointment_data: AppointmentCreateSchema,
    db: AsyncSession = Depends(get_db),
):
    """
    Book an appointment for a patient.

    Args:
        appointment_data: Appointment booking data
        db: Database session

    Returns:
        AppointmentResponseSchema: Booked appointment, status pending
    """
    service = AppointmentService(db)
    try:
        appointment = await service.book_appointment(appointment_data)

        logger.log_info(
            {
                "event": "appointment_booked",
                "appointment_id": appointment.appointment_id,
                "patient_id": appointment.patient_id,
                "date": appointment.date,
            }
        )
        return AppointmentResponseSchema.model_validate(appointment, from_attributes=True)

    except HTTPException:
        raise

    except SQLAlchemyError as e:
        logger.log_error(
            {"event": "book_appointment_store_error", "error": str(e)}, exc_info=True
        )
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Data store unavailable",
        )

    except Exception as e:
        logger.log_error(
            {
                "event": "book_appointment_error",
                "error": str(e),
                "error_type": type(e).__name__,
            },
            exc_info=True,
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An unexpected error occurred while booking appointment",
        )


@router.get("", response_model=List[AppointmentResponseSchema])
async def list_patient_appointments(
    patient_id: str = Query(..., min_length=1),
    db: AsyncSession = Depends(get_db),
):
    """List a patient's appointments, newest first."""
    service = AppointmentService(db)
    try:
        appointments = await service.list_patient_appointments(patient_id)
        return [
            AppointmentResponseSchema.model_validate(a, from_attributes=True)
            for a in appointments
        ]

    except SQLAlchemyError as e:
        logger.log_error(
            {"event": "list_appointments_store_error", "patient_id": patient_id, "error": str(e)},
            exc_info=True,
        )
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Data store unavailable",
        )

    except Exception as e:
        logger.log_error(
            {"event": "list_appointments_error", "patient_id": patient_id, "error": str(e)},
            exc_info=True,
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An error occurred while retrieving appointments",
        )


@router.get("/{appointment_id}", response_model=AppointmentResponseSchema)
async def get_appointment(
    appointment_id: str,
    db: AsyncSession = Depends(get_db),
):
    service = AppointmentService(db)
    try:
        appointment = await service.get_appointment(appointment_id)
        return AppointmentResponseSchema.model_validate(appointment, from_attributes=True)

    except HTTPException:
        raise

    except Exception as e:
        logger.log_error(
            {"event": "get_appointment_error", "appointment_id": appointment_id, "error": str(e)},
            exc_info=True,
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An error occurred while retrieving appointment",
        )


@router.patch("/{appointment_id}/status", response_model=CompletionResultSchema)
async def update_appointment_status(
    appointment_id: str,
    update_data: AppointmentStatusUpdateSchema,
    db: AsyncSession = Depends(get_db),
):
    """
    Change an appointment's status.

    Returns the per-step result of the cascade to the patient's session
    count, billing and status.
    """
    service = AppointmentService(db)
    try:
        return await service.update_appointment_status(appointment_id, update_data)

    except HTTPException:
        raise

    except SQLAlchemyError as e:
        logger.log_error(
            {
                "event": "appointment_status_store_error",
                "appointment_id": appointment_id,
                "error": str(e),
            },
            exc_info=True,
        )
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Data store unavailable",
        )

    except Exception as e:
        logger.log_error(
            {
                "event": "appointment_status_error",
                "appointment_id": appointment_id,
                "error": str(e),
            },
            exc_info=True,
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An error occurred while updating appointment status",
        )
