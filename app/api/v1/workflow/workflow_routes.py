from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies import get_db
from app.schemas.workflow_schemas import (
    CompleteSessionSchema,
    CompletionResultSchema,
    RetryStepSchema,
)
from app.services.completion_workflow import CompletionWorkflow
from app.core.utils import logger


router = APIRouter(prefix="/workflow", tags=["workflow"])


@router.post("/{patient_id}/complete", response_model=CompletionResultSchema)
async def complete_session(
    patient_id: str,
    request: CompleteSessionSchema,
    db: AsyncSession = Depends(get_db),
):
    """
    Complete the patient's current session.

    A patient with no open appointment is not an error; the result then
    holds a single skipped locate step.
    """
    workflow = CompletionWorkflow(db)
    try:
        result = await workflow.run(
            patient_id,
            report_date=request.report_date,
            performed_by=request.performed_by,
        )
        if not result.succeeded:
            logger.log_warning(
                {
                    "event": "completion_partial_failure",
                    "patient_id": patient_id,
                    "failed_steps": ",".join(s.value for s in result.failed_steps),
                }
            )
        return result

    except SQLAlchemyError as e:
        logger.log_error(
            {"event": "complete_session_store_error", "patient_id": patient_id, "error": str(e)},
            exc_info=True,
        )
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Data store unavailable",
        )

    except Exception as e:
        logger.log_error(
            {"event": "complete_session_error", "patient_id": patient_id, "error": str(e)},
            exc_info=True,
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An error occurred while completing session",
        )


@router.post("/{patient_id}/retry", response_model=CompletionResultSchema)
async def retry_step(
    patient_id: str,
    request: RetryStepSchema,
    db: AsyncSession = Depends(get_db),
):
    """Re-run one completion step for an appointment of the patient."""
    workflow = CompletionWorkflow(db)
    try:
        return await workflow.retry_step(
            request.step,
            patient_id,
            request.appointment_id,
            performed_by=request.performed_by,
        )

    except HTTPException:
        raise

    except SQLAlchemyError as e:
        logger.log_error(
            {"event": "retry_step_store_error", "patient_id": patient_id, "error": str(e)},
            exc_info=True,
        )
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Data store unavailable",
        )

    except Exception as e:
        logger.log_error(
            {
                "event": "retry_step_error",
                "patient_id": patient_id,
                "step": request.step.value,
                "error": str(e),
            },
            exc_info=True,
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An error occurred while retrying step",
        )
