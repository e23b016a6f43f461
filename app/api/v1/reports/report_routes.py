import uuid
from typing import List
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies import get_db
from app.schemas.report_schemas import (
    DeleteVersionResultSchema,
    RenumberResultSchema,
    ReportSaveSchema,
    ReportVersionDetailSchema,
    ReportVersionResponseSchema,
    RestoreResultSchema,
    RestoreVersionSchema,
    SaveReportResultSchema,
)
from app.services.report_service import ReportHistoryService, ReportService
from app.core.utils import logger


router = APIRouter(prefix="/reports", tags=["reports"])


def _store_unavailable(event: str, patient_id: str, error: Exception) -> HTTPException:
    logger.log_error(
        {"event": event, "patient_id": patient_id, "error": str(error)},
        exc_info=True,
    )
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Data store unavailable",
    )


def _unexpected(event: str, patient_id: str, error: Exception, action: str) -> HTTPException:
    logger.log_error(
        {
            "event": event,
            "patient_id": patient_id,
            "error": str(error),
            "error_type": type(error).__name__,
        },
        exc_info=True,
    )
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"An error occurred while {action}",
    )


@router.put("/{patient_id}", response_model=SaveReportResultSchema)
async def save_report(
    patient_id: str,
    report: ReportSaveSchema,
    db: AsyncSession = Depends(get_db),
):
    """
    Save a patient's report.

    The report being replaced is kept as a new history version. When
    ``session_completed`` is set the patient's current appointment is
    completed and the per-step outcome is returned under ``completion``.

    Args:
        patient_id: External patient ID
        report: Report content and save options
        db: Database session

    Returns:
        SaveReportResultSchema: Snapshot version, ledger state and workflow steps
    """
    service = ReportService(db)
    try:
        return await service.save_report(patient_id, report)

    except HTTPException:
        raise

    except SQLAlchemyError as e:
        raise _store_unavailable("save_report_store_error", patient_id, e)

    except Exception as e:
        raise _unexpected("save_report_error", patient_id, e, "saving report")


@router.get("/{patient_id}/versions", response_model=List[ReportVersionResponseSchema])
async def list_versions(
    patient_id: str,
    db: AsyncSession = Depends(get_db),
):
    """Report history for a patient, most recent first."""
    service = ReportHistoryService(db)
    try:
        return await service.list_versions(patient_id)

    except SQLAlchemyError as e:
        raise _store_unavailable("list_versions_store_error", patient_id, e)

    except Exception as e:
        raise _unexpected("list_versions_error", patient_id, e, "retrieving versions")


@router.post("/{patient_id}/versions/renumber", response_model=RenumberResultSchema)
async def renumber_versions(
    patient_id: str,
    db: AsyncSession = Depends(get_db),
):
    """Restore 1..N numbering of a patient's versions after a failed renumber."""
    service = ReportHistoryService(db)
    try:
        result = await service.renumber(patient_id)
        logger.log_info(
            {
                "event": "renumber_requested",
                "patient_id": patient_id,
                "updated": result.updated,
            }
        )
        return result

    except SQLAlchemyError as e:
        raise _store_unavailable("renumber_store_error", patient_id, e)

    except Exception as e:
        raise _unexpected("renumber_error", patient_id, e, "renumbering versions")


@router.get(
    "/{patient_id}/versions/{version_id}", response_model=ReportVersionDetailSchema
)
async def view_version(
    patient_id: str,
    version_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
):
    """A stored version merged over the current report, read only."""
    service = ReportHistoryService(db)
    try:
        return await service.view_version(patient_id, version_id)

    except HTTPException:
        raise

    except SQLAlchemyError as e:
        raise _store_unavailable("view_version_store_error", patient_id, e)

    except Exception as e:
        raise _unexpected("view_version_error", patient_id, e, "retrieving version")


@router.post(
    "/{patient_id}/versions/{version_id}/restore", response_model=RestoreResultSchema
)
async def restore_version(
    patient_id: str,
    version_id: uuid.UUID,
    restore_data: RestoreVersionSchema,
    db: AsyncSession = Depends(get_db),
):
    """
    Make a stored version the live report.

    The live report, if it has content, is first kept as a new version so
    the restore can be undone.
    """
    service = ReportHistoryService(db)
    try:
        return await service.restore_version(
            patient_id, version_id, restore_data.performed_by
        )

    except HTTPException:
        raise

    except SQLAlchemyError as e:
        raise _store_unavailable("restore_version_store_error", patient_id, e)

    except Exception as e:
        raise _unexpected("restore_version_error", patient_id, e, "restoring version")


@router.delete(
    "/{patient_id}/versions/{version_id}", response_model=DeleteVersionResultSchema
)
async def delete_version(
    patient_id: str,
    version_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
):
    """Delete a version; the remaining versions are renumbered 1..N."""
    service = ReportHistoryService(db)
    try:
        return await service.delete_version(patient_id, version_id)

    except HTTPException:
        raise

    except SQLAlchemyError as e:
        raise _store_unavailable("delete_version_store_error", patient_id, e)

    except Exception as e:
        raise _unexpected("delete_version_error", patient_id, e, "deleting version")
