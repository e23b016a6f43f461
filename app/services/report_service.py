from typing import List
import uuid
from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.utils import LoggerMixin
from app.repositories.patient_repo import PatientRepository
from app.schemas.report_schemas import (
    DeleteVersionResultSchema,
    RenumberResultSchema,
    ReportSaveSchema,
    ReportVersionDetailSchema,
    ReportVersionResponseSchema,
    RestoreResultSchema,
    SaveReportResultSchema,
    dump_report_content,
)
from app.services.completion_workflow import CompletionWorkflow
from app.services.report_version_service import ReportVersionService
from app.services.session_ledger import SessionLedgerService


class ReportService(LoggerMixin):
    """Saving a patient's clinical report."""

    def __init__(self, db: AsyncSession):
        super().__init__()
        self.db = db
        self.patient_repo = PatientRepository(db)
        self.versions = ReportVersionService(db)

    async def save_report(
        self, patient_id: str, report: ReportSaveSchema
    ) -> SaveReportResultSchema:
        """
        Save new report content for a patient.

        The content being replaced is snapshotted first. When the save marks
        the session completed the completion workflow runs for the report
        date (or the consultation date); otherwise the session ledger is
        refreshed if the total is known.
        """
        patient = await self.patient_repo.get_patient_by_patient_id(patient_id)
        if not patient:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Patient not found",
            )

        snapshot = await self.versions.save_snapshot(
            patient_id,
            patient.report_data,
            report.created_by,
            patient_name=patient.name,
        )

        patient = await self.patient_repo.get_patient_by_patient_id(patient_id)
        patient.report_data = dump_report_content(report.content)
        if report.total_sessions_required is not None:
            patient.total_sessions_required = report.total_sessions_required
        patient = await self.patient_repo.update_patient(patient)
        has_total = patient.total_sessions_required is not None

        self.log_info(
            {
                "event": "report_saved",
                "patient_id": patient_id,
                "snapshot_version": snapshot.version if snapshot else None,
                "session_completed": report.session_completed,
            }
        )

        result = SaveReportResultSchema(
            patient_id=patient_id,
            snapshot_version=snapshot.version if snapshot else None,
        )
        if report.session_completed:
            report_date = report.report_date or report.content.date_of_consultation
            completion = await CompletionWorkflow(self.db).run(
                patient_id, report_date=report_date, performed_by=report.created_by
            )
            result.completion = completion
            result.ledger = completion.ledger
        elif has_total:
            result.ledger = await SessionLedgerService(self.db).record_session_usage(
                patient_id
            )
        return result


class ReportHistoryService:
    """View, restore and delete entries of a patient's report history."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.patient_repo = PatientRepository(db)
        self.versions = ReportVersionService(db)

    async def list_versions(self, patient_id: str) -> List[ReportVersionResponseSchema]:
        return await self.versions.list_versions(patient_id)

    async def view_version(
        self, patient_id: str, version_id: uuid.UUID
    ) -> ReportVersionDetailSchema:
        """A version's snapshot laid over the current report, for read-only display."""
        patient = await self.patient_repo.get_patient_by_patient_id(patient_id)
        if not patient:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Patient not found",
            )
        version = await self.versions.get_patient_version(patient_id, version_id)

        merged = {**(patient.report_data or {}), **(version.report_data or {})}
        return ReportVersionDetailSchema(
            version=ReportVersionResponseSchema.model_validate(version),
            patient_name=version.patient_name or patient.name,
            merged_report=merged,
        )

    async def restore_version(
        self, patient_id: str, version_id: uuid.UUID, performed_by: str
    ) -> RestoreResultSchema:
        return await self.versions.restore_version(patient_id, version_id, performed_by)

    async def delete_version(
        self, patient_id: str, version_id: uuid.UUID
    ) -> DeleteVersionResultSchema:
        return await self.versions.delete_version(patient_id, version_id)

    async def renumber(self, patient_id: str) -> RenumberResultSchema:
        return await self.versions.renumber_sequentially(patient_id)
