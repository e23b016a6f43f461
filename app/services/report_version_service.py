from typing import Any, Dict, List, Mapping, Optional
import uuid
from fastapi import HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.utils import LoggerMixin
from app.models.report_model import ReportVersion
from app.repositories.ordered_query import OrderedFetcher
from app.repositories.patient_repo import PatientRepository
from app.repositories.report_version_repo import ReportVersionRepository
from app.schemas.report_schemas import (
    DeleteVersionResultSchema,
    RenumberResultSchema,
    ReportVersionResponseSchema,
    RestoreResultSchema,
    extract_report_fields,
    has_report_content,
)


class ReportVersionService(LoggerMixin):
    """
    Append-only history of a patient's report content.

    Versions for a patient are numbered 1..N. Numbering is assigned as
    ``max + 1`` on write and repaired by :meth:`renumber_sequentially` after
    a delete.
    """

    def __init__(self, db: AsyncSession, fetcher: Optional[OrderedFetcher] = None):
        super().__init__()
        self.db = db
        self.repo = ReportVersionRepository(db, fetcher)
        self.patient_repo = PatientRepository(db)

    # ============= Snapshots =============
    async def next_version_number(self, patient_id: str) -> int:
        latest = await self.repo.get_latest_version(patient_id)
        return (latest.version if latest else 0) + 1

    async def save_snapshot(
        self,
        patient_id: str,
        current_data: Optional[Mapping[str, Any]],
        author: Optional[str],
        patient_name: Optional[str] = None,
        restored_from: Optional[int] = None,
    ) -> Optional[ReportVersion]:
        """
        Store the given report content as the patient's next version.

        Returns None without writing anything when the content has no
        filled-in report field.
        """
        if not has_report_content(current_data):
            self.log_debug({"event": "snapshot_skipped_empty", "patient_id": patient_id})
            return None

        number = await self.next_version_number(patient_id)
        version = ReportVersion(
            patient_id=patient_id,
            patient_name=patient_name,
            version=number,
            report_data=extract_report_fields(current_data),
            created_by=author or "Unknown",
            restored_from=restored_from,
        )
        version = await self.repo.create_version(version)

        self.log_info(
            {
                "event": "snapshot_saved",
                "patient_id": patient_id,
                "version": number,
                "restored_from": restored_from,
            }
        )
        return version

    # ============= Renumbering =============
    async def renumber_sequentially(self, patient_id: str) -> RenumberResultSchema:
        """
        Rewrite version numbers so they run 1..N in their current order.

        Only versions whose number changes are written, in one commit.
        Calling this on an already contiguous history writes nothing.
        """
        versions = await self.repo.get_versions_ascending(patient_id)
        changes = [
            (version, position)
            for position, version in enumerate(versions, start=1)
            if version.version != position
        ]

        if changes:
            await self.repo.apply_version_numbers(changes)
            self.log_info(
                {
                    "event": "versions_renumbered",
                    "patient_id": patient_id,
                    "total": len(versions),
                    "updated": len(changes),
                }
            )

        return RenumberResultSchema(
            patient_id=patient_id,
            total_versions=len(versions),
            updated=len(changes),
        )

    # ============= History operations =============
    async def get_patient_version(
        self, patient_id: str, version_id: uuid.UUID
    ) -> ReportVersion:
        version = await self.repo.get_version_by_id(version_id)
        if not version or version.patient_id != patient_id:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Report version not found",
            )
        return version

    async def list_versions(self, patient_id: str) -> List[ReportVersionResponseSchema]:
        """Versions for the patient, most recent first."""
        versions = await self.repo.get_versions_descending(patient_id)
        return [ReportVersionResponseSchema.model_validate(v) for v in versions]

    async def delete_version(
        self, patient_id: str, version_id: uuid.UUID
    ) -> DeleteVersionResultSchema:
        """
        Delete one version, then renumber the rest.

        The delete stands even if renumbering fails; ``renumbered`` is then
        False and renumbering can be re-run later.
        """
        version = await self.get_patient_version(patient_id, version_id)
        deleted_number = version.version

        await self.repo.delete_version(version)
        self.log_info(
            {
                "event": "version_deleted",
                "patient_id": patient_id,
                "version": deleted_number,
            }
        )

        renumbered = True
        try:
            await self.renumber_sequentially(patient_id)
        except SQLAlchemyError:
            await self.db.rollback()
            renumbered = False
            self.log_error(
                {"event": "renumber_failed", "patient_id": patient_id},
                exc_info=True,
            )

        return DeleteVersionResultSchema(
            patient_id=patient_id,
            deleted_version=deleted_number,
            renumbered=renumbered,
            versions=await self.list_versions(patient_id),
        )

    async def restore_version(
        self, patient_id: str, version_id: uuid.UUID, author: Optional[str]
    ) -> RestoreResultSchema:
        """
        Make a stored version the live report.

        A non-empty live report is first kept as a new trailing version
        tagged with ``restored_from``, so it can be restored in turn.
        """
        patient = await self.patient_repo.get_patient_by_patient_id(patient_id)
        if not patient:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Patient not found",
            )
        target = await self.get_patient_version(patient_id, version_id)
        target_number = target.version
        target_data: Dict[str, Any] = extract_report_fields(target.report_data)

        preserved = await self.save_snapshot(
            patient_id,
            patient.report_data,
            author,
            patient_name=patient.name,
            restored_from=target_number,
        )

        # Snapshotting may roll the session back; reload before writing
        patient = await self.patient_repo.get_patient_by_patient_id(patient_id)
        patient.report_data = target_data
        patient = await self.patient_repo.update_patient(patient)

        self.log_info(
            {
                "event": "version_restored",
                "patient_id": patient_id,
                "version": target_number,
                "preserved_as": preserved.version if preserved else None,
            }
        )
        return RestoreResultSchema(
            patient_id=patient_id,
            restored_version=target_number,
            preserved_as_version=preserved.version if preserved else None,
            report_data=dict(patient.report_data or {}),
            versions=await self.list_versions(patient_id),
        )
