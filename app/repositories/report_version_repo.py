from typing import List, Optional, Sequence, Tuple
import uuid
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from app.models.report_model import ReportVersion
from app.repositories.ordered_query import OrderedFetcher


class ReportVersionRepository:
    """Repository layer for report version data access."""

    def __init__(self, db: AsyncSession, fetcher: Optional[OrderedFetcher] = None):
        self.db = db
        self.fetcher = fetcher or OrderedFetcher(db)

    def _patient_versions(self, patient_id: str):
        return (
            select(ReportVersion)
            .where(ReportVersion.patient_id == patient_id)
            .execution_options(populate_existing=True)
        )

    async def create_version(self, version: ReportVersion) -> ReportVersion:
        """Create a new report version."""
        self.db.add(version)
        await self.db.commit()
        await self.db.refresh(version)
        return version

    async def get_version_by_id(self, version_id: uuid.UUID) -> Optional[ReportVersion]:
        """Get report version by ID."""
        result = await self.db.execute(
            select(ReportVersion).where(ReportVersion.id == version_id)
        )
        return result.scalars().first()

    async def get_latest_version(self, patient_id: str) -> Optional[ReportVersion]:
        """Highest-numbered version for the patient."""
        rows = await self.fetcher.fetch(
            self._patient_versions(patient_id),
            [ReportVersion.version],
            capability="report_versions_by_version_desc",
            descending=True,
            limit=1,
        )
        return rows[0] if rows else None

    async def get_versions_ascending(self, patient_id: str) -> List[ReportVersion]:
        """All versions for the patient, oldest first; ties keep creation order."""
        return await self.fetcher.fetch(
            self._patient_versions(patient_id),
            [ReportVersion.version, ReportVersion.created_at],
            capability="report_versions_by_version_asc",
        )

    async def get_versions_descending(self, patient_id: str) -> List[ReportVersion]:
        """All versions for the patient, most recent first."""
        return await self.fetcher.fetch(
            self._patient_versions(patient_id),
            [ReportVersion.version, ReportVersion.created_at],
            capability="report_versions_by_version_desc",
            descending=True,
        )

    async def apply_version_numbers(
        self, changes: Sequence[Tuple[ReportVersion, int]]
    ) -> None:
        """Write new version numbers for several versions in one atomic batch."""
        for version, number in changes:
            version.version = number
            self.db.add(version)
        await self.db.commit()

    async def delete_version(self, version: ReportVersion) -> None:
        """Delete a report version."""
        await self.db.delete(version)
        await self.db.commit()
