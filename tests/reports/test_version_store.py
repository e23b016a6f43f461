"""
Version Store Tests

Snapshot numbering, renumbering after deletes, restore and the ordering
fallback used when the store cannot order a query.
"""
import uuid

import pytest
from fastapi import HTTPException
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.report_model import ReportVersion
from app.repositories.ordered_query import OrderedFetcher
from app.repositories.report_version_repo import ReportVersionRepository
from app.services.report_version_service import ReportVersionService


def _no_ordering(*args, **kwargs):
    raise OperationalError("SELECT ... ORDER BY version", {}, Exception("index missing"))


async def _seed_versions(db: AsyncSession, patient_id: str, numbers):
    """Insert versions with the given numbers; data records the original number."""
    for number in numbers:
        db.add(
            ReportVersion(
                patient_id=patient_id,
                version=number,
                report_data={"chief_complaint": f"v{number}"},
                created_by="Dr. Rao",
            )
        )
        await db.commit()


async def _numbers_and_data(db: AsyncSession, patient_id: str):
    versions = await ReportVersionRepository(db).get_versions_ascending(patient_id)
    return [(v.version, v.report_data["chief_complaint"]) for v in versions]


@pytest.mark.asyncio
@pytest.mark.unit
class TestSaveSnapshot:
    """Writing new versions."""

    async def test_empty_content_creates_no_version(self, db_session: AsyncSession):
        service = ReportVersionService(db_session)

        version = await service.save_snapshot("P-001", {"chief_complaint": " "}, "Dr. Rao")

        assert version is None
        assert await service.list_versions("P-001") == []

    async def test_versions_are_numbered_sequentially(self, db_session: AsyncSession):
        service = ReportVersionService(db_session)

        first = await service.save_snapshot("P-001", {"chief_complaint": "a"}, "Dr. Rao")
        second = await service.save_snapshot("P-001", {"chief_complaint": "b"}, None)

        assert first.version == 1
        assert second.version == 2
        assert second.created_by == "Unknown"

    async def test_numbering_is_per_patient(self, db_session: AsyncSession):
        service = ReportVersionService(db_session)
        await service.save_snapshot("P-001", {"chief_complaint": "a"}, "Dr. Rao")

        other = await service.save_snapshot("P-002", {"chief_complaint": "b"}, "Dr. Rao")

        assert other.version == 1

    async def test_snapshot_keeps_only_report_fields(self, db_session: AsyncSession):
        service = ReportVersionService(db_session)

        version = await service.save_snapshot(
            "P-001",
            {"chief_complaint": "a", "remaining_sessions": 3},
            "Dr. Rao",
        )

        assert version.report_data == {"chief_complaint": "a"}

    async def test_client_sorted_strategy(self, db_session: AsyncSession):
        fetcher = OrderedFetcher(db_session, strategy="client_sorted")
        service = ReportVersionService(db_session, fetcher=fetcher)
        await _seed_versions(db_session, "P-001", [2, 1, 3])

        version = await service.save_snapshot("P-001", {"chief_complaint": "x"}, "Dr. Rao")

        assert version.version == 4

    async def test_falls_back_when_ordering_unavailable(
        self, db_session: AsyncSession, monkeypatch
    ):
        monkeypatch.setattr(OrderedFetcher, "_fetch_server_ordered", _no_ordering)
        service = ReportVersionService(db_session)

        first = await service.save_snapshot("P-001", {"chief_complaint": "a"}, "Dr. Rao")
        second = await service.save_snapshot("P-001", {"chief_complaint": "b"}, "Dr. Rao")

        assert (first.version, second.version) == (1, 2)
        assert not OrderedFetcher.is_ordering_available("report_versions_by_version_desc")

    async def test_server_ordered_strategy_does_not_fall_back(
        self, db_session: AsyncSession, monkeypatch
    ):
        monkeypatch.setattr(OrderedFetcher, "_fetch_server_ordered", _no_ordering)
        fetcher = OrderedFetcher(db_session, strategy="server_ordered")
        service = ReportVersionService(db_session, fetcher=fetcher)

        with pytest.raises(OperationalError):
            await service.save_snapshot("P-001", {"chief_complaint": "a"}, "Dr. Rao")


@pytest.mark.asyncio
@pytest.mark.unit
class TestRenumbering:
    """Keeping version numbers contiguous."""

    async def test_contiguous_history_is_not_rewritten(self, db_session: AsyncSession):
        await _seed_versions(db_session, "P-001", [1, 2, 3])

        result = await ReportVersionService(db_session).renumber_sequentially("P-001")

        assert result.total_versions == 3
        assert result.updated == 0

    async def test_gaps_are_closed_in_order(self, db_session: AsyncSession):
        await _seed_versions(db_session, "P-001", [1, 4, 7])

        result = await ReportVersionService(db_session).renumber_sequentially("P-001")

        assert result.updated == 2
        assert await _numbers_and_data(db_session, "P-001") == [
            (1, "v1"),
            (2, "v4"),
            (3, "v7"),
        ]

    async def test_duplicates_are_resolved(self, db_session: AsyncSession):
        await _seed_versions(db_session, "P-001", [1, 3, 3, 5])

        await ReportVersionService(db_session).renumber_sequentially("P-001")

        numbers = [n for n, _ in await _numbers_and_data(db_session, "P-001")]
        assert numbers == [1, 2, 3, 4]

    async def test_renumber_with_client_sorting(
        self, db_session: AsyncSession, monkeypatch
    ):
        monkeypatch.setattr(OrderedFetcher, "_fetch_server_ordered", _no_ordering)
        await _seed_versions(db_session, "P-001", [5, 2, 9])

        await ReportVersionService(db_session).renumber_sequentially("P-001")

        assert await _numbers_and_data(db_session, "P-001") == [
            (1, "v2"),
            (2, "v5"),
            (3, "v9"),
        ]


@pytest.mark.asyncio
@pytest.mark.unit
class TestDeleteVersion:
    """Deleting a version renumbers the rest."""

    async def test_delete_middle_version(self, db_session: AsyncSession):
        await _seed_versions(db_session, "P-001", [1, 2, 3])
        service = ReportVersionService(db_session)
        versions = await ReportVersionRepository(db_session).get_versions_ascending("P-001")

        result = await service.delete_version("P-001", versions[1].id)

        assert result.deleted_version == 2
        assert result.renumbered is True
        assert [v.version for v in result.versions] == [2, 1]
        assert await _numbers_and_data(db_session, "P-001") == [(1, "v1"), (2, "v3")]

    async def test_any_delete_leaves_contiguous_sequence(self, db_session: AsyncSession):
        for index in range(4):
            patient_id = f"P-{index}"
            await _seed_versions(db_session, patient_id, [1, 2, 3, 4])
            versions = await ReportVersionRepository(db_session).get_versions_ascending(
                patient_id
            )
            expected = [f"v{n}" for n in (1, 2, 3, 4) if n != index + 1]

            await ReportVersionService(db_session).delete_version(
                patient_id, versions[index].id
            )

            remaining = await _numbers_and_data(db_session, patient_id)
            assert [n for n, _ in remaining] == [1, 2, 3]
            assert [d for _, d in remaining] == expected

    async def test_version_of_other_patient_is_not_found(self, db_session: AsyncSession):
        await _seed_versions(db_session, "P-002", [1])
        versions = await ReportVersionRepository(db_session).get_versions_ascending("P-002")

        with pytest.raises(HTTPException) as exc_info:
            await ReportVersionService(db_session).delete_version("P-001", versions[0].id)

        assert exc_info.value.status_code == 404

    async def test_failed_renumber_keeps_delete(
        self, db_session: AsyncSession, monkeypatch
    ):
        await _seed_versions(db_session, "P-001", [1, 2, 3])
        versions = await ReportVersionRepository(db_session).get_versions_ascending("P-001")
        service = ReportVersionService(db_session)

        async def broken_batch(self, changes):
            raise OperationalError("UPDATE report_versions", {}, Exception("store down"))

        with monkeypatch.context() as m:
            m.setattr(ReportVersionRepository, "apply_version_numbers", broken_batch)
            result = await service.delete_version("P-001", versions[0].id)

        assert result.renumbered is False
        assert sorted(v.version for v in result.versions) == [2, 3]

        retry = await service.renumber_sequentially("P-001")

        assert retry.updated == 2
        assert await _numbers_and_data(db_session, "P-001") == [(1, "v2"), (2, "v3")]


@pytest.mark.asyncio
@pytest.mark.unit
class TestRestoreVersion:
    """Restoring never loses the live report."""

    async def test_restore_preserves_live_state(
        self, db_session: AsyncSession, make_patient, reload_patient
    ):
        live = {"chief_complaint": "current", "vas_scale": 2}
        await make_patient(report_data=live)
        await _seed_versions(db_session, "P-001", [1, 2])
        versions = await ReportVersionRepository(db_session).get_versions_ascending("P-001")

        result = await ReportVersionService(db_session).restore_version(
            "P-001", versions[0].id, "Dr. Rao"
        )

        assert result.restored_version == 1
        assert result.preserved_as_version == 3
        assert result.report_data == {"chief_complaint": "v1"}
        assert (await reload_patient()).report_data == {"chief_complaint": "v1"}

        newest = result.versions[0]
        assert newest.version == 3
        assert newest.restored_from == 1
        assert newest.report_data == live

    async def test_restore_over_empty_report_adds_no_version(
        self, db_session: AsyncSession, make_patient
    ):
        await make_patient(report_data={})
        await _seed_versions(db_session, "P-001", [1])
        versions = await ReportVersionRepository(db_session).get_versions_ascending("P-001")

        result = await ReportVersionService(db_session).restore_version(
            "P-001", versions[0].id, "Dr. Rao"
        )

        assert result.preserved_as_version is None
        assert [v.version for v in result.versions] == [1]

    async def test_restore_missing_version(
        self, db_session: AsyncSession, make_patient
    ):
        await make_patient()

        with pytest.raises(HTTPException) as exc_info:
            await ReportVersionService(db_session).restore_version(
                "P-001", uuid.uuid4(), "Dr. Rao"
            )

        assert exc_info.value.status_code == 404
