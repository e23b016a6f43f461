"""
Report History API Tests

Saving reports and viewing, restoring and deleting versions over HTTP.
"""
import uuid

import pytest
from httpx import AsyncClient


API = "/api/v1"


@pytest.fixture
async def patient(client: AsyncClient) -> dict:
    response = await client.post(
        f"{API}/patients",
        json={"patient_id": "P-001", "name": "Asha Verma", "total_sessions_required": 5},
    )
    assert response.status_code == 201, response.text
    return response.json()


async def _save(client: AsyncClient, content: dict, **options) -> dict:
    payload = {"content": content, "created_by": "Dr. Rao"}
    payload.update(options)
    response = await client.put(f"{API}/reports/P-001", json=payload)
    assert response.status_code == 200, response.text
    return response.json()


async def _versions(client: AsyncClient) -> list:
    response = await client.get(f"{API}/reports/P-001/versions")
    assert response.status_code == 200
    return response.json()


@pytest.mark.asyncio
@pytest.mark.api
class TestReportRoutes:
    async def test_first_save_creates_no_version(self, client: AsyncClient, patient):
        result = await _save(client, {"chief_complaint": "Neck pain"})

        assert result["snapshot_version"] is None
        assert result["ledger"]["remaining_sessions"] == 4
        assert await _versions(client) == []

    async def test_each_overwrite_adds_a_version(self, client: AsyncClient, patient):
        await _save(client, {"chief_complaint": "first"})
        await _save(client, {"chief_complaint": "second"})
        result = await _save(client, {"chief_complaint": "third"})

        assert result["snapshot_version"] == 2
        versions = await _versions(client)
        assert [v["version"] for v in versions] == [2, 1]
        assert versions[0]["report_data"] == {"chief_complaint": "second"}

    async def test_view_version_merges_over_live_report(self, client: AsyncClient, patient):
        await _save(client, {"chief_complaint": "first", "advice": "rest"})
        await _save(client, {"chief_complaint": "second", "vas_scale": 4})
        version_id = (await _versions(client))[0]["id"]

        response = await client.get(f"{API}/reports/P-001/versions/{version_id}")

        assert response.status_code == 200
        data = response.json()
        assert data["patient_name"] == "Asha Verma"
        assert data["merged_report"] == {
            "chief_complaint": "first",
            "advice": "rest",
            "vas_scale": 4,
        }

    async def test_restore_keeps_live_report_as_version(self, client: AsyncClient, patient):
        await _save(client, {"chief_complaint": "first"})
        await _save(client, {"chief_complaint": "second"})
        version_id = (await _versions(client))[0]["id"]

        response = await client.post(
            f"{API}/reports/P-001/versions/{version_id}/restore",
            json={"performed_by": "Dr. Mehta"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["restored_version"] == 1
        assert data["preserved_as_version"] == 2
        assert data["report_data"] == {"chief_complaint": "first"}
        newest = data["versions"][0]
        assert newest["restored_from"] == 1
        assert newest["created_by"] == "Dr. Mehta"
        assert newest["report_data"] == {"chief_complaint": "second"}

    async def test_delete_renumbers(self, client: AsyncClient, patient):
        for label in ("a", "b", "c", "d"):
            await _save(client, {"chief_complaint": label})
        versions = await _versions(client)
        middle = next(v for v in versions if v["version"] == 2)

        response = await client.delete(f"{API}/reports/P-001/versions/{middle['id']}")

        assert response.status_code == 200
        data = response.json()
        assert data["deleted_version"] == 2
        assert data["renumbered"] is True
        assert [(v["version"], v["report_data"]["chief_complaint"]) for v in data["versions"]] == [
            (2, "c"),
            (1, "a"),
        ]

    async def test_delete_unknown_version(self, client: AsyncClient, patient):
        response = await client.delete(f"{API}/reports/P-001/versions/{uuid.uuid4()}")

        assert response.status_code == 404

    async def test_renumber_endpoint_is_noop_when_contiguous(
        self, client: AsyncClient, patient
    ):
        await _save(client, {"chief_complaint": "a"})
        await _save(client, {"chief_complaint": "b"})

        response = await client.post(f"{API}/reports/P-001/versions/renumber")

        assert response.status_code == 200
        assert response.json() == {"patient_id": "P-001", "total_versions": 1, "updated": 0}

    async def test_save_with_session_completed(self, client: AsyncClient, patient):
        await client.post(
            f"{API}/appointments",
            json={"appointment_id": "A-1", "patient_id": "P-001", "date": "2026-03-02"},
        )

        result = await _save(
            client,
            {"date_of_consultation": "2026-03-02", "chief_complaint": "Neck pain"},
            session_completed=True,
        )

        assert result["completion"]["appointment_id"] == "A-1"
        assert result["ledger"]["remaining_sessions"] == 3

    async def test_save_for_unknown_patient(self, client: AsyncClient):
        response = await client.put(
            f"{API}/reports/NOPE", json={"content": {"chief_complaint": "x"}}
        )

        assert response.status_code == 404
