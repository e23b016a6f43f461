"""
API Route Tests

Patients, appointments, workflow and billing endpoints.
"""
import pytest
from httpx import AsyncClient

from app.schemas.appointment_schemas import AppointmentStatus


API = "/api/v1"


async def _register(client: AsyncClient, **overrides) -> dict:
    payload = {
        "patient_id": "P-001",
        "name": "Asha Verma",
        "patient_type": "DYES",
        "total_sessions_required": 5,
    }
    payload.update(overrides)
    response = await client.post(f"{API}/patients", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


async def _book(client: AsyncClient, appointment_id: str, on: str, **overrides) -> dict:
    payload = {
        "appointment_id": appointment_id,
        "patient_id": "P-001",
        "date": on,
        "time": "10:00",
        "doctor": "Dr. Rao",
    }
    payload.update(overrides)
    response = await client.post(f"{API}/appointments", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


@pytest.mark.asyncio
@pytest.mark.api
class TestPatientRoutes:
    async def test_register_patient(self, client: AsyncClient):
        data = await _register(client)

        assert data["patient_id"] == "P-001"
        assert data["status"] == "pending"
        assert data["remaining_sessions"] is None
        assert data["effective_remaining_sessions"] == 5

    async def test_register_duplicate(self, client: AsyncClient):
        await _register(client)

        response = await client.post(
            f"{API}/patients", json={"patient_id": "P-001", "name": "Someone Else"}
        )

        assert response.status_code == 409

    async def test_register_rejects_negative_total(self, client: AsyncClient):
        response = await client.post(
            f"{API}/patients",
            json={"patient_id": "P-009", "name": "Ravi", "total_sessions_required": -1},
        )

        assert response.status_code == 422

    async def test_get_patient_not_found(self, client: AsyncClient):
        response = await client.get(f"{API}/patients/NOPE")

        assert response.status_code == 404

    async def test_list_patients_by_type(self, client: AsyncClient):
        await _register(client)
        await _register(client, patient_id="P-002", patient_type="PAID")

        response = await client.get(f"{API}/patients", params={"patient_type": "PAID"})

        assert response.status_code == 200
        assert [p["patient_id"] for p in response.json()] == ["P-002"]

    async def test_admin_edit(self, client: AsyncClient):
        await _register(client)

        response = await client.patch(
            f"{API}/patients/P-001",
            json={"remaining_sessions": 2, "status": "ongoing"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["remaining_sessions"] == 2
        assert data["effective_remaining_sessions"] == 2
        assert data["status"] == "ongoing"

    async def test_resync_all(self, client: AsyncClient):
        await _register(client)

        response = await client.post(f"{API}/patients/resync")

        assert response.status_code == 200
        assert response.json()["patients_scanned"] == 1


@pytest.mark.asyncio
@pytest.mark.api
class TestAppointmentRoutes:
    async def test_book_and_list(self, client: AsyncClient):
        await _register(client)
        await _book(client, "A-1", "2026-03-02")
        await _book(client, "A-2", "2026-03-09")

        response = await client.get(f"{API}/appointments", params={"patient_id": "P-001"})

        assert response.status_code == 200
        assert [a["appointment_id"] for a in response.json()] == ["A-2", "A-1"]

    async def test_book_for_unknown_patient(self, client: AsyncClient):
        response = await client.post(
            f"{API}/appointments",
            json={"appointment_id": "A-1", "patient_id": "NOPE", "date": "2026-03-02"},
        )

        assert response.status_code == 404

    async def test_book_rejects_bad_time(self, client: AsyncClient):
        await _register(client)

        response = await client.post(
            f"{API}/appointments",
            json={
                "appointment_id": "A-1",
                "patient_id": "P-001",
                "date": "2026-03-02",
                "time": "25:00",
            },
        )

        assert response.status_code == 422

    async def test_status_change_cascades(self, client: AsyncClient):
        await _register(client)
        await _book(client, "A-1", "2026-03-02")

        response = await client.patch(
            f"{API}/appointments/A-1/status",
            json={"status": AppointmentStatus.COMPLETED.value, "performed_by": "Front Desk"},
        )

        assert response.status_code == 200
        steps = {s["step"]: s["status"] for s in response.json()["steps"]}
        assert steps == {
            "record_session_usage": "succeeded",
            "create_billing": "succeeded",
            "sweep_patient_status": "succeeded",
        }

        billing = await client.get(f"{API}/billing/patient/P-001")
        assert billing.status_code == 200
        records = billing.json()
        assert len(records) == 1
        assert records[0]["billing_id"] == "BILL-A-1"
        assert records[0]["payment_mode"] == "Auto-Paid"


@pytest.mark.asyncio
@pytest.mark.api
class TestWorkflowRoutes:
    async def test_complete_session(self, client: AsyncClient):
        await _register(client)
        await _book(client, "A-1", "2026-03-02")
        await _book(client, "A-2", "2026-03-09")

        response = await client.post(
            f"{API}/workflow/P-001/complete",
            json={"report_date": "2026-03-02", "performed_by": "Dr. Rao"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["appointment_id"] == "A-1"
        assert data["ledger"]["remaining_sessions"] == 3

        patient = (await client.get(f"{API}/patients/P-001")).json()
        assert patient["remaining_sessions"] == 3
        assert patient["status"] == "pending"

    async def test_complete_without_open_appointment(self, client: AsyncClient):
        await _register(client)

        response = await client.post(f"{API}/workflow/P-001/complete", json={})

        assert response.status_code == 200
        assert response.json()["steps"] == [
            {
                "step": "locate_appointment",
                "status": "skipped",
                "detail": "No open appointment to complete",
                "error": None,
            }
        ]

    async def test_retry_step(self, client: AsyncClient):
        await _register(client)
        await _book(client, "A-1", "2026-03-02")

        response = await client.post(
            f"{API}/workflow/P-001/retry",
            json={"step": "complete_appointment", "appointment_id": "A-1"},
        )

        assert response.status_code == 200
        assert response.json()["steps"][0]["status"] == "succeeded"

        appointment = (await client.get(f"{API}/appointments/A-1")).json()
        assert appointment["status"] == "completed"

    async def test_retry_unknown_appointment(self, client: AsyncClient):
        await _register(client)

        response = await client.post(
            f"{API}/workflow/P-001/retry",
            json={"step": "create_billing", "appointment_id": "A-404"},
        )

        assert response.status_code == 404


@pytest.mark.asyncio
@pytest.mark.api
class TestHealth:
    async def test_health(self, client: AsyncClient):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json()["database"] == "connected"
