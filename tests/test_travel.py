"""Travel request tests — form options, validation, supervisor approval, HR acknowledgement."""

from __future__ import annotations

import pytest
from sqlalchemy import select

from hrms.common.constants import Accommodation, Transportation, TravelStatus, UserRole
from hrms.common.exceptions import BusinessRuleException, ValidationException
from hrms.notifications.models import Notification
from hrms.travel.schemas import (
    TravelAcknowledgeRequest,
    TravelApprovalRequest,
    TravelRequestCreate,
    TravelRequestUpdate,
)
from hrms.travel.service import TravelRequestService, travel_options
from tests.conftest import auth_headers_for

BASE = "/api/v1/travel-requests"

TRIP = {
    "destination": "Chiang Mai",
    "start_date": "2025-07-07",
    "to_date": "2025-07-09",
    "purpose": "Training workshop",
    "grant": "S0031",
    "transportation": "air",
    "accommodation": "smru_arrangement",
}


async def _trip(db, employee_id, **overrides):
    return await TravelRequestService.create_request(
        db, TravelRequestCreate(**{**TRIP, **overrides}), employee_id=employee_id,
    )


class TestOptions:

    def test_labels(self):
        options = travel_options()
        assert {"value": "smru_vehicle", "label": "SMRU vehicle"} in options["transportation"]
        assert [s["value"] for s in options["statuses"]] == ["pending", "supervisor_approved", "completed"]

    async def test_endpoint(self, client, auth_headers):
        resp = await client.get(f"{BASE}/options", headers=auth_headers)
        assert resp.status_code == 200
        assert len(resp.json()["data"]["accommodation"]) == len(Accommodation)


# ═════════════════════════════════════════════════════════════════════
# CREATE / UPDATE
# ═════════════════════════════════════════════════════════════════════


class TestCreateAndUpdate:

    async def test_defaults_from_current_employment(self, db, test_employee, test_employment):
        travel = await _trip(db, test_employee["id"])
        assert travel.department_id == test_employment["department_id"]
        assert travel.position_id == test_employment["position_id"]
        assert travel.status == TravelStatus.pending

    async def test_other_transportation_needs_text(self, db, test_employee):
        with pytest.raises(ValidationException) as exc:
            await _trip(db, test_employee["id"], transportation=Transportation.other)
        assert "transportation_other_text" in exc.value.errors

    async def test_end_before_start(self, db, test_employee):
        with pytest.raises(ValidationException) as exc:
            await _trip(db, test_employee["id"], to_date="2025-07-01")
        assert "to_date" in exc.value.errors

    async def test_update_checks_merged_values(self, db, test_employee):
        travel = await _trip(
            db, test_employee["id"], accommodation=Accommodation.other, accommodation_other_text="Guest house",
        )

        # Clearing the text while "other" stays selected is invalid
        with pytest.raises(ValidationException) as exc:
            await TravelRequestService.update_request(
                db, travel.id, TravelRequestUpdate(accommodation_other_text=None),
            )
        assert "accommodation_other_text" in exc.value.errors

        updated = await TravelRequestService.update_request(
            db, travel.id, TravelRequestUpdate(accommodation=Accommodation.self_arrangement, accommodation_other_text=None),
        )
        assert updated.accommodation == Accommodation.self_arrangement

    async def test_employee_files_own_request(self, client, auth_headers, test_employee):
        resp = await client.post(BASE, json=TRIP, headers=auth_headers)
        assert resp.status_code == 201
        data = resp.json()["data"]
        assert data["employee_id"] == str(test_employee["id"])
        assert data["status"] == "pending"

    async def test_employee_cannot_file_for_others(self, client, auth_headers, hr_employee):
        resp = await client.post(BASE, json={**TRIP, "employee_id": str(hr_employee["id"])}, headers=auth_headers)
        assert resp.status_code == 403


# ═════════════════════════════════════════════════════════════════════
# APPROVAL WORKFLOW
# ═════════════════════════════════════════════════════════════════════


class TestWorkflow:

    async def test_approve_then_acknowledge(self, db, test_employee):
        travel = await _trip(db, test_employee["id"])

        travel = await TravelRequestService.approve(db, travel.id, TravelApprovalRequest(approved=True))
        assert travel.status == TravelStatus.supervisor_approved
        assert travel.supervisor_approved_date is not None

        travel = await TravelRequestService.acknowledge(db, travel.id, TravelAcknowledgeRequest(remarks="Booked"))
        assert travel.status == TravelStatus.completed
        assert travel.remarks == "Booked"

        titles = (await db.execute(
            select(Notification.title).where(Notification.recipient_id == test_employee["id"])
        )).scalars().all()
        assert sorted(titles) == ["HR Acknowledged", "Supervisor Approved"]

    async def test_acknowledge_requires_supervisor_approval(self, db, test_employee):
        travel = await _trip(db, test_employee["id"])
        with pytest.raises(BusinessRuleException):
            await TravelRequestService.acknowledge(db, travel.id, TravelAcknowledgeRequest())

    async def test_rejection_clears_approval(self, db, test_employee):
        travel = await _trip(db, test_employee["id"])
        await TravelRequestService.approve(db, travel.id, TravelApprovalRequest(approved=True))
        travel = await TravelRequestService.approve(db, travel.id, TravelApprovalRequest(approved=False))
        assert travel.supervisor_approved is False
        assert travel.supervisor_approved_date is None

    async def test_acknowledged_request_is_frozen(self, db, test_employee):
        travel = await _trip(db, test_employee["id"])
        await TravelRequestService.approve(db, travel.id, TravelApprovalRequest())
        await TravelRequestService.acknowledge(db, travel.id, TravelAcknowledgeRequest())

        with pytest.raises(BusinessRuleException):
            await TravelRequestService.update_request(db, travel.id, TravelRequestUpdate(destination="Bangkok"))
        with pytest.raises(BusinessRuleException):
            await TravelRequestService.approve(db, travel.id, TravelApprovalRequest(approved=False))

    async def test_status_filter(self, client, db, hr_headers, test_employee):
        first = await _trip(db, test_employee["id"])
        await _trip(db, test_employee["id"], destination="Bangkok")
        await TravelRequestService.approve(db, first.id, TravelApprovalRequest())

        resp = await client.get(BASE, params={"status": "supervisor_approved"}, headers=hr_headers)
        assert [t["destination"] for t in resp.json()["data"]] == ["Chiang Mai"]

        resp = await client.get(BASE, params={"status": "pending"}, headers=hr_headers)
        assert [t["destination"] for t in resp.json()["data"]] == ["Bangkok"]


# ═════════════════════════════════════════════════════════════════════
# HTTP PERMISSIONS
# ═════════════════════════════════════════════════════════════════════


class TestTravelPermissions:

    async def test_manager_approves_but_cannot_acknowledge(self, client, db, test_employee, hr_employee):
        travel = await _trip(db, hr_employee["id"])
        headers = await auth_headers_for(db, test_employee["id"], UserRole.manager)

        resp = await client.post(f"{BASE}/{travel.id}/approve", json={"approved": True}, headers=headers)
        assert resp.status_code == 200
        assert resp.json()["data"]["status"] == "supervisor_approved"

        resp = await client.post(f"{BASE}/{travel.id}/acknowledge", json={}, headers=headers)
        assert resp.status_code == 403

    async def test_hr_acknowledges(self, client, db, hr_headers, test_employee):
        travel = await _trip(db, test_employee["id"])
        await TravelRequestService.approve(db, travel.id, TravelApprovalRequest())

        resp = await client.post(f"{BASE}/{travel.id}/acknowledge", json={}, headers=hr_headers)
        assert resp.status_code == 200
        assert resp.json()["data"]["hr_acknowledged"] is True

    async def test_employee_cannot_read_others_request(self, client, db, auth_headers, hr_employee):
        travel = await _trip(db, hr_employee["id"])
        resp = await client.get(f"{BASE}/{travel.id}", headers=auth_headers)
        assert resp.status_code == 403

    async def test_employee_cannot_delete_approved_request(self, client, db, auth_headers, test_employee):
        travel = await _trip(db, test_employee["id"])
        await TravelRequestService.approve(db, travel.id, TravelApprovalRequest())
        resp = await client.delete(f"{BASE}/{travel.id}", headers=auth_headers)
        assert resp.status_code == 403

    async def test_employee_deletes_own_pending_request(self, client, db, auth_headers, test_employee):
        travel = await _trip(db, test_employee["id"])
        resp = await client.delete(f"{BASE}/{travel.id}", headers=auth_headers)
        assert resp.status_code == 200
