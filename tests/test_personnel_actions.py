"""Personnel action tests — snapshot, reference numbers, four-way approval, implementation."""

from __future__ import annotations

import uuid
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import select

from hrms.common.constants import (
    AllocationStatus,
    PersonnelActionStatus,
    PersonnelActionType,
    PersonnelApprovalType,
    TransferType,
    UserRole,
)
from hrms.common.exceptions import BusinessRuleException, ValidationException
from hrms.core_hr.models import Department, Position
from hrms.employment.models import Employment, EmploymentHistory
from hrms.employment.probation import local_today
from hrms.funding.models import EmployeeFundingAllocation
from hrms.funding.schemas import AllocationItemIn, FundingAllocationBatchCreate
from hrms.funding.service import FundingAllocationService
from hrms.personnel_actions.schemas import (
    PersonnelActionCreate,
    PersonnelActionUpdate,
    PersonnelApprovalRequest,
)
from hrms.personnel_actions.service import PersonnelActionService, action_constants
from tests.conftest import _make_department, _make_position, auth_headers_for

BASE = "/api/v1/personnel-actions"


async def _raise(db, employment_id, action_type=PersonnelActionType.fiscal_increment, **fields):
    return await PersonnelActionService.create_action(
        db,
        PersonnelActionCreate(
            employment_id=employment_id,
            effective_date=fields.pop("effective_date", date(2025, 6, 1)),
            action_type=action_type,
            **fields,
        ),
    )


async def _approve_all(db, action_id, *, skip=()):
    action = None
    for approval_type in PersonnelApprovalType:
        if approval_type in skip:
            continue
        action = await PersonnelActionService.set_approval(
            db, action_id, PersonnelApprovalRequest(approval_type=approval_type, approved=True),
        )
    return action


async def _fund_fully(db, employment_id, item):
    await FundingAllocationService.create_batch(
        db,
        FundingAllocationBatchCreate(
            employment_id=employment_id,
            allocations=[AllocationItemIn(grant_item_id=item.id, fte=Decimal("100"))],
        ),
    )


def test_constants_have_labels():
    constants = action_constants()
    assert {"value": "site_to_site", "label": "From Site to Site"} in constants["transfer_types"]
    assert [s["value"] for s in constants["statuses"]] == [s.value for s in PersonnelActionStatus]


# ═════════════════════════════════════════════════════════════════════
# CREATE
# ═════════════════════════════════════════════════════════════════════


class TestCreateAction:

    async def test_snapshot_of_current_terms(self, db, test_employment):
        action = await _raise(db, test_employment["id"], new_salary=Decimal("27000"))

        assert action.form_number == "SMRU-SF038"
        assert action.current_employee_no == "0001"
        assert action.current_position_id == test_employment["position_id"]
        assert action.current_salary == Decimal("25000")
        assert action.current_employment_date == date(2025, 1, 1)
        assert action.status == PersonnelActionStatus.pending
        assert action.is_transfer is False

    async def test_reference_numbers_are_sequential(self, db, test_employment):
        first = await _raise(db, test_employment["id"])
        second = await _raise(db, test_employment["id"])
        year = local_today().year
        assert first.reference_number == f"PA-{year}-000001"
        assert second.reference_number == f"PA-{year}-000002"

    async def test_reference_after_deletion_is_not_reused(self, db, test_employment):
        first = await _raise(db, test_employment["id"])
        second = await _raise(db, test_employment["id"])
        await PersonnelActionService.delete_action(db, first.id)

        third = await _raise(db, test_employment["id"])
        year = local_today().year
        assert third.reference_number == f"PA-{year}-000003"
        assert third.reference_number != second.reference_number

    async def test_transfer_needs_transfer_type(self, db, test_employment):
        with pytest.raises(ValidationException) as exc:
            await _raise(db, test_employment["id"], PersonnelActionType.transfer)
        assert "transfer_type" in exc.value.errors

        action = await _raise(
            db, test_employment["id"], PersonnelActionType.transfer, transfer_type=TransferType.site_to_site,
        )
        assert action.is_transfer is True

    async def test_unknown_target_position(self, db, test_employment):
        with pytest.raises(ValidationException) as exc:
            await _raise(db, test_employment["id"], new_position_id=uuid.uuid4())
        assert "new_position_id" in exc.value.errors

    async def test_creation_logged_in_history(self, db, test_employment):
        action = await _raise(db, test_employment["id"])
        reasons = (await db.execute(
            select(EmploymentHistory.change_reason).where(EmploymentHistory.employment_id == test_employment["id"])
        )).scalars().all()
        assert f"Personnel Action {action.reference_number} created: fiscal_increment" in reasons


# ═════════════════════════════════════════════════════════════════════
# APPROVAL / IMPLEMENTATION
# ═════════════════════════════════════════════════════════════════════


class TestApproval:

    async def test_partial_approval(self, db, test_employment):
        action = await _raise(db, test_employment["id"])
        action = await _approve_all(db, action.id, skip=(PersonnelApprovalType.accountant,))
        assert action.status == PersonnelActionStatus.partial_approved
        assert action.implemented_at is None

        pending = await PersonnelActionService.pending(db)
        assert [a.id for a in pending] == [action.id]

    async def test_fiscal_increment_updates_salary_and_allocations(self, db, test_employment, test_grant):
        _, item = test_grant
        await _fund_fully(db, test_employment["id"], item)
        action = await _raise(db, test_employment["id"], new_salary=Decimal("27000"))

        action = await _approve_all(db, action.id)
        assert action.status == PersonnelActionStatus.implemented

        employment = await db.get(Employment, test_employment["id"])
        assert employment.pass_probation_salary == Decimal("27000")
        allocation = (await FundingAllocationService.active_for_employment(db, employment.id))[0]
        assert allocation.allocated_amount == Decimal("27000.00")

    async def test_transfer_moves_department_and_position(self, db, test_employment):
        department = _make_department(name="Laboratory")
        position = _make_position(department_id=department["id"], title="Lab Technician")
        db.add(Department(**department))
        db.add(Position(**position))
        await db.flush()

        action = await _raise(
            db,
            test_employment["id"],
            PersonnelActionType.transfer,
            transfer_type=TransferType.internal_department,
            new_department_id=department["id"],
            new_position_id=position["id"],
        )
        await _approve_all(db, action.id)

        employment = await db.get(Employment, test_employment["id"])
        assert employment.department_id == department["id"]
        assert employment.position_id == position["id"]
        # Transfers never touch pay
        assert employment.pass_probation_salary == Decimal("25000")

    async def test_separation_ends_employment_and_funding(self, db, test_employment, test_grant):
        _, item = test_grant
        await _fund_fully(db, test_employment["id"], item)
        action = await _raise(db, test_employment["id"], PersonnelActionType.voluntary_separation)
        await _approve_all(db, action.id)

        employment = await db.get(Employment, test_employment["id"])
        assert employment.end_date == date(2025, 6, 1)
        assert employment.is_active is False
        assert await FundingAllocationService.active_for_employment(db, employment.id) == []

        statuses = (await db.execute(
            select(EmployeeFundingAllocation.status, EmployeeFundingAllocation.end_date)
            .where(EmployeeFundingAllocation.employment_id == employment.id)
        )).all()
        assert statuses == [(AllocationStatus.closed, date(2025, 6, 1))]

    async def test_future_separation_keeps_employment_active(self, db, test_employment):
        future = date(local_today().year + 1, 1, 31)
        action = await _raise(
            db, test_employment["id"], PersonnelActionType.voluntary_separation, effective_date=future,
        )
        await _approve_all(db, action.id)

        employment = await db.get(Employment, test_employment["id"])
        assert employment.end_date == future
        assert employment.is_active is True

    async def test_implemented_action_is_frozen(self, db, test_employment):
        action = await _raise(db, test_employment["id"])
        await _approve_all(db, action.id)

        with pytest.raises(BusinessRuleException):
            await PersonnelActionService.update_action(db, action.id, PersonnelActionUpdate(comments="late"))
        with pytest.raises(BusinessRuleException):
            await PersonnelActionService.set_approval(
                db, action.id, PersonnelApprovalRequest(approval_type=PersonnelApprovalType.hr, approved=False),
            )
        with pytest.raises(BusinessRuleException):
            await PersonnelActionService.delete_action(db, action.id)

    async def test_withdrawn_approval_back_to_pending(self, db, test_employment):
        action = await _raise(db, test_employment["id"])
        await PersonnelActionService.set_approval(
            db, action.id, PersonnelApprovalRequest(approval_type=PersonnelApprovalType.coo, approved=True),
        )
        action = await PersonnelActionService.set_approval(
            db, action.id, PersonnelApprovalRequest(approval_type=PersonnelApprovalType.coo, approved=False),
        )
        assert action.status == PersonnelActionStatus.pending


# ═════════════════════════════════════════════════════════════════════
# HTTP
# ═════════════════════════════════════════════════════════════════════


class TestPersonnelActionEndpoints:

    async def test_create_and_status_filter(self, client, db, hr_headers, test_employment):
        resp = await client.post(
            BASE,
            json={
                "employment_id": str(test_employment["id"]),
                "effective_date": "2025-06-01",
                "action_type": "title_change",
                "comments": "Renamed role",
            },
            headers=hr_headers,
        )
        assert resp.status_code == 201
        action_id = resp.json()["data"]["id"]

        resp = await client.patch(
            f"{BASE}/{action_id}/approve", json={"approval_type": "dept_head", "approved": True}, headers=hr_headers,
        )
        assert resp.json()["message"] == "Dept Head approval updated."

        resp = await client.get(BASE, params={"status": "partial_approved"}, headers=hr_headers)
        assert [a["id"] for a in resp.json()["data"]] == [action_id]
        resp = await client.get(BASE, params={"status": "pending"}, headers=hr_headers)
        assert resp.json()["data"] == []

    async def test_last_approval_message(self, client, db, hr_headers, test_employment):
        action = await _raise(db, test_employment["id"])
        await _approve_all(db, action.id, skip=(PersonnelApprovalType.hr,))

        resp = await client.patch(
            f"{BASE}/{action.id}/approve", json={"approval_type": "hr", "approved": True}, headers=hr_headers,
        )
        assert resp.json()["message"] == "Personnel action fully approved and implemented."
        assert resp.json()["data"]["status"] == "implemented"

    async def test_manager_reads_but_cannot_approve(self, client, db, test_employee, test_employment):
        action = await _raise(db, test_employment["id"])
        headers = await auth_headers_for(db, test_employee["id"], UserRole.manager)

        assert (await client.get(f"{BASE}/{action.id}", headers=headers)).status_code == 200
        resp = await client.patch(
            f"{BASE}/{action.id}/approve", json={"approval_type": "coo", "approved": True}, headers=headers,
        )
        assert resp.status_code == 403

    async def test_constants_before_id_route(self, client, hr_headers):
        resp = await client.get(f"{BASE}/constants", headers=hr_headers)
        assert resp.status_code == 200
        assert len(resp.json()["data"]["action_types"]) == len(PersonnelActionType)
