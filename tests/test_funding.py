"""Funding allocation tests — FTE totals, capacity, slots, replacement history, preview."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from hrms.common.constants import AllocationStatus, Organization, SalaryType
from hrms.common.exceptions import BusinessRuleException, ValidationException
from hrms.employment.models import Employment
from hrms.funding.schemas import (
    AllocationItemIn,
    FundingAllocationBatchCreate,
    FundingAllocationReplace,
    FundingAllocationUpdate,
)
from hrms.funding.service import FundingAllocationService, derive_salary_context, percent_to_fraction
from hrms.core_hr.models import Employee
from tests.conftest import _create_grant, _make_employee, _make_employment

BASE = "/api/v1/funding-allocations"


async def _second_employment(db) -> dict:
    emp = _make_employee(staff_id="0002")
    db.add(Employee(**emp))
    employment = _make_employment(employee_id=emp["id"])
    db.add(Employment(**employment))
    await db.flush()
    return employment


def _split(*pairs) -> list[AllocationItemIn]:
    return [AllocationItemIn(grant_item_id=item.id, fte=Decimal(fte)) for item, fte in pairs]


# ═════════════════════════════════════════════════════════════════════
# PURE HELPERS
# ═════════════════════════════════════════════════════════════════════


class TestHelpers:

    def test_percent_to_fraction(self):
        assert percent_to_fraction(Decimal("60")) == Decimal("0.6000")
        assert percent_to_fraction(Decimal("33.33")) == Decimal("0.3333")

    def test_salary_context_switches_on_pass_date(self):
        employment = Employment(
            start_date=date(2025, 1, 1),
            pass_probation_date=date(2025, 4, 1),
            probation_salary=Decimal("20000"),
            pass_probation_salary=Decimal("25000"),
        )
        before = derive_salary_context(employment, Decimal("0.6"), date(2025, 3, 31))
        after = derive_salary_context(employment, Decimal("0.6"), date(2025, 4, 1))
        assert (before.salary_type, before.allocated_amount) == (SalaryType.probation_salary, Decimal("12000.00"))
        assert (after.salary_type, after.allocated_amount) == (SalaryType.pass_probation_salary, Decimal("15000.00"))


# ═════════════════════════════════════════════════════════════════════
# CREATE
# ═════════════════════════════════════════════════════════════════════


class TestCreateAllocations:

    async def test_split_across_grant_and_hub(self, client, hr_headers, test_employment, test_grant, hub_grants):
        _, item = test_grant
        _, hub_item = hub_grants[Organization.SMRU]
        resp = await client.post(
            BASE,
            json={
                "employment_id": str(test_employment["id"]),
                "allocations": [
                    {"grant_item_id": str(item.id), "fte": "60"},
                    {"grant_item_id": str(hub_item.id), "fte": "40"},
                ],
            },
            headers=hr_headers,
        )
        assert resp.status_code == 201
        rows = {r["grant_item_id"]: r for r in resp.json()["data"]}
        project, hub = rows[str(item.id)], rows[str(hub_item.id)]

        assert Decimal(project["fte"]) == Decimal("60")
        assert project["allocation_type"] == "grant"
        assert Decimal(project["allocated_amount"]) == Decimal("12000.00")
        assert project["salary_type"] == "probation_salary"
        assert project["start_date"] == "2025-01-01"
        assert project["position_slot_id"] is not None

        assert hub["allocation_type"] == "org_funded"
        assert Decimal(hub["allocated_amount"]) == Decimal("8000.00")

    async def test_total_must_be_exactly_100(self, client, hr_headers, test_employment, test_grant, hub_grants):
        _, item = test_grant
        _, hub_item = hub_grants[Organization.SMRU]
        resp = await client.post(
            BASE,
            json={
                "employment_id": str(test_employment["id"]),
                "allocations": [
                    {"grant_item_id": str(item.id), "fte": "60"},
                    {"grant_item_id": str(hub_item.id), "fte": "30"},
                ],
            },
            headers=hr_headers,
        )
        assert resp.status_code == 422
        assert resp.json()["errors"]["allocations"] == [
            "Total FTE of all allocations must equal exactly 100%. Current total: 90%"
        ]

    async def test_duplicate_item_rejected(self, db, test_employment, test_grant):
        _, item = test_grant
        with pytest.raises(ValidationException) as exc:
            await FundingAllocationService.create_batch(
                db,
                FundingAllocationBatchCreate(
                    employment_id=test_employment["id"],
                    allocations=_split((item, "50"), (item, "50")),
                ),
            )
        assert "allocations.1.grant_item_id" in exc.value.errors

    async def test_capacity_enforced(self, db, test_employment):
        _, item = await _create_grant(db, code="S0077", positions=1)
        await FundingAllocationService.create_batch(
            db, FundingAllocationBatchCreate(employment_id=test_employment["id"], allocations=_split((item, "100"))),
        )

        other = await _second_employment(db)
        with pytest.raises(ValidationException) as exc:
            await FundingAllocationService.create_batch(
                db, FundingAllocationBatchCreate(employment_id=other["id"], allocations=_split((item, "100"))),
            )
        message = exc.value.errors["allocations.0.grant_item_id"][0]
        assert "maximum capacity of 1" in message
        assert "Currently allocated: 1" in message

    async def test_each_allocation_takes_its_own_slot(self, db, test_employment, test_grant):
        _, item = test_grant
        first = await FundingAllocationService.create_batch(
            db, FundingAllocationBatchCreate(employment_id=test_employment["id"], allocations=_split((item, "100"))),
        )
        other = await _second_employment(db)
        second = await FundingAllocationService.create_batch(
            db, FundingAllocationBatchCreate(employment_id=other["id"], allocations=_split((item, "100"))),
        )
        assert first[0].position_slot_id != second[0].position_slot_id

    async def test_second_batch_must_use_replace(self, db, test_employment, test_grant):
        _, item = test_grant
        data = FundingAllocationBatchCreate(employment_id=test_employment["id"], allocations=_split((item, "100")))
        await FundingAllocationService.create_batch(db, data)
        with pytest.raises(BusinessRuleException):
            await FundingAllocationService.create_batch(db, data)

    async def test_inactive_employment_rejected(self, db, test_employment, test_grant):
        _, item = test_grant
        employment = await db.get(Employment, test_employment["id"])
        employment.is_active = False
        await db.flush()
        with pytest.raises(BusinessRuleException):
            await FundingAllocationService.create_batch(
                db, FundingAllocationBatchCreate(employment_id=employment.id, allocations=_split((item, "100"))),
            )


# ═════════════════════════════════════════════════════════════════════
# REPLACE / UPDATE / DELETE
# ═════════════════════════════════════════════════════════════════════


class TestReplaceAllocations:

    async def test_replace_historicizes_previous_set(self, db, test_employment, test_grant, hub_grants):
        _, item = test_grant
        _, hub_item = hub_grants[Organization.SMRU]
        await FundingAllocationService.create_batch(
            db, FundingAllocationBatchCreate(employment_id=test_employment["id"], allocations=_split((item, "100"))),
        )

        created = await FundingAllocationService.replace_for_employment(
            db,
            test_employment["id"],
            FundingAllocationReplace(
                effective_date=date(2025, 6, 1),
                allocations=_split((item, "50"), (hub_item, "50")),
            ),
        )
        assert len(created) == 2
        assert {a.salary_type for a in created} == {SalaryType.pass_probation_salary}
        assert {a.allocated_amount for a in created} == {Decimal("12500.00")}

        historical = await FundingAllocationService.list_for_employment(
            db, test_employment["id"], status=AllocationStatus.historical,
        )
        assert len(historical) == 1
        assert historical[0].end_date == date(2025, 5, 31)

    async def test_replace_on_start_date_supersedes(self, db, test_employment, test_grant, hub_grants):
        _, item = test_grant
        _, hub_item = hub_grants[Organization.SMRU]
        await FundingAllocationService.create_batch(
            db, FundingAllocationBatchCreate(employment_id=test_employment["id"], allocations=_split((item, "100"))),
        )
        await FundingAllocationService.replace_for_employment(
            db,
            test_employment["id"],
            FundingAllocationReplace(effective_date=date(2025, 1, 1), allocations=_split((hub_item, "100"))),
        )
        inactive = await FundingAllocationService.list_for_employment(
            db, test_employment["id"], status=AllocationStatus.inactive,
        )
        assert len(inactive) == 1
        assert inactive[0].end_date == inactive[0].start_date

    async def test_replace_ignores_own_slots_for_capacity(self, db, test_employment):
        _, item = await _create_grant(db, code="S0088", positions=1)
        await FundingAllocationService.create_batch(
            db, FundingAllocationBatchCreate(employment_id=test_employment["id"], allocations=_split((item, "100"))),
        )
        created = await FundingAllocationService.replace_for_employment(
            db,
            test_employment["id"],
            FundingAllocationReplace(effective_date=date(2025, 2, 1), allocations=_split((item, "100"))),
        )
        assert created[0].position_slot_id is not None

    async def test_replace_endpoint(self, client, db, hr_headers, test_employment, test_grant):
        _, item = test_grant
        await FundingAllocationService.create_batch(
            db, FundingAllocationBatchCreate(employment_id=test_employment["id"], allocations=_split((item, "100"))),
        )
        resp = await client.put(
            f"{BASE}/employments/{test_employment['id']}",
            json={"effective_date": "2025-03-01", "allocations": [{"grant_item_id": str(item.id), "fte": "100"}]},
            headers=hr_headers,
        )
        assert resp.status_code == 200
        assert resp.json()["data"][0]["start_date"] == "2025-03-01"

        resp = await client.get(
            BASE, params={"employment_id": str(test_employment["id"]), "status": "historical"}, headers=hr_headers,
        )
        assert resp.json()["pagination"]["total"] == 1


class TestUpdateDeleteAllocation:

    async def test_fte_change_must_keep_total(self, db, test_employment, test_grant, hub_grants):
        _, item = test_grant
        _, hub_item = hub_grants[Organization.SMRU]
        created = await FundingAllocationService.create_batch(
            db,
            FundingAllocationBatchCreate(
                employment_id=test_employment["id"], allocations=_split((item, "60"), (hub_item, "40")),
            ),
        )
        with pytest.raises(ValidationException) as exc:
            await FundingAllocationService.update_allocation(db, created[0].id, FundingAllocationUpdate(fte=Decimal("70")))
        assert "Resulting total: 110%" in exc.value.errors["fte"][0]

    async def test_delete_unreferenced_removes_row(self, client, db, hr_headers, test_employment, test_grant):
        _, item = test_grant
        created = await FundingAllocationService.create_batch(
            db, FundingAllocationBatchCreate(employment_id=test_employment["id"], allocations=_split((item, "100"))),
        )
        resp = await client.delete(f"{BASE}/{created[0].id}", headers=hr_headers)
        assert resp.status_code == 200
        assert resp.json()["data"] == {"deleted": True}

        resp = await client.get(f"{BASE}/{created[0].id}", headers=hr_headers)
        assert resp.status_code == 404


# ═════════════════════════════════════════════════════════════════════
# PREVIEW
# ═════════════════════════════════════════════════════════════════════


class TestPreview:

    async def test_preview_writes_nothing(self, client, db, hr_headers, test_employment, test_grant):
        _, item = test_grant
        resp = await client.post(
            f"{BASE}/calculate-preview",
            json={
                "employment_id": str(test_employment["id"]),
                "effective_date": "2025-05-01",
                "allocations": [{"grant_item_id": str(item.id), "fte": "100"}],
            },
            headers=hr_headers,
        )
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["total_allocated_amount"] == "25000.00"
        assert data["allocations"][0]["grant_code"] == "S0031"
        assert data["allocations"][0]["salary_type"] == "pass_probation_salary"

        assert await FundingAllocationService.active_for_employment(db, test_employment["id"]) == []

    async def test_preview_validates_total(self, client, hr_headers, test_employment, test_grant):
        _, item = test_grant
        resp = await client.post(
            f"{BASE}/calculate-preview",
            json={
                "employment_id": str(test_employment["id"]),
                "allocations": [{"grant_item_id": str(item.id), "fte": "99.5"}],
            },
            headers=hr_headers,
        )
        assert resp.status_code == 422
        assert "Current total: 99.5%" in resp.json()["errors"]["allocations"][0]
