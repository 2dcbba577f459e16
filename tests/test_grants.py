"""Grant tests — grants, items, position slots, hub grant rules, capacity summary."""

from __future__ import annotations

import uuid
from decimal import Decimal

import pytest

from hrms.common.constants import Organization
from hrms.common.exceptions import (
    BusinessRuleException,
    ConflictError,
    NotFoundException,
    ValidationException,
)
from hrms.funding.schemas import AllocationItemIn, FundingAllocationBatchCreate
from hrms.funding.service import FundingAllocationService
from hrms.grants.schemas import GrantCreate, GrantItemUpdate, GrantUpdate
from hrms.grants.service import GrantService

BASE = "/api/v1/grants"


def _grant_payload(**overrides) -> dict:
    payload = {
        "code": "S0045",
        "name": "Malaria elimination",
        "organization": "SMRU",
        "start_date": "2025-01-01",
        "end_date": "2026-12-31",
        "items": [
            {
                "grant_position": "Field Worker",
                "grant_salary": "18000",
                "grant_level_of_effort": "0.5",
                "grant_position_number": 3,
                "budgetline_code": "BL-01",
            },
        ],
    }
    payload.update(overrides)
    return payload


# ═════════════════════════════════════════════════════════════════════
# GRANTS (HTTP)
# ═════════════════════════════════════════════════════════════════════


class TestGrantEndpoints:

    async def test_create_with_items_and_slots(self, client, hr_headers):
        resp = await client.post(BASE, json=_grant_payload(), headers=hr_headers)
        assert resp.status_code == 201
        data = resp.json()["data"]
        assert data["code"] == "S0045"
        assert len(data["items"]) == 1

        item_id = data["items"][0]["id"]
        resp = await client.get(f"{BASE}/items/{item_id}", headers=hr_headers)
        slots = resp.json()["data"]["slots"]
        assert [s["slot_number"] for s in slots] == [1, 2, 3]
        assert {s["budgetline_code"] for s in slots} == {"BL-01"}

    async def test_duplicate_code_conflict(self, client, hr_headers, test_grant):
        resp = await client.post(BASE, json=_grant_payload(code="S0031"), headers=hr_headers)
        assert resp.status_code == 409

    async def test_end_before_start_422(self, client, hr_headers):
        resp = await client.post(
            BASE, json=_grant_payload(start_date="2026-01-01", end_date="2025-01-01"), headers=hr_headers,
        )
        assert resp.status_code == 422

    async def test_level_of_effort_is_fraction(self, client, hr_headers):
        payload = _grant_payload()
        payload["items"][0]["grant_level_of_effort"] = "50"
        resp = await client.post(BASE, json=payload, headers=hr_headers)
        assert resp.status_code == 422

    async def test_get_by_code(self, client, hr_headers, test_grant):
        resp = await client.get(f"{BASE}/by-code/S0031", headers=hr_headers)
        assert resp.status_code == 200
        assert resp.json()["data"]["items"][0]["grant_position"] == "Medic"

    async def test_list_search_and_filter(self, client, hr_headers, test_grant, hub_grants):
        resp = await client.get(BASE, params={"organization": "BHF"}, headers=hr_headers)
        assert [g["code"] for g in resp.json()["data"]] == ["B0000"]

        resp = await client.get(BASE, params={"search": "S0031"}, headers=hr_headers)
        assert [g["code"] for g in resp.json()["data"]] == ["S0031"]

    async def test_employee_cannot_read_grants(self, client, auth_headers):
        resp = await client.get(BASE, headers=auth_headers)
        assert resp.status_code == 403

    async def test_positions_summary(self, client, db, hr_headers, test_grant, test_employment):
        grant, item = test_grant
        await FundingAllocationService.create_batch(
            db,
            FundingAllocationBatchCreate(
                employment_id=test_employment["id"],
                allocations=[AllocationItemIn(grant_item_id=item.id, fte=Decimal("100"))],
            ),
        )

        resp = await client.get(f"{BASE}/{grant.id}/positions", headers=hr_headers)
        summary = resp.json()["data"]
        assert (summary["total_slots"], summary["occupied"], summary["available"]) == (2, 1, 1)


# ═════════════════════════════════════════════════════════════════════
# HUB GRANTS
# ═════════════════════════════════════════════════════════════════════


class TestHubGrants:

    async def test_one_hub_grant_per_organization(self, db, hub_grants):
        with pytest.raises(ValidationException) as exc:
            await GrantService.create_grant(
                db,
                GrantCreate(code="S9999", name="Second hub", organization=Organization.SMRU, is_hub_grant=True),
            )
        assert "is_hub_grant" in exc.value.errors

    async def test_hub_lookup(self, db, hub_grants):
        hub = await GrantService.hub_grant_for(db, Organization.BHF)
        assert hub.code == "B0000"

    async def test_promote_when_hub_exists_rejected(self, db, hub_grants, test_grant):
        grant, _ = test_grant
        with pytest.raises(ValidationException):
            await GrantService.update_grant(db, grant.id, GrantUpdate(is_hub_grant=True))


# ═════════════════════════════════════════════════════════════════════
# ITEMS / SLOTS
# ═════════════════════════════════════════════════════════════════════


class TestGrantItems:

    async def test_duplicate_position_and_budgetline_rejected(self, client, hr_headers, test_grant):
        grant, _ = test_grant
        resp = await client.post(
            f"{BASE}/items",
            json={"grant_id": str(grant.id), "grant_position": "Medic", "budgetline_code": "BL-S0031"},
            headers=hr_headers,
        )
        assert resp.status_code == 422
        assert "grant_position" in resp.json()["errors"]

    async def test_same_position_other_budgetline_allowed(self, client, hr_headers, test_grant):
        grant, _ = test_grant
        resp = await client.post(
            f"{BASE}/items",
            json={"grant_id": str(grant.id), "grant_position": "Medic", "budgetline_code": "BL-OTHER"},
            headers=hr_headers,
        )
        assert resp.status_code == 201
        assert len(resp.json()["data"]["slots"]) == 1

    async def test_grow_and_shrink_slots(self, db, test_grant):
        _, item = test_grant
        await GrantService.update_item(db, item.id, GrantItemUpdate(grant_position_number=4))
        assert [s.slot_number for s in await GrantService.list_slots(db, item.id)] == [1, 2, 3, 4]

        await GrantService.update_item(db, item.id, GrantItemUpdate(grant_position_number=1))
        assert [s.slot_number for s in await GrantService.list_slots(db, item.id)] == [1]

    async def test_shrink_keeps_occupied_slot(self, db, test_grant, test_employment):
        _, item = test_grant
        await FundingAllocationService.create_batch(
            db,
            FundingAllocationBatchCreate(
                employment_id=test_employment["id"],
                allocations=[AllocationItemIn(grant_item_id=item.id, fte=Decimal("100"))],
            ),
        )
        # 2 slots, 1 occupied: shrinking to 1 keeps the occupied slot
        await GrantService.update_item(db, item.id, GrantItemUpdate(grant_position_number=1))
        allocation = (await FundingAllocationService.active_for_employment(db, test_employment["id"]))[0]
        remaining = await GrantService.list_slots(db, item.id)
        assert [s.id for s in remaining] == [allocation.position_slot_id]

    async def test_delete_referenced_item_refused(self, db, test_grant, test_employment):
        _, item = test_grant
        await FundingAllocationService.create_batch(
            db,
            FundingAllocationBatchCreate(
                employment_id=test_employment["id"],
                allocations=[AllocationItemIn(grant_item_id=item.id, fte=Decimal("100"))],
            ),
        )
        with pytest.raises(BusinessRuleException):
            await GrantService.delete_item(db, item.id)

    async def test_reference_rows(self, db, test_grant):
        rows = await GrantService.item_reference_rows(db)
        assert len(rows) == 1
        assert rows[0]["grant_code"] == "S0031"
        assert rows[0]["available"] == 2


# ═════════════════════════════════════════════════════════════════════
# DELETE
# ═════════════════════════════════════════════════════════════════════


class TestDeleteGrant:

    async def test_delete_with_active_allocation_refused(self, db, test_grant, test_employment):
        grant, item = test_grant
        await FundingAllocationService.create_batch(
            db,
            FundingAllocationBatchCreate(
                employment_id=test_employment["id"],
                allocations=[AllocationItemIn(grant_item_id=item.id, fte=Decimal("100"))],
            ),
        )
        with pytest.raises(BusinessRuleException):
            await GrantService.delete_grant(db, grant.id)

    async def test_delete_unused_grant(self, client, hr_headers, test_grant):
        grant, _ = test_grant
        resp = await client.delete(f"{BASE}/{grant.id}", headers=hr_headers)
        assert resp.status_code == 200

        resp = await client.get(f"{BASE}/{grant.id}", headers=hr_headers)
        assert resp.status_code == 404

    async def test_delete_unknown(self, db):
        with pytest.raises(NotFoundException):
            await GrantService.delete_grant(db, uuid.uuid4())

    async def test_code_rename_conflict(self, db, test_grant, hub_grants):
        grant, _ = test_grant
        with pytest.raises(ConflictError):
            await GrantService.update_grant(db, grant.id, GrantUpdate(code="S0000"))
