"""Job offer tests — offer ids, deadline validation, endpoints."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from hrms.common.constants import OfferStatus, UserRole
from hrms.common.exceptions import ValidationException
from hrms.recruitment.schemas import JobOfferCreate, JobOfferUpdate
from hrms.recruitment.service import JobOfferService
from tests.conftest import auth_headers_for

BASE = "/api/v1/job-offers"
OFFER_DAY = date(2025, 4, 10)


async def _offer(db, name: str = "Naw Htoo", today: date = OFFER_DAY, **overrides):
    data = {
        "offer_date": date(2025, 4, 10),
        "candidate_name": name,
        "position_name": "Medic",
        "probation_salary": Decimal("18000"),
        "post_probation_salary": Decimal("20000"),
        "acceptance_deadline": date(2025, 4, 24),
        **overrides,
    }
    return await JobOfferService.create_offer(db, JobOfferCreate(**data), today=today)


class TestJobOfferService:

    async def test_offer_ids_numbered_per_day(self, db):
        first = await _offer(db)
        second = await _offer(db, name="Saw Eh")
        next_day = await _offer(db, name="Mu Paw", today=date(2025, 4, 11))

        assert first.custom_offer_id == "20250410-SMRU-BHF-0001"
        assert second.custom_offer_id == "20250410-SMRU-BHF-0002"
        assert next_day.custom_offer_id == "20250411-SMRU-BHF-0001"

    async def test_offer_id_not_reused_after_deletion(self, db):
        first = await _offer(db)
        await _offer(db, name="Saw Eh")
        await JobOfferService.delete_offer(db, first.id)

        third = await _offer(db, name="Mu Paw")
        assert third.custom_offer_id == "20250410-SMRU-BHF-0003"

    def test_deadline_not_before_offer_date(self):
        with pytest.raises(ValueError):
            JobOfferCreate(
                offer_date=date(2025, 4, 10),
                candidate_name="X",
                position_name="Medic",
                probation_salary=Decimal("1"),
                post_probation_salary=Decimal("1"),
                acceptance_deadline=date(2025, 4, 9),
            )

    async def test_update_checks_against_stored_dates(self, db):
        offer = await _offer(db)
        with pytest.raises(ValidationException) as exc:
            await JobOfferService.update_offer(db, offer.id, JobOfferUpdate(acceptance_deadline=date(2025, 4, 1)))
        assert "acceptance_deadline" in exc.value.errors

    async def test_record_acceptance(self, db):
        offer = await _offer(db)
        updated = await JobOfferService.update_offer(
            db, offer.id, JobOfferUpdate(acceptance_status=OfferStatus.accepted),
        )
        assert updated.acceptance_status == OfferStatus.accepted
        assert updated.post_probation_salary == Decimal("20000")


class TestJobOfferEndpoints:

    async def test_create_and_get_by_offer_id(self, client, hr_headers):
        resp = await client.post(
            BASE,
            json={
                "offer_date": "2025-04-10",
                "candidate_name": "Naw Htoo",
                "position_name": "Medic",
                "probation_salary": "18000",
                "post_probation_salary": "20000",
                "acceptance_deadline": "2025-04-24",
            },
            headers=hr_headers,
        )
        assert resp.status_code == 201
        data = resp.json()["data"]
        assert data["acceptance_status"] == "pending"
        assert data["custom_offer_id"].endswith("-SMRU-BHF-0001")

        resp = await client.get(f"{BASE}/by-offer-id/{data['custom_offer_id']}", headers=hr_headers)
        assert resp.status_code == 200
        assert resp.json()["data"]["id"] == data["id"]

    async def test_negative_salary_422(self, client, hr_headers):
        resp = await client.post(
            BASE,
            json={
                "offer_date": "2025-04-10",
                "candidate_name": "Naw Htoo",
                "position_name": "Medic",
                "probation_salary": "-1",
                "post_probation_salary": "20000",
                "acceptance_deadline": "2025-04-24",
            },
            headers=hr_headers,
        )
        assert resp.status_code == 422
        assert "probation_salary" in resp.json()["errors"]

    async def test_filter_and_search(self, client, db, hr_headers):
        await _offer(db)
        await _offer(db, name="Saw Eh", position_name="Driver", acceptance_status=OfferStatus.declined)

        resp = await client.get(BASE, params={"acceptance_status": "declined"}, headers=hr_headers)
        assert [o["candidate_name"] for o in resp.json()["data"]] == ["Saw Eh"]

        resp = await client.get(BASE, params={"search": "htoo"}, headers=hr_headers)
        assert resp.json()["pagination"]["total"] == 1

    async def test_unknown_offer_id_404(self, client, hr_headers):
        resp = await client.get(f"{BASE}/by-offer-id/20250101-SMRU-BHF-9999", headers=hr_headers)
        assert resp.status_code == 404

    async def test_manager_may_edit(self, client, db, test_employee):
        offer = await _offer(db)
        headers = await auth_headers_for(db, test_employee["id"], UserRole.manager)
        resp = await client.put(f"{BASE}/{offer.id}", json={"note": "Start on 1 May"}, headers=headers)
        assert resp.status_code == 200
        assert resp.json()["data"]["note"] == "Start on 1 May"

    async def test_employee_cannot_read(self, client, auth_headers):
        resp = await client.get(BASE, headers=auth_headers)
        assert resp.status_code == 403

    async def test_delete(self, client, db, hr_headers):
        offer = await _offer(db)
        resp = await client.delete(f"{BASE}/{offer.id}", headers=hr_headers)
        assert resp.status_code == 200
        resp = await client.get(f"{BASE}/{offer.id}", headers=hr_headers)
        assert resp.status_code == 404
