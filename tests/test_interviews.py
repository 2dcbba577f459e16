"""Interview tests — CRUD, time validation, filters, lookup by candidate."""

from __future__ import annotations

from datetime import date, time
from decimal import Decimal

import pytest

from hrms.common.constants import HiredStatus, InterviewStatus, UserRole
from hrms.common.exceptions import NotFoundException, ValidationException
from hrms.recruitment.schemas import InterviewCreate, InterviewUpdate
from hrms.recruitment.service import InterviewService
from tests.conftest import auth_headers_for

BASE = "/api/v1/interviews"


async def _interview(db, name: str = "Naw Htoo", **overrides):
    data = {
        "candidate_name": name,
        "job_position": "Medic",
        "interviewer_name": "Dr. Paw",
        "interview_date": date(2025, 5, 12),
        "start_time": time(9, 0),
        "end_time": time(10, 0),
        **overrides,
    }
    return await InterviewService.create_interview(db, InterviewCreate(**data))


class TestInterviewService:

    def test_end_time_after_start(self):
        with pytest.raises(ValueError):
            InterviewCreate(candidate_name="X", job_position="Medic", start_time=time(10, 0), end_time=time(9, 0))

    async def test_update_checks_against_stored_times(self, db):
        interview = await _interview(db)
        with pytest.raises(ValidationException) as exc:
            await InterviewService.update_interview(db, interview.id, InterviewUpdate(end_time=time(8, 30)))
        assert "end_time" in exc.value.errors

    async def test_record_outcome(self, db):
        interview = await _interview(db)
        updated = await InterviewService.update_interview(
            db,
            interview.id,
            InterviewUpdate(
                interview_status=InterviewStatus.completed,
                hired_status=HiredStatus.hired,
                score=Decimal("87.5"),
            ),
        )
        assert updated.interview_status == InterviewStatus.completed
        assert updated.hired_status == HiredStatus.hired
        assert updated.score == Decimal("87.5")

    async def test_by_candidate_ignores_case(self, db):
        await _interview(db)
        await _interview(db, interview_date=date(2025, 6, 2))
        await _interview(db, name="Saw Eh")

        found = await InterviewService.by_candidate(db, "  naw HTOO ")
        assert [i.interview_date for i in found] == [date(2025, 6, 2), date(2025, 5, 12)]

    async def test_by_candidate_unknown(self, db):
        with pytest.raises(NotFoundException):
            await InterviewService.by_candidate(db, "Nobody")


class TestInterviewEndpoints:

    async def test_create_and_get(self, client, hr_headers):
        resp = await client.post(
            BASE,
            json={
                "candidate_name": "Naw Htoo",
                "job_position": "Medic",
                "interview_date": "2025-05-12",
                "start_time": "09:00:00",
                "end_time": "10:00:00",
                "interview_mode": "video",
            },
            headers=hr_headers,
        )
        assert resp.status_code == 201
        data = resp.json()["data"]
        assert data["interview_status"] == "scheduled"
        assert data["hired_status"] == "pending"

        resp = await client.get(f"{BASE}/{data['id']}", headers=hr_headers)
        assert resp.json()["data"]["interview_mode"] == "video"

    async def test_score_out_of_range(self, client, hr_headers):
        resp = await client.post(
            BASE, json={"candidate_name": "A", "job_position": "Medic", "score": "120"}, headers=hr_headers,
        )
        assert resp.status_code == 422
        assert "score" in resp.json()["errors"]

    async def test_filters_and_search(self, client, db, hr_headers):
        await _interview(db)
        await _interview(db, name="Saw Eh", job_position="Driver", hired_status=HiredStatus.hired)

        resp = await client.get(BASE, params={"hired_status": "hired"}, headers=hr_headers)
        assert [i["candidate_name"] for i in resp.json()["data"]] == ["Saw Eh"]

        resp = await client.get(BASE, params={"search": "driv"}, headers=hr_headers)
        assert resp.json()["pagination"]["total"] == 1

    async def test_by_candidate_404(self, client, hr_headers):
        resp = await client.get(f"{BASE}/by-candidate/Nobody", headers=hr_headers)
        assert resp.status_code == 404

    async def test_manager_may_edit(self, client, db, test_employee):
        interview = await _interview(db)
        headers = await auth_headers_for(db, test_employee["id"], UserRole.manager)
        resp = await client.put(f"{BASE}/{interview.id}", json={"feedback": "Strong clinical skills"}, headers=headers)
        assert resp.status_code == 200
        assert resp.json()["data"]["feedback"] == "Strong clinical skills"

    async def test_employee_cannot_read(self, client, auth_headers):
        resp = await client.get(BASE, headers=auth_headers)
        assert resp.status_code == 403

    async def test_delete(self, client, db, hr_headers):
        interview = await _interview(db)
        resp = await client.delete(f"{BASE}/{interview.id}", headers=hr_headers)
        assert resp.status_code == 200
        resp = await client.get(f"{BASE}/{interview.id}", headers=hr_headers)
        assert resp.status_code == 404
