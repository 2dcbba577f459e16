"""Employment tests — creation defaults, overlap rules, history, probation lifecycle.

The probation transition is exercised end-to-end: allocations priced at the
probation salary are historicized on the pass date and recreated at the
post-probation salary.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import select

from hrms.common.constants import AllocationStatus, ProbationStatus, SalaryType
from hrms.common.exceptions import BusinessRuleException, ValidationException
from hrms.employment import probation as probation_module
from hrms.employment.models import Employment
from hrms.employment.probation import ProbationService
from hrms.employment.schemas import ProbationExtendRequest, ProbationFailRequest
from hrms.employment.service import calculate_pass_probation_date
from hrms.funding.schemas import AllocationItemIn, FundingAllocationBatchCreate
from hrms.funding.service import FundingAllocationService
from hrms.notifications.models import Notification
from tests.conftest import _make_employment

BASE = "/api/v1/employments"


def _payload(employee_id, **overrides) -> dict:
    payload = {
        "employee_id": str(employee_id),
        "employment_type": "Full-time",
        "pay_method": "Transferred to bank",
        "start_date": "2025-01-15",
        "pass_probation_salary": "30000",
    }
    payload.update(overrides)
    return payload


async def _fund_fully(db, employment: dict, item) -> list:
    """Allocate 100 % of *employment* to *item* from its start date."""
    return await FundingAllocationService.create_batch(
        db,
        FundingAllocationBatchCreate(
            employment_id=employment["id"],
            allocations=[AllocationItemIn(grant_item_id=item.id, fte=Decimal("100"))],
        ),
    )


# ═════════════════════════════════════════════════════════════════════
# PROBATION DATE
# ═════════════════════════════════════════════════════════════════════


class TestPassProbationDate:

    def test_three_months_after_start(self):
        assert calculate_pass_probation_date(date(2025, 1, 15)) == date(2025, 4, 15)

    def test_month_end_is_clamped(self):
        assert calculate_pass_probation_date(date(2024, 11, 30)) == date(2025, 2, 28)

    def test_explicit_length(self):
        assert calculate_pass_probation_date(date(2025, 1, 1), months=6) == date(2025, 7, 1)


# ═════════════════════════════════════════════════════════════════════
# CREATE / UPDATE / DELETE
# ═════════════════════════════════════════════════════════════════════


class TestCreateEmployment:

    async def test_create_applies_defaults(self, client, hr_headers, test_employee):
        resp = await client.post(BASE, json=_payload(test_employee["id"]), headers=hr_headers)
        assert resp.status_code == 201
        data = resp.json()["data"]
        assert Decimal(data["probation_salary"]) == Decimal("30000")
        assert data["pass_probation_date"] == "2025-04-15"
        assert data["probation_status"] == "ongoing"
        assert data["funding_allocations"] == []

        history = await client.get(f"{BASE}/{data['id']}/history", headers=hr_headers)
        assert [h["change_reason"] for h in history.json()["data"]] == ["Initial employment"]

        records = await client.get(f"{BASE}/{data['id']}/probation-records", headers=hr_headers)
        records = records.json()["data"]
        assert len(records) == 1
        assert records[0]["event_type"] == "initial"
        assert records[0]["probation_end_date"] == "2025-04-15"

    async def test_overlapping_employment_rejected(self, client, hr_headers, test_employee, test_employment):
        resp = await client.post(BASE, json=_payload(test_employee["id"]), headers=hr_headers)
        assert resp.status_code == 422
        assert "start_date" in resp.json()["errors"]

    async def test_pvd_and_saving_fund_exclusive(self, client, hr_headers, test_employee):
        resp = await client.post(
            BASE, json=_payload(test_employee["id"], pvd=True, saving_fund=True), headers=hr_headers,
        )
        assert resp.status_code == 422

    async def test_pass_date_must_follow_start(self, client, hr_headers, test_employee):
        resp = await client.post(
            BASE, json=_payload(test_employee["id"], pass_probation_date="2025-01-10"), headers=hr_headers,
        )
        assert resp.status_code == 422

    async def test_unknown_department_is_field_error(self, client, hr_headers, test_employee):
        resp = await client.post(
            BASE,
            json=_payload(test_employee["id"], department_id="00000000-0000-0000-0000-000000000001"),
            headers=hr_headers,
        )
        assert resp.status_code == 422
        assert "department_id" in resp.json()["errors"]

    async def test_manager_cannot_create(self, client, db, test_employee):
        from hrms.common.constants import UserRole
        from tests.conftest import auth_headers_for

        headers = await auth_headers_for(db, test_employee["id"], UserRole.manager)
        resp = await client.post(BASE, json=_payload(test_employee["id"]), headers=headers)
        assert resp.status_code == 403


class TestUpdateEmployment:

    async def test_salary_change_recorded_in_history(self, client, hr_headers, test_employment):
        resp = await client.put(
            f"{BASE}/{test_employment['id']}",
            json={"pass_probation_salary": "27000", "change_reason": "Annual review"},
            headers=hr_headers,
        )
        assert resp.status_code == 200
        assert Decimal(resp.json()["data"]["pass_probation_salary"]) == Decimal("27000")

        history = (await client.get(f"{BASE}/{test_employment['id']}/history", headers=hr_headers)).json()["data"]
        entry = history[-1]
        assert entry["change_reason"] == "Annual review"
        assert Decimal(str(entry["changes"]["pass_probation_salary"]["new"])) == Decimal("27000")

    async def test_salary_change_reprices_allocations(self, db, test_employment, test_grant):
        from hrms.employment.schemas import EmploymentUpdate
        from hrms.employment.service import EmploymentService

        _, item = test_grant
        await _fund_fully(db, test_employment, item)

        await EmploymentService.update_employment(
            db, test_employment["id"], EmploymentUpdate(pass_probation_salary=Decimal("40000")),
        )
        allocations = await FundingAllocationService.active_for_employment(db, test_employment["id"])
        # The employment started 2025 and today is past the pass date: post-probation tier
        assert allocations[0].allocated_amount == Decimal("40000.00")
        assert allocations[0].salary_type == SalaryType.pass_probation_salary

    async def test_end_before_start_rejected(self, client, hr_headers, test_employment):
        resp = await client.put(
            f"{BASE}/{test_employment['id']}", json={"end_date": "2024-12-31"}, headers=hr_headers,
        )
        assert resp.status_code == 422
        assert "end_date" in resp.json()["errors"]

    async def test_delete_without_payroll(self, client, hr_headers, test_employment):
        resp = await client.delete(f"{BASE}/{test_employment['id']}", headers=hr_headers)
        assert resp.status_code == 200
        resp = await client.get(f"{BASE}/{test_employment['id']}", headers=hr_headers)
        assert resp.status_code == 404


# ═════════════════════════════════════════════════════════════════════
# PROBATION LIFECYCLE
# ═════════════════════════════════════════════════════════════════════


class TestProbation:

    async def test_allocation_priced_at_probation_salary(self, db, test_employment, test_grant):
        _, item = test_grant
        created = await _fund_fully(db, test_employment, item)
        assert created[0].salary_type == SalaryType.probation_salary
        assert created[0].allocated_amount == Decimal("20000.00")

    async def test_transition_on_pass_date(self, db, test_employment, test_grant):
        _, item = test_grant
        await _fund_fully(db, test_employment, item)

        result = await ProbationService.process_transitions(db, date(2025, 4, 1))
        assert (result.processed, result.transitioned, result.failed) == (1, 1, 0)

        rows = await FundingAllocationService.list_for_employment(db, test_employment["id"])
        old, new = rows
        assert old.status == AllocationStatus.historical
        assert old.end_date == date(2025, 3, 31)
        assert new.status == AllocationStatus.active
        assert new.start_date == date(2025, 4, 1)
        assert new.allocated_amount == Decimal("25000.00")
        assert new.salary_type == SalaryType.pass_probation_salary
        assert new.position_slot_id == old.position_slot_id

        employment = await db.get(Employment, test_employment["id"])
        assert employment.probation_status == ProbationStatus.passed

        notes = (await db.execute(
            select(Notification).where(Notification.recipient_id == test_employment["employee_id"])
        )).scalars().all()
        assert [n.title for n in notes] == ["Probation Completed"]

    async def test_nothing_due_on_other_dates(self, db, test_employment):
        result = await ProbationService.process_transitions(db, date(2025, 4, 2))
        assert result.processed == 0

    async def test_passed_employment_not_processed_twice(self, db, test_employment, test_grant):
        _, item = test_grant
        await _fund_fully(db, test_employment, item)
        await ProbationService.process_transitions(db, date(2025, 4, 1))

        again = await ProbationService.process_transitions(db, date(2025, 4, 1))
        assert again.processed == 0

    async def test_process_endpoint(self, client, hr_headers, test_employment):
        resp = await client.post(f"{BASE}/probation/process", json={"date": "2025-04-01"}, headers=hr_headers)
        assert resp.status_code == 200
        body = resp.json()
        assert body["data"]["transitioned"] == 1
        assert "2025-04-01" in body["message"]

    async def test_one_failure_does_not_stop_the_rest(self, db, monkeypatch, test_employment, hr_employee):
        later = _make_employment(employee_id=hr_employee["id"], start_date=date(2025, 1, 2))
        db.add(Employment(**later))
        await db.commit()

        real_notify = probation_module.notify_probation_passed
        calls = []

        async def _fail_first(session, employment):
            calls.append(employment.id)
            if len(calls) == 1:
                raise RuntimeError("mail relay down")
            await real_notify(session, employment)

        monkeypatch.setattr(probation_module, "notify_probation_passed", _fail_first)

        result = await ProbationService.process_transitions(db, date(2025, 4, 1))
        assert (result.processed, result.transitioned, result.failed) == (2, 1, 1)
        assert result.errors == [{"employment_id": str(test_employment["id"]), "error": "mail relay down"}]

        failed = await db.get(Employment, test_employment["id"])
        passed = await db.get(Employment, later["id"])
        assert failed.probation_status != ProbationStatus.passed
        assert passed.probation_status == ProbationStatus.passed

    async def test_extend_moves_pass_date(self, db, test_employment):
        record = await ProbationService.extend(
            db,
            test_employment["id"],
            ProbationExtendRequest(new_end_date=date(2025, 5, 1), reason="Needs more supervision"),
        )
        assert record.extension_number == 1

        employment = await db.get(Employment, test_employment["id"])
        assert employment.pass_probation_date == date(2025, 5, 1)
        assert employment.probation_status == ProbationStatus.extended

        result = await ProbationService.process_transitions(db, date(2025, 4, 1))
        assert result.processed == 0

    async def test_extend_requires_later_date(self, db, test_employment):
        with pytest.raises(ValidationException) as exc:
            await ProbationService.extend(
                db,
                test_employment["id"],
                ProbationExtendRequest(new_end_date=date(2025, 3, 1), reason="Shorten"),
            )
        assert "new_end_date" in exc.value.errors

    async def test_fail_terminates_allocations(self, db, test_employment, test_grant):
        _, item = test_grant
        await _fund_fully(db, test_employment, item)

        employment = await ProbationService.fail_probation(
            db,
            test_employment["id"],
            ProbationFailRequest(reason="Did not meet expectations", end_date=date(2025, 3, 15)),
        )
        assert employment.is_active is False
        assert employment.end_date == date(2025, 3, 15)
        assert employment.probation_status == ProbationStatus.failed

        rows = await FundingAllocationService.list_for_employment(db, test_employment["id"])
        assert [r.status for r in rows] == [AllocationStatus.terminated]

    async def test_closed_probation_cannot_change(self, db, test_employment):
        await ProbationService.fail_probation(
            db, test_employment["id"], ProbationFailRequest(reason="x", end_date=date(2025, 3, 1)),
        )
        with pytest.raises(BusinessRuleException):
            await ProbationService.pass_probation(db, test_employment["id"], today=date(2025, 3, 2))

    async def test_records_trail(self, client, db, hr_headers, test_employment):
        await ProbationService.extend(
            db, test_employment["id"],
            ProbationExtendRequest(new_end_date=date(2025, 5, 1), reason="Extend"),
        )
        await ProbationService.pass_probation(db, test_employment["id"], today=date(2025, 5, 1))

        resp = await client.get(f"{BASE}/{test_employment['id']}/probation-records", headers=hr_headers)
        active = {r["event_type"]: r["is_active"] for r in resp.json()["data"]}
        assert active == {"extension": False, "passed": True}
