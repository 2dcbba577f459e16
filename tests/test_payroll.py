"""Payroll tests — per-allocation arithmetic, persistence, advances, bulk batches."""

from __future__ import annotations

import uuid
from datetime import date
from decimal import Decimal

import pytest

from hrms.common.constants import (
    AllocationStatus,
    BatchStatus,
    EmployeeStatus,
    Organization,
)
from hrms.common.exceptions import BusinessRuleException, ConflictError, ValidationException
from hrms.core_hr.models import Employee
from hrms.employment.models import Employment
from hrms.funding.models import EmployeeFundingAllocation
from hrms.funding.schemas import AllocationItemIn, FundingAllocationBatchCreate
from hrms.funding.service import FundingAllocationService
from hrms.payroll.calculator import (
    BenefitRates,
    annual_increase,
    base_monthly_salary,
    calculate_allocation_payroll,
    health_welfare_amount,
    months_working_this_year,
    service_months,
    weekdays_between,
)
from hrms.payroll.schemas import AdvanceUpdate, BulkPayrollRequest, PayrollCreate, PayrollUpdate
from hrms.payroll.service import (
    BenefitSettingService,
    BulkPayrollService,
    InterOrganizationAdvanceService,
    PayrollService,
    parse_pay_period,
)
from hrms.tax.service import TaxConfig
from tests.conftest import TestSessionFactory, _create_grant, _make_employee, _make_employment

NO_TAX = TaxConfig(2025, [], {})


def _employment(**overrides) -> Employment:
    values = dict(
        start_date=date(2025, 1, 1),
        pass_probation_date=date(2025, 4, 1),
        probation_salary=Decimal("20000"),
        pass_probation_salary=Decimal("25000"),
        health_welfare=False,
        pvd=False,
        saving_fund=False,
    )
    values.update(overrides)
    return Employment(**values)


def _employee(status: EmployeeStatus = EmployeeStatus.local_id, organization: Organization = Organization.SMRU) -> Employee:
    return Employee(
        status=status, organization=organization, has_spouse=False, number_of_children=0, eligible_parents_count=0,
    )


def _allocation(fte: str = "1") -> EmployeeFundingAllocation:
    return EmployeeFundingAllocation(id=uuid.uuid4(), grant_item_id=uuid.uuid4(), fte=Decimal(fte))


async def _fund(db, employment_id, item, fte: str = "100") -> EmployeeFundingAllocation:
    created = await FundingAllocationService.create_batch(
        db,
        FundingAllocationBatchCreate(
            employment_id=employment_id,
            allocations=[AllocationItemIn(grant_item_id=item.id, fte=Decimal(fte))],
        ),
    )
    return created[0]


# ═════════════════════════════════════════════════════════════════════
# DATE HELPERS
# ═════════════════════════════════════════════════════════════════════


class TestDateHelpers:

    def test_weekdays_between(self):
        assert weekdays_between(date(2025, 1, 6), date(2025, 1, 12)) == 5
        assert weekdays_between(date(2025, 1, 1), date(2025, 1, 1)) == 1
        assert weekdays_between(date(2025, 1, 2), date(2025, 1, 1)) == 0

    def test_service_months(self):
        assert service_months(date(2025, 1, 1), date(2025, 6, 30)) == 5
        assert service_months(date(2025, 1, 1), date(2025, 7, 1)) == 6
        assert service_months(date(2025, 2, 1), date(2025, 1, 1)) == 0

    def test_months_working_this_year(self):
        assert months_working_this_year(date(2025, 3, 10), date(2025, 6, 30)) == 10
        assert months_working_this_year(date(2024, 3, 10), date(2025, 6, 30)) == 12

    def test_parse_pay_period(self):
        assert parse_pay_period("2025-02") == date(2025, 2, 28)
        assert parse_pay_period("2024-02") == date(2024, 2, 29)


# ═════════════════════════════════════════════════════════════════════
# SALARY COMPONENTS
# ═════════════════════════════════════════════════════════════════════


class TestBaseSalary:

    def test_start_month_prorated(self):
        employment = _employment(start_date=date(2025, 1, 15), pass_probation_date=date(2025, 4, 15))
        base = base_monthly_salary(employment, date(2025, 1, 31))
        assert base.quantize(Decimal("0.01")) == Decimal("10666.67")  # 20000 / 30 × 16

    def test_transition_month_blends_tiers(self):
        employment = _employment(pass_probation_date=date(2025, 4, 15))
        base = base_monthly_salary(employment, date(2025, 4, 30))
        assert base.quantize(Decimal("0.01")) == Decimal("22666.67")  # 14 days × 20000 + 16 days × 25000

    def test_probation_and_post_probation_months(self):
        employment = _employment()
        assert base_monthly_salary(employment, date(2025, 2, 28)) == Decimal("20000")
        assert base_monthly_salary(employment, date(2025, 4, 30)) == Decimal("25000")
        assert base_monthly_salary(employment, date(2025, 5, 31)) == Decimal("25000")

    def test_annual_increase_after_a_working_year(self):
        assert annual_increase(_employment(start_date=date(2024, 1, 1)), date(2025, 6, 30)) == Decimal("250.00")
        assert annual_increase(_employment(), date(2025, 6, 30)) == Decimal("0")

    @pytest.mark.parametrize(
        "gross, expected",
        [("25000", "150"), ("15000", "100"), ("10000", "100"), ("5000", "60")],
    )
    def test_health_welfare_tiers(self, gross, expected):
        assert health_welfare_amount(Decimal(gross), BenefitRates()) == Decimal(expected)

    def test_rates_override_defaults(self):
        rates = BenefitRates({"pvd_percentage": "5"})
        assert rates.pvd_percentage == Decimal("5")
        assert rates.social_security_max_amount == Decimal("750")


class TestAllocationPayroll:

    def test_post_probation_with_pvd_and_health_welfare(self):
        calc = calculate_allocation_payroll(
            _employee(),
            _employment(pvd=True, health_welfare=True),
            _allocation("0.6"),
            date(2025, 5, 31),
            rates=BenefitRates(),
            tax_config=NO_TAX,
        )
        assert calc.fte == Decimal("60.00")
        assert calc.gross_salary == Decimal("25000.00")
        assert calc.gross_salary_by_fte == Decimal("15000.00")
        assert calc.thirteen_month_salary == Decimal("0")
        assert calc.pvd == Decimal("1125.00")
        assert calc.employee_social_security == Decimal("750.00")
        assert calc.employee_health_welfare == Decimal("100.00")
        assert calc.employer_health_welfare == Decimal("0.00")  # Local ID staff pay their own
        assert calc.total_deduction == Decimal("1975.00")
        assert calc.net_salary == Decimal("13025.00")
        assert calc.employer_contribution == Decimal("750.00")
        assert calc.total_salary == Decimal("15750.00")
        assert calc.total_pvd == Decimal("2250.00")

    def test_no_provident_fund_during_probation(self):
        calc = calculate_allocation_payroll(
            _employee(), _employment(pvd=True), _allocation(), date(2025, 2, 28),
            rates=BenefitRates(), tax_config=NO_TAX,
        )
        assert calc.gross_salary_by_fte == Decimal("20000.00")
        assert calc.pvd == Decimal("0")

    def test_saving_fund_for_local_non_id(self):
        calc = calculate_allocation_payroll(
            _employee(EmployeeStatus.local_non_id), _employment(saving_fund=True), _allocation(), date(2025, 5, 31),
            rates=BenefitRates(), tax_config=NO_TAX,
        )
        assert calc.saving_fund == Decimal("1875.00")
        assert calc.total_saving_fund == Decimal("3750.00")

    def test_employer_matches_health_welfare_for_smru_expats(self):
        calc = calculate_allocation_payroll(
            _employee(EmployeeStatus.expat), _employment(health_welfare=True), _allocation(), date(2025, 5, 31),
            rates=BenefitRates(), tax_config=NO_TAX,
        )
        assert calc.employee_health_welfare == Decimal("150.00")
        assert calc.employer_health_welfare == Decimal("150.00")

    def test_thirteenth_month_after_six_months(self):
        calc = calculate_allocation_payroll(
            _employee(), _employment(), _allocation(), date(2025, 7, 31),
            rates=BenefitRates(), tax_config=NO_TAX,
        )
        assert calc.thirteen_month_salary == Decimal("2083.33")
        assert calc.total_income == Decimal("27083.33")


# ═════════════════════════════════════════════════════════════════════
# PERSISTENCE
# ═════════════════════════════════════════════════════════════════════


class TestPayrollService:

    async def test_create_one_row_per_allocation(self, db, test_employment, test_grant, hub_grants):
        _, item = test_grant
        _, hub_item = hub_grants[Organization.SMRU]
        await FundingAllocationService.create_batch(
            db,
            FundingAllocationBatchCreate(
                employment_id=test_employment["id"],
                allocations=[
                    AllocationItemIn(grant_item_id=item.id, fte=Decimal("60")),
                    AllocationItemIn(grant_item_id=hub_item.id, fte=Decimal("40")),
                ],
            ),
        )
        payrolls, advances = await PayrollService.create_for_employment(
            db, PayrollCreate(employment_id=test_employment["id"], pay_period_date=date(2025, 5, 10)),
        )
        assert len(payrolls) == 2
        assert {p.pay_period_date for p in payrolls} == {date(2025, 5, 31)}
        assert sorted(p.gross_salary_by_fte for p in payrolls) == [Decimal("10000.00"), Decimal("15000.00")]
        assert advances == []

    async def test_same_month_twice_conflicts(self, db, test_employment, test_grant):
        _, item = test_grant
        await _fund(db, test_employment["id"], item)
        data = PayrollCreate(employment_id=test_employment["id"], pay_period_date=date(2025, 5, 1))
        await PayrollService.create_for_employment(db, data)
        with pytest.raises(ConflictError):
            await PayrollService.create_for_employment(db, data)

    async def test_no_allocation_is_field_error(self, db, test_employment):
        with pytest.raises(ValidationException) as exc:
            await PayrollService.create_for_employment(
                db, PayrollCreate(employment_id=test_employment["id"], pay_period_date=date(2025, 5, 1)),
            )
        assert "employment_id" in exc.value.errors

    async def test_historical_allocation_pays_its_own_months(self, db, test_employment, test_grant):
        _, item = test_grant
        await _fund(db, test_employment["id"], item)
        await FundingAllocationService.close_active(
            db, test_employment["id"], status=AllocationStatus.historical, end_date=date(2025, 3, 31),
        )
        march = await PayrollService.allocations_for_period(db, test_employment["id"], date(2025, 3, 31))
        april = await PayrollService.allocations_for_period(db, test_employment["id"], date(2025, 4, 30))
        assert len(march) == 1
        assert april == []

    async def test_bonus_updates_totals(self, db, test_employment, test_grant):
        _, item = test_grant
        await _fund(db, test_employment["id"], item)
        (payroll,), _ = await PayrollService.create_for_employment(
            db, PayrollCreate(employment_id=test_employment["id"], pay_period_date=date(2025, 5, 1)),
        )
        net_before = payroll.net_salary

        updated = await PayrollService.update_payroll(db, payroll.id, PayrollUpdate(salary_bonus=Decimal("1000")))
        assert updated.net_salary == net_before + Decimal("1000")

    async def test_referenced_allocation_is_deactivated_not_deleted(self, db, test_employment, test_grant):
        _, item = test_grant
        allocation = await _fund(db, test_employment["id"], item)
        await PayrollService.create_for_employment(
            db, PayrollCreate(employment_id=test_employment["id"], pay_period_date=date(2025, 5, 1)),
        )
        assert await FundingAllocationService.delete_allocation(db, allocation.id) is False
        assert allocation.status == AllocationStatus.inactive

    async def test_statistics_by_organization(self, db, test_employment, test_grant):
        _, item = test_grant
        await _fund(db, test_employment["id"], item)
        await PayrollService.create_for_employment(
            db, PayrollCreate(employment_id=test_employment["id"], pay_period_date=date(2025, 5, 1)),
        )
        stats = await PayrollService.statistics(db, period_from=date(2025, 5, 1), period_to=date(2025, 5, 31))
        assert stats["payroll_count"] == 1
        assert stats["total_gross"] == Decimal("25000.00")
        assert list(stats["by_organization"]) == ["SMRU"]


class TestAdvances:

    async def test_cross_organization_grant_creates_advance(self, db, test_employment, hub_grants):
        _, bhf_item = await _create_grant(db, code="B0031", organization=Organization.BHF)
        await _fund(db, test_employment["id"], bhf_item)

        (payroll,), (advance,) = await PayrollService.create_for_employment(
            db, PayrollCreate(employment_id=test_employment["id"], pay_period_date=date(2025, 5, 1)),
        )
        bhf_hub, _ = hub_grants[Organization.BHF]
        assert advance.from_organization == Organization.BHF
        assert advance.to_organization == Organization.SMRU
        assert advance.via_grant_id == bhf_hub.id
        assert advance.amount == payroll.net_salary
        assert advance.is_settled is False

    async def test_missing_hub_grant_skips_advance(self, db, test_employment):
        _, bhf_item = await _create_grant(db, code="B0031", organization=Organization.BHF)
        await _fund(db, test_employment["id"], bhf_item)

        payrolls, advances = await PayrollService.create_for_employment(
            db, PayrollCreate(employment_id=test_employment["id"], pay_period_date=date(2025, 5, 1)),
        )
        assert len(payrolls) == 1
        assert advances == []

    async def test_settlement_cannot_precede_advance(self, db, test_employment, hub_grants):
        _, bhf_item = await _create_grant(db, code="B0031", organization=Organization.BHF)
        await _fund(db, test_employment["id"], bhf_item)
        _, (advance,) = await PayrollService.create_for_employment(
            db, PayrollCreate(employment_id=test_employment["id"], pay_period_date=date(2025, 5, 1)),
        )

        with pytest.raises(ValidationException):
            await InterOrganizationAdvanceService.update_advance(
                db, advance.id, AdvanceUpdate(settlement_date=date(2025, 5, 1)),
            )
        settled = await InterOrganizationAdvanceService.update_advance(
            db, advance.id, AdvanceUpdate(settlement_date=date(2025, 6, 15)),
        )
        assert settled.is_settled is True


# ═════════════════════════════════════════════════════════════════════
# BULK
# ═════════════════════════════════════════════════════════════════════


class TestBulkPayroll:

    async def test_preview_warns_about_unfunded_employments(self, db, test_employment, test_grant):
        _, item = test_grant
        await _fund(db, test_employment["id"], item)
        unfunded = _make_employee(staff_id="0303", first_name="Ko", last_name="Ko")
        db.add(Employee(**unfunded))
        db.add(Employment(**_make_employment(employee_id=unfunded["id"])))
        await db.flush()

        preview = await BulkPayrollService.preview(db, BulkPayrollRequest(pay_period="2025-05"))
        assert preview["summary"]["total_employees"] == 1
        assert preview["summary"]["total_payrolls"] == 1
        assert preview["summary"]["total_gross_salary"] == Decimal("25000.00")
        assert preview["warnings"] == ["Ko Ko (0303) has no active funding allocation."]

    async def test_process_batch(self, db, test_employment, test_grant):
        _, item = test_grant
        await _fund(db, test_employment["id"], item)
        batch = await BulkPayrollService.create_batch(db, BulkPayrollRequest(pay_period="2025-05"))
        await db.commit()

        await BulkPayrollService.process_batch(batch.id, session_factory=TestSessionFactory)

        await db.refresh(batch)
        assert batch.status == BatchStatus.completed
        assert (batch.total_payrolls, batch.successful_payrolls, batch.failed_payrolls) == (1, 1, 0)
        assert batch.progress_percentage == 100.0
        assert batch.summary["skipped_existing"] == 0

        again = await BulkPayrollService.create_batch(db, BulkPayrollRequest(pay_period="2025-05"))
        await db.commit()
        await BulkPayrollService.process_batch(again.id, session_factory=TestSessionFactory)
        await db.refresh(again)
        assert again.successful_payrolls == 0
        assert again.summary["skipped_existing"] == 1

        with pytest.raises(BusinessRuleException):
            await BulkPayrollService.errors_report(db, batch.id)

    async def test_organization_filter(self, db, test_employment, test_grant):
        _, item = test_grant
        await _fund(db, test_employment["id"], item)
        preview = await BulkPayrollService.preview(
            db, BulkPayrollRequest(pay_period="2025-05", filters={"organizations": ["BHF"]}),
        )
        assert preview["summary"]["total_employees"] == 0

    async def test_invalid_period_rejected(self, client, hr_headers):
        resp = await client.post("/api/v1/payrolls/bulk/preview", json={"pay_period": "2025-13"}, headers=hr_headers)
        assert resp.status_code == 422
        assert "pay_period" in resp.json()["errors"]


# ═════════════════════════════════════════════════════════════════════
# HTTP / SETTINGS
# ═════════════════════════════════════════════════════════════════════


class TestPayrollEndpoints:

    async def test_calculate_writes_nothing(self, client, db, hr_headers, test_employment, test_grant):
        _, item = test_grant
        await _fund(db, test_employment["id"], item)
        resp = await client.post(
            "/api/v1/payrolls/calculate",
            json={"employment_id": str(test_employment["id"]), "pay_period_date": "2025-05-10"},
            headers=hr_headers,
        )
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["pay_period_date"] == "2025-05-31"
        assert data["allocations"][0]["grant_code"] == "S0031"
        assert data["allocations"][0]["needs_advance"] is False

        listing = await client.get("/api/v1/payrolls", headers=hr_headers)
        assert listing.json()["pagination"]["total"] == 0

    async def test_create_and_get(self, client, db, hr_headers, test_employment, test_grant):
        _, item = test_grant
        await _fund(db, test_employment["id"], item)
        resp = await client.post(
            "/api/v1/payrolls",
            json={"employment_id": str(test_employment["id"]), "pay_period_date": "2025-05-10"},
            headers=hr_headers,
        )
        assert resp.status_code == 201
        payroll_id = resp.json()["data"]["payrolls"][0]["id"]

        resp = await client.get(f"/api/v1/payrolls/{payroll_id}", headers=hr_headers)
        assert resp.status_code == 200
        assert resp.json()["data"]["advances"] == []

    async def test_manager_cannot_read_payroll(self, client, db, test_employee):
        from hrms.common.constants import UserRole
        from tests.conftest import auth_headers_for

        headers = await auth_headers_for(db, test_employee["id"], UserRole.manager)
        resp = await client.get("/api/v1/payrolls", headers=headers)
        assert resp.status_code == 403

    async def test_benefit_settings(self, client, db, hr_headers):
        assert await BenefitSettingService.seed_defaults(db) == 9
        assert await BenefitSettingService.seed_defaults(db) == 0

        resp = await client.post(
            "/api/v1/benefit-settings",
            json={"setting_key": "pvd_percentage", "setting_value": "6", "setting_type": "percentage"},
            headers=hr_headers,
        )
        assert resp.status_code == 409

        resp = await client.get("/api/v1/benefit-settings", headers=hr_headers)
        assert len(resp.json()["data"]) == 9
