"""Tax tests — progressive brackets, employee deductions, seeding, bracket/setting CRUD."""

from __future__ import annotations

from decimal import Decimal

import pytest
from sqlalchemy import func, select

from hrms.common.constants import EmployeeStatus
from hrms.common.exceptions import ValidationException
from hrms.tax.defaults import THAI_2025_BRACKETS, THAI_2025_SETTINGS
from hrms.tax.models import TaxBracket, TaxCalculationLog
from hrms.tax.schemas import TaxBracketCreate
from hrms.tax.service import (
    TaxBracketService,
    TaxCalculationService,
    TaxConfig,
    calculate_employee_tax,
    progressive_tax,
    seed_tax_year,
)


def _thai_brackets() -> list[TaxBracket]:
    return [
        TaxBracket(min_income=lo, max_income=hi, tax_rate=rate, bracket_order=order, effective_year=2025)
        for order, (lo, hi, rate, _) in enumerate(THAI_2025_BRACKETS, start=1)
    ]


def _thai_config(*, without: tuple[str, ...] = ()) -> TaxConfig:
    settings = {key: value for key, (value, _, _) in THAI_2025_SETTINGS.items() if key not in without}
    return TaxConfig(2025, _thai_brackets(), settings)


# ═════════════════════════════════════════════════════════════════════
# PURE CALCULATION
# ═════════════════════════════════════════════════════════════════════


class TestProgressiveTax:

    @pytest.mark.parametrize(
        "taxable, expected",
        [
            ("0", "0.00"),
            ("150000", "0.00"),
            ("300000", "7500.00"),
            ("600000", "42500.00"),
            ("6000000", "1615000.00"),
        ],
    )
    def test_annual_tax(self, taxable, expected):
        total, _ = progressive_tax(Decimal(taxable), _thai_brackets())
        assert total == Decimal(expected)

    def test_bracket_slices(self):
        _, rows = progressive_tax(Decimal("600000"), _thai_brackets())
        assert [r.bracket_order for r in rows] == [1, 2, 3, 4]
        assert rows[-1].taxable_in_bracket == Decimal("100000.00")
        assert rows[-1].tax_amount == Decimal("15000.00")


class TestEmployeeTax:

    def test_single_expat(self):
        result = calculate_employee_tax(_thai_config(), Decimal("50000"), employee_status=EmployeeStatus.expat)

        assert result.annual_income == Decimal("600000.00")
        assert result.employment_deduction == Decimal("100000.00")  # 50 % capped
        assert result.allowances == {"PERSONAL_ALLOWANCE": Decimal("60000.00")}
        assert result.social_security_monthly == Decimal("750.00")  # 5 % capped
        assert result.provident_fund_type is None
        assert result.taxable_income == Decimal("431000.00")
        assert result.annual_tax == Decimal("20600.00")
        assert result.monthly_tax == Decimal("1716.67")
        assert result.net_salary == Decimal("47533.33")

    def test_local_id_with_family(self):
        result = calculate_employee_tax(
            _thai_config(),
            Decimal("50000"),
            employee_status=EmployeeStatus.local_id,
            has_spouse=True,
            children=2,
            eligible_parents=1,
        )
        assert result.provident_fund_type == "PVD Fund"
        assert result.provident_fund_annual == Decimal("45000.00")
        assert result.allowances == {
            "PERSONAL_ALLOWANCE": Decimal("60000.00"),
            "SPOUSE_ALLOWANCE": Decimal("60000.00"),
            "CHILD_ALLOWANCE": Decimal("30000.00"),
            "CHILD_ALLOWANCE_SUBSEQUENT": Decimal("60000.00"),
            "PARENT_ALLOWANCE": Decimal("30000.00"),
        }
        # 600000 - 100000 - 240000 - 9000 - 45000
        assert result.taxable_income == Decimal("206000.00")
        assert result.annual_tax == Decimal("2800.00")

    def test_local_non_id_uses_saving_fund(self):
        result = calculate_employee_tax(
            _thai_config(), Decimal("20000"), employee_status=EmployeeStatus.local_non_id,
        )
        assert result.provident_fund_type == "Saving Fund"
        assert result.provident_fund_annual == Decimal("18000.00")

    def test_unselected_setting_is_ignored(self):
        result = calculate_employee_tax(
            _thai_config(without=("SSF_RATE",)), Decimal("50000"), employee_status=EmployeeStatus.expat,
        )
        assert result.social_security_monthly == Decimal("0.00")
        assert result.taxable_income == Decimal("440000.00")

    def test_partial_year(self):
        result = calculate_employee_tax(
            _thai_config(), Decimal("30000"), employee_status=EmployeeStatus.expat, months_working=4,
        )
        assert result.annual_income == Decimal("120000.00")
        assert result.annual_tax == Decimal("0.00")
        assert result.effective_rate == Decimal("0.00")


# ═════════════════════════════════════════════════════════════════════
# SEEDING / CONFIG
# ═════════════════════════════════════════════════════════════════════


class TestSeedAndConfig:

    async def test_seed_is_idempotent(self, db):
        assert await seed_tax_year(db, 2025) == (len(THAI_2025_BRACKETS), len(THAI_2025_SETTINGS))
        assert await seed_tax_year(db, 2025) == (0, 0)

    async def test_later_year_falls_back_to_latest(self, db):
        await seed_tax_year(db, 2025)
        config = await TaxCalculationService.load_config(db, 2027)
        assert config.year == 2027
        assert len(config.brackets) == len(THAI_2025_BRACKETS)
        assert config.value("PERSONAL_ALLOWANCE") == Decimal("60000")

    async def test_overlapping_bracket_rejected(self, db):
        await seed_tax_year(db, 2025)
        with pytest.raises(ValidationException) as exc:
            await TaxBracketService.create_bracket(
                db,
                TaxBracketCreate(
                    min_income=Decimal("200000"), max_income=Decimal("250000"),
                    tax_rate=Decimal("7"), bracket_order=9, effective_year=2025,
                ),
            )
        assert "min_income" in exc.value.errors


# ═════════════════════════════════════════════════════════════════════
# HTTP
# ═════════════════════════════════════════════════════════════════════


class TestTaxEndpoints:

    async def test_income_tax_endpoint(self, client, db, hr_headers):
        await seed_tax_year(db, 2025)
        resp = await client.post(
            "/api/v1/tax-calculations/income-tax",
            json={"taxable_income": "600000", "year": 2025},
            headers=hr_headers,
        )
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert Decimal(data["annual_tax"]) == Decimal("42500")
        assert len(data["brackets"]) == 4

    async def test_bracket_calculate_path(self, client, db, hr_headers):
        await seed_tax_year(db, 2025)
        resp = await client.get("/api/v1/tax-brackets/calculate/300000", params={"year": 2025}, headers=hr_headers)
        assert Decimal(resp.json()["data"]["annual_tax"]) == Decimal("7500")

    async def test_payroll_tax_reads_employee_and_logs(self, client, db, hr_headers, test_employee):
        await seed_tax_year(db, 2025)
        resp = await client.post(
            "/api/v1/tax-calculations/payroll",
            json={"gross_salary": "50000", "year": 2025, "employee_id": str(test_employee["id"])},
            headers=hr_headers,
        )
        assert resp.status_code == 200
        assert resp.json()["data"]["provident_fund_type"] == "PVD Fund"  # fixture employee is Local ID

        logged = (await db.execute(select(func.count()).select_from(TaxCalculationLog))).scalar_one()
        assert logged == 1

    async def test_setting_toggle_and_value(self, client, db, hr_headers):
        await seed_tax_year(db, 2025)
        resp = await client.get("/api/v1/tax-settings/value/SSF_RATE", params={"year": 2025}, headers=hr_headers)
        assert Decimal(resp.json()["data"]["setting_value"]) == Decimal("5")

        settings = (await client.get("/api/v1/tax-settings/by-year/2025", headers=hr_headers)).json()["data"]
        ssf = next(s for s in settings if s["setting_key"] == "SSF_RATE")
        resp = await client.patch(f"/api/v1/tax-settings/{ssf['id']}/toggle", headers=hr_headers)
        assert resp.json()["data"]["is_selected"] is False
        assert resp.json()["message"] == "Tax setting deselected."

    async def test_duplicate_setting_conflict(self, client, db, hr_headers):
        await seed_tax_year(db, 2025)
        resp = await client.post(
            "/api/v1/tax-settings",
            json={"setting_key": "SSF_RATE", "setting_value": "4", "setting_type": "RATE", "effective_year": 2025},
            headers=hr_headers,
        )
        assert resp.status_code == 409

    async def test_employee_cannot_read_tax(self, client, auth_headers):
        resp = await client.get("/api/v1/tax-brackets", headers=auth_headers)
        assert resp.status_code == 403
