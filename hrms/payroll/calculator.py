"""Per-allocation payroll arithmetic.

Pure functions over already-loaded rows: nothing here touches the session.
Monthly salaries are prorated on a fixed 30-day month.
"""

from __future__ import annotations

import uuid
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Optional

from dateutil.relativedelta import relativedelta
from pydantic import BaseModel

from hrms.common.constants import BenefitSettingType, EmployeeStatus, Organization
from hrms.common.money import ZERO, round_money, to_decimal
from hrms.tax.service import TaxConfig, calculate_employee_tax

HUNDRED = Decimal("100")
THIRTY = Decimal("30")
ANNUAL_INCREASE_RATE = Decimal("0.01")
ANNUAL_INCREASE_WORKING_DAYS = 365
THIRTEENTH_MONTH_MIN_SERVICE_MONTHS = 6

# key -> (default value, type, description)
BENEFIT_DEFAULTS: dict[str, tuple[Decimal, BenefitSettingType, str]] = {
    "pvd_percentage": (Decimal("7.5"), BenefitSettingType.percentage, "Provident fund, Local ID staff"),
    "saving_fund_percentage": (Decimal("7.5"), BenefitSettingType.percentage, "Saving fund, Local non ID staff"),
    "social_security_percentage": (Decimal("5"), BenefitSettingType.percentage, "Social security rate"),
    "social_security_max_amount": (Decimal("750"), BenefitSettingType.amount, "Monthly social security cap"),
    "health_welfare_high": (Decimal("150"), BenefitSettingType.amount, "Health welfare above the high threshold"),
    "health_welfare_medium": (Decimal("100"), BenefitSettingType.amount, "Health welfare above the medium threshold"),
    "health_welfare_low": (Decimal("60"), BenefitSettingType.amount, "Health welfare otherwise"),
    "health_welfare_high_threshold": (Decimal("15000"), BenefitSettingType.amount, "High health welfare salary threshold"),
    "health_welfare_medium_threshold": (Decimal("5000"), BenefitSettingType.amount, "Medium health welfare salary threshold"),
}

_EMPLOYER_HEALTH_WELFARE_STATUSES = (EmployeeStatus.local_non_id, EmployeeStatus.expat)


class BenefitRates:
    """Active benefit settings with defaults for missing keys."""

    def __init__(self, values: Optional[dict[str, Decimal]] = None) -> None:
        self.values = {key: default for key, (default, _, _) in BENEFIT_DEFAULTS.items()}
        self.values.update({k: to_decimal(v) for k, v in (values or {}).items()})

    def __getattr__(self, key: str) -> Decimal:
        try:
            return self.__dict__["values"][key]
        except KeyError:
            raise AttributeError(key) from None


class PayrollCalculation(BaseModel):
    """Every amount of one payroll row, before it is persisted."""

    allocation_id: Optional[uuid.UUID] = None
    grant_item_id: Optional[uuid.UUID] = None
    pay_period_date: date
    fte: Decimal
    base_salary: Decimal = ZERO
    annual_increase: Decimal = ZERO

    gross_salary: Decimal = ZERO
    gross_salary_by_fte: Decimal = ZERO
    compensation_refund: Decimal = ZERO
    thirteen_month_salary: Decimal = ZERO
    thirteen_month_salary_accrued: Decimal = ZERO
    salary_bonus: Decimal = ZERO

    pvd: Decimal = ZERO
    saving_fund: Decimal = ZERO
    employer_social_security: Decimal = ZERO
    employee_social_security: Decimal = ZERO
    employer_health_welfare: Decimal = ZERO
    employee_health_welfare: Decimal = ZERO
    tax: Decimal = ZERO

    net_salary: Decimal = ZERO
    total_salary: Decimal = ZERO
    total_pvd: Decimal = ZERO
    total_saving_fund: Decimal = ZERO
    total_income: Decimal = ZERO
    employer_contribution: Decimal = ZERO
    total_deduction: Decimal = ZERO

    def payroll_values(self) -> dict[str, Any]:
        """Column values for a ``Payroll`` row."""
        return self.model_dump(exclude={"allocation_id", "grant_item_id", "fte", "base_salary", "annual_increase"})


# ── Date helpers ────────────────────────────────────────────────────

def weekdays_between(start: date, end: date) -> int:
    """Monday–Friday days from *start* to *end*, both inclusive."""
    if end < start:
        return 0
    days = (end - start).days + 1
    full_weeks, extra = divmod(days, 7)
    count = full_weeks * 5
    first = start.weekday()
    count += sum(1 for offset in range(extra) if (first + offset) % 7 < 5)
    return count


def service_months(start: date, on_date: date) -> int:
    if on_date < start:
        return 0
    delta = relativedelta(on_date, start)
    return delta.years * 12 + delta.months


def months_working_this_year(start: date, pay_date: date) -> int:
    if start.year < pay_date.year:
        return 12
    return 13 - start.month


def _same_month(a: date, b: date) -> bool:
    return a.year == b.year and a.month == b.month


# ── Salary components ───────────────────────────────────────────────

def base_monthly_salary(employment, pay_date: date) -> Decimal:
    """Salary for the pay month before FTE: start-month proration, transition blend, or the tier in force."""
    start = employment.start_date
    pass_salary = to_decimal(employment.pass_probation_salary)
    probation_salary = (
        to_decimal(employment.probation_salary) if employment.probation_salary is not None else pass_salary
    )
    pass_date = employment.pass_probation_date

    if _same_month(start, pay_date) and start.day > 1:
        working_days = max(31 - start.day, 0)
        return employment.salary_on(start) / THIRTY * working_days

    if pass_date is not None and _same_month(pass_date, pay_date) and pass_date.day > 1:
        probation_days = pass_date.day - 1
        regular_days = max(30 - probation_days, 0)
        return probation_salary / THIRTY * probation_days + pass_salary / THIRTY * regular_days

    if pass_date is not None and (pay_date.year, pay_date.month) < (pass_date.year, pass_date.month):
        return probation_salary
    return pass_salary


def annual_increase(employment, pay_date: date) -> Decimal:
    if weekdays_between(employment.start_date, pay_date) >= ANNUAL_INCREASE_WORKING_DAYS:
        return round_money(to_decimal(employment.pass_probation_salary) * ANNUAL_INCREASE_RATE)
    return ZERO


def health_welfare_amount(gross: Decimal, rates: BenefitRates) -> Decimal:
    if gross > rates.health_welfare_high_threshold:
        return rates.health_welfare_high
    if gross > rates.health_welfare_medium_threshold:
        return rates.health_welfare_medium
    return rates.health_welfare_low


def apply_totals(row) -> None:
    """Recompute the derived totals of a calculation or ``Payroll`` row in place."""
    total_income = (
        to_decimal(row.gross_salary_by_fte)
        + to_decimal(row.compensation_refund)
        + to_decimal(row.thirteen_month_salary)
        + to_decimal(row.salary_bonus)
    )
    total_deduction = (
        to_decimal(row.pvd)
        + to_decimal(row.saving_fund)
        + to_decimal(row.employee_social_security)
        + to_decimal(row.employee_health_welfare)
        + to_decimal(row.tax)
    )
    employer_contribution = to_decimal(row.employer_social_security) + to_decimal(row.employer_health_welfare)

    row.total_income = round_money(total_income)
    row.total_deduction = round_money(total_deduction)
    row.employer_contribution = round_money(employer_contribution)
    row.net_salary = round_money(total_income - total_deduction)
    row.total_salary = round_money(total_income + employer_contribution)
    row.total_pvd = round_money(to_decimal(row.pvd) * 2)
    row.total_saving_fund = round_money(to_decimal(row.saving_fund) * 2)


# ── Entry point ─────────────────────────────────────────────────────

def calculate_allocation_payroll(
    employee,
    employment,
    allocation,
    pay_date: date,
    *,
    rates: BenefitRates,
    tax_config: TaxConfig,
) -> PayrollCalculation:
    """Payroll amounts of one funding allocation for the month containing *pay_date*."""
    fte = to_decimal(allocation.fte)
    base = base_monthly_salary(employment, pay_date)
    increase = annual_increase(employment, pay_date)
    gross_by_fte = round_money((base + increase) * fte)

    thirteenth = ZERO
    if service_months(employment.start_date, pay_date) >= THIRTEENTH_MONTH_MIN_SERVICE_MONTHS:
        thirteenth = round_money(gross_by_fte / 12)

    pvd = saving = ZERO
    passed = employment.pass_probation_date is None or pay_date >= employment.pass_probation_date
    if passed:
        if employee.status == EmployeeStatus.local_id and employment.pvd:
            pvd = round_money(gross_by_fte * rates.pvd_percentage / HUNDRED)
        elif employee.status == EmployeeStatus.local_non_id and employment.saving_fund:
            saving = round_money(gross_by_fte * rates.saving_fund_percentage / HUNDRED)

    social_security = round_money(
        min(gross_by_fte * rates.social_security_percentage / HUNDRED, rates.social_security_max_amount)
    )

    hw_employee = hw_employer = ZERO
    if employment.health_welfare:
        hw_employee = health_welfare_amount(gross_by_fte, rates)
        if employee.organization == Organization.SMRU and employee.status in _EMPLOYER_HEALTH_WELFARE_STATUSES:
            hw_employer = hw_employee

    tax = calculate_employee_tax(
        tax_config,
        gross_by_fte,
        employee_status=employee.status,
        has_spouse=bool(employee.has_spouse),
        children=employee.number_of_children or 0,
        eligible_parents=employee.eligible_parents_count or 0,
        months_working=months_working_this_year(employment.start_date, pay_date),
    ).monthly_tax

    calc = PayrollCalculation(
        allocation_id=allocation.id,
        grant_item_id=allocation.grant_item_id,
        pay_period_date=pay_date,
        fte=round_money(fte * HUNDRED),
        base_salary=round_money(base),
        annual_increase=increase,
        gross_salary=round_money(employment.pass_probation_salary),
        gross_salary_by_fte=gross_by_fte,
        compensation_refund=ZERO,
        thirteen_month_salary=thirteenth,
        thirteen_month_salary_accrued=thirteenth,
        pvd=pvd,
        saving_fund=saving,
        employer_social_security=social_security,
        employee_social_security=social_security,
        employer_health_welfare=round_money(hw_employer),
        employee_health_welfare=round_money(hw_employee),
        tax=tax,
    )
    apply_totals(calc)
    return calc


def month_bounds(pay_date: date) -> tuple[date, date]:
    first = pay_date.replace(day=1)
    return first, first + relativedelta(months=1) - timedelta(days=1)
