"""Payroll, advance, benefit setting and bulk batch schemas."""


import re
import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from hrms.common.constants import BatchStatus, BenefitSettingType, EmploymentType, Organization


# ═════════════════════════════════════════════════════════════════════
# Payroll
# ═════════════════════════════════════════════════════════════════════


class PayrollCalculateRequest(BaseModel):
    employment_id: uuid.UUID
    pay_period_date: date


class PayrollCreate(PayrollCalculateRequest):
    notes: Optional[str] = None


class PayrollUpdate(BaseModel):
    notes: Optional[str] = None
    salary_bonus: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)


class PayrollResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employment_id: uuid.UUID
    employee_funding_allocation_id: uuid.UUID
    pay_period_date: date
    gross_salary: Decimal
    gross_salary_by_fte: Decimal
    compensation_refund: Decimal
    thirteen_month_salary: Decimal
    thirteen_month_salary_accrued: Decimal
    salary_bonus: Decimal
    pvd: Decimal
    saving_fund: Decimal
    employer_social_security: Decimal
    employee_social_security: Decimal
    employer_health_welfare: Decimal
    employee_health_welfare: Decimal
    tax: Decimal
    net_salary: Decimal
    total_salary: Decimal
    total_pvd: Decimal
    total_saving_fund: Decimal
    total_income: Decimal
    employer_contribution: Decimal
    total_deduction: Decimal
    notes: Optional[str] = None
    created_at: Optional[datetime] = None


# ═════════════════════════════════════════════════════════════════════
# Inter-organization advances
# ═════════════════════════════════════════════════════════════════════


class AdvanceUpdate(BaseModel):
    settlement_date: Optional[date] = None
    notes: Optional[str] = None


class AdvanceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    payroll_id: uuid.UUID
    from_organization: Organization
    to_organization: Organization
    via_grant_id: uuid.UUID
    amount: Decimal
    advance_date: date
    notes: Optional[str] = None
    settlement_date: Optional[date] = None
    is_settled: bool
    created_at: Optional[datetime] = None


# ═════════════════════════════════════════════════════════════════════
# Benefit settings
# ═════════════════════════════════════════════════════════════════════


class BenefitSettingCreate(BaseModel):
    setting_key: str = Field(..., min_length=1, max_length=100, pattern=r"^[a-z][a-z0-9_]*$")
    setting_value: Decimal = Field(..., ge=0)
    setting_type: BenefitSettingType
    description: Optional[str] = None
    is_active: bool = True


class BenefitSettingUpdate(BaseModel):
    setting_value: Optional[Decimal] = Field(None, ge=0)
    setting_type: Optional[BenefitSettingType] = None
    description: Optional[str] = None
    is_active: Optional[bool] = None


class BenefitSettingResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    setting_key: str
    setting_value: Decimal
    setting_type: BenefitSettingType
    description: Optional[str] = None
    is_active: bool
    updated_at: Optional[datetime] = None


# ═════════════════════════════════════════════════════════════════════
# Bulk payroll
# ═════════════════════════════════════════════════════════════════════

_PERIOD_RE = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")


class BulkPayrollFilters(BaseModel):
    organizations: list[Organization] = []
    department_ids: list[uuid.UUID] = []
    grant_ids: list[uuid.UUID] = []
    employment_types: list[EmploymentType] = []


class BulkPayrollRequest(BaseModel):
    pay_period: str = Field(..., description="YYYY-MM")
    filters: BulkPayrollFilters = BulkPayrollFilters()

    @field_validator("pay_period")
    @classmethod
    def _check_period(cls, v: str) -> str:
        if not _PERIOD_RE.match(v):
            raise ValueError("pay_period must be in YYYY-MM format")
        return v


class BulkPayrollBatchResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    pay_period: str
    filters: Optional[dict[str, Any]] = None
    status: BatchStatus
    total_employees: int
    total_payrolls: int
    processed_payrolls: int
    successful_payrolls: int
    failed_payrolls: int
    advances_created: int
    progress_percentage: float
    current_employee: Optional[str] = None
    current_allocation: Optional[str] = None
    errors: Optional[list[dict[str, Any]]] = None
    summary: Optional[dict[str, Any]] = None
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
