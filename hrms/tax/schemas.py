"""Tax bracket, tax setting and tax calculation schemas."""


import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from hrms.common.constants import EmployeeStatus, TaxSettingType


# ═════════════════════════════════════════════════════════════════════
# Tax brackets
# ═════════════════════════════════════════════════════════════════════


class TaxBracketCreate(BaseModel):
    min_income: Decimal = Field(..., ge=0)
    max_income: Optional[Decimal] = Field(None, gt=0)
    tax_rate: Decimal = Field(..., ge=0, le=100)
    bracket_order: int = Field(..., ge=1)
    effective_year: int = Field(..., ge=2000, le=2100)
    description: Optional[str] = Field(None, max_length=255)
    is_active: bool = True

    @model_validator(mode="after")
    def _check_range(self) -> "TaxBracketCreate":
        if self.max_income is not None and self.max_income <= self.min_income:
            raise ValueError("max_income must be greater than min_income")
        return self


class TaxBracketUpdate(BaseModel):
    min_income: Optional[Decimal] = Field(None, ge=0)
    max_income: Optional[Decimal] = Field(None, gt=0)
    tax_rate: Optional[Decimal] = Field(None, ge=0, le=100)
    bracket_order: Optional[int] = Field(None, ge=1)
    effective_year: Optional[int] = Field(None, ge=2000, le=2100)
    description: Optional[str] = Field(None, max_length=255)
    is_active: Optional[bool] = None


class TaxBracketResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    min_income: Decimal
    max_income: Optional[Decimal] = None
    tax_rate: Decimal
    bracket_order: int
    effective_year: int
    description: Optional[str] = None
    is_active: bool = True


# ═════════════════════════════════════════════════════════════════════
# Tax settings
# ═════════════════════════════════════════════════════════════════════


class TaxSettingCreate(BaseModel):
    setting_key: str = Field(..., min_length=1, max_length=100, pattern=r"^[A-Z][A-Z0-9_]*$")
    setting_value: Decimal = Field(..., ge=0)
    setting_type: TaxSettingType
    description: Optional[str] = Field(None, max_length=255)
    effective_year: int = Field(..., ge=2000, le=2100)
    is_selected: bool = True


class TaxSettingUpdate(BaseModel):
    setting_value: Optional[Decimal] = Field(None, ge=0)
    setting_type: Optional[TaxSettingType] = None
    description: Optional[str] = Field(None, max_length=255)
    is_selected: Optional[bool] = None


class TaxSettingBulkItem(BaseModel):
    id: uuid.UUID
    setting_value: Optional[Decimal] = Field(None, ge=0)
    is_selected: Optional[bool] = None


class TaxSettingBulkUpdate(BaseModel):
    settings: list[TaxSettingBulkItem] = Field(..., min_length=1)


class TaxSettingResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    setting_key: str
    setting_value: Decimal
    setting_type: TaxSettingType
    description: Optional[str] = None
    effective_year: int
    is_selected: bool
    updated_at: Optional[datetime] = None


# ═════════════════════════════════════════════════════════════════════
# Calculations
# ═════════════════════════════════════════════════════════════════════


class IncomeTaxRequest(BaseModel):
    taxable_income: Decimal = Field(..., ge=0)
    year: Optional[int] = Field(None, ge=2000, le=2100)


class BracketTax(BaseModel):
    bracket_order: int
    min_income: Decimal
    max_income: Optional[Decimal] = None
    tax_rate: Decimal
    taxable_in_bracket: Decimal
    tax_amount: Decimal


class IncomeTaxResult(BaseModel):
    tax_year: int
    taxable_income: Decimal
    annual_tax: Decimal
    monthly_tax: Decimal
    effective_rate: Decimal
    brackets: list[BracketTax] = []


class EmployeeTaxResult(IncomeTaxResult):
    gross_salary: Decimal
    months_working: int
    annual_income: Decimal
    employment_deduction: Decimal
    allowances: dict[str, Decimal] = {}
    personal_allowances_total: Decimal
    social_security_monthly: Decimal
    social_security_annual: Decimal
    provident_fund_type: Optional[str] = None
    provident_fund_annual: Decimal
    total_deductions: Decimal
    net_salary: Decimal


class EmployeeTaxRequest(BaseModel):
    """Monthly gross plus personal circumstances; ``employee_id`` fills the latter from the record."""

    gross_salary: Decimal = Field(..., gt=0)
    year: Optional[int] = Field(None, ge=2000, le=2100)
    employee_id: Optional[uuid.UUID] = None
    employee_status: Optional[EmployeeStatus] = None
    has_spouse: Optional[bool] = None
    children: Optional[int] = Field(None, ge=0, le=20)
    eligible_parents: Optional[int] = Field(None, ge=0, le=4)
    months_working_this_year: int = Field(12, ge=1, le=12)
