"""Employment, history and probation schemas."""

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from hrms.common.constants import (
    EmploymentType,
    PayMethod,
    ProbationEventType,
    ProbationStatus,
)
from hrms.funding.schemas import FundingAllocationResponse


# ═════════════════════════════════════════════════════════════════════
# Employment — write schemas
# ═════════════════════════════════════════════════════════════════════


class EmploymentCreate(BaseModel):
    employee_id: uuid.UUID
    employment_type: EmploymentType
    pay_method: Optional[PayMethod] = None
    department_id: Optional[uuid.UUID] = None
    position_id: Optional[uuid.UUID] = None
    work_location_id: Optional[uuid.UUID] = None
    start_date: date
    end_date: Optional[date] = None
    pass_probation_date: Optional[date] = None
    probation_salary: Optional[Decimal] = Field(None, gt=0, max_digits=12, decimal_places=2)
    pass_probation_salary: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    health_welfare: bool = False
    pvd: bool = False
    saving_fund: bool = False

    @model_validator(mode="after")
    def _check_dates(self) -> "EmploymentCreate":
        if self.end_date is not None and self.end_date < self.start_date:
            raise ValueError("end_date must be on or after start_date")
        if self.pass_probation_date is not None and self.pass_probation_date <= self.start_date:
            raise ValueError("pass_probation_date must be after start_date")
        if self.pvd and self.saving_fund:
            raise ValueError("pvd and saving_fund cannot both be enabled")
        return self


class EmploymentUpdate(BaseModel):
    employment_type: Optional[EmploymentType] = None
    pay_method: Optional[PayMethod] = None
    department_id: Optional[uuid.UUID] = None
    position_id: Optional[uuid.UUID] = None
    work_location_id: Optional[uuid.UUID] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    pass_probation_date: Optional[date] = None
    probation_salary: Optional[Decimal] = Field(None, gt=0, max_digits=12, decimal_places=2)
    pass_probation_salary: Optional[Decimal] = Field(None, gt=0, max_digits=12, decimal_places=2)
    health_welfare: Optional[bool] = None
    pvd: Optional[bool] = None
    saving_fund: Optional[bool] = None
    is_active: Optional[bool] = None
    change_reason: Optional[str] = Field(None, max_length=255)


# ═════════════════════════════════════════════════════════════════════
# Employment — read schemas
# ═════════════════════════════════════════════════════════════════════


class EmploymentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    employment_type: EmploymentType
    pay_method: Optional[PayMethod] = None
    department_id: Optional[uuid.UUID] = None
    position_id: Optional[uuid.UUID] = None
    work_location_id: Optional[uuid.UUID] = None
    start_date: date
    end_date: Optional[date] = None
    pass_probation_date: Optional[date] = None
    probation_salary: Optional[Decimal] = None
    pass_probation_salary: Decimal
    probation_status: Optional[ProbationStatus] = None
    health_welfare: bool = False
    pvd: bool = False
    saving_fund: bool = False
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class EmploymentDetail(EmploymentResponse):
    funding_allocations: list[FundingAllocationResponse] = []


class EmploymentHistoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employment_id: uuid.UUID
    employee_id: uuid.UUID
    change_date: date
    change_reason: str
    changes: Optional[dict] = None
    notes: Optional[str] = None
    changed_by: Optional[uuid.UUID] = None
    created_at: Optional[datetime] = None


# ═════════════════════════════════════════════════════════════════════
# Probation
# ═════════════════════════════════════════════════════════════════════


class ProbationRecordResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employment_id: uuid.UUID
    event_type: ProbationEventType
    event_date: date
    decision_date: Optional[date] = None
    probation_start_date: date
    probation_end_date: Optional[date] = None
    previous_end_date: Optional[date] = None
    extension_number: int = 0
    decision_reason: Optional[str] = None
    evaluation_notes: Optional[str] = None
    approved_by: Optional[uuid.UUID] = None
    is_active: bool


class ProbationExtendRequest(BaseModel):
    new_end_date: date
    reason: str = Field(..., min_length=1, max_length=1000)
    notes: Optional[str] = None


class ProbationPassRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=1000)


class ProbationFailRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=1000)
    end_date: Optional[date] = None


class ProbationProcessRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    run_date: Optional[date] = Field(None, alias="date")


class ProbationProcessResult(BaseModel):
    processed: int = 0
    transitioned: int = 0
    failed: int = 0
    errors: list[dict] = []
