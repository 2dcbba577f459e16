"""Funding allocation schemas. FTE is exchanged as a percentage (60 == 60 %)."""

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from hrms.common.constants import AllocationStatus, AllocationType, SalaryType


class AllocationItemIn(BaseModel):
    grant_item_id: uuid.UUID
    fte: Decimal = Field(..., gt=0, le=100, description="Percentage of full time")


class FundingAllocationBatchCreate(BaseModel):
    employment_id: uuid.UUID
    effective_date: Optional[date] = None
    allocations: list[AllocationItemIn] = Field(..., min_length=1)


class FundingAllocationReplace(BaseModel):
    effective_date: Optional[date] = None
    allocations: list[AllocationItemIn] = Field(..., min_length=1)


class FundingAllocationUpdate(BaseModel):
    fte: Optional[Decimal] = Field(None, gt=0, le=100)
    status: Optional[AllocationStatus] = None


class FundingPreviewRequest(BaseModel):
    employment_id: uuid.UUID
    effective_date: Optional[date] = None
    allocations: list[AllocationItemIn] = Field(..., min_length=1)


class SalaryContext(BaseModel):
    salary_type: SalaryType
    salary: Decimal
    allocated_amount: Decimal


class FundingAllocationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    employment_id: uuid.UUID
    grant_item_id: uuid.UUID
    position_slot_id: Optional[uuid.UUID] = None
    allocation_type: AllocationType
    fte: Decimal = Field(validation_alias="fte_percent")
    allocated_amount: Decimal
    salary_type: SalaryType
    status: AllocationStatus
    start_date: date
    end_date: Optional[date] = None
    created_at: Optional[datetime] = None
