"""Leave schemas — types, holidays, balances, requests, approvals."""


import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from hrms.common.constants import LeaveApprovalType, LeaveStatus


# ═════════════════════════════════════════════════════════════════════
# Leave types & holidays
# ═════════════════════════════════════════════════════════════════════


class LeaveTypeCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    default_duration: Decimal = Field(Decimal("0"), ge=0, le=365)
    description: Optional[str] = None
    requires_attachment: bool = False
    is_active: bool = True


class LeaveTypeUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    default_duration: Optional[Decimal] = Field(None, ge=0, le=365)
    description: Optional[str] = None
    requires_attachment: Optional[bool] = None
    is_active: Optional[bool] = None


class LeaveTypeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    default_duration: Decimal
    description: Optional[str] = None
    requires_attachment: bool
    is_active: bool


class HolidayCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=150)
    date: date
    description: Optional[str] = None
    is_active: bool = True


class HolidayResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    date: date
    description: Optional[str] = None
    is_active: bool


class WorkingDaysResponse(BaseModel):
    start_date: date
    end_date: date
    calendar_days: int
    working_days: int
    weekend_days: int
    holiday_days: int
    excluded_dates: list[date] = []
    holidays: list[HolidayResponse] = []


# ═════════════════════════════════════════════════════════════════════
# Balances
# ═════════════════════════════════════════════════════════════════════


class LeaveBalanceSet(BaseModel):
    employee_id: uuid.UUID
    leave_type_id: uuid.UUID
    year: int = Field(..., ge=2000, le=2100)
    total_days: Decimal = Field(..., ge=0, le=365)


class LeaveBalanceInitialize(BaseModel):
    year: int = Field(..., ge=2000, le=2100)


class LeaveBalanceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    leave_type_id: uuid.UUID
    year: int
    total_days: Decimal
    used_days: Decimal
    remaining_days: Decimal


# ═════════════════════════════════════════════════════════════════════
# Requests
# ═════════════════════════════════════════════════════════════════════


class LeaveRequestItemIn(BaseModel):
    leave_type_id: uuid.UUID
    days: Decimal = Field(..., gt=0, le=365)


class LeaveRequestCreate(BaseModel):
    employee_id: Optional[uuid.UUID] = Field(None, description="Defaults to the requesting user")
    start_date: date
    end_date: date
    reason: Optional[str] = None
    status: LeaveStatus = LeaveStatus.pending
    attachment_notes: Optional[str] = None
    items: list[LeaveRequestItemIn] = Field(..., min_length=1)

    @model_validator(mode="after")
    def _check(self) -> "LeaveRequestCreate":
        if self.end_date < self.start_date:
            raise ValueError("end_date must be on or after start_date.")
        type_ids = [i.leave_type_id for i in self.items]
        if len(type_ids) != len(set(type_ids)):
            raise ValueError("Each leave type may appear only once per request.")
        return self


class LeaveRequestUpdate(BaseModel):
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    reason: Optional[str] = None
    status: Optional[LeaveStatus] = None
    attachment_notes: Optional[str] = None
    items: Optional[list[LeaveRequestItemIn]] = Field(None, min_length=1)

    @model_validator(mode="after")
    def _check(self) -> "LeaveRequestUpdate":
        if self.items is not None:
            type_ids = [i.leave_type_id for i in self.items]
            if len(type_ids) != len(set(type_ids)):
                raise ValueError("Each leave type may appear only once per request.")
        return self


class LeaveApprovalRequest(BaseModel):
    approval_type: LeaveApprovalType
    approved: bool


class LeaveRequestItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    leave_type_id: uuid.UUID
    days: Decimal


class LeaveRequestResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    start_date: date
    end_date: date
    total_days: Decimal
    reason: Optional[str] = None
    status: LeaveStatus
    supervisor_approved: bool
    supervisor_approved_date: Optional[date] = None
    hr_site_admin_approved: bool
    hr_site_admin_approved_date: Optional[date] = None
    attachment_notes: Optional[str] = None
    created_by: Optional[uuid.UUID] = None
    created_at: Optional[datetime] = None
    items: list[LeaveRequestItemResponse] = []
