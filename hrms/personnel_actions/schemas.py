"""Personnel action schemas."""


import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from hrms.common.constants import (
    PersonnelActionStatus,
    PersonnelActionSubtype,
    PersonnelActionType,
    PersonnelApprovalType,
    TransferType,
)


class _ActionFields(BaseModel):
    action_subtype: Optional[PersonnelActionSubtype] = None
    is_transfer: Optional[bool] = None
    transfer_type: Optional[TransferType] = None
    new_department_id: Optional[uuid.UUID] = None
    new_position_id: Optional[uuid.UUID] = None
    new_work_location_id: Optional[uuid.UUID] = None
    new_salary: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)
    new_work_schedule: Optional[str] = Field(None, max_length=100)
    new_report_to: Optional[str] = Field(None, max_length=150)
    new_pay_plan: Optional[str] = Field(None, max_length=100)
    new_phone_ext: Optional[str] = Field(None, max_length=20)
    new_email: Optional[EmailStr] = None
    comments: Optional[str] = None
    change_details: Optional[str] = None


class PersonnelActionCreate(_ActionFields):
    employment_id: uuid.UUID
    effective_date: date
    action_type: PersonnelActionType


class PersonnelActionUpdate(_ActionFields):
    effective_date: Optional[date] = None
    action_type: Optional[PersonnelActionType] = None


class PersonnelApprovalRequest(BaseModel):
    approval_type: PersonnelApprovalType
    approved: bool


class PersonnelActionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    form_number: str
    reference_number: str
    employment_id: uuid.UUID
    current_employee_no: Optional[str] = None
    current_department_id: Optional[uuid.UUID] = None
    current_position_id: Optional[uuid.UUID] = None
    current_work_location_id: Optional[uuid.UUID] = None
    current_salary: Optional[Decimal] = None
    current_employment_date: Optional[date] = None
    effective_date: date
    action_type: PersonnelActionType
    action_subtype: Optional[PersonnelActionSubtype] = None
    is_transfer: bool
    transfer_type: Optional[TransferType] = None
    new_department_id: Optional[uuid.UUID] = None
    new_position_id: Optional[uuid.UUID] = None
    new_work_location_id: Optional[uuid.UUID] = None
    new_salary: Optional[Decimal] = None
    new_work_schedule: Optional[str] = None
    new_report_to: Optional[str] = None
    new_pay_plan: Optional[str] = None
    new_phone_ext: Optional[str] = None
    new_email: Optional[str] = None
    comments: Optional[str] = None
    change_details: Optional[str] = None
    dept_head_approved: bool
    coo_approved: bool
    hr_approved: bool
    accountant_approved: bool
    implemented_at: Optional[datetime] = None
    status: PersonnelActionStatus
    created_by: Optional[uuid.UUID] = None
    updated_by: Optional[uuid.UUID] = None
    created_at: Optional[datetime] = None
