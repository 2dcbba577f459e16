"""Resignation schemas."""


import uuid
from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from hrms.common.constants import AcknowledgementAction, AcknowledgementStatus


class ResignationCreate(BaseModel):
    employee_id: uuid.UUID
    department_id: Optional[uuid.UUID] = None
    position_id: Optional[uuid.UUID] = None
    resignation_date: date
    last_working_date: date
    reason: str = Field(..., min_length=1, max_length=50)
    reason_details: Optional[str] = None

    @model_validator(mode="after")
    def _check_dates(self) -> "ResignationCreate":
        if self.last_working_date < self.resignation_date:
            raise ValueError("last_working_date must be on or after resignation_date.")
        return self


class ResignationUpdate(BaseModel):
    department_id: Optional[uuid.UUID] = None
    position_id: Optional[uuid.UUID] = None
    resignation_date: Optional[date] = None
    last_working_date: Optional[date] = None
    reason: Optional[str] = Field(None, min_length=1, max_length=50)
    reason_details: Optional[str] = None


class AcknowledgeRequest(BaseModel):
    action: AcknowledgementAction


class ResignationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    staff_id: Optional[str] = None
    employee_name: Optional[str] = None
    department_id: Optional[uuid.UUID] = None
    position_id: Optional[uuid.UUID] = None
    resignation_date: date
    last_working_date: date
    reason: str
    reason_details: Optional[str] = None
    acknowledgement_status: AcknowledgementStatus
    acknowledged_by: Optional[uuid.UUID] = None
    acknowledged_at: Optional[datetime] = None
    notice_period_days: int
    days_until_last_working: int = 0
    is_overdue: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def build(cls, resignation, today: date) -> "ResignationResponse":
        """Serialize *resignation* with the countdown fields computed for *today*."""
        response = cls.model_validate(resignation)
        return response.model_copy(update={
            "staff_id": resignation.employee.staff_id,
            "employee_name": resignation.employee.full_name,
            "days_until_last_working": resignation.days_left_on(today),
            "is_overdue": resignation.overdue_on(today),
        })
