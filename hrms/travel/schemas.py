"""Travel request schemas."""


import uuid
from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from hrms.common.constants import Accommodation, Transportation, TravelStatus


class TravelRequestCreate(BaseModel):
    employee_id: Optional[uuid.UUID] = Field(None, description="Defaults to the requesting user")
    department_id: Optional[uuid.UUID] = None
    position_id: Optional[uuid.UUID] = None
    destination: Optional[str] = Field(None, max_length=200)
    start_date: Optional[date] = None
    to_date: Optional[date] = None
    purpose: Optional[str] = None
    grant: Optional[str] = Field(None, max_length=50)
    transportation: Optional[Transportation] = None
    transportation_other_text: Optional[str] = Field(None, max_length=200)
    accommodation: Optional[Accommodation] = None
    accommodation_other_text: Optional[str] = Field(None, max_length=200)
    request_by_date: Optional[date] = None
    remarks: Optional[str] = None


class TravelRequestUpdate(BaseModel):
    department_id: Optional[uuid.UUID] = None
    position_id: Optional[uuid.UUID] = None
    destination: Optional[str] = Field(None, max_length=200)
    start_date: Optional[date] = None
    to_date: Optional[date] = None
    purpose: Optional[str] = None
    grant: Optional[str] = Field(None, max_length=50)
    transportation: Optional[Transportation] = None
    transportation_other_text: Optional[str] = Field(None, max_length=200)
    accommodation: Optional[Accommodation] = None
    accommodation_other_text: Optional[str] = Field(None, max_length=200)
    request_by_date: Optional[date] = None
    remarks: Optional[str] = None


class TravelApprovalRequest(BaseModel):
    approved: bool = True
    remarks: Optional[str] = None


class TravelAcknowledgeRequest(BaseModel):
    remarks: Optional[str] = None


class TravelRequestResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    department_id: Optional[uuid.UUID] = None
    position_id: Optional[uuid.UUID] = None
    destination: Optional[str] = None
    start_date: Optional[date] = None
    to_date: Optional[date] = None
    purpose: Optional[str] = None
    grant: Optional[str] = None
    transportation: Optional[Transportation] = None
    transportation_other_text: Optional[str] = None
    accommodation: Optional[Accommodation] = None
    accommodation_other_text: Optional[str] = None
    request_by_date: Optional[date] = None
    supervisor_approved: bool
    supervisor_approved_date: Optional[date] = None
    hr_acknowledged: bool
    hr_acknowledgement_date: Optional[date] = None
    remarks: Optional[str] = None
    status: TravelStatus
    created_by: Optional[uuid.UUID] = None
    created_at: Optional[datetime] = None
