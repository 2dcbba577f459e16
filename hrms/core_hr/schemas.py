"""Core HR Pydantic v2 schemas — request / response validation.

Naming conventions:
  - *Create / *Update  → request bodies (write)
  - *Response / *Detail → response bodies (read)
  - *Brief             → compact read representations
"""


import uuid
from datetime import date, datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from hrms.common.constants import EmployeeStatus, GenderType, MaritalStatus, Organization


# ═════════════════════════════════════════════════════════════════════
# Work location
# ═════════════════════════════════════════════════════════════════════


class WorkLocationCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=150)
    address: Optional[str] = None
    is_active: bool = True


class WorkLocationUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=150)
    address: Optional[str] = None
    is_active: Optional[bool] = None


class WorkLocationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    address: Optional[str] = None
    is_active: bool = True


# ═════════════════════════════════════════════════════════════════════
# Department / Position
# ═════════════════════════════════════════════════════════════════════


class DepartmentCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=150)
    description: Optional[str] = None
    is_active: bool = True


class DepartmentUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=150)
    description: Optional[str] = None
    is_active: Optional[bool] = None


class DepartmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    description: Optional[str] = None
    is_active: bool = True


class PositionCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=150)
    department_id: uuid.UUID
    reports_to_id: Optional[uuid.UUID] = None
    level: int = Field(1, ge=1, le=20)
    is_manager: bool = False
    is_active: bool = True


class PositionUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=150)
    department_id: Optional[uuid.UUID] = None
    reports_to_id: Optional[uuid.UUID] = None
    level: Optional[int] = Field(None, ge=1, le=20)
    is_manager: Optional[bool] = None
    is_active: Optional[bool] = None


class PositionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    title: str
    department_id: uuid.UUID
    reports_to_id: Optional[uuid.UUID] = None
    level: int
    is_manager: bool
    is_active: bool


# ═════════════════════════════════════════════════════════════════════
# Employee — write schemas
# ═════════════════════════════════════════════════════════════════════


class _EmployeeFields(BaseModel):
    @field_validator("email", check_fields=False)
    @classmethod
    def _lower_email(cls, v: Optional[str]) -> Optional[str]:
        return v.lower() if v else v


class EmployeeCreate(_EmployeeFields):
    """Payload for creating a new employee."""

    staff_id: str = Field(..., min_length=1, max_length=50)
    organization: Organization
    initial: Optional[str] = Field(None, max_length=10)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    display_name: Optional[str] = Field(None, max_length=255)
    gender: Optional[GenderType] = None
    date_of_birth: Optional[date] = None
    status: EmployeeStatus = EmployeeStatus.local_id
    nationality: Optional[str] = Field(None, max_length=100)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=30)
    marital_status: Optional[MaritalStatus] = None
    has_spouse: bool = False
    number_of_children: int = Field(0, ge=0, le=20)
    eligible_parents_count: int = Field(0, ge=0, le=4)
    password: Optional[str] = Field(None, min_length=8, max_length=128)

    @field_validator("date_of_birth")
    @classmethod
    def _dob_in_past(cls, v: Optional[date]) -> Optional[date]:
        if v is not None and v >= date.today():
            raise ValueError("date_of_birth must be in the past")
        return v


class EmployeeUpdate(_EmployeeFields):
    """Partial update — every field optional."""

    staff_id: Optional[str] = Field(None, min_length=1, max_length=50)
    organization: Optional[Organization] = None
    initial: Optional[str] = Field(None, max_length=10)
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    display_name: Optional[str] = Field(None, max_length=255)
    gender: Optional[GenderType] = None
    date_of_birth: Optional[date] = None
    status: Optional[EmployeeStatus] = None
    nationality: Optional[str] = Field(None, max_length=100)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=30)
    marital_status: Optional[MaritalStatus] = None
    has_spouse: Optional[bool] = None
    number_of_children: Optional[int] = Field(None, ge=0, le=20)
    eligible_parents_count: Optional[int] = Field(None, ge=0, le=4)
    password: Optional[str] = Field(None, min_length=8, max_length=128)


# ═════════════════════════════════════════════════════════════════════
# Employee — read schemas
# ═════════════════════════════════════════════════════════════════════


class EmployeeBrief(BaseModel):
    """Minimal employee info embedded in other responses."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    staff_id: str
    first_name: str
    last_name: Optional[str] = None
    organization: Organization


class EmployeeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    staff_id: str
    organization: Organization
    initial: Optional[str] = None
    first_name: str
    last_name: Optional[str] = None
    display_name: Optional[str] = None
    gender: Optional[GenderType] = None
    date_of_birth: Optional[date] = None
    status: EmployeeStatus
    nationality: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    marital_status: Optional[MaritalStatus] = None
    has_spouse: bool = False
    number_of_children: int = 0
    eligible_parents_count: int = 0
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class EmployeeDetail(EmployeeResponse):
    current_employment: Optional[dict[str, Any]] = None
