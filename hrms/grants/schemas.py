"""Grant / grant item / position slot schemas."""


import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from hrms.common.constants import Organization


# ═════════════════════════════════════════════════════════════════════
# Grant items
# ═════════════════════════════════════════════════════════════════════


class GrantItemFields(BaseModel):
    grant_position: str = Field(..., min_length=1, max_length=255)
    grant_salary: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)
    grant_benefit: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)
    grant_level_of_effort: Optional[Decimal] = Field(None, ge=0, le=1)
    grant_position_number: int = Field(1, ge=1, le=500)
    budgetline_code: Optional[str] = Field(None, max_length=100)


class GrantItemCreate(GrantItemFields):
    grant_id: uuid.UUID


class GrantItemUpdate(BaseModel):
    grant_position: Optional[str] = Field(None, min_length=1, max_length=255)
    grant_salary: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)
    grant_benefit: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)
    grant_level_of_effort: Optional[Decimal] = Field(None, ge=0, le=1)
    grant_position_number: Optional[int] = Field(None, ge=1, le=500)
    budgetline_code: Optional[str] = Field(None, max_length=100)


class PositionSlotResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    slot_number: int
    budgetline_code: Optional[str] = None


class GrantItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    grant_id: uuid.UUID
    grant_position: str
    grant_salary: Optional[Decimal] = None
    grant_benefit: Optional[Decimal] = None
    grant_level_of_effort: Optional[Decimal] = None
    grant_position_number: int
    budgetline_code: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class GrantItemDetail(GrantItemResponse):
    slots: list[PositionSlotResponse] = []


# ═════════════════════════════════════════════════════════════════════
# Grants
# ═════════════════════════════════════════════════════════════════════


class GrantCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=50)
    name: str = Field(..., min_length=1, max_length=255)
    organization: Organization
    description: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    is_hub_grant: bool = False
    items: list[GrantItemFields] = []

    @model_validator(mode="after")
    def _check_dates(self) -> "GrantCreate":
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date must be on or after start_date")
        return self


class GrantUpdate(BaseModel):
    code: Optional[str] = Field(None, min_length=1, max_length=50)
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    organization: Optional[Organization] = None
    description: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    is_hub_grant: Optional[bool] = None


class GrantResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    code: str
    name: str
    organization: Organization
    description: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    is_hub_grant: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class GrantDetail(GrantResponse):
    items: list[GrantItemResponse] = []


# ── Position summary ────────────────────────────────────────────────

class ItemPositionSummary(BaseModel):
    grant_item_id: uuid.UUID
    grant_position: str
    budgetline_code: Optional[str] = None
    total_slots: int
    occupied: int
    available: int


class GrantPositionSummary(BaseModel):
    grant_id: uuid.UUID
    grant_code: str
    items: list[ItemPositionSummary]
    total_slots: int
    occupied: int
    available: int
