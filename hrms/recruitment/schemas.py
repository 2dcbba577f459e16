"""Interview and job offer schemas."""


import uuid
from datetime import date, datetime, time
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from hrms.common.constants import HiredStatus, InterviewMode, InterviewStatus, OfferStatus


class InterviewCreate(BaseModel):
    candidate_name: str = Field(..., min_length=1, max_length=255)
    phone: Optional[str] = Field(None, max_length=20)
    job_position: str = Field(..., min_length=1, max_length=255)
    interviewer_name: Optional[str] = Field(None, max_length=255)
    interview_date: Optional[date] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    interview_mode: Optional[InterviewMode] = None
    interview_status: InterviewStatus = InterviewStatus.scheduled
    hired_status: HiredStatus = HiredStatus.pending
    score: Optional[Decimal] = Field(None, ge=0, le=100)
    feedback: Optional[str] = None
    reference_info: Optional[str] = None

    @model_validator(mode="after")
    def _check_times(self) -> "InterviewCreate":
        if self.start_time and self.end_time and self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time.")
        return self


class InterviewUpdate(BaseModel):
    candidate_name: Optional[str] = Field(None, min_length=1, max_length=255)
    phone: Optional[str] = Field(None, max_length=20)
    job_position: Optional[str] = Field(None, min_length=1, max_length=255)
    interviewer_name: Optional[str] = Field(None, max_length=255)
    interview_date: Optional[date] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    interview_mode: Optional[InterviewMode] = None
    interview_status: Optional[InterviewStatus] = None
    hired_status: Optional[HiredStatus] = None
    score: Optional[Decimal] = Field(None, ge=0, le=100)
    feedback: Optional[str] = None
    reference_info: Optional[str] = None


class InterviewResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    candidate_name: str
    phone: Optional[str] = None
    job_position: str
    interviewer_name: Optional[str] = None
    interview_date: Optional[date] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    interview_mode: Optional[InterviewMode] = None
    interview_status: InterviewStatus
    hired_status: HiredStatus
    score: Optional[Decimal] = None
    feedback: Optional[str] = None
    reference_info: Optional[str] = None
    created_by: Optional[uuid.UUID] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# ── Job offers ──────────────────────────────────────────────────────


class JobOfferCreate(BaseModel):
    offer_date: date
    candidate_name: str = Field(..., min_length=1, max_length=255)
    position_name: str = Field(..., min_length=1, max_length=255)
    probation_salary: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)
    post_probation_salary: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)
    acceptance_deadline: date
    acceptance_status: OfferStatus = OfferStatus.pending
    note: Optional[str] = None

    @model_validator(mode="after")
    def _check_deadline(self) -> "JobOfferCreate":
        if self.acceptance_deadline < self.offer_date:
            raise ValueError("acceptance_deadline must be on or after offer_date.")
        return self


class JobOfferUpdate(BaseModel):
    offer_date: Optional[date] = None
    candidate_name: Optional[str] = Field(None, min_length=1, max_length=255)
    position_name: Optional[str] = Field(None, min_length=1, max_length=255)
    probation_salary: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)
    post_probation_salary: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)
    acceptance_deadline: Optional[date] = None
    acceptance_status: Optional[OfferStatus] = None
    note: Optional[str] = None


class JobOfferResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    custom_offer_id: str
    offer_date: date
    candidate_name: str
    position_name: str
    probation_salary: Decimal
    post_probation_salary: Decimal
    acceptance_deadline: date
    acceptance_status: OfferStatus
    note: Optional[str] = None
    created_by: Optional[uuid.UUID] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
