"""Travel request service — CRUD, supervisor approval and HR acknowledgement."""

from __future__ import annotations

import logging
import uuid
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.common.audit import create_audit_entry, snapshot
from hrms.common.constants import Accommodation, Transportation, TravelStatus
from hrms.common.exceptions import BusinessRuleException, NotFoundException, ValidationException
from hrms.common.filters import apply_filters
from hrms.common.pagination import PaginatedResponse, PaginationParams, paginate
from hrms.core_hr.service import EmployeeService
from hrms.employment.probation import local_today
from hrms.notifications.service import notify_travel_update
from hrms.travel.models import TravelRequest
from hrms.travel.schemas import (
    TravelAcknowledgeRequest,
    TravelApprovalRequest,
    TravelRequestCreate,
    TravelRequestUpdate,
)

logger = logging.getLogger(__name__)

_FIELDS = [
    "employee_id", "department_id", "position_id", "destination", "start_date", "to_date",
    "purpose", "grant", "transportation", "transportation_other_text", "accommodation",
    "accommodation_other_text", "request_by_date", "supervisor_approved",
    "supervisor_approved_date", "hr_acknowledged", "hr_acknowledgement_date", "remarks",
]
_CHECKED_FIELDS = [
    "transportation", "transportation_other_text", "accommodation",
    "accommodation_other_text", "start_date", "to_date",
]


def travel_options() -> dict[str, list[dict[str, str]]]:
    """Choice lists for the request form."""

    def _label(value: str) -> str:
        return value.replace("_", " ").capitalize().replace("Smru", "SMRU").replace("smru", "SMRU")

    return {
        "transportation": [{"value": t.value, "label": _label(t.value)} for t in Transportation],
        "accommodation": [{"value": a.value, "label": _label(a.value)} for a in Accommodation],
        "statuses": [{"value": s.value, "label": _label(s.value)} for s in TravelStatus],
    }


def _check_values(values: dict[str, Any]) -> None:
    errors: dict[str, list[str]] = {}
    if values.get("transportation") == Transportation.other and not values.get("transportation_other_text"):
        errors["transportation_other_text"] = ["Required when transportation is 'other'."]
    if values.get("accommodation") == Accommodation.other and not values.get("accommodation_other_text"):
        errors["accommodation_other_text"] = ["Required when accommodation is 'other'."]
    start, end = values.get("start_date"), values.get("to_date")
    if start and end and end < start:
        errors["to_date"] = ["to_date must be on or after start_date."]
    if errors:
        raise ValidationException(errors)


class TravelRequestService:
    """Async travel request operations."""

    @staticmethod
    async def list_requests(
        db: AsyncSession,
        pagination: PaginationParams,
        *,
        employee_id: Optional[uuid.UUID] = None,
        status: Optional[TravelStatus] = None,
        destination: Optional[str] = None,
    ) -> PaginatedResponse:
        query = select(TravelRequest).order_by(TravelRequest.created_at.desc())
        query = apply_filters(query, TravelRequest, {
            "employee_id": employee_id,
            "destination__ilike": destination,
        })
        if status == TravelStatus.completed:
            query = query.where(TravelRequest.hr_acknowledged.is_(True))
        elif status == TravelStatus.supervisor_approved:
            query = query.where(
                TravelRequest.supervisor_approved.is_(True),
                TravelRequest.hr_acknowledged.is_(False),
            )
        elif status == TravelStatus.pending:
            query = query.where(
                TravelRequest.supervisor_approved.is_(False),
                TravelRequest.hr_acknowledged.is_(False),
            )
        return await paginate(db, query, pagination, model=TravelRequest)

    @staticmethod
    async def get_request(db: AsyncSession, request_id: uuid.UUID) -> TravelRequest:
        travel = await db.get(TravelRequest, request_id)
        if travel is None:
            raise NotFoundException("TravelRequest", str(request_id))
        return travel

    @staticmethod
    async def create_request(
        db: AsyncSession,
        data: TravelRequestCreate,
        *,
        employee_id: uuid.UUID,
        actor_id: Optional[uuid.UUID] = None,
    ) -> TravelRequest:
        """Create a request; department and position default to the current employment."""
        await EmployeeService.get_employee_or_404(db, employee_id)
        values = data.model_dump(exclude={"employee_id"})
        _check_values(values)

        if values.get("department_id") is None or values.get("position_id") is None:
            employment = await EmployeeService.current_employment(db, employee_id)
            if employment is not None:
                values["department_id"] = values.get("department_id") or employment.department_id
                values["position_id"] = values.get("position_id") or employment.position_id

        travel = TravelRequest(
            **values,
            employee_id=employee_id,
            supervisor_approved=False,
            hr_acknowledged=False,
            created_by=actor_id,
            updated_by=actor_id,
        )
        db.add(travel)
        await db.flush()

        await create_audit_entry(
            db,
            action="create",
            entity_type="travel_request",
            entity_id=travel.id,
            actor_id=actor_id,
            new_values=snapshot(travel, _FIELDS),
        )
        logger.info("Travel request %s created for employee %s", travel.id, employee_id)
        return travel

    @staticmethod
    async def update_request(
        db: AsyncSession,
        request_id: uuid.UUID,
        data: TravelRequestUpdate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> TravelRequest:
        travel = await TravelRequestService.get_request(db, request_id)
        if travel.hr_acknowledged:
            raise BusinessRuleException("An acknowledged travel request can no longer be edited.")

        changes = data.model_dump(exclude_unset=True)
        merged = {field: getattr(travel, field) for field in _CHECKED_FIELDS}
        merged.update(changes)
        _check_values(merged)

        old = snapshot(travel, _FIELDS)
        for field, value in changes.items():
            setattr(travel, field, value)
        travel.updated_by = actor_id
        await db.flush()

        await create_audit_entry(
            db,
            action="update",
            entity_type="travel_request",
            entity_id=travel.id,
            actor_id=actor_id,
            old_values=old,
            new_values=snapshot(travel, _FIELDS),
        )
        return travel

    @staticmethod
    async def approve(
        db: AsyncSession,
        request_id: uuid.UUID,
        data: TravelApprovalRequest,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> TravelRequest:
        """Record the supervisor's decision and notify the traveller."""
        travel = await TravelRequestService.get_request(db, request_id)
        if travel.hr_acknowledged:
            raise BusinessRuleException("This travel request has already been acknowledged by HR.")

        old = snapshot(travel, _FIELDS)
        travel.supervisor_approved = data.approved
        travel.supervisor_approved_date = local_today() if data.approved else None
        if data.remarks is not None:
            travel.remarks = data.remarks
        travel.updated_by = actor_id
        await db.flush()

        await create_audit_entry(
            db,
            action="approve" if data.approved else "reject",
            entity_type="travel_request",
            entity_id=travel.id,
            actor_id=actor_id,
            old_values=old,
            new_values=snapshot(travel, _FIELDS),
        )
        await notify_travel_update(
            db, travel, "Supervisor Approved" if data.approved else "Supervisor Not Approved",
        )
        return travel

    @staticmethod
    async def acknowledge(
        db: AsyncSession,
        request_id: uuid.UUID,
        data: TravelAcknowledgeRequest,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> TravelRequest:
        travel = await TravelRequestService.get_request(db, request_id)
        if not travel.supervisor_approved:
            raise BusinessRuleException("HR can only acknowledge a travel request after supervisor approval.")
        if travel.hr_acknowledged:
            raise BusinessRuleException("This travel request has already been acknowledged.")

        old = snapshot(travel, _FIELDS)
        travel.hr_acknowledged = True
        travel.hr_acknowledgement_date = local_today()
        if data.remarks is not None:
            travel.remarks = data.remarks
        travel.updated_by = actor_id
        await db.flush()

        await create_audit_entry(
            db,
            action="acknowledge",
            entity_type="travel_request",
            entity_id=travel.id,
            actor_id=actor_id,
            old_values=old,
            new_values=snapshot(travel, _FIELDS),
        )
        await notify_travel_update(db, travel, "HR Acknowledged")
        return travel

    @staticmethod
    async def delete_request(
        db: AsyncSession,
        request_id: uuid.UUID,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> None:
        travel = await TravelRequestService.get_request(db, request_id)
        old = snapshot(travel, _FIELDS)
        await db.delete(travel)
        await db.flush()
        await create_audit_entry(
            db,
            action="delete",
            entity_type="travel_request",
            entity_id=request_id,
            actor_id=actor_id,
            old_values=old,
        )
