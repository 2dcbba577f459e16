"""Resignation service — notices, acknowledgement and listing."""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy import String, cast, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.common.audit import create_audit_entry, snapshot
from hrms.common.constants import AcknowledgementAction, AcknowledgementStatus
from hrms.common.exceptions import BusinessRuleException, NotFoundException, ValidationException
from hrms.common.filters import apply_filters
from hrms.common.pagination import PaginatedResponse, PaginationParams, paginate
from hrms.core_hr.models import Employee
from hrms.core_hr.service import EmployeeService
from hrms.employment.service import EmploymentService
from hrms.notifications.service import notify_resignation_decision
from hrms.resignations.models import Resignation
from hrms.resignations.schemas import ResignationCreate, ResignationUpdate

logger = logging.getLogger(__name__)

_FIELDS = [
    "employee_id", "department_id", "position_id", "resignation_date", "last_working_date",
    "reason", "reason_details", "acknowledgement_status", "acknowledged_by", "acknowledged_at",
]


class ResignationService:

    @staticmethod
    async def list_resignations(
        db: AsyncSession,
        pagination: PaginationParams,
        *,
        acknowledgement_status: Optional[AcknowledgementStatus] = None,
        department_id: Optional[uuid.UUID] = None,
        reason: Optional[str] = None,
        search: Optional[str] = None,
    ) -> PaginatedResponse:
        """Newest notice first unless *pagination* asks for another sort."""
        query = select(Resignation).order_by(Resignation.resignation_date.desc())
        query = apply_filters(query, Resignation, {
            "acknowledgement_status": acknowledgement_status,
            "department_id": department_id,
            "reason__ilike": reason,
        })
        if search and search.strip():
            term = f"%{search.strip()}%"
            query = query.join(Employee, Employee.id == Resignation.employee_id).where(or_(
                Employee.staff_id.ilike(term),
                Employee.first_name.ilike(term),
                Employee.last_name.ilike(term),
                Resignation.reason.ilike(term),
                cast(Resignation.reason_details, String).ilike(term),
            ))
        return await paginate(db, query, pagination, model=Resignation)

    @staticmethod
    async def get_resignation(db: AsyncSession, resignation_id: uuid.UUID) -> Resignation:
        resignation = await db.get(Resignation, resignation_id)
        if resignation is None:
            raise NotFoundException("Resignation", str(resignation_id))
        return resignation

    @staticmethod
    async def create_resignation(
        db: AsyncSession,
        data: ResignationCreate,
        *,
        today: date,
        actor_id: Optional[uuid.UUID] = None,
    ) -> Resignation:
        if data.resignation_date > today:
            raise ValidationException({"resignation_date": ["Resignation date cannot be in the future."]})
        if await db.get(Employee, data.employee_id) is None:
            raise ValidationException({"employee_id": ["The selected employee does not exist."]})

        values = data.model_dump()
        await EmploymentService._check_references(db, values)
        if values["department_id"] is None or values["position_id"] is None:
            employment = await EmployeeService.current_employment(db, data.employee_id)
            if employment is not None:
                values["department_id"] = values["department_id"] or employment.department_id
                values["position_id"] = values["position_id"] or employment.position_id

        resignation = Resignation(
            **values,
            acknowledgement_status=AcknowledgementStatus.pending,
            created_by=actor_id,
            updated_by=actor_id,
        )
        db.add(resignation)
        await db.flush()
        await db.refresh(resignation, ["employee"])

        await create_audit_entry(
            db,
            action="create",
            entity_type="resignation",
            entity_id=resignation.id,
            actor_id=actor_id,
            new_values=snapshot(resignation, _FIELDS),
        )
        logger.info("Resignation %s filed for employee %s", resignation.id, resignation.employee_id)
        return resignation

    @staticmethod
    async def update_resignation(
        db: AsyncSession,
        resignation_id: uuid.UUID,
        data: ResignationUpdate,
        *,
        today: date,
        actor_id: Optional[uuid.UUID] = None,
    ) -> Resignation:
        resignation = await ResignationService.get_resignation(db, resignation_id)
        changes = {k: v for k, v in data.model_dump(exclude_unset=True).items() if v is not None}

        start = changes.get("resignation_date", resignation.resignation_date)
        end = changes.get("last_working_date", resignation.last_working_date)
        errors: dict[str, list[str]] = {}
        if "resignation_date" in changes and start > today:
            errors["resignation_date"] = ["Resignation date cannot be in the future."]
        if end < start:
            errors["last_working_date"] = ["Last working date must be on or after resignation date."]
        if errors:
            raise ValidationException(errors)
        await EmploymentService._check_references(db, changes)

        old = snapshot(resignation, _FIELDS)
        for field, value in changes.items():
            setattr(resignation, field, value)
        resignation.updated_by = actor_id
        await db.flush()

        await create_audit_entry(
            db,
            action="update",
            entity_type="resignation",
            entity_id=resignation.id,
            actor_id=actor_id,
            old_values=old,
            new_values=snapshot(resignation, _FIELDS),
        )
        return resignation

    @staticmethod
    async def acknowledge(
        db: AsyncSession,
        resignation_id: uuid.UUID,
        action: AcknowledgementAction,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> Resignation:
        """Acknowledge or reject a pending notice and tell the employee."""
        resignation = await ResignationService.get_resignation(db, resignation_id)
        if resignation.acknowledgement_status != AcknowledgementStatus.pending:
            raise BusinessRuleException("Only pending resignations can be acknowledged or rejected.")

        old = snapshot(resignation, _FIELDS)
        resignation.acknowledgement_status = (
            AcknowledgementStatus.acknowledged
            if action == AcknowledgementAction.acknowledge
            else AcknowledgementStatus.rejected
        )
        resignation.acknowledged_by = actor_id
        resignation.acknowledged_at = datetime.now(timezone.utc)
        resignation.updated_by = actor_id
        await db.flush()

        await create_audit_entry(
            db,
            action=action.value,
            entity_type="resignation",
            entity_id=resignation.id,
            actor_id=actor_id,
            old_values=old,
            new_values=snapshot(resignation, _FIELDS),
        )
        await notify_resignation_decision(db, resignation)
        return resignation

    @staticmethod
    async def delete_resignation(
        db: AsyncSession,
        resignation_id: uuid.UUID,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> None:
        resignation = await ResignationService.get_resignation(db, resignation_id)
        old = snapshot(resignation, _FIELDS)
        await db.delete(resignation)
        await db.flush()
        await create_audit_entry(
            db,
            action="delete",
            entity_type="resignation",
            entity_id=resignation_id,
            actor_id=actor_id,
            old_values=old,
        )
