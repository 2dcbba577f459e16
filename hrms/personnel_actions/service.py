"""Personnel action service.

An action is raised against an employment, collects four approvals
(department head, COO, HR, accountant) and is applied to the employment as
soon as the last one is given. Applied actions are frozen.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.common.audit import create_audit_entry, snapshot, to_audit_value
from hrms.common.constants import (
    AllocationStatus,
    PersonnelActionStatus,
    PersonnelActionSubtype,
    PersonnelActionType,
    TransferType,
)
from hrms.common.exceptions import BusinessRuleException, NotFoundException, ValidationException
from hrms.common.filters import apply_filters
from hrms.common.pagination import PaginatedResponse, PaginationParams, paginate
from hrms.core_hr.models import Employee
from hrms.employment.history import record_history
from hrms.employment.models import Employment
from hrms.employment.probation import local_today
from hrms.employment.service import EmploymentService
from hrms.funding.service import FundingAllocationService
from hrms.notifications.service import notify_personnel_action_implemented
from hrms.personnel_actions.models import PersonnelAction
from hrms.personnel_actions.schemas import (
    PersonnelActionCreate,
    PersonnelActionUpdate,
    PersonnelApprovalRequest,
)

logger = logging.getLogger(__name__)

ACTION_TYPE_LABELS = {
    PersonnelActionType.appointment: "Appointment",
    PersonnelActionType.fiscal_increment: "Fiscal Increment",
    PersonnelActionType.title_change: "Title Change",
    PersonnelActionType.voluntary_separation: "Voluntary Separation",
    PersonnelActionType.position_change: "Position Change",
    PersonnelActionType.transfer: "Transfer",
}
ACTION_SUBTYPE_LABELS = {
    PersonnelActionSubtype.re_evaluated_pay_adjustment: "Re-Evaluated Pay Adjustment",
    PersonnelActionSubtype.promotion: "Promotion",
    PersonnelActionSubtype.demotion: "Demotion",
    PersonnelActionSubtype.end_of_contract: "End of Contract",
    PersonnelActionSubtype.work_allocation: "Work Allocation",
}
TRANSFER_TYPE_LABELS = {
    TransferType.internal_department: "Internal Department",
    TransferType.site_to_site: "From Site to Site",
    TransferType.attachment_position: "Attachment Position",
}
STATUS_LABELS = {
    PersonnelActionStatus.pending: "Pending Approval",
    PersonnelActionStatus.partial_approved: "Partially Approved",
    PersonnelActionStatus.fully_approved: "Fully Approved",
    PersonnelActionStatus.implemented: "Implemented",
}

# Employment columns each action type writes, keyed by the action column holding the value.
_IMPLEMENTED_FIELDS: dict[PersonnelActionType, dict[str, str]] = {
    PersonnelActionType.appointment: {
        "new_position_id": "position_id",
        "new_department_id": "department_id",
        "new_salary": "pass_probation_salary",
        "new_work_location_id": "work_location_id",
    },
    PersonnelActionType.fiscal_increment: {
        "new_position_id": "position_id",
        "new_department_id": "department_id",
        "new_salary": "pass_probation_salary",
    },
    PersonnelActionType.position_change: {
        "new_position_id": "position_id",
        "new_department_id": "department_id",
        "new_salary": "pass_probation_salary",
    },
    PersonnelActionType.transfer: {
        "new_department_id": "department_id",
        "new_work_location_id": "work_location_id",
        "new_position_id": "position_id",
    },
    PersonnelActionType.title_change: {
        "new_position_id": "position_id",
    },
    PersonnelActionType.voluntary_separation: {},
}

_APPROVAL_FLAGS = ("dept_head_approved", "coo_approved", "hr_approved", "accountant_approved")

_FIELDS = [
    "reference_number", "employment_id", "effective_date", "action_type", "action_subtype",
    "is_transfer", "transfer_type", "new_department_id", "new_position_id",
    "new_work_location_id", "new_salary", "new_work_schedule", "new_report_to",
    "new_pay_plan", "new_phone_ext", "new_email", "comments", "change_details",
    *_APPROVAL_FLAGS, "implemented_at",
]


def action_constants() -> dict[str, list[dict[str, str]]]:
    def _options(labels: dict) -> list[dict[str, str]]:
        return [{"value": key.value, "label": label} for key, label in labels.items()]

    return {
        "action_types": _options(ACTION_TYPE_LABELS),
        "action_subtypes": _options(ACTION_SUBTYPE_LABELS),
        "transfer_types": _options(TRANSFER_TYPE_LABELS),
        "statuses": _options(STATUS_LABELS),
    }


def _status_condition(status: PersonnelActionStatus):
    flags = [getattr(PersonnelAction, f).is_(True) for f in _APPROVAL_FLAGS]
    not_implemented = PersonnelAction.implemented_at.is_(None)
    if status == PersonnelActionStatus.implemented:
        return PersonnelAction.implemented_at.is_not(None)
    if status == PersonnelActionStatus.fully_approved:
        return and_(not_implemented, *flags)
    if status == PersonnelActionStatus.partial_approved:
        return and_(not_implemented, or_(*flags), ~and_(*flags))
    return and_(not_implemented, ~or_(*flags))


def _check_transfer(values: dict[str, Any]) -> None:
    if values.get("action_type") == PersonnelActionType.transfer and values.get("transfer_type") is None:
        raise ValidationException({"transfer_type": ["transfer_type is required for a transfer."]})


class PersonnelActionService:
    """Async personnel action operations."""

    # ── Queries ─────────────────────────────────────────────────────

    @staticmethod
    async def list_actions(
        db: AsyncSession,
        pagination: PaginationParams,
        *,
        employment_id: Optional[uuid.UUID] = None,
        action_type: Optional[PersonnelActionType] = None,
        status: Optional[PersonnelActionStatus] = None,
    ) -> PaginatedResponse:
        query = select(PersonnelAction).order_by(PersonnelAction.created_at.desc())
        query = apply_filters(query, PersonnelAction, {
            "employment_id": employment_id,
            "action_type": action_type,
        })
        if status is not None:
            query = query.where(_status_condition(status))
        return await paginate(db, query, pagination, model=PersonnelAction)

    @staticmethod
    async def pending(db: AsyncSession) -> list[PersonnelAction]:
        """Actions still waiting for at least one approval."""
        result = await db.execute(
            select(PersonnelAction)
            .where(
                PersonnelAction.implemented_at.is_(None),
                or_(*[getattr(PersonnelAction, f).is_(False) for f in _APPROVAL_FLAGS]),
            )
            .order_by(PersonnelAction.created_at.desc())
        )
        return list(result.scalars().all())

    @staticmethod
    async def get_action(db: AsyncSession, action_id: uuid.UUID) -> PersonnelAction:
        action = await db.get(PersonnelAction, action_id)
        if action is None:
            raise NotFoundException("PersonnelAction", str(action_id))
        return action

    @staticmethod
    async def next_reference_number(db: AsyncSession, year: int) -> str:
        """``PA-{year}-{seq:06d}``; the sequence restarts every calendar year.

        Continues from the highest live number, so deleting an earlier
        action never hands out a number that is still in use.
        """
        prefix = f"PA-{year}-"
        latest = (
            await db.execute(
                select(func.max(PersonnelAction.reference_number))
                .where(PersonnelAction.reference_number.like(f"{prefix}%"))
            )
        ).scalar_one()
        sequence = int(latest[len(prefix):]) if latest else 0
        return f"{prefix}{sequence + 1:06d}"

    @staticmethod
    async def _check_references(db: AsyncSession, values: dict[str, Any]) -> None:
        try:
            await EmploymentService._check_references(db, {
                "department_id": values.get("new_department_id"),
                "position_id": values.get("new_position_id"),
                "work_location_id": values.get("new_work_location_id"),
            })
        except ValidationException as exc:
            raise ValidationException({f"new_{k}": v for k, v in exc.errors.items()}) from exc

    # ── Mutations ───────────────────────────────────────────────────

    @staticmethod
    async def create_action(
        db: AsyncSession,
        data: PersonnelActionCreate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> PersonnelAction:
        """Raise an action, freezing the employment's current terms on it."""
        employment = await EmploymentService.get_employment(db, data.employment_id)
        values = data.model_dump()
        _check_transfer(values)
        await PersonnelActionService._check_references(db, values)
        if values["is_transfer"] is None:
            values["is_transfer"] = data.action_type == PersonnelActionType.transfer

        employee = await db.get(Employee, employment.employee_id)
        action = PersonnelAction(
            **values,
            reference_number=await PersonnelActionService.next_reference_number(db, local_today().year),
            current_employee_no=employee.staff_id if employee else None,
            current_department_id=employment.department_id,
            current_position_id=employment.position_id,
            current_work_location_id=employment.work_location_id,
            current_salary=employment.pass_probation_salary,
            current_employment_date=employment.start_date,
            created_by=actor_id,
            updated_by=actor_id,
        )
        db.add(action)
        await db.flush()

        await record_history(
            db,
            employment,
            reason=f"Personnel Action {action.reference_number} created: {action.action_type.value}",
            notes=action.comments,
            actor_id=actor_id,
        )
        await create_audit_entry(
            db,
            action="create",
            entity_type="personnel_action",
            entity_id=action.id,
            actor_id=actor_id,
            new_values=snapshot(action, _FIELDS),
        )
        logger.info("Personnel action %s raised for employment %s", action.reference_number, employment.id)
        return action

    @staticmethod
    async def update_action(
        db: AsyncSession,
        action_id: uuid.UUID,
        data: PersonnelActionUpdate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> PersonnelAction:
        action = await PersonnelActionService.get_action(db, action_id)
        if action.implemented_at is not None:
            raise BusinessRuleException("An implemented personnel action cannot be modified.")

        changes = data.model_dump(exclude_unset=True)
        _check_transfer({
            "action_type": changes.get("action_type", action.action_type),
            "transfer_type": changes.get("transfer_type", action.transfer_type),
        })
        await PersonnelActionService._check_references(db, changes)

        old = snapshot(action, _FIELDS)
        for field, value in changes.items():
            if field == "is_transfer" and value is None:
                continue
            setattr(action, field, value)
        action.updated_by = actor_id
        await db.flush()

        await create_audit_entry(
            db,
            action="update",
            entity_type="personnel_action",
            entity_id=action.id,
            actor_id=actor_id,
            old_values=old,
            new_values=snapshot(action, _FIELDS),
        )
        return action

    @staticmethod
    async def set_approval(
        db: AsyncSession,
        action_id: uuid.UUID,
        data: PersonnelApprovalRequest,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> PersonnelAction:
        """Record one approval; the fourth approval implements the action."""
        action = await PersonnelActionService.get_action(db, action_id)
        if action.implemented_at is not None:
            raise BusinessRuleException("This personnel action has already been implemented.")

        field = f"{data.approval_type.value}_approved"
        old = snapshot(action, list(_APPROVAL_FLAGS))
        setattr(action, field, data.approved)
        action.updated_by = actor_id
        await db.flush()

        await create_audit_entry(
            db,
            action="approve" if data.approved else "reject",
            entity_type="personnel_action",
            entity_id=action.id,
            actor_id=actor_id,
            old_values=old,
            new_values=snapshot(action, list(_APPROVAL_FLAGS)),
        )

        if action.is_fully_approved:
            await PersonnelActionService.implement(db, action, actor_id=actor_id)
        return action

    @staticmethod
    async def implement(
        db: AsyncSession,
        action: PersonnelAction,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> Employment:
        """Apply the action's requested change to its employment."""
        employment = await EmploymentService.get_employment(db, action.employment_id)
        changes: dict[str, Any] = {}

        def _apply(column: str, value: Any) -> None:
            current = getattr(employment, column)
            if value is None or current == value:
                return
            changes[column] = {"from": to_audit_value(current), "to": to_audit_value(value)}
            setattr(employment, column, value)

        for source, column in _IMPLEMENTED_FIELDS[action.action_type].items():
            _apply(column, getattr(action, source))

        closed = 0
        if action.action_type == PersonnelActionType.voluntary_separation:
            _apply("end_date", action.effective_date)
            if action.effective_date <= local_today():
                _apply("is_active", False)
            closed = len(await FundingAllocationService.close_active(
                db,
                employment.id,
                status=AllocationStatus.closed,
                end_date=action.effective_date,
                actor_id=actor_id,
            ))
            if closed:
                changes["allocations_closed"] = closed

        employment.updated_by = actor_id
        await db.flush()

        if "pass_probation_salary" in changes:
            recomputed = await FundingAllocationService.recompute_amounts(
                db, employment, on_date=action.effective_date,
            )
            changes["allocations_recomputed"] = recomputed

        action.implemented_at = datetime.now(timezone.utc)
        await db.flush()

        await record_history(
            db,
            employment,
            reason=f"Personnel Action {action.reference_number} implemented: {action.action_type.value}",
            changes=changes or None,
            notes=action.comments,
            actor_id=actor_id,
            change_date=action.effective_date,
        )
        await create_audit_entry(
            db,
            action="implement",
            entity_type="personnel_action",
            entity_id=action.id,
            actor_id=actor_id,
            new_values={"employment_id": str(employment.id), "changes": changes},
        )
        if action.created_by is not None:
            await notify_personnel_action_implemented(db, action, action.created_by)

        logger.info(
            "Personnel action %s implemented on employment %s (%d field(s) changed)",
            action.reference_number, employment.id, len(changes),
        )
        return employment

    @staticmethod
    async def delete_action(
        db: AsyncSession,
        action_id: uuid.UUID,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> None:
        action = await PersonnelActionService.get_action(db, action_id)
        if action.implemented_at is not None:
            raise BusinessRuleException("An implemented personnel action cannot be deleted.")
        old = snapshot(action, _FIELDS)
        await db.delete(action)
        await db.flush()
        await create_audit_entry(
            db,
            action="delete",
            entity_type="personnel_action",
            entity_id=action_id,
            actor_id=actor_id,
            old_values=old,
        )
