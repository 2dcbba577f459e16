"""Personnel action router — constants, CRUD, approvals."""


import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.auth.dependencies import require_permission
from hrms.common.constants import PersonnelActionStatus, PersonnelActionType
from hrms.common.pagination import PaginationParams
from hrms.common.responses import success_response
from hrms.core_hr.models import Employee
from hrms.database import get_db
from hrms.personnel_actions.schemas import (
    PersonnelActionCreate,
    PersonnelActionResponse,
    PersonnelActionUpdate,
    PersonnelApprovalRequest,
)
from hrms.personnel_actions.service import PersonnelActionService, action_constants

router = APIRouter(prefix="", tags=["personnel-actions"])

_can_read = require_permission("personnel_action:read")
_can_edit = require_permission("personnel_action:edit")
_can_approve = require_permission("personnel_action:approve")


# ── GET /constants ──────────────────────────────────────────────────
# NOTE: /constants and /pending MUST be defined before /{action_id}

@router.get("/constants")
async def get_constants(current_user: Employee = Depends(_can_read)):
    return success_response(action_constants(), "Personnel action constants retrieved successfully.")


@router.get("/pending")
async def pending_actions(
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_read),
):
    actions = await PersonnelActionService.pending(db)
    return success_response(
        [PersonnelActionResponse.model_validate(a) for a in actions],
        "Pending personnel actions retrieved successfully.",
    )


# ── GET / ───────────────────────────────────────────────────────────

@router.get("")
async def list_personnel_actions(
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_read),
    pagination: PaginationParams = Depends(),
    employment_id: Optional[uuid.UUID] = Query(None),
    action_type: Optional[PersonnelActionType] = Query(None),
    status: Optional[PersonnelActionStatus] = Query(None),
):
    result = await PersonnelActionService.list_actions(
        db, pagination, employment_id=employment_id, action_type=action_type, status=status,
    )
    return success_response(
        [PersonnelActionResponse.model_validate(a) for a in result.data],
        "Personnel actions retrieved successfully.",
        pagination=result.pagination,
    )


@router.post("", status_code=201)
async def create_personnel_action(
    body: PersonnelActionCreate,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_edit),
):
    action = await PersonnelActionService.create_action(db, body, actor_id=current_user.id)
    return success_response(
        PersonnelActionResponse.model_validate(action),
        f"Personnel action {action.reference_number} created successfully.",
    )


@router.get("/{action_id}")
async def get_personnel_action(
    action_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_read),
):
    action = await PersonnelActionService.get_action(db, action_id)
    return success_response(PersonnelActionResponse.model_validate(action), "Personnel action retrieved successfully.")


@router.put("/{action_id}")
async def update_personnel_action(
    action_id: uuid.UUID,
    body: PersonnelActionUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_edit),
):
    action = await PersonnelActionService.update_action(db, action_id, body, actor_id=current_user.id)
    return success_response(PersonnelActionResponse.model_validate(action), "Personnel action updated successfully.")


@router.delete("/{action_id}")
async def delete_personnel_action(
    action_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_edit),
):
    await PersonnelActionService.delete_action(db, action_id, actor_id=current_user.id)
    return success_response(None, "Personnel action deleted successfully.")


# ── PATCH /{action_id}/approve ──────────────────────────────────────

@router.patch("/{action_id}/approve")
async def approve_personnel_action(
    action_id: uuid.UUID,
    body: PersonnelApprovalRequest,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_approve),
):
    """Set one of the four approvals; the last one applies the action to the employment."""
    action = await PersonnelActionService.set_approval(db, action_id, body, actor_id=current_user.id)
    message = (
        "Personnel action fully approved and implemented."
        if action.implemented_at is not None
        else f"{body.approval_type.value.replace('_', ' ').title()} approval updated."
    )
    return success_response(PersonnelActionResponse.model_validate(action), message)
