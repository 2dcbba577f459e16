"""Funding allocation router.

Routes:
    /funding-allocations                              — List, create first set
    /funding-allocations/calculate-preview            — Amounts for a proposed split
    /funding-allocations/employments/{employment_id}  — Replace the set of an employment
    /funding-allocations/{id}                         — Get, update, delete
"""


import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.auth.dependencies import require_permission
from hrms.common.constants import AllocationStatus
from hrms.common.pagination import PaginationParams
from hrms.common.responses import success_response
from hrms.core_hr.models import Employee
from hrms.database import get_db
from hrms.funding.schemas import (
    FundingAllocationBatchCreate,
    FundingAllocationReplace,
    FundingAllocationResponse,
    FundingAllocationUpdate,
    FundingPreviewRequest,
)
from hrms.funding.service import FundingAllocationService

router = APIRouter(prefix="", tags=["funding-allocations"])

_can_read = require_permission("employment:read")
_can_edit = require_permission("employment:edit")


def _out(allocations) -> list[FundingAllocationResponse]:
    return [FundingAllocationResponse.model_validate(a) for a in allocations]


# ── GET /funding-allocations ────────────────────────────────────────

@router.get("")
async def list_allocations(
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_read),
    pagination: PaginationParams = Depends(),
    employee_id: Optional[uuid.UUID] = Query(None),
    employment_id: Optional[uuid.UUID] = Query(None),
    grant_item_id: Optional[uuid.UUID] = Query(None),
    status: Optional[AllocationStatus] = Query(None),
):
    result = await FundingAllocationService.list_allocations(
        db,
        pagination,
        employee_id=employee_id,
        employment_id=employment_id,
        grant_item_id=grant_item_id,
        status=status,
    )
    return success_response(
        _out(result.data),
        "Funding allocations retrieved successfully.",
        pagination=result.pagination,
    )


# ── POST /funding-allocations ───────────────────────────────────────

@router.post("", status_code=201)
async def create_allocations(
    body: FundingAllocationBatchCreate,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_edit),
):
    """Create the initial allocation set of an employment (FTE must total 100)."""
    created = await FundingAllocationService.create_batch(db, body, actor_id=current_user.id)
    return success_response(_out(created), f"{len(created)} funding allocation(s) created successfully.")


# ── POST /funding-allocations/calculate-preview ─────────────────────
# NOTE: MUST be defined before /{allocation_id}

@router.post("/calculate-preview")
async def calculate_preview(
    body: FundingPreviewRequest,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_read),
):
    preview = await FundingAllocationService.preview(db, body)
    return success_response(preview, "Funding allocation preview calculated.")


# ── PUT /funding-allocations/employments/{employment_id} ────────────

@router.put("/employments/{employment_id}")
async def replace_allocations(
    employment_id: uuid.UUID,
    body: FundingAllocationReplace,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_edit),
):
    """Historicize the current set and start a new one from ``effective_date``."""
    created = await FundingAllocationService.replace_for_employment(
        db, employment_id, body, actor_id=current_user.id,
    )
    return success_response(_out(created), "Funding allocations replaced successfully.")


# ── GET /funding-allocations/{id} ───────────────────────────────────

@router.get("/{allocation_id}")
async def get_allocation(
    allocation_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_read),
):
    allocation = await FundingAllocationService.get_allocation(db, allocation_id)
    return success_response(
        FundingAllocationResponse.model_validate(allocation),
        "Funding allocation retrieved successfully.",
    )


# ── PUT /funding-allocations/{id} ───────────────────────────────────

@router.put("/{allocation_id}")
async def update_allocation(
    allocation_id: uuid.UUID,
    body: FundingAllocationUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_edit),
):
    allocation = await FundingAllocationService.update_allocation(
        db, allocation_id, body, actor_id=current_user.id,
    )
    return success_response(
        FundingAllocationResponse.model_validate(allocation),
        "Funding allocation updated successfully.",
    )


# ── DELETE /funding-allocations/{id} ────────────────────────────────

@router.delete("/{allocation_id}")
async def delete_allocation(
    allocation_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_edit),
):
    removed = await FundingAllocationService.delete_allocation(db, allocation_id, actor_id=current_user.id)
    message = (
        "Funding allocation deleted successfully."
        if removed
        else "Funding allocation is referenced by payrolls and was deactivated."
    )
    return success_response({"deleted": removed}, message)
