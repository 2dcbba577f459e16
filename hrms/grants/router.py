"""Grants router — grants, grant items, and slot availability.

Routes:
    /grants                   — List, create
    /grants/items             — List, create grant items
    /grants/items/{id}        — Get (with slots), update, delete
    /grants/by-code/{code}    — Lookup by grant code
    /grants/{id}              — Get (with items), update, delete
    /grants/{id}/positions    — Slot availability per item
"""


import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.auth.dependencies import require_permission
from hrms.common.constants import Organization
from hrms.common.pagination import PaginationParams
from hrms.common.responses import success_response
from hrms.core_hr.models import Employee
from hrms.database import get_db
from hrms.grants.schemas import (
    GrantCreate,
    GrantItemCreate,
    GrantItemDetail,
    GrantItemResponse,
    GrantItemUpdate,
    GrantResponse,
    GrantUpdate,
    PositionSlotResponse,
)
from hrms.grants.service import GrantService

router = APIRouter(prefix="", tags=["grants"])

_can_read = require_permission("grant:read")
_can_edit = require_permission("grant:edit")


# ── GET /grants ─────────────────────────────────────────────────────

@router.get("")
async def list_grants(
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_read),
    pagination: PaginationParams = Depends(),
    organization: Optional[Organization] = Query(None),
    search: Optional[str] = Query(None, max_length=100),
    active: bool = Query(False, description="Only grants that have not ended"),
):
    result = await GrantService.list_grants(
        db, pagination, organization=organization, search=search, active_only=active,
    )
    return success_response(
        [GrantResponse.model_validate(g) for g in result.data],
        "Grants retrieved successfully.",
        pagination=result.pagination,
    )


# ── POST /grants ────────────────────────────────────────────────────

@router.post("", status_code=201)
async def create_grant(
    body: GrantCreate,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_edit),
):
    """Create a grant, optionally with its items (slots are generated per item)."""
    grant = await GrantService.create_grant(db, body, actor_id=current_user.id)
    detail = await GrantService.get_grant_detail(db, grant.id)
    return success_response(detail, "Grant created successfully.")


# ═════════════════════════════════════════════════════════════════════
# Grant items
# NOTE: MUST be defined before /{grant_id} so "items" is not parsed as a UUID
# ═════════════════════════════════════════════════════════════════════


@router.get("/items")
async def list_grant_items(
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_read),
    pagination: PaginationParams = Depends(),
    grant_id: Optional[uuid.UUID] = Query(None),
    search: Optional[str] = Query(None, max_length=100),
):
    result = await GrantService.list_items(db, pagination, grant_id=grant_id, search=search)
    return success_response(
        [GrantItemResponse.model_validate(i) for i in result.data],
        "Grant items retrieved successfully.",
        pagination=result.pagination,
    )


@router.post("/items", status_code=201)
async def create_grant_item(
    body: GrantItemCreate,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_edit),
):
    item = await GrantService.create_item(db, body, actor_id=current_user.id)
    return success_response(await _item_detail(db, item), "Grant item created successfully.")


@router.get("/items/{item_id}")
async def get_grant_item(
    item_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_read),
):
    item = await GrantService.get_item(db, item_id)
    return success_response(await _item_detail(db, item), "Grant item retrieved successfully.")


@router.put("/items/{item_id}")
async def update_grant_item(
    item_id: uuid.UUID,
    body: GrantItemUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_edit),
):
    item = await GrantService.update_item(db, item_id, body, actor_id=current_user.id)
    return success_response(await _item_detail(db, item), "Grant item updated successfully.")


@router.delete("/items/{item_id}")
async def delete_grant_item(
    item_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_edit),
):
    await GrantService.delete_item(db, item_id, actor_id=current_user.id)
    return success_response(None, "Grant item deleted successfully.")


async def _item_detail(db: AsyncSession, item) -> GrantItemDetail:
    slots = await GrantService.list_slots(db, item.id)
    base = GrantItemResponse.model_validate(item)
    return GrantItemDetail(**base.model_dump(), slots=[PositionSlotResponse.model_validate(s) for s in slots])


# ── GET /grants/by-code/{code} ──────────────────────────────────────

@router.get("/by-code/{code}")
async def get_grant_by_code(
    code: str,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_read),
):
    detail = await GrantService.get_by_code(db, code)
    return success_response(detail, "Grant retrieved successfully.")


# ── GET /grants/{id} ────────────────────────────────────────────────

@router.get("/{grant_id}")
async def get_grant(
    grant_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_read),
):
    detail = await GrantService.get_grant_detail(db, grant_id)
    return success_response(detail, "Grant retrieved successfully.")


# ── PUT /grants/{id} ────────────────────────────────────────────────

@router.put("/{grant_id}")
async def update_grant(
    grant_id: uuid.UUID,
    body: GrantUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_edit),
):
    await GrantService.update_grant(db, grant_id, body, actor_id=current_user.id)
    detail = await GrantService.get_grant_detail(db, grant_id)
    return success_response(detail, "Grant updated successfully.")


# ── DELETE /grants/{id} ─────────────────────────────────────────────

@router.delete("/{grant_id}")
async def delete_grant(
    grant_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_edit),
):
    await GrantService.delete_grant(db, grant_id, actor_id=current_user.id)
    return success_response(None, "Grant deleted successfully.")


# ── GET /grants/{id}/positions ──────────────────────────────────────

@router.get("/{grant_id}/positions")
async def grant_positions(
    grant_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(_can_read),
):
    summary = await GrantService.position_summary(db, grant_id)
    return success_response(summary, "Grant positions retrieved successfully.")
