"""Grant service — grants, their budgeted position lines and the slots within them.

A grant item owns exactly ``grant_position_number`` position slots numbered
from 1. Changing the number adds or trims trailing slots; it can never drop
below the count of active allocations on the item.
"""

from __future__ import annotations

import logging
import uuid
from datetime import date
from typing import Any, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from hrms.common.audit import create_audit_entry, snapshot
from hrms.common.constants import AllocationStatus, Organization
from hrms.common.exceptions import BusinessRuleException, ConflictError, NotFoundException, ValidationException
from hrms.common.filters import apply_filters, apply_search
from hrms.common.pagination import PaginatedResponse, PaginationParams, paginate
from hrms.funding.models import EmployeeFundingAllocation
from hrms.grants.models import Grant, GrantItem, PositionSlot
from hrms.grants.schemas import (
    GrantCreate,
    GrantDetail,
    GrantItemCreate,
    GrantItemFields,
    GrantItemResponse,
    GrantItemUpdate,
    GrantPositionSummary,
    GrantResponse,
    GrantUpdate,
    ItemPositionSummary,
)

logger = logging.getLogger(__name__)

_GRANT_FIELDS = ["code", "name", "organization", "description", "start_date", "end_date", "is_hub_grant"]
_ITEM_FIELDS = [
    "grant_id", "grant_position", "grant_salary", "grant_benefit",
    "grant_level_of_effort", "grant_position_number", "budgetline_code",
]


async def _active_allocations_by_item(db: AsyncSession, item_ids: list[uuid.UUID]) -> dict[uuid.UUID, int]:
    if not item_ids:
        return {}
    result = await db.execute(
        select(EmployeeFundingAllocation.grant_item_id, func.count())
        .where(
            EmployeeFundingAllocation.grant_item_id.in_(item_ids),
            EmployeeFundingAllocation.status == AllocationStatus.active,
        )
        .group_by(EmployeeFundingAllocation.grant_item_id)
    )
    return {item_id: count for item_id, count in result.all()}


class GrantService:
    """Async CRUD for grants and grant items."""

    # ── Grants: queries ─────────────────────────────────────────────

    @staticmethod
    async def list_grants(
        db: AsyncSession,
        pagination: PaginationParams,
        *,
        organization: Optional[Organization] = None,
        search: Optional[str] = None,
        active_only: bool = False,
        today: Optional[date] = None,
    ) -> PaginatedResponse:
        query = select(Grant).order_by(Grant.code)
        query = apply_filters(query, Grant, {"organization": organization})
        query = apply_search(query, Grant, search, ["code", "name", "description"])
        if active_only:
            today = today or date.today()
            query = query.where(or_(Grant.end_date.is_(None), Grant.end_date >= today))
        return await paginate(db, query, pagination, model=Grant)

    @staticmethod
    async def get_grant(db: AsyncSession, grant_id: uuid.UUID) -> Grant:
        grant = await db.get(Grant, grant_id)
        if grant is None:
            raise NotFoundException("Grant", str(grant_id))
        return grant

    @staticmethod
    async def _detail(db: AsyncSession, grant: Grant) -> GrantDetail:
        items = await GrantService.list_items_for_grant(db, grant.id)
        base = GrantResponse.model_validate(grant)
        return GrantDetail(**base.model_dump(), items=[GrantItemResponse.model_validate(i) for i in items])

    @staticmethod
    async def get_grant_detail(db: AsyncSession, grant_id: uuid.UUID) -> GrantDetail:
        grant = await GrantService.get_grant(db, grant_id)
        return await GrantService._detail(db, grant)

    @staticmethod
    async def get_by_code(db: AsyncSession, code: str) -> GrantDetail:
        result = await db.execute(select(Grant).where(Grant.code == code))
        grant = result.scalars().first()
        if grant is None:
            raise NotFoundException("Grant", code)
        return await GrantService._detail(db, grant)

    @staticmethod
    async def hub_grant_for(db: AsyncSession, organization: Organization) -> Optional[Grant]:
        """The organization's own funding grant, if one is registered."""
        result = await db.execute(
            select(Grant).where(Grant.organization == organization, Grant.is_hub_grant.is_(True)).limit(1)
        )
        return result.scalars().first()

    # ── Grants: validation ──────────────────────────────────────────

    @staticmethod
    async def _check_code(db: AsyncSession, code: str, exclude_id: Optional[uuid.UUID] = None) -> None:
        query = select(Grant.id).where(Grant.code == code)
        if exclude_id is not None:
            query = query.where(Grant.id != exclude_id)
        if (await db.execute(query)).first():
            raise ConflictError("code", code)

    @staticmethod
    async def _check_hub(
        db: AsyncSession,
        organization: Organization,
        exclude_id: Optional[uuid.UUID] = None,
    ) -> None:
        existing = await GrantService.hub_grant_for(db, organization)
        if existing is not None and existing.id != exclude_id:
            raise ValidationException({
                "is_hub_grant": [f"{organization.value} already has a hub grant ({existing.code})."]
            })

    # ── Grants: mutations ───────────────────────────────────────────

    @staticmethod
    async def create_grant(
        db: AsyncSession,
        data: GrantCreate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> Grant:
        await GrantService._check_code(db, data.code)
        if data.is_hub_grant:
            await GrantService._check_hub(db, data.organization)

        grant = Grant(
            **data.model_dump(exclude={"items"}),
            created_by=actor_id,
            updated_by=actor_id,
        )
        db.add(grant)
        await db.flush()

        for item in data.items:
            await GrantService._add_item(db, grant.id, item, actor_id=actor_id)

        await create_audit_entry(
            db,
            action="create",
            entity_type="grant",
            entity_id=grant.id,
            actor_id=actor_id,
            new_values=snapshot(grant, _GRANT_FIELDS),
        )
        logger.info("Grant %s created with %d item(s)", grant.code, len(data.items))
        return grant

    @staticmethod
    async def update_grant(
        db: AsyncSession,
        grant_id: uuid.UUID,
        data: GrantUpdate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> Grant:
        grant = await GrantService.get_grant(db, grant_id)
        changes = data.model_dump(exclude_unset=True)
        old = snapshot(grant, _GRANT_FIELDS)

        if "code" in changes and changes["code"] != grant.code:
            await GrantService._check_code(db, changes["code"], exclude_id=grant.id)
        if changes.get("is_hub_grant", grant.is_hub_grant):
            await GrantService._check_hub(db, changes.get("organization", grant.organization), exclude_id=grant.id)

        start = changes.get("start_date", grant.start_date)
        end = changes.get("end_date", grant.end_date)
        if start and end and end < start:
            raise ValidationException({"end_date": ["end_date must be on or after start_date."]})

        for field, value in changes.items():
            setattr(grant, field, value)
        grant.updated_by = actor_id
        await db.flush()

        await create_audit_entry(
            db,
            action="update",
            entity_type="grant",
            entity_id=grant.id,
            actor_id=actor_id,
            old_values=old,
            new_values=snapshot(grant, _GRANT_FIELDS),
        )
        return grant

    @staticmethod
    async def delete_grant(
        db: AsyncSession,
        grant_id: uuid.UUID,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> None:
        result = await db.execute(
            select(Grant)
            .where(Grant.id == grant_id)
            .options(selectinload(Grant.items).selectinload(GrantItem.slots))
        )
        grant = result.scalars().first()
        if grant is None:
            raise NotFoundException("Grant", str(grant_id))

        active = sum((await _active_allocations_by_item(db, [i.id for i in grant.items])).values())
        if active:
            raise BusinessRuleException(
                f"Grant {grant.code} has {active} active funding allocation(s) and cannot be deleted."
            )

        old = snapshot(grant, _GRANT_FIELDS)
        await db.delete(grant)
        await db.flush()
        await create_audit_entry(
            db,
            action="delete",
            entity_type="grant",
            entity_id=grant_id,
            actor_id=actor_id,
            old_values=old,
        )
        logger.info("Grant %s deleted", old["code"])

    # ── Grant items ─────────────────────────────────────────────────

    @staticmethod
    async def list_items(
        db: AsyncSession,
        pagination: PaginationParams,
        *,
        grant_id: Optional[uuid.UUID] = None,
        search: Optional[str] = None,
    ) -> PaginatedResponse:
        query = select(GrantItem).order_by(GrantItem.grant_position)
        query = apply_filters(query, GrantItem, {"grant_id": grant_id})
        query = apply_search(query, GrantItem, search, ["grant_position", "budgetline_code"])
        return await paginate(db, query, pagination, model=GrantItem)

    @staticmethod
    async def list_items_for_grant(db: AsyncSession, grant_id: uuid.UUID) -> list[GrantItem]:
        result = await db.execute(
            select(GrantItem).where(GrantItem.grant_id == grant_id).order_by(GrantItem.grant_position)
        )
        return list(result.scalars().all())

    @staticmethod
    async def get_item(db: AsyncSession, item_id: uuid.UUID) -> GrantItem:
        item = await db.get(GrantItem, item_id)
        if item is None:
            raise NotFoundException("GrantItem", str(item_id))
        return item

    @staticmethod
    async def list_slots(db: AsyncSession, item_id: uuid.UUID) -> list[PositionSlot]:
        result = await db.execute(
            select(PositionSlot).where(PositionSlot.grant_item_id == item_id).order_by(PositionSlot.slot_number)
        )
        return list(result.scalars().all())

    @staticmethod
    async def _check_item_unique(
        db: AsyncSession,
        grant_id: uuid.UUID,
        grant_position: str,
        budgetline_code: Optional[str],
        exclude_id: Optional[uuid.UUID] = None,
    ) -> None:
        query = select(GrantItem.id).where(
            GrantItem.grant_id == grant_id,
            GrantItem.grant_position == grant_position,
        )
        if budgetline_code is None:
            query = query.where(GrantItem.budgetline_code.is_(None))
        else:
            query = query.where(GrantItem.budgetline_code == budgetline_code)
        if exclude_id is not None:
            query = query.where(GrantItem.id != exclude_id)
        if (await db.execute(query)).first():
            raise ValidationException({
                "grant_position": [
                    f"Position '{grant_position}' with budget line '{budgetline_code or ''}' "
                    "already exists in this grant."
                ]
            })

    @staticmethod
    async def _sync_slots(db: AsyncSession, item: GrantItem, target: int) -> None:
        """Grow or shrink the item's slots to *target*."""
        slots = await GrantService.list_slots(db, item.id)
        current = len(slots)
        if target > current:
            top = slots[-1].slot_number if slots else 0
            for number in range(top + 1, top + 1 + target - current):
                db.add(PositionSlot(grant_item_id=item.id, slot_number=number, budgetline_code=item.budgetline_code))
        elif target < current:
            occupied = (await _active_allocations_by_item(db, [item.id])).get(item.id, 0)
            if target < occupied:
                raise ValidationException({
                    "grant_position_number": [
                        f"Cannot reduce positions to {target}: {occupied} active allocation(s) exist."
                    ]
                })
            taken = set(
                (
                    await db.execute(
                        select(EmployeeFundingAllocation.position_slot_id).where(
                            EmployeeFundingAllocation.grant_item_id == item.id,
                            EmployeeFundingAllocation.status == AllocationStatus.active,
                        )
                    )
                ).scalars().all()
            )
            removable = [s for s in reversed(slots) if s.id not in taken][: current - target]
            for slot in removable:
                await db.delete(slot)
        await db.flush()

    @staticmethod
    async def _add_item(
        db: AsyncSession,
        grant_id: uuid.UUID,
        data: GrantItemFields,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> GrantItem:
        await GrantService._check_item_unique(db, grant_id, data.grant_position, data.budgetline_code)
        item = GrantItem(
            grant_id=grant_id,
            **data.model_dump(),
            created_by=actor_id,
            updated_by=actor_id,
        )
        db.add(item)
        await db.flush()
        await GrantService._sync_slots(db, item, item.grant_position_number)
        await create_audit_entry(
            db,
            action="create",
            entity_type="grant_item",
            entity_id=item.id,
            actor_id=actor_id,
            new_values=snapshot(item, _ITEM_FIELDS),
        )
        return item

    @staticmethod
    async def create_item(
        db: AsyncSession,
        data: GrantItemCreate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> GrantItem:
        await GrantService.get_grant(db, data.grant_id)
        return await GrantService._add_item(
            db,
            data.grant_id,
            GrantItemFields(**data.model_dump(exclude={"grant_id"})),
            actor_id=actor_id,
        )

    @staticmethod
    async def update_item(
        db: AsyncSession,
        item_id: uuid.UUID,
        data: GrantItemUpdate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> GrantItem:
        item = await GrantService.get_item(db, item_id)
        changes = data.model_dump(exclude_unset=True)
        old = snapshot(item, _ITEM_FIELDS)

        if "grant_position" in changes or "budgetline_code" in changes:
            await GrantService._check_item_unique(
                db,
                item.grant_id,
                changes.get("grant_position", item.grant_position),
                changes.get("budgetline_code", item.budgetline_code),
                exclude_id=item.id,
            )

        target = changes.pop("grant_position_number", None)
        if target is not None and target != item.grant_position_number:
            await GrantService._sync_slots(db, item, target)
            item.grant_position_number = target

        for field, value in changes.items():
            setattr(item, field, value)
        item.updated_by = actor_id
        await db.flush()

        await create_audit_entry(
            db,
            action="update",
            entity_type="grant_item",
            entity_id=item.id,
            actor_id=actor_id,
            old_values=old,
            new_values=snapshot(item, _ITEM_FIELDS),
        )
        return item

    @staticmethod
    async def delete_item(
        db: AsyncSession,
        item_id: uuid.UUID,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> None:
        result = await db.execute(
            select(GrantItem).where(GrantItem.id == item_id).options(selectinload(GrantItem.slots))
        )
        item = result.scalars().first()
        if item is None:
            raise NotFoundException("GrantItem", str(item_id))

        referenced = (
            await db.execute(
                select(func.count()).select_from(EmployeeFundingAllocation).where(
                    EmployeeFundingAllocation.grant_item_id == item.id,
                )
            )
        ).scalar_one()
        if referenced:
            raise BusinessRuleException(
                f"Grant item '{item.grant_position}' is referenced by {referenced} funding allocation(s)."
            )

        old = snapshot(item, _ITEM_FIELDS)
        await db.delete(item)
        await db.flush()
        await create_audit_entry(
            db,
            action="delete",
            entity_type="grant_item",
            entity_id=item_id,
            actor_id=actor_id,
            old_values=old,
        )

    # ── Position summary ────────────────────────────────────────────

    @staticmethod
    async def position_summary(db: AsyncSession, grant_id: uuid.UUID) -> GrantPositionSummary:
        grant = await GrantService.get_grant(db, grant_id)
        items = await GrantService.list_items_for_grant(db, grant.id)
        occupied_by_item = await _active_allocations_by_item(db, [i.id for i in items])

        rows: list[ItemPositionSummary] = []
        for item in items:
            occupied = occupied_by_item.get(item.id, 0)
            rows.append(ItemPositionSummary(
                grant_item_id=item.id,
                grant_position=item.grant_position,
                budgetline_code=item.budgetline_code,
                total_slots=item.grant_position_number,
                occupied=occupied,
                available=max(item.grant_position_number - occupied, 0),
            ))
        return GrantPositionSummary(
            grant_id=grant.id,
            grant_code=grant.code,
            items=rows,
            total_slots=sum(r.total_slots for r in rows),
            occupied=sum(r.occupied for r in rows),
            available=sum(r.available for r in rows),
        )

    @staticmethod
    async def item_reference_rows(db: AsyncSession) -> list[dict[str, Any]]:
        """Every grant item with its grant and free slot count, for spreadsheet reference lists."""
        result = await db.execute(
            select(GrantItem, Grant)
            .join(Grant, Grant.id == GrantItem.grant_id)
            .order_by(Grant.code, GrantItem.grant_position)
        )
        pairs = result.all()
        occupied_by_item = await _active_allocations_by_item(db, [item.id for item, _ in pairs])
        return [
            {
                "grant_item_id": str(item.id),
                "grant_code": grant.code,
                "grant_name": grant.name,
                "organization": grant.organization.value,
                "grant_position": item.grant_position,
                "budgetline_code": item.budgetline_code,
                "grant_position_number": item.grant_position_number,
                "available": max(item.grant_position_number - occupied_by_item.get(item.id, 0), 0),
            }
            for item, grant in pairs
        ]
