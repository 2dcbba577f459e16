"""Funding allocation service — FTE splits of an employment across grant items.

FTE arrives as a percentage and is stored as a fraction. Each allocation
occupies one position slot of its grant item; capacity is the item's
``grant_position_number``.
"""

from __future__ import annotations

import logging
import uuid
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from hrms.common.audit import create_audit_entry, snapshot
from hrms.common.constants import AllocationStatus, AllocationType, SalaryType
from hrms.common.exceptions import BusinessRuleException, NotFoundException, ValidationException
from hrms.common.filters import apply_filters
from hrms.common.money import round_money
from hrms.common.pagination import PaginatedResponse, PaginationParams, paginate
from hrms.employment.models import Employment
from hrms.funding.models import EmployeeFundingAllocation
from hrms.funding.schemas import (
    AllocationItemIn,
    FundingAllocationBatchCreate,
    FundingAllocationReplace,
    FundingAllocationUpdate,
    FundingPreviewRequest,
    SalaryContext,
)
from hrms.grants.models import GrantItem, PositionSlot
from hrms.payroll.models import Payroll

logger = logging.getLogger(__name__)

HUNDRED = Decimal("100")

_AUDIT_FIELDS = [
    "employment_id", "grant_item_id", "position_slot_id", "allocation_type",
    "fte", "allocated_amount", "salary_type", "status", "start_date", "end_date",
]


def derive_salary_context(employment: Employment, fte: Decimal, effective_date: date) -> SalaryContext:
    """Salary tier in force on *effective_date* and the amount charged for *fte* (fraction)."""
    if (
        employment.probation_salary is not None
        and employment.pass_probation_date is not None
        and effective_date < employment.pass_probation_date
    ):
        salary_type = SalaryType.probation_salary
    else:
        salary_type = SalaryType.pass_probation_salary
    salary = employment.salary_on(effective_date)
    return SalaryContext(
        salary_type=salary_type,
        salary=salary,
        allocated_amount=round_money(salary * Decimal(fte)),
    )


def percent_to_fraction(percent: Decimal) -> Decimal:
    return (Decimal(percent) / HUNDRED).quantize(Decimal("0.0001"))


class FundingAllocationService:
    """Async CRUD and validation for employee funding allocations."""

    # ── Queries ─────────────────────────────────────────────────────

    @staticmethod
    async def list_allocations(
        db: AsyncSession,
        pagination: PaginationParams,
        *,
        employee_id: Optional[uuid.UUID] = None,
        employment_id: Optional[uuid.UUID] = None,
        grant_item_id: Optional[uuid.UUID] = None,
        status: Optional[AllocationStatus] = None,
    ) -> PaginatedResponse:
        query = select(EmployeeFundingAllocation).order_by(EmployeeFundingAllocation.start_date.desc())
        query = apply_filters(
            query,
            EmployeeFundingAllocation,
            {
                "employee_id": employee_id,
                "employment_id": employment_id,
                "grant_item_id": grant_item_id,
                "status": status,
            },
        )
        return await paginate(db, query, pagination, model=EmployeeFundingAllocation)

    @staticmethod
    async def get_allocation(db: AsyncSession, allocation_id: uuid.UUID) -> EmployeeFundingAllocation:
        allocation = await db.get(EmployeeFundingAllocation, allocation_id)
        if allocation is None:
            raise NotFoundException("FundingAllocation", str(allocation_id))
        return allocation

    @staticmethod
    async def list_for_employment(
        db: AsyncSession,
        employment_id: uuid.UUID,
        *,
        status: Optional[AllocationStatus] = None,
    ) -> list[EmployeeFundingAllocation]:
        query = (
            select(EmployeeFundingAllocation)
            .where(EmployeeFundingAllocation.employment_id == employment_id)
            .order_by(EmployeeFundingAllocation.start_date, EmployeeFundingAllocation.created_at)
        )
        if status is not None:
            query = query.where(EmployeeFundingAllocation.status == status)
        return list((await db.execute(query)).scalars().all())

    @staticmethod
    async def active_for_employment(db: AsyncSession, employment_id: uuid.UUID) -> list[EmployeeFundingAllocation]:
        return await FundingAllocationService.list_for_employment(
            db, employment_id, status=AllocationStatus.active,
        )

    @staticmethod
    async def count_active_on_item(
        db: AsyncSession,
        grant_item_id: uuid.UUID,
        *,
        exclude_employment_id: Optional[uuid.UUID] = None,
    ) -> int:
        query = select(func.count()).select_from(EmployeeFundingAllocation).where(
            EmployeeFundingAllocation.grant_item_id == grant_item_id,
            EmployeeFundingAllocation.status == AllocationStatus.active,
        )
        if exclude_employment_id is not None:
            query = query.where(EmployeeFundingAllocation.employment_id != exclude_employment_id)
        return (await db.execute(query)).scalar_one()

    # ── Validation ──────────────────────────────────────────────────

    @staticmethod
    async def _get_employment(db: AsyncSession, employment_id: uuid.UUID) -> Employment:
        employment = await db.get(Employment, employment_id)
        if employment is None:
            raise NotFoundException("Employment", str(employment_id))
        return employment

    @staticmethod
    async def _validate_items(
        db: AsyncSession,
        employment: Employment,
        items: list[AllocationItemIn],
    ) -> list[GrantItem]:
        """Check FTE total, duplicates, existence and capacity; return the grant items in order."""
        errors: dict[str, list[str]] = {}

        total = sum((Decimal(i.fte) for i in items), Decimal("0"))
        if total != HUNDRED:
            errors["allocations"] = [
                f"Total FTE of all allocations must equal exactly 100%. Current total: {total.normalize():f}%"
            ]

        seen: set[uuid.UUID] = set()
        grant_items: list[GrantItem] = []
        for index, item in enumerate(items):
            key = f"allocations.{index}.grant_item_id"
            if item.grant_item_id in seen:
                errors[key] = ["The same grant item appears more than once."]
                continue
            seen.add(item.grant_item_id)

            result = await db.execute(
                select(GrantItem)
                .where(GrantItem.id == item.grant_item_id)
                .options(selectinload(GrantItem.grant))
            )
            grant_item = result.scalars().first()
            if grant_item is None:
                errors[key] = ["The selected grant item does not exist."]
                continue

            occupied = await FundingAllocationService.count_active_on_item(
                db, grant_item.id, exclude_employment_id=employment.id,
            )
            if occupied >= grant_item.grant_position_number:
                errors[key] = [
                    f"Grant position '{grant_item.grant_position}' has reached its maximum capacity of "
                    f"{grant_item.grant_position_number} allocations. Currently allocated: {occupied}"
                ]
                continue
            grant_items.append(grant_item)

        if errors:
            raise ValidationException(errors)
        return grant_items

    @staticmethod
    async def _free_slot(db: AsyncSession, grant_item_id: uuid.UUID) -> Optional[PositionSlot]:
        """Lowest-numbered slot of the item not held by an active allocation."""
        taken = (
            select(EmployeeFundingAllocation.position_slot_id)
            .where(
                EmployeeFundingAllocation.grant_item_id == grant_item_id,
                EmployeeFundingAllocation.status == AllocationStatus.active,
                EmployeeFundingAllocation.position_slot_id.is_not(None),
            )
        )
        result = await db.execute(
            select(PositionSlot)
            .where(PositionSlot.grant_item_id == grant_item_id, PositionSlot.id.not_in(taken))
            .order_by(PositionSlot.slot_number)
            .limit(1)
        )
        return result.scalars().first()

    # ── Create ──────────────────────────────────────────────────────

    @staticmethod
    async def _create_set(
        db: AsyncSession,
        employment: Employment,
        items: list[AllocationItemIn],
        grant_items: list[GrantItem],
        effective_date: date,
        actor_id: Optional[uuid.UUID],
    ) -> list[EmployeeFundingAllocation]:
        created: list[EmployeeFundingAllocation] = []
        for item, grant_item in zip(items, grant_items):
            fte = percent_to_fraction(item.fte)
            context = derive_salary_context(employment, fte, effective_date)
            slot = await FundingAllocationService._free_slot(db, grant_item.id)
            allocation = EmployeeFundingAllocation(
                employee_id=employment.employee_id,
                employment_id=employment.id,
                grant_item_id=grant_item.id,
                position_slot_id=slot.id if slot else None,
                allocation_type=(
                    AllocationType.org_funded if grant_item.grant.is_hub_grant else AllocationType.grant
                ),
                fte=fte,
                allocated_amount=context.allocated_amount,
                salary_type=context.salary_type,
                status=AllocationStatus.active,
                start_date=effective_date,
                created_by=actor_id,
                updated_by=actor_id,
            )
            db.add(allocation)
            # Flush per row so the next free-slot lookup sees this one
            await db.flush()
            await create_audit_entry(
                db,
                action="create",
                entity_type="funding_allocation",
                entity_id=allocation.id,
                actor_id=actor_id,
                new_values=snapshot(allocation, _AUDIT_FIELDS),
            )
            created.append(allocation)
        return created

    @staticmethod
    async def create_batch(
        db: AsyncSession,
        data: FundingAllocationBatchCreate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> list[EmployeeFundingAllocation]:
        """Create the first allocation set of an employment."""
        employment = await FundingAllocationService._get_employment(db, data.employment_id)
        if not employment.is_active:
            raise BusinessRuleException("Allocations can only be created for an active employment.")
        if await FundingAllocationService.active_for_employment(db, employment.id):
            raise BusinessRuleException(
                "Employment already has active funding allocations. Use the replace endpoint to change them."
            )

        grant_items = await FundingAllocationService._validate_items(db, employment, data.allocations)
        effective_date = data.effective_date or employment.start_date
        created = await FundingAllocationService._create_set(
            db, employment, data.allocations, grant_items, effective_date, actor_id,
        )
        logger.info("Created %d funding allocations for employment %s", len(created), employment.id)
        return created

    # ── Replace ─────────────────────────────────────────────────────

    @staticmethod
    async def close_active(
        db: AsyncSession,
        employment_id: uuid.UUID,
        *,
        status: AllocationStatus,
        end_date: date,
        actor_id: Optional[uuid.UUID] = None,
    ) -> list[EmployeeFundingAllocation]:
        """Move every active allocation of the employment to *status*, ending on *end_date*.

        Allocations that would end before they started are superseded: they
        become ``inactive`` and end on their own start date.
        """
        closed = await FundingAllocationService.active_for_employment(db, employment_id)
        for allocation in closed:
            old = snapshot(allocation, ["status", "end_date"])
            if end_date < allocation.start_date:
                allocation.status = AllocationStatus.inactive
                allocation.end_date = allocation.start_date
            else:
                allocation.status = status
                allocation.end_date = end_date
            allocation.updated_by = actor_id
            await create_audit_entry(
                db,
                action="update",
                entity_type="funding_allocation",
                entity_id=allocation.id,
                actor_id=actor_id,
                old_values=old,
                new_values=snapshot(allocation, ["status", "end_date"]),
            )
        await db.flush()
        return closed

    @staticmethod
    async def replace_for_employment(
        db: AsyncSession,
        employment_id: uuid.UUID,
        data: FundingAllocationReplace,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> list[EmployeeFundingAllocation]:
        """Historicize the current set and create a new one from the effective date."""
        employment = await FundingAllocationService._get_employment(db, employment_id)
        if not employment.is_active:
            raise BusinessRuleException("Allocations can only be changed for an active employment.")

        grant_items = await FundingAllocationService._validate_items(db, employment, data.allocations)
        effective_date = data.effective_date or max(employment.start_date, date.today())

        await FundingAllocationService.close_active(
            db,
            employment.id,
            status=AllocationStatus.historical,
            end_date=effective_date - timedelta(days=1),
            actor_id=actor_id,
        )
        created = await FundingAllocationService._create_set(
            db, employment, data.allocations, grant_items, effective_date, actor_id,
        )
        logger.info("Replaced funding allocations of employment %s (%d new)", employment.id, len(created))
        return created

    # ── Update / delete ─────────────────────────────────────────────

    @staticmethod
    async def update_allocation(
        db: AsyncSession,
        allocation_id: uuid.UUID,
        data: FundingAllocationUpdate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> EmployeeFundingAllocation:
        allocation = await FundingAllocationService.get_allocation(db, allocation_id)
        old = snapshot(allocation, _AUDIT_FIELDS)
        employment = await FundingAllocationService._get_employment(db, allocation.employment_id)

        if data.fte is not None:
            if allocation.status != AllocationStatus.active:
                raise BusinessRuleException("Only active allocations can change FTE.")
            others = [
                a for a in await FundingAllocationService.active_for_employment(db, employment.id)
                if a.id != allocation.id
            ]
            total = sum((a.fte_percent for a in others), Decimal("0")) + Decimal(data.fte)
            if total != HUNDRED:
                raise ValidationException({
                    "fte": [
                        f"Total FTE of active allocations must equal exactly 100%. "
                        f"Resulting total: {total.normalize():f}%"
                    ]
                })
            allocation.fte = percent_to_fraction(data.fte)
            context = derive_salary_context(employment, allocation.fte, max(allocation.start_date, date.today()))
            allocation.allocated_amount = context.allocated_amount
            allocation.salary_type = context.salary_type

        if data.status is not None and data.status != allocation.status:
            allocation.status = data.status
            if data.status != AllocationStatus.active and allocation.end_date is None:
                allocation.end_date = max(allocation.start_date, date.today())

        allocation.updated_by = actor_id
        await db.flush()
        await create_audit_entry(
            db,
            action="update",
            entity_type="funding_allocation",
            entity_id=allocation.id,
            actor_id=actor_id,
            old_values=old,
            new_values=snapshot(allocation, _AUDIT_FIELDS),
        )
        return allocation

    @staticmethod
    async def delete_allocation(
        db: AsyncSession,
        allocation_id: uuid.UUID,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> bool:
        """Delete the allocation, or deactivate it when payrolls reference it.

        Returns ``True`` when the row was removed.
        """
        allocation = await FundingAllocationService.get_allocation(db, allocation_id)
        old = snapshot(allocation, _AUDIT_FIELDS)
        referenced = (
            await db.execute(
                select(func.count()).select_from(Payroll).where(
                    Payroll.employee_funding_allocation_id == allocation.id,
                )
            )
        ).scalar_one()

        if referenced:
            allocation.status = AllocationStatus.inactive
            allocation.end_date = allocation.end_date or max(allocation.start_date, date.today())
            allocation.updated_by = actor_id
            await db.flush()
            action, removed = "deactivate", False
        else:
            await db.delete(allocation)
            await db.flush()
            action, removed = "delete", True

        await create_audit_entry(
            db,
            action=action,
            entity_type="funding_allocation",
            entity_id=allocation_id,
            actor_id=actor_id,
            old_values=old,
        )
        return removed

    # ── Salary changes ──────────────────────────────────────────────

    @staticmethod
    async def recompute_amounts(
        db: AsyncSession,
        employment: Employment,
        *,
        on_date: Optional[date] = None,
    ) -> int:
        """Refresh ``allocated_amount`` / ``salary_type`` of active allocations after a salary change."""
        allocations = await FundingAllocationService.active_for_employment(db, employment.id)
        for allocation in allocations:
            effective = on_date or max(allocation.start_date, date.today())
            context = derive_salary_context(employment, allocation.fte, effective)
            allocation.allocated_amount = context.allocated_amount
            allocation.salary_type = context.salary_type
        await db.flush()
        return len(allocations)

    # ── Preview ─────────────────────────────────────────────────────

    @staticmethod
    async def preview(db: AsyncSession, data: FundingPreviewRequest) -> dict[str, Any]:
        """Amounts for a proposed split; nothing is written."""
        employment = await FundingAllocationService._get_employment(db, data.employment_id)
        grant_items = await FundingAllocationService._validate_items(db, employment, data.allocations)
        effective_date = data.effective_date or employment.start_date

        rows = []
        total_amount = Decimal("0")
        for item, grant_item in zip(data.allocations, grant_items):
            fte = percent_to_fraction(item.fte)
            context = derive_salary_context(employment, fte, effective_date)
            total_amount += context.allocated_amount
            rows.append({
                "grant_item_id": str(grant_item.id),
                "grant_position": grant_item.grant_position,
                "grant_code": grant_item.grant.code,
                "allocation_type": (
                    AllocationType.org_funded if grant_item.grant.is_hub_grant else AllocationType.grant
                ).value,
                "fte": str(round_money(item.fte)),
                "salary_type": context.salary_type.value,
                "salary": str(round_money(context.salary)),
                "allocated_amount": str(context.allocated_amount),
            })
        return {
            "employment_id": str(employment.id),
            "effective_date": effective_date.isoformat(),
            "allocations": rows,
            "total_allocated_amount": str(round_money(total_amount)),
        }
