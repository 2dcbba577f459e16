"""Probation lifecycle — records, extension, pass/fail, and the daily transition.

On the pass date every active funding allocation of the employment is closed
as ``historical`` (ending the day before) and replaced by an identical
allocation priced at the post-probation salary.
"""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, timedelta
from typing import Optional
from zoneinfo import ZoneInfo

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.common.audit import create_audit_entry, to_audit_value
from hrms.common.constants import (
    AllocationStatus,
    ProbationEventType,
    ProbationStatus,
    SalaryType,
)
from hrms.common.exceptions import BusinessRuleException, NotFoundException, ValidationException
from hrms.common.money import round_money
from hrms.config import settings
from hrms.employment.history import record_history
from hrms.employment.models import Employment, ProbationRecord
from hrms.employment.schemas import (
    ProbationExtendRequest,
    ProbationFailRequest,
    ProbationProcessResult,
)
from hrms.funding.models import EmployeeFundingAllocation
from hrms.funding.service import FundingAllocationService
from hrms.notifications.service import notify_probation_passed

logger = logging.getLogger(__name__)

_OPEN_STATUSES = (ProbationStatus.ongoing, ProbationStatus.extended)


def local_today() -> date:
    """Current date in the payroll time zone."""
    return datetime.now(ZoneInfo(settings.PAYROLL_TIMEZONE)).date()


class ProbationService:
    """Probation record bookkeeping and salary-tier transitions."""

    # ── Records ─────────────────────────────────────────────────────

    @staticmethod
    async def active_record(db: AsyncSession, employment_id: uuid.UUID) -> Optional[ProbationRecord]:
        result = await db.execute(
            select(ProbationRecord)
            .where(ProbationRecord.employment_id == employment_id, ProbationRecord.is_active.is_(True))
            .order_by(ProbationRecord.created_at.desc())
            .limit(1)
        )
        return result.scalars().first()

    @staticmethod
    async def create_initial_record(db: AsyncSession, employment: Employment) -> ProbationRecord:
        record = ProbationRecord(
            employment_id=employment.id,
            employee_id=employment.employee_id,
            event_type=ProbationEventType.initial,
            event_date=employment.start_date,
            probation_start_date=employment.start_date,
            probation_end_date=employment.pass_probation_date,
            extension_number=0,
            is_active=True,
        )
        db.add(record)
        await db.flush()
        return record

    @staticmethod
    async def _close_and_record(
        db: AsyncSession,
        employment: Employment,
        event_type: ProbationEventType,
        *,
        event_date: date,
        end_date: Optional[date],
        reason: Optional[str] = None,
        notes: Optional[str] = None,
        actor_id: Optional[uuid.UUID] = None,
        bump_extension: bool = False,
    ) -> ProbationRecord:
        current = await ProbationService.active_record(db, employment.id)
        if current is not None:
            current.is_active = False

        extension_number = current.extension_number if current else 0
        record = ProbationRecord(
            employment_id=employment.id,
            employee_id=employment.employee_id,
            event_type=event_type,
            event_date=event_date,
            decision_date=event_date,
            probation_start_date=current.probation_start_date if current else employment.start_date,
            probation_end_date=end_date,
            previous_end_date=current.probation_end_date if current else None,
            extension_number=extension_number + 1 if bump_extension else extension_number,
            decision_reason=reason,
            evaluation_notes=notes,
            approved_by=actor_id,
            is_active=True,
        )
        db.add(record)
        await db.flush()
        return record

    @staticmethod
    async def _get_employment(db: AsyncSession, employment_id: uuid.UUID) -> Employment:
        employment = await db.get(Employment, employment_id)
        if employment is None:
            raise NotFoundException("Employment", str(employment_id))
        return employment

    @staticmethod
    def _ensure_open(employment: Employment) -> None:
        if employment.probation_status in (ProbationStatus.passed, ProbationStatus.failed):
            raise BusinessRuleException(
                f"Probation has already been {employment.probation_status.value} for this employment."
            )

    # ── Extend ──────────────────────────────────────────────────────

    @staticmethod
    async def extend(
        db: AsyncSession,
        employment_id: uuid.UUID,
        data: ProbationExtendRequest,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> ProbationRecord:
        employment = await ProbationService._get_employment(db, employment_id)
        ProbationService._ensure_open(employment)

        current_end = employment.pass_probation_date
        if current_end is not None and data.new_end_date <= current_end:
            raise ValidationException({
                "new_end_date": [f"The new end date must be later than the current end date {current_end}."]
            })

        record = await ProbationService._close_and_record(
            db,
            employment,
            ProbationEventType.extension,
            event_date=date.today(),
            end_date=data.new_end_date,
            reason=data.reason,
            notes=data.notes,
            actor_id=actor_id,
            bump_extension=True,
        )
        employment.pass_probation_date = data.new_end_date
        employment.probation_status = ProbationStatus.extended
        employment.updated_by = actor_id
        await db.flush()

        await record_history(
            db,
            employment,
            reason="Probation extended",
            changes={"pass_probation_date": {"old": str(current_end), "new": str(data.new_end_date)}},
            notes=data.reason,
            actor_id=actor_id,
        )
        await create_audit_entry(
            db,
            action="extend_probation",
            entity_type="employment",
            entity_id=employment.id,
            actor_id=actor_id,
            old_values={"pass_probation_date": str(current_end)},
            new_values={"pass_probation_date": str(data.new_end_date), "extension_number": record.extension_number},
        )
        logger.info(
            "Probation of employment %s extended to %s (extension #%d)",
            employment.id, data.new_end_date, record.extension_number,
        )
        return record

    # ── Pass ────────────────────────────────────────────────────────

    @staticmethod
    async def transition_employment(
        db: AsyncSession,
        employment: Employment,
        transition_date: date,
        *,
        reason: Optional[str] = None,
        actor_id: Optional[uuid.UUID] = None,
    ) -> list[EmployeeFundingAllocation]:
        """Move the employment to its post-probation salary from *transition_date*."""
        previous_status = to_audit_value(employment.probation_status)
        closed = await FundingAllocationService.close_active(
            db,
            employment.id,
            status=AllocationStatus.historical,
            end_date=transition_date - timedelta(days=1),
            actor_id=actor_id,
        )

        created: list[EmployeeFundingAllocation] = []
        for old in closed:
            allocation = EmployeeFundingAllocation(
                employee_id=old.employee_id,
                employment_id=old.employment_id,
                grant_item_id=old.grant_item_id,
                position_slot_id=old.position_slot_id,
                allocation_type=old.allocation_type,
                fte=old.fte,
                allocated_amount=round_money(employment.pass_probation_salary * old.fte),
                salary_type=SalaryType.pass_probation_salary,
                status=AllocationStatus.active,
                start_date=transition_date,
                created_by=actor_id,
                updated_by=actor_id,
            )
            db.add(allocation)
            created.append(allocation)
        await db.flush()

        employment.probation_status = ProbationStatus.passed
        employment.updated_by = actor_id
        await ProbationService._close_and_record(
            db,
            employment,
            ProbationEventType.passed,
            event_date=transition_date,
            end_date=employment.pass_probation_date,
            reason=reason,
            actor_id=actor_id,
        )
        await record_history(
            db,
            employment,
            reason="Probation passed",
            changes={
                "probation_status": {"old": previous_status, "new": ProbationStatus.passed.value},
                "allocations_transitioned": len(created),
            },
            notes=reason,
            actor_id=actor_id,
            change_date=transition_date,
        )
        await create_audit_entry(
            db,
            action="pass_probation",
            entity_type="employment",
            entity_id=employment.id,
            actor_id=actor_id,
            new_values={"probation_status": ProbationStatus.passed.value, "allocations": len(created)},
        )
        await notify_probation_passed(db, employment)
        logger.info(
            "Employment %s passed probation on %s; %d allocation(s) moved to post-probation salary",
            employment.id, transition_date, len(created),
        )
        return created

    @staticmethod
    async def pass_probation(
        db: AsyncSession,
        employment_id: uuid.UUID,
        *,
        reason: Optional[str] = None,
        actor_id: Optional[uuid.UUID] = None,
        today: Optional[date] = None,
    ) -> Employment:
        """Manual pass: the transition runs immediately (an earlier pass date is brought forward)."""
        employment = await ProbationService._get_employment(db, employment_id)
        ProbationService._ensure_open(employment)
        today = today or date.today()
        if employment.pass_probation_date is None or employment.pass_probation_date > today:
            employment.pass_probation_date = today
        await ProbationService.transition_employment(db, employment, today, reason=reason, actor_id=actor_id)
        return employment

    # ── Fail ────────────────────────────────────────────────────────

    @staticmethod
    async def fail_probation(
        db: AsyncSession,
        employment_id: uuid.UUID,
        data: ProbationFailRequest,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> Employment:
        """Mark probation failed, end the employment and terminate its allocations."""
        employment = await ProbationService._get_employment(db, employment_id)
        ProbationService._ensure_open(employment)
        end_date = data.end_date or date.today()
        if end_date < employment.start_date:
            raise ValidationException({"end_date": ["end_date must be on or after the employment start date."]})

        terminated = await FundingAllocationService.close_active(
            db,
            employment.id,
            status=AllocationStatus.terminated,
            end_date=end_date,
            actor_id=actor_id,
        )
        await ProbationService._close_and_record(
            db,
            employment,
            ProbationEventType.failed,
            event_date=end_date,
            end_date=end_date,
            reason=data.reason,
            actor_id=actor_id,
        )
        employment.probation_status = ProbationStatus.failed
        employment.end_date = end_date
        employment.is_active = False
        employment.updated_by = actor_id
        await db.flush()

        await record_history(
            db,
            employment,
            reason="Probation failed",
            changes={"end_date": str(end_date), "allocations_terminated": len(terminated)},
            notes=data.reason,
            actor_id=actor_id,
            change_date=end_date,
        )
        await create_audit_entry(
            db,
            action="fail_probation",
            entity_type="employment",
            entity_id=employment.id,
            actor_id=actor_id,
            new_values={"probation_status": ProbationStatus.failed.value, "end_date": str(end_date)},
        )
        logger.info("Employment %s failed probation; ended %s", employment.id, end_date)
        return employment

    # ── Daily job ───────────────────────────────────────────────────

    @staticmethod
    async def due_employments(db: AsyncSession, today: date) -> list[Employment]:
        result = await db.execute(
            select(Employment)
            .where(
                Employment.is_active.is_(True),
                Employment.pass_probation_date == today,
                (Employment.probation_status.is_(None)) | (Employment.probation_status.in_(_OPEN_STATUSES)),
            )
            .order_by(Employment.start_date)
        )
        return list(result.scalars().all())

    @staticmethod
    async def process_transitions(db: AsyncSession, today: date) -> ProbationProcessResult:
        """Transition every employment whose probation ends *today*.

        Each employment runs in its own savepoint; a failure is recorded and
        the remaining employments are still processed.
        """
        result = ProbationProcessResult()
        for employment in await ProbationService.due_employments(db, today):
            result.processed += 1
            # A rolled-back savepoint expires the row, so keep the id before it runs
            employment_id = employment.id
            try:
                async with db.begin_nested():
                    await ProbationService.transition_employment(db, employment, today)
                result.transitioned += 1
            except Exception as exc:
                logger.exception("Probation transition failed for employment %s", employment_id)
                result.failed += 1
                result.errors.append({"employment_id": str(employment_id), "error": str(exc)})

        logger.info(
            "Probation transitions for %s: processed=%d transitioned=%d failed=%d",
            today, result.processed, result.transitioned, result.failed,
        )
        return result
