"""Employment change log helper."""

from __future__ import annotations

import uuid
from datetime import date
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from hrms.employment.models import Employment, EmploymentHistory


async def record_history(
    db: AsyncSession,
    employment: Employment,
    *,
    reason: str,
    changes: Optional[dict[str, Any]] = None,
    notes: Optional[str] = None,
    actor_id: Optional[uuid.UUID] = None,
    change_date: Optional[date] = None,
) -> EmploymentHistory:
    """Append one entry to the employment's history."""
    entry = EmploymentHistory(
        employment_id=employment.id,
        employee_id=employment.employee_id,
        change_date=change_date or date.today(),
        change_reason=reason,
        changes=changes,
        notes=notes,
        changed_by=actor_id,
    )
    db.add(entry)
    await db.flush()
    return entry
