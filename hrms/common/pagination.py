"""Generic pagination utilities for SQLAlchemy async queries."""


import math
from typing import Any, Generic, Optional, Sequence, TypeVar

from fastapi import Query
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.common.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE

T = TypeVar("T")


# ── FastAPI dependency ──────────────────────────────────────────────

class PaginationParams:
    """Inject via ``Depends(PaginationParams)`` on any list endpoint."""

    def __init__(
        self,
        page: int = Query(default=1, ge=1, description="Page number (1-indexed)"),
        per_page: int = Query(
            default=DEFAULT_PAGE_SIZE,
            ge=1,
            le=MAX_PAGE_SIZE,
            description=f"Items per page (max {MAX_PAGE_SIZE})",
        ),
        sort: Optional[str] = Query(
            default=None,
            description='Sort field; prefix "-" for DESC (e.g. "-start_date")',
        ),
    ) -> None:
        self.page = page
        self.per_page = per_page
        self.sort = sort

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.per_page


# ── Pydantic response models ───────────────────────────────────────

class PaginationMeta(BaseModel):
    """Pagination block embedded in every list response."""

    model_config = ConfigDict(populate_by_name=True)

    current_page: int
    per_page: int
    total: int
    last_page: int
    from_: Optional[int] = Field(default=None, alias="from")
    to: Optional[int] = None
    has_more_pages: bool

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)

    @classmethod
    def build(cls, params: "PaginationParams", total: int, count: int) -> "PaginationMeta":
        last_page = max(math.ceil(total / params.per_page), 1) if total else 1
        first = params.offset + 1 if count else None
        return cls(
            current_page=params.page,
            per_page=params.per_page,
            total=total,
            last_page=last_page,
            from_=first,
            to=params.offset + count if count else None,
            has_more_pages=params.page < last_page,
        )


class PaginatedResponse(BaseModel, Generic[T]):
    """Result of :func:`paginate` — rows plus their pagination block."""

    data: Sequence[T]
    pagination: PaginationMeta


# ── SQLAlchemy helper ───────────────────────────────────────────────

async def paginate(
    session: AsyncSession,
    query: Select,
    params: PaginationParams,
    *,
    model: Any = None,
) -> PaginatedResponse:
    """
    Execute *query* with LIMIT/OFFSET derived from *params* and return
    a ``PaginatedResponse`` with data + pagination.

    Sort columns are only resolved as attributes of *model*; unknown sort
    fields are ignored so user input never reaches raw SQL.
    """
    # ── sorting ─────────────────────────────────────────────────────
    if params.sort and model is not None:
        descending = params.sort.startswith("-")
        col_name = params.sort.lstrip("-")
        col = getattr(model, col_name, None)
        if col is not None and hasattr(col, "desc"):
            query = query.order_by(None).order_by(col.desc() if descending else col.asc())

    # ── total count over the unordered query as a subquery ──────────
    count_q = select(func.count()).select_from(query.order_by(None).subquery())
    total: int = (await session.execute(count_q)).scalar_one()

    # ── paginated rows ──────────────────────────────────────────────
    rows = (
        await session.execute(
            query.offset(params.offset).limit(params.per_page)
        )
    ).scalars().all()

    return PaginatedResponse(
        data=rows,
        pagination=PaginationMeta.build(params, total, len(rows)),
    )
