"""Grant ORM models: Grant, GrantItem, PositionSlot."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hrms.common.audit import AuditMixin
from hrms.common.constants import Organization
from hrms.database import Base


class Grant(Base, AuditMixin):
    """A funding source. ``is_hub_grant`` marks the organization's own fund."""

    __tablename__ = "grants"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    code: Mapped[str] = mapped_column(sa.String(50), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    organization: Mapped[Organization] = mapped_column(
        sa.Enum(Organization, name="organization", create_type=False),
        nullable=False,
    )
    description: Mapped[Optional[str]] = mapped_column(sa.Text)
    start_date: Mapped[Optional[date]] = mapped_column(sa.Date)
    end_date: Mapped[Optional[date]] = mapped_column(sa.Date)
    is_hub_grant: Mapped[bool] = mapped_column(sa.Boolean, default=False)

    items: Mapped[list[GrantItem]] = relationship(
        back_populates="grant",
        cascade="all, delete-orphan",
        order_by="GrantItem.grant_position",
    )

    def __repr__(self) -> str:
        return f"<Grant {self.code}>"


class GrantItem(Base, AuditMixin):
    """A budgeted position line within a grant."""

    __tablename__ = "grant_items"
    __table_args__ = (
        sa.UniqueConstraint(
            "grant_id", "grant_position", "budgetline_code",
            name="uq_grant_item_position_budgetline",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    grant_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("grants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    grant_position: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    grant_salary: Mapped[Optional[Decimal]] = mapped_column(sa.Numeric(12, 2))
    grant_benefit: Mapped[Optional[Decimal]] = mapped_column(sa.Numeric(12, 2))
    grant_level_of_effort: Mapped[Optional[Decimal]] = mapped_column(sa.Numeric(5, 4))
    grant_position_number: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=1)
    budgetline_code: Mapped[Optional[str]] = mapped_column(sa.String(100))

    grant: Mapped[Grant] = relationship(back_populates="items")
    slots: Mapped[list[PositionSlot]] = relationship(
        back_populates="grant_item",
        cascade="all, delete-orphan",
        order_by="PositionSlot.slot_number",
    )

    def __repr__(self) -> str:
        return f"<GrantItem {self.grant_position!r} x{self.grant_position_number}>"


class PositionSlot(Base):
    """One assignable seat of a grant item."""

    __tablename__ = "position_slots"
    __table_args__ = (
        sa.UniqueConstraint("grant_item_id", "slot_number", name="uq_position_slot_number"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    grant_item_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("grant_items.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    slot_number: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    budgetline_code: Mapped[Optional[str]] = mapped_column(sa.String(100))
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(),
    )

    grant_item: Mapped[GrantItem] = relationship(back_populates="slots")
