"""Tax ORM models: TaxBracket, TaxSetting, TaxCalculationLog."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from hrms.common.constants import TaxSettingType
from hrms.database import Base


class TaxBracket(Base):
    """One progressive income band of a tax year (annual amounts, rate in %)."""

    __tablename__ = "tax_brackets"
    __table_args__ = (
        sa.UniqueConstraint("effective_year", "bracket_order", name="uq_tax_bracket_year_order"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    min_income: Mapped[Decimal] = mapped_column(sa.Numeric(15, 2), nullable=False)
    max_income: Mapped[Optional[Decimal]] = mapped_column(sa.Numeric(15, 2))
    tax_rate: Mapped[Decimal] = mapped_column(sa.Numeric(5, 2), nullable=False)
    bracket_order: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    effective_year: Mapped[int] = mapped_column(sa.Integer, nullable=False, index=True)
    description: Mapped[Optional[str]] = mapped_column(sa.String(255))
    is_active: Mapped[bool] = mapped_column(sa.Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        server_default=sa.func.now(),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    def __repr__(self) -> str:
        return f"<TaxBracket {self.effective_year}#{self.bracket_order} {self.tax_rate}%>"


class TaxSetting(Base):
    """A deduction, allowance, rate or limit for a tax year; only ``is_selected`` rows apply."""

    __tablename__ = "tax_settings"
    __table_args__ = (
        sa.UniqueConstraint("setting_key", "effective_year", name="uq_tax_setting_key_year"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    setting_key: Mapped[str] = mapped_column(sa.String(100), nullable=False)
    setting_value: Mapped[Decimal] = mapped_column(sa.Numeric(15, 2), nullable=False)
    setting_type: Mapped[TaxSettingType] = mapped_column(
        sa.Enum(TaxSettingType, name="tax_setting_type", create_type=False),
        nullable=False,
    )
    description: Mapped[Optional[str]] = mapped_column(sa.String(255))
    effective_year: Mapped[int] = mapped_column(sa.Integer, nullable=False, index=True)
    is_selected: Mapped[bool] = mapped_column(sa.Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        server_default=sa.func.now(),
        onupdate=lambda: datetime.now(timezone.utc),
    )


class TaxCalculationLog(Base):
    """Record of a full employee tax calculation."""

    __tablename__ = "tax_calculation_logs"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    employee_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id", ondelete="SET NULL"), index=True,
    )
    tax_year: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    gross_salary: Mapped[Decimal] = mapped_column(sa.Numeric(12, 2), nullable=False)
    taxable_income: Mapped[Decimal] = mapped_column(sa.Numeric(15, 2), nullable=False)
    annual_tax: Mapped[Decimal] = mapped_column(sa.Numeric(15, 2), nullable=False)
    monthly_tax: Mapped[Decimal] = mapped_column(sa.Numeric(12, 2), nullable=False)
    breakdown: Mapped[Optional[dict]] = mapped_column(JSONB)
    calculated_by: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True))
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(),
    )
