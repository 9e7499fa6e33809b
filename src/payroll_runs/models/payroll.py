"""Payroll run, employee snapshot, adjustment and audit models."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from payroll_runs.models.base import Base, JSONType, TimestampMixin

# Full precision for snapshot money; rounding happens only at display/export
Money = Numeric(18, 6)


class PayrollRun(Base, TimestampMixin):
    """Payroll run for one work location and pay period."""

    __tablename__ = "payroll_run"

    payroll_run_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    work_location_id: Mapped[UUID] = mapped_column(
        ForeignKey("work_location.work_location_id"),
        nullable=False,
    )
    pay_period_start: Mapped[date] = mapped_column(Date, nullable=False)
    pay_period_end: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="draft")
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    created_by_user_id: Mapped[UUID | None] = mapped_column(nullable=True)

    # Frozen at finalize
    employee_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_amount: Mapped[Decimal | None] = mapped_column(Money, nullable=True)
    total_gross: Mapped[Decimal | None] = mapped_column(Money, nullable=True)
    total_deductions: Mapped[Decimal | None] = mapped_column(Money, nullable=True)
    finalized_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    finalized_by_user_id: Mapped[UUID | None] = mapped_column(nullable=True)

    # Payslip issuance
    payslips_issued_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    payslips_issued_by_user_id: Mapped[UUID | None] = mapped_column(nullable=True)
    payslips_emailed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    payslip_template: Mapped[str | None] = mapped_column(String, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "status IN ('draft', 'finalized', 'payslips_issued')",
            name="payroll_run_status_check",
        ),
        CheckConstraint("pay_period_end >= pay_period_start", name="payroll_run_dates_check"),
        # At most one draft per location and identical pay period
        Index(
            "payroll_run_one_draft_per_period",
            "work_location_id",
            "pay_period_start",
            "pay_period_end",
            unique=True,
            postgresql_where=text("status = 'draft'"),
            sqlite_where=text("status = 'draft'"),
        ),
    )


class PayrollRunEmployee(Base, TimestampMixin):
    """Frozen compensation snapshot of one employee within a payroll run."""

    __tablename__ = "payroll_run_employee"

    payroll_run_employee_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    payroll_run_id: Mapped[UUID] = mapped_column(
        ForeignKey("payroll_run.payroll_run_id", ondelete="CASCADE"),
        nullable=False,
    )
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id"),
        nullable=False,
    )

    # Display copies
    employee_code: Mapped[str | None] = mapped_column(String, nullable=True)
    employee_name: Mapped[str] = mapped_column(String, nullable=False)
    department: Mapped[str | None] = mapped_column(String, nullable=True)
    position: Mapped[str | None] = mapped_column(String, nullable=True)
    nationality_code: Mapped[str | None] = mapped_column(String, nullable=True)

    base_salary: Mapped[Decimal] = mapped_column(Money, nullable=False)
    allowance_items: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONType, nullable=False, default=list
    )
    deduction_items: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONType, nullable=False, default=list
    )
    total_allowances: Mapped[Decimal] = mapped_column(Money, nullable=False)
    statutory_contribution: Mapped[Decimal] = mapped_column(Money, nullable=False)
    employer_statutory_contribution: Mapped[Decimal] = mapped_column(Money, nullable=False)
    statutory_employee_rate: Mapped[Decimal | None] = mapped_column(Numeric(7, 4), nullable=True)
    statutory_rate_missing: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    gross_pay: Mapped[Decimal] = mapped_column(Money, nullable=False)
    total_deductions: Mapped[Decimal] = mapped_column(Money, nullable=False)
    net_pay: Mapped[Decimal] = mapped_column(Money, nullable=False)

    __table_args__ = (
        UniqueConstraint("payroll_run_id", "employee_id", name="payroll_run_employee_unique"),
    )


class PayrollRunAdjustment(Base, TimestampMixin):
    """One-time earning or deduction for an employee within a payroll run."""

    __tablename__ = "payroll_run_adjustment"

    payroll_run_adjustment_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    payroll_run_id: Mapped[UUID] = mapped_column(
        ForeignKey("payroll_run.payroll_run_id", ondelete="CASCADE"),
        nullable=False,
    )
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id"),
        nullable=False,
    )
    adjustment_type: Mapped[str] = mapped_column(String, nullable=False)
    name: Mapped[str] = mapped_column(String, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by_user_id: Mapped[UUID | None] = mapped_column(nullable=True)

    __table_args__ = (
        CheckConstraint(
            "adjustment_type IN ('earning', 'deduction')",
            name="payroll_run_adjustment_type_check",
        ),
    )


# ===== Audit =====


class AuditEvent(Base, TimestampMixin):
    """Audit trail entry."""

    __tablename__ = "audit_event"

    audit_event_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    actor_user_id: Mapped[UUID | None] = mapped_column(nullable=True)
    entity_type: Mapped[str] = mapped_column(String, nullable=False)
    entity_id: Mapped[UUID] = mapped_column(nullable=False)
    action: Mapped[str] = mapped_column(String, nullable=False)
    details_json: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
