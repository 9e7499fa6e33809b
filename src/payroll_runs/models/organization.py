"""Work location, employee and compensation master data models.

These tables are owned by the wider HR system; payroll only reads them.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    ForeignKey,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from payroll_runs.models.base import Base, TimestampMixin


class WorkLocation(Base, TimestampMixin):
    """Work location with its currency and statutory contribution scheme."""

    __tablename__ = "work_location"

    work_location_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    statutory_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Relationships
    statutory_rates: Mapped[list[StatutoryRate]] = relationship(
        back_populates="work_location",
        cascade="all, delete-orphan",
        lazy="selectin",
    )


class StatutoryRate(Base):
    """Statutory contribution rate pair for one nationality at a location."""

    __tablename__ = "statutory_rate"

    statutory_rate_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    work_location_id: Mapped[UUID] = mapped_column(
        ForeignKey("work_location.work_location_id", ondelete="CASCADE"),
        nullable=False,
    )
    nationality_code: Mapped[str] = mapped_column(String, nullable=False)
    employee_rate: Mapped[Decimal] = mapped_column(Numeric(7, 4), nullable=False)
    employer_rate: Mapped[Decimal] = mapped_column(
        Numeric(7, 4), nullable=False, default=Decimal("0")
    )

    __table_args__ = (
        UniqueConstraint(
            "work_location_id", "nationality_code", name="statutory_rate_location_nationality_unique"
        ),
    )

    # Relationships
    work_location: Mapped[WorkLocation] = relationship(back_populates="statutory_rates")


class Employee(Base, TimestampMixin):
    """Employee as consumed by payroll."""

    __tablename__ = "employee"

    employee_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_code: Mapped[str | None] = mapped_column(String, nullable=True)
    first_name: Mapped[str] = mapped_column(String, nullable=False)
    last_name: Mapped[str] = mapped_column(String, nullable=False)
    department: Mapped[str | None] = mapped_column(String, nullable=True)
    position: Mapped[str | None] = mapped_column(String, nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False, default="active")
    work_location_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("work_location.work_location_id"),
        nullable=True,
    )
    base_salary: Mapped[Decimal] = mapped_column(
        Numeric(14, 4), nullable=False, default=Decimal("0")
    )
    nationality_code: Mapped[str | None] = mapped_column(String, nullable=True)
    is_subject_to_statutory: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    statutory_registered_salary: Mapped[Decimal | None] = mapped_column(
        Numeric(14, 4), nullable=True
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('active', 'on_leave', 'terminated')",
            name="employee_status_check",
        ),
    )

    # Relationships
    compensation_items: Mapped[list[EmployeeCompensation]] = relationship(
        back_populates="employee",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class CompensationTemplate(Base, TimestampMixin):
    """Reusable allowance or deduction definition."""

    __tablename__ = "compensation_template"

    compensation_template_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    work_location_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("work_location.work_location_id", ondelete="CASCADE"),
        nullable=True,
    )
    kind: Mapped[str] = mapped_column(String, nullable=False)
    name: Mapped[str] = mapped_column(String, nullable=False)
    amount_basis: Mapped[str] = mapped_column(String, nullable=False, default="fixed")
    percentage_of: Mapped[str | None] = mapped_column(String, nullable=True)
    value: Mapped[Decimal] = mapped_column(Numeric(14, 4), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        CheckConstraint("kind IN ('allowance', 'deduction')", name="compensation_template_kind_check"),
        CheckConstraint(
            "amount_basis IN ('fixed', 'percentage')",
            name="compensation_template_basis_check",
        ),
        CheckConstraint(
            "amount_basis = 'fixed' OR percentage_of IN ('base_salary', 'statutory_registered_salary')",
            name="compensation_template_percentage_of_check",
        ),
    )


class EmployeeCompensation(Base, TimestampMixin):
    """Allowance or deduction assigned to an employee.

    Either references a template (optionally overriding its amount with
    ``custom_amount``) or is an ad hoc custom item.
    """

    __tablename__ = "employee_compensation"

    employee_compensation_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
    )
    kind: Mapped[str] = mapped_column(String, nullable=False)
    compensation_template_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("compensation_template.compensation_template_id", ondelete="CASCADE"),
        nullable=True,
    )
    custom_name: Mapped[str | None] = mapped_column(String, nullable=True)
    custom_amount: Mapped[Decimal | None] = mapped_column(Numeric(14, 4), nullable=True)
    effective_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    __table_args__ = (
        CheckConstraint("kind IN ('allowance', 'deduction')", name="employee_compensation_kind_check"),
        CheckConstraint(
            "compensation_template_id IS NOT NULL OR custom_amount IS NOT NULL",
            name="employee_compensation_source_check",
        ),
        CheckConstraint(
            "end_date IS NULL OR effective_date IS NULL OR end_date >= effective_date",
            name="employee_compensation_dates_check",
        ),
    )

    # Relationships
    employee: Mapped[Employee] = relationship(back_populates="compensation_items")
    template: Mapped[CompensationTemplate | None] = relationship(lazy="selectin")
