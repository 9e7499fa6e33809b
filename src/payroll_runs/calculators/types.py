"""Type definitions for the compensation and payroll calculation pipeline.

Everything here is an immutable value object so that resolution and
calculation stay pure functions of their inputs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

ZERO = Decimal("0")


class ComponentKind(str, Enum):
    """Compensation component kinds."""

    ALLOWANCE = "allowance"
    DEDUCTION = "deduction"


class AmountBasis(str, Enum):
    """How a template amount is expressed."""

    FIXED = "fixed"
    PERCENTAGE = "percentage"


class PercentageBase(str, Enum):
    """Salary figure a percentage template applies to."""

    BASE_SALARY = "base_salary"
    STATUTORY_REGISTERED_SALARY = "statutory_registered_salary"


class ItemSource(str, Enum):
    """Where a resolved line item came from."""

    TEMPLATE = "template"
    CUSTOM = "custom"


class AdjustmentType(str, Enum):
    """One-time adjustment types."""

    EARNING = "earning"
    DEDUCTION = "deduction"


class IssueSeverity(str, Enum):
    """Validation issue severity."""

    ERROR = "error"
    WARNING = "warning"


# ===== Resolution inputs =====


@dataclass(frozen=True)
class StatutoryRateInfo:
    """Employee/employer contribution rate pair, in percent."""

    employee_rate: Decimal
    employer_rate: Decimal = ZERO


@dataclass(frozen=True)
class WorkLocationInfo:
    """Work location as seen by the resolver."""

    work_location_id: UUID
    name: str
    currency: str
    statutory_enabled: bool = False
    # nationality_code -> rate pair
    statutory_rates: dict[str, StatutoryRateInfo] = field(default_factory=dict)

    def rate_for(self, nationality_code: str | None) -> StatutoryRateInfo | None:
        if nationality_code is None:
            return None
        return self.statutory_rates.get(nationality_code)


@dataclass(frozen=True)
class CompensationTemplateInfo:
    """Reusable allowance or deduction definition."""

    template_id: UUID
    kind: ComponentKind
    name: str
    amount_basis: AmountBasis
    value: Decimal
    percentage_of: PercentageBase | None = None
    work_location_id: UUID | None = None  # None = every location
    is_active: bool = True


@dataclass(frozen=True)
class CompensationComponent:
    """Allowance or deduction assigned to an employee."""

    kind: ComponentKind
    template: CompensationTemplateInfo | None = None
    custom_name: str | None = None
    custom_amount: Decimal | None = None
    effective_date: date | None = None
    end_date: date | None = None

    def is_active_on(self, as_of: date | None) -> bool:
        """Check whether the assignment window covers ``as_of``."""
        if as_of is None:
            return True
        if self.effective_date is not None and as_of < self.effective_date:
            return False
        if self.end_date is not None and as_of > self.end_date:
            return False
        return True


@dataclass(frozen=True)
class EmployeeProfile:
    """Employee data needed for payroll."""

    employee_id: UUID
    first_name: str
    last_name: str
    base_salary: Decimal
    work_location_id: UUID | None = None
    employee_code: str | None = None
    department: str | None = None
    position: str | None = None
    nationality_code: str | None = None
    is_subject_to_statutory: bool = False
    statutory_registered_salary: Decimal | None = None
    components: tuple[CompensationComponent, ...] = ()

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


# ===== Resolution outputs =====


@dataclass(frozen=True)
class CompensationLineItem:
    """A resolved allowance or deduction amount in the location currency."""

    kind: ComponentKind
    name: str
    source: ItemSource
    amount: Decimal
    template_id: UUID | None = None
    amount_basis: AmountBasis | None = None
    percentage_of: PercentageBase | None = None
    percentage: Decimal | None = None

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-safe dict (amounts as strings, never floats)."""
        return {
            "kind": self.kind.value,
            "name": self.name,
            "source": self.source.value,
            "amount": str(self.amount),
            "template_id": str(self.template_id) if self.template_id else None,
            "amount_basis": self.amount_basis.value if self.amount_basis else None,
            "percentage_of": self.percentage_of.value if self.percentage_of else None,
            "percentage": str(self.percentage) if self.percentage is not None else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CompensationLineItem:
        return cls(
            kind=ComponentKind(data["kind"]),
            name=data["name"],
            source=ItemSource(data["source"]),
            amount=Decimal(data["amount"]),
            template_id=UUID(data["template_id"]) if data.get("template_id") else None,
            amount_basis=AmountBasis(data["amount_basis"]) if data.get("amount_basis") else None,
            percentage_of=(
                PercentageBase(data["percentage_of"]) if data.get("percentage_of") else None
            ),
            percentage=Decimal(data["percentage"]) if data.get("percentage") is not None else None,
        )


@dataclass(frozen=True)
class StatutoryContribution:
    """Statutory social-insurance contribution for one employee."""

    applicable: bool
    contribution_base: Decimal = ZERO
    employee_rate: Decimal | None = None
    employer_rate: Decimal | None = None
    employee_amount: Decimal = ZERO
    employer_amount: Decimal = ZERO
    rate_missing: bool = False


@dataclass(frozen=True)
class ResolvedCompensation:
    """Output of compensation resolution for one employee."""

    employee_id: UUID
    base_salary: Decimal
    allowance_items: tuple[CompensationLineItem, ...]
    deduction_items: tuple[CompensationLineItem, ...]
    statutory: StatutoryContribution
    warnings: tuple[str, ...] = ()

    @property
    def total_allowances(self) -> Decimal:
        return sum((item.amount for item in self.allowance_items), ZERO)

    @property
    def gross_pay(self) -> Decimal:
        return self.base_salary + self.total_allowances

    @property
    def total_deductions(self) -> Decimal:
        """Recurring deductions plus the employee statutory share."""
        recurring = sum((item.amount for item in self.deduction_items), ZERO)
        return recurring + self.statutory.employee_amount

    @property
    def net_pay(self) -> Decimal:
        return self.gross_pay - self.total_deductions


# ===== Calculation =====


@dataclass(frozen=True)
class AdjustmentInfo:
    """One-time adjustment as consumed by the calculator."""

    employee_id: UUID
    adjustment_type: AdjustmentType
    name: str
    amount: Decimal  # unsigned magnitude
    adjustment_id: UUID | None = None


@dataclass(frozen=True)
class SnapshotInfo:
    """Frozen per-employee snapshot as consumed by the calculator."""

    employee_id: UUID
    employee_name: str
    base_salary: Decimal
    gross_pay: Decimal
    total_deductions: Decimal
    net_pay: Decimal
    employee_code: str | None = None
    statutory_contribution: Decimal = ZERO
    statutory_rate_missing: bool = False


@dataclass(frozen=True)
class EmployeeTotals:
    """Final per-employee figures including adjustments."""

    employee_id: UUID
    employee_name: str
    base_salary: Decimal
    earnings_adjustment: Decimal
    deductions_adjustment: Decimal
    gross_pay: Decimal
    total_deductions: Decimal
    net_pay: Decimal
    statutory_contribution: Decimal = ZERO
    employee_code: str | None = None


@dataclass(frozen=True)
class RunTotals:
    """Plain sums over all employees of a run."""

    employee_count: int
    total_base_salary: Decimal = ZERO
    total_gross: Decimal = ZERO
    total_deductions: Decimal = ZERO
    total_net: Decimal = ZERO
    total_statutory: Decimal = ZERO


@dataclass(frozen=True)
class ValidationIssue:
    """Single validation finding."""

    severity: IssueSeverity
    code: str
    message: str
    employee_id: UUID | None = None
    employee_name: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "severity": self.severity.value,
            "code": self.code,
            "message": self.message,
            "employee_id": str(self.employee_id) if self.employee_id else None,
            "employee_name": self.employee_name,
        }


@dataclass(frozen=True)
class ValidationReport:
    """Validation outcome for a run."""

    issues: tuple[ValidationIssue, ...] = ()

    @property
    def errors(self) -> list[ValidationIssue]:
        return [i for i in self.issues if i.severity == IssueSeverity.ERROR]

    @property
    def warnings(self) -> list[ValidationIssue]:
        return [i for i in self.issues if i.severity == IssueSeverity.WARNING]

    @property
    def is_blocked(self) -> bool:
        return len(self.errors) > 0
