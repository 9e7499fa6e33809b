"""Pydantic schemas for API request/response models."""

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator


# ============================================================================
# Payroll Run schemas
# ============================================================================


class PayrollRunCreate(BaseModel):
    """Schema for creating a draft payroll run."""

    work_location_id: UUID
    pay_period_start: date
    pay_period_end: date

    @model_validator(mode="after")
    def check_period(self) -> "PayrollRunCreate":
        if self.pay_period_start > self.pay_period_end:
            raise ValueError("pay_period_start must not be after pay_period_end")
        return self


class PayrollRunResponse(BaseModel):
    """Schema for payroll run response."""

    model_config = ConfigDict(from_attributes=True)

    payroll_run_id: UUID
    work_location_id: UUID
    pay_period_start: date
    pay_period_end: date
    status: str
    currency: str
    employee_count: int
    total_amount: Decimal | None = None
    total_gross: Decimal | None = None
    total_deductions: Decimal | None = None
    created_by_user_id: UUID | None = None
    created_at: datetime
    finalized_at: datetime | None = None
    finalized_by_user_id: UUID | None = None
    payslips_issued_at: datetime | None = None
    payslips_issued_by_user_id: UUID | None = None
    payslips_emailed: bool = False
    payslip_template: str | None = None


class PayrollRunListResponse(BaseModel):
    """Schema for listing payroll runs."""

    items: list[PayrollRunResponse]
    total: int


class DraftCountResponse(BaseModel):
    """Open drafts per work location."""

    work_location_id: UUID
    draft_count: int


# ============================================================================
# Snapshot schemas
# ============================================================================


class SnapshotRequest(BaseModel):
    """Schema for selecting employees of a draft run."""

    employee_ids: list[UUID] = Field(min_length=1)


class CompensationItemResponse(BaseModel):
    """Resolved allowance or deduction line."""

    kind: str
    name: str
    source: str
    amount: Decimal
    template_id: UUID | None = None
    amount_basis: str | None = None
    percentage_of: str | None = None
    percentage: Decimal | None = None


class PayrollRunEmployeeResponse(BaseModel):
    """Schema for an employee snapshot."""

    model_config = ConfigDict(from_attributes=True)

    payroll_run_employee_id: UUID
    payroll_run_id: UUID
    employee_id: UUID
    employee_code: str | None = None
    employee_name: str
    department: str | None = None
    position: str | None = None
    nationality_code: str | None = None
    base_salary: Decimal
    allowance_items: list[CompensationItemResponse]
    deduction_items: list[CompensationItemResponse]
    total_allowances: Decimal
    statutory_contribution: Decimal
    employer_statutory_contribution: Decimal
    statutory_employee_rate: Decimal | None = None
    statutory_rate_missing: bool
    gross_pay: Decimal
    total_deductions: Decimal
    net_pay: Decimal


class PayrollRunEmployeeListResponse(BaseModel):
    """Schema for listing employee snapshots."""

    items: list[PayrollRunEmployeeResponse]
    total: int


# ============================================================================
# Adjustment schemas
# ============================================================================


class AdjustmentCreate(BaseModel):
    """Schema for adding a one-time adjustment."""

    employee_id: UUID
    adjustment_type: str = Field(pattern="^(earning|deduction)$")
    name: str = Field(min_length=1)
    amount: Decimal
    note: str | None = None


class AdjustmentResponse(BaseModel):
    """Schema for adjustment response."""

    model_config = ConfigDict(from_attributes=True)

    payroll_run_adjustment_id: UUID
    payroll_run_id: UUID
    employee_id: UUID
    adjustment_type: str
    name: str
    amount: Decimal
    note: str | None = None
    created_by_user_id: UUID | None = None
    created_at: datetime


class AdjustmentListResponse(BaseModel):
    """Schema for listing adjustments."""

    items: list[AdjustmentResponse]
    total: int


# ============================================================================
# Review / finalize schemas
# ============================================================================


class EmployeeTotalsResponse(BaseModel):
    """Per-employee totals including adjustments."""

    model_config = ConfigDict(from_attributes=True)

    employee_id: UUID
    employee_name: str
    employee_code: str | None = None
    base_salary: Decimal
    earnings_adjustment: Decimal
    deductions_adjustment: Decimal
    gross_pay: Decimal
    total_deductions: Decimal
    net_pay: Decimal
    statutory_contribution: Decimal


class RunTotalsResponse(BaseModel):
    """Run totals."""

    model_config = ConfigDict(from_attributes=True)

    employee_count: int
    total_base_salary: Decimal
    total_gross: Decimal
    total_deductions: Decimal
    total_net: Decimal
    total_statutory: Decimal


class ValidationIssueResponse(BaseModel):
    """Validation finding."""

    severity: str
    code: str
    message: str
    employee_id: UUID | None = None
    employee_name: str | None = None


class ReviewResponse(BaseModel):
    """Schema for the review step."""

    payroll_run_id: UUID
    status: str
    currency: str
    employees: list[EmployeeTotalsResponse]
    totals: RunTotalsResponse
    errors: list[ValidationIssueResponse]
    warnings: list[ValidationIssueResponse]
    statutory_warnings: list[str]
    can_finalize: bool
    fingerprint: str


class FinalizeRequest(BaseModel):
    """Schema for finalizing a run."""

    expected_fingerprint: str | None = None


# ============================================================================
# Payslip schemas
# ============================================================================


class IssuePayslipsRequest(BaseModel):
    """Schema for issuing payslips."""

    send_email: bool = False
    template_id: str | None = None


class IssuanceFailureResponse(BaseModel):
    """Payslip that could not be issued."""

    employee_id: UUID
    employee_name: str
    reason: str


class IssuePayslipsResponse(BaseModel):
    """Schema for payslip issuance response."""

    payroll_run_id: UUID
    status: str
    issued_count: int
    failed_count: int
    failures: list[IssuanceFailureResponse]
    template_used: str | None = None
    send_email: bool
    storage_refs: dict[UUID, str]


# ============================================================================
# Register schemas
# ============================================================================


class RegisterResponse(BaseModel):
    """Payroll register rows."""

    payroll_run_id: UUID
    currency: str
    columns: list[str]
    rows: list[dict[str, Any]]


# ============================================================================
# Error schemas
# ============================================================================


class ErrorResponse(BaseModel):
    """Schema for error response."""

    detail: str
    code: str | None = None
    context: dict[str, Any] | None = None
