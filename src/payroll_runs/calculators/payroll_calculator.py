"""Per-employee and per-run payroll totals, validation and fingerprinting."""

from __future__ import annotations

import hashlib
import json
from collections.abc import Iterable, Sequence
from typing import Any

from payroll_runs.calculators.types import (
    ZERO,
    AdjustmentInfo,
    AdjustmentType,
    EmployeeTotals,
    IssueSeverity,
    RunTotals,
    SnapshotInfo,
    ValidationIssue,
    ValidationReport,
)


class PayrollCalculator:
    """Combines frozen snapshots with one-time adjustments.

    Sign conventions:
    - Adjustment amounts are unsigned; the adjustment type decides the sign
    - gross = snapshot gross + earning adjustments
    - deductions = snapshot deductions + deduction adjustments
    - net = gross - deductions

    All sums are kept at full Decimal precision.
    """

    @staticmethod
    def compute_employee_totals(
        snapshot: SnapshotInfo,
        adjustments: Iterable[AdjustmentInfo],
    ) -> EmployeeTotals:
        """Compute final totals for one employee.

        Adjustments belonging to other employees are ignored.
        """
        earnings = ZERO
        deductions = ZERO
        for adj in adjustments:
            if adj.employee_id != snapshot.employee_id:
                continue
            if adj.adjustment_type == AdjustmentType.EARNING:
                earnings += adj.amount
            else:
                deductions += adj.amount

        gross = snapshot.gross_pay + earnings
        total_deductions = snapshot.total_deductions + deductions

        return EmployeeTotals(
            employee_id=snapshot.employee_id,
            employee_name=snapshot.employee_name,
            employee_code=snapshot.employee_code,
            base_salary=snapshot.base_salary,
            earnings_adjustment=earnings,
            deductions_adjustment=deductions,
            gross_pay=gross,
            total_deductions=total_deductions,
            net_pay=gross - total_deductions,
            statutory_contribution=snapshot.statutory_contribution,
        )

    @staticmethod
    def compute_run_totals(employee_totals: Sequence[EmployeeTotals]) -> RunTotals:
        """Sum employee totals into run totals."""
        return RunTotals(
            employee_count=len(employee_totals),
            total_base_salary=sum((t.base_salary for t in employee_totals), ZERO),
            total_gross=sum((t.gross_pay for t in employee_totals), ZERO),
            total_deductions=sum((t.total_deductions for t in employee_totals), ZERO),
            total_net=sum((t.net_pay for t in employee_totals), ZERO),
            total_statutory=sum((t.statutory_contribution for t in employee_totals), ZERO),
        )

    @staticmethod
    def validate(employee_totals: Sequence[EmployeeTotals]) -> ValidationReport:
        """Validate employee totals before finalization.

        Rules:
        - No employees: blocking error
        - Negative net pay: blocking error per employee
        - Zero base salary: warning per employee
        """
        issues: list[ValidationIssue] = []

        if not employee_totals:
            issues.append(
                ValidationIssue(
                    severity=IssueSeverity.ERROR,
                    code="no_employees",
                    message="Payroll run has no employees",
                )
            )

        for totals in employee_totals:
            if totals.net_pay < ZERO:
                issues.append(
                    ValidationIssue(
                        severity=IssueSeverity.ERROR,
                        code="negative_net_pay",
                        message=f"{totals.employee_name} has negative net pay ({totals.net_pay})",
                        employee_id=totals.employee_id,
                        employee_name=totals.employee_name,
                    )
                )
            if totals.base_salary == ZERO:
                issues.append(
                    ValidationIssue(
                        severity=IssueSeverity.WARNING,
                        code="zero_base_salary",
                        message=f"{totals.employee_name} has a base salary of zero",
                        employee_id=totals.employee_id,
                        employee_name=totals.employee_name,
                    )
                )

        return ValidationReport(issues=tuple(issues))

    @staticmethod
    def compute_fingerprint(
        snapshots: Iterable[SnapshotInfo],
        adjustments: Iterable[AdjustmentInfo],
    ) -> str:
        """Compute a deterministic fingerprint of the run inputs.

        Order of the inputs does not matter.
        """
        data: dict[str, Any] = {
            "snapshots": sorted(
                (
                    {
                        "employee_id": str(s.employee_id),
                        "base_salary": str(s.base_salary),
                        "gross_pay": str(s.gross_pay),
                        "total_deductions": str(s.total_deductions),
                        "net_pay": str(s.net_pay),
                    }
                    for s in snapshots
                ),
                key=lambda d: d["employee_id"],
            ),
            "adjustments": sorted(
                (
                    {
                        "employee_id": str(a.employee_id),
                        "type": a.adjustment_type.value,
                        "name": a.name,
                        "amount": str(a.amount),
                    }
                    for a in adjustments
                ),
                key=lambda d: (d["employee_id"], d["type"], d["name"], d["amount"]),
            ),
        }
        json_str = json.dumps(data, sort_keys=True)
        return hashlib.sha256(json_str.encode()).hexdigest()[:32]
