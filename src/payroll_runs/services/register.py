"""Payroll register rows for spreadsheet/PDF exporters."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date
from decimal import Decimal
from typing import Union

from payroll_runs.calculators.money import round_for_display
from payroll_runs.calculators.types import ZERO
from payroll_runs.models import PayrollRun, PayrollRunEmployee
from payroll_runs.services.payroll_run_service import RunComputation

RegisterValue = Union[str, date, Decimal, None]

REGISTER_COLUMNS: tuple[str, ...] = (
    "employee_code",
    "employee_name",
    "department",
    "position",
    "pay_period_start",
    "pay_period_end",
    "base_salary",
    "allowances",
    "earnings_adjustments",
    "gross_pay",
    "statutory_contribution",
    "deductions_adjustments",
    "total_deductions",
    "net_pay",
)

TOTALS_LABEL = "TOTAL"


def build_register_rows(
    payroll_run: PayrollRun,
    snapshots: Sequence[PayrollRunEmployee],
    computation: RunComputation,
) -> list[dict[str, RegisterValue]]:
    """Build one flat row per employee plus a trailing totals row.

    Amounts are rounded half-up to the run currency's precision; totals are
    summed at full precision before rounding.
    """
    currency = payroll_run.currency
    totals_by_employee = {t.employee_id: t for t in computation.employee_totals}

    def money(amount: Decimal) -> Decimal:
        return round_for_display(amount, currency)

    rows: list[dict[str, RegisterValue]] = []
    sum_allowances = ZERO
    sum_earnings_adj = ZERO
    sum_deductions_adj = ZERO

    for snapshot in snapshots:
        totals = totals_by_employee.get(snapshot.employee_id)
        if totals is None:
            continue
        sum_allowances += snapshot.total_allowances
        sum_earnings_adj += totals.earnings_adjustment
        sum_deductions_adj += totals.deductions_adjustment
        rows.append(
            {
                "employee_code": snapshot.employee_code,
                "employee_name": snapshot.employee_name,
                "department": snapshot.department,
                "position": snapshot.position,
                "pay_period_start": payroll_run.pay_period_start,
                "pay_period_end": payroll_run.pay_period_end,
                "base_salary": money(totals.base_salary),
                "allowances": money(snapshot.total_allowances),
                "earnings_adjustments": money(totals.earnings_adjustment),
                "gross_pay": money(totals.gross_pay),
                "statutory_contribution": money(snapshot.statutory_contribution),
                "deductions_adjustments": money(totals.deductions_adjustment),
                "total_deductions": money(totals.total_deductions),
                "net_pay": money(totals.net_pay),
            }
        )

    run_totals = computation.run_totals
    rows.append(
        {
            "employee_code": None,
            "employee_name": TOTALS_LABEL,
            "department": None,
            "position": None,
            "pay_period_start": payroll_run.pay_period_start,
            "pay_period_end": payroll_run.pay_period_end,
            "base_salary": money(run_totals.total_base_salary),
            "allowances": money(sum_allowances),
            "earnings_adjustments": money(sum_earnings_adj),
            "gross_pay": money(run_totals.total_gross),
            "statutory_contribution": money(run_totals.total_statutory),
            "deductions_adjustments": money(sum_deductions_adj),
            "total_deductions": money(run_totals.total_deductions),
            "net_pay": money(run_totals.total_net),
        }
    )
    return rows
