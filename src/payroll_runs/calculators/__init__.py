"""Compensation resolution and payroll calculation."""

from payroll_runs.calculators.compensation import CompensationResolver
from payroll_runs.calculators.money import currency_precision, format_amount, round_for_display
from payroll_runs.calculators.payroll_calculator import PayrollCalculator

__all__ = [
    "CompensationResolver",
    "PayrollCalculator",
    "currency_precision",
    "format_amount",
    "round_for_display",
]
