"""Payroll run services."""

from payroll_runs.services.adjustment_ledger import AdjustmentLedger, AdjustmentNotFoundError
from payroll_runs.services.directory import (
    EmployeeDirectory,
    EmployeeNotAvailableError,
    LocationNotFoundError,
    SqlEmployeeDirectory,
)
from payroll_runs.services.payroll_run_service import (
    DuplicateDraftError,
    IssuanceSummary,
    PartialIssuanceFailure,
    PayrollRunService,
    RunComputation,
    RunDataChangedError,
    ValidationBlockedError,
)
from payroll_runs.services.register import build_register_rows
from payroll_runs.services.state_machine import (
    InvalidTransitionError,
    PayrollRunNotFoundError,
    PayrollRunStateMachine,
    PayrollRunStatus,
    RunNotEditableError,
)

__all__ = [
    "AdjustmentLedger",
    "AdjustmentNotFoundError",
    "DuplicateDraftError",
    "EmployeeDirectory",
    "EmployeeNotAvailableError",
    "InvalidTransitionError",
    "IssuanceSummary",
    "LocationNotFoundError",
    "PartialIssuanceFailure",
    "PayrollRunNotFoundError",
    "PayrollRunService",
    "PayrollRunStateMachine",
    "PayrollRunStatus",
    "RunComputation",
    "RunDataChangedError",
    "RunNotEditableError",
    "SqlEmployeeDirectory",
    "ValidationBlockedError",
    "build_register_rows",
]
