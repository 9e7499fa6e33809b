"""Payslip issuer adapters."""

from payroll_runs.issuers.base import (
    IssuanceResult,
    PayslipBatch,
    PayslipIssuer,
    PayslipRecipient,
    PayslipResult,
    payslip_storage_path,
)
from payroll_runs.issuers.http import HttpPayslipIssuer, PayslipIssuerError
from payroll_runs.issuers.stub import StubPayslipIssuer

__all__ = [
    "HttpPayslipIssuer",
    "IssuanceResult",
    "PayslipBatch",
    "PayslipIssuer",
    "PayslipIssuerError",
    "PayslipRecipient",
    "PayslipResult",
    "StubPayslipIssuer",
    "payslip_storage_path",
]
