"""Base protocol and types for payslip issuers.

All issuer adapters must implement the PayslipIssuer protocol.
"""

from __future__ import annotations

import datetime
from dataclasses import dataclass
from typing import Protocol
from uuid import UUID


@dataclass(frozen=True)
class PayslipRecipient:
    """Employee a payslip is issued for."""

    employee_id: UUID
    employee_name: str
    employee_code: str | None = None


@dataclass(frozen=True)
class PayslipBatch:
    """Payslip issuance request for one finalized payroll run."""

    payroll_run_id: UUID
    pay_period_start: datetime.date
    pay_period_end: datetime.date
    recipients: tuple[PayslipRecipient, ...]

    @property
    def employee_ids(self) -> list[UUID]:
        return [r.employee_id for r in self.recipients]


@dataclass(frozen=True)
class PayslipResult:
    """Outcome of generating one employee's payslip."""

    employee_id: UUID
    success: bool
    storage_ref: str | None = None  # e.g. "2026/01/E001_2026-01-01_2026-01-31.pdf"
    error: str | None = None
    employee_name: str | None = None


@dataclass(frozen=True)
class IssuanceResult:
    """Outcome of a payslip issuance call."""

    results: tuple[PayslipResult, ...]
    template_used: str | None = None

    @property
    def failures(self) -> list[PayslipResult]:
        return [r for r in self.results if not r.success]

    @property
    def success_count(self) -> int:
        return sum(1 for r in self.results if r.success)


class PayslipIssuer(Protocol):
    """Protocol for payslip issuer adapters.

    An issuer renders, stores and optionally emails payslips. Per-employee
    failures are reported in the result; raising means the whole call failed
    and nothing should be recorded.
    """

    issuer_name: str

    async def issue(
        self,
        batch: PayslipBatch,
        *,
        send_email: bool,
        template_id: str | None = None,
    ) -> IssuanceResult:
        """Issue payslips for every recipient of the batch.

        Args:
            batch: Run id, pay period and recipients
            send_email: Whether payslips are emailed to employees
            template_id: Payslip template; None selects the issuer default

        Returns:
            IssuanceResult with one PayslipResult per recipient.
        """
        ...


def payslip_storage_path(
    recipient: PayslipRecipient,
    pay_period_start: datetime.date,
    pay_period_end: datetime.date,
) -> str:
    """Storage path ``YYYY/MM/<code>_<start>_<end>.pdf`` for a payslip."""
    code = recipient.employee_code or str(recipient.employee_id)
    return (
        f"{pay_period_start.year:04d}/{pay_period_start.month:02d}/"
        f"{code}_{pay_period_start.isoformat()}_{pay_period_end.isoformat()}.pdf"
    )
