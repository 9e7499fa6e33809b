"""Stub payslip issuer for local development and testing.

Replace with a document-generation service adapter for production.
"""

from __future__ import annotations

from collections.abc import Iterable
from uuid import UUID

from payroll_runs.issuers.base import (
    IssuanceResult,
    PayslipBatch,
    PayslipResult,
    payslip_storage_path,
)


class StubPayslipIssuer:
    """Stub issuer that "stores" payslips at deterministic paths.

    In production, this would:
    - Render the payslip template to PDF
    - Upload it to object storage
    - Email it to the employee when requested
    """

    issuer_name = "stub"

    def __init__(
        self,
        fail_employee_ids: Iterable[UUID] = (),
        failure_reason: str = "Payslip generation failed",
        default_template: str = "default",
    ):
        """Initialize stub issuer.

        Args:
            fail_employee_ids: Employees whose payslip generation fails
            failure_reason: Error reported for failing employees
            default_template: Template reported when none is requested
        """
        self.fail_employee_ids = set(fail_employee_ids)
        self.failure_reason = failure_reason
        self.default_template = default_template
        # In-memory tracking for stub
        self.issued: dict[str, PayslipResult] = {}
        self.emailed: list[UUID] = []
        self.calls = 0

    async def issue(
        self,
        batch: PayslipBatch,
        *,
        send_email: bool,
        template_id: str | None = None,
    ) -> IssuanceResult:
        """Issue payslips (stub implementation)."""
        self.calls += 1
        results: list[PayslipResult] = []

        for recipient in batch.recipients:
            if recipient.employee_id in self.fail_employee_ids:
                results.append(
                    PayslipResult(
                        employee_id=recipient.employee_id,
                        employee_name=recipient.employee_name,
                        success=False,
                        error=self.failure_reason,
                    )
                )
                continue

            path = payslip_storage_path(recipient, batch.pay_period_start, batch.pay_period_end)
            result = PayslipResult(
                employee_id=recipient.employee_id,
                employee_name=recipient.employee_name,
                success=True,
                storage_ref=path,
            )
            self.issued[path] = result
            if send_email:
                self.emailed.append(recipient.employee_id)
            results.append(result)

        return IssuanceResult(
            results=tuple(results),
            template_used=template_id or self.default_template,
        )
