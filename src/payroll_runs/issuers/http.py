"""Payslip issuer backed by a document-generation HTTP service."""

from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

import httpx

from payroll_runs.issuers.base import IssuanceResult, PayslipBatch, PayslipResult

logger = logging.getLogger(__name__)


class PayslipIssuerError(Exception):
    """Raised when the issuance call as a whole fails."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class HttpPayslipIssuer:
    """Calls ``POST {base_url}/payslips/generate``.

    Request body:
        {"payroll_run_id", "employee_ids", "template_id", "send_email"}

    Response body:
        {"results": [{"employee_id", "employee_name", "success",
                      "pdf_storage_path" | "error"}],
         "template_used": str | null}
    """

    issuer_name = "http"

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.client = client or httpx.AsyncClient(
            base_url=self.base_url,
            headers={"Content-Type": "application/json", "Accept": "application/json"},
            timeout=timeout,
        )

    async def issue(
        self,
        batch: PayslipBatch,
        *,
        send_email: bool,
        template_id: str | None = None,
    ) -> IssuanceResult:
        payload = {
            "payroll_run_id": str(batch.payroll_run_id),
            "employee_ids": [str(e) for e in batch.employee_ids],
            "template_id": template_id,
            "send_email": send_email,
        }
        try:
            response = await self.client.post("/payslips/generate", json=payload)
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as e:
            raise PayslipIssuerError(
                f"Payslip service returned {e.response.status_code}: {e.response.text}",
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            raise PayslipIssuerError(f"Payslip service unreachable: {e}") from e
        except ValueError as e:
            raise PayslipIssuerError("Payslip service returned an invalid response") from e

        names = {r.employee_id: r.employee_name for r in batch.recipients}
        try:
            items = body["results"]
            if not isinstance(items, list):
                raise TypeError("results must be a list")
            results = tuple(self._parse_result(item, names) for item in items)
            template_used = body.get("template_used")
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise PayslipIssuerError("Payslip service returned an invalid response") from e

        logger.info(
            "Payslip service issued %d/%d payslips for payroll run %s",
            sum(1 for r in results if r.success),
            len(results),
            batch.payroll_run_id,
        )
        return IssuanceResult(results=results, template_used=template_used)

    async def aclose(self) -> None:
        await self.client.aclose()

    @staticmethod
    def _parse_result(item: dict[str, Any], names: dict[UUID, str]) -> PayslipResult:
        employee_id = UUID(str(item["employee_id"]))
        success = bool(item.get("success"))
        return PayslipResult(
            employee_id=employee_id,
            employee_name=item.get("employee_name") or names.get(employee_id),
            success=success,
            storage_ref=item.get("pdf_storage_path") if success else None,
            error=None if success else (item.get("error") or "Unknown error"),
        )
