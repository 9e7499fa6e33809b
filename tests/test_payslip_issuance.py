"""Tests for payslip issuance and issuer adapters."""

import json
from datetime import date
from uuid import uuid4

import httpx
import pytest
import pytest_asyncio

from payroll_runs.issuers import (
    HttpPayslipIssuer,
    IssuanceResult,
    PayslipBatch,
    PayslipIssuerError,
    PayslipRecipient,
    PayslipResult,
    StubPayslipIssuer,
    payslip_storage_path,
)
from payroll_runs.services import InvalidTransitionError, PayrollRunService
from payroll_runs.services.audit import list_audit_events

PERIOD_START = date(2026, 1, 1)
PERIOD_END = date(2026, 1, 31)


class FailingIssuer:
    """Issuer whose whole call fails."""

    issuer_name = "failing"

    async def issue(self, batch, *, send_email, template_id=None):
        raise PayslipIssuerError("Payslip service unreachable")


class ForgetfulIssuer:
    """Issuer that skips some recipients and reports one outsider."""

    issuer_name = "forgetful"

    def __init__(self, skip_employee_ids):
        self.skip_employee_ids = set(skip_employee_ids)
        self.outsider_id = uuid4()

    async def issue(self, batch, *, send_email, template_id=None):
        results = [
            PayslipResult(
                employee_id=r.employee_id, success=True, storage_ref=f"{r.employee_id}.pdf"
            )
            for r in batch.recipients
            if r.employee_id not in self.skip_employee_ids
        ]
        results.append(PayslipResult(employee_id=self.outsider_id, success=True))
        return IssuanceResult(results=tuple(results), template_used="default")


@pytest_asyncio.fixture
async def finalized_run(session, location, make_employee):
    """Finalized run with three employees."""
    service = PayrollRunService(session)
    run = await service.create(location.work_location_id, PERIOD_START, PERIOD_END)
    employees = [
        await make_employee("Ali", "Hassan"),
        await make_employee("Noor", "Jaber"),
        await make_employee("Zain", "Malik"),
    ]
    await service.snapshot_employees(run.payroll_run_id, [e.employee_id for e in employees])
    await service.finalize(run.payroll_run_id)
    return run, employees


class TestIssuePayslips:
    """Test finalized → payslips_issued."""

    async def test_partial_failure_still_transitions(self, session, finalized_run):
        run, employees = finalized_run
        failing = employees[1]
        issuer = StubPayslipIssuer(
            fail_employee_ids=[failing.employee_id], failure_reason="Missing bank details"
        )
        service = PayrollRunService(session, issuer=issuer)
        actor = uuid4()

        summary = await service.issue_payslips(
            run.payroll_run_id, send_email=True, actor_user_id=actor
        )

        assert summary.issued_count == 2
        assert summary.has_failures is True
        assert len(summary.failures) == 1
        failure = summary.failures[0]
        assert failure.employee_id == failing.employee_id
        assert failure.employee_name == "Noor Jaber"
        assert failure.reason == "Missing bank details"
        assert summary.template_used == "default"
        assert summary.send_email is True

        first = employees[0]
        assert summary.storage_refs[first.employee_id] == (
            f"2026/01/{first.employee_code}_2026-01-01_2026-01-31.pdf"
        )
        assert sorted(issuer.emailed) == sorted(
            [employees[0].employee_id, employees[2].employee_id]
        )

        refreshed = await service.get_payroll_run(run.payroll_run_id)
        assert refreshed.status == "payslips_issued"
        assert refreshed.payslips_issued_at is not None
        assert refreshed.payslips_issued_by_user_id == actor
        assert refreshed.payslips_emailed is True
        assert refreshed.payslip_template == "default"

        events = await list_audit_events(session, "payroll_run", run.payroll_run_id)
        assert "status_change:finalized:payslips_issued" in [e.action for e in events]

    async def test_requested_template_is_recorded(self, session, finalized_run):
        run, _ = finalized_run
        service = PayrollRunService(session, issuer=StubPayslipIssuer())

        summary = await service.issue_payslips(run.payroll_run_id, template_id="monthly-v2")

        assert summary.template_used == "monthly-v2"
        assert summary.has_failures is False

    async def test_issuer_failure_keeps_run_finalized(self, session, finalized_run):
        run, _ = finalized_run
        service = PayrollRunService(session, issuer=FailingIssuer())

        with pytest.raises(PayslipIssuerError):
            await service.issue_payslips(run.payroll_run_id)

        refreshed = await service.get_payroll_run(run.payroll_run_id)
        assert refreshed.status == "finalized"

    async def test_missing_results_are_reported_as_failures(self, session, finalized_run):
        run, employees = finalized_run
        skipped = employees[2]
        issuer = ForgetfulIssuer(skip_employee_ids=[skipped.employee_id])
        service = PayrollRunService(session, issuer=issuer)

        summary = await service.issue_payslips(run.payroll_run_id)

        assert summary.issued_count == 2
        assert len(summary.failures) == 1
        failure = summary.failures[0]
        assert failure.employee_id == skipped.employee_id
        assert failure.employee_name == "Zain Malik"
        assert failure.reason == "No result returned by payslip issuer"
        assert issuer.outsider_id not in summary.storage_refs
        assert set(summary.storage_refs) == {employees[0].employee_id, employees[1].employee_id}

        refreshed = await service.get_payroll_run(run.payroll_run_id)
        assert refreshed.status == "payslips_issued"

        events = await list_audit_events(session, "payroll_run", run.payroll_run_id)
        issued = [e for e in events if e.action == "status_change:finalized:payslips_issued"]
        assert issued[0].details_json["issued"] == 2
        assert issued[0].details_json["failed"] == [
            {"employee_id": str(skipped.employee_id), "reason": failure.reason}
        ]

    async def test_empty_issuer_result_fails_every_recipient(self, session, finalized_run):
        run, employees = finalized_run
        issuer = ForgetfulIssuer(skip_employee_ids=[e.employee_id for e in employees])
        service = PayrollRunService(session, issuer=issuer)

        summary = await service.issue_payslips(run.payroll_run_id)

        assert summary.issued_count == 0
        assert sorted(f.employee_id for f in summary.failures) == sorted(
            e.employee_id for e in employees
        )

    async def test_cannot_issue_twice(self, session, finalized_run):
        run, _ = finalized_run
        issuer = StubPayslipIssuer()
        service = PayrollRunService(session, issuer=issuer)
        await service.issue_payslips(run.payroll_run_id)

        with pytest.raises(InvalidTransitionError):
            await service.issue_payslips(run.payroll_run_id)

        assert issuer.calls == 1

    async def test_cannot_issue_from_draft(self, session, location, make_employee):
        issuer = StubPayslipIssuer()
        service = PayrollRunService(session, issuer=issuer)
        run = await service.create(location.work_location_id, PERIOD_START, PERIOD_END)
        emp = await make_employee()
        await service.snapshot_employees(run.payroll_run_id, [emp.employee_id])

        with pytest.raises(InvalidTransitionError) as exc_info:
            await service.issue_payslips(run.payroll_run_id)

        assert exc_info.value.from_status == "draft"
        assert issuer.calls == 0

    async def test_requires_issuer(self, session, finalized_run):
        run, _ = finalized_run
        service = PayrollRunService(session)

        with pytest.raises(RuntimeError):
            await service.issue_payslips(run.payroll_run_id)


class TestStoragePath:
    """Test payslip storage path layout."""

    def test_path_uses_employee_code(self):
        recipient = PayslipRecipient(
            employee_id=uuid4(), employee_name="Ali Hassan", employee_code="E042"
        )

        path = payslip_storage_path(recipient, date(2026, 2, 1), date(2026, 2, 28))

        assert path == "2026/02/E042_2026-02-01_2026-02-28.pdf"

    def test_path_falls_back_to_employee_id(self):
        employee_id = uuid4()
        recipient = PayslipRecipient(employee_id=employee_id, employee_name="No Code")

        path = payslip_storage_path(recipient, PERIOD_START, PERIOD_END)

        assert path == f"2026/01/{employee_id}_2026-01-01_2026-01-31.pdf"


class TestHttpPayslipIssuer:
    """Test the HTTP issuer against a mock transport."""

    @pytest.fixture
    def batch(self) -> PayslipBatch:
        return PayslipBatch(
            payroll_run_id=uuid4(),
            pay_period_start=PERIOD_START,
            pay_period_end=PERIOD_END,
            recipients=(
                PayslipRecipient(employee_id=uuid4(), employee_name="Ali Hassan"),
                PayslipRecipient(employee_id=uuid4(), employee_name="Noor Jaber"),
            ),
        )

    async def test_parses_results(self, batch):
        ok, bad = batch.recipients
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(
                200,
                json={
                    "results": [
                        {
                            "employee_id": str(ok.employee_id),
                            "success": True,
                            "pdf_storage_path": "2026/01/a.pdf",
                        },
                        {
                            "employee_id": str(bad.employee_id),
                            "success": False,
                            "error": "Template error",
                        },
                    ],
                    "template_used": "monthly",
                },
            )

        client = httpx.AsyncClient(
            transport=httpx.MockTransport(handler), base_url="http://payslips.test"
        )
        issuer = HttpPayslipIssuer("http://payslips.test", client=client)

        result = await issuer.issue(batch, send_email=True, template_id="monthly")
        await issuer.aclose()

        assert result.template_used == "monthly"
        assert result.success_count == 1
        assert result.results[0].storage_ref == "2026/01/a.pdf"
        assert result.results[0].employee_name == "Ali Hassan"
        assert len(result.failures) == 1
        assert result.failures[0].error == "Template error"

        assert requests[0].url.path == "/payslips/generate"
        body = json.loads(requests[0].content)
        assert body["payroll_run_id"] == str(batch.payroll_run_id)
        assert body["employee_ids"] == [str(ok.employee_id), str(bad.employee_id)]
        assert body["send_email"] is True
        assert body["template_id"] == "monthly"

    async def test_server_error_raises(self, batch):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, text="boom")

        client = httpx.AsyncClient(
            transport=httpx.MockTransport(handler), base_url="http://payslips.test"
        )
        issuer = HttpPayslipIssuer("http://payslips.test", client=client)

        with pytest.raises(PayslipIssuerError) as exc_info:
            await issuer.issue(batch, send_email=False)
        await issuer.aclose()

        assert exc_info.value.status_code == 500

    @pytest.mark.parametrize(
        "response",
        [
            httpx.Response(200, text="<html>gateway</html>"),
            httpx.Response(200, json={}),
            httpx.Response(200, json={"results": {"employee_id": "x"}}),
            httpx.Response(200, json={"results": [{"success": True}]}),
            httpx.Response(200, json={"results": [{"employee_id": "not-a-uuid"}]}),
        ],
        ids=["html", "empty", "results-not-list", "missing-employee-id", "bad-employee-id"],
    )
    async def test_invalid_response_raises(self, batch, response):
        def handler(request: httpx.Request) -> httpx.Response:
            return response

        client = httpx.AsyncClient(
            transport=httpx.MockTransport(handler), base_url="http://payslips.test"
        )
        issuer = HttpPayslipIssuer("http://payslips.test", client=client)

        with pytest.raises(PayslipIssuerError, match="invalid response"):
            await issuer.issue(batch, send_email=False)
        await issuer.aclose()

    async def test_invalid_response_keeps_run_finalized(self, session, finalized_run):
        run, _ = finalized_run

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>gateway</html>")

        client = httpx.AsyncClient(
            transport=httpx.MockTransport(handler), base_url="http://payslips.test"
        )
        issuer = HttpPayslipIssuer("http://payslips.test", client=client)
        service = PayrollRunService(session, issuer=issuer)

        with pytest.raises(PayslipIssuerError):
            await service.issue_payslips(run.payroll_run_id)
        await issuer.aclose()

        refreshed = await service.get_payroll_run(run.payroll_run_id)
        assert refreshed.status == "finalized"
