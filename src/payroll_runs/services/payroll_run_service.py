"""Payroll run service - main orchestrator for the payroll run lifecycle."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from payroll_runs.calculators.compensation import CompensationResolver
from payroll_runs.calculators.payroll_calculator import PayrollCalculator
from payroll_runs.calculators.types import (
    EmployeeTotals,
    RunTotals,
    SnapshotInfo,
    ValidationIssue,
    ValidationReport,
)
from payroll_runs.database import acquire_advisory_lock
from payroll_runs.issuers.base import PayslipBatch, PayslipRecipient, PayslipResult
from payroll_runs.models import PayrollRun, PayrollRunAdjustment, PayrollRunEmployee
from payroll_runs.models.base import utcnow
from payroll_runs.services.adjustment_ledger import to_adjustment_info
from payroll_runs.services.audit import record_audit
from payroll_runs.services.directory import (
    EmployeeDirectory,
    EmployeeNotAvailableError,
    LocationNotFoundError,
    SqlEmployeeDirectory,
)
from payroll_runs.services.state_machine import (
    InvalidTransitionError,
    PayrollRunNotFoundError,
    PayrollRunStateMachine,
    PayrollRunStatus,
    RunNotEditableError,
)

if TYPE_CHECKING:
    from payroll_runs.calculators.types import EmployeeProfile, ResolvedCompensation
    from payroll_runs.issuers.base import PayslipIssuer

logger = logging.getLogger(__name__)

DRAFT = PayrollRunStatus.DRAFT.value
FINALIZED = PayrollRunStatus.FINALIZED.value
PAYSLIPS_ISSUED = PayrollRunStatus.PAYSLIPS_ISSUED.value

MISSING_RESULT_REASON = "No result returned by payslip issuer"


# ===== Errors =====


class DuplicateDraftError(Exception):
    """Raised when a draft already exists for the location and identical period."""

    def __init__(
        self,
        work_location_id: UUID,
        pay_period_start: date,
        pay_period_end: date,
        existing_payroll_run_id: UUID | None,
    ):
        self.work_location_id = work_location_id
        self.pay_period_start = pay_period_start
        self.pay_period_end = pay_period_end
        self.existing_payroll_run_id = existing_payroll_run_id
        super().__init__(
            f"A draft payroll run already exists for location {work_location_id} "
            f"and period {pay_period_start} to {pay_period_end}: {existing_payroll_run_id}"
        )


class ValidationBlockedError(Exception):
    """Raised when finalize is blocked by validation errors."""

    def __init__(self, payroll_run_id: UUID, violations: Sequence[ValidationIssue]):
        self.payroll_run_id = payroll_run_id
        self.violations = list(violations)
        super().__init__(
            f"Payroll run {payroll_run_id} cannot be finalized: "
            + "; ".join(v.message for v in self.violations)
        )


class RunDataChangedError(Exception):
    """Raised when run inputs changed since the caller's review."""

    def __init__(self, payroll_run_id: UUID, expected_fingerprint: str, actual_fingerprint: str):
        self.payroll_run_id = payroll_run_id
        self.expected_fingerprint = expected_fingerprint
        self.actual_fingerprint = actual_fingerprint
        super().__init__(
            f"Payroll run {payroll_run_id} changed since it was reviewed; review it again"
        )


# ===== Results =====


@dataclass(frozen=True)
class RunComputation:
    """Read-only computation of a payroll run."""

    payroll_run_id: UUID
    status: str
    currency: str
    employee_totals: tuple[EmployeeTotals, ...]
    run_totals: RunTotals
    validation: ValidationReport
    statutory_warnings: tuple[str, ...]
    fingerprint: str


@dataclass(frozen=True)
class PartialIssuanceFailure:
    """Payslip that could not be issued for one employee."""

    employee_id: UUID
    employee_name: str
    reason: str


@dataclass(frozen=True)
class IssuanceSummary:
    """Outcome of issuing payslips for a payroll run."""

    payroll_run_id: UUID
    issued_count: int
    failures: tuple[PartialIssuanceFailure, ...]
    template_used: str | None
    send_email: bool
    storage_refs: dict[UUID, str]

    @property
    def has_failures(self) -> bool:
        return len(self.failures) > 0


class PayrollRunService:
    """Service for managing the payroll run lifecycle.

    Operations:
    - create / find_draft: Start or resume a draft for a location and period
    - snapshot_employees: Freeze resolved compensation for selected employees
    - review: Compute totals, validation and fingerprint (read-only)
    - finalize: Lock totals (draft → finalized)
    - issue_payslips: Hand off to the payslip issuer (finalized → payslips_issued)
    - delete: Remove a draft with its snapshots and adjustments
    """

    def __init__(
        self,
        session: AsyncSession,
        directory: EmployeeDirectory | None = None,
        issuer: PayslipIssuer | None = None,
    ):
        self.session = session
        self.directory = directory or SqlEmployeeDirectory(session)
        self.issuer = issuer

    # ----- Queries -----

    async def get_payroll_run(self, payroll_run_id: UUID) -> PayrollRun | None:
        """Load a payroll run, refreshing any stale identity-map copy."""
        result = await self.session.execute(
            select(PayrollRun)
            .where(PayrollRun.payroll_run_id == payroll_run_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def find_draft(
        self,
        work_location_id: UUID,
        pay_period_start: date,
        pay_period_end: date,
    ) -> PayrollRun | None:
        """Find the draft for a location and identical period, to resume it."""
        result = await self.session.execute(
            select(PayrollRun).where(
                PayrollRun.work_location_id == work_location_id,
                PayrollRun.pay_period_start == pay_period_start,
                PayrollRun.pay_period_end == pay_period_end,
                PayrollRun.status == DRAFT,
            )
        )
        return result.scalar_one_or_none()

    async def list_runs(
        self,
        work_location_id: UUID | None = None,
        status: str | None = None,
    ) -> list[PayrollRun]:
        """List payroll runs, newest period first."""
        query = select(PayrollRun)
        if work_location_id is not None:
            query = query.where(PayrollRun.work_location_id == work_location_id)
        if status is not None:
            query = query.where(PayrollRun.status == status)
        query = query.order_by(PayrollRun.pay_period_start.desc(), PayrollRun.created_at.desc())
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def draft_counts_by_location(self) -> dict[UUID, int]:
        """Number of open drafts per work location."""
        result = await self.session.execute(
            select(PayrollRun.work_location_id, func.count())
            .where(PayrollRun.status == DRAFT)
            .group_by(PayrollRun.work_location_id)
        )
        return {location_id: count for location_id, count in result.all()}

    async def list_employees(self, payroll_run_id: UUID) -> list[PayrollRunEmployee]:
        """List the frozen employee snapshots of a run."""
        result = await self.session.execute(
            select(PayrollRunEmployee)
            .where(PayrollRunEmployee.payroll_run_id == payroll_run_id)
            .order_by(PayrollRunEmployee.employee_name, PayrollRunEmployee.employee_id)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    # ----- Transitions -----

    async def create(
        self,
        work_location_id: UUID,
        pay_period_start: date,
        pay_period_end: date,
        actor_user_id: UUID | None = None,
    ) -> PayrollRun:
        """Create a draft payroll run.

        Raises:
            ValueError: Period start is after period end
            LocationNotFoundError: Unknown work location
            DuplicateDraftError: A draft exists for the identical period
        """
        if pay_period_start > pay_period_end:
            raise ValueError(
                f"Pay period start {pay_period_start} is after end {pay_period_end}"
            )

        location = await self.directory.get_work_location(work_location_id)
        if location is None:
            raise LocationNotFoundError(work_location_id)

        existing = await self.find_draft(work_location_id, pay_period_start, pay_period_end)
        if existing is not None:
            raise DuplicateDraftError(
                work_location_id, pay_period_start, pay_period_end, existing.payroll_run_id
            )

        payroll_run = PayrollRun(
            work_location_id=work_location_id,
            pay_period_start=pay_period_start,
            pay_period_end=pay_period_end,
            status=DRAFT,
            currency=location.currency,
            created_by_user_id=actor_user_id,
        )
        try:
            # A racing insert trips the partial unique index
            async with self.session.begin_nested():
                self.session.add(payroll_run)
                await self.session.flush()
        except IntegrityError:
            existing = await self.find_draft(work_location_id, pay_period_start, pay_period_end)
            raise DuplicateDraftError(
                work_location_id,
                pay_period_start,
                pay_period_end,
                existing.payroll_run_id if existing else None,
            ) from None

        await record_audit(
            self.session,
            entity_type="payroll_run",
            entity_id=payroll_run.payroll_run_id,
            action="created",
            actor_user_id=actor_user_id,
            details={
                "work_location_id": str(work_location_id),
                "pay_period_start": pay_period_start.isoformat(),
                "pay_period_end": pay_period_end.isoformat(),
            },
        )
        logger.info(
            "Created draft payroll run %s for location %s (%s to %s)",
            payroll_run.payroll_run_id,
            work_location_id,
            pay_period_start,
            pay_period_end,
        )
        return payroll_run

    async def snapshot_employees(
        self,
        payroll_run_id: UUID,
        employee_ids: Sequence[UUID],
        actor_user_id: UUID | None = None,
    ) -> list[PayrollRunEmployee]:
        """Replace the run's employee set with fresh compensation snapshots.

        Compensation is resolved as of the pay period end. Adjustments of
        employees that are no longer selected are removed.

        Raises:
            ValueError: Empty selection
            RunNotEditableError: Run is not a draft
            EmployeeNotAvailableError: Employee not active at the run's location
        """
        payroll_run = await self._get_editable_run(payroll_run_id)

        selected = list(dict.fromkeys(employee_ids))
        if not selected:
            raise ValueError("Select at least one employee")

        location = await self.directory.get_work_location(payroll_run.work_location_id)
        if location is None:
            raise LocationNotFoundError(payroll_run.work_location_id)

        profiles = await self.directory.get_employees_by_location(
            payroll_run.work_location_id, selected
        )
        found = {p.employee_id for p in profiles}
        missing = [e for e in selected if e not in found]
        if missing:
            raise EmployeeNotAvailableError(missing, "not active at this work location")

        pruned = await self.session.execute(
            delete(PayrollRunAdjustment).where(
                PayrollRunAdjustment.payroll_run_id == payroll_run_id,
                PayrollRunAdjustment.employee_id.not_in(selected),
            )
        )
        await self.session.execute(
            delete(PayrollRunEmployee).where(PayrollRunEmployee.payroll_run_id == payroll_run_id)
        )

        snapshots = []
        for profile in profiles:
            resolved = CompensationResolver.resolve(
                profile, location, as_of=payroll_run.pay_period_end
            )
            snapshot = self._build_snapshot(payroll_run_id, profile, resolved)
            self.session.add(snapshot)
            snapshots.append(snapshot)
        await self.session.flush()

        await record_audit(
            self.session,
            entity_type="payroll_run",
            entity_id=payroll_run_id,
            action="employees_snapshotted",
            actor_user_id=actor_user_id,
            details={
                "employee_ids": [str(e) for e in selected],
                "pruned_adjustments": pruned.rowcount,
            },
        )
        logger.info(
            "Snapshotted %d employee(s) for payroll run %s (%d adjustment(s) pruned)",
            len(snapshots),
            payroll_run_id,
            pruned.rowcount,
        )
        return snapshots

    async def review(self, payroll_run_id: UUID) -> RunComputation:
        """Compute per-employee totals, run totals and validation (read-only)."""
        payroll_run = await self.require_payroll_run(payroll_run_id)
        return await self._compute(payroll_run)

    async def finalize(
        self,
        payroll_run_id: UUID,
        actor_user_id: UUID | None = None,
        expected_fingerprint: str | None = None,
    ) -> PayrollRun:
        """Finalize a draft run, freezing its totals.

        Args:
            payroll_run_id: The run to finalize
            actor_user_id: User performing the finalize
            expected_fingerprint: Fingerprint from the review the caller saw

        This method:
        1. Acquires advisory lock for concurrency control
        2. Validates status is draft
        3. Recomputes totals from the latest snapshots and adjustments
        4. Finalizes run status with conditional update
        """
        await self.require_payroll_run(payroll_run_id)

        lock_acquired = await acquire_advisory_lock(self.session, str(payroll_run_id))
        if not lock_acquired:
            raise RuntimeError(f"Could not acquire lock for payroll run {payroll_run_id}")

        payroll_run = await self.require_payroll_run(payroll_run_id)
        PayrollRunStateMachine.validate_transition(payroll_run.status, FINALIZED)

        computation = await self._compute(payroll_run)
        if expected_fingerprint is not None and expected_fingerprint != computation.fingerprint:
            raise RunDataChangedError(payroll_run_id, expected_fingerprint, computation.fingerprint)
        if computation.validation.is_blocked:
            logger.warning(
                "Finalize blocked for payroll run %s: %d error(s)",
                payroll_run_id,
                len(computation.validation.errors),
            )
            raise ValidationBlockedError(payroll_run_id, computation.validation.errors)

        totals = computation.run_totals
        result = await self.session.execute(
            update(PayrollRun)
            .where(
                PayrollRun.payroll_run_id == payroll_run_id,
                PayrollRun.status == DRAFT,
            )
            .values(
                status=FINALIZED,
                employee_count=totals.employee_count,
                total_amount=totals.total_net,
                total_gross=totals.total_gross,
                total_deductions=totals.total_deductions,
                finalized_at=utcnow(),
                finalized_by_user_id=actor_user_id,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            payroll_run = await self.require_payroll_run(payroll_run_id)
            raise InvalidTransitionError(
                payroll_run.status, FINALIZED, "Status changed during finalize"
            )

        await record_audit(
            self.session,
            entity_type="payroll_run",
            entity_id=payroll_run_id,
            action=f"status_change:{DRAFT}:{FINALIZED}",
            actor_user_id=actor_user_id,
            details={
                "employee_count": totals.employee_count,
                "total_net": str(totals.total_net),
                "fingerprint": computation.fingerprint,
            },
        )
        logger.info(
            "Finalized payroll run %s: %d employee(s), net %s %s",
            payroll_run_id,
            totals.employee_count,
            totals.total_net,
            payroll_run.currency,
        )
        return await self.require_payroll_run(payroll_run_id)

    async def issue_payslips(
        self,
        payroll_run_id: UUID,
        send_email: bool = False,
        actor_user_id: UUID | None = None,
        template_id: str | None = None,
    ) -> IssuanceSummary:
        """Issue payslips for a finalized run.

        Per-employee failures do not block the transition; they are returned
        in the summary. If the issuer call itself fails, the run stays
        finalized and the error propagates.
        """
        if self.issuer is None:
            raise RuntimeError("No payslip issuer configured")

        await self.require_payroll_run(payroll_run_id)
        lock_acquired = await acquire_advisory_lock(self.session, str(payroll_run_id))
        if not lock_acquired:
            raise RuntimeError(f"Could not acquire lock for payroll run {payroll_run_id}")

        payroll_run = await self.require_payroll_run(payroll_run_id)
        PayrollRunStateMachine.validate_transition(payroll_run.status, PAYSLIPS_ISSUED)

        snapshots = await self.list_employees(payroll_run_id)
        batch = PayslipBatch(
            payroll_run_id=payroll_run_id,
            pay_period_start=payroll_run.pay_period_start,
            pay_period_end=payroll_run.pay_period_end,
            recipients=tuple(
                PayslipRecipient(
                    employee_id=s.employee_id,
                    employee_name=s.employee_name,
                    employee_code=s.employee_code,
                )
                for s in snapshots
            ),
        )

        try:
            issuance = await self.issuer.issue(
                batch, send_email=send_email, template_id=template_id
            )
        except Exception:
            logger.exception("Payslip issuance failed for payroll run %s", payroll_run_id)
            raise

        # Every recipient gets exactly one outcome; results outside the batch are dropped
        recipient_ids = set(batch.employee_ids)
        by_employee: dict[UUID, PayslipResult] = {}
        unexpected = 0
        for r in issuance.results:
            if r.employee_id not in recipient_ids:
                unexpected += 1
                continue
            by_employee.setdefault(r.employee_id, r)
        if unexpected:
            logger.warning(
                "Payslip issuer returned %d result(s) for employees outside payroll run %s",
                unexpected,
                payroll_run_id,
            )

        failures_list: list[PartialIssuanceFailure] = []
        storage_refs: dict[UUID, str] = {}
        issued_count = 0
        for recipient in batch.recipients:
            r = by_employee.get(recipient.employee_id)
            if r is None:
                failures_list.append(
                    PartialIssuanceFailure(
                        employee_id=recipient.employee_id,
                        employee_name=recipient.employee_name,
                        reason=MISSING_RESULT_REASON,
                    )
                )
            elif not r.success:
                failures_list.append(
                    PartialIssuanceFailure(
                        employee_id=recipient.employee_id,
                        employee_name=r.employee_name or recipient.employee_name,
                        reason=r.error or "Unknown error",
                    )
                )
            else:
                issued_count += 1
                if r.storage_ref:
                    storage_refs[recipient.employee_id] = r.storage_ref
        failures = tuple(failures_list)

        result = await self.session.execute(
            update(PayrollRun)
            .where(
                PayrollRun.payroll_run_id == payroll_run_id,
                PayrollRun.status == FINALIZED,
            )
            .values(
                status=PAYSLIPS_ISSUED,
                payslips_issued_at=utcnow(),
                payslips_issued_by_user_id=actor_user_id,
                payslips_emailed=send_email,
                payslip_template=issuance.template_used,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            payroll_run = await self.require_payroll_run(payroll_run_id)
            raise InvalidTransitionError(
                payroll_run.status, PAYSLIPS_ISSUED, "Status changed during issuance"
            )

        await record_audit(
            self.session,
            entity_type="payroll_run",
            entity_id=payroll_run_id,
            action=f"status_change:{FINALIZED}:{PAYSLIPS_ISSUED}",
            actor_user_id=actor_user_id,
            details={
                "issued": issued_count,
                "failed": [
                    {"employee_id": str(f.employee_id), "reason": f.reason} for f in failures
                ],
                "send_email": send_email,
                "template_used": issuance.template_used,
            },
        )
        if failures:
            logger.warning(
                "Issued payslips for payroll run %s with %d failure(s)",
                payroll_run_id,
                len(failures),
            )
        else:
            logger.info(
                "Issued %d payslip(s) for payroll run %s", issued_count, payroll_run_id
            )

        return IssuanceSummary(
            payroll_run_id=payroll_run_id,
            issued_count=issued_count,
            failures=failures,
            template_used=issuance.template_used,
            send_email=send_email,
            storage_refs=storage_refs,
        )

    async def delete(self, payroll_run_id: UUID, actor_user_id: UUID | None = None) -> None:
        """Delete a draft run with its snapshots and adjustments."""
        payroll_run = await self.require_payroll_run(payroll_run_id)
        if not PayrollRunStateMachine.can_delete(payroll_run.status):
            raise InvalidTransitionError(
                payroll_run.status, "deleted", "Only draft payroll runs can be deleted"
            )

        await self.session.execute(
            delete(PayrollRunAdjustment).where(
                PayrollRunAdjustment.payroll_run_id == payroll_run_id
            )
        )
        await self.session.execute(
            delete(PayrollRunEmployee).where(PayrollRunEmployee.payroll_run_id == payroll_run_id)
        )
        await self.session.delete(payroll_run)
        await self.session.flush()

        await record_audit(
            self.session,
            entity_type="payroll_run",
            entity_id=payroll_run_id,
            action="deleted",
            actor_user_id=actor_user_id,
        )
        logger.info("Deleted draft payroll run %s", payroll_run_id)

    # ----- Internals -----

    async def require_payroll_run(self, payroll_run_id: UUID) -> PayrollRun:
        payroll_run = await self.get_payroll_run(payroll_run_id)
        if payroll_run is None:
            raise PayrollRunNotFoundError(payroll_run_id)
        return payroll_run

    async def _get_editable_run(self, payroll_run_id: UUID) -> PayrollRun:
        result = await self.session.execute(
            select(PayrollRun)
            .where(PayrollRun.payroll_run_id == payroll_run_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        payroll_run = result.scalar_one_or_none()
        if payroll_run is None:
            raise PayrollRunNotFoundError(payroll_run_id)
        if not PayrollRunStateMachine.can_modify_inputs(payroll_run.status):
            raise RunNotEditableError(payroll_run_id, payroll_run.status)
        return payroll_run

    async def _compute(self, payroll_run: PayrollRun) -> RunComputation:
        snapshots = await self.list_employees(payroll_run.payroll_run_id)
        adj_result = await self.session.execute(
            select(PayrollRunAdjustment)
            .where(PayrollRunAdjustment.payroll_run_id == payroll_run.payroll_run_id)
            .execution_options(populate_existing=True)
        )
        adjustments = [to_adjustment_info(a) for a in adj_result.scalars().all()]
        snapshot_infos = [to_snapshot_info(s) for s in snapshots]

        employee_totals = tuple(
            PayrollCalculator.compute_employee_totals(s, adjustments) for s in snapshot_infos
        )
        statutory_warnings = tuple(
            f"{s.employee_name}: no rate configured for nationality "
            f"'{s.nationality_code or 'unknown'}'"
            for s in snapshots
            if s.statutory_rate_missing
        )

        return RunComputation(
            payroll_run_id=payroll_run.payroll_run_id,
            status=payroll_run.status,
            currency=payroll_run.currency,
            employee_totals=employee_totals,
            run_totals=PayrollCalculator.compute_run_totals(employee_totals),
            validation=PayrollCalculator.validate(employee_totals),
            statutory_warnings=statutory_warnings,
            fingerprint=PayrollCalculator.compute_fingerprint(snapshot_infos, adjustments),
        )

    @staticmethod
    def _build_snapshot(
        payroll_run_id: UUID,
        profile: EmployeeProfile,
        resolved: ResolvedCompensation,
    ) -> PayrollRunEmployee:
        statutory = resolved.statutory
        return PayrollRunEmployee(
            payroll_run_id=payroll_run_id,
            employee_id=profile.employee_id,
            employee_code=profile.employee_code,
            employee_name=profile.full_name,
            department=profile.department,
            position=profile.position,
            nationality_code=profile.nationality_code,
            base_salary=resolved.base_salary,
            allowance_items=[i.to_dict() for i in resolved.allowance_items],
            deduction_items=[i.to_dict() for i in resolved.deduction_items],
            total_allowances=resolved.total_allowances,
            statutory_contribution=statutory.employee_amount,
            employer_statutory_contribution=statutory.employer_amount,
            statutory_employee_rate=statutory.employee_rate,
            statutory_rate_missing=statutory.rate_missing,
            gross_pay=resolved.gross_pay,
            total_deductions=resolved.total_deductions,
            net_pay=resolved.net_pay,
        )


def to_snapshot_info(snapshot: PayrollRunEmployee) -> SnapshotInfo:
    """Map a snapshot row to the calculator's view."""
    return SnapshotInfo(
        employee_id=snapshot.employee_id,
        employee_name=snapshot.employee_name,
        employee_code=snapshot.employee_code,
        base_salary=snapshot.base_salary,
        gross_pay=snapshot.gross_pay,
        total_deductions=snapshot.total_deductions,
        net_pay=snapshot.net_pay,
        statutory_contribution=snapshot.statutory_contribution,
        statutory_rate_missing=snapshot.statutory_rate_missing,
    )
