"""One-time adjustments attached to a draft payroll run."""

from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from payroll_runs.calculators.money import to_decimal
from payroll_runs.calculators.types import AdjustmentInfo, AdjustmentType
from payroll_runs.models import PayrollRun, PayrollRunAdjustment, PayrollRunEmployee
from payroll_runs.services.audit import record_audit
from payroll_runs.services.directory import EmployeeNotAvailableError
from payroll_runs.services.state_machine import (
    PayrollRunNotFoundError,
    PayrollRunStateMachine,
    RunNotEditableError,
)

logger = logging.getLogger(__name__)


class AdjustmentNotFoundError(Exception):
    """Raised when an adjustment does not exist."""

    def __init__(self, adjustment_id: UUID):
        self.adjustment_id = adjustment_id
        super().__init__(f"Adjustment {adjustment_id} not found")


class AdjustmentLedger:
    """Service for one-time earnings and deductions within a payroll run.

    Rules:
    - Mutations are only allowed while the run is a draft
    - Amounts are stored unsigned; the type decides the sign at calculation
    - The employee must be part of the run's snapshot set
    - No magnitude validation (a negative net blocks finalize instead)
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def add(
        self,
        payroll_run_id: UUID,
        employee_id: UUID,
        adjustment_type: AdjustmentType | str,
        name: str,
        amount: Decimal | int | str,
        note: str | None = None,
        actor_user_id: UUID | None = None,
    ) -> UUID:
        """Add an adjustment and return its id.

        The amount is stored unsigned; the adjustment type decides whether it
        adds to or subtracts from net pay, so -50 and 50 record the same value.

        Raises:
            ValueError: Unknown adjustment type, empty name or non-numeric amount
            PayrollRunNotFoundError: Run does not exist
            RunNotEditableError: Run is not a draft
            EmployeeNotAvailableError: Employee is not in the run
        """
        try:
            adj_type = AdjustmentType(adjustment_type)
        except ValueError:
            raise ValueError(
                f"Adjustment type must be 'earning' or 'deduction', got {adjustment_type!r}"
            ) from None
        if not name or not name.strip():
            raise ValueError("Adjustment name is required")
        try:
            value = abs(to_decimal(amount))
        except InvalidOperation:
            raise ValueError(f"Adjustment amount must be numeric, got {amount!r}") from None
        if not value.is_finite():
            raise ValueError(f"Adjustment amount must be finite, got {amount!r}")

        await self._get_editable_run(payroll_run_id)

        in_run = await self.session.execute(
            select(PayrollRunEmployee.payroll_run_employee_id).where(
                PayrollRunEmployee.payroll_run_id == payroll_run_id,
                PayrollRunEmployee.employee_id == employee_id,
            )
        )
        if in_run.scalar_one_or_none() is None:
            raise EmployeeNotAvailableError([employee_id], "employee is not part of this payroll run")

        adjustment = PayrollRunAdjustment(
            payroll_run_id=payroll_run_id,
            employee_id=employee_id,
            adjustment_type=adj_type.value,
            name=name.strip(),
            amount=value,
            note=note,
            created_by_user_id=actor_user_id,
        )
        self.session.add(adjustment)
        await self.session.flush()

        await record_audit(
            self.session,
            entity_type="payroll_run",
            entity_id=payroll_run_id,
            action="adjustment_added",
            actor_user_id=actor_user_id,
            details={
                "adjustment_id": str(adjustment.payroll_run_adjustment_id),
                "employee_id": str(employee_id),
                "type": adj_type.value,
                "name": adjustment.name,
                "amount": str(adjustment.amount),
            },
        )
        logger.info(
            "Added %s adjustment %s to payroll run %s",
            adj_type.value,
            adjustment.payroll_run_adjustment_id,
            payroll_run_id,
        )
        return adjustment.payroll_run_adjustment_id

    async def remove(
        self,
        adjustment_id: UUID,
        actor_user_id: UUID | None = None,
        payroll_run_id: UUID | None = None,
    ) -> None:
        """Remove an adjustment from its draft run.

        When ``payroll_run_id`` is given the adjustment must belong to it.
        """
        adjustment = await self.session.get(PayrollRunAdjustment, adjustment_id)
        if adjustment is None or (
            payroll_run_id is not None and adjustment.payroll_run_id != payroll_run_id
        ):
            raise AdjustmentNotFoundError(adjustment_id)

        await self._get_editable_run(adjustment.payroll_run_id)

        payroll_run_id = adjustment.payroll_run_id
        await self.session.delete(adjustment)
        await self.session.flush()

        await record_audit(
            self.session,
            entity_type="payroll_run",
            entity_id=payroll_run_id,
            action="adjustment_removed",
            actor_user_id=actor_user_id,
            details={"adjustment_id": str(adjustment_id)},
        )
        logger.info("Removed adjustment %s from payroll run %s", adjustment_id, payroll_run_id)

    async def list_by_run(self, payroll_run_id: UUID) -> list[PayrollRunAdjustment]:
        """List all adjustments of a run in creation order."""
        result = await self.session.execute(
            select(PayrollRunAdjustment)
            .where(PayrollRunAdjustment.payroll_run_id == payroll_run_id)
            .order_by(PayrollRunAdjustment.created_at, PayrollRunAdjustment.payroll_run_adjustment_id)
        )
        return list(result.scalars().all())

    async def list_by_employee(
        self,
        payroll_run_id: UUID,
        employee_id: UUID,
    ) -> list[PayrollRunAdjustment]:
        """List adjustments of one employee within a run."""
        result = await self.session.execute(
            select(PayrollRunAdjustment)
            .where(
                PayrollRunAdjustment.payroll_run_id == payroll_run_id,
                PayrollRunAdjustment.employee_id == employee_id,
            )
            .order_by(PayrollRunAdjustment.created_at, PayrollRunAdjustment.payroll_run_adjustment_id)
        )
        return list(result.scalars().all())

    async def _get_editable_run(self, payroll_run_id: UUID) -> PayrollRun:
        # Row lock serializes against a concurrent finalize on PostgreSQL
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


def to_adjustment_info(adjustment: PayrollRunAdjustment) -> AdjustmentInfo:
    """Map an adjustment row to the calculator's view."""
    return AdjustmentInfo(
        adjustment_id=adjustment.payroll_run_adjustment_id,
        employee_id=adjustment.employee_id,
        adjustment_type=AdjustmentType(adjustment.adjustment_type),
        name=adjustment.name,
        amount=adjustment.amount,
    )
