"""Payroll run API endpoints."""

from datetime import date
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, HTTPException, Path, Query, status

from payroll_runs.api.dependencies import ActorUserId, DbSession, Ledger, RunService
from payroll_runs.api.schemas import (
    AdjustmentCreate,
    AdjustmentListResponse,
    AdjustmentResponse,
    DraftCountResponse,
    EmployeeTotalsResponse,
    ErrorResponse,
    FinalizeRequest,
    IssuanceFailureResponse,
    IssuePayslipsRequest,
    IssuePayslipsResponse,
    PayrollRunCreate,
    PayrollRunEmployeeListResponse,
    PayrollRunEmployeeResponse,
    PayrollRunListResponse,
    PayrollRunResponse,
    RegisterResponse,
    ReviewResponse,
    RunTotalsResponse,
    SnapshotRequest,
    ValidationIssueResponse,
)
from payroll_runs.models import PayrollRunAdjustment
from payroll_runs.services import PayrollRunNotFoundError, build_register_rows
from payroll_runs.services.register import REGISTER_COLUMNS

router = APIRouter(prefix="/payroll-runs", tags=["payroll-runs"])

RunId = Annotated[UUID, Path()]


# ============================================================================
# Payroll Run CRUD
# ============================================================================


@router.post(
    "",
    response_model=PayrollRunResponse,
    status_code=status.HTTP_201_CREATED,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def create_payroll_run(
    service: RunService,
    actor_user_id: ActorUserId,
    payload: PayrollRunCreate,
) -> PayrollRunResponse:
    """Create a new payroll run in draft status."""
    payroll_run = await service.create(
        payload.work_location_id,
        payload.pay_period_start,
        payload.pay_period_end,
        actor_user_id=actor_user_id,
    )
    return PayrollRunResponse.model_validate(payroll_run)


@router.get("", response_model=PayrollRunListResponse)
async def list_payroll_runs(
    service: RunService,
    work_location_id: UUID | None = None,
    status_filter: Annotated[str | None, Query(alias="status")] = None,
) -> PayrollRunListResponse:
    """List payroll runs with optional filters."""
    payroll_runs = await service.list_runs(work_location_id, status_filter)
    return PayrollRunListResponse(
        items=[PayrollRunResponse.model_validate(pr) for pr in payroll_runs],
        total=len(payroll_runs),
    )


@router.get(
    "/draft",
    response_model=PayrollRunResponse,
    responses={404: {"model": ErrorResponse}},
)
async def find_draft(
    service: RunService,
    work_location_id: UUID,
    pay_period_start: date,
    pay_period_end: date,
) -> PayrollRunResponse:
    """Find the draft for a location and period, to resume it."""
    payroll_run = await service.find_draft(work_location_id, pay_period_start, pay_period_end)
    if payroll_run is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No draft payroll run for this location and period",
        )
    return PayrollRunResponse.model_validate(payroll_run)


@router.get("/draft-counts", response_model=list[DraftCountResponse])
async def draft_counts(service: RunService) -> list[DraftCountResponse]:
    """Open drafts per work location."""
    counts = await service.draft_counts_by_location()
    return [
        DraftCountResponse(work_location_id=location_id, draft_count=count)
        for location_id, count in counts.items()
    ]


@router.get(
    "/{payroll_run_id}",
    response_model=PayrollRunResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_payroll_run(service: RunService, payroll_run_id: RunId) -> PayrollRunResponse:
    """Get a payroll run by ID."""
    payroll_run = await service.get_payroll_run(payroll_run_id)
    if payroll_run is None:
        raise PayrollRunNotFoundError(payroll_run_id)
    return PayrollRunResponse.model_validate(payroll_run)


@router.delete(
    "/{payroll_run_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def delete_payroll_run(
    service: RunService,
    actor_user_id: ActorUserId,
    payroll_run_id: RunId,
) -> None:
    """Delete a draft payroll run."""
    await service.delete(payroll_run_id, actor_user_id=actor_user_id)


# ============================================================================
# Employees
# ============================================================================


@router.put(
    "/{payroll_run_id}/employees",
    response_model=PayrollRunEmployeeListResponse,
    responses={
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
)
async def snapshot_employees(
    service: RunService,
    actor_user_id: ActorUserId,
    payroll_run_id: RunId,
    payload: SnapshotRequest,
) -> PayrollRunEmployeeListResponse:
    """Replace the run's employees with fresh compensation snapshots."""
    await service.snapshot_employees(
        payroll_run_id, payload.employee_ids, actor_user_id=actor_user_id
    )
    snapshots = await service.list_employees(payroll_run_id)
    return PayrollRunEmployeeListResponse(
        items=[PayrollRunEmployeeResponse.model_validate(s) for s in snapshots],
        total=len(snapshots),
    )


@router.get(
    "/{payroll_run_id}/employees",
    response_model=PayrollRunEmployeeListResponse,
    responses={404: {"model": ErrorResponse}},
)
async def list_payroll_run_employees(
    service: RunService,
    payroll_run_id: RunId,
) -> PayrollRunEmployeeListResponse:
    """List employee snapshots of a payroll run."""
    await service.require_payroll_run(payroll_run_id)
    snapshots = await service.list_employees(payroll_run_id)
    return PayrollRunEmployeeListResponse(
        items=[PayrollRunEmployeeResponse.model_validate(s) for s in snapshots],
        total=len(snapshots),
    )


# ============================================================================
# Adjustments
# ============================================================================


@router.post(
    "/{payroll_run_id}/adjustments",
    response_model=AdjustmentResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
)
async def add_adjustment(
    db: DbSession,
    ledger: Ledger,
    actor_user_id: ActorUserId,
    payroll_run_id: RunId,
    payload: AdjustmentCreate,
) -> AdjustmentResponse:
    """Add a one-time earning or deduction to a draft run."""
    adjustment_id = await ledger.add(
        payroll_run_id,
        payload.employee_id,
        payload.adjustment_type,
        payload.name,
        payload.amount,
        note=payload.note,
        actor_user_id=actor_user_id,
    )
    adjustment = await db.get(PayrollRunAdjustment, adjustment_id)
    return AdjustmentResponse.model_validate(adjustment)


@router.get(
    "/{payroll_run_id}/adjustments",
    response_model=AdjustmentListResponse,
)
async def list_adjustments(
    ledger: Ledger,
    payroll_run_id: RunId,
    employee_id: UUID | None = None,
) -> AdjustmentListResponse:
    """List adjustments of a run, optionally for one employee."""
    if employee_id is not None:
        adjustments = await ledger.list_by_employee(payroll_run_id, employee_id)
    else:
        adjustments = await ledger.list_by_run(payroll_run_id)
    return AdjustmentListResponse(
        items=[AdjustmentResponse.model_validate(a) for a in adjustments],
        total=len(adjustments),
    )


@router.delete(
    "/{payroll_run_id}/adjustments/{adjustment_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def remove_adjustment(
    ledger: Ledger,
    actor_user_id: ActorUserId,
    payroll_run_id: RunId,
    adjustment_id: Annotated[UUID, Path()],
) -> None:
    """Remove an adjustment from a draft run."""
    await ledger.remove(adjustment_id, actor_user_id=actor_user_id, payroll_run_id=payroll_run_id)


# ============================================================================
# Review / Finalize
# ============================================================================


@router.get(
    "/{payroll_run_id}/review",
    response_model=ReviewResponse,
    responses={404: {"model": ErrorResponse}},
)
async def review_payroll_run(service: RunService, payroll_run_id: RunId) -> ReviewResponse:
    """Compute totals and validation for a run. Read-only and deterministic."""
    computation = await service.review(payroll_run_id)
    validation = computation.validation
    return ReviewResponse(
        payroll_run_id=computation.payroll_run_id,
        status=computation.status,
        currency=computation.currency,
        employees=[EmployeeTotalsResponse.model_validate(t) for t in computation.employee_totals],
        totals=RunTotalsResponse.model_validate(computation.run_totals),
        errors=[ValidationIssueResponse(**i.to_dict()) for i in validation.errors],
        warnings=[ValidationIssueResponse(**i.to_dict()) for i in validation.warnings],
        statutory_warnings=list(computation.statutory_warnings),
        can_finalize=not validation.is_blocked,
        fingerprint=computation.fingerprint,
    )


@router.post(
    "/{payroll_run_id}/finalize",
    response_model=PayrollRunResponse,
    responses={
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
)
async def finalize_payroll_run(
    service: RunService,
    actor_user_id: ActorUserId,
    payroll_run_id: RunId,
    payload: FinalizeRequest | None = None,
) -> PayrollRunResponse:
    """Finalize a draft run, freezing its totals."""
    payroll_run = await service.finalize(
        payroll_run_id,
        actor_user_id=actor_user_id,
        expected_fingerprint=payload.expected_fingerprint if payload else None,
    )
    return PayrollRunResponse.model_validate(payroll_run)


# ============================================================================
# Payslips / Register
# ============================================================================


@router.post(
    "/{payroll_run_id}/payslips",
    response_model=IssuePayslipsResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def issue_payslips(
    service: RunService,
    actor_user_id: ActorUserId,
    payroll_run_id: RunId,
    payload: IssuePayslipsRequest,
) -> IssuePayslipsResponse:
    """Issue payslips for a finalized run."""
    summary = await service.issue_payslips(
        payroll_run_id,
        send_email=payload.send_email,
        actor_user_id=actor_user_id,
        template_id=payload.template_id,
    )
    payroll_run = await service.get_payroll_run(payroll_run_id)
    return IssuePayslipsResponse(
        payroll_run_id=payroll_run_id,
        status=payroll_run.status if payroll_run else "payslips_issued",
        issued_count=summary.issued_count,
        failed_count=len(summary.failures),
        failures=[
            IssuanceFailureResponse(
                employee_id=f.employee_id,
                employee_name=f.employee_name,
                reason=f.reason,
            )
            for f in summary.failures
        ],
        template_used=summary.template_used,
        send_email=summary.send_email,
        storage_refs=summary.storage_refs,
    )


@router.get(
    "/{payroll_run_id}/register",
    response_model=RegisterResponse,
    responses={404: {"model": ErrorResponse}},
)
async def payroll_register(service: RunService, payroll_run_id: RunId) -> RegisterResponse:
    """Payroll register rows rounded to the run currency."""
    computation = await service.review(payroll_run_id)
    payroll_run = await service.get_payroll_run(payroll_run_id)
    snapshots = await service.list_employees(payroll_run_id)
    return RegisterResponse(
        payroll_run_id=payroll_run_id,
        currency=computation.currency,
        columns=list(REGISTER_COLUMNS),
        rows=build_register_rows(payroll_run, snapshots, computation),
    )
