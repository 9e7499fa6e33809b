"""FastAPI dependencies for dependency injection."""

from collections.abc import AsyncGenerator
from typing import Annotated
from uuid import UUID

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from payroll_runs.database import get_session
from payroll_runs.issuers import PayslipIssuer
from payroll_runs.services import AdjustmentLedger, PayrollRunService


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency; commits when the request succeeds."""
    async with get_session() as session:
        yield session


async def get_actor_user_id(
    x_user_id: Annotated[str | None, Header()] = None
) -> UUID | None:
    """Extract the acting user from the X-User-ID header, if present."""
    if not x_user_id:
        return None
    try:
        return UUID(x_user_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid X-User-ID format",
        )


def get_payslip_issuer(request: Request) -> PayslipIssuer:
    """Payslip issuer configured on the application."""
    return request.app.state.payslip_issuer


DbSession = Annotated[AsyncSession, Depends(get_db_session)]
ActorUserId = Annotated[UUID | None, Depends(get_actor_user_id)]
Issuer = Annotated[PayslipIssuer, Depends(get_payslip_issuer)]


def get_payroll_run_service(db: DbSession, issuer: Issuer) -> PayrollRunService:
    return PayrollRunService(db, issuer=issuer)


def get_adjustment_ledger(db: DbSession) -> AdjustmentLedger:
    return AdjustmentLedger(db)


RunService = Annotated[PayrollRunService, Depends(get_payroll_run_service)]
Ledger = Annotated[AdjustmentLedger, Depends(get_adjustment_ledger)]
