"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from payroll_runs.api.routes import health_router, payroll_runs_router
from payroll_runs.config import Settings, get_settings
from payroll_runs.database import dispose_db, init_db
from payroll_runs.issuers import (
    HttpPayslipIssuer,
    PayslipIssuer,
    PayslipIssuerError,
    StubPayslipIssuer,
)
from payroll_runs.services import (
    AdjustmentNotFoundError,
    DuplicateDraftError,
    EmployeeNotAvailableError,
    InvalidTransitionError,
    LocationNotFoundError,
    PayrollRunNotFoundError,
    RunDataChangedError,
    RunNotEditableError,
    ValidationBlockedError,
)

logger = logging.getLogger(__name__)


def build_payslip_issuer(settings: Settings) -> PayslipIssuer:
    """HTTP issuer when a payslip service is configured, stub otherwise."""
    if settings.payslip_service_url:
        return HttpPayslipIssuer(
            settings.payslip_service_url,
            timeout=settings.payslip_service_timeout,
        )
    logger.warning("PAYSLIP_SERVICE_URL not set; using stub payslip issuer")
    return StubPayslipIssuer()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    # Startup
    init_db()
    yield
    # Shutdown
    issuer = app.state.payslip_issuer
    if isinstance(issuer, HttpPayslipIssuer):
        await issuer.aclose()
    await dispose_db()


def _error(status_code: int, detail: str, code: str, context: dict[str, Any] | None = None):
    return JSONResponse(
        status_code=status_code,
        content={"detail": detail, "code": code, "context": context},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Translate domain errors into HTTP responses."""

    @app.exception_handler(PayrollRunNotFoundError)
    async def run_not_found_handler(request: Request, exc: PayrollRunNotFoundError) -> JSONResponse:
        return _error(
            status.HTTP_404_NOT_FOUND,
            str(exc),
            "PAYROLL_RUN_NOT_FOUND",
            {"payroll_run_id": str(exc.payroll_run_id)},
        )

    @app.exception_handler(AdjustmentNotFoundError)
    async def adjustment_not_found_handler(
        request: Request, exc: AdjustmentNotFoundError
    ) -> JSONResponse:
        return _error(
            status.HTTP_404_NOT_FOUND,
            str(exc),
            "ADJUSTMENT_NOT_FOUND",
            {"adjustment_id": str(exc.adjustment_id)},
        )

    @app.exception_handler(LocationNotFoundError)
    async def location_not_found_handler(
        request: Request, exc: LocationNotFoundError
    ) -> JSONResponse:
        return _error(
            status.HTTP_404_NOT_FOUND,
            str(exc),
            "LOCATION_NOT_FOUND",
            {"work_location_id": str(exc.work_location_id)},
        )

    @app.exception_handler(DuplicateDraftError)
    async def duplicate_draft_handler(request: Request, exc: DuplicateDraftError) -> JSONResponse:
        return _error(
            status.HTTP_409_CONFLICT,
            str(exc),
            "DUPLICATE_DRAFT",
            {
                "existing_payroll_run_id": (
                    str(exc.existing_payroll_run_id) if exc.existing_payroll_run_id else None
                )
            },
        )

    @app.exception_handler(InvalidTransitionError)
    async def invalid_transition_handler(
        request: Request, exc: InvalidTransitionError
    ) -> JSONResponse:
        logger.warning("Invalid transition on %s %s: %s", request.method, request.url.path, exc)
        return _error(
            status.HTTP_409_CONFLICT,
            str(exc),
            "INVALID_TRANSITION",
            {"from_status": str(exc.from_status), "to_status": str(exc.to_status)},
        )

    @app.exception_handler(RunNotEditableError)
    async def not_editable_handler(request: Request, exc: RunNotEditableError) -> JSONResponse:
        return _error(
            status.HTTP_409_CONFLICT,
            str(exc),
            "RUN_NOT_EDITABLE",
            {"payroll_run_id": str(exc.payroll_run_id), "status": exc.status},
        )

    @app.exception_handler(RunDataChangedError)
    async def data_changed_handler(request: Request, exc: RunDataChangedError) -> JSONResponse:
        return _error(
            status.HTTP_409_CONFLICT,
            str(exc),
            "RUN_DATA_CHANGED",
            {"actual_fingerprint": exc.actual_fingerprint},
        )

    @app.exception_handler(ValidationBlockedError)
    async def validation_blocked_handler(
        request: Request, exc: ValidationBlockedError
    ) -> JSONResponse:
        return _error(
            status.HTTP_422_UNPROCESSABLE_ENTITY,
            str(exc),
            "VALIDATION_BLOCKED",
            {"violations": [v.to_dict() for v in exc.violations]},
        )

    @app.exception_handler(EmployeeNotAvailableError)
    async def employee_not_available_handler(
        request: Request, exc: EmployeeNotAvailableError
    ) -> JSONResponse:
        return _error(
            status.HTTP_422_UNPROCESSABLE_ENTITY,
            str(exc),
            "EMPLOYEE_NOT_AVAILABLE",
            {"employee_ids": [str(e) for e in exc.employee_ids], "reason": exc.reason},
        )

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
        return _error(status.HTTP_422_UNPROCESSABLE_ENTITY, str(exc), "INVALID_REQUEST")

    @app.exception_handler(PayslipIssuerError)
    async def issuer_error_handler(request: Request, exc: PayslipIssuerError) -> JSONResponse:
        return _error(
            status.HTTP_502_BAD_GATEWAY,
            str(exc),
            "PAYSLIP_SERVICE_ERROR",
            {"status_code": exc.status_code},
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return _error(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "An unexpected error occurred",
            "INTERNAL_ERROR",
        )


def create_app(
    settings: Settings | None = None,
    payslip_issuer: PayslipIssuer | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or get_settings()

    app = FastAPI(
        title="Payroll Runs API",
        description="Payroll run computation and lifecycle",
        version=settings.engine_version,
        lifespan=lifespan,
    )
    app.state.payslip_issuer = payslip_issuer or build_payslip_issuer(settings)

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure appropriately for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    # Include routers
    app.include_router(health_router)
    app.include_router(payroll_runs_router, prefix="/api/v1")

    return app
