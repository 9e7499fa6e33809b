"""API routes."""

from payroll_runs.api.routes.health import router as health_router
from payroll_runs.api.routes.payroll_runs import router as payroll_runs_router

__all__ = ["health_router", "payroll_runs_router"]
