"""ORM models."""

from payroll_runs.models.base import Base, TimestampMixin
from payroll_runs.models.organization import (
    CompensationTemplate,
    Employee,
    EmployeeCompensation,
    StatutoryRate,
    WorkLocation,
)
from payroll_runs.models.payroll import (
    AuditEvent,
    PayrollRun,
    PayrollRunAdjustment,
    PayrollRunEmployee,
)

__all__ = [
    "AuditEvent",
    "Base",
    "CompensationTemplate",
    "Employee",
    "EmployeeCompensation",
    "PayrollRun",
    "PayrollRunAdjustment",
    "PayrollRunEmployee",
    "StatutoryRate",
    "TimestampMixin",
    "WorkLocation",
]
