"""Read-only access to work locations and employees for payroll."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from payroll_runs.calculators.types import (
    AmountBasis,
    CompensationComponent,
    CompensationTemplateInfo,
    ComponentKind,
    EmployeeProfile,
    PercentageBase,
    StatutoryRateInfo,
    WorkLocationInfo,
)
from payroll_runs.models import Employee, EmployeeCompensation, WorkLocation


class LocationNotFoundError(Exception):
    """Raised when a work location does not exist."""

    def __init__(self, work_location_id: UUID):
        self.work_location_id = work_location_id
        super().__init__(f"Work location {work_location_id} not found")


class EmployeeNotAvailableError(Exception):
    """Raised when employees are not active at the location or not in the run."""

    def __init__(self, employee_ids: Sequence[UUID], reason: str):
        self.employee_ids = list(employee_ids)
        self.reason = reason
        ids = ", ".join(str(e) for e in self.employee_ids)
        super().__init__(f"Employee(s) {ids} not available: {reason}")


class EmployeeDirectory(Protocol):
    """Source of employee and location master data."""

    async def get_work_location(self, work_location_id: UUID) -> WorkLocationInfo | None:
        """Get a work location with its statutory rate table."""
        ...

    async def get_employees_by_location(
        self,
        work_location_id: UUID,
        employee_ids: Sequence[UUID] | None = None,
    ) -> list[EmployeeProfile]:
        """Get active employees at a location, optionally restricted to ids."""
        ...


class SqlEmployeeDirectory:
    """EmployeeDirectory backed by the ORM models."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_work_location(self, work_location_id: UUID) -> WorkLocationInfo | None:
        result = await self.session.execute(
            select(WorkLocation)
            .where(WorkLocation.work_location_id == work_location_id)
            .options(selectinload(WorkLocation.statutory_rates))
            .execution_options(populate_existing=True)
        )
        location = result.scalar_one_or_none()
        if location is None:
            return None
        return to_location_info(location)

    async def get_employees_by_location(
        self,
        work_location_id: UUID,
        employee_ids: Sequence[UUID] | None = None,
    ) -> list[EmployeeProfile]:
        query = (
            select(Employee)
            .where(
                Employee.work_location_id == work_location_id,
                Employee.status == "active",
            )
            .options(
                selectinload(Employee.compensation_items).selectinload(
                    EmployeeCompensation.template
                )
            )
            .order_by(Employee.last_name, Employee.first_name, Employee.employee_id)
            .execution_options(populate_existing=True)
        )
        if employee_ids is not None:
            query = query.where(Employee.employee_id.in_(list(employee_ids)))

        result = await self.session.execute(query)
        return [to_employee_profile(e) for e in result.scalars().all()]


def to_location_info(location: WorkLocation) -> WorkLocationInfo:
    """Map a WorkLocation row to its immutable view."""
    return WorkLocationInfo(
        work_location_id=location.work_location_id,
        name=location.name,
        currency=location.currency,
        statutory_enabled=location.statutory_enabled,
        statutory_rates={
            r.nationality_code: StatutoryRateInfo(
                employee_rate=r.employee_rate,
                employer_rate=r.employer_rate,
            )
            for r in location.statutory_rates
        },
    )


def to_employee_profile(employee: Employee) -> EmployeeProfile:
    """Map an Employee row (with compensation items loaded) to a profile."""
    components = []
    for item in employee.compensation_items:
        template = None
        if item.template is not None:
            t = item.template
            template = CompensationTemplateInfo(
                template_id=t.compensation_template_id,
                kind=ComponentKind(t.kind),
                name=t.name,
                amount_basis=AmountBasis(t.amount_basis),
                value=t.value,
                percentage_of=PercentageBase(t.percentage_of) if t.percentage_of else None,
                work_location_id=t.work_location_id,
                is_active=t.is_active,
            )
        components.append(
            CompensationComponent(
                kind=template.kind if template is not None else ComponentKind(item.kind),
                template=template,
                custom_name=item.custom_name,
                custom_amount=item.custom_amount,
                effective_date=item.effective_date,
                end_date=item.end_date,
            )
        )

    return EmployeeProfile(
        employee_id=employee.employee_id,
        employee_code=employee.employee_code,
        first_name=employee.first_name,
        last_name=employee.last_name,
        department=employee.department,
        position=employee.position,
        base_salary=employee.base_salary,
        work_location_id=employee.work_location_id,
        nationality_code=employee.nationality_code,
        is_subject_to_statutory=employee.is_subject_to_statutory,
        statutory_registered_salary=employee.statutory_registered_salary,
        components=tuple(components),
    )
