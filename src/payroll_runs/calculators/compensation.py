"""Compensation resolution for a single employee."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from payroll_runs.calculators.types import (
    ZERO,
    AmountBasis,
    CompensationComponent,
    CompensationLineItem,
    ComponentKind,
    EmployeeProfile,
    ItemSource,
    PercentageBase,
    ResolvedCompensation,
    StatutoryContribution,
    WorkLocationInfo,
)

HUNDRED = Decimal("100")

RATE_MISSING_WARNING = "no rate configured"


class CompensationResolver:
    """Resolves an employee's recurring compensation at a work location.

    Resolution rules:
    1. Components bound to another location, inactive templates, and
       assignments outside their effective window are skipped
    2. A custom amount overrides the template amount
    3. Percentage templates apply to base salary or to the statutory
       registered salary (zero when unset)
    4. Statutory contribution applies only when both the employee and the
       location opt in; base is salary plus allowances
    5. No rounding and no currency conversion

    Resolution is a pure function: equal inputs give equal outputs.
    """

    @staticmethod
    def resolve(
        employee: EmployeeProfile,
        work_location: WorkLocationInfo,
        as_of: date | None = None,
    ) -> ResolvedCompensation:
        """Resolve allowances, deductions and statutory contribution.

        Args:
            employee: Employee profile with assigned components
            work_location: Location providing currency and rate table
            as_of: Date used to evaluate effective/end dates (None = all apply)

        Returns:
            ResolvedCompensation in the location currency
        """
        allowances: list[CompensationLineItem] = []
        deductions: list[CompensationLineItem] = []

        for component in employee.components:
            if not CompensationResolver._is_applicable(component, work_location, as_of):
                continue
            item = CompensationResolver._resolve_component(component, employee)
            if item.kind == ComponentKind.ALLOWANCE:
                allowances.append(item)
            else:
                deductions.append(item)

        total_allowances = sum((i.amount for i in allowances), ZERO)
        statutory = CompensationResolver._resolve_statutory(
            employee, work_location, employee.base_salary + total_allowances
        )

        warnings: tuple[str, ...] = ()
        if statutory.rate_missing:
            warnings = (
                f"{RATE_MISSING_WARNING} for nationality "
                f"'{employee.nationality_code or 'unknown'}' at {work_location.name}",
            )

        return ResolvedCompensation(
            employee_id=employee.employee_id,
            base_salary=employee.base_salary,
            allowance_items=tuple(allowances),
            deduction_items=tuple(deductions),
            statutory=statutory,
            warnings=warnings,
        )

    @staticmethod
    def _is_applicable(
        component: CompensationComponent,
        work_location: WorkLocationInfo,
        as_of: date | None,
    ) -> bool:
        template = component.template
        if template is not None:
            if not template.is_active:
                return False
            if (
                template.work_location_id is not None
                and template.work_location_id != work_location.work_location_id
            ):
                return False
        elif component.custom_amount is None:
            # Nothing to resolve
            return False
        return component.is_active_on(as_of)

    @staticmethod
    def _resolve_component(
        component: CompensationComponent,
        employee: EmployeeProfile,
    ) -> CompensationLineItem:
        template = component.template

        if template is None:
            return CompensationLineItem(
                kind=component.kind,
                name=component.custom_name or component.kind.value.title(),
                source=ItemSource.CUSTOM,
                amount=component.custom_amount or ZERO,
            )

        name = component.custom_name or template.name

        if component.custom_amount is not None:
            return CompensationLineItem(
                kind=component.kind,
                name=name,
                source=ItemSource.TEMPLATE,
                amount=component.custom_amount,
                template_id=template.template_id,
                amount_basis=AmountBasis.FIXED,
            )

        if template.amount_basis == AmountBasis.PERCENTAGE:
            if template.percentage_of == PercentageBase.STATUTORY_REGISTERED_SALARY:
                base = employee.statutory_registered_salary or ZERO
            else:
                base = employee.base_salary
            return CompensationLineItem(
                kind=component.kind,
                name=name,
                source=ItemSource.TEMPLATE,
                amount=base * template.value / HUNDRED,
                template_id=template.template_id,
                amount_basis=AmountBasis.PERCENTAGE,
                percentage_of=template.percentage_of or PercentageBase.BASE_SALARY,
                percentage=template.value,
            )

        return CompensationLineItem(
            kind=component.kind,
            name=name,
            source=ItemSource.TEMPLATE,
            amount=template.value,
            template_id=template.template_id,
            amount_basis=AmountBasis.FIXED,
        )

    @staticmethod
    def _resolve_statutory(
        employee: EmployeeProfile,
        work_location: WorkLocationInfo,
        contribution_base: Decimal,
    ) -> StatutoryContribution:
        if not (employee.is_subject_to_statutory and work_location.statutory_enabled):
            return StatutoryContribution(applicable=False)

        rate = work_location.rate_for(employee.nationality_code)
        if rate is None:
            return StatutoryContribution(
                applicable=True,
                contribution_base=contribution_base,
                rate_missing=True,
            )

        return StatutoryContribution(
            applicable=True,
            contribution_base=contribution_base,
            employee_rate=rate.employee_rate,
            employer_rate=rate.employer_rate,
            employee_amount=contribution_base * rate.employee_rate / HUNDRED,
            employer_amount=contribution_base * rate.employer_rate / HUNDRED,
        )
