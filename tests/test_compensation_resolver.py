"""Tests for compensation resolution."""

import json
from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from payroll_runs.calculators.compensation import CompensationResolver
from payroll_runs.calculators.types import (
    AmountBasis,
    CompensationComponent,
    CompensationLineItem,
    CompensationTemplateInfo,
    ComponentKind,
    EmployeeProfile,
    ItemSource,
    PercentageBase,
    StatutoryRateInfo,
    WorkLocationInfo,
)

LOCATION_ID = uuid4()


@pytest.fixture
def location() -> WorkLocationInfo:
    return WorkLocationInfo(
        work_location_id=LOCATION_ID,
        name="Manama HQ",
        currency="BHD",
        statutory_enabled=True,
        statutory_rates={
            "BH": StatutoryRateInfo(employee_rate=Decimal("7"), employer_rate=Decimal("12")),
        },
    )


def template(
    kind: ComponentKind = ComponentKind.ALLOWANCE,
    basis: AmountBasis = AmountBasis.FIXED,
    value: str = "100",
    percentage_of: PercentageBase | None = None,
    work_location_id=LOCATION_ID,
    is_active: bool = True,
    name: str = "Allowance",
) -> CompensationTemplateInfo:
    return CompensationTemplateInfo(
        template_id=uuid4(),
        kind=kind,
        name=name,
        amount_basis=basis,
        value=Decimal(value),
        percentage_of=percentage_of,
        work_location_id=work_location_id,
        is_active=is_active,
    )


def employee(*components: CompensationComponent, **kwargs) -> EmployeeProfile:
    kwargs.setdefault("base_salary", Decimal("1000"))
    employee_id = kwargs.pop("employee_id", uuid4())
    return EmployeeProfile(
        employee_id=employee_id,
        first_name="Fatima",
        last_name="Ali",
        work_location_id=LOCATION_ID,
        components=tuple(components),
        **kwargs,
    )


class TestAmountResolution:
    """Test allowance and deduction amounts."""

    def test_percentage_of_base_salary_is_exact(self, location):
        """10% of 2000 resolves to exactly 200."""
        housing = template(
            basis=AmountBasis.PERCENTAGE,
            value="10",
            percentage_of=PercentageBase.BASE_SALARY,
            name="Housing",
        )
        emp = employee(
            CompensationComponent(kind=ComponentKind.ALLOWANCE, template=housing),
            base_salary=Decimal("2000"),
        )

        resolved = CompensationResolver.resolve(emp, location)

        assert len(resolved.allowance_items) == 1
        item = resolved.allowance_items[0]
        assert item.amount == Decimal("200")
        assert item.name == "Housing"
        assert item.source == ItemSource.TEMPLATE
        assert item.percentage == Decimal("10")

    def test_percentage_of_registered_salary_falls_back_to_zero(self, location):
        """Unset statutory registered salary yields zero, not an error."""
        tmpl = template(
            basis=AmountBasis.PERCENTAGE,
            value="25",
            percentage_of=PercentageBase.STATUTORY_REGISTERED_SALARY,
        )
        emp = employee(CompensationComponent(kind=ComponentKind.ALLOWANCE, template=tmpl))

        resolved = CompensationResolver.resolve(emp, location)

        assert resolved.allowance_items[0].amount == Decimal("0")

    def test_percentage_of_registered_salary(self, location):
        tmpl = template(
            basis=AmountBasis.PERCENTAGE,
            value="25",
            percentage_of=PercentageBase.STATUTORY_REGISTERED_SALARY,
        )
        emp = employee(
            CompensationComponent(kind=ComponentKind.ALLOWANCE, template=tmpl),
            statutory_registered_salary=Decimal("800"),
        )

        resolved = CompensationResolver.resolve(emp, location)

        assert resolved.allowance_items[0].amount == Decimal("200")

    def test_fixed_value_verbatim(self, location):
        emp = employee(
            CompensationComponent(kind=ComponentKind.ALLOWANCE, template=template(value="123.456"))
        )

        resolved = CompensationResolver.resolve(emp, location)

        assert resolved.allowance_items[0].amount == Decimal("123.456")

    def test_custom_amount_overrides_template(self, location):
        housing = template(
            basis=AmountBasis.PERCENTAGE,
            value="10",
            percentage_of=PercentageBase.BASE_SALARY,
        )
        emp = employee(
            CompensationComponent(
                kind=ComponentKind.ALLOWANCE,
                template=housing,
                custom_amount=Decimal("75"),
            )
        )

        resolved = CompensationResolver.resolve(emp, location)

        assert resolved.allowance_items[0].amount == Decimal("75")
        assert resolved.allowance_items[0].template_id == housing.template_id

    def test_custom_item_without_template(self, location):
        emp = employee(
            CompensationComponent(
                kind=ComponentKind.DEDUCTION,
                custom_name="Salary advance",
                custom_amount=Decimal("40"),
            )
        )

        resolved = CompensationResolver.resolve(emp, location)

        assert resolved.allowance_items == ()
        assert resolved.deduction_items[0].name == "Salary advance"
        assert resolved.deduction_items[0].source == ItemSource.CUSTOM
        assert resolved.total_deductions == Decimal("40")


class TestApplicability:
    """Test which components are skipped."""

    def test_template_bound_to_other_location_is_skipped(self, location):
        foreign = template(work_location_id=uuid4())
        emp = employee(CompensationComponent(kind=ComponentKind.ALLOWANCE, template=foreign))

        resolved = CompensationResolver.resolve(emp, location)

        assert resolved.allowance_items == ()

    def test_global_template_applies(self, location):
        global_tmpl = template(work_location_id=None, value="50")
        emp = employee(CompensationComponent(kind=ComponentKind.ALLOWANCE, template=global_tmpl))

        resolved = CompensationResolver.resolve(emp, location)

        assert resolved.total_allowances == Decimal("50")

    def test_inactive_template_is_skipped(self, location):
        emp = employee(
            CompensationComponent(
                kind=ComponentKind.ALLOWANCE, template=template(is_active=False)
            )
        )

        resolved = CompensationResolver.resolve(emp, location)

        assert resolved.allowance_items == ()

    def test_effective_window(self, location):
        component = CompensationComponent(
            kind=ComponentKind.ALLOWANCE,
            template=template(value="30"),
            effective_date=date(2026, 2, 1),
            end_date=date(2026, 6, 30),
        )
        emp = employee(component)

        before = CompensationResolver.resolve(emp, location, as_of=date(2026, 1, 31))
        during = CompensationResolver.resolve(emp, location, as_of=date(2026, 3, 31))
        after = CompensationResolver.resolve(emp, location, as_of=date(2026, 7, 1))
        undated = CompensationResolver.resolve(emp, location)

        assert before.total_allowances == Decimal("0")
        assert during.total_allowances == Decimal("30")
        assert after.total_allowances == Decimal("0")
        assert undated.total_allowances == Decimal("30")


class TestStatutoryContribution:
    """Test statutory contribution rules."""

    def test_contribution_base_includes_allowances(self, location):
        emp = employee(
            CompensationComponent(kind=ComponentKind.ALLOWANCE, template=template(value="200")),
            nationality_code="BH",
            is_subject_to_statutory=True,
        )

        resolved = CompensationResolver.resolve(emp, location)

        statutory = resolved.statutory
        assert statutory.applicable is True
        assert statutory.contribution_base == Decimal("1200")
        assert statutory.employee_amount == Decimal("84")
        assert statutory.employer_amount == Decimal("144")
        assert resolved.gross_pay == Decimal("1200")
        # Employer share is never deducted from the employee
        assert resolved.total_deductions == Decimal("84")
        assert resolved.net_pay == Decimal("1116")

    def test_not_subject_to_statutory(self, location):
        emp = employee(nationality_code="BH", is_subject_to_statutory=False)

        resolved = CompensationResolver.resolve(emp, location)

        assert resolved.statutory.applicable is False
        assert resolved.statutory.employee_amount == Decimal("0")

    def test_location_scheme_disabled(self, location):
        disabled = WorkLocationInfo(
            work_location_id=LOCATION_ID,
            name="No scheme",
            currency="BHD",
            statutory_enabled=False,
            statutory_rates=location.statutory_rates,
        )
        emp = employee(nationality_code="BH", is_subject_to_statutory=True)

        resolved = CompensationResolver.resolve(emp, disabled)

        assert resolved.statutory.applicable is False

    def test_missing_rate_is_warning_not_error(self, location):
        emp = employee(nationality_code="IN", is_subject_to_statutory=True)

        resolved = CompensationResolver.resolve(emp, location)

        assert resolved.statutory.rate_missing is True
        assert resolved.statutory.employee_amount == Decimal("0")
        assert len(resolved.warnings) == 1
        assert "no rate configured" in resolved.warnings[0]
        assert "'IN'" in resolved.warnings[0]


class TestDeterminism:
    """Resolution is a pure function of its inputs."""

    def test_idempotent_resolution(self, location):
        housing = template(
            basis=AmountBasis.PERCENTAGE,
            value="12.5",
            percentage_of=PercentageBase.BASE_SALARY,
        )
        emp = employee(
            CompensationComponent(kind=ComponentKind.ALLOWANCE, template=housing),
            CompensationComponent(
                kind=ComponentKind.DEDUCTION,
                template=template(kind=ComponentKind.DEDUCTION, value="15"),
            ),
            nationality_code="BH",
            is_subject_to_statutory=True,
            base_salary=Decimal("1333.333"),
        )

        first = CompensationResolver.resolve(emp, location, as_of=date(2026, 1, 31))
        second = CompensationResolver.resolve(emp, location, as_of=date(2026, 1, 31))

        assert first == second

    def test_no_rounding_applied(self, location):
        third = template(
            basis=AmountBasis.PERCENTAGE,
            value="33.3333",
            percentage_of=PercentageBase.BASE_SALARY,
        )
        emp = employee(CompensationComponent(kind=ComponentKind.ALLOWANCE, template=third))

        resolved = CompensationResolver.resolve(emp, location)

        assert resolved.allowance_items[0].amount == Decimal("1000") * Decimal("33.3333") / 100

    def test_line_items_survive_json_storage(self, location):
        """Snapshot items are stored as JSON and read back unchanged."""
        housing = template(
            basis=AmountBasis.PERCENTAGE,
            value="10",
            percentage_of=PercentageBase.BASE_SALARY,
        )
        emp = employee(CompensationComponent(kind=ComponentKind.ALLOWANCE, template=housing))

        item = CompensationResolver.resolve(emp, location).allowance_items[0]
        stored = json.loads(json.dumps(item.to_dict()))

        assert CompensationLineItem.from_dict(stored) == item
