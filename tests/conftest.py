"""Pytest fixtures for payroll run tests."""

from __future__ import annotations

from collections.abc import AsyncGenerator, Awaitable, Callable
from decimal import Decimal
from typing import Any

import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from payroll_runs.models import (
    Base,
    CompensationTemplate,
    Employee,
    EmployeeCompensation,
    StatutoryRate,
    WorkLocation,
)

# In-memory SQLite shared by every connection of one engine
# For PostgreSQL-only behavior (advisory locks, FOR UPDATE), use a real database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

EmployeeFactory = Callable[..., Awaitable[Employee]]


@pytest_asyncio.fixture
async def engine():
    """Create a fresh test database per test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def location(session: AsyncSession) -> WorkLocation:
    """Bahrain office with statutory contributions for BH and SA nationals."""
    location = WorkLocation(
        name="Manama HQ",
        currency="BHD",
        statutory_enabled=True,
        statutory_rates=[
            StatutoryRate(
                nationality_code="BH",
                employee_rate=Decimal("7"),
                employer_rate=Decimal("12"),
            ),
            StatutoryRate(
                nationality_code="SA",
                employee_rate=Decimal("5"),
                employer_rate=Decimal("10"),
            ),
        ],
    )
    session.add(location)
    await session.flush()
    return location


@pytest_asyncio.fixture
async def other_location(session: AsyncSession) -> WorkLocation:
    """Second location without statutory contributions."""
    location = WorkLocation(name="Dubai Branch", currency="AED", statutory_enabled=False)
    session.add(location)
    await session.flush()
    return location


@pytest_asyncio.fixture
async def templates(
    session: AsyncSession,
    location: WorkLocation,
    other_location: WorkLocation,
) -> dict[str, CompensationTemplate]:
    """Compensation templates keyed by short name."""
    housing = CompensationTemplate(
        work_location_id=location.work_location_id,
        kind="allowance",
        name="Housing",
        amount_basis="percentage",
        percentage_of="base_salary",
        value=Decimal("10"),
    )
    transport = CompensationTemplate(
        work_location_id=None,
        kind="allowance",
        name="Transport",
        amount_basis="fixed",
        value=Decimal("50"),
    )
    fixed_200 = CompensationTemplate(
        work_location_id=location.work_location_id,
        kind="allowance",
        name="Special",
        amount_basis="fixed",
        value=Decimal("200"),
    )
    loan = CompensationTemplate(
        work_location_id=location.work_location_id,
        kind="deduction",
        name="Loan Repayment",
        amount_basis="fixed",
        value=Decimal("25"),
    )
    session.add_all([housing, transport, fixed_200, loan])
    await session.flush()
    return {"housing": housing, "transport": transport, "fixed_200": fixed_200, "loan": loan}


@pytest_asyncio.fixture
async def make_employee(session: AsyncSession, location: WorkLocation) -> EmployeeFactory:
    """Factory creating employees at the default location."""
    counter = {"n": 0}

    async def _make(
        first_name: str = "Test",
        last_name: str | None = None,
        base_salary: Decimal | str = "1000",
        templates: list[CompensationTemplate] | None = None,
        custom_items: list[dict[str, Any]] | None = None,
        **kwargs: Any,
    ) -> Employee:
        counter["n"] += 1
        items = [
            EmployeeCompensation(
                kind=t.kind,
                compensation_template_id=t.compensation_template_id,
                template=t,
            )
            for t in templates or []
        ]
        items += [EmployeeCompensation(**item) for item in custom_items or []]
        kwargs.setdefault("work_location_id", location.work_location_id)
        kwargs.setdefault("employee_code", f"E{counter['n']:03d}")
        employee = Employee(
            first_name=first_name,
            last_name=last_name or f"Employee{counter['n']}",
            base_salary=Decimal(base_salary),
            compensation_items=items,
            **kwargs,
        )
        session.add(employee)
        await session.flush()
        return employee

    return _make
