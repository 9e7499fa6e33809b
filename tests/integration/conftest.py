"""Integration test fixtures: the FastAPI app over the test database session."""

from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from payroll_runs.api.app import create_app
from payroll_runs.api.dependencies import get_db_session
from payroll_runs.config import Settings
from payroll_runs.issuers import StubPayslipIssuer

TEST_SETTINGS = Settings(
    database_url="sqlite+aiosqlite:///:memory:",
    engine_version="test",
    host="127.0.0.1",
    port=8000,
    debug=False,
    log_level="INFO",
    payslip_service_url=None,
    payslip_service_timeout=5.0,
)


@pytest.fixture
def payslip_issuer() -> StubPayslipIssuer:
    return StubPayslipIssuer()


@pytest.fixture
def app(session: AsyncSession, payslip_issuer: StubPayslipIssuer) -> FastAPI:
    """App whose requests share the test session instead of committing."""
    app = create_app(
        settings=TEST_SETTINGS,
        payslip_issuer=payslip_issuer,
    )

    async def override_db_session() -> AsyncGenerator[AsyncSession, None]:
        yield session
        await session.flush()

    app.dependency_overrides[get_db_session] = override_db_session
    return app


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
