"""
ABFI CI Engine - Test Configuration

Pytest fixtures and configuration.

Tests run against a throwaway SQLite database (aiosqlite). The URL is set
before ci_engine is imported so the application engine uses it.
"""

import os
import tempfile
from datetime import date
from typing import Any, AsyncGenerator, Dict
from uuid import uuid4

_TEST_DB_DIR = tempfile.mkdtemp(prefix="ci_engine_tests_")
os.environ["DATABASE_URL_ASYNC"] = f"sqlite+aiosqlite:///{_TEST_DB_DIR}/ci_engine_test.db"
os.environ["APP_ENV"] = "test"

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession

from ci_engine.database import Base, async_session_maker, engine, get_async_session
from ci_engine.models import CIDataQuality, CIMethodology, FeedstockCategory
from ci_engine.services.ci_calculator import (
    CICalculator,
    ComplianceEvaluator,
    RatingClassifier,
)
from ci_engine.services.ci_report_service import CIReportService
from main import app


# Components of the reference scenario: scope totals 10 / 5 / 5, total 20
SCENARIO_COMPONENTS: Dict[str, float] = {
    "scope1_cultivation": 5.0,
    "scope1_processing": 3.0,
    "scope1_transport": 2.0,
    "scope2_electricity": 4.0,
    "scope2_steam_heat": 1.0,
    "scope3_upstream_inputs": 2.0,
    "scope3_land_use_change": 1.0,
    "scope3_distribution": 1.0,
    "scope3_end_of_life": 1.0,
}


@pytest_asyncio.fixture(scope="function")
async def database() -> AsyncGenerator[None, None]:
    """Create all tables for a test and drop them afterwards."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(database) -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database session for each test."""
    async with async_session_maker() as session:
        yield session
        await session.rollback()


@pytest.fixture
def session_factory(database):
    """Session factory for tests that need several independent sessions."""
    return async_session_maker


@pytest_asyncio.fixture(scope="function")
async def client(database) -> AsyncGenerator[AsyncClient, None]:
    """Create a test client; every request gets its own session."""

    async def override_get_session():
        async with async_session_maker() as session:
            yield session

    app.dependency_overrides[get_async_session] = override_get_session

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ===========================================
# DATA FIXTURES
# ===========================================

@pytest.fixture
def supplier_user_id():
    return uuid4()


@pytest.fixture
def auditor_user_id():
    return uuid4()


@pytest.fixture
def supplier_headers(supplier_user_id) -> Dict[str, str]:
    return {"X-Actor-Id": str(supplier_user_id), "X-Actor-Role": "supplier"}


@pytest.fixture
def auditor_headers(auditor_user_id) -> Dict[str, str]:
    return {"X-Actor-Id": str(auditor_user_id), "X-Actor-Role": "auditor"}


@pytest.fixture
def other_supplier_headers() -> Dict[str, str]:
    """A second supplier who does not own the reports created in a test."""
    return {"X-Actor-Id": str(uuid4()), "X-Actor-Role": "supplier"}


@pytest.fixture
def buyer_headers() -> Dict[str, str]:
    return {"X-Actor-Id": str(uuid4()), "X-Actor-Role": "buyer"}


@pytest.fixture
def scenario_components() -> Dict[str, float]:
    return dict(SCENARIO_COMPONENTS)


@pytest.fixture
def report_kwargs(supplier_user_id) -> Dict[str, Any]:
    """Keyword arguments for CIReportService.create_report."""
    return {
        "supplier_id": uuid4(),
        "feedstock_id": uuid4(),
        "reporting_period_start": date(2026, 1, 1),
        "reporting_period_end": date(2026, 6, 30),
        "components": dict(SCENARIO_COMPONENTS),
        "methodology": CIMethodology.RED_II,
        "data_quality_level": CIDataQuality.PRIMARY_MEASURED,
        "feedstock_category": FeedstockCategory.UCO,
        "actor_id": supplier_user_id,
    }


@pytest.fixture
def report_payload() -> Dict[str, Any]:
    """JSON body for POST /api/v1/ci-reports."""
    return {
        "supplier_id": str(uuid4()),
        "feedstock_id": str(uuid4()),
        "feedstock_category": "UCO",
        "reporting_period_start": "2026-01-01",
        "reporting_period_end": "2026-06-30",
        "methodology": "RED_II",
        "data_quality_level": "primary_measured",
        **SCENARIO_COMPONENTS,
    }


@pytest.fixture
def service(db_session: AsyncSession) -> CIReportService:
    return CIReportService(db_session)


@pytest.fixture
def calculator_89() -> CICalculator:
    """Calculator with an 89 gCO2e/MJ comparator and the default tables."""
    return CICalculator(
        classifier=RatingClassifier.from_settings(),
        evaluator=ComplianceEvaluator(89.0, {"red_ii": 65.0, "rtfo": 60.0, "cfp": 50.0}),
    )
