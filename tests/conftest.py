"""
Pytest configuration and fixtures.

Provides shared fixtures for:
- In-memory SQLite engine/session (foreign keys on)
- Facility factory that goes through the real write path
- Queue config
- FastAPI test client with the DB dependency overridden
"""

import os
from datetime import date

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Set test environment before importing app modules
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["ENABLE_CREATE_ALL"] = "0"
os.environ["ENABLE_SCHEDULER"] = "0"

from facility_compliance.core.settings import NotificationQueueConfig  # noqa: E402
from facility_compliance.crud.facility import create_facility  # noqa: E402
from facility_compliance.models import Base  # noqa: E402
from facility_compliance.schemas.facility import FacilityCreate  # noqa: E402


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest.fixture(scope="function")
def test_db_engine():
    """Create an in-memory SQLite database engine for testing."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    def _fk_pragma_on_connect(dbapi_con, con_record):
        dbapi_con.execute("pragma foreign_keys=ON")

    event.listen(engine, "connect", _fk_pragma_on_connect)

    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(scope="function")
def test_db_session(test_db_engine):
    """Create a test database session."""
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_db_engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


# ============================================================================
# Factories
# ============================================================================

@pytest.fixture
def make_facility(test_db_session):
    """
    Create a facility through crud.create_facility, so the recalculation hook runs.

        fac = make_facility(name="North Pad", production_start_date=date(2024, 1, 1))
    """

    def _make(tenant_id=1, name="Facility A", today=date(2024, 8, 1), **fields):
        return create_facility(test_db_session, tenant_id, FacilityCreate(name=name, **fields), today=today)

    return _make


@pytest.fixture
def queue_config():
    return NotificationQueueConfig(
        cooldown_hours=24,
        max_retries=3,
        retry_backoff_minutes=15,
        lead_minutes=0,
        claim_lease_seconds=300,
        batch_size=50,
        horizon_days=30,
    )


# ============================================================================
# FastAPI Test Client Fixture
# ============================================================================

@pytest.fixture
def test_client(test_db_session):
    """Create a test client for the FastAPI application."""
    from fastapi.testclient import TestClient

    from facility_compliance.db.session import get_db
    from facility_compliance.main import app

    def get_test_db():
        try:
            yield test_db_session
        finally:
            pass

    app.dependency_overrides[get_db] = get_test_db

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()
