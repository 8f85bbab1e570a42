"""
Pytest configuration and fixtures.
"""

from __future__ import annotations

import os

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from tests.fakes import JOB_PARTITION, JOB_ROW
from tests.test_constants import (
    TEST_FROM_ADDRESS,
    TEST_RESULTS_CALLBACK_KEY,
    TEST_SENDGRID_API_KEY,
)

# Force test configuration before the app is imported; don't inherit from .env
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["RESULTS_CALLBACK_KEY"] = TEST_RESULTS_CALLBACK_KEY
os.environ["STORAGE_CONNECTION_STRING"] = ""
os.environ["SENDGRID_API_KEY"] = TEST_SENDGRID_API_KEY
os.environ["SENDGRID_FROM_ADDRESS"] = TEST_FROM_ADDRESS


# ── Database ────────────────────────────────────────────────────────


@pytest.fixture
def db_engine():
    """Fresh in-memory SQLite database with the jobs/settings tables."""
    from autotune_web.db.session import create_tables

    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    create_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(db_engine) -> Session:
    session = Session(bind=db_engine)
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def job(db: Session):
    """A submitted job row awaiting its callback."""
    from autotune_web.models import Job

    row = Job(
        partition_key=JOB_PARTITION,
        row_key=JOB_ROW,
        email_results_to="looper@example.com",
    )
    db.add(row)
    db.commit()
    return row


@pytest.fixture
def store(db: Session):
    from autotune_web.services.job_store import JobStore

    return JobStore(db)


@pytest.fixture
def client() -> TestClient:
    """FastAPI test client."""
    from autotune_web.main import app

    return TestClient(app)
