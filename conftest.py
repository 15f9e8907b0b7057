"""Root conftest: test DB bootstrap and shared fixtures for ALL test paths (tests/, apps/eligibility/tests/)."""

import os

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from apps.eligibility.db import ensure_tables, make_session_factory

os.environ.setdefault("ENV", "test")
os.environ.setdefault("PYTEST_RUNNING", "1")

DATABASE_TEST_URL = os.getenv("DATABASE_TEST_URL")


@pytest.fixture
def sqlite_engine():
    """Fresh in-memory SQLite database per test. StaticPool: every session sees the same connection."""
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    ensure_tables(bind=engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def session_factory(sqlite_engine):
    return make_session_factory(sqlite_engine)
