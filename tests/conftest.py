"""Fixtures for cross-module tests. PostgreSQL-only tests carry @requires_db."""

import os

import pytest

from tests._db_bootstrap import postgres_reachable, reset_test_schema

_PG_AVAILABLE = postgres_reachable(os.environ.get("DATABASE_TEST_URL"))

requires_db = pytest.mark.skipif(
    not _PG_AVAILABLE,
    reason="DATABASE_TEST_URL not set or Postgres not reachable",
)


@pytest.fixture(scope="session", autouse=True)
def pg_test_schema():
    """Fresh migrated schema once per session when a test Postgres is configured."""
    if _PG_AVAILABLE:
        reset_test_schema()
