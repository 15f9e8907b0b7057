"""Pytest fixtures for eligibility unit tests."""

import pytest

from apps.eligibility.schemas.descriptor import QueryDescriptor
from apps.eligibility.services.errors import TransientCacheError


class FakeVersionStore:
    """In-memory stand-in for DatabaseVersionStore."""

    def __init__(self, version: int = 1) -> None:
        self.version = version
        self.fail_reads = False

    def current(self) -> int:
        if self.fail_reads:
            raise TransientCacheError("version store down")
        return self.version

    def increment(self) -> int:
        self.version += 1
        return self.version


@pytest.fixture
def versions() -> FakeVersionStore:
    return FakeVersionStore()


@pytest.fixture
def descriptor() -> QueryDescriptor:
    return QueryDescriptor(content_type="post", status="publish", category_id=7, author_id=3)
