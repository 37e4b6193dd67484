"""
Shared fixtures for adversarial tests.

Race tests run against both repository backends; the PostgreSQL variant is
skipped when the database is unreachable.
"""

import pytest

from src.adapters.repository.memory import InMemoryVerificationRepository

# Module-level marker for all adversarial tests
pytestmark = pytest.mark.adversarial


@pytest.fixture(params=["memory", "postgres"])
def store(request: pytest.FixtureRequest):
    """Repository under attack: in-memory or PostgreSQL."""
    if request.param == "memory":
        return InMemoryVerificationRepository()
    return request.getfixturevalue("pg_repository")

