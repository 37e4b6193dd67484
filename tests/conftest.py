"""
Shared test fixtures and configuration.

This module provides pytest fixtures for:
- In-memory repository
- Fake DNS resolver and web fetcher
- Profile cache spy
- PostgreSQL pool (skipped when the database is unreachable)
"""

import threading
from collections.abc import Generator
from unittest.mock import MagicMock

import pytest
from psycopg_pool import ConnectionPool, PoolTimeout

from src.adapters.repository.memory import InMemoryVerificationRepository
from src.adapters.repository.postgres import PostgresVerificationRepository, run_migrations
from src.config.settings import get_settings
from src.domain.exceptions import FetchError, ResolverError


class FakeResolver:
    """TXT answers keyed by host; hosts in `failing` raise ResolverError."""

    def __init__(self, records: dict[str, list[str]] | None = None, failing: tuple[str, ...] = ()) -> None:
        self.records = dict(records or {})
        self.failing = set(failing)
        self.queried: list[str] = []
        self._lock = threading.Lock()

    def resolve_txt(self, host: str) -> list[str]:
        with self._lock:
            self.queried.append(host)
        if host in self.failing:
            raise ResolverError(f"SERVFAIL for {host}")
        return list(self.records.get(host, []))


class FakeFetcher:
    """Page text keyed by URL; unknown URLs raise FetchError."""

    def __init__(self, pages: dict[str, str] | None = None) -> None:
        self.pages = dict(pages or {})
        self.requests: list[tuple[str, tuple[str, ...] | None]] = []
        self._lock = threading.Lock()

    def fetch_text(self, url: str, json_fields=None) -> str:
        with self._lock:
            self.requests.append((url, tuple(json_fields) if json_fields else None))
        if url not in self.pages:
            raise FetchError(f"GET {url} failed (404)")
        return self.pages[url]


@pytest.fixture
def repository() -> InMemoryVerificationRepository:
    return InMemoryVerificationRepository()


@pytest.fixture
def profile_cache() -> MagicMock:
    return MagicMock()


@pytest.fixture
def resolver() -> FakeResolver:
    return FakeResolver()


@pytest.fixture
def fetcher() -> FakeFetcher:
    return FakeFetcher()


@pytest.fixture(scope="session")
def pg_pool() -> Generator[ConnectionPool, None, None]:
    """Migrated connection pool, or skip when PostgreSQL is not running."""
    settings = get_settings()
    pool = ConnectionPool(conninfo=settings.database_url, min_size=1, max_size=10, open=False)
    try:
        pool.open(wait=True, timeout=3)
    except PoolTimeout:
        pool.close()
        pytest.skip("PostgreSQL is not reachable")
    run_migrations(pool)
    yield pool
    pool.close()


@pytest.fixture
def pg_repository(pg_pool: ConnectionPool) -> PostgresVerificationRepository:
    """Repository over emptied tables."""
    with pg_pool.connection() as conn:
        conn.execute("TRUNCATE platform_accounts, bio_codes, domain_claims, profiles RESTART IDENTITY CASCADE")
    return PostgresVerificationRepository(pg_pool)
