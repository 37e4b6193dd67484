"""
FastAPI application factory and configuration.

This module creates the FastAPI application instance,
configures the lifespan that wires adapters into app.state,
and exposes the health endpoint.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from psycopg_pool import ConnectionPool

from src.adapters.cache.console import ConsoleProfileCache, WebhookProfileCache
from src.adapters.dns.resolver import DnsTxtResolver
from src.adapters.providers import build_providers
from src.adapters.ratelimit.upstash import AllowAllRateLimiter, UpstashRateLimiter
from src.adapters.repository import InMemoryVerificationRepository, PostgresVerificationRepository, run_migrations
from src.adapters.web.fetcher import HttpxWebFetcher
from src.api.v1 import router as v1_router
from src.config.settings import Settings, get_settings

logger = logging.getLogger(__name__)

# OpenAPI tags for documentation grouping
tags_metadata = [
    {
        "name": "v1",
        "description": "Verification API v1 - Domain, code-in-bio and OAuth platform proofs",
    },
]


def build_profile_cache(settings: Settings, http_client: httpx.Client):
    if settings.revalidate_url:
        return WebhookProfileCache(settings.revalidate_url, secret=settings.revalidate_secret, http_client=http_client)
    return ConsoleProfileCache()


def build_rate_limiter(settings: Settings, http_client: httpx.Client):
    if settings.rate_limit_url and settings.rate_limit_token:
        return UpstashRateLimiter(
            settings.rate_limit_url,
            settings.rate_limit_token,
            max_requests=settings.rate_limit_max_requests,
            window_seconds=settings.rate_limit_window_seconds,
            http_client=http_client,
        )
    logger.info("No rate limit store configured, rate limiting disabled")
    return AllowAllRateLimiter()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    FastAPI lifespan context manager.

    Manages application startup and shutdown:
    - Creates the repository (Postgres pool + migrations, or in-memory)
    - Creates the shared HTTP client and outbound adapters
    - Closes the pool and HTTP client on shutdown
    """
    settings = get_settings()

    logger.info("Starting application...")

    pool = None
    if settings.storage_backend == "postgres":
        logger.info("Connecting to database...")
        # Create connection pool with explicit sizing
        pool = ConnectionPool(
            conninfo=settings.database_url,
            min_size=settings.pool_min_size,
            max_size=settings.pool_max_size,
        )
        logger.info("Running database migrations...")
        run_migrations(pool)
        app.state.repository = PostgresVerificationRepository(pool)
    else:
        logger.warning("Using in-memory storage; state is lost on restart")
        app.state.repository = InMemoryVerificationRepository()
    app.state.pool = pool

    # One pooled client for every outbound call; each adapter passes its own timeout.
    http_client = httpx.Client(follow_redirects=True)
    app.state.http_client = http_client
    app.state.resolver = DnsTxtResolver(settings.dns_nameservers, timeout=settings.dns_timeout_seconds)
    app.state.fetcher = HttpxWebFetcher(
        user_agent=settings.user_agent, timeout=settings.fetch_timeout_seconds, http_client=http_client
    )
    app.state.providers = build_providers(timeout=settings.provider_timeout_seconds, http_client=http_client)
    app.state.profile_cache = build_profile_cache(settings, http_client)
    app.state.rate_limiter = build_rate_limiter(settings, http_client)

    logger.info("Application startup complete")

    yield

    # Shutdown
    logger.info("Shutting down application...")
    http_client.close()
    if pool is not None:
        pool.close()
        logger.info("Database connection pool closed")


app = FastAPI(
    title="aeobro-verify",
    description="Identity verification API - domain ownership, code-in-bio and OAuth platform proofs",
    version="0.1.0",
    openapi_tags=tags_metadata,
    lifespan=lifespan,
)

# Include v1 API routes
app.include_router(v1_router, prefix="/v1")


@app.get("/health")
async def health_check(request: Request) -> dict[str, str]:
    """
    Liveness probe.

    With the Postgres backend it also runs SELECT 1, so a dead database
    surfaces as a 500.
    """
    pool = request.app.state.pool
    if pool is not None:
        with pool.connection() as conn:
            conn.execute("SELECT 1")

    return {"status": "healthy"}


def run() -> None:
    """Serve the app with uvicorn on the configured host and port."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
