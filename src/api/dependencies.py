"""
FastAPI dependencies - Dependency injection factories.

This module provides Depends() factories for injecting
domain services and infrastructure adapters into routes.
"""

from collections.abc import Callable

from fastapi import Depends, HTTPException, Request, Security, status
from fastapi.security import APIKeyHeader

from src.adapters.providers import PROVIDER_ALIASES
from src.adapters.smtp.console import ConsoleEmailSender
from src.config.settings import get_settings
from src.domain.bio_verification import BioVerificationService
from src.domain.domain_verification import DomainVerificationService
from src.domain.platform_verification import PlatformVerificationService
from src.domain.ports import ProfileCache, RateLimiter, VerificationRepository

# Module-level singleton - ConsoleEmailSender is stateless
_email_sender = ConsoleEmailSender()


def get_repository(request: Request) -> VerificationRepository:
    """
    Get the repository from app state.

    The repository (Postgres-backed or in-memory) is created during app
    lifespan startup and stored in app.state.
    """
    return request.app.state.repository


def get_profile_cache(request: Request) -> ProfileCache:
    return request.app.state.profile_cache


def get_rate_limiter(request: Request) -> RateLimiter:
    return request.app.state.rate_limiter


def get_email_sender() -> ConsoleEmailSender:
    """Get console email sender (singleton)."""
    return _email_sender


def get_domain_service(request: Request) -> DomainVerificationService:
    """Wire the DNS resolver, repository, cache and email sender together."""
    settings = get_settings()
    return DomainVerificationService(
        repository=get_repository(request),
        resolver=request.app.state.resolver,
        profile_cache=get_profile_cache(request),
        email_sender=get_email_sender(),
        lookup_deadline_seconds=settings.domain_check_deadline_seconds,
        email_link_base=f"{settings.public_base_url.rstrip('/')}/v1/verify/domain/email-confirm",
    )


def get_bio_service(request: Request) -> BioVerificationService:
    settings = get_settings()
    return BioVerificationService(
        repository=get_repository(request),
        fetcher=request.app.state.fetcher,
        profile_cache=get_profile_cache(request),
        fetch_deadline_seconds=settings.bio_check_deadline_seconds,
        default_ttl_hours=settings.bio_code_ttl_hours,
    )


def get_platform_service(request: Request) -> PlatformVerificationService:
    return PlatformVerificationService(
        repository=get_repository(request),
        providers=request.app.state.providers,
        profile_cache=get_profile_cache(request),
        downgrade_on_disconnect=get_settings().downgrade_on_disconnect,
        aliases=PROVIDER_ALIASES,
    )


# Caller identity is asserted by the upstream auth layer (session proxy / gateway).
user_id_header = APIKeyHeader(name="X-User-Id", auto_error=False, description="Authenticated user id")


def get_current_user(user_id: str | None = Security(user_id_header)) -> str:
    """
    Return the authenticated caller's id.

    Raises 401 when the upstream auth layer did not identify the caller.
    """
    if not user_id or not user_id.strip():
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    return user_id.strip()


def get_client_ip(request: Request) -> str:
    """First X-Forwarded-For hop, then X-Real-IP, then the socket peer."""
    forwarded = request.headers.get("x-forwarded-for", "")
    first_hop = forwarded.split(",")[0].strip()
    if first_hop:
        return first_hop
    real_ip = request.headers.get("x-real-ip", "").strip()
    if real_ip:
        return real_ip
    return request.client.host if request.client else "unknown"


def get_client_rate_key(request: Request, user_id: str | None, prefix: str) -> str:
    """Rate-limit key: per account when known, otherwise per IP."""
    if user_id:
        return f"{prefix}:uid:{user_id}"
    return f"{prefix}:ip:{get_client_ip(request)}"


def rate_limited(scope: str) -> Callable[..., None]:
    """
    Build a dependency that counts one call against the caller's window.

    Args:
        scope: Route family ("domain", "bio", "platform"), appended to the
            configured key prefix so each family has its own window
    """

    def dependency(
        request: Request,
        user_id: str = Depends(get_current_user),
        limiter: RateLimiter = Depends(get_rate_limiter),
    ) -> None:
        prefix = f"{get_settings().rate_limit_prefix}:{scope}"
        if not limiter.limit(get_client_rate_key(request, user_id, prefix)):
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail="Too many verification attempts. Try again later.",
            )

    return dependency
