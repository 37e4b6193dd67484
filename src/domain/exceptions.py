"""
Domain exceptions - Semantic error types for verification.

This module defines domain-specific exceptions that communicate
business rule violations without leaking infrastructure details.
"""


class VerificationError(Exception):
    """Base class for verification domain errors."""

    pass


class InvalidDomain(VerificationError):
    """Domain input is empty or not a hostname."""

    pass


class DomainAlreadyClaimed(VerificationError):
    """Domain is claimed by another account."""

    pass


class UnsupportedPlatform(VerificationError):
    """Platform is not supported by the requested verification method."""

    pass


class InvalidProfileUrl(VerificationError):
    """No usable profile URL or handle for a code-in-bio check."""

    pass


class ResolverError(VerificationError):
    """DNS lookup failed (timeout, transport error, SERVFAIL)."""

    pass


class FetchError(VerificationError):
    """Public profile fetch failed."""

    pass


class ProviderError(VerificationError):
    """
    Provider identity fetch failed.

    Carries a machine-readable code so callers can tell a reconnect
    (MISSING_TOKEN), a re-consent (INSUFFICIENT_SCOPE) and a retry
    (PROVIDER_UNAVAILABLE) apart.
    """

    def __init__(self, message: str, code: str = "PROVIDER_ERROR", status: int | None = None) -> None:
        super().__init__(message)
        self.code = code
        self.status = status
