"""
Port interfaces - Protocol definitions for infrastructure abstraction.

This module defines the interfaces (ports) that the domain requires
from infrastructure. State enums live in models and are re-exported here.
Adapters implement these protocols.
"""

from collections.abc import Sequence
from datetime import datetime
from typing import Any, Protocol

from .models import (
    AccountStatus,
    BioCode,
    BioCodeStatus,
    ClaimStatus,
    DomainClaim,
    Outcome,
    PlatformAccount,
    Profile,
    ProviderIdentity,
    VerificationStatus,
)

__all__ = [
    "AccountStatus",
    "BioCodeStatus",
    "ClaimStatus",
    "EmailSender",
    "IdentityProvider",
    "Outcome",
    "ProfileCache",
    "RateLimiter",
    "TxtResolver",
    "VerificationRepository",
    "VerificationStatus",
    "WebFetcher",
]


class VerificationRepository(Protocol):
    """Port interface for verification state persistence."""

    def get_profile(self, user_id: str) -> Profile | None:
        """Return the profile for a user, or None."""
        ...

    def ensure_verification_token(self, user_id: str, candidate: str) -> str:
        """
        Return the profile's persistent verification token.

        Creates the profile if needed. If no token is stored yet, the
        candidate is stored and returned; otherwise the stored token wins.
        """
        ...

    def claim_domain(
        self, user_id: str, domain: str, txt_token: str, email_issued: str | None
    ) -> DomainClaim | None:
        """
        Atomically create or reuse a DomainClaim.

        Returns:
            The claim if it is new or already owned by user_id,
            None if another user holds the domain
        """
        ...

    def get_domain_claim(self, domain: str) -> DomainClaim | None:
        ...

    def mark_domain_verified(self, user_id: str, domain: str, verified_at: datetime) -> Profile:
        """
        Flip the claim to VERIFIED and the profile to DOMAIN_VERIFIED.

        Both writes happen in one transaction.
        """
        ...

    def issue_domain_email_token(self, domain: str, email_token: str) -> bool:
        """Store an email token if none was issued yet. Returns True if stored."""
        ...

    def confirm_domain_email(self, email_token: str) -> DomainClaim | None:
        """Mark the claim holding email_token as email-verified and clear the token."""
        ...

    def mint_bio_code(
        self,
        user_id: str,
        platform: str,
        code: str,
        profile_url: str,
        expires_at: datetime,
    ) -> BioCode:
        """
        Return the active code for (user_id, platform), or store the new one.

        Check-then-insert runs under a per-(user, platform) lock so that
        concurrent generate calls never leave two live codes.
        """
        ...

    def get_active_bio_code(self, user_id: str, platform: str) -> BioCode | None:
        """Return the newest PENDING, unexpired code for (user_id, platform)."""
        ...

    def consume_bio_code(
        self, code_id: int, platform: str, profile_url: str, verified_at: datetime
    ) -> Profile | None:
        """
        Consume a code and promote its owner's profile in one transaction.

        Returns:
            The updated profile, or None if the code was already consumed
            (a concurrent check won the race)
        """
        ...

    def upsert_platform_account(
        self, user_id: str, provider: str, identity: ProviderIdentity, verified_at: datetime
    ) -> tuple[PlatformAccount, Profile]:
        """Upsert a VERIFIED PlatformAccount and promote the profile in one transaction."""
        ...

    def mark_platform_account_failed(self, user_id: str, provider: str) -> None:
        ...

    def list_platform_accounts(self, user_id: str) -> Sequence[PlatformAccount]:
        ...

    def delete_platform_account(
        self, user_id: str, account_id: int, downgrade_if_unproven: bool
    ) -> bool:
        """
        Delete a PlatformAccount owned by user_id.

        When downgrade_if_unproven is set, a PLATFORM_VERIFIED profile with no
        remaining platform proof drops to UNVERIFIED in the same transaction.

        Returns:
            True if a row was deleted, False if not found for this user
        """
        ...


class TxtResolver(Protocol):
    """Port interface for DNS TXT lookups."""

    def resolve_txt(self, host: str) -> list[str]:
        """
        Return every TXT answer for host, each reassembled from its chunks.

        Returns an empty list for NXDOMAIN / no answers.
        Raises ResolverError when the lookup itself fails.
        """
        ...


class WebFetcher(Protocol):
    """Port interface for public profile fetches."""

    def fetch_text(self, url: str, json_fields: Sequence[str] | None = None) -> str:
        """
        GET url and return its text.

        When json_fields is given the body is parsed as JSON and the named
        string fields are joined with newlines.
        Raises FetchError on non-2xx, timeout or transport failure.
        """
        ...


class IdentityProvider(Protocol):
    """Port interface for an OAuth provider "who am I" adapter."""

    name: str

    def fetch_identity(self, access_token: str | None, **options: Any) -> ProviderIdentity:
        """Raises ProviderError with a machine-readable code on failure."""
        ...


class RateLimiter(Protocol):
    """Port interface for fixed-window rate limiting."""

    def limit(self, key: str) -> bool:
        """Return True if the call identified by key is allowed."""
        ...


class EmailSender(Protocol):
    """Port interface for email delivery."""

    def send_domain_email_link(self, email: str, domain: str, link: str) -> None:
        """Send the domain-email confirmation link."""
        ...


class ProfileCache(Protocol):
    """Port interface for invalidating cached public renderings of a profile."""

    def invalidate(self, user_id: str) -> None:
        ...
