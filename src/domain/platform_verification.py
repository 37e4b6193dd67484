"""
Platform verification - OAuth provider identity.

The OAuth consent flow happens elsewhere; this service receives the
resulting access token, asks the provider adapter who the token belongs to,
and records the canonical provider account id.
"""

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from .exceptions import ProviderError, UnsupportedPlatform
from .models import CheckResult, PlatformAccount, Profile, VerificationStatus
from .ports import IdentityProvider, ProfileCache, VerificationRepository

logger = logging.getLogger(__name__)

# Caller-actionable hints per ProviderError code.
PROVIDER_ERROR_HINTS = {
    "MISSING_TOKEN": "Reconnect the account to issue a new access token.",
    "TOKEN_REJECTED": "The access token expired or was revoked. Reconnect the account.",
    "INSUFFICIENT_SCOPE": "Reconnect and grant the requested permissions.",
    "NO_PAGES": "Grant page access and make sure you manage at least one page.",
    "NO_LINKED_ACCOUNT": "Link the account to one of your pages first, then reconnect.",
    "NO_CHANNEL": "Create or select a channel on this account, then try again.",
    "PROVIDER_UNAVAILABLE": "The provider could not be reached. Try again shortly.",
}


@dataclass
class PlatformVerificationService:
    """
    Domain service for OAuth-backed platform proofs and linked accounts.
    """

    repository: VerificationRepository
    providers: Mapping[str, IdentityProvider]
    profile_cache: ProfileCache
    downgrade_on_disconnect: bool = False
    # Alternate provider keys, recorded under their canonical name.
    aliases: Mapping[str, str] = field(default_factory=dict)

    def connect(self, user_id: str, provider: str, access_token: str | None, **options: Any) -> CheckResult:
        """
        Resolve the provider identity and record a VERIFIED PlatformAccount.

        Returns:
            VERIFIED with the promoted tier on success,
            ERROR(<provider code>) when the adapter fails

        Raises:
            UnsupportedPlatform: If no adapter is registered for provider
        """
        key = (provider or "").strip().lower()
        key = self.aliases.get(key, key)
        adapter = self.providers.get(key)
        if adapter is None:
            raise UnsupportedPlatform(provider or "")

        try:
            identity = adapter.fetch_identity(access_token, **options)
        except ProviderError as e:
            logger.warning("Provider identity fetch failed for %s (%s): %s", key, e.code, e)
            self.repository.mark_platform_account_failed(user_id, key)
            hint = PROVIDER_ERROR_HINTS.get(e.code, str(e))
            return CheckResult.error(self._current_status(user_id), e.code, hint)

        account, profile = self.repository.upsert_platform_account(
            user_id, key, identity, datetime.now(timezone.utc)
        )
        logger.info(
            "Platform verified: user %s on %s (%s, account %s)",
            user_id,
            key,
            identity.platform_context,
            account.id,
        )
        self.profile_cache.invalidate(user_id)
        return CheckResult.success(profile.verification_status)

    def list_accounts(self, user_id: str) -> Sequence[PlatformAccount]:
        return self.repository.list_platform_accounts(user_id)

    def disconnect(self, user_id: str, account_id: int) -> bool:
        """
        Remove a linked account. Returns False if the caller does not own it.

        The tier only drops when downgrade_on_disconnect is enabled, the
        profile is PLATFORM_VERIFIED and no other platform proof remains.
        """
        deleted = self.repository.delete_platform_account(
            user_id, account_id, downgrade_if_unproven=self.downgrade_on_disconnect
        )
        if deleted:
            logger.info("Platform account %s disconnected by user %s", account_id, user_id)
            self.profile_cache.invalidate(user_id)
        return deleted

    def get_profile(self, user_id: str) -> Profile:
        return self.repository.get_profile(user_id) or Profile(user_id=user_id)

    def _current_status(self, user_id: str) -> VerificationStatus:
        profile = self.repository.get_profile(user_id)
        return profile.verification_status if profile else VerificationStatus.UNVERIFIED
