"""
In-memory repository adapter - Implements VerificationRepository protocol.

Single-process store for local runs and tests. One re-entrant lock guards
every operation, which gives each method the same all-or-nothing behaviour
the PostgreSQL adapter gets from a transaction.
"""

import copy
import itertools
import threading
from collections.abc import Sequence
from dataclasses import replace
from datetime import datetime, timezone

from src.domain.models import (
    AccountStatus,
    BioCode,
    BioCodeStatus,
    ClaimStatus,
    DomainClaim,
    PlatformAccount,
    Profile,
    ProviderIdentity,
    VerificationStatus,
)


class InMemoryVerificationRepository:
    """
    Implements VerificationRepository protocol with dictionaries.

    Uses structural subtyping - no explicit inheritance from Protocol.
    Returned records are copies; callers never hold live state.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._profiles: dict[str, Profile] = {}
        self._claims: dict[str, DomainClaim] = {}
        self._bio_codes: dict[int, BioCode] = {}
        self._accounts: dict[int, PlatformAccount] = {}
        self._ids = itertools.count(1)

    def get_profile(self, user_id: str) -> Profile | None:
        with self._lock:
            profile = self._profiles.get(user_id)
            return copy.deepcopy(profile) if profile else None

    def ensure_verification_token(self, user_id: str, candidate: str) -> str:
        with self._lock:
            profile = self._ensure_profile(user_id)
            if not profile.verification_token:
                profile.verification_token = candidate
            return profile.verification_token

    def claim_domain(
        self, user_id: str, domain: str, txt_token: str, email_issued: str | None
    ) -> DomainClaim | None:
        with self._lock:
            self._ensure_profile(user_id)
            claim = self._claims.get(domain)
            if claim is None:
                claim = DomainClaim(domain=domain, user_id=user_id, txt_token=txt_token, email_issued=email_issued)
                self._claims[domain] = claim
            elif claim.user_id != user_id:
                return None
            else:
                claim.txt_token = txt_token
                claim.email_issued = email_issued or claim.email_issued
            return replace(claim)

    def get_domain_claim(self, domain: str) -> DomainClaim | None:
        with self._lock:
            claim = self._claims.get(domain)
            return replace(claim) if claim else None

    def mark_domain_verified(self, user_id: str, domain: str, verified_at: datetime) -> Profile:
        with self._lock:
            claim = self._claims.get(domain)
            if claim is not None and claim.user_id == user_id:
                claim.status = ClaimStatus.VERIFIED
                claim.dns_verified = True
                claim.verified_at = verified_at

            profile = self._ensure_profile(user_id)
            profile.verification_status = VerificationStatus.DOMAIN_VERIFIED
            profile.domain_verified_at = verified_at
            profile.verify_domain = domain
            return copy.deepcopy(profile)

    def issue_domain_email_token(self, domain: str, email_token: str) -> bool:
        with self._lock:
            claim = self._claims.get(domain)
            if claim is None or claim.email_token or claim.email_verified:
                return False
            claim.email_token = email_token
            return True

    def confirm_domain_email(self, email_token: str) -> DomainClaim | None:
        with self._lock:
            for claim in self._claims.values():
                if claim.email_token == email_token:
                    claim.email_verified = True
                    claim.email_token = None
                    return replace(claim)
            return None

    def mint_bio_code(
        self,
        user_id: str,
        platform: str,
        code: str,
        profile_url: str,
        expires_at: datetime,
    ) -> BioCode:
        with self._lock:
            self._ensure_profile(user_id)
            active = self._active_bio_code(user_id, platform)
            if active is not None:
                return replace(active)

            now = datetime.now(timezone.utc)
            for stale in [
                c
                for c in self._bio_codes.values()
                if c.user_id == user_id
                and c.platform == platform
                and c.status is BioCodeStatus.PENDING
                and c.expires_at <= now
            ]:
                del self._bio_codes[stale.id]

            created = BioCode(
                id=next(self._ids),
                user_id=user_id,
                platform=platform,
                code=code,
                profile_url=profile_url,
                expires_at=expires_at,
            )
            self._bio_codes[created.id] = created
            return replace(created)

    def get_active_bio_code(self, user_id: str, platform: str) -> BioCode | None:
        with self._lock:
            active = self._active_bio_code(user_id, platform)
            return replace(active) if active else None

    def consume_bio_code(
        self, code_id: int, platform: str, profile_url: str, verified_at: datetime
    ) -> Profile | None:
        with self._lock:
            code = self._bio_codes.get(code_id)
            if code is None or code.status is not BioCodeStatus.PENDING:
                return None
            code.status = BioCodeStatus.VERIFIED
            code.verified_at = verified_at

            entry = {"url": profile_url, "code": code.code, "verifiedAt": verified_at.isoformat()}
            profile = self._promote_platform(code.user_id, platform, entry, verified_at)
            return copy.deepcopy(profile)

    def upsert_platform_account(
        self, user_id: str, provider: str, identity: ProviderIdentity, verified_at: datetime
    ) -> tuple[PlatformAccount, Profile]:
        with self._lock:
            self._ensure_profile(user_id)
            account = self._find_account(user_id, provider)
            if account is None:
                account = PlatformAccount(
                    id=next(self._ids), user_id=user_id, provider=provider, external_id=identity.external_id
                )
                self._accounts[account.id] = account

            account.external_id = identity.external_id
            account.handle = identity.handle
            account.profile_url = identity.url
            account.platform_context = identity.platform_context
            account.status = AccountStatus.VERIFIED
            account.verified_at = verified_at

            entry = {
                "externalId": identity.external_id,
                "url": identity.url,
                "handle": identity.handle,
                "platformContext": identity.platform_context,
                "verifiedAt": verified_at.isoformat(),
            }
            profile = self._promote_platform(user_id, provider, entry, verified_at)
            return replace(account), copy.deepcopy(profile)

    def mark_platform_account_failed(self, user_id: str, provider: str) -> None:
        with self._lock:
            account = self._find_account(user_id, provider)
            if account is not None:
                account.status = AccountStatus.FAILED

    def list_platform_accounts(self, user_id: str) -> Sequence[PlatformAccount]:
        with self._lock:
            accounts = [replace(a) for a in self._accounts.values() if a.user_id == user_id]
            return sorted(accounts, key=lambda a: a.id, reverse=True)

    def delete_platform_account(
        self, user_id: str, account_id: int, downgrade_if_unproven: bool
    ) -> bool:
        with self._lock:
            account = self._accounts.get(account_id)
            if account is None or account.user_id != user_id:
                return False
            del self._accounts[account_id]

            profile = self._profiles.get(user_id)
            if downgrade_if_unproven and profile is not None:
                still_linked = any(
                    a.user_id == user_id and a.status is AccountStatus.VERIFIED for a in self._accounts.values()
                )
                bio_proven = any(
                    c.user_id == user_id and c.status is BioCodeStatus.VERIFIED for c in self._bio_codes.values()
                )
                if (
                    profile.verification_status is VerificationStatus.PLATFORM_VERIFIED
                    and not still_linked
                    and not bio_proven
                ):
                    profile.verification_status = VerificationStatus.UNVERIFIED
            return True

    def _ensure_profile(self, user_id: str) -> Profile:
        profile = self._profiles.get(user_id)
        if profile is None:
            profile = Profile(user_id=user_id)
            self._profiles[user_id] = profile
        return profile

    def _active_bio_code(self, user_id: str, platform: str) -> BioCode | None:
        now = datetime.now(timezone.utc)
        live = [
            c
            for c in self._bio_codes.values()
            if c.user_id == user_id
            and c.platform == platform
            and c.status is BioCodeStatus.PENDING
            and c.expires_at > now
        ]
        return max(live, key=lambda c: c.id) if live else None

    def _find_account(self, user_id: str, provider: str) -> PlatformAccount | None:
        for account in self._accounts.values():
            if account.user_id == user_id and account.provider == provider:
                return account
        return None

    def _promote_platform(self, user_id: str, platform: str, entry: dict, verified_at: datetime) -> Profile:
        profile = self._ensure_profile(user_id)
        profile.verification_status = profile.verification_status.promote(VerificationStatus.PLATFORM_VERIFIED)
        profile.platform_verified_at = verified_at
        merged = {**profile.verified_platforms.get(platform, {}), **entry}
        profile.verified_platforms = {**profile.verified_platforms, platform: merged}
        return profile
