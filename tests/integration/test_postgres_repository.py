"""
Integration tests for PostgresVerificationRepository.

Tests repository operations against a real PostgreSQL database.
Skipped when PostgreSQL is not reachable at DATABASE_URL.
"""

from datetime import datetime, timedelta, timezone

import psycopg
import pytest

from src.adapters.repository import postgres
from src.adapters.repository.postgres import PostgresVerificationRepository
from src.domain.models import (
    AccountStatus,
    BioCodeStatus,
    ClaimStatus,
    ProviderIdentity,
    VerificationStatus,
)

pytestmark = pytest.mark.integration

NOW = datetime.now(timezone.utc)


def later(hours: float = 24) -> datetime:
    return datetime.now(timezone.utc) + timedelta(hours=hours)


def identity(external_id: str = "UC1") -> ProviderIdentity:
    return ProviderIdentity(external_id=external_id, platform_context="google-youtube", handle="@me", url="https://yt/1")


class TestProfiles:
    def test_missing_profile_is_none(self, pg_repository: PostgresVerificationRepository) -> None:
        assert pg_repository.get_profile("nobody") is None

    def test_verification_token_is_persistent(self, pg_repository: PostgresVerificationRepository) -> None:
        first = pg_repository.ensure_verification_token("user-1", "token-a")
        second = pg_repository.ensure_verification_token("user-1", "token-b")

        assert first == second == "token-a"
        assert pg_repository.get_profile("user-1").verification_status is VerificationStatus.UNVERIFIED


class TestDomainClaims:
    """Tests for claim_domain / mark_domain_verified."""

    def test_claim_then_reclaim_by_owner(self, pg_repository: PostgresVerificationRepository) -> None:
        pg_repository.ensure_verification_token("user-1", "tok")

        first = pg_repository.claim_domain("user-1", "example.com", "tok", None)
        again = pg_repository.claim_domain("user-1", "example.com", "tok", "admin@example.com")

        assert first.status is ClaimStatus.PENDING
        assert again.email_issued == "admin@example.com"

    def test_other_user_gets_none(self, pg_repository: PostgresVerificationRepository) -> None:
        pg_repository.claim_domain("user-a", "example.com", "tok-a", None)

        assert pg_repository.claim_domain("user-b", "example.com", "tok-b", None) is None
        assert pg_repository.get_domain_claim("example.com").user_id == "user-a"
        assert pg_repository.get_domain_claim("example.com").txt_token == "tok-a"

    def test_mark_verified_updates_claim_and_profile(self, pg_repository: PostgresVerificationRepository) -> None:
        pg_repository.claim_domain("user-1", "example.com", "tok", None)

        profile = pg_repository.mark_domain_verified("user-1", "example.com", NOW)

        assert profile.verification_status is VerificationStatus.DOMAIN_VERIFIED
        assert profile.verify_domain == "example.com"
        claim = pg_repository.get_domain_claim("example.com")
        assert claim.status is ClaimStatus.VERIFIED
        assert claim.dns_verified is True

    def test_email_token_issued_once_and_confirmed(self, pg_repository: PostgresVerificationRepository) -> None:
        pg_repository.claim_domain("user-1", "example.com", "tok", "admin@example.com")

        assert pg_repository.issue_domain_email_token("example.com", "mail-1") is True
        assert pg_repository.issue_domain_email_token("example.com", "mail-2") is False

        claim = pg_repository.confirm_domain_email("mail-1")
        assert claim.email_verified is True
        assert pg_repository.confirm_domain_email("mail-1") is None


class TestBioCodes:
    """Tests for mint / consume."""

    def test_mint_is_idempotent_while_live(self, pg_repository: PostgresVerificationRepository) -> None:
        first = pg_repository.mint_bio_code("user-1", "github", "AEOBRO-GITHUB-AAAAAAAA", "", later())
        second = pg_repository.mint_bio_code("user-1", "github", "AEOBRO-GITHUB-BBBBBBBB", "", later())

        assert second.id == first.id
        assert second.code == "AEOBRO-GITHUB-AAAAAAAA"

    def test_expired_code_is_replaced(self, pg_repository: PostgresVerificationRepository) -> None:
        stale = pg_repository.mint_bio_code("user-1", "github", "AEOBRO-GITHUB-AAAAAAAA", "", later(-1))
        fresh = pg_repository.mint_bio_code("user-1", "github", "AEOBRO-GITHUB-BBBBBBBB", "", later())

        assert fresh.id != stale.id
        assert pg_repository.get_active_bio_code("user-1", "github").code == "AEOBRO-GITHUB-BBBBBBBB"

    def test_consume_promotes_once(self, pg_repository: PostgresVerificationRepository) -> None:
        code = pg_repository.mint_bio_code("user-1", "github", "AEOBRO-GITHUB-AAAAAAAA", "", later())

        profile = pg_repository.consume_bio_code(code.id, "github", "https://github.com/octocat", NOW)

        assert profile.verification_status is VerificationStatus.PLATFORM_VERIFIED
        assert profile.verified_platforms["github"]["code"] == "AEOBRO-GITHUB-AAAAAAAA"
        assert pg_repository.consume_bio_code(code.id, "github", "https://github.com/octocat", NOW) is None
        assert pg_repository.get_active_bio_code("user-1", "github") is None

    def test_consume_keeps_domain_verified(self, pg_repository: PostgresVerificationRepository) -> None:
        pg_repository.mark_domain_verified("user-1", "example.com", NOW)
        code = pg_repository.mint_bio_code("user-1", "x", "AEOBRO-X-AAAAAAAA", "", later())

        profile = pg_repository.consume_bio_code(code.id, "x", "https://x.com/me", NOW)

        assert profile.verification_status is VerificationStatus.DOMAIN_VERIFIED
        assert "x" in profile.verified_platforms


class TestPlatformAccounts:
    """Tests for upsert / fail / list / delete."""

    def test_upsert_creates_then_updates(self, pg_repository: PostgresVerificationRepository) -> None:
        account, profile = pg_repository.upsert_platform_account("user-1", "google", identity("UC1"), NOW)
        again, _ = pg_repository.upsert_platform_account("user-1", "google", identity("UC2"), NOW)

        assert again.id == account.id
        assert again.external_id == "UC2"
        assert again.status is AccountStatus.VERIFIED
        assert profile.verification_status is VerificationStatus.PLATFORM_VERIFIED
        assert profile.verified_platforms["google"]["externalId"] == "UC1"

    def test_mark_failed(self, pg_repository: PostgresVerificationRepository) -> None:
        pg_repository.upsert_platform_account("user-1", "google", identity(), NOW)

        pg_repository.mark_platform_account_failed("user-1", "google")

        [account] = pg_repository.list_platform_accounts("user-1")
        assert account.status is AccountStatus.FAILED

    def test_delete_only_own_account(self, pg_repository: PostgresVerificationRepository) -> None:
        account, _ = pg_repository.upsert_platform_account("user-1", "google", identity(), NOW)

        assert pg_repository.delete_platform_account("user-2", account.id, downgrade_if_unproven=False) is False
        assert pg_repository.delete_platform_account("user-1", account.id, downgrade_if_unproven=False) is True
        assert pg_repository.list_platform_accounts("user-1") == []

    def test_downgrade_when_last_proof_removed(self, pg_repository: PostgresVerificationRepository) -> None:
        account, _ = pg_repository.upsert_platform_account("user-1", "google", identity(), NOW)

        pg_repository.delete_platform_account("user-1", account.id, downgrade_if_unproven=True)

        assert pg_repository.get_profile("user-1").verification_status is VerificationStatus.UNVERIFIED

    def test_bio_proof_prevents_downgrade(self, pg_repository: PostgresVerificationRepository) -> None:
        code = pg_repository.mint_bio_code("user-1", "github", "AEOBRO-GITHUB-AAAAAAAA", "", later())
        pg_repository.consume_bio_code(code.id, "github", "https://github.com/me", NOW)
        account, _ = pg_repository.upsert_platform_account("user-1", "google", identity(), NOW)

        pg_repository.delete_platform_account("user-1", account.id, downgrade_if_unproven=True)

        assert pg_repository.get_profile("user-1").verification_status is VerificationStatus.PLATFORM_VERIFIED

    def test_bio_code_status_after_consume(self, pg_repository: PostgresVerificationRepository) -> None:
        code = pg_repository.mint_bio_code("user-1", "github", "AEOBRO-GITHUB-AAAAAAAA", "", later())
        pg_repository.consume_bio_code(code.id, "github", "", NOW)

        with pg_repository._pool.connection() as conn:
            status = conn.execute("SELECT status FROM bio_codes WHERE id = %s", (code.id,)).fetchone()[0]
        assert status == BioCodeStatus.VERIFIED.value

    def test_oauth_connect_merges_into_bio_entry(self, pg_repository: PostgresVerificationRepository) -> None:
        code = pg_repository.mint_bio_code("user-1", "instagram", "AEOBRO-INSTAGRAM-AAAAAAAA", "", later())
        pg_repository.consume_bio_code(code.id, "instagram", "https://instagram.com/me", NOW)

        account, profile = pg_repository.upsert_platform_account("user-1", "instagram", identity("1784"), NOW)

        entry = profile.verified_platforms["instagram"]
        assert entry["code"] == "AEOBRO-INSTAGRAM-AAAAAAAA"
        assert entry["externalId"] == "1784"

        pg_repository.delete_platform_account("user-1", account.id, downgrade_if_unproven=True)

        profile = pg_repository.get_profile("user-1")
        assert profile.verification_status is VerificationStatus.PLATFORM_VERIFIED
        assert profile.verified_platforms["instagram"]["code"] == "AEOBRO-INSTAGRAM-AAAAAAAA"


class TestAtomicity:
    """A failed profile update leaves the claim or code untouched."""

    def test_failed_promotion_keeps_bio_code_pending(
        self, pg_repository: PostgresVerificationRepository, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        code = pg_repository.mint_bio_code("user-1", "github", "AEOBRO-GITHUB-AAAAAAAA", "", later())
        monkeypatch.setattr(
            postgres,
            "_PROMOTE_PLATFORM_SQL",
            postgres._PROMOTE_PLATFORM_SQL.replace("ELSE 'PLATFORM_VERIFIED'", "ELSE 'BOGUS'"),
        )

        with pytest.raises(psycopg.errors.CheckViolation):
            pg_repository.consume_bio_code(code.id, "github", "https://github.com/me", NOW)

        assert pg_repository.get_active_bio_code("user-1", "github").id == code.id
        profile = pg_repository.get_profile("user-1")
        assert profile.verification_status is VerificationStatus.UNVERIFIED
        assert profile.verified_platforms == {}

    def test_failed_promotion_keeps_domain_claim_pending(
        self, pg_repository: PostgresVerificationRepository, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        pg_repository.claim_domain("user-1", "example.com", "tok", None)
        monkeypatch.setattr(
            postgres,
            "_DOMAIN_PROFILE_SQL",
            postgres._DOMAIN_PROFILE_SQL.replace(
                "SET verification_status = EXCLUDED.verification_status",
                "SET verification_status = 'BOGUS'",
            ),
        )

        with pytest.raises(psycopg.errors.CheckViolation):
            pg_repository.mark_domain_verified("user-1", "example.com", NOW)

        claim = pg_repository.get_domain_claim("example.com")
        assert claim.status is ClaimStatus.PENDING
        assert claim.dns_verified is False
        profile = pg_repository.get_profile("user-1")
        assert profile.verification_status is VerificationStatus.UNVERIFIED
        assert profile.verify_domain is None
