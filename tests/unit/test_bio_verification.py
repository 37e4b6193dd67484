"""
Unit tests for BioVerificationService.

Covers code minting, TTL handling, the fetch/match check and replay
protection, against the in-memory repository and a fake fetcher.
"""

import re
from datetime import datetime, timedelta, timezone

import pytest

from src.domain.bio_verification import (
    NO_ACTIVE_CODE,
    BioVerificationService,
    generate_bio_code,
    resolve_ttl_hours,
    text_contains_code,
)
from src.domain.exceptions import InvalidProfileUrl, UnsupportedPlatform
from src.domain.models import BioCodeStatus, Outcome, VerificationStatus

GITHUB_CODE = "AEOBRO-GITHUB-Q1W2E3R4"
GITHUB_API = "https://api.github.com/users/octocat"
GITHUB_PAGE = "https://github.com/octocat"


@pytest.fixture
def service(repository, fetcher, profile_cache) -> BioVerificationService:
    return BioVerificationService(
        repository=repository,
        fetcher=fetcher,
        profile_cache=profile_cache,
        fetch_deadline_seconds=2.0,
    )


def mint(repository, code: str = GITHUB_CODE, user_id: str = "user-1", hours: float = 24):
    return repository.mint_bio_code(
        user_id, "github", code, GITHUB_PAGE, datetime.now(timezone.utc) + timedelta(hours=hours)
    )


class TestGenerateBioCode:
    """Tests for generate_bio_code()."""

    def test_format(self) -> None:
        code = generate_bio_code("github")
        assert re.fullmatch(r"AEOBRO-GITHUB-[A-Z0-9_-]{8}", code)

    def test_codes_are_random(self) -> None:
        assert len({generate_bio_code("x") for _ in range(50)}) == 50


class TestResolveTtlHours:
    """Tests for resolve_ttl_hours()."""

    @pytest.mark.parametrize("ttl", [0.5, 1, 24, 72])
    def test_accepts_values_in_range(self, ttl: float) -> None:
        assert resolve_ttl_hours(ttl) == ttl

    @pytest.mark.parametrize("ttl", [None, 0, -1, 72.5, 1000])
    def test_out_of_range_falls_back_to_default(self, ttl) -> None:
        assert resolve_ttl_hours(ttl) == 24

    def test_custom_default(self) -> None:
        assert resolve_ttl_hours(None, default=6) == 6


class TestTextContainsCode:
    def test_case_insensitive(self) -> None:
        assert text_contains_code("bio: aeobro-github-q1w2e3r4", GITHUB_CODE) is True

    def test_absent(self) -> None:
        assert text_contains_code("just a bio", GITHUB_CODE) is False


class TestGenerate:
    """Tests for generate()."""

    def test_mints_code_for_platform(self, service: BioVerificationService) -> None:
        code = service.generate("user-1", "GitHub", GITHUB_PAGE)

        assert code.platform == "github"
        assert code.code.startswith("AEOBRO-GITHUB-")
        assert code.status is BioCodeStatus.PENDING
        assert code.profile_url == GITHUB_PAGE

    def test_is_idempotent_while_code_is_live(self, service: BioVerificationService) -> None:
        """Repeated generate returns the same live code."""
        first = service.generate("user-1", "github")
        second = service.generate("user-1", "github", ttl_hours=1)

        assert first.code == second.code
        assert first.id == second.id

    def test_default_ttl_is_24_hours(self, service: BioVerificationService) -> None:
        before = datetime.now(timezone.utc)
        code = service.generate("user-1", "github")

        assert timedelta(hours=23, minutes=59) < code.expires_at - before <= timedelta(hours=24, seconds=5)

    def test_out_of_range_ttl_uses_default(self, service: BioVerificationService) -> None:
        before = datetime.now(timezone.utc)
        code = service.generate("user-1", "github", ttl_hours=500)

        assert code.expires_at - before <= timedelta(hours=24, seconds=5)

    def test_unsupported_platform_raises(self, service: BioVerificationService) -> None:
        with pytest.raises(UnsupportedPlatform):
            service.generate("user-1", "myspace")

    def test_expired_code_is_replaced(self, service: BioVerificationService, repository) -> None:
        stale = mint(repository, hours=-1)

        fresh = service.generate("user-1", "github")

        assert fresh.id != stale.id
        assert fresh.expires_at > datetime.now(timezone.utc)


class TestCheck:
    """Tests for check()."""

    def test_code_in_github_bio_verifies(
        self, service: BioVerificationService, repository, fetcher, profile_cache
    ) -> None:
        """A code in the GitHub API bio promotes to PLATFORM_VERIFIED and is consumed."""
        mint(repository)
        fetcher.pages[GITHUB_API] = f"The Octocat\nBuilding things. {GITHUB_CODE}"

        result = service.check("user-1", "github", profile_url=GITHUB_PAGE)

        assert result.outcome is Outcome.VERIFIED
        assert result.status is VerificationStatus.PLATFORM_VERIFIED
        assert repository.get_active_bio_code("user-1", "github") is None

        profile = repository.get_profile("user-1")
        assert profile.platform_verified_at is not None
        assert profile.verified_platforms["github"]["code"] == GITHUB_CODE
        assert profile.verified_platforms["github"]["url"] == GITHUB_PAGE
        profile_cache.invalidate.assert_called_once_with("user-1")

    def test_github_api_is_read_as_json_fields(self, service: BioVerificationService, repository, fetcher) -> None:
        mint(repository)
        service.check("user-1", "github", profile_url=GITHUB_PAGE)

        assert (GITHUB_API, ("name", "bio", "blog")) in fetcher.requests
        assert (GITHUB_PAGE, None) in fetcher.requests

    def test_code_on_profile_page_verifies(self, service: BioVerificationService, repository, fetcher) -> None:
        mint(repository)
        fetcher.pages[GITHUB_PAGE] = f"<html>{GITHUB_CODE}</html>"

        assert service.check("user-1", "github", handle="octocat").verified is True

    def test_miss_leaves_code_unconsumed(
        self, service: BioVerificationService, repository, fetcher, profile_cache
    ) -> None:
        """A check that does not find the code changes nothing."""
        minted = mint(repository)
        fetcher.pages[GITHUB_API] = "no code here"

        result = service.check("user-1", "github", profile_url=GITHUB_PAGE)

        assert result.outcome is Outcome.NOT_YET_SATISFIED
        assert result.status is VerificationStatus.UNVERIFIED
        active = repository.get_active_bio_code("user-1", "github")
        assert active.id == minted.id
        profile_cache.invalidate.assert_not_called()

    def test_consumed_code_cannot_be_replayed(self, service: BioVerificationService, repository, fetcher) -> None:
        """After a successful check the same published code no longer verifies."""
        mint(repository)
        fetcher.pages[GITHUB_API] = GITHUB_CODE
        assert service.check("user-1", "github", profile_url=GITHUB_PAGE).verified is True

        replay = service.check("user-1", "github", profile_url=GITHUB_PAGE)

        assert replay.outcome is Outcome.ERROR
        assert replay.error_code == NO_ACTIVE_CODE

    def test_expired_code_does_not_verify(self, service: BioVerificationService, repository, fetcher) -> None:
        mint(repository, hours=-1)
        fetcher.pages[GITHUB_API] = GITHUB_CODE

        result = service.check("user-1", "github", profile_url=GITHUB_PAGE)

        assert result.error_code == NO_ACTIVE_CODE

    def test_no_code_is_an_error(self, service: BioVerificationService) -> None:
        result = service.check("user-1", "github", handle="octocat")

        assert result.outcome is Outcome.ERROR
        assert result.error_code == NO_ACTIVE_CODE

    def test_falls_back_to_stored_profile_url(self, service: BioVerificationService, repository, fetcher) -> None:
        mint(repository)
        fetcher.pages[GITHUB_PAGE] = GITHUB_CODE

        assert service.check("user-1", "github").verified is True

    def test_no_url_or_handle_raises(self, service: BioVerificationService, repository) -> None:
        repository.mint_bio_code(
            "user-1", "x", "AEOBRO-X-AAAAAAAA", "", datetime.now(timezone.utc) + timedelta(hours=1)
        )
        with pytest.raises(InvalidProfileUrl):
            service.check("user-1", "x")

    def test_does_not_demote_domain_verified_profile(
        self, service: BioVerificationService, repository, fetcher
    ) -> None:
        repository.mark_domain_verified("user-1", "example.com", datetime.now(timezone.utc))
        mint(repository)
        fetcher.pages[GITHUB_API] = GITHUB_CODE

        result = service.check("user-1", "github", profile_url=GITHUB_PAGE)

        assert result.verified is True
        assert result.status is VerificationStatus.DOMAIN_VERIFIED
        profile = repository.get_profile("user-1")
        assert profile.verification_status is VerificationStatus.DOMAIN_VERIFIED
        assert "github" in profile.verified_platforms

    def test_substack_checks_about_page(self, service: BioVerificationService, repository, fetcher) -> None:
        repository.mint_bio_code(
            "user-1",
            "substack",
            "AEOBRO-SUBSTACK-ZZZZZZZZ",
            "",
            datetime.now(timezone.utc) + timedelta(hours=1),
        )
        fetcher.pages["https://writer.substack.com/about"] = "About me AEOBRO-SUBSTACK-ZZZZZZZZ"

        assert service.check("user-1", "substack", handle="writer").verified is True
