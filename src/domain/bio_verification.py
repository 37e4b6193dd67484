"""
Code-in-bio verification.

The user publishes a short-lived code in a public, user-editable field
(bio, about page) on an external platform; a check fetches that public text
and looks for the exact code.

The code is public once published, so its value is binding an externally
controlled account to this one, not secrecy. Codes are therefore single-use
and time-boxed: a consumed or expired code never satisfies a later check.
"""

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from .concurrency import first_in_order
from .exceptions import FetchError, InvalidProfileUrl
from .models import BioCode, CheckResult, VerificationStatus
from .platforms import bio_sources, build_default_url, normalize_platform, parse_handle_from_url
from .ports import ProfileCache, VerificationRepository, WebFetcher

logger = logging.getLogger(__name__)

DEFAULT_TTL_HOURS = 24
MAX_TTL_HOURS = 72
CODE_PREFIX = "AEOBRO"
CODE_RANDOM_LENGTH = 8

NO_ACTIVE_CODE = "NO_ACTIVE_CODE"


def generate_bio_code(platform: str) -> str:
    """
    Mint AEOBRO-<PLATFORM>-<8 chars>.

    Random part is url-safe base64 from the secrets module, upper-cased.
    """
    rand = secrets.token_urlsafe(6)[:CODE_RANDOM_LENGTH].upper()
    return f"{CODE_PREFIX}-{platform.upper()}-{rand}"


def resolve_ttl_hours(ttl_hours: float | None, default: float = DEFAULT_TTL_HOURS) -> float:
    """Accept (0, 72] hours, otherwise fall back to the default."""
    if ttl_hours is not None and 0 < ttl_hours <= MAX_TTL_HOURS:
        return ttl_hours
    return default


def text_contains_code(text: str, code: str) -> bool:
    return bool(code) and code.lower() in text.lower()


@dataclass
class BioVerificationService:
    """
    Domain service for code-in-bio proofs.

    generate() is idempotent inside the TTL window; check() consumes the code
    and promotes the profile to PLATFORM_VERIFIED (never below its current
    tier) in one repository transaction.
    """

    repository: VerificationRepository
    fetcher: WebFetcher
    profile_cache: ProfileCache
    fetch_deadline_seconds: float = 10.0
    default_ttl_hours: float = DEFAULT_TTL_HOURS

    def generate(
        self,
        user_id: str,
        platform: str,
        profile_url: str | None = None,
        ttl_hours: float | None = None,
    ) -> BioCode:
        """
        Return the caller's live code for a platform, minting one if needed.

        Raises:
            UnsupportedPlatform: If the platform is not in the catalog
        """
        key = normalize_platform(platform)
        ttl = resolve_ttl_hours(ttl_hours, self.default_ttl_hours)
        expires_at = datetime.now(timezone.utc) + timedelta(hours=ttl)

        code = self.repository.mint_bio_code(
            user_id, key, generate_bio_code(key), (profile_url or "").strip(), expires_at
        )
        logger.info("Bio code ready for user %s on %s (expires %s)", user_id, key, code.expires_at.isoformat())
        return code

    def check(
        self,
        user_id: str,
        platform: str,
        profile_url: str | None = None,
        handle: str | None = None,
    ) -> CheckResult:
        """
        Fetch the public profile text and look for the active code.

        Returns:
            VERIFIED on a match (code consumed, profile promoted),
            NOT_YET_SATISFIED if the code is not visible yet,
            ERROR(NO_ACTIVE_CODE) if there is no live code to look for

        Raises:
            UnsupportedPlatform: If the platform is not in the catalog
            InvalidProfileUrl: If no profile URL or handle can be resolved
        """
        key = normalize_platform(platform)
        active = self.repository.get_active_bio_code(user_id, key)
        current = self._current_status(user_id)

        if active is None:
            return CheckResult.error(current, NO_ACTIVE_CODE, "No active code found. Generate one first.")

        resolved_handle, url = self._resolve_target(key, profile_url, handle, active)

        if not self._code_is_visible(key, resolved_handle, url, active.code):
            return CheckResult.not_yet(
                current, "Code not found in public bio/about yet. Give it a minute and try again."
            )

        profile = self.repository.consume_bio_code(active.id, key, url, datetime.now(timezone.utc))
        if profile is None:
            # A concurrent check consumed the code first and already promoted.
            logger.info("Bio code %s already consumed", active.id)
            return CheckResult.success(self._current_status(user_id))

        logger.info("Platform verified via bio code: user %s on %s", user_id, key)
        self.profile_cache.invalidate(user_id)
        return CheckResult.success(profile.verification_status)

    def _resolve_target(
        self, platform: str, profile_url: str | None, handle: str | None, active: BioCode
    ) -> tuple[str | None, str]:
        url = (profile_url or "").strip()
        handle = (handle or "").strip() or None

        if url:
            return handle or parse_handle_from_url(platform, url), url
        if handle:
            return handle, build_default_url(platform, handle)
        if active.profile_url:
            return parse_handle_from_url(platform, active.profile_url), active.profile_url
        raise InvalidProfileUrl("Provide a handle or profileUrl to check.")

    def _code_is_visible(self, platform: str, handle: str | None, url: str, code: str) -> bool:
        sources = bio_sources(platform, handle, url)
        calls = [lambda source=source: self._fetch(source.url, source.json_fields) for source in sources]

        found = first_in_order(
            calls,
            accept=lambda text: text_contains_code(text, code),
            deadline_seconds=self.fetch_deadline_seconds,
        )
        if found is not None:
            logger.info("Bio code found at %s", sources[found[0]].url)
        return found is not None

    def _fetch(self, url: str, json_fields: tuple[str, ...] | None) -> str:
        try:
            return self.fetcher.fetch_text(url, json_fields=json_fields)
        except FetchError as e:
            logger.warning("Bio fetch failed for %s: %s", url, e)
            return ""

    def _current_status(self, user_id: str) -> VerificationStatus:
        profile = self.repository.get_profile(user_id)
        return profile.verification_status if profile else VerificationStatus.UNVERIFIED
