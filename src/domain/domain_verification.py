"""
Domain ownership verification - DNS TXT challenge.

Flow
====

    start(user, domain)  -> DomainChallenge (persistent per-profile token)
    check(user, domain)  -> CheckResult

A check looks the token up on an ordered list of candidate hosts and accepts
several value shapes, so records published under earlier instructions keep
working. Precedence is deliberate: the preferred host is consulted first,
and a legacy/apex record only wins once every earlier host came back without
a match.

On success the DomainClaim flips to VERIFIED and the profile to
DOMAIN_VERIFIED in a single repository transaction. DOMAIN_VERIFIED is the
strongest tier, so this promotion is unconditional.
"""

import logging
import re
import secrets
from dataclasses import dataclass
from datetime import datetime, timezone
from urllib.parse import urlsplit

from .concurrency import first_in_order
from .exceptions import DomainAlreadyClaimed, InvalidDomain, ResolverError
from .models import CheckResult, DomainChallenge, DomainClaim, VerificationStatus
from .ports import EmailSender, ProfileCache, TxtResolver, VerificationRepository

logger = logging.getLogger(__name__)

PREFERRED_HOST_PREFIX = "_aeobro-verify"
PREFERRED_VALUE_KEY = "aeobro-site-verify"

# (host template, ...) in precedence order. Retiring a shape is a one-line change.
CANDIDATE_HOSTS = (
    "_aeobro-verify.{domain}",
    "_aeobro.{domain}",
    "{domain}",
)

ACCEPTED_VALUES = (
    "aeobro-site-verify={token}",
    "aeobro-verification={token}",
    "{token}",
)

CLAIM_NOT_FOUND = "CLAIM_NOT_FOUND"

_HOSTNAME = re.compile(r"^(?=.{1,253}$)([a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?\.)+[a-z0-9-]{2,63}$")


def normalize_domain(value: str | None) -> str:
    """
    Reduce user input to a bare, lower-case host.

    "https://www.Example.com/path" -> "example.com"

    Raises:
        InvalidDomain: If nothing host-like remains
    """
    raw = (value or "").strip()
    if not raw:
        raise InvalidDomain("Missing domain")
    try:
        host = urlsplit(raw if "://" in raw else f"https://{raw}").hostname or ""
    except ValueError:
        raise InvalidDomain(f"Invalid domain: {raw}") from None
    host = host.strip().rstrip(".").lower()
    if host.startswith("www."):
        host = host[4:]
    if not _HOSTNAME.match(host):
        raise InvalidDomain(f"Invalid domain: {raw}")
    return host


def preferred_challenge(domain: str, token: str) -> DomainChallenge:
    return DomainChallenge(
        domain=domain,
        token=token,
        record_host=f"{PREFERRED_HOST_PREFIX}.{domain}",
        record_type="TXT",
        record_value=f"{PREFERRED_VALUE_KEY}={token}",
    )


def txt_matches(records: list[str], token: str) -> bool:
    """
    True if any TXT answer carries the token in an accepted shape.

    Records are compared lower-cased. Exact equality or containment both
    count, since one TXT string often concatenates several assertions.
    """
    needle = token.strip().lower()
    if not needle:
        return False
    patterns = [shape.format(token=needle) for shape in ACCEPTED_VALUES]
    for record in records:
        value = record.strip().lower()
        if any(value == p or p in value for p in patterns):
            return True
    return False


def generate_verification_token() -> str:
    """128-bit hex token, persistent per profile."""
    return secrets.token_hex(16)


@dataclass
class DomainVerificationService:
    """
    Domain service for DNS TXT ownership proofs.

    Orchestrates token issuance, claim uniqueness, candidate lookups and
    profile promotion.
    """

    repository: VerificationRepository
    resolver: TxtResolver
    profile_cache: ProfileCache
    email_sender: EmailSender | None = None
    lookup_deadline_seconds: float = 8.0
    email_link_base: str = "http://localhost:8000/v1/verify/domain/email-confirm"

    def start(self, user_id: str, domain: str, domain_email: str | None = None) -> DomainChallenge:
        """
        Issue (or re-issue) the TXT challenge for a domain.

        Repeated calls return the same token: it is the profile's persistent
        verification token, not a per-call random value.

        Raises:
            InvalidDomain: If the domain cannot be normalized
            DomainAlreadyClaimed: If another account holds the domain
        """
        normalized = normalize_domain(domain)
        token = self.repository.ensure_verification_token(user_id, generate_verification_token())

        claim = self.repository.claim_domain(user_id, normalized, token, domain_email)
        if claim is None:
            logger.info("Domain claim conflict: %s already claimed", normalized)
            raise DomainAlreadyClaimed(normalized)

        logger.info("Domain challenge issued for %s", normalized)
        return preferred_challenge(normalized, claim.txt_token)

    def check(self, user_id: str, domain: str) -> CheckResult:
        """
        Look for the TXT record and promote the profile on a match.

        Returns:
            VERIFIED with status DOMAIN_VERIFIED on a match,
            NOT_YET_SATISFIED if no candidate host carries the token,
            ERROR(CLAIM_NOT_FOUND) if the caller has no claim on the domain

        Raises:
            InvalidDomain: If the domain cannot be normalized
        """
        normalized = normalize_domain(domain)
        claim = self.repository.get_domain_claim(normalized)
        current = self._current_status(user_id)

        if claim is None or claim.user_id != user_id:
            return CheckResult.error(current, CLAIM_NOT_FOUND, "No claim for this domain")

        host = self._find_record(normalized, claim.txt_token)
        if host is None:
            return CheckResult.not_yet(
                current, "TXT record not detected yet. DNS can take time to propagate; try again shortly."
            )

        profile = self.repository.mark_domain_verified(user_id, normalized, datetime.now(timezone.utc))
        logger.info("Domain verified: %s via %s", normalized, host)

        self.profile_cache.invalidate(user_id)
        self._issue_email_link(claim)
        return CheckResult.success(profile.verification_status)

    def confirm_email(self, email_token: str) -> DomainClaim | None:
        """Confirm the domain email link. Returns the claim, or None for an unknown token."""
        if not email_token:
            return None
        claim = self.repository.confirm_domain_email(email_token)
        if claim is not None:
            logger.info("Domain email confirmed for %s", claim.domain)
        return claim

    def _find_record(self, domain: str, token: str) -> str | None:
        hosts = [template.format(domain=domain) for template in CANDIDATE_HOSTS]
        calls = [lambda host=host: self._lookup(host) for host in hosts]

        found = first_in_order(
            calls,
            accept=lambda records: txt_matches(records, token),
            deadline_seconds=self.lookup_deadline_seconds,
        )
        return hosts[found[0]] if found is not None else None

    def _lookup(self, host: str) -> list[str]:
        try:
            return self.resolver.resolve_txt(host)
        except ResolverError as e:
            logger.warning("TXT lookup failed for %s: %s", host, e)
            return []

    def _issue_email_link(self, claim: DomainClaim) -> None:
        if self.email_sender is None or not claim.email_issued or claim.email_token:
            return
        email_token = secrets.token_hex(12)
        if not self.repository.issue_domain_email_token(claim.domain, email_token):
            return
        link = f"{self.email_link_base}?token={email_token}"
        self.email_sender.send_domain_email_link(claim.email_issued, claim.domain, link)

    def _current_status(self, user_id: str) -> VerificationStatus:
        profile = self.repository.get_profile(user_id)
        return profile.verification_status if profile else VerificationStatus.UNVERIFIED
