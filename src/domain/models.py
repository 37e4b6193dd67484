"""
Domain models - Verification records and their state enums.

Profile and PlatformAccount are durable identity records.
DomainClaim and BioCode are transient proof artifacts
(created -> resolved -> retired).
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class VerificationStatus(str, Enum):
    """
    Verification tier of a profile.

    Promotions are monotonic in trust rank:
        UNVERIFIED < PLATFORM_VERIFIED < DOMAIN_VERIFIED

    A platform-tier proof never demotes a DOMAIN_VERIFIED profile.
    Domain proof always wins. The only path back down is the opt-in
    disconnect policy, which never touches DOMAIN_VERIFIED.
    """

    UNVERIFIED = "UNVERIFIED"
    PLATFORM_VERIFIED = "PLATFORM_VERIFIED"
    DOMAIN_VERIFIED = "DOMAIN_VERIFIED"

    @property
    def rank(self) -> int:
        return _STATUS_RANK[self.value]

    def promote(self, target: "VerificationStatus") -> "VerificationStatus":
        """Return the stronger of the current and the target tier."""
        return target if target.rank > self.rank else self


_STATUS_RANK = {
    "UNVERIFIED": 0,
    "PLATFORM_VERIFIED": 1,
    "DOMAIN_VERIFIED": 2,
}


class ClaimStatus(str, Enum):
    """DomainClaim lifecycle: PENDING -> VERIFIED."""

    PENDING = "PENDING"
    VERIFIED = "VERIFIED"


class BioCodeStatus(str, Enum):
    """BioCode lifecycle: PENDING -> VERIFIED (consumed, never matchable again)."""

    PENDING = "PENDING"
    VERIFIED = "VERIFIED"


class AccountStatus(str, Enum):
    """PlatformAccount status."""

    PENDING = "PENDING"
    VERIFIED = "VERIFIED"
    FAILED = "FAILED"


class Outcome(Enum):
    """
    Three-valued result of a verification check.

    - VERIFIED: proof accepted, state promoted
    - NOT_YET_SATISFIED: retryable (DNS propagation, bio edit not live yet)
    - ERROR: the check cannot proceed; see CheckResult.error_code
    """

    VERIFIED = "verified"
    NOT_YET_SATISFIED = "not_yet_satisfied"
    ERROR = "error"


@dataclass
class Profile:
    user_id: str
    verification_status: VerificationStatus = VerificationStatus.UNVERIFIED
    verification_token: str | None = None
    platform_verified_at: datetime | None = None
    domain_verified_at: datetime | None = None
    verify_domain: str | None = None
    verified_platforms: dict[str, dict[str, Any]] = field(default_factory=dict)


@dataclass
class DomainClaim:
    domain: str
    user_id: str
    txt_token: str
    status: ClaimStatus = ClaimStatus.PENDING
    dns_verified: bool = False
    verified_at: datetime | None = None
    email_issued: str | None = None
    email_token: str | None = None
    email_verified: bool = False


@dataclass
class BioCode:
    id: int
    user_id: str
    platform: str
    code: str
    profile_url: str
    expires_at: datetime
    status: BioCodeStatus = BioCodeStatus.PENDING
    verified_at: datetime | None = None


@dataclass
class PlatformAccount:
    id: int
    user_id: str
    provider: str
    external_id: str
    handle: str | None = None
    profile_url: str | None = None
    platform_context: str | None = None
    status: AccountStatus = AccountStatus.PENDING
    verified_at: datetime | None = None


@dataclass(frozen=True)
class ProviderIdentity:
    """
    Normalized "who am I" answer from an OAuth provider.

    external_id is the provider's immutable account id. Display handles are
    reassignable and are never used as proof of continuity.
    """

    external_id: str
    platform_context: str
    handle: str | None = None
    url: str | None = None
    raw: Any = None


@dataclass(frozen=True)
class DomainChallenge:
    """TXT record the caller must publish to prove domain control."""

    domain: str
    token: str
    record_host: str
    record_type: str
    record_value: str

    @property
    def instructions(self) -> list[str]:
        return [
            f"Add a TXT record at Host: {self.record_host}",
            f"Type: {self.record_type}",
            f"Value: {self.record_value}",
            "Note: DNS changes can take time to propagate.",
        ]


@dataclass(frozen=True)
class CheckResult:
    """Outcome of a verification check plus the profile tier after it."""

    outcome: Outcome
    status: VerificationStatus
    message: str | None = None
    error_code: str | None = None

    @property
    def verified(self) -> bool:
        return self.outcome is Outcome.VERIFIED

    @classmethod
    def success(cls, status: VerificationStatus) -> "CheckResult":
        return cls(Outcome.VERIFIED, status)

    @classmethod
    def not_yet(cls, status: VerificationStatus, message: str) -> "CheckResult":
        return cls(Outcome.NOT_YET_SATISFIED, status, message=message)

    @classmethod
    def error(cls, status: VerificationStatus, error_code: str, message: str) -> "CheckResult":
        return cls(Outcome.ERROR, status, message=message, error_code=error_code)
