"""
Domain layer - Pure business logic with zero framework imports.

This package contains the verification state machine (domain TXT, code-in-bio
and OAuth platform proofs) and the schema export gate that consumes the
resulting tier. It defines its own port interfaces for infrastructure
abstraction, ensuring true hexagonal architecture decoupling.
"""

from .bio_verification import BioVerificationService
from .domain_verification import DomainVerificationService, normalize_domain
from .exceptions import (
    DomainAlreadyClaimed,
    FetchError,
    InvalidDomain,
    InvalidProfileUrl,
    ProviderError,
    ResolverError,
    UnsupportedPlatform,
    VerificationError,
)
from .export_gate import SchemaType, decide_export_type, desired_schema_type
from .models import CheckResult, DomainChallenge, Outcome, ProviderIdentity, VerificationStatus
from .platform_verification import PlatformVerificationService

__all__ = [
    "BioVerificationService",
    "CheckResult",
    "DomainAlreadyClaimed",
    "DomainChallenge",
    "DomainVerificationService",
    "FetchError",
    "InvalidDomain",
    "InvalidProfileUrl",
    "Outcome",
    "PlatformVerificationService",
    "ProviderError",
    "ProviderIdentity",
    "ResolverError",
    "SchemaType",
    "UnsupportedPlatform",
    "VerificationError",
    "VerificationStatus",
    "decide_export_type",
    "desired_schema_type",
    "normalize_domain",
]
