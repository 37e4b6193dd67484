"""
API request and response models.

Pydantic models for FastAPI endpoint validation and OpenAPI schema generation.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, EmailStr, Field

from src.domain.models import AccountStatus, CheckResult, VerificationStatus


class DomainStartRequest(BaseModel):
    """Request model for starting a domain TXT challenge."""

    domain: str = Field(..., min_length=1, max_length=2048, description="Domain or URL, e.g. https://www.example.com")
    domain_email: EmailStr | None = Field(
        default=None, description="Optional address at the domain to receive a confirmation link"
    )


class DomainStartResponse(BaseModel):
    """TXT record to publish."""

    domain: str
    token: str
    record_host: str
    record_type: str
    record_value: str
    instructions: list[str]


class DomainCheckRequest(BaseModel):
    domain: str = Field(..., min_length=1, max_length=2048)


class DomainEmailConfirmResponse(BaseModel):
    domain: str
    email_verified: bool


class BioGenerateRequest(BaseModel):
    """Request model for minting a code-in-bio code."""

    platform: str = Field(..., min_length=1, max_length=32, description="Platform key, e.g. github")
    profile_url: str | None = Field(default=None, max_length=2048)
    ttl_hours: float | None = Field(default=None, description="Lifetime in hours, (0, 72]; default 24")


class BioGenerateResponse(BaseModel):
    code: str
    platform: str
    expires_at: datetime
    instructions: list[str]


class BioCheckRequest(BaseModel):
    platform: str = Field(..., min_length=1, max_length=32)
    profile_url: str | None = Field(default=None, max_length=2048)
    handle: str | None = Field(default=None, max_length=256)


class PlatformConnectRequest(BaseModel):
    """Request model for recording an OAuth-backed platform identity."""

    provider: str = Field(..., min_length=1, max_length=32, description="google, facebook, instagram, twitter or tiktok")
    access_token: str | None = Field(default=None, description="Token from the upstream OAuth consent flow")
    kind: str | None = Field(default=None, description='Facebook only: "user" (default) or "page"')
    page_id: str | None = Field(default=None, description="Facebook only: Page to pick")


class CheckResponse(BaseModel):
    """
    Result of any verification check.

    "Not yet" is a normal 200 answer with verified=false, never an error.
    """

    verified: bool
    status: VerificationStatus
    message: str | None = None
    code: str | None = None

    @classmethod
    def from_result(cls, result: CheckResult) -> "CheckResponse":
        return cls(
            verified=result.verified,
            status=result.status,
            message=result.message,
            code=result.error_code,
        )


class PlatformAccountResponse(BaseModel):
    id: int
    provider: str
    external_id: str | None
    handle: str | None
    profile_url: str | None
    platform_context: str | None
    status: AccountStatus
    verified_at: datetime | None


class VerificationStatusResponse(BaseModel):
    """Caller's current tier and proofs."""

    user_id: str
    verification_status: VerificationStatus
    platform_verified_at: datetime | None
    domain_verified_at: datetime | None
    verify_domain: str | None
    verified_platforms: dict[str, Any]
    accounts: list[PlatformAccountResponse]


class SchemaTypeRequest(BaseModel):
    entity_type: str | None = Field(default=None, description='Declared category, e.g. "Business"')
    legal_name: str | None = None


class SchemaTypeResponse(BaseModel):
    schema_type: str
    desired_type: str
    verification_status: VerificationStatus


class ErrorResponse(BaseModel):
    """Standard error response model."""

    detail: str


class ErrorDetail(BaseModel):
    code: str
    message: str


class CodedErrorResponse(BaseModel):
    """Error response carrying a machine-readable code."""

    detail: ErrorDetail
