"""
API v1 routes.

Defines REST endpoints for the verification API:
- /verify/domain/*    DNS TXT domain ownership
- /verify/bio/*       code-in-bio platform proofs
- /verify/platform/*  OAuth provider identity
- /verification/status and /export/schema-type

Checks that reach the network are plain `def` handlers so FastAPI runs them
in its threadpool. "Not yet" is always a 200 with verified=false.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from src.api.dependencies import (
    get_bio_service,
    get_current_user,
    get_domain_service,
    get_platform_service,
    rate_limited,
)
from src.api.models import (
    BioCheckRequest,
    BioGenerateRequest,
    BioGenerateResponse,
    CheckResponse,
    CodedErrorResponse,
    DomainCheckRequest,
    DomainEmailConfirmResponse,
    DomainStartRequest,
    DomainStartResponse,
    ErrorResponse,
    PlatformAccountResponse,
    PlatformConnectRequest,
    SchemaTypeRequest,
    SchemaTypeResponse,
    VerificationStatusResponse,
)
from src.domain.bio_verification import NO_ACTIVE_CODE, BioVerificationService
from src.domain.domain_verification import CLAIM_NOT_FOUND, DomainVerificationService
from src.domain.exceptions import DomainAlreadyClaimed, InvalidDomain, InvalidProfileUrl, UnsupportedPlatform
from src.domain.export_gate import decide_export_type, desired_schema_type
from src.domain.models import CheckResult, Outcome, PlatformAccount
from src.domain.platform_verification import PlatformVerificationService

router = APIRouter(tags=["v1"])

# CheckResult error codes -> HTTP status. Anything unlisted is an upstream failure.
ERROR_STATUS = {
    CLAIM_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    NO_ACTIVE_CODE: status.HTTP_400_BAD_REQUEST,
    "MISSING_TOKEN": status.HTTP_401_UNAUTHORIZED,
    "TOKEN_REJECTED": status.HTTP_401_UNAUTHORIZED,
    "INSUFFICIENT_SCOPE": status.HTTP_403_FORBIDDEN,
    "NO_USER_ID": status.HTTP_400_BAD_REQUEST,
    "NO_CHANNEL": status.HTTP_400_BAD_REQUEST,
    "NO_PAGES": status.HTTP_400_BAD_REQUEST,
    "NO_LINKED_ACCOUNT": status.HTTP_400_BAD_REQUEST,
    "NO_OPEN_ID": status.HTTP_400_BAD_REQUEST,
}

CHECK_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid input"},
    401: {"description": "Caller not identified"},
    429: {"model": ErrorResponse, "description": "Rate limit exceeded"},
}


def _coded_error(status_code: int, code: str, message: str) -> HTTPException:
    return HTTPException(status_code=status_code, detail={"code": code, "message": message})


def _to_response(result: CheckResult) -> CheckResponse:
    """Map a CheckResult to 200, or raise for the ERROR outcome."""
    if result.outcome is Outcome.ERROR:
        code = result.error_code or "PROVIDER_ERROR"
        raise _coded_error(
            ERROR_STATUS.get(code, status.HTTP_502_BAD_GATEWAY), code, result.message or "Verification failed"
        )
    return CheckResponse.from_result(result)


def _account_response(account: PlatformAccount) -> PlatformAccountResponse:
    return PlatformAccountResponse(
        id=account.id,
        provider=account.provider,
        external_id=account.external_id,
        handle=account.handle,
        profile_url=account.profile_url,
        platform_context=account.platform_context,
        status=account.status,
        verified_at=account.verified_at,
    )


# --- Domain -----------------------------------------------------------------


@router.post(
    "/verify/domain/start",
    response_model=DomainStartResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid domain"},
        409: {"model": ErrorResponse, "description": "Domain claimed by another account"},
        422: {"description": "Validation error"},
    },
    summary="Start a domain TXT challenge",
)
def start_domain(
    request_data: DomainStartRequest,
    user_id: str = Depends(get_current_user),
    service: DomainVerificationService = Depends(get_domain_service),
) -> DomainStartResponse:
    """
    Claim a domain and return the TXT record to publish.

    Repeated calls return the same token.
    """
    try:
        challenge = service.start(user_id, request_data.domain, request_data.domain_email)
    except InvalidDomain as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from None
    except DomainAlreadyClaimed:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Domain already claimed by another account",
        ) from None

    return DomainStartResponse(
        domain=challenge.domain,
        token=challenge.token,
        record_host=challenge.record_host,
        record_type=challenge.record_type,
        record_value=challenge.record_value,
        instructions=challenge.instructions,
    )


@router.post(
    "/verify/domain/check",
    response_model=CheckResponse,
    responses={**CHECK_RESPONSES, 404: {"model": CodedErrorResponse, "description": "No claim for this domain"}},
    summary="Check the domain TXT record",
    dependencies=[Depends(rate_limited("domain"))],
)
def check_domain(
    request_data: DomainCheckRequest,
    user_id: str = Depends(get_current_user),
    service: DomainVerificationService = Depends(get_domain_service),
) -> CheckResponse:
    try:
        result = service.check(user_id, request_data.domain)
    except InvalidDomain as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from None
    return _to_response(result)


@router.get(
    "/verify/domain/email-confirm",
    response_model=DomainEmailConfirmResponse,
    responses={404: {"model": ErrorResponse, "description": "Unknown or used link"}},
    summary="Confirm a domain email link",
)
def confirm_domain_email(
    token: str = Query(..., min_length=1, max_length=128),
    service: DomainVerificationService = Depends(get_domain_service),
) -> DomainEmailConfirmResponse:
    """Reached from the emailed link; the token itself authenticates the request."""
    claim = service.confirm_email(token)
    if claim is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invalid or expired link")
    return DomainEmailConfirmResponse(domain=claim.domain, email_verified=claim.email_verified)


# --- Code in bio ------------------------------------------------------------


@router.post(
    "/verify/bio/generate",
    response_model=BioGenerateResponse,
    responses={400: {"model": ErrorResponse, "description": "Unsupported platform"}},
    summary="Generate a code-in-bio code",
)
def generate_bio_code(
    request_data: BioGenerateRequest,
    user_id: str = Depends(get_current_user),
    service: BioVerificationService = Depends(get_bio_service),
) -> BioGenerateResponse:
    """Returns the live code for the platform, minting one if none is active."""
    try:
        code = service.generate(user_id, request_data.platform, request_data.profile_url, request_data.ttl_hours)
    except UnsupportedPlatform as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Unsupported platform: {e}") from None

    return BioGenerateResponse(
        code=code.code,
        platform=code.platform,
        expires_at=code.expires_at,
        instructions=[
            f"Add this code to your public bio or about section on {code.platform}: {code.code}",
            "Save your profile, then run the check.",
            f"The code expires at {code.expires_at.isoformat()}.",
        ],
    )


@router.post(
    "/verify/bio/check",
    response_model=CheckResponse,
    responses=CHECK_RESPONSES,
    summary="Check a public profile for the code",
    dependencies=[Depends(rate_limited("bio"))],
)
def check_bio_code(
    request_data: BioCheckRequest,
    user_id: str = Depends(get_current_user),
    service: BioVerificationService = Depends(get_bio_service),
) -> CheckResponse:
    try:
        result = service.check(user_id, request_data.platform, request_data.profile_url, request_data.handle)
    except UnsupportedPlatform as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Unsupported platform: {e}") from None
    except InvalidProfileUrl as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from None
    return _to_response(result)


# --- OAuth platforms --------------------------------------------------------


@router.post(
    "/verify/platform/connect",
    response_model=CheckResponse,
    responses={
        400: {"model": CodedErrorResponse, "description": "Unsupported provider or missing sub-account"},
        401: {"model": CodedErrorResponse, "description": "Missing or rejected token"},
        403: {"model": CodedErrorResponse, "description": "Insufficient scope"},
        429: {"model": ErrorResponse, "description": "Rate limit exceeded"},
        502: {"model": CodedErrorResponse, "description": "Provider unavailable"},
    },
    summary="Record an OAuth provider identity",
    dependencies=[Depends(rate_limited("platform"))],
)
def connect_platform(
    request_data: PlatformConnectRequest,
    user_id: str = Depends(get_current_user),
    service: PlatformVerificationService = Depends(get_platform_service),
) -> CheckResponse:
    options = {k: v for k, v in {"kind": request_data.kind, "page_id": request_data.page_id}.items() if v}
    try:
        result = service.connect(user_id, request_data.provider, request_data.access_token, **options)
    except UnsupportedPlatform:
        raise _coded_error(
            status.HTTP_400_BAD_REQUEST, "UNSUPPORTED_PROVIDER", f"Unsupported provider: {request_data.provider}"
        ) from None
    return _to_response(result)


@router.get(
    "/verify/platform/list",
    response_model=list[PlatformAccountResponse],
    summary="List linked platform accounts",
)
def list_platform_accounts(
    user_id: str = Depends(get_current_user),
    service: PlatformVerificationService = Depends(get_platform_service),
) -> list[PlatformAccountResponse]:
    return [_account_response(account) for account in service.list_accounts(user_id)]


@router.delete(
    "/verify/platform/{account_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse, "description": "Account not found"}},
    summary="Disconnect a platform account",
)
def disconnect_platform(
    account_id: int,
    user_id: str = Depends(get_current_user),
    service: PlatformVerificationService = Depends(get_platform_service),
) -> Response:
    if not service.disconnect(user_id, account_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Account not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# --- Profile ----------------------------------------------------------------


@router.get(
    "/verification/status",
    response_model=VerificationStatusResponse,
    summary="Current verification tier",
)
def verification_status(
    user_id: str = Depends(get_current_user),
    service: PlatformVerificationService = Depends(get_platform_service),
) -> VerificationStatusResponse:
    profile = service.get_profile(user_id)
    return VerificationStatusResponse(
        user_id=profile.user_id,
        verification_status=profile.verification_status,
        platform_verified_at=profile.platform_verified_at,
        domain_verified_at=profile.domain_verified_at,
        verify_domain=profile.verify_domain,
        verified_platforms=profile.verified_platforms,
        accounts=[_account_response(account) for account in service.list_accounts(user_id)],
    )


@router.post(
    "/export/schema-type",
    response_model=SchemaTypeResponse,
    summary="Decide the schema.org @type to publish",
)
def export_schema_type(
    request_data: SchemaTypeRequest,
    user_id: str = Depends(get_current_user),
    service: PlatformVerificationService = Depends(get_platform_service),
) -> SchemaTypeResponse:
    """
    Gate the declared entity type by the caller's stored tier.

    Organization and LocalBusiness are only published for DOMAIN_VERIFIED
    profiles; everything else is published as Person.
    """
    current = service.get_profile(user_id).verification_status
    desired = desired_schema_type(request_data.entity_type, request_data.legal_name)
    return SchemaTypeResponse(
        schema_type=decide_export_type(desired, current).value,
        desired_type=desired.value,
        verification_status=current,
    )
