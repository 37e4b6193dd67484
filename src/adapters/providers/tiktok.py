"""
TikTok identity adapter (Open API v2).

Scope: user.info.basic
Endpoint: GET /v2/user/info/?fields=open_id,display_name,username

TikTok answers 200 with an "error" object; a code other than "ok" is a
failure even on a 2xx response.
"""

from typing import Any

from src.domain.exceptions import ProviderError
from src.domain.models import ProviderIdentity

from .base import HttpIdentityProvider, assert_bearer

USER_INFO_URL = "https://open.tiktokapis.com/v2/user/info/"

_ERROR_CODES = {
    "access_token_invalid": "TOKEN_REJECTED",
    "scope_not_authorized": "INSUFFICIENT_SCOPE",
    "scope_permission_missed": "INSUFFICIENT_SCOPE",
    "rate_limit_exceeded": "PROVIDER_UNAVAILABLE",
}


class TikTokIdentityProvider(HttpIdentityProvider):
    name = "tiktok"

    def fetch_identity(self, access_token: str | None, **options: Any) -> ProviderIdentity:
        token = assert_bearer(access_token, "tiktok")
        data = self._request(
            "GET",
            USER_INFO_URL,
            token,
            "/v2/user/info/",
            params={"fields": "open_id,display_name,username"},
        )

        error = data.get("error") or {}
        error_code = error.get("code", "ok")
        if error_code != "ok":
            raise ProviderError(
                f"tiktok: /v2/user/info/ failed ({error_code})",
                code=_ERROR_CODES.get(error_code, "PROVIDER_ERROR"),
            )

        user = (data.get("data") or {}).get("user") or {}
        open_id = user.get("open_id")
        if not open_id:
            raise ProviderError("TikTok returned no open_id.", code="NO_OPEN_ID")

        username = user.get("username")
        return ProviderIdentity(
            external_id=str(open_id),
            handle=user.get("display_name") or (f"@{username}" if username else None),
            url=f"https://www.tiktok.com/@{username}" if username else None,
            platform_context="tiktok-user",
            raw=data,
        )
