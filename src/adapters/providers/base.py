"""
Shared HTTP plumbing for provider identity adapters.

Turns transport failures and non-2xx answers into ProviderError codes a
caller can act on:

- MISSING_TOKEN: no access token at all -> reconnect
- TOKEN_REJECTED: 401 -> reconnect (expired or revoked token)
- INSUFFICIENT_SCOPE: 403, or a body mentioning scopes/permissions -> re-consent
- PROVIDER_UNAVAILABLE: timeout, transport error, 429 or 5xx -> retry later
- PROVIDER_ERROR: anything else
"""

from typing import Any

import httpx

from src.domain.exceptions import ProviderError

_SCOPE_HINTS = ("scope", "permission", "forbidden", "not authorized", "unauthorized")


def assert_bearer(access_token: str | None, provider: str) -> str:
    if not access_token or not access_token.strip():
        raise ProviderError(
            f"Missing {provider} access token. Please reconnect {provider}.", code="MISSING_TOKEN"
        )
    return access_token.strip()


def error_for_response(response: httpx.Response, provider: str, endpoint: str) -> ProviderError:
    status = response.status_code
    body = response.text[:500]
    lowered = body.lower()

    if status == 401:
        code = "TOKEN_REJECTED"
    elif status == 429 or status >= 500:
        code = "PROVIDER_UNAVAILABLE"
    elif status == 403 or any(hint in lowered for hint in _SCOPE_HINTS):
        code = "INSUFFICIENT_SCOPE"
    else:
        code = "PROVIDER_ERROR"
    return ProviderError(f"{provider}: {endpoint} failed ({status})", code=code, status=status)


class HttpIdentityProvider:
    """
    Base for adapters that call a provider's REST API with a bearer token.

    Subclasses set name and implement fetch_identity().
    """

    name = "provider"

    def __init__(self, *, timeout: float = 10.0, http_client: httpx.Client | None = None) -> None:
        self._http = http_client or httpx.Client(timeout=timeout)
        self._timeout = timeout

    def _request(
        self,
        method: str,
        url: str,
        access_token: str,
        endpoint: str,
        **kwargs: Any,
    ) -> dict[str, Any]:
        try:
            response = self._http.request(
                method,
                url,
                headers={"Authorization": f"Bearer {access_token}"},
                timeout=self._timeout,
                **kwargs,
            )
        except httpx.HTTPError as e:
            raise ProviderError(
                f"{self.name}: {endpoint} unreachable ({type(e).__name__})", code="PROVIDER_UNAVAILABLE"
            ) from e

        if not response.is_success:
            raise error_for_response(response, self.name, endpoint)

        try:
            payload = response.json()
        except ValueError as e:
            raise ProviderError(f"{self.name}: {endpoint} returned invalid JSON") from e
        return payload if isinstance(payload, dict) else {}
