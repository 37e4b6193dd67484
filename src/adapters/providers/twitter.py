"""
Twitter / X identity adapter.

Scopes: tweet.read users.read
Endpoint: GET /2/users/me
"""

from typing import Any

from src.domain.exceptions import ProviderError
from src.domain.models import ProviderIdentity

from .base import HttpIdentityProvider, assert_bearer

USERS_ME_URL = "https://api.twitter.com/2/users/me"


class TwitterIdentityProvider(HttpIdentityProvider):
    name = "twitter"

    def fetch_identity(self, access_token: str | None, **options: Any) -> ProviderIdentity:
        token = assert_bearer(access_token, "twitter")
        data = self._request("GET", USERS_ME_URL, token, "/2/users/me")

        user = data.get("data") or {}
        if not user.get("id"):
            raise ProviderError("Twitter returned no user id.", code="NO_USER_ID")

        username = user.get("username")
        return ProviderIdentity(
            external_id=str(user["id"]),
            handle=f"@{username}" if username else None,
            url=f"https://x.com/{username}" if username else None,
            platform_context="twitter-user",
            raw=data,
        )
