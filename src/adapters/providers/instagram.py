"""
Instagram Business identity adapter, resolved through the Facebook Graph.

Scopes: instagram_basic, pages_show_list
Steps:
    1. GET /me/accounts                                   (manageable Pages)
    2. GET /{page_id}?fields=connected_instagram_account  (per Page)
    3. GET /{ig_id}?fields=id,username,name               (first linked account)
"""

from typing import Any

from src.domain.exceptions import ProviderError
from src.domain.models import ProviderIdentity

from .base import HttpIdentityProvider, assert_bearer
from .facebook import GRAPH_URL


class InstagramIdentityProvider(HttpIdentityProvider):
    name = "instagram"

    def fetch_identity(self, access_token: str | None, **options: Any) -> ProviderIdentity:
        token = assert_bearer(access_token, "instagram")

        data = self._request("GET", f"{GRAPH_URL}/me/accounts", token, "/me/accounts", params={"fields": "id,name"})
        pages = data.get("data") if isinstance(data.get("data"), list) else []
        if not pages:
            raise ProviderError(
                "No Facebook Pages accessible. Instagram Business accounts are reached through a Page you manage.",
                code="NO_PAGES",
            )

        for page in pages:
            page_id = page.get("id") if isinstance(page, dict) else None
            if not page_id:
                continue
            page_data = self._request(
                "GET",
                f"{GRAPH_URL}/{page_id}",
                token,
                "/{page_id}?fields=connected_instagram_account",
                params={"fields": "connected_instagram_account"},
            )
            linked = page_data.get("connected_instagram_account") or {}
            if not linked.get("id"):
                continue

            ig = self._request(
                "GET",
                f"{GRAPH_URL}/{linked['id']}",
                token,
                "/{ig_id}?fields=id,username,name",
                params={"fields": "id,username,name"},
            )
            username = ig.get("username")
            return ProviderIdentity(
                external_id=str(ig.get("id") or linked["id"]),
                handle=username or ig.get("name"),
                url=f"https://www.instagram.com/{username}" if username else None,
                platform_context="instagram-business",
                raw={"page": page, "ig": ig},
            )

        raise ProviderError(
            "No Instagram Business account is linked to your Facebook Pages.", code="NO_LINKED_ACCOUNT"
        )
