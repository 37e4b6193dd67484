"""
Facebook identity adapter (user or managed Page).

Scopes: public_profile; pages_show_list for kind="page".
Endpoints:
    GET /v19.0/me?fields=id,name,link
    GET /v19.0/me/accounts?fields=id,name,link
"""

from typing import Any

from src.domain.exceptions import ProviderError
from src.domain.models import ProviderIdentity

from .base import HttpIdentityProvider, assert_bearer

GRAPH_URL = "https://graph.facebook.com/v19.0"


class FacebookIdentityProvider(HttpIdentityProvider):
    name = "facebook"

    def fetch_identity(self, access_token: str | None, **options: Any) -> ProviderIdentity:
        """
        Resolve the user, or with kind="page" one of the Pages they manage.

        Options:
            kind: "user" (default) or "page"
            page_id: Page to pick; defaults to the first manageable Page
        """
        token = assert_bearer(access_token, "facebook")
        if options.get("kind") == "page":
            return self._page_identity(token, options.get("page_id"))

        me = self._request("GET", f"{GRAPH_URL}/me", token, "/me", params={"fields": "id,name,link"})
        if not me.get("id"):
            raise ProviderError("Facebook returned no user id.", code="NO_USER_ID")

        user_id = str(me["id"])
        return ProviderIdentity(
            external_id=user_id,
            handle=me.get("name") or None,
            url=me.get("link") or f"https://www.facebook.com/{user_id}",
            platform_context="facebook-user",
            raw=me,
        )

    def _page_identity(self, token: str, page_id: str | None) -> ProviderIdentity:
        data = self._request(
            "GET", f"{GRAPH_URL}/me/accounts", token, "/me/accounts", params={"fields": "id,name,link"}
        )
        pages = data.get("data") if isinstance(data.get("data"), list) else []
        if not pages:
            raise ProviderError("No Facebook Pages accessible.", code="NO_PAGES")

        page = pages[0]
        if page_id:
            page = next((p for p in pages if str(p.get("id")) == str(page_id)), page)

        return ProviderIdentity(
            external_id=str(page["id"]),
            handle=page.get("name") or None,
            url=page.get("link") or f"https://www.facebook.com/{page['id']}",
            platform_context="facebook-page",
            raw=page,
        )
