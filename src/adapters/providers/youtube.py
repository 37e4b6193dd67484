"""
Google / YouTube identity adapter.

Scope: https://www.googleapis.com/auth/youtube.readonly
Endpoint: GET /youtube/v3/channels?part=id,snippet&mine=true
"""

from typing import Any

from src.domain.exceptions import ProviderError
from src.domain.models import ProviderIdentity

from .base import HttpIdentityProvider, assert_bearer

CHANNELS_URL = "https://www.googleapis.com/youtube/v3/channels"


class YouTubeIdentityProvider(HttpIdentityProvider):
    """Resolves the channel owned by the Google account. The channel id is canonical."""

    name = "google"

    def fetch_identity(self, access_token: str | None, **options: Any) -> ProviderIdentity:
        token = assert_bearer(access_token, "google/youtube")
        data = self._request(
            "GET",
            CHANNELS_URL,
            token,
            "/youtube/v3/channels?mine=true",
            params={"part": "id,snippet", "mine": "true"},
        )

        items = data.get("items") or []
        channel = items[0] if items else {}
        if not channel.get("id"):
            raise ProviderError(
                "No YouTube channel found on this Google account.", code="NO_CHANNEL"
            )

        channel_id = str(channel["id"])
        snippet = channel.get("snippet") or {}
        return ProviderIdentity(
            external_id=channel_id,
            handle=snippet.get("customUrl") or snippet.get("title"),
            url=f"https://www.youtube.com/channel/{channel_id}",
            platform_context="google-youtube",
            raw=data,
        )
