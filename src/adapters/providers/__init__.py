"""Provider identity adapters - one per OAuth platform."""

import httpx

from src.domain.ports import IdentityProvider

from .facebook import FacebookIdentityProvider
from .instagram import InstagramIdentityProvider
from .tiktok import TikTokIdentityProvider
from .twitter import TwitterIdentityProvider
from .youtube import YouTubeIdentityProvider

# Alternate provider keys used by OAuth libraries / the UI.
PROVIDER_ALIASES = {"youtube": "google", "x": "twitter"}


def build_providers(*, timeout: float = 10.0, http_client: httpx.Client | None = None) -> dict[str, IdentityProvider]:
    """Registry of adapters keyed by provider name, aliases included."""
    client = http_client or httpx.Client(timeout=timeout)
    adapters: list[IdentityProvider] = [
        YouTubeIdentityProvider(timeout=timeout, http_client=client),
        FacebookIdentityProvider(timeout=timeout, http_client=client),
        InstagramIdentityProvider(timeout=timeout, http_client=client),
        TwitterIdentityProvider(timeout=timeout, http_client=client),
        TikTokIdentityProvider(timeout=timeout, http_client=client),
    ]
    registry = {adapter.name: adapter for adapter in adapters}
    for alias, target in PROVIDER_ALIASES.items():
        registry[alias] = registry[target]
    return registry


__all__ = [
    "FacebookIdentityProvider",
    "InstagramIdentityProvider",
    "PROVIDER_ALIASES",
    "TikTokIdentityProvider",
    "TwitterIdentityProvider",
    "YouTubeIdentityProvider",
    "build_providers",
]
