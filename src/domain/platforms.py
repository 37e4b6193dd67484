"""
Platform catalog for code-in-bio verification.

Knows, per platform, how to pull a handle out of a profile URL, how to build
the default public URL from a handle, and which public sources carry the
user-editable bio text.
"""

from dataclasses import dataclass
from urllib.parse import urlsplit

from .exceptions import UnsupportedPlatform

BIO_CODE_PLATFORMS = frozenset(
    {
        "github",
        "x",
        "instagram",
        "tiktok",
        "youtube",
        "substack",
        "etsy",
        "linkedin",
        "facebook",
    }
)

GITHUB_API_USER_URL = "https://api.github.com/users/{handle}"


@dataclass(frozen=True)
class BioSource:
    """A public resource that may contain the code, plus how to read it."""

    url: str
    json_fields: tuple[str, ...] | None = None


def normalize_platform(platform: str | None) -> str:
    """Lower-case and validate a code-in-bio platform key."""
    key = (platform or "").strip().lower()
    if key not in BIO_CODE_PLATFORMS:
        raise UnsupportedPlatform(platform or "")
    return key


def parse_handle_from_url(platform: str, url: str) -> str | None:
    """Extract the account handle from a profile URL, or None if it does not fit the platform."""
    parts = urlsplit(url if "://" in url else f"https://{url}")
    host = (parts.hostname or "").lower()
    segments = [s for s in parts.path.split("/") if s]

    if platform == "substack":
        return host.removesuffix(".substack.com") if host.endswith(".substack.com") else None
    if not segments:
        return None

    if platform == "github" and host.endswith("github.com"):
        return segments[0]
    if platform == "x" and (host.endswith("x.com") or host.endswith("twitter.com")):
        return segments[0]
    if platform == "instagram" and host.endswith("instagram.com"):
        return segments[0]
    if platform == "tiktok" and host.endswith("tiktok.com"):
        return segments[0].lstrip("@")
    if platform == "youtube" and host.endswith("youtube.com"):
        if segments[0].startswith("@"):
            return segments[0][1:]
        if segments[0] == "channel" and len(segments) > 1:
            return segments[1]
        return segments[0]
    if platform == "etsy" and host.endswith("etsy.com"):
        # /shop/<handle>
        return segments[1] if len(segments) > 1 else None
    if platform == "linkedin" and host.endswith("linkedin.com"):
        # /in/<handle> or /company/<handle>
        return segments[1] if len(segments) > 1 else None
    if platform == "facebook" and host.endswith("facebook.com"):
        return segments[0]
    return None


def build_default_url(platform: str, handle: str) -> str:
    """Public profile URL for a bare handle."""
    handle = handle.strip()
    if platform == "github":
        return f"https://github.com/{handle}"
    if platform == "x":
        return f"https://x.com/{handle.lstrip('@')}"
    if platform == "instagram":
        return f"https://www.instagram.com/{handle.lstrip('@')}"
    if platform == "tiktok":
        return f"https://www.tiktok.com/@{handle.lstrip('@')}"
    if platform == "youtube":
        return f"https://www.youtube.com/@{handle.lstrip('@')}"
    if platform == "substack":
        return f"https://{handle}.substack.com"
    if platform == "etsy":
        return f"https://www.etsy.com/shop/{handle}"
    if platform == "linkedin":
        return f"https://www.linkedin.com/in/{handle}"
    if platform == "facebook":
        return f"https://www.facebook.com/{handle}"
    raise UnsupportedPlatform(platform)


def bio_sources(platform: str, handle: str | None, url: str) -> list[BioSource]:
    """
    Sources to search for a code, most specific first.

    Structured profile fields beat secondary "about" pages, which beat the
    raw profile page.
    """
    sources: list[BioSource] = []
    if platform == "github" and handle:
        sources.append(
            BioSource(GITHUB_API_USER_URL.format(handle=handle), json_fields=("name", "bio", "blog"))
        )
    if platform == "substack":
        sources.append(BioSource(f"{url.rstrip('/')}/about"))
    sources.append(BioSource(url))
    return sources
