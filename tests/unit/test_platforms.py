"""
Unit tests for the code-in-bio platform catalog.
"""

import pytest

from src.domain.exceptions import UnsupportedPlatform
from src.domain.platforms import (
    BIO_CODE_PLATFORMS,
    bio_sources,
    build_default_url,
    normalize_platform,
    parse_handle_from_url,
)


class TestNormalizePlatform:
    def test_lowercases_and_strips(self) -> None:
        assert normalize_platform("  GitHub ") == "github"

    @pytest.mark.parametrize("platform", ["", None, "myspace", "google"])
    def test_rejects_unknown(self, platform) -> None:
        with pytest.raises(UnsupportedPlatform):
            normalize_platform(platform)

    def test_catalog(self) -> None:
        assert BIO_CODE_PLATFORMS == {
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


class TestParseHandleFromUrl:
    @pytest.mark.parametrize(
        "platform, url, handle",
        [
            ("github", "https://github.com/octocat", "octocat"),
            ("github", "github.com/octocat/repo", "octocat"),
            ("x", "https://twitter.com/jack", "jack"),
            ("x", "https://x.com/jack", "jack"),
            ("instagram", "https://www.instagram.com/natgeo/", "natgeo"),
            ("tiktok", "https://www.tiktok.com/@creator", "creator"),
            ("youtube", "https://www.youtube.com/@channel", "channel"),
            ("youtube", "https://www.youtube.com/channel/UC123", "UC123"),
            ("substack", "https://writer.substack.com", "writer"),
            ("etsy", "https://www.etsy.com/shop/MyShop", "MyShop"),
            ("linkedin", "https://www.linkedin.com/in/jane-doe", "jane-doe"),
            ("facebook", "https://www.facebook.com/acme", "acme"),
        ],
    )
    def test_extracts_handle(self, platform: str, url: str, handle: str) -> None:
        assert parse_handle_from_url(platform, url) == handle

    def test_foreign_host_yields_none(self) -> None:
        assert parse_handle_from_url("github", "https://gitlab.com/octocat") is None

    def test_bare_host_yields_none(self) -> None:
        assert parse_handle_from_url("github", "https://github.com/") is None


class TestBuildDefaultUrl:
    @pytest.mark.parametrize(
        "platform, handle, url",
        [
            ("github", "octocat", "https://github.com/octocat"),
            ("x", "@jack", "https://x.com/jack"),
            ("tiktok", "creator", "https://www.tiktok.com/@creator"),
            ("youtube", "@chan", "https://www.youtube.com/@chan"),
            ("substack", "writer", "https://writer.substack.com"),
            ("etsy", "MyShop", "https://www.etsy.com/shop/MyShop"),
        ],
    )
    def test_builds_url(self, platform: str, handle: str, url: str) -> None:
        assert build_default_url(platform, handle) == url

    def test_unknown_platform_raises(self) -> None:
        with pytest.raises(UnsupportedPlatform):
            build_default_url("myspace", "tom")


class TestBioSources:
    def test_github_prefers_api_fields(self) -> None:
        sources = bio_sources("github", "octocat", "https://github.com/octocat")

        assert [s.url for s in sources] == ["https://api.github.com/users/octocat", "https://github.com/octocat"]
        assert sources[0].json_fields == ("name", "bio", "blog")
        assert sources[1].json_fields is None

    def test_github_without_handle_uses_page_only(self) -> None:
        assert [s.url for s in bio_sources("github", None, "https://github.com/x")] == ["https://github.com/x"]

    def test_substack_checks_about_first(self) -> None:
        sources = bio_sources("substack", "writer", "https://writer.substack.com/")

        assert [s.url for s in sources] == ["https://writer.substack.com/about", "https://writer.substack.com/"]

    def test_other_platforms_use_profile_page(self) -> None:
        assert [s.url for s in bio_sources("x", "jack", "https://x.com/jack")] == ["https://x.com/jack"]
