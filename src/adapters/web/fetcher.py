"""
Public profile fetcher - Implements WebFetcher protocol.

GETs user-supplied profile URLs and platform "about" pages with a fixed
timeout and an identifying User-Agent.
"""

import re
from collections.abc import Sequence

import httpx

from src.domain.exceptions import FetchError

_WHITESPACE = re.compile(r"\s+")


class HttpxWebFetcher:
    """
    Implements WebFetcher protocol via httpx.

    Uses structural subtyping - no explicit inheritance from Protocol.
    """

    def __init__(
        self,
        *,
        user_agent: str = "AEOBRO-VerifyBot/1.0 (+https://aeobro.com)",
        timeout: float = 8.0,
        http_client: httpx.Client | None = None,
    ) -> None:
        self._http = http_client or httpx.Client(timeout=timeout, follow_redirects=True)
        self._user_agent = user_agent
        self._timeout = timeout

    def fetch_text(self, url: str, json_fields: Sequence[str] | None = None) -> str:
        """
        GET url and return whitespace-normalized text.

        With json_fields the body is parsed as JSON and the named string
        fields are joined with newlines (structured profile APIs).

        Raises:
            FetchError: On transport failure, timeout, non-2xx or bad JSON
        """
        try:
            response = self._http.get(
                url,
                headers={"User-Agent": self._user_agent},
                timeout=self._timeout,
                follow_redirects=True,
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise FetchError(f"GET {url} failed: {e}") from e

        if json_fields is None:
            return _WHITESPACE.sub(" ", response.text)

        try:
            payload = response.json()
        except ValueError as e:
            raise FetchError(f"GET {url} did not return JSON") from e
        if not isinstance(payload, dict):
            raise FetchError(f"GET {url} returned an unexpected JSON shape")

        values = [payload.get(name) for name in json_fields]
        return "\n".join(v for v in values if isinstance(v, str) and v)
