"""
Rate limiter adapters - Implement the RateLimiter protocol.

UpstashRateLimiter keeps a fixed-window counter in Upstash Redis via its REST
pipeline endpoint. Every hit sends INCR together with EXPIRE ... NX, so a key
always carries a TTL even when an earlier EXPIRE was lost. The limiter fails
open: a store outage or malformed answer allows the request.
"""

import logging

import httpx

logger = logging.getLogger(__name__)


class AllowAllRateLimiter:
    """No-op limiter used when no store is configured."""

    def limit(self, key: str) -> bool:
        return True


class UpstashRateLimiter:
    """
    Fixed-window limiter: at most max_requests per key per window_seconds.

    Args:
        url: Upstash REST URL
        token: Upstash REST token
    """

    def __init__(
        self,
        url: str,
        token: str,
        *,
        max_requests: int = 20,
        window_seconds: int = 60,
        timeout: float = 2.0,
        http_client: httpx.Client | None = None,
    ) -> None:
        self._pipeline_url = f"{url.rstrip('/')}/pipeline"
        self._headers = {"Authorization": f"Bearer {token}"}
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._timeout = timeout
        self._http = http_client or httpx.Client(timeout=timeout)

    def limit(self, key: str) -> bool:
        """Count one request for key. Returns False once the window is exhausted."""
        try:
            count = self._increment(key)
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Rate limit store unavailable for %s, allowing request: %s", key, e)
            return True

        if count > self.max_requests:
            logger.info("Rate limit exceeded for %s (%d/%d)", key, count, self.max_requests)
            return False
        return True

    def _increment(self, key: str) -> int:
        """
        INCR the key and set its TTL if it has none.

        Raises:
            httpx.HTTPError: On transport failure or non-2xx
            ValueError: If the store answers with anything but two results
        """
        commands = [["INCR", key], ["EXPIRE", key, str(self.window_seconds), "NX"]]
        response = self._http.post(
            self._pipeline_url, json=commands, headers=self._headers, timeout=self._timeout
        )
        response.raise_for_status()
        results = response.json()

        if not isinstance(results, list) or len(results) != len(commands):
            raise ValueError(f"unexpected pipeline answer: {results!r}")
        for result in results:
            if not isinstance(result, dict) or "error" in result:
                raise ValueError(f"pipeline command failed: {result!r}")

        count = results[0].get("result")
        if isinstance(count, bool) or not isinstance(count, int):
            raise ValueError(f"INCR returned {count!r}")
        return count
