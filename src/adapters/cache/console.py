"""
Profile cache adapters - Implement the ProfileCache protocol.

Public profile pages are rendered and cached elsewhere. After any tier change
the cached page for that user must be invalidated; failures to do so are
logged and never undo the verification that triggered them.
"""

import logging

import httpx

logger = logging.getLogger(__name__)


class ConsoleProfileCache:
    """Logs invalidations. Used when no revalidation endpoint is configured."""

    def invalidate(self, user_id: str) -> None:
        logger.info("[CACHE] Invalidate profile for user %s", user_id)


class WebhookProfileCache:
    """
    POSTs {"userId": ...} to a revalidation endpoint.

    Args:
        url: Revalidation webhook URL
        secret: Optional shared secret sent as X-Revalidate-Secret
    """

    def __init__(
        self,
        url: str,
        *,
        secret: str | None = None,
        timeout: float = 5.0,
        http_client: httpx.Client | None = None,
    ) -> None:
        self._url = url
        self._secret = secret
        self._timeout = timeout
        self._http = http_client or httpx.Client(timeout=timeout)

    def invalidate(self, user_id: str) -> None:
        headers = {"X-Revalidate-Secret": self._secret} if self._secret else {}
        try:
            response = self._http.post(
                self._url, json={"userId": user_id}, headers=headers, timeout=self._timeout
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning("Profile revalidation failed for user %s: %s", user_id, e)
            return
        logger.debug("Profile revalidated for user %s", user_id)
