"""
DNS TXT resolver - Implements TxtResolver protocol with dnspython.

Nameservers may be plain IP addresses (UDP/TCP port 53) or https URLs
(DNS-over-HTTPS). With none configured the system resolver settings apply.
Only reads records; nothing is ever written.
"""

import logging

import dns.exception
import dns.nameserver
import dns.resolver

from src.domain.exceptions import ResolverError

logger = logging.getLogger(__name__)


def _nameserver(address: str):
    if address.startswith("https://"):
        return dns.nameserver.DoHNameserver(address)
    return address


class DnsTxtResolver:
    """
    Implements TxtResolver protocol via dns.resolver.

    Uses structural subtyping - no explicit inheritance from Protocol.
    Every query, retries included, is bounded by timeout.
    """

    def __init__(
        self,
        nameservers: list[str] | None = None,
        *,
        timeout: float = 2.5,
        resolver: dns.resolver.Resolver | None = None,
    ) -> None:
        if resolver is None:
            resolver = dns.resolver.Resolver(configure=not nameservers)
            if nameservers:
                resolver.nameservers = [_nameserver(ns) for ns in nameservers]
        resolver.timeout = timeout
        resolver.lifetime = timeout
        self._resolver = resolver
        self._timeout = timeout

    def resolve_txt(self, host: str) -> list[str]:
        """
        Return every TXT answer for host, its character-strings joined.

        Raises:
            ResolverError: On timeout, SERVFAIL from every nameserver or a malformed name
        """
        try:
            answers = self._resolver.resolve(host, "TXT", lifetime=self._timeout, search=False)
        except (dns.resolver.NXDOMAIN, dns.resolver.NoAnswer):
            return []
        except dns.exception.DNSException as e:
            raise ResolverError(f"TXT lookup for {host} failed: {e}") from e

        records = [b"".join(rdata.strings).decode("utf-8", "replace") for rdata in answers]
        logger.debug("TXT %s -> %d record(s)", host, len(records))
        return records
