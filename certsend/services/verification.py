from __future__ import annotations

import logging
from typing import Iterable, NamedTuple, Protocol

import requests

logger = logging.getLogger("certsend.verify")


class VerificationReport(NamedTuple):
    valid: list[str]
    invalid: list[str]


class LinkVerifier(Protocol):
    def verify(self, links: Iterable[str]) -> VerificationReport:
        ...


class HttpLinkVerifier:
    """Split links into reachable and unreachable with HEAD requests.

    Servers that refuse HEAD (405/501) are retried once with a streamed GET.
    ``data:`` URIs carry their own payload and always pass. Transport errors
    mark the link invalid rather than raising.
    """

    def __init__(self, timeout: float = 10, http: requests.Session | None = None):
        self.timeout = timeout
        self.http = http or requests.Session()

    def _reachable(self, link: str) -> bool:
        if link.startswith("data:"):
            return True
        if not link.startswith(("http://", "https://")):
            return False
        try:
            resp = self.http.head(link, allow_redirects=True, timeout=self.timeout)
            if resp.status_code in (405, 501):
                resp = self.http.get(
                    link, allow_redirects=True, timeout=self.timeout, stream=True
                )
                resp.close()
        except requests.RequestException as exc:
            logger.info("[VERIFY] link=%s error=%s", link, exc)
            return False
        return resp.status_code < 400

    def verify(self, links: Iterable[str]) -> VerificationReport:
        valid: list[str] = []
        invalid: list[str] = []
        for link in links:
            (valid if self._reachable(link) else invalid).append(link)
        logger.info("[VERIFY] valid=%d invalid=%d", len(valid), len(invalid))
        return VerificationReport(valid, invalid)


def build_verifier(config) -> LinkVerifier | None:
    if not config.get("VERIFY_LINKS"):
        return None
    return HttpLinkVerifier(timeout=config.get("VERIFY_TIMEOUT", 10))
