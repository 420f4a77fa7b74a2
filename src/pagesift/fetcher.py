"""Conditional HTTP fetcher with private-network protection.

All page I/O (change-detection HEAD requests and full fetches on cache misses) goes
through a single Fetcher instance. The Fetcher receives an httpx.AsyncClient
via constructor injection. The server lifespan owns the client lifecycle.

HTTP status codes are returned to the caller, not raised: a 304 or a 405 on a
HEAD response is a meaningful answer for change detection. Only transport
failures, redirect loops and blocked hosts raise ``PageSiftError``.
"""

from __future__ import annotations

import ipaddress
from typing import TYPE_CHECKING, Literal
from urllib.parse import urljoin, urlparse

import httpx
import structlog

from pagesift.errors import ErrorCode, PageSiftError
from pagesift.models.cache import FetchResult

if TYPE_CHECKING:
    from pagesift.config import FetcherSettings
    from pagesift.models.cache import Validators

log = structlog.get_logger()

PRIVATE_NETWORKS: list[ipaddress.IPv4Network | ipaddress.IPv6Network] = [
    ipaddress.ip_network("10.0.0.0/8"),
    ipaddress.ip_network("172.16.0.0/12"),
    ipaddress.ip_network("192.168.0.0/16"),
    ipaddress.ip_network("127.0.0.0/8"),
    ipaddress.ip_network("169.254.0.0/16"),
    ipaddress.ip_network("::1/128"),
    ipaddress.ip_network("fc00::/7"),
]


def build_http_client(settings: FetcherSettings) -> httpx.AsyncClient:
    """Create the shared httpx client. Called once at startup."""
    return httpx.AsyncClient(
        follow_redirects=False,
        timeout=httpx.Timeout(settings.fetch_timeout_seconds),
        headers={"User-Agent": settings.user_agent},
        limits=httpx.Limits(
            max_connections=settings.max_connections,
            max_keepalive_connections=max(1, settings.max_connections // 2),
        ),
    )


def is_public_url(url: str) -> bool:
    """Reject non-HTTP schemes and literal private/loopback addresses."""
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https"):
        return False
    hostname = parsed.hostname or ""
    if not hostname or hostname == "localhost":
        return False

    try:
        addr = ipaddress.ip_address(hostname)
    except ValueError:
        return True  # hostname is a domain name, not an IP
    return not any(addr in net for net in PRIVATE_NETWORKS)


def conditional_headers(validators: Validators | None) -> dict[str, str]:
    """Build If-Modified-Since / If-None-Match from stored validators."""
    headers: dict[str, str] = {}
    if validators is None:
        return headers
    if validators.last_modified:
        headers["If-Modified-Since"] = validators.last_modified
    if validators.etag:
        headers["If-None-Match"] = validators.etag
    return headers


class Fetcher:
    """HTTP page fetcher with per-hop redirect validation."""

    def __init__(self, client: httpx.AsyncClient, settings: FetcherSettings) -> None:
        self._client = client
        self._settings = settings

    async def fetch_conditional(
        self,
        url: str,
        validators: Validators | None = None,
        *,
        method: Literal["HEAD", "GET"] = "GET",
        timeout: float | None = None,
        max_redirects: int = 3,  # Implementation detail, not part of FetcherProtocol
    ) -> FetchResult:
        """Issue a (conditional) HEAD or GET, following up to ``max_redirects`` hops.

        ``body`` is populated for GET responses only.
        """
        if timeout is None:
            timeout = (
                self._settings.head_timeout_seconds
                if method == "HEAD"
                else self._settings.fetch_timeout_seconds
            )
        headers = conditional_headers(validators)
        current_url = url

        try:
            for hop in range(max_redirects + 1):
                if self._settings.block_private_ips and not is_public_url(current_url):
                    log.warning("fetch_blocked", url=current_url, reason="private_or_invalid")
                    raise PageSiftError(
                        code=ErrorCode.URL_NOT_ALLOWED,
                        message=f"URL not allowed: {current_url}",
                        suggestion="Only public http(s) URLs can be analyzed.",
                        recoverable=False,
                    )

                response = await self._client.request(
                    method, current_url, headers=headers, timeout=timeout
                )

                if response.is_redirect and "location" in response.headers:
                    if hop == max_redirects:
                        raise PageSiftError(
                            code=ErrorCode.PAGE_FETCH_FAILED,
                            message=f"Too many redirects fetching {url}",
                            suggestion="The page has an unusually long redirect chain.",
                            recoverable=False,
                        )
                    current_url = urljoin(current_url, response.headers["location"])
                    continue

                log.debug(
                    "fetch_complete",
                    url=url,
                    method=method,
                    status_code=response.status_code,
                )
                return FetchResult(
                    status=response.status_code,
                    body=response.content if method == "GET" else None,
                    last_modified=response.headers.get("last-modified"),
                    etag=response.headers.get("etag"),
                )

        except PageSiftError:
            raise
        except httpx.HTTPError as exc:
            raise PageSiftError(
                code=ErrorCode.PAGE_FETCH_FAILED,
                message=f"Network error fetching {url}: {exc}",
                suggestion="The site may be temporarily unavailable.",
                recoverable=True,
            ) from exc

        # Unreachable but satisfies the type checker
        raise PageSiftError(
            code=ErrorCode.PAGE_FETCH_FAILED,
            message="Redirect loop",
            suggestion="",
            recoverable=False,
        )
