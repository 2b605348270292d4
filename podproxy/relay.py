"""Outbound GET with redirect following, plus the feed and media call sites."""
import base64
import logging
from dataclasses import dataclass, field
from typing import Mapping, Optional
from urllib.parse import urljoin, urlsplit

import httpx

from podproxy.config import (
    FEED_ACCEPT,
    MAX_REDIRECTS,
    MEDIA_HEADER_WHITELIST,
    REQUEST_TIMEOUT,
    USER_AGENT,
)
from podproxy.errors import FetchFailed, InvalidURL

logger = logging.getLogger(__name__)

SUPPORTED_SCHEMES = ("http", "https")

BASE_HEADERS = {
    "User-Agent": USER_AGENT,
    # Content-Length is relayed as-is, so the body must arrive uncompressed.
    "Accept-Encoding": "identity",
}


@dataclass
class RelayResponse:
    status_code: int
    headers: httpx.Headers = field(default_factory=httpx.Headers)
    body: bytes = b""
    url: str = ""

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")


def _is_supported(url: str) -> bool:
    try:
        parts = urlsplit(url)
    except ValueError:
        return False
    return parts.scheme in SUPPORTED_SCHEMES and bool(parts.netloc)


def _is_redirect(response: httpx.Response) -> bool:
    return 300 <= response.status_code < 400 and "location" in response.headers


async def _follow(client: httpx.AsyncClient, target_url: str, headers: httpx.Headers) -> RelayResponse:
    url = target_url
    hops = 0
    while True:
        logger.debug("GET %s (hop %d)", url, hops)
        try:
            request = client.build_request("GET", url, headers=headers)
            response = await client.send(request, stream=True, follow_redirects=False)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise FetchFailed(f"Request to {url} failed: {e}", url=url) from e

        try:
            if _is_redirect(response):
                location = response.headers["location"]
                try:
                    next_url = urljoin(url, location)
                except ValueError as e:
                    raise FetchFailed(f"Cannot follow redirect to {location!r}: {e}", url=url) from e
                if not _is_supported(next_url):
                    raise FetchFailed(f"Cannot follow redirect to {location!r}", url=url)
                hops += 1
                if hops > MAX_REDIRECTS:
                    raise FetchFailed(f"Too many redirects (>{MAX_REDIRECTS}) from {target_url}", url=url)
                url = next_url
                continue

            try:
                body = await response.aread()
            except httpx.HTTPError as e:
                raise FetchFailed(f"Reading body from {url} failed: {e}", url=url) from e
            return RelayResponse(
                status_code=response.status_code,
                headers=response.headers,
                body=body,
                url=url,
            )
        finally:
            await response.aclose()


async def fetch(
    target_url: str,
    extra_headers: Optional[Mapping[str, str]] = None,
    *,
    client: Optional[httpx.AsyncClient] = None,
) -> RelayResponse:
    """GET ``target_url``, following redirects, and buffer the terminal response.

    Args:
        target_url: absolute http(s) URL.
        extra_headers: added to (and overriding) the default browser headers;
            carried forward across redirects.
        client: shared client; a short-lived one is created when omitted.

    Raises:
        InvalidURL: the target is not an http(s) URL.
        FetchFailed: the origin could not be reached, or the redirect chain
            was broken or longer than MAX_REDIRECTS.
    """
    if not _is_supported(target_url):
        raise InvalidURL(f"Unsupported URL: {target_url}")

    headers = httpx.Headers(BASE_HEADERS)
    if extra_headers:
        headers.update(extra_headers)

    if client is not None:
        return await _follow(client, target_url, headers)
    async with httpx.AsyncClient(timeout=REQUEST_TIMEOUT) as own_client:
        return await _follow(own_client, target_url, headers)


async def fetch_feed(feed_url: str, client: Optional[httpx.AsyncClient] = None) -> RelayResponse:
    return await fetch(feed_url, {"Accept": FEED_ACCEPT}, client=client)


async def fetch_media(
    media_url: str,
    range_header: Optional[str] = None,
    client: Optional[httpx.AsyncClient] = None,
    accept: Optional[str] = None,
) -> RelayResponse:
    headers = {}
    if accept:
        headers["Accept"] = accept
    if range_header:
        headers["Range"] = range_header
    return await fetch(media_url, headers, client=client)


def _was_decoded(response: RelayResponse) -> bool:
    # httpx undoes Content-Encoding while reading, so body is no longer the wire payload
    encoding = response.headers.get("content-encoding", "").strip().lower()
    return encoding not in ("", "identity")


def media_headers(response: RelayResponse) -> dict:
    """Headers re-emitted for a media relay; origin values pass through unmodified.

    When the origin compressed the body despite Accept-Encoding: identity, its
    Content-Length counts compressed bytes and is dropped so the server can
    compute the length of the decoded body.
    """
    out = {"Accept-Ranges": "bytes"}
    decoded = _was_decoded(response)
    for name in MEDIA_HEADER_WHITELIST:
        if decoded and name == "Content-Length":
            continue
        value = response.headers.get(name)
        if value:
            out[name] = value
    return out


def to_base64_text(response: RelayResponse) -> str:
    return base64.b64encode(response.text.encode("utf-8")).decode("ascii")
