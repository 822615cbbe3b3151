import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from rewrite_proxy.session.cookie_jar import CookieJar
from rewrite_proxy.upstream.errors import UpstreamError, UpstreamUnreachable
from rewrite_proxy.vars import PROXY_TIMEOUT

logger = logging.getLogger("uvicorn.error")

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


def upstream_client(
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    """
    Build the client used for every hop of one proxied request.

    Redirects are never followed by httpx itself; the redirect resolver needs to see
    each 3xx response to capture its cookies.
    """
    kwargs = {"follow_redirects": False}
    if PROXY_TIMEOUT is not None:
        kwargs["timeout"] = httpx.Timeout(PROXY_TIMEOUT)
    if transport is not None:
        kwargs["transport"] = transport
    return httpx.AsyncClient(**kwargs)


def build_upstream_headers(
    jar: CookieJar, method: str, body: Optional[bytes], user_agent: str
) -> dict[str, str]:
    headers = {
        "Cookie": jar.serialize(),
        "User-Agent": user_agent or "",
    }
    if method.upper() == "POST" and body:
        headers["Content-Type"] = FORM_CONTENT_TYPE
    return headers


def validate_url(url: str) -> httpx.URL:
    try:
        parsed = httpx.URL(url)
    except httpx.InvalidURL as e:
        raise UpstreamError(f"Invalid upstream URL {url!r}: {e}") from e
    if parsed.scheme not in ("http", "https") or not parsed.host:
        raise UpstreamError(f"Upstream URL must be absolute http(s): {url!r}")
    return parsed


@dataclass
class UpstreamRequest:
    url: str
    method: str = "GET"
    body: Optional[bytes] = None
    user_agent: str = ""


class UpstreamFetcher:
    """Issues single upstream requests, replaying the caller's cookie jar."""

    def __init__(self, client: httpx.AsyncClient, jar: CookieJar):
        self.client = client
        self.jar = jar

    async def fetch(self, request: UpstreamRequest) -> httpx.Response:
        validate_url(request.url)
        headers = build_upstream_headers(
            self.jar, request.method, request.body, request.user_agent
        )
        content = request.body if request.method.upper() != "GET" else None
        logger.debug(f"[Proxy] {request.method} {request.url}")
        try:
            return await self.client.request(
                method=request.method,
                url=request.url,
                headers=headers,
                content=content,
            )
        except (httpx.UnsupportedProtocol, httpx.InvalidURL) as e:
            raise UpstreamError(f"Invalid upstream URL {request.url}: {e}") from e
        except httpx.TransportError as e:
            raise UpstreamUnreachable(f"Cannot reach {request.url}: {e}") from e
