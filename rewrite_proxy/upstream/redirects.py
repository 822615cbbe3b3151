import codecs
import logging
from dataclasses import dataclass, replace
from urllib.parse import urljoin

import httpx
from prometheus_client import Counter

from rewrite_proxy.upstream.errors import UpstreamError
from rewrite_proxy.upstream.fetcher import (
    UpstreamFetcher,
    UpstreamRequest,
    validate_url,
)
from rewrite_proxy.vars import MAX_REDIRECTS

logger = logging.getLogger("uvicorn.error")

redirect_hops_total = Counter(
    "proxy_redirect_hops_total", "Upstream redirect hops followed by the proxy"
)


@dataclass
class UpstreamEnvelope:
    content: bytes
    content_type: str
    status_code: int
    url: str
    charset: str | None = None
    hops: int = 0

    @classmethod
    def from_response(cls, response: httpx.Response, url: str, hops: int = 0):
        return cls(
            content=response.content,
            content_type=response.headers.get("content-type") or "text/plain",
            status_code=response.status_code,
            url=url,
            charset=response.charset_encoding,
            hops=hops,
        )

    @property
    def encoding(self) -> str:
        """The declared charset when Python has a codec for it, otherwise UTF-8."""
        if not self.charset:
            return "utf-8"
        try:
            return codecs.lookup(self.charset).name
        except LookupError:
            logger.debug(f"[Rewrite] Unknown charset {self.charset!r} from {self.url}")
            return "utf-8"

    def text(self) -> str:
        return self.content.decode(self.encoding, errors="replace")


def is_redirect(response: httpx.Response) -> bool:
    return 300 <= response.status_code < 400


def redirect_method(status_code: int, method: str) -> str:
    if status_code == 303 and method.upper() != "HEAD":
        return "GET"
    if status_code in (301, 302) and method.upper() == "POST":
        return "GET"
    return method


def next_hop(request: UpstreamRequest, response: httpx.Response, location: str):
    """Build the request for the next hop, resolving ``location`` against the current URL."""
    try:
        next_url = urljoin(request.url, location.strip())
    except ValueError as e:
        raise UpstreamError(f"Unusable redirect location {location!r}: {e}") from e
    validate_url(next_url)

    method = redirect_method(response.status_code, request.method)
    body = request.body if method == request.method else None
    return replace(request, url=next_url, method=method, body=body)


async def resolve(
    fetcher: UpstreamFetcher,
    request: UpstreamRequest,
    max_redirects: int = MAX_REDIRECTS,
) -> UpstreamEnvelope:
    """
    Fetch ``request`` and chase its redirect chain server-side.

    Cookies from every hop land in the fetcher's jar, including hops the caller never
    sees. Once ``max_redirects`` hops have been followed the last response is returned
    as it is, even if it is itself a redirect.
    """
    response = await fetcher.fetch(request)
    hops = 0

    while is_redirect(response):
        fetcher.jar.record(response.headers.get_list("set-cookie"))

        location = response.headers.get("location")
        if not location:
            logger.info(
                f"[Redirect] {response.status_code} without Location from {request.url}"
            )
            break
        if hops >= max_redirects:
            logger.warning(
                f"[Redirect] Giving up after {hops} hops, returning {response.status_code} from {request.url}"
            )
            break

        request = next_hop(request, response, location)
        hops += 1
        redirect_hops_total.inc()
        logger.debug(f"[Redirect] Hop {hops}: {response.status_code} -> {request.url}")
        response = await fetcher.fetch(request)

    fetcher.jar.record(response.headers.get_list("set-cookie"))
    return UpstreamEnvelope.from_response(response, request.url, hops)
