import logging
from typing import Optional

from bs4 import BeautifulSoup
from fastapi.responses import Response

from rewrite_proxy.rewrite.classifier import ContentKind, classify
from rewrite_proxy.rewrite.css import rewrite_css
from rewrite_proxy.rewrite.html import parse_html, rewrite_document
from rewrite_proxy.rewrite.interceptor import INTERCEPTOR_MARKER, interceptor_script
from rewrite_proxy.rewrite.urls import origin_of
from rewrite_proxy.upstream.redirects import UpstreamEnvelope
from rewrite_proxy.vars import HIDE_SELECTORS, PRESERVE_HTML_STATUS, PROXY_ROUTE

logger = logging.getLogger("uvicorn.error")


def hide_selectors_style(selectors: list[str] = HIDE_SELECTORS) -> str:
    """Style block hiding the host site's navigation chrome inside the iframe."""
    if not selectors:
        return ""
    rules = "\n".join(f"  {s} {{ display: none !important; }}" for s in selectors)
    return f"<style>\n{rules}\n</style>"


def inject_assets(soup: BeautifulSoup, style: str, script: str) -> BeautifulSoup:
    """
    Add the navigation style and the interceptor script to a parsed document.

    Both go at the end of ``<head>``. Without a head the script goes to the start of
    ``<body>`` or, failing that, the start of the document; the style needs a head.
    A document that already carries the interceptor does not get a second copy.
    """
    if soup.find("script", attrs={INTERCEPTOR_MARKER: True}):
        script = ""

    head = soup.find("head")
    if head is not None:
        for fragment in (style, script):
            if fragment:
                head.append(BeautifulSoup(fragment, "html.parser"))
        return soup

    if not script:
        return soup
    body = soup.find("body")
    if body is not None:
        body.insert(0, BeautifulSoup(script, "html.parser"))
    else:
        soup.insert(0, BeautifulSoup(script, "html.parser"))
    return soup


def _content_response(content: bytes, status_code: int, content_type: str) -> Response:
    # Mirror the upstream content type verbatim, without a charset being appended
    return Response(
        content=content,
        status_code=status_code,
        headers={"content-type": content_type},
    )


def assemble_html(
    envelope: UpstreamEnvelope,
    proxy_base: str,
    route: str = PROXY_ROUTE,
    preserve_status: Optional[bool] = None,
    current_origin: Optional[str] = None,
) -> Response:
    soup = parse_html(envelope.content, envelope.charset)
    rewrite_document(soup, envelope.url, proxy_base, route)
    script = interceptor_script(
        origin_of(envelope.url), proxy_base, current_origin, route
    )
    inject_assets(soup, hide_selectors_style(), script)

    encoding = soup.original_encoding or envelope.encoding
    if preserve_status is None:
        preserve_status = PRESERVE_HTML_STATUS
    status_code = envelope.status_code if preserve_status else 200
    return _content_response(soup.encode(encoding), status_code, envelope.content_type)


def assemble_css(
    envelope: UpstreamEnvelope, proxy_base: str, route: str = PROXY_ROUTE
) -> Response:
    css = rewrite_css(envelope.text(), envelope.url, proxy_base, route)
    content = css.encode(envelope.encoding, errors="replace")
    return _content_response(content, envelope.status_code, envelope.content_type)


def assemble(
    envelope: UpstreamEnvelope, proxy_base: str, route: str = PROXY_ROUTE
) -> Response:
    """Turn the final upstream response into the response returned to the browser."""
    kind = classify(envelope.content_type)
    logger.debug(
        f"[Rewrite] {envelope.url} ({envelope.content_type}) -> {kind.value} pipeline"
    )
    if kind is ContentKind.HTML:
        return assemble_html(envelope, proxy_base, route)
    if kind is ContentKind.CSS:
        return assemble_css(envelope, proxy_base, route)
    # JavaScript goes out verbatim like binaries; its URLs are rewritten at runtime
    return _content_response(
        envelope.content, envelope.status_code, envelope.content_type
    )
