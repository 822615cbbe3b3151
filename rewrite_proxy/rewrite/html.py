import logging
from typing import Union

from bs4 import BeautifulSoup, Tag

from rewrite_proxy.rewrite.css import rewrite_css
from rewrite_proxy.rewrite.urls import (
    ReferenceKind,
    classify_reference,
    proxy_reference,
    proxy_route,
    resolve_reference,
)
from rewrite_proxy.vars import PROXY_ROUTE

logger = logging.getLogger("uvicorn.error")

URL_ATTRIBUTES = ("href", "src", "action")
RESOURCE_ATTRIBUTES = {"img": "src", "script": "src", "link": "href"}
SRCSET_TAGS = ("img", "source")


def parse_html(markup: Union[str, bytes], encoding: str | None = None) -> BeautifulSoup:
    if isinstance(markup, bytes):
        return BeautifulSoup(markup, "html.parser", from_encoding=encoding)
    return BeautifulSoup(markup, "html.parser")


def _absolutize(tag: Tag, attr: str, target_url: str, route: str) -> None:
    value = tag.get(attr)
    if not isinstance(value, str) or not value.strip():
        return
    try:
        absolute = resolve_reference(
            value, target_url, classify_reference(value, target_url, route)
        )
    except ValueError as e:
        logger.debug(f"[Rewrite] Leaving {tag.name}[{attr}]={value!r} untouched: {e}")
        return
    if absolute is not None and absolute != value:
        tag[attr] = absolute


def _rewrite_anchor(tag: Tag, target_url: str, proxy_base: str, route: str) -> None:
    href = tag.get("href")
    if not isinstance(href, str) or not href.strip():
        return
    try:
        kind = classify_reference(href, target_url, route)
        if kind is ReferenceKind.ABSOLUTE_TARGET:
            tag["href"] = proxy_route(href.strip(), proxy_base, route)
    except ValueError as e:
        logger.debug(f"[Rewrite] Leaving a[href]={href!r} untouched: {e}")


def _rewrite_resource(
    tag: Tag, attr: str, target_url: str, proxy_base: str, route: str
) -> None:
    value = tag.get(attr)
    if not isinstance(value, str):
        return
    proxied = proxy_reference(value, target_url, proxy_base, route)
    if proxied is not None:
        tag[attr] = proxied


def _rewrite_srcset(tag: Tag, target_url: str, proxy_base: str, route: str) -> None:
    srcset = tag.get("srcset")
    # data: candidates carry commas of their own
    if not isinstance(srcset, str) or "data:" in srcset:
        return
    candidates = []
    for candidate in srcset.split(","):
        candidate = candidate.strip()
        if not candidate:
            continue
        url_part, *descriptor = candidate.split(None, 1)
        proxied = proxy_reference(url_part, target_url, proxy_base, route)
        candidates.append(" ".join([proxied or url_part, *descriptor]))
    rewritten = ", ".join(candidates)
    if rewritten != srcset:
        tag["srcset"] = rewritten


def _rewrite_styles(
    soup: BeautifulSoup, target_url: str, proxy_base: str, route: str
) -> None:
    for style_tag in soup.find_all("style"):
        css = style_tag.string
        if not css:
            continue
        rewritten = rewrite_css(str(css), target_url, proxy_base, route)
        if rewritten != css:
            style_tag.string = rewritten

    for tag in soup.find_all(style=True):
        rewritten = rewrite_css(tag["style"], target_url, proxy_base, route)
        if rewritten != tag["style"]:
            tag["style"] = rewritten


def rewrite_document(
    soup: BeautifulSoup, target_url: str, proxy_base: str, route: str = PROXY_ROUTE
) -> BeautifulSoup:
    """
    Rewrite URL-bearing attributes of a parsed document in place.

    References are first made absolute against ``target_url``; then same-origin
    anchors, form actions and page resources are routed through the proxy. Proxy-routed
    values are never touched again, so rewriting a rewritten document changes nothing.
    """
    for tag in soup.find_all(True):
        for attr in URL_ATTRIBUTES:
            if tag.has_attr(attr):
                _absolutize(tag, attr, target_url, route)

    for tag in soup.find_all("a", href=True):
        _rewrite_anchor(tag, target_url, proxy_base, route)

    for tag in soup.find_all("form", action=True):
        _rewrite_resource(tag, "action", target_url, proxy_base, route)

    for tag_name, attr in RESOURCE_ATTRIBUTES.items():
        for tag in soup.find_all(tag_name, attrs={attr: True}):
            _rewrite_resource(tag, attr, target_url, proxy_base, route)

    for tag in soup.find_all(SRCSET_TAGS, srcset=True):
        _rewrite_srcset(tag, target_url, proxy_base, route)

    _rewrite_styles(soup, target_url, proxy_base, route)
    return soup


def rewrite_html(
    markup: Union[str, bytes],
    target_url: str,
    proxy_base: str,
    route: str = PROXY_ROUTE,
) -> str:
    soup = rewrite_document(parse_html(markup), target_url, proxy_base, route)
    return str(soup)
