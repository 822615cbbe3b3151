"""
Reference classification and proxy-route construction shared by the HTML and CSS
rewriters.
"""

import logging
import re
from enum import Enum
from typing import Optional
from urllib.parse import quote, urljoin, urlsplit

from rewrite_proxy.vars import PROXY_ROUTE

logger = logging.getLogger("uvicorn.error")

_SCHEME_RE = re.compile(r"^([a-zA-Z][a-zA-Z0-9+.-]*):")
_DEFAULT_PORTS = {"http": 80, "https": 443}


class ReferenceKind(str, Enum):
    PROXIED = "proxied"
    ABSOLUTE_TARGET = "absolute-to-target"
    ABSOLUTE_OTHER = "absolute-to-other-origin"
    PROTOCOL_RELATIVE = "protocol-relative"
    ROOT_RELATIVE = "root-relative"
    DOCUMENT_RELATIVE = "document-relative"
    FRAGMENT = "fragment-only"
    NON_HTTP = "non-http-scheme"


def origin_of(url: str) -> str:
    """``scheme://host[:port]`` with default ports dropped, like a browser's URL.origin."""
    parts = urlsplit(url)
    scheme = parts.scheme.lower()
    host = parts.hostname or ""
    if ":" in host:
        host = f"[{host}]"
    port = parts.port
    if port is not None and port != _DEFAULT_PORTS.get(scheme):
        return f"{scheme}://{host}:{port}"
    return f"{scheme}://{host}"


def proxy_route(absolute_url: str, proxy_base: str, route: str = PROXY_ROUTE) -> str:
    return f"{proxy_base}{route}?url={quote(absolute_url, safe='')}"


def is_proxy_routed(value: str, route: str = PROXY_ROUTE) -> bool:
    return f"{route}?url=" in value


def classify_reference(
    value: str, target_url: str, route: str = PROXY_ROUTE
) -> ReferenceKind:
    value = value.strip()
    if is_proxy_routed(value, route):
        return ReferenceKind.PROXIED
    if value.startswith("#"):
        return ReferenceKind.FRAGMENT
    if value.startswith("//"):
        return ReferenceKind.PROTOCOL_RELATIVE
    if value.startswith("/"):
        return ReferenceKind.ROOT_RELATIVE
    match = _SCHEME_RE.match(value)
    if match:
        if match.group(1).lower() not in _DEFAULT_PORTS:
            return ReferenceKind.NON_HTTP
        if origin_of(value) == origin_of(target_url):
            return ReferenceKind.ABSOLUTE_TARGET
        return ReferenceKind.ABSOLUTE_OTHER
    return ReferenceKind.DOCUMENT_RELATIVE


def resolve_reference(
    value: str, target_url: str, kind: Optional[ReferenceKind] = None
) -> Optional[str]:
    """
    Turn ``value`` into an absolute http(s) URL as seen from ``target_url``.

    Returns None for references that must not be resolved (fragments, non-http
    schemes, already proxied). Raises ValueError when the reference is malformed.
    """
    kind = kind or classify_reference(value, target_url)
    value = value.strip()
    if kind is ReferenceKind.PROTOCOL_RELATIVE:
        return "https:" + value
    if kind is ReferenceKind.ROOT_RELATIVE:
        return origin_of(target_url) + value
    if kind is ReferenceKind.DOCUMENT_RELATIVE:
        return urljoin(target_url, value)
    if kind in (ReferenceKind.ABSOLUTE_TARGET, ReferenceKind.ABSOLUTE_OTHER):
        return value
    return None


def proxy_reference(
    value: str, target_url: str, proxy_base: str, route: str = PROXY_ROUTE
) -> Optional[str]:
    """
    Proxy-routed form of a resource reference, or None when it has to stay as it is
    (empty, ``data:``, fragment, non-http scheme, already proxied or malformed).
    """
    stripped = value.strip().lower()
    if not stripped or stripped.startswith("data:"):
        return None
    try:
        kind = classify_reference(value, target_url, route)
        absolute = resolve_reference(value, target_url, kind)
    except ValueError as e:
        logger.debug(f"[Rewrite] Leaving reference {value!r} untouched: {e}")
        return None
    if absolute is None:
        return None
    return proxy_route(absolute, proxy_base, route)
