import re

from rewrite_proxy.rewrite.urls import proxy_reference
from rewrite_proxy.vars import PROXY_ROUTE

CSS_URL_RE = re.compile(r"""url\(\s*(['"]?)([^'")]+)\1\s*\)""", re.IGNORECASE)
CSS_IMPORT_RE = re.compile(r"""@import\s+(['"])([^'"]+)\1""", re.IGNORECASE)


def rewrite_css(
    css: str, target_url: str, proxy_base: str, route: str = PROXY_ROUTE
) -> str:
    """
    Route every ``url(...)`` and ``@import "..."`` reference in a stylesheet through
    the proxy. Stylesheets are fetched by the browser directly, so anything left
    pointing at the origin would be loaded cross-origin.
    """

    def replace_url(match: re.Match) -> str:
        quote_char, value = match.group(1), match.group(2)
        proxied = proxy_reference(value, target_url, proxy_base, route)
        if proxied is None:
            return match.group(0)
        return f"url({quote_char}{proxied}{quote_char})"

    def replace_import(match: re.Match) -> str:
        quote_char, value = match.group(1), match.group(2)
        proxied = proxy_reference(value, target_url, proxy_base, route)
        if proxied is None:
            return match.group(0)
        return f"@import {quote_char}{proxied}{quote_char}"

    css = CSS_URL_RE.sub(replace_url, css)
    return CSS_IMPORT_RE.sub(replace_import, css)
