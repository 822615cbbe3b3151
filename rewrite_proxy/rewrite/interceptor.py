"""
Client-side shim that routes network calls made by page scripts through the proxy.

Static rewriting cannot see URLs built by scripts after the page loads, so the HTML
pipeline injects ``static/interceptor.js`` into every document. The shim wraps
``XMLHttpRequest.prototype.open``, ``fetch`` and dynamically created ``<script>``
elements with a single ``rewriteUrlForProxy`` function.
"""

import json
from functools import lru_cache
from pathlib import Path
from typing import Optional

from rewrite_proxy.vars import PROXY_ROUTE

INTERCEPTOR_VERSION = "1"
INTERCEPTOR_MARKER = "data-proxy-interceptor"

_SCRIPT_PATH = Path(__file__).parent / "static" / "interceptor.js"
_CONFIG_PLACEHOLDER = "__PROXY_CONFIG__"


@lru_cache(maxsize=1)
def interceptor_source() -> str:
    return _SCRIPT_PATH.read_text(encoding="utf-8")


def _embed_json(value: dict) -> str:
    # Keep the payload from closing the surrounding <script> element
    return json.dumps(value).replace("</", "<\\/")


def interceptor_config(
    target_origin: str,
    proxy_base: str,
    current_origin: Optional[str] = None,
    route: str = PROXY_ROUTE,
) -> dict:
    return {
        "version": INTERCEPTOR_VERSION,
        "targetOrigin": target_origin,
        "proxyBase": proxy_base,
        "proxyRoute": route,
        "currentOrigin": current_origin,
    }


def interceptor_js(
    target_origin: str,
    proxy_base: str,
    current_origin: Optional[str] = None,
    route: str = PROXY_ROUTE,
) -> str:
    config = interceptor_config(target_origin, proxy_base, current_origin, route)
    return interceptor_source().replace(_CONFIG_PLACEHOLDER, _embed_json(config))


def interceptor_script(
    target_origin: str,
    proxy_base: str,
    current_origin: Optional[str] = None,
    route: str = PROXY_ROUTE,
) -> str:
    """
    Render the ``<script>`` element to inject. ``current_origin`` defaults to the
    browser's own ``window.location.origin`` when left out.
    """
    source = interceptor_js(target_origin, proxy_base, current_origin, route)
    return f'<script {INTERCEPTOR_MARKER}="{INTERCEPTOR_VERSION}">\n{source}</script>'
