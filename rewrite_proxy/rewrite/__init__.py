from .assembler import assemble
from .classifier import ContentKind, classify
from .css import rewrite_css
from .html import rewrite_html
from .interceptor import interceptor_script
from .urls import ReferenceKind, classify_reference, proxy_route

__all__ = [
    "assemble",
    "ContentKind",
    "classify",
    "rewrite_css",
    "rewrite_html",
    "interceptor_script",
    "ReferenceKind",
    "classify_reference",
    "proxy_route",
]
