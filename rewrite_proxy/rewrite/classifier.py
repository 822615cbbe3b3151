from enum import Enum


class ContentKind(str, Enum):
    HTML = "html"
    CSS = "css"
    JS = "js"
    BINARY = "binary"


def classify(content_type: str | None) -> ContentKind:
    """Pick the rewrite pipeline for a declared content type."""
    ct = (content_type or "").lower()
    if "text/html" in ct:
        return ContentKind.HTML
    if "text/css" in ct:
        return ContentKind.CSS
    if "javascript" in ct or "application/x-javascript" in ct:
        return ContentKind.JS
    return ContentKind.BINARY
