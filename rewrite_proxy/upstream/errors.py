class ProxyError(Exception):
    """Base error surfaced at the proxy boundary with a public message."""

    status_code = 500
    message = "Failed to fetch URL"

    def __init__(self, detail: str = ""):
        super().__init__(detail or self.message)
        self.detail = detail


class MissingParameter(ProxyError):
    status_code = 400
    message = "URL parameter is required"


class UpstreamError(ProxyError):
    """The upstream exchange could not be completed (bad URL, bad redirect, ...)."""


class UpstreamUnreachable(UpstreamError):
    """DNS failure, refused connection or timeout while talking to upstream."""
