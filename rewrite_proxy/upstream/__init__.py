from .errors import ProxyError, MissingParameter, UpstreamError, UpstreamUnreachable
from .fetcher import UpstreamFetcher, UpstreamRequest, upstream_client
from .redirects import UpstreamEnvelope, resolve

__all__ = [
    "ProxyError",
    "MissingParameter",
    "UpstreamError",
    "UpstreamUnreachable",
    "UpstreamFetcher",
    "UpstreamRequest",
    "upstream_client",
    "UpstreamEnvelope",
    "resolve",
]
