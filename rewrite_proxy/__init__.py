"""Content-rewriting HTTP proxy for embedding third-party sites in an iframe."""
