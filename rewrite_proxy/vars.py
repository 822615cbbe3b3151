import os
import secrets

SERVICE_NAME = os.getenv("SERVICE_NAME", "rewrite-proxy")

PROXY_ROUTE = os.environ.get("PROXY_ROUTE", "/api/proxy")
MAX_REDIRECTS = int(os.getenv("MAX_REDIRECTS", "10"))
# Unset means the transport default applies
PROXY_TIMEOUT = float(os.getenv("PROXY_TIMEOUT")) if os.getenv("PROXY_TIMEOUT") else None
DEFAULT_FORWARDED_PROTO = os.getenv("DEFAULT_FORWARDED_PROTO", "https")
PRESERVE_HTML_STATUS = os.getenv("PRESERVE_HTML_STATUS", "false").lower() == "true"

DEFAULT_HIDE_SELECTORS = (
    ".primary-navigation,"
    "#page-navbar,"
    ".breadcrumb,"
    "#usernavigation .popover-region-notifications,"
    "#usernavigation .popover-region,"
    "#usernavigation .usermenu-container"
)
HIDE_SELECTORS = [
    s.strip()
    for s in os.getenv("HIDE_SELECTORS", DEFAULT_HIDE_SELECTORS).split(",")
    if s.strip()
]

SESSION_MANAGER = os.getenv("SESSION_MANAGER", "InMemorySessionManager")
SESSION_COOKIE_NAME = os.environ.get("SESSION_COOKIE_NAME", "x-rewrite-proxy-session")
SESSION_SECRET = os.getenv("SESSION_SECRET") or secrets.token_urlsafe(32)
SESSION_IDLE_TIMEOUT = int(os.getenv("SESSION_IDLE_TIMEOUT", "3600"))

OTLP_ENDPOINT = os.getenv("OTLP_ENDPOINT")
OTLP_HEADERS = os.getenv("OTLP_HEADERS", "")
