import logging
from typing import Optional

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, Response
from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

from rewrite_proxy.models import ErrorResponse
from rewrite_proxy.rewrite.assembler import assemble
from rewrite_proxy.rewrite.classifier import classify
from rewrite_proxy.session import (
    CookieJar,
    new_session_id,
    session_manager,
    sign_session_id,
    verify_session_token,
)
from rewrite_proxy.upstream import (
    MissingParameter,
    ProxyError,
    UpstreamFetcher,
    UpstreamRequest,
    resolve,
    upstream_client,
)
from rewrite_proxy.utils.exception_logging import (
    format_exception_message,
    log_exception_with_details,
)
from rewrite_proxy.utils.traced_requests import traced_request
from rewrite_proxy.vars import (
    DEFAULT_FORWARDED_PROTO,
    PROXY_ROUTE,
    SESSION_COOKIE_NAME,
    SESSION_IDLE_TIMEOUT,
)

router = APIRouter()
tracer = trace.get_tracer(__name__)
logger = logging.getLogger("uvicorn.error")
sessions = session_manager()

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


def get_proxy_base(request: Request) -> str:
    """
    Externally visible origin of the proxy for this request.

    ``X-Forwarded-Host``/``X-Forwarded-Proto`` win when another reverse proxy sits in
    front; otherwise the request's own scheme and host are used.
    """
    forwarded_host = request.headers.get("x-forwarded-host")
    if forwarded_host:
        host = forwarded_host.split(",")[0].strip()
        proto = request.headers.get("x-forwarded-proto") or DEFAULT_FORWARDED_PROTO
        return f"{proto.split(',')[0].strip()}://{host}"
    return f"{request.url.scheme}://{request.url.netloc}"


def require_target_url(request: Request) -> str:
    target_url = request.query_params.get("url")
    if not target_url:
        raise MissingParameter()
    return target_url


def error_response(error: ProxyError) -> JSONResponse:
    return JSONResponse(
        ErrorResponse(error=error.message).model_dump(),
        status_code=error.status_code,
    )


def client_session(request: Request) -> tuple[Optional[str], CookieJar, bool]:
    """
    Find the cookie jar of the calling browser.

    Returns the session id (None with a shared jar), the jar, and whether a new
    proxy-owned session cookie has to be set on the response.
    """
    if not sessions.per_client:
        return None, sessions.get_or_create(None), False
    sid = verify_session_token(request.cookies.get(SESSION_COOKIE_NAME))
    is_new = sid is None
    if is_new:
        sid = new_session_id()
    return sid, sessions.get_or_create(sid), is_new


def set_session_cookie(response: Response, sid: str, proxy_base: str) -> None:
    secure = proxy_base.startswith("https://")
    response.set_cookie(
        SESSION_COOKIE_NAME,
        sign_session_id(sid),
        max_age=SESSION_IDLE_TIMEOUT,
        path="/",
        httponly=True,
        secure=secure,
        # The proxied page lives in a cross-site iframe
        samesite="none" if secure else "lax",
    )


async def proxy_request(
    request: Request, method: str, body: Optional[bytes] = None
) -> Response:
    try:
        target_url = require_target_url(request)
    except MissingParameter as e:
        logger.warning(f"[Proxy] Rejecting {method} request without url parameter")
        return error_response(e)

    proxy_base = get_proxy_base(request)
    sid, jar, new_session = client_session(request)

    with traced_request(
        tracer,
        operation="proxy_request",
        session_value=sid,
        start_message=f"[Proxy] {method} {target_url} (session: {sid})",
        extra_attrs={"proxy.target_url": target_url, "proxy.method": method},
    ) as span:
        try:
            async with upstream_client() as client:
                fetcher = UpstreamFetcher(client, jar)
                envelope = await resolve(
                    fetcher,
                    UpstreamRequest(
                        url=target_url,
                        method=method,
                        body=body,
                        user_agent=request.headers.get("user-agent", ""),
                    ),
                )
            span.set_attribute("proxy.status_code", envelope.status_code)
            span.set_attribute("proxy.redirect_hops", envelope.hops)
            span.set_attribute(
                "proxy.content_kind", classify(envelope.content_type).value
            )
            response = assemble(envelope, proxy_base)
        except Exception as e:
            span.set_attribute("proxy.error", format_exception_message(e))
            span.set_status(Status(StatusCode.ERROR, type(e).__name__))
            log_exception_with_details(logger, f"[Proxy] {target_url}", e)
            response = error_response(ProxyError())

    if new_session:
        set_session_cookie(response, sid, proxy_base)
    return response


@router.get(PROXY_ROUTE, responses=ERROR_RESPONSES)
async def proxy_get(request: Request):
    """Fetch ``url`` through the proxy and return it rewritten."""
    return await proxy_request(request, "GET")


@router.post(PROXY_ROUTE, responses=ERROR_RESPONSES)
async def proxy_post(request: Request):
    """Forward a form submission to ``url`` and return the rewritten result."""
    body = await request.body()
    return await proxy_request(request, "POST", body)
