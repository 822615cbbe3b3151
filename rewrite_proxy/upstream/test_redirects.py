"""
Tests for the redirect resolver.

Upstream servers are simulated with httpx.MockTransport; every request the resolver
makes is recorded so hop order, methods and replayed cookies can be checked.
"""

import httpx
import pytest

from rewrite_proxy.session.cookie_jar import CookieJar
from rewrite_proxy.upstream.errors import UpstreamError
from rewrite_proxy.upstream.fetcher import (
    UpstreamFetcher,
    UpstreamRequest,
    upstream_client,
)
from rewrite_proxy.upstream.redirects import UpstreamEnvelope, redirect_method, resolve


class RecordingHandler:
    def __init__(self, routes):
        self.routes = routes
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.routes(request)


async def run(handler, request: UpstreamRequest, jar=None, **kwargs):
    jar = jar if jar is not None else CookieJar()
    async with upstream_client(httpx.MockTransport(handler)) as client:
        envelope = await resolve(UpstreamFetcher(client, jar), request, **kwargs)
    return envelope, jar


class TestResolve:
    @pytest.mark.asyncio
    async def test_chain_collects_cookies_from_every_hop(self):
        def routes(request):
            if request.url.path == "/a":
                return httpx.Response(
                    301, headers=[("location", "/b"), ("set-cookie", "one=1; Path=/")]
                )
            if request.url.path == "/b":
                return httpx.Response(
                    302,
                    headers=[
                        ("location", "https://site.example/c"),
                        ("set-cookie", "two=2; HttpOnly"),
                    ],
                )
            return httpx.Response(
                200,
                headers=[("set-cookie", "three=3"), ("content-type", "text/html")],
                content=b"<p>final</p>",
            )

        handler = RecordingHandler(routes)
        envelope, jar = await run(
            handler, UpstreamRequest(url="https://site.example/a")
        )

        assert envelope.status_code == 200
        assert envelope.content == b"<p>final</p>"
        assert envelope.url == "https://site.example/c"
        assert envelope.hops == 2
        assert jar.serialize() == "one=1; two=2; three=3"

    @pytest.mark.asyncio
    async def test_hop_cookies_are_replayed_on_the_next_hop(self):
        def routes(request):
            if request.url.path == "/login":
                return httpx.Response(
                    303, headers=[("location", "/home"), ("set-cookie", "sid=new")]
                )
            return httpx.Response(200, text="home")

        handler = RecordingHandler(routes)
        jar = CookieJar()
        jar.record(["sid=old", "lang=en"])
        await run(handler, UpstreamRequest(url="https://site.example/login"), jar)

        assert handler.requests[0].headers["cookie"] == "sid=old; lang=en"
        assert handler.requests[1].headers["cookie"] == "lang=en; sid=new"

    @pytest.mark.asyncio
    async def test_location_resolved_against_current_url(self):
        def routes(request):
            path = request.url.path
            if path == "/one/start":
                return httpx.Response(302, headers={"location": "https://other.example/two/x"})
            if path == "/two/x":
                return httpx.Response(302, headers={"location": "y?z=1"})
            return httpx.Response(200)

        handler = RecordingHandler(routes)
        envelope, _ = await run(handler, UpstreamRequest(url="https://site.example/one/start"))

        assert str(handler.requests[2].url) == "https://other.example/two/y?z=1"
        assert envelope.url == "https://other.example/two/y?z=1"

    @pytest.mark.asyncio
    async def test_loop_stops_after_max_redirects_without_error(self):
        def routes(request):
            n = int(request.url.params.get("n", "0"))
            return httpx.Response(
                302,
                headers=[("location", f"/loop?n={n + 1}"), ("set-cookie", f"c{n}=v")],
                content=f"hop {n}".encode(),
            )

        handler = RecordingHandler(routes)
        envelope, jar = await run(handler, UpstreamRequest(url="https://site.example/loop"))

        # initial request plus ten hops
        assert len(handler.requests) == 11
        assert envelope.status_code == 302
        assert envelope.content == b"hop 10"
        assert envelope.hops == 10
        assert len(jar) == 11

    @pytest.mark.asyncio
    async def test_custom_hop_bound(self):
        handler = RecordingHandler(
            lambda request: httpx.Response(302, headers={"location": "/again"})
        )
        envelope, _ = await run(
            handler, UpstreamRequest(url="https://site.example/"), max_redirects=2
        )
        assert len(handler.requests) == 3
        assert envelope.status_code == 302

    @pytest.mark.asyncio
    async def test_redirect_without_location_is_returned(self):
        handler = RecordingHandler(
            lambda request: httpx.Response(
                304, headers=[("set-cookie", "seen=1")], content=b""
            )
        )
        envelope, jar = await run(handler, UpstreamRequest(url="https://site.example/"))

        assert envelope.status_code == 304
        assert len(handler.requests) == 1
        assert jar.get("seen") == "seen=1"

    @pytest.mark.asyncio
    async def test_post_becomes_get_after_302(self):
        def routes(request):
            if request.method == "POST":
                return httpx.Response(302, headers={"location": "/done"})
            return httpx.Response(200)

        handler = RecordingHandler(routes)
        await run(
            handler,
            UpstreamRequest(url="https://site.example/form", method="POST", body=b"a=1"),
        )

        second = handler.requests[1]
        assert second.method == "GET"
        assert second.content == b""
        assert "content-type" not in second.headers

    @pytest.mark.asyncio
    async def test_post_is_kept_after_307(self):
        def routes(request):
            if request.url.path == "/form":
                return httpx.Response(307, headers={"location": "/form2"})
            return httpx.Response(200)

        handler = RecordingHandler(routes)
        await run(
            handler,
            UpstreamRequest(url="https://site.example/form", method="POST", body=b"a=1"),
        )

        second = handler.requests[1]
        assert second.method == "POST"
        assert second.content == b"a=1"

    @pytest.mark.asyncio
    async def test_unusable_location_raises(self):
        handler = RecordingHandler(
            lambda request: httpx.Response(302, headers={"location": "ftp://files.example/x"})
        )
        with pytest.raises(UpstreamError):
            await run(handler, UpstreamRequest(url="https://site.example/"))


@pytest.mark.parametrize(
    "status,method,expected",
    [
        (301, "POST", "GET"),
        (302, "POST", "GET"),
        (303, "POST", "GET"),
        (303, "GET", "GET"),
        (307, "POST", "POST"),
        (308, "POST", "POST"),
        (302, "GET", "GET"),
    ],
)
def test_redirect_method(status, method, expected):
    assert redirect_method(status, method) == expected


class TestEnvelopeEncoding:
    def make(self, content: bytes, charset):
        return UpstreamEnvelope(
            content=content,
            content_type="text/css",
            status_code=200,
            url="https://site.example/a.css",
            charset=charset,
        )

    @pytest.mark.parametrize(
        "charset, expected",
        [(None, "utf-8"), ("UTF-8", "utf-8"), ("latin-1", "iso8859-1"), ("x-bogus", "utf-8")],
    )
    def test_encoding(self, charset, expected):
        assert self.make(b"", charset).encoding == expected

    def test_text_with_unknown_charset_decodes_as_utf8(self):
        envelope = self.make("caf\xe9".encode("utf-8"), "x-bogus")
        assert envelope.text() == "caf\xe9"
