from bs4 import BeautifulSoup

from rewrite_proxy.rewrite.assembler import (
    assemble,
    hide_selectors_style,
    inject_assets,
)
from rewrite_proxy.rewrite.interceptor import INTERCEPTOR_MARKER
from rewrite_proxy.rewrite.urls import proxy_route
from rewrite_proxy.upstream.redirects import UpstreamEnvelope

TARGET = "https://site.example/course/view.php?id=22"
PROXY = "https://proxy.example"
SCRIPT = f'<script {INTERCEPTOR_MARKER}="1">/* shim */</script>'
STYLE = "<style>.x { display: none !important; }</style>"


def envelope(content: bytes, content_type: str, status_code: int = 200, charset=None):
    return UpstreamEnvelope(
        content=content,
        content_type=content_type,
        status_code=status_code,
        url=TARGET,
        charset=charset,
    )


def soup(markup: str) -> BeautifulSoup:
    return BeautifulSoup(markup, "html.parser")


class TestInjectAssets:
    def test_before_closing_head(self):
        out = str(inject_assets(soup("<html><head><title>t</title></head><body></body></html>"), STYLE, SCRIPT))
        assert out.index("<title>") < out.index(STYLE) < out.index(SCRIPT) < out.index("</head>")

    def test_start_of_body_without_head(self):
        out = str(inject_assets(soup('<body class="c"><p>x</p></body>'), STYLE, SCRIPT))
        assert out.startswith(f'<body class="c">{SCRIPT}<p>')
        assert STYLE not in out

    def test_document_start_without_head_or_body(self):
        out = str(inject_assets(soup("<p>fragment</p>"), STYLE, SCRIPT))
        assert out == f"{SCRIPT}<p>fragment</p>"

    def test_interceptor_is_injected_once(self):
        once = str(inject_assets(soup("<head></head>"), "", SCRIPT))
        twice = str(inject_assets(soup(once), "", SCRIPT))
        assert twice.count(INTERCEPTOR_MARKER) == 1


def test_hide_selectors_style():
    style = hide_selectors_style(["#page-navbar", ".breadcrumb"])
    assert "#page-navbar { display: none !important; }" in style
    assert ".breadcrumb { display: none !important; }" in style
    assert hide_selectors_style([]) == ""


class TestAssemble:
    def test_html_is_rewritten_and_injected(self):
        response = assemble(
            envelope(
                b'<html><head></head><body><a href="/course/view.php?id=5">c</a></body></html>',
                "text/html; charset=utf-8",
                charset="utf-8",
            ),
            PROXY,
        )
        body = response.body.decode()

        assert response.status_code == 200
        assert response.headers["content-type"] == "text/html; charset=utf-8"
        assert proxy_route("https://site.example/course/view.php?id=5", PROXY) in body
        assert "#page-navbar { display: none !important; }" in body
        assert INTERCEPTOR_MARKER in body
        assert '"targetOrigin": "https://site.example"' in body

    def test_html_status_is_200_by_default(self):
        response = assemble(envelope(b"<p>missing</p>", "text/html", 404), PROXY)
        assert response.status_code == 200

    def test_html_status_can_be_preserved(self, monkeypatch):
        monkeypatch.setattr(
            "rewrite_proxy.rewrite.assembler.PRESERVE_HTML_STATUS", True
        )
        response = assemble(envelope(b"<p>missing</p>", "text/html", 404), PROXY)
        assert response.status_code == 404

    def test_html_keeps_declared_charset(self):
        markup = '<html><head></head><body><p>caf\xe9</p></body></html>'.encode("latin-1")
        response = assemble(
            envelope(markup, "text/html; charset=iso-8859-1", charset="iso-8859-1"), PROXY
        )
        assert "<p>caf\xe9</p>".encode("latin-1") in response.body

    def test_css_is_rewritten_with_original_status(self):
        response = assemble(
            envelope(b"body{background:url(/img/bg.png)}", "text/css", 203), PROXY
        )
        assert response.status_code == 203
        assert response.headers["content-type"] == "text/css"
        assert (
            b"url(https://proxy.example/api/proxy?url=https%3A%2F%2Fsite.example%2Fimg%2Fbg.png)"
            in response.body
        )

    def test_css_with_unknown_charset_falls_back_to_utf8(self):
        response = assemble(
            envelope(
                "body{background:url(/a.png)} /* caf\xe9 */".encode("utf-8"),
                "text/css; charset=x-bogus",
                200,
                charset="x-bogus",
            ),
            PROXY,
        )
        assert response.status_code == 200
        assert response.headers["content-type"] == "text/css; charset=x-bogus"
        assert (
            b"url(https://proxy.example/api/proxy?url=https%3A%2F%2Fsite.example%2Fa.png)"
            in response.body
        )
        assert "caf\xe9".encode("utf-8") in response.body

    def test_css_keeps_declared_charset(self):
        css = "a::after{content:'caf\xe9'}".encode("latin-1")
        response = assemble(
            envelope(css, "text/css; charset=latin-1", 200, charset="latin-1"), PROXY
        )
        assert response.body == css

    def test_html_with_unknown_charset_is_still_served(self):
        response = assemble(
            envelope(
                b"<html><head></head><body><a href='/x'>x</a></body></html>",
                "text/html; charset=x-bogus",
                200,
                charset="x-bogus",
            ),
            PROXY,
        )
        assert response.status_code == 200
        assert b"api/proxy?url=https%3A%2F%2Fsite.example%2Fx" in response.body

    def test_javascript_passes_through(self):
        js = b"fetch('/lib/ajax/service.php')"
        response = assemble(envelope(js, "application/javascript", 200), PROXY)
        assert response.body == js
        assert response.headers["content-type"] == "application/javascript"

    def test_binary_passes_through(self):
        png = b"\x89PNG\r\n\x1a\n\x00\x00"
        response = assemble(envelope(png, "image/png", 206), PROXY)
        assert response.body == png
        assert response.status_code == 206
        assert response.headers["content-type"] == "image/png"
