"""
Security headers and embedding policy (monitor board in Google Sites etc.).
"""
from __future__ import annotations

import httpx
import pytest
from httpx import ASGITransport

from web.routes import security

pytestmark = pytest.mark.anyio("asyncio")


def _client(app_main) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=ASGITransport(app=app_main.app), base_url="http://test")


@pytest.mark.anyio
async def test_default_headers_forbid_framing(app_main):
    async with _client(app_main) as client:
        resp = await client.get("/")
    csp = resp.headers["content-security-policy"]
    assert "frame-ancestors 'self';" in csp
    assert "script-src 'self'" in csp
    assert resp.headers["x-frame-options"] == "SAMEORIGIN"
    assert resp.headers["x-content-type-options"] == "nosniff"
    assert resp.headers["referrer-policy"] == "strict-origin-when-cross-origin"
    assert "max-age=31536000" in resp.headers["strict-transport-security"]


@pytest.mark.anyio
async def test_monitor_embeddable_from_configured_ancestors(monkeypatch, app_main):
    monkeypatch.setenv("SMARTPASS_FRAME_ANCESTORS", "https://sites.google.com,https://*.googleusercontent.com")
    async with _client(app_main) as client:
        monitor = await client.get("/monitor")
        fragment = await client.get("/monitor/board")
        dashboard = await client.get("/")
    assert "frame-ancestors 'self' https://sites.google.com https://*.googleusercontent.com;" in monitor.headers[
        "content-security-policy"
    ]
    assert "x-frame-options" not in monitor.headers
    assert "https://sites.google.com" in fragment.headers["content-security-policy"]
    assert "frame-ancestors 'self';" in dashboard.headers["content-security-policy"]
    assert dashboard.headers["x-frame-options"] == "SAMEORIGIN"


@pytest.mark.anyio
async def test_prod_csp_drops_inline_styles(app_main):
    app_main.SETTINGS.override_environment("prod")
    async with _client(app_main) as client:
        resp = await client.get("/health")
    assert resp.json() == {"status": "healthy"}
    assert resp.headers["cache-control"] == "private, no-store"
    assert "'unsafe-inline'" not in resp.headers["content-security-policy"]


@pytest.mark.anyio
async def test_static_assets_are_served(app_main):
    async with _client(app_main) as client:
        js = await client.get("/static/js/smartpass.js")
        css = await client.get("/static/css/smartpass.css")
    assert js.status_code == 200 and "since=" in js.text
    assert css.status_code == 200 and ".pass-card" in css.text


class _Req:
    def __init__(self, headers: dict, scheme: str = "https", host: str = "passes.school.edu", port=None):
        self.headers = {k.lower(): v for k, v in headers.items()}
        self.url = type("U", (), {"scheme": scheme, "hostname": host, "port": port})()


@pytest.mark.parametrize(
    "headers, expected",
    [
        ({"Origin": "https://passes.school.edu"}, False),
        ({"Origin": "https://passes.school.edu:443"}, False),
        ({"Origin": "https://evil.example"}, True),
        ({"Origin": "http://passes.school.edu"}, True),
        ({"Referer": "https://passes.school.edu/kiosk?mode=kiosk"}, False),
        ({"Referer": "https://evil.example/page"}, True),
        ({"Origin": "null"}, True),
        ({}, False),
    ],
)
def test_csrf_same_origin_rules(monkeypatch, headers, expected):
    monkeypatch.delenv("SMARTPASS_ENV", raising=False)
    assert security.is_csrf_violation(_Req(headers)) is expected


def test_csrf_strict_in_prod_requires_header(monkeypatch):
    monkeypatch.setenv("SMARTPASS_ENV", "staging")
    assert security.is_csrf_violation(_Req({})) is True
    assert security.is_csrf_violation(_Req({"Origin": "https://passes.school.edu"})) is False


def test_csrf_honors_forwarded_headers_only_when_trusted(monkeypatch):
    req = _Req(
        {"Origin": "https://passes.school.edu", "X-Forwarded-Proto": "https", "X-Forwarded-Host": "passes.school.edu"},
        scheme="http",
        host="app",
        port=8000,
    )
    assert security.is_csrf_violation(req) is True
    monkeypatch.setenv("SMARTPASS_TRUST_PROXY", "true")
    assert security.is_csrf_violation(req) is False
