"""
Sign-in and sign-out routes.

`/auth/callback` lives in `web.main` beside the OIDC client and the stores;
this router reaches those through a lazy import of `web.main`.
"""

from __future__ import annotations

import logging
import re
import secrets
from urllib.parse import urlparse

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse, RedirectResponse

from identity_access.oidc import OIDCClient
from web.auth_utils import cookie_opts
from web.components import Layout

auth_router = APIRouter(tags=["Auth"])
logger = logging.getLogger("smartpass.web.auth")

# Post-login/logout targets: absolute in-app paths only, no "//" and no "..".
# api/openapi.yml repeats this pattern for /auth/login.
INAPP_PATH_PATTERN = re.compile(r"^(?!.*//)(?!.*\.\.)/[A-Za-z0-9._\-/]*$")
MAX_INAPP_REDIRECT_LEN = 256
NO_STORE = {"Cache-Control": "private, no-store"}


def _main():
    from web import main

    return main


def _is_inapp_path(value: str | None) -> bool:
    """True for "/" or "/teacher"; False for "teacher", "https://evil.com", "/a?b"."""
    return isinstance(value, str) and 0 < len(value) <= MAX_INAPP_REDIRECT_LEN and bool(INAPP_PATH_PATTERN.match(value))


def _app_base(redirect_uri: str) -> str:
    parsed = urlparse(redirect_uri or "")
    if parsed.scheme and parsed.netloc:
        return f"{parsed.scheme}://{parsed.netloc}"
    return "https://smartpass.localhost"


@auth_router.get("/auth/login")
async def auth_login(request: Request, redirect: str | None = None):
    """
    Send the browser to Google with PKCE (S256), state and nonce.

    An unsafe `redirect` is dropped silently; the user then lands on `/`
    after sign-in.
    """
    mod = _main()
    verifier = OIDCClient.generate_code_verifier()
    nonce = secrets.token_urlsafe(16)
    pending = mod.STATE_STORE.create(
        code_verifier=verifier,
        redirect=redirect if _is_inapp_path(redirect) else None,
        nonce=nonce,
    )
    url = mod.OIDC.build_authorization_url(
        state=pending.state,
        code_challenge=OIDCClient.code_challenge_s256(verifier),
        nonce=nonce,
    )
    return RedirectResponse(url=url, status_code=302, headers=NO_STORE)


@auth_router.get("/auth/logout")
async def auth_logout(request: Request, redirect: str | None = None):
    """
    End the SmartPass session; logout always succeeds for the browser.

    Goes through the provider end-session endpoint when one is configured
    (Google has none), then to the in-app `redirect` or the signed-out page.
    """
    mod = _main()
    sid = request.cookies.get(mod.SESSION_COOKIE_NAME)
    id_token = request.state.id_token
    if sid:
        try:
            rec = mod.SESSION_STORE.get(sid)
            id_token = id_token or (rec.id_token if rec else None)
            mod.SESSION_STORE.delete(sid)
        except Exception as exc:
            logger.warning("Session cleanup failed during logout: %s", exc.__class__.__name__)

    landing = redirect if _is_inapp_path(redirect) else "/auth/logout/success"
    target = mod.OIDC.build_logout_url(
        post_logout_redirect_uri=_app_base(mod.OIDC_CFG.redirect_uri) + landing,
        id_token_hint=id_token,
    )
    resp = RedirectResponse(url=target or landing, status_code=302, headers=NO_STORE)
    flags = cookie_opts(mod.SETTINGS.environment)
    resp.delete_cookie(
        mod.SESSION_COOKIE_NAME, path="/", httponly=True, secure=flags["secure"], samesite=flags["samesite"]
    )
    return resp


@auth_router.get("/auth/logout/success", response_class=HTMLResponse)
async def auth_logout_success(request: Request):
    """Confirm the sign-out with a link back to the board and to sign in again."""
    content = (
        '<section class="card">'
        "<h1>Signed out</h1>"
        "<p>You have been signed out of SmartPass.</p>"
        '<p><a class="btn btn-primary" href="/auth/login">Sign in again</a> '
        '<a class="btn btn-secondary" href="/">Back to the board</a></p>'
        "</section>"
    )
    html = Layout(title="Signed out", content=content, current_path=request.url.path).render()
    return HTMLResponse(content=html, headers=NO_STORE)
