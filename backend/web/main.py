"""
SmartPass FastAPI application.

Wires Google sign-in, the role roster and the pass board together. Shared
singletons (OIDC client, stores, ROLE_RESOLVER, BOARD) live at module level
so routers and tests reach them through `web.main`.
"""
from __future__ import annotations

from pathlib import Path
import logging
import os
import sys
from datetime import datetime, timezone

import requests
from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse, Response
from fastapi.staticfiles import StaticFiles

from identity_access.domain import ROLE_STUDENT
from identity_access.oidc import (
    GOOGLE_AUTH_ENDPOINT,
    GOOGLE_ISSUER,
    GOOGLE_JWKS_URI,
    GOOGLE_TOKEN_ENDPOINT,
    OIDCClient,
    OIDCConfig,
)
from identity_access.roles import RoleResolver
from identity_access.stores import SessionStore, StateStore
from identity_access.tokens import IDTokenVerificationError, verify_id_token

from web import config as _cfg
from web.auth_utils import cookie_opts, identity_from_session
from web.components import Component, Layout
from web.store_wiring import build_pass_board


def _under_pytest() -> bool:
    return "pytest" in sys.modules or bool(os.getenv("PYTEST_CURRENT_TEST"))


# A developer's .env must not leak into test runs.
if not _under_pytest() and _cfg.env_flag("SMARTPASS_ENABLE_DOTENV", default=True):
    load_dotenv()

_cfg.ensure_secure_config_on_startup()

# --- App & Settings Setup -------------------------------------------------------

class AuthSettings:
    """Deployment environment (SMARTPASS_ENV), overridable from tests."""

    def __init__(self) -> None:
        self._env_override: str | None = None

    @property
    def environment(self) -> str:
        return self._env_override or os.getenv("SMARTPASS_ENV", "dev").lower()

    def override_environment(self, env: str | None) -> None:
        self._env_override = env


logger = logging.getLogger("smartpass.web")
SETTINGS = AuthSettings()
SESSION_COOKIE_NAME = "smartpass_session"

app = FastAPI(title="SmartPass", description="Digital hall passes with a live monitor board", version="0.1.0")
app.mount("/static", StaticFiles(directory=str(Path(__file__).parent / "static")), name="static")

from web.routes.auth import auth_router  # noqa: E402
from web.routes.pages import pages_router  # noqa: E402
from web.routes.passes import passes_router  # noqa: E402

# --- OIDC, Sessions, Roles & Board ---------------------------------------------

_OIDC_ENV = {
    "issuer": ("OIDC_ISSUER", GOOGLE_ISSUER),
    "auth_endpoint": ("OIDC_AUTH_ENDPOINT", GOOGLE_AUTH_ENDPOINT),
    "token_endpoint": ("OIDC_TOKEN_ENDPOINT", GOOGLE_TOKEN_ENDPOINT),
    "jwks_uri": ("OIDC_JWKS_URI", GOOGLE_JWKS_URI),
}
_OIDC_OPTIONAL_ENV = {
    "client_secret": "OIDC_CLIENT_SECRET",
    "end_session_endpoint": "OIDC_END_SESSION_ENDPOINT",
    "hosted_domain": "OIDC_HOSTED_DOMAIN",
}


def load_oidc_config() -> OIDCConfig:
    """Google endpoints unless overridden; empty optional values count as unset."""
    return OIDCConfig(
        client_id=os.getenv("OIDC_CLIENT_ID", "CHANGE_ME_DEV_CLIENT"),
        redirect_uri=os.getenv("REDIRECT_URI", "https://smartpass.localhost/auth/callback"),
        **{field: os.getenv(var, default) for field, (var, default) in _OIDC_ENV.items()},
        **{field: os.getenv(var) or None for field, var in _OIDC_OPTIONAL_ENV.items()},
    )


OIDC_CFG = load_oidc_config()
OIDC = OIDCClient(OIDC_CFG)
STATE_STORE = StateStore()

if not _under_pytest() and os.getenv("SESSIONS_BACKEND", "memory").lower() == "db":
    from identity_access.stores_db import DBSessionStore

    SESSION_STORE = DBSessionStore()
else:
    SESSION_STORE = SessionStore()

ROLE_RESOLVER = RoleResolver(_cfg.load_role_config())
BOARD = build_pass_board()

# --- Auth Helpers & Middleware --------------------------------------------------

def _set_session_cookie(response: Response, value: str, *, max_age: int | None = None) -> None:
    flags = cookie_opts(SETTINGS.environment)
    response.set_cookie(
        SESSION_COOKIE_NAME,
        value,
        max_age=max_age,
        path="/",
        httponly=True,
        secure=flags["secure"],
        samesite=flags["samesite"],
    )


def _skips_session(path: str) -> bool:
    return path.startswith("/static/") or path in ("/health", "/favicon.ico")


@app.middleware("http")
async def session_context(request: Request, call_next):
    """Attach the optional caller identity and its role to `request.state`.

    Kiosk, monitor and dashboard are public, so nothing is blocked here.
    The role is resolved on every request so roster edits apply without a
    new sign-in.
    """
    state = request.state
    state.identity, state.role, state.user, state.id_token = None, ROLE_STUDENT, None, None
    sid = None if _skips_session(request.url.path) else request.cookies.get(SESSION_COOKIE_NAME)
    rec = None
    if sid:
        try:
            rec = SESSION_STORE.get(sid)
        except Exception as exc:
            # A session backend outage degrades to anonymous access.
            logger.warning("Session store get failed: %s", exc.__class__.__name__)
    if rec:
        state.identity = identity_from_session(rec)
        state.role = ROLE_RESOLVER.resolve(state.identity)
        state.user = {"sub": rec.sub, "email": rec.email, "name": rec.name, "role": state.role}
        state.id_token = rec.id_token  # logout hint only, never rendered
    return await call_next(request)


# --- Security Headers Middleware ----------------------------------------------

_BASE_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "geolocation=(), microphone=(), camera=()",
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
}


def content_security_policy(*, prod: bool, ancestors: list[str]) -> str:
    """CSP for a SmartPass page; inline styles are tolerated outside prod."""
    directives = [
        ("default-src", "'self'"),
        ("script-src", "'self'"),
        ("style-src", "'self'" if prod else "'self' 'unsafe-inline'"),
        ("img-src", "'self' data:"),
        ("font-src", "'self' data:"),
        ("connect-src", "'self'"),
        ("frame-ancestors", " ".join(["'self'", *ancestors])),
    ]
    return "; ".join(f"{name} {value}" for name, value in directives) + ";"


@app.middleware("http")
async def security_headers(request: Request, call_next):
    response = await call_next(request)
    path = request.url.path
    # Only the monitor may be framed by the origins in SMARTPASS_FRAME_ANCESTORS.
    ancestors = _cfg.frame_ancestors() if path == "/monitor" or path.startswith("/monitor/") else []
    headers = response.headers
    headers.setdefault("Content-Security-Policy", content_security_policy(prod=SETTINGS.environment == "prod", ancestors=ancestors))
    if not ancestors:
        headers.setdefault("X-Frame-Options", "SAMEORIGIN")
    for name, value in _BASE_HEADERS.items():
        headers.setdefault(name, value)
    return response


# --- Routes ---------------------------------------------------------------------

app.include_router(auth_router)
app.include_router(passes_router)
app.include_router(pages_router)

NO_STORE = {"Cache-Control": "private, no-store"}


@app.get("/health")
async def health_check():
    return JSONResponse({"status": "healthy"}, headers=NO_STORE)


def _sign_in_failed(request: Request, message: str) -> HTMLResponse:
    content = (
        '<section class="card auth-error">'
        "<h1>Sign-in failed</h1>"
        f'<p role="alert">{Component.escape(message)}</p>'
        '<p><a class="btn btn-primary" href="/auth/login">Try again</a> '
        '<a class="btn btn-secondary" href="/">Back to the board</a></p>'
        "</section>"
    )
    html = Layout(title="Sign-in failed", content=content, current_path=request.url.path).render()
    return HTMLResponse(content=html, status_code=400, headers=NO_STORE)


def _callback_error(code: str) -> JSONResponse:
    return JSONResponse({"error": code}, status_code=400, headers=NO_STORE)


@app.get("/auth/callback")
async def auth_callback(
    request: Request,
    code: str | None = None,
    state: str | None = None,
    error: str | None = None,
    error_description: str | None = None,
):
    """
    Finish Google sign-in and open a SmartPass session.

    Behavior:
        - `?error=` from Google (e.g. access_denied) renders an HTML page with
          400 and burns the pending state.
        - Missing/replayed state, failed code exchange, a bad ID token, a
          nonce mismatch or `email_verified=false` answer 400 JSON.
        - Success stores the session server-side, sets the opaque cookie and
          redirects to the in-app path remembered at login (default `/`).
    Permissions:
        Public.
    """
    if error:
        if state:
            STATE_STORE.pop_valid(state)
        logger.warning("Sign-in rejected by provider: %s", error)
        return _sign_in_failed(request, error_description or error)
    pending = STATE_STORE.pop_valid(state) if code and state else None
    if pending is None:
        return _callback_error("invalid_code_or_state")
    try:
        tokens = OIDC.exchange_code_for_tokens(code=code, code_verifier=pending.code_verifier)
    except (ValueError, requests.RequestException) as exc:
        logger.warning("Token exchange failed: %s", exc.__class__.__name__)
        return _callback_error("token_exchange_failed")
    id_token = tokens.get("id_token")
    if not isinstance(id_token, str) or not id_token:
        return _callback_error("invalid_id_token")
    try:
        claims = verify_id_token(id_token=id_token, cfg=OIDC_CFG)
    except IDTokenVerificationError as exc:
        logger.warning("ID token verification failed: %s", exc.code)
        return _callback_error("invalid_id_token")
    if pending.nonce and claims.get("nonce") != pending.nonce:
        return _callback_error("invalid_nonce")
    # Staff roles are granted by email, so the address must be verified.
    if claims.get("email_verified") is False:
        return _callback_error("email_not_verified")

    sub = str(claims.get("sub") or "unknown-sub")
    email = str(claims.get("email") or "").strip()
    name = str(claims.get("name") or email.partition("@")[0])
    session = SESSION_STORE.create(sub=sub, email=email, name=name, id_token=id_token)
    logger.info("Sign-in completed sub=%s", sub)
    resp = RedirectResponse(url=pending.redirect or "/", status_code=302, headers=NO_STORE)
    # Session cookie in dev; persistent for the session lifetime in prod.
    _set_session_cookie(resp, session.session_id, max_age=session.ttl_seconds if SETTINGS.environment == "prod" else None)
    return resp


@app.get("/api/me")
async def get_me(request: Request):
    """The signed-in caller, with role and roster teacher name; 401 otherwise."""
    sid = request.cookies.get(SESSION_COOKIE_NAME)
    rec = SESSION_STORE.get(sid) if sid else None
    if not rec:
        return JSONResponse({"error": "unauthenticated"}, status_code=401, headers=NO_STORE)
    expires_at = None
    if rec.expires_at:
        expires_at = datetime.fromtimestamp(rec.expires_at, tz=timezone.utc).isoformat(timespec="seconds")
    body = {
        "sub": rec.sub,
        "email": rec.email,
        "name": rec.name,
        "role": ROLE_RESOLVER.resolve(identity_from_session(rec)),
        "teacherName": ROLE_RESOLVER.teacher_name(rec.email),
        "expires_at": expires_at,
    }
    return JSONResponse(body, headers=NO_STORE)
