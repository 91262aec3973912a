"""
Pytest configuration for backend tests.

Why: Force AnyIO to use the asyncio backend and give every test a fresh,
in-memory SmartPass: empty pass board, empty state/session stores and a fixed
school role configuration, independent of the developer's environment.
"""
import os
import sys
from pathlib import Path

import pytest

# Ensure packages in backend/ are importable across tests (identity_access, passes, web, tools)
REPO_ROOT = Path(__file__).resolve().parents[2]
BACKEND_DIR = REPO_ROOT / "backend"
TESTS_DIR = BACKEND_DIR / "tests"
for p in (str(BACKEND_DIR), str(TESTS_DIR)):
    if p not in sys.path:
        sys.path.insert(0, p)

# Variables read by the app; tests opt in per case via monkeypatch.
APP_ENV_VARS = (
    "SMARTPASS_ENV",
    "SMARTPASS_ENABLE_DOTENV",
    "SMARTPASS_ADMIN_EMAILS",
    "SMARTPASS_TEACHER_EMAILS",
    "SMARTPASS_STAFF_DOMAIN",
    "SMARTPASS_TEACHER_MATCH",
    "SMARTPASS_PASS_STORE",
    "SMARTPASS_PASSES_TABLE",
    "SMARTPASS_FRAME_ANCESTORS",
    "SMARTPASS_TRUST_PROXY",
    "SESSIONS_BACKEND",
    "OIDC_CLIENT_ID",
    "OIDC_CLIENT_SECRET",
    "OIDC_ISSUER",
    "OIDC_AUTH_ENDPOINT",
    "OIDC_TOKEN_ENDPOINT",
    "OIDC_JWKS_URI",
    "OIDC_END_SESSION_ENDPOINT",
    "OIDC_HOSTED_DOMAIN",
    "REDIRECT_URI",
    "SUPABASE_URL",
    "SUPABASE_SERVICE_ROLE_KEY",
    "DATABASE_URL",
    "SUPABASE_DB_URL",
)

# Importing web.main runs the startup guard; a prod shell must not abort collection.
for _name in APP_ENV_VARS:
    os.environ.pop(_name, None)

ADMIN_EMAIL = "principal@school.edu"
TEACHER_EMAIL = "mr.smith@school.edu"
TEACHER_NAME = "Mr. Smith"
STUDENT_EMAIL = "kid@gmail.com"


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def _clear_app_env(monkeypatch: pytest.MonkeyPatch):
    """Start every test from a clean dev environment."""
    for name in APP_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    yield


@pytest.fixture(autouse=True)
def _reset_app_state(monkeypatch: pytest.MonkeyPatch):
    """
    Replace the shared singletons of `web.main` before each test.

    Why:
        Routers read STATE_STORE, SESSION_STORE, ROLE_RESOLVER and BOARD from
        `web.main`; without a reset, passes and sessions leak across tests.
    """
    from identity_access.roles import RoleConfig, RoleResolver
    from identity_access.stores import SessionStore, StateStore
    from identity_access.tokens import JWKS_CACHE
    from passes.board import PassBoard
    from passes.store import InMemoryPassStore
    from web import main

    config = RoleConfig.build(admins=[ADMIN_EMAIL], teachers={TEACHER_EMAIL: TEACHER_NAME}, staff_domain="school.edu")
    monkeypatch.setattr(main, "STATE_STORE", StateStore())
    monkeypatch.setattr(main, "SESSION_STORE", SessionStore())
    monkeypatch.setattr(main, "ROLE_RESOLVER", RoleResolver(config))
    monkeypatch.setattr(main, "BOARD", PassBoard(InMemoryPassStore()))
    main.SETTINGS.override_environment(None)
    JWKS_CACHE.clear()
    yield
    main.SETTINGS.override_environment(None)


@pytest.fixture
def app_main():
    from web import main

    return main


@pytest.fixture
def board(app_main):
    return app_main.BOARD


@pytest.fixture
def sign_in(app_main):
    """Create a server-side session and return its id (the cookie value)."""

    def _sign_in(email: str, name: str = "") -> str:
        rec = app_main.SESSION_STORE.create(sub=f"sub-{email}", email=email, name=name or email.split("@")[0])
        return rec.session_id

    return _sign_in
