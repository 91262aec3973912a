"""
Configuration and startup security checks for SmartPass.

Why: Hall passes carry student names; a school deployment must not start with
development defaults (in-memory store, placeholder OAuth client, plain http).
This module reads the environment into small immutable values and provides a
single guard that enforces minimal production safety constraints without
burdening local development.

Permissions: The caller needs no special privileges. The functions simply read
environment variables; the guard raises `SystemExit` on fatal misconfiguration.
"""
from __future__ import annotations

import os
from typing import Dict

from identity_access.roles import RoleConfig
from passes.views import TeacherMatchMode

# Sample school used when nothing is configured (local development only).
DEFAULT_ADMIN_EMAILS = "principal@school.edu"
DEFAULT_TEACHER_EMAILS = "mrs.daleo@school.edu=Mrs. D'Aleo,mr.smith@school.edu=Mr. Smith"
DEFAULT_STAFF_DOMAIN = "school.edu"


def current_environment() -> str:
    return (os.getenv("SMARTPASS_ENV", "dev") or "dev").lower()


def is_prod_like(env: str) -> bool:
    env_l = (env or "").lower()
    return env_l in {"prod", "production", "stage", "staging"}


def _env(name: str, default: str = "") -> str:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip()


def env_flag(name: str, *, default: bool = False) -> bool:
    raw = _env(name)
    if not raw:
        return default
    return raw.lower() in ("1", "true", "yes", "on")


def parse_email_list(raw: str | None) -> frozenset[str]:
    """Parse a comma-separated email list; empty entries are ignored."""
    if not raw:
        return frozenset()
    items = [part.strip().lower() for part in str(raw).split(",")]
    return frozenset(item for item in items if item)


def parse_teacher_map(raw: str | None) -> Dict[str, str]:
    """Parse `email=Display Name` pairs separated by commas.

    Entries without `=` map the email to an empty name, which still grants the
    teacher role; the teacher view then matches on the email local part.
    """
    out: Dict[str, str] = {}
    if not raw:
        return out
    for part in str(raw).split(","):
        if not part.strip():
            continue
        email, _, name = part.partition("=")
        email = email.strip().lower()
        if email:
            out[email] = name.strip()
    return out


def load_role_config() -> RoleConfig:
    return RoleConfig(
        admin_emails=parse_email_list(_env("SMARTPASS_ADMIN_EMAILS", DEFAULT_ADMIN_EMAILS)),
        teacher_emails=parse_teacher_map(_env("SMARTPASS_TEACHER_EMAILS", DEFAULT_TEACHER_EMAILS)),
        staff_domain=_env("SMARTPASS_STAFF_DOMAIN", DEFAULT_STAFF_DOMAIN),
    )


def load_teacher_match_mode() -> TeacherMatchMode:
    return TeacherMatchMode.parse(os.getenv("SMARTPASS_TEACHER_MATCH"))


def pass_store_backend() -> str:
    return (_env("SMARTPASS_PASS_STORE", "memory") or "memory").lower()


def frame_ancestors() -> list[str]:
    """Origins allowed to embed the monitor board (e.g., Google Sites)."""
    raw = _env("SMARTPASS_FRAME_ANCESTORS")
    return [part.strip() for part in raw.split(",") if part.strip()] if raw else []


def ensure_secure_config_on_startup() -> None:
    """Fail fast on insecure production configuration.

    Intent: Abort process startup when obviously insecure settings are detected
    in production/staging. Development remains permissive for convenience.

    Checks:
    - OIDC client id/secret set and not placeholders.
    - OIDC endpoints and REDIRECT_URI use https.
    - Pass store is the hosted store with real Supabase credentials.
    - DATABASE_URL must not explicitly disable TLS.
    - At least one admin email is configured.
    """

    if not is_prod_like(current_environment()):
        return  # dev/test remain permissive

    # 1) OAuth client registration
    client_id = _env("OIDC_CLIENT_ID")
    if not client_id or client_id.upper().startswith("CHANGE_ME"):
        raise SystemExit("Refusing to start: OIDC_CLIENT_ID is unset or a placeholder in production.")
    secret = _env("OIDC_CLIENT_SECRET")
    if not secret or secret.upper().startswith("CHANGE_ME"):
        raise SystemExit("Refusing to start: OIDC_CLIENT_SECRET is unset or a placeholder in production.")

    # 2) Endpoints must use HTTPS
    def _must_be_https(url_value: str, var_name: str) -> None:
        if url_value and url_value.lower().startswith("http://"):
            raise SystemExit(f"Refusing to start: {var_name} must use https in production (got http).")

    for var in ("OIDC_ISSUER", "OIDC_AUTH_ENDPOINT", "OIDC_TOKEN_ENDPOINT", "OIDC_JWKS_URI", "REDIRECT_URI", "SUPABASE_URL"):
        _must_be_https(_env(var), var)

    # 3) Passes must live in the hosted store
    if pass_store_backend() != "supabase":
        raise SystemExit("Refusing to start: SMARTPASS_PASS_STORE must be 'supabase' in production/staging.")
    srole = _env("SUPABASE_SERVICE_ROLE_KEY")
    if not _env("SUPABASE_URL") or not srole or srole.upper() == "DUMMY_DO_NOT_USE":
        raise SystemExit(
            "Refusing to start: SUPABASE_URL/SUPABASE_SERVICE_ROLE_KEY are unset or a dummy placeholder in production."
        )

    # 4) Postgres TLS: basic guard to avoid explicit disable
    if "sslmode=disable" in _env("DATABASE_URL"):
        raise SystemExit(
            "Refusing to start: DATABASE_URL contains sslmode=disable in production. Use sslmode=require or verify TLS."
        )

    # 5) Someone must be able to export and delete
    if not parse_email_list(_env("SMARTPASS_ADMIN_EMAILS")):
        raise SystemExit("Refusing to start: SMARTPASS_ADMIN_EMAILS must list at least one admin in production.")
