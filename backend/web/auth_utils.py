"""
Shared authentication utilities.

Why:
    Avoid duplicating cookie policy and session-to-identity logic across the
    main app and the routers.

Design:
    The helpers are framework-agnostic and pure: callers pass in what they
    read from the request or the session store.
"""

from __future__ import annotations

from typing import Any, Optional

from identity_access.domain import Identity


def cookie_opts(environment: str) -> dict:
    """Return hardened cookie flags (dev = prod).

    Returns a mapping with keys:
      - secure: True
      - samesite: "lax"  # Allow top-level OAuth redirects to set/send cookie
    """
    # "Strict" would suppress the cookie on the redirect back from the
    # identity provider and break the login flow.
    return {"secure": True, "samesite": "lax"}


def identity_from_session(rec: Any) -> Optional[Identity]:
    """Build the request identity from a session record (or None)."""
    if rec is None:
        return None
    email = getattr(rec, "email", "") or None
    return Identity(email=email, display_name=getattr(rec, "name", "") or None, sub=getattr(rec, "sub", None))


def current_identity(request: Any) -> Optional[Identity]:
    state = getattr(request, "state", None)
    return getattr(state, "identity", None) if state is not None else None


def current_role(request: Any) -> str:
    state = getattr(request, "state", None)
    role = getattr(state, "role", None) if state is not None else None
    return role or "student"
