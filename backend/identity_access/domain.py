"""
Identity domain constants and value types.

Why:
- Centralize the role vocabulary so the web layer, the pass domain and the
  tools agree on the same three roles.
- Keep the identity delivered by the sign-in provider a small immutable value;
  it is never persisted by the pass domain.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

ROLE_ADMIN = "admin"
ROLE_TEACHER = "teacher"
ROLE_STUDENT = "student"

# Keep roles minimal and explicit. Immutable to prevent accidental mutation.
ALLOWED_ROLES = frozenset({ROLE_STUDENT, ROLE_TEACHER, ROLE_ADMIN})

ANONYMOUS = "anonymous"


@dataclass(frozen=True)
class Identity:
    """Authenticated caller as reported by the identity provider."""

    email: Optional[str] = None
    display_name: Optional[str] = None
    sub: Optional[str] = None

    @property
    def label(self) -> str:
        """Name shown in the header: display name, else email, else anonymous."""
        return self.display_name or self.email or ANONYMOUS


def normalize_email(value: Optional[str]) -> str:
    """Lowercase and trim an email; returns "" for missing values."""
    if not isinstance(value, str):
        return ""
    return value.strip().lower()


def email_local_part(value: Optional[str]) -> str:
    email = normalize_email(value)
    if "@" not in email:
        return email
    return email.split("@", 1)[0]


def email_domain(value: Optional[str]) -> str:
    email = normalize_email(value)
    if "@" not in email:
        return ""
    return email.rsplit("@", 1)[1]


__all__ = [
    "ALLOWED_ROLES",
    "ANONYMOUS",
    "Identity",
    "ROLE_ADMIN",
    "ROLE_STUDENT",
    "ROLE_TEACHER",
    "email_domain",
    "email_local_part",
    "normalize_email",
]
