"""
Role resolution for signed-in callers.

Why:
    Every request needs exactly one role (admin, teacher or student) to decide
    which pass actions are visible. The mapping is static school configuration
    (admin allowlist, teacher email -> name map, trusted staff domain) which is
    injected as an immutable `RoleConfig` so tests can swap it per case.

Behavior:
    Checks run in a fixed order: missing email -> student, admin allowlist ->
    admin, teacher map -> teacher, staff domain -> teacher, else student. An
    email listed both as admin and teacher therefore resolves to admin.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterable, Mapping, Optional

from .domain import (
    ROLE_ADMIN,
    ROLE_STUDENT,
    ROLE_TEACHER,
    Identity,
    email_domain,
    normalize_email,
)


def _freeze_teachers(raw: Mapping[str, str]) -> Mapping[str, str]:
    return MappingProxyType({normalize_email(k): str(v).strip() for k, v in raw.items() if normalize_email(k)})


@dataclass(frozen=True)
class RoleConfig:
    """Static role configuration.

    Parameters:
        admin_emails: Emails that resolve to `admin`.
        teacher_emails: Mapping of teacher email to display name.
        staff_domain: Email domain treated as staff (`teacher`); empty disables.
    """

    admin_emails: frozenset[str] = frozenset()
    teacher_emails: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    staff_domain: str = ""

    def __post_init__(self) -> None:
        # Normalize once so lookups stay plain set/dict membership tests.
        object.__setattr__(self, "admin_emails", frozenset(normalize_email(e) for e in self.admin_emails if normalize_email(e)))
        object.__setattr__(self, "teacher_emails", _freeze_teachers(self.teacher_emails))
        object.__setattr__(self, "staff_domain", (self.staff_domain or "").strip().lower().lstrip("@"))

    @classmethod
    def build(
        cls,
        *,
        admins: Iterable[str] = (),
        teachers: Optional[Mapping[str, str]] = None,
        staff_domain: str = "",
    ) -> "RoleConfig":
        return cls(admin_emails=frozenset(admins), teacher_emails=dict(teachers or {}), staff_domain=staff_domain)


def resolve_role(identity: Optional[Identity], config: RoleConfig) -> str:
    """Return the single role for `identity` under `config`. Never raises."""
    if identity is None:
        return ROLE_STUDENT
    email = normalize_email(identity.email)
    if not email:
        return ROLE_STUDENT
    if email in config.admin_emails:
        return ROLE_ADMIN
    if email in config.teacher_emails:
        return ROLE_TEACHER
    if config.staff_domain and email_domain(email) == config.staff_domain:
        return ROLE_TEACHER
    return ROLE_STUDENT


class RoleResolver:
    """Role resolution bound to one `RoleConfig`."""

    def __init__(self, config: RoleConfig):
        self.config = config

    def resolve(self, identity: Optional[Identity]) -> str:
        return resolve_role(identity, self.config)

    def teacher_name(self, email: Optional[str]) -> Optional[str]:
        """Configured display name for a teacher email, if any."""
        name = self.config.teacher_emails.get(normalize_email(email))
        return name or None


__all__ = ["RoleConfig", "RoleResolver", "resolve_role"]
