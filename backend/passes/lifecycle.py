"""
Pass lifecycle rules.

States: `active` (initial) and `returned` (terminal). Deletion is a separate
destructive operation reserved for admins and teachers; the confirmation step
lives at the interaction boundary (web confirm page), not here.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from typing import Optional

from identity_access.domain import ANONYMOUS, ROLE_ADMIN, ROLE_TEACHER

from .model import DEFAULT_DESTINATION, STATUS_ACTIVE, STATUS_RETURNED, Pass, utcnow

MAX_STUDENT_NAME = 120
MAX_TEACHER = 120
MAX_DESTINATION = 60
MAX_REASON = 500

ACTION_RETURN = "return"
ACTION_DELETE = "delete"


class PassValidationError(ValueError):
    """Raised before any write when pass input is invalid."""

    def __init__(self, code: str):
        super().__init__(code)
        self.code = code


def _clean(value: Optional[str]) -> str:
    return (value or "").strip()


def create_pass(
    *,
    student_name: Optional[str],
    teacher: Optional[str] = "",
    destination: Optional[str] = "",
    reason: Optional[str] = "",
    created_by: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Pass:
    """Build a new active pass from form input.

    The id stays None; the store assigns it when the record is written.
    """
    name = _clean(student_name)
    if not name or len(name) > MAX_STUDENT_NAME:
        raise PassValidationError("invalid_student_name")
    teacher_clean = _clean(teacher)
    if len(teacher_clean) > MAX_TEACHER:
        raise PassValidationError("invalid_teacher")
    destination_clean = _clean(destination) or DEFAULT_DESTINATION
    if len(destination_clean) > MAX_DESTINATION:
        raise PassValidationError("invalid_destination")
    reason_clean = _clean(reason)
    if len(reason_clean) > MAX_REASON:
        raise PassValidationError("invalid_reason")
    return Pass(
        id=None,
        student_name=name,
        teacher=teacher_clean,
        destination=destination_clean,
        reason=reason_clean,
        created_at=now or utcnow(),
        returned_at=None,
        status=STATUS_ACTIVE,
        created_by=_clean(created_by) or ANONYMOUS,
    )


def mark_returned(record: Pass, now: Optional[datetime] = None) -> Pass:
    """Return the pass in its returned state.

    Idempotent: an already returned pass comes back unchanged, so racing
    clients never move `returned_at`.
    """
    if record.status == STATUS_RETURNED:
        return record
    return replace(record, status=STATUS_RETURNED, returned_at=now or utcnow())


def can_delete(role: str) -> bool:
    return role in (ROLE_ADMIN, ROLE_TEACHER)


def ensure_can_delete(role: str) -> None:
    if not can_delete(role):
        raise PermissionError("delete_forbidden")


def can_export(role: str) -> bool:
    return role == ROLE_ADMIN


def available_actions(record: Pass, role: str) -> tuple[str, ...]:
    """Actions the dashboard offers for one pass."""
    actions = []
    if record.is_active:
        actions.append(ACTION_RETURN)
    if can_delete(role):
        actions.append(ACTION_DELETE)
    return tuple(actions)
