"""
View derivation for the pass board.

Why:
    Each screen shows a different subset of the same live pass list: the
    dashboard shows everything (actions are gated per role, not records), the
    hall monitor board shows active passes only, and the teacher view shows the
    passes addressed to the signed-in teacher.

Teacher matching:
    The `teacher` field of a pass is free text typed at creation time
    ("Mr. Smith", "Rm 101", ...). The default SUBSTRING mode is the loose
    heuristic: the field must contain the teacher's configured display name or
    the local part of their email, case-insensitively. EXACT mode requires the
    field to equal one of those keys (or the full email). A pass addressed by
    room number matches neither mode unless the room is the configured name.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Mapping, Optional
from urllib.parse import urlencode

from identity_access.domain import ROLE_TEACHER, Identity, email_local_part, normalize_email

from .model import DEFAULT_DESTINATION, Pass


class View(str, Enum):
    DASHBOARD = "dashboard"
    MONITOR = "monitor"
    TEACHER = "teacher"
    KIOSK = "kiosk"


class TeacherMatchMode(str, Enum):
    SUBSTRING = "substring"
    EXACT = "exact"

    @classmethod
    def parse(cls, raw: Optional[str]) -> "TeacherMatchMode":
        value = (raw or "").strip().lower()
        if value == cls.EXACT.value:
            return cls.EXACT
        return cls.SUBSTRING


@dataclass(frozen=True)
class ViewRequest:
    """Explicit navigation value selecting what the UI renders.

    Built once at the HTTP edge from query parameters instead of being read
    from ambient request state deeper in the stack.
    """

    view: View = View.DASHBOARD
    destination: str = DEFAULT_DESTINATION
    teacher: str = ""

    @classmethod
    def from_query(cls, params: Mapping[str, str]) -> "ViewRequest":
        mode = (params.get("mode") or "").strip().lower()
        if mode == View.KIOSK.value:
            return cls(
                view=View.KIOSK,
                destination=(params.get("destination") or "").strip() or DEFAULT_DESTINATION,
                teacher=(params.get("teacher") or "").strip(),
            )
        view = (params.get("view") or "").strip().lower()
        if view == View.MONITOR.value:
            return cls(view=View.MONITOR)
        if view == View.TEACHER.value:
            return cls(view=View.TEACHER)
        return cls()

    @staticmethod
    def kiosk_url(destination: str, teacher: str = "", *, base: str = "/") -> str:
        query = urlencode({"mode": View.KIOSK.value, "destination": destination, "teacher": teacher})
        return f"{base}?{query}"


def sort_passes(passes: Iterable[Pass]) -> List[Pass]:
    """Newest first by `created_at`; ties keep a stable id order."""
    items = sorted(passes, key=lambda p: str(p.id or ""))
    items.sort(key=lambda p: p.created_at, reverse=True)
    return items


def _teacher_keys(identity: Identity, teacher_name: Optional[str]) -> List[str]:
    keys = []
    if teacher_name and teacher_name.strip():
        keys.append(teacher_name.strip().casefold())
    local = email_local_part(identity.email)
    if local:
        keys.append(local.casefold())
    return keys


def matches_teacher(
    record: Pass,
    identity: Identity,
    *,
    teacher_name: Optional[str] = None,
    match_mode: TeacherMatchMode = TeacherMatchMode.SUBSTRING,
) -> bool:
    field = (record.teacher or "").strip().casefold()
    if not field:
        return False
    keys = _teacher_keys(identity, teacher_name)
    if match_mode == TeacherMatchMode.EXACT:
        email = normalize_email(identity.email)
        return field in keys or (bool(email) and field == email)
    return any(key in field for key in keys)


def filter_for_view(
    passes: Iterable[Pass],
    view: View,
    identity: Optional[Identity],
    role: str,
    *,
    teacher_name: Optional[str] = None,
    match_mode: TeacherMatchMode = TeacherMatchMode.SUBSTRING,
) -> List[Pass]:
    """Return the sorted subset of `passes` shown by `view`."""
    ordered = sort_passes(passes)
    if view == View.MONITOR:
        return [p for p in ordered if p.is_active]
    if view == View.DASHBOARD:
        return ordered
    if view == View.TEACHER:
        if identity is None or role != ROLE_TEACHER or not identity.email:
            return []
        return [
            p
            for p in ordered
            if matches_teacher(p, identity, teacher_name=teacher_name, match_mode=match_mode)
        ]
    return []
