"""
Pass record model.

A pass is the only persisted entity. In Python it is a small dataclass with
snake_case attributes; at the store boundary it travels as a mapping keyed by
the camelCase field names that the CSV export and the hosted store use.

Timestamps are timezone-aware UTC datetimes. The wire form is ISO-8601 with
millisecond precision and a `Z` suffix, e.g. `2025-10-19T08:15:30.123Z`.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

STATUS_ACTIVE = "active"
STATUS_RETURNED = "returned"
STATUSES = (STATUS_ACTIVE, STATUS_RETURNED)

DESTINATIONS = ("Bathroom", "Guidance", "Nurse", "Office", "Other")
DEFAULT_DESTINATION = "Bathroom"

# Record keys in storage/export order (without the id).
RECORD_FIELDS = (
    "studentName",
    "teacher",
    "destination",
    "reason",
    "createdAt",
    "returnedAt",
    "status",
    "createdBy",
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse a stored timestamp; naive values are read as UTC.

    Raises ValueError for non-empty values that are not ISO-8601.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        dt = datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


@dataclass(frozen=True)
class Pass:
    id: Optional[str]
    student_name: str
    teacher: str
    destination: str
    reason: str
    created_at: datetime
    returned_at: Optional[datetime]
    status: str
    created_by: str

    @property
    def is_active(self) -> bool:
        return self.status == STATUS_ACTIVE

    def to_record(self) -> Dict[str, Any]:
        """Store representation (camelCase keys, no id)."""
        return {
            "studentName": self.student_name,
            "teacher": self.teacher,
            "destination": self.destination,
            "reason": self.reason,
            "createdAt": format_timestamp(self.created_at),
            "returnedAt": format_timestamp(self.returned_at),
            "status": self.status,
            "createdBy": self.created_by,
        }

    def to_dict(self) -> Dict[str, Any]:
        """API representation: the record plus its id."""
        return {"id": self.id, **self.to_record()}

    @classmethod
    def from_record(cls, pass_id: str, record: Mapping[str, Any]) -> "Pass":
        created_at = parse_timestamp(record.get("createdAt"))
        if created_at is None:
            raise ValueError("missing_created_at")
        returned_at = parse_timestamp(record.get("returnedAt"))
        status = str(record.get("status") or "").strip().lower()
        if status not in STATUSES:
            status = STATUS_RETURNED if returned_at is not None else STATUS_ACTIVE
        return cls(
            id=str(pass_id),
            student_name=str(record.get("studentName") or ""),
            teacher=str(record.get("teacher") or ""),
            destination=str(record.get("destination") or ""),
            reason=str(record.get("reason") or ""),
            created_at=created_at,
            returned_at=returned_at,
            status=status,
            created_by=str(record.get("createdBy") or ""),
        )


__all__ = [
    "DEFAULT_DESTINATION",
    "DESTINATIONS",
    "Pass",
    "RECORD_FIELDS",
    "STATUSES",
    "STATUS_ACTIVE",
    "STATUS_RETURNED",
    "format_timestamp",
    "parse_timestamp",
    "utcnow",
]
