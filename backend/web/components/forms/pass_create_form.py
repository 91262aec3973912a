"""
Pass Creation Form Component
"""
from typing import Mapping, Optional

from passes.model import DESTINATIONS

from ..base import Component
from .fields import HiddenField, SelectField, TextInputField
from .submit import SubmitButton

ERROR_MESSAGES = {
    "invalid_student_name": "Enter student name",
    "invalid_teacher": "Teacher / Room is too long (max. 120 characters).",
    "invalid_destination": "Destination is too long (max. 60 characters).",
    "invalid_reason": "Reason is too long (max. 500 characters).",
    "store_unavailable": "The pass could not be saved. Please try again.",
    "csrf_violation": "The form was submitted from another site and was rejected.",
}


def error_message(code: Optional[str]) -> Optional[str]:
    if not code:
        return None
    return ERROR_MESSAGES.get(code, "The pass could not be created.")


class PassCreateForm(Component):
    """
    Renders the "Create Pass" form.

    The regular form asks for student, teacher/room, destination and reason.
    In kiosk mode destination and teacher are fixed by the kiosk link and sent
    as hidden fields, so a student only types their name.
    """

    def __init__(
        self,
        *,
        values: Optional[Mapping[str, str]] = None,
        error: Optional[str] = None,
        kiosk: bool = False,
        notice: Optional[str] = None,
    ):
        self.values = dict(values or {})
        self.error = error
        self.kiosk = kiosk
        self.notice = notice

    def _value(self, key: str) -> str:
        return str(self.values.get(key) or "")

    def render(self) -> str:
        message = error_message(self.error)
        name_error = message if self.error == "invalid_student_name" else None
        student = TextInputField("studentName", "Student name", required=True, error_text=name_error)
        parts = [
            student.render(
                value=self._value("studentName"),
                placeholder="Student name",
                autocomplete="off",
                class_="form-input",
            )
        ]
        if self.kiosk:
            parts.extend(
                HiddenField(name, value).render()
                for name, value in (
                    ("destination", self._value("destination")),
                    ("teacher", self._value("teacher")),
                    ("kiosk", "1"),
                )
            )
        else:
            parts.append(
                TextInputField("teacher", "Teacher / Room").render(
                    value=self._value("teacher"), placeholder="Teacher / Room", class_="form-input"
                )
            )
            parts.append(
                SelectField("destination", "Destination", DESTINATIONS).render(
                    value=self._value("destination") or DESTINATIONS[0], class_="form-input"
                )
            )
        parts.append(
            TextInputField("reason", "Reason (optional)").render(
                value=self._value("reason"), placeholder="Reason (optional)", class_="form-input"
            )
        )

        error_html = ""
        if message and not name_error:
            error_html = f'<div class="form-error" role="alert">{self.escape(message)}</div>'
        notice_html = ""
        if self.notice:
            notice_html = f'<div class="form-notice" role="status">{self.escape(self.notice)}</div>'

        fields_html = "\n".join(parts)
        return f"""
        <form method="post" action="/passes" class="pass-create-form">
            {notice_html}
            {fields_html}
            {error_html}
            <div class="form-actions">
                {SubmitButton("Create Pass").render()}
                <button type="reset" class="btn btn-secondary">Clear</button>
            </div>
        </form>
        """
