"""
PassCard component.

One pass on the dashboard, the teacher view or the monitor board. Times are
rendered in UTC inside `<time>` elements; `smartpass.js` rewrites them into
the viewer's local time.
"""

from datetime import datetime
from typing import Optional, Sequence

from passes.lifecycle import ACTION_DELETE, ACTION_RETURN
from passes.model import Pass, format_timestamp

from ..base import Component


def _time_html(value: Optional[datetime], *, fmt: str, local: str) -> str:
    if value is None:
        return ""
    iso = format_timestamp(value)
    attrs = Component.attributes(datetime=iso, data_local=local)
    return f"<time {attrs}>{Component.escape(value.strftime(fmt))} UTC</time>"


class PassCard(Component):
    """
    Args:
        item: The pass to render.
        actions: Actions the viewer may trigger (`return`, `delete`).
        compact: Monitor style (name, destination, teacher, time asked).
        next_path: In-app path the action forms return to.
    """

    def __init__(
        self,
        item: Pass,
        *,
        actions: Sequence[str] = (),
        compact: bool = False,
        next_path: str = "/",
    ) -> None:
        self.item = item
        self.actions = tuple(actions)
        self.compact = compact
        self.next_path = next_path

    def render(self) -> str:
        p = self.item
        css = self.classes("pass-card", pass_card__active=p.is_active, pass_card__returned=not p.is_active)
        if self.compact:
            return (
                f'<article class="{css}" data-pass-id="{self.escape(p.id)}">'
                f'<div class="pass-card__name">{self.escape(p.student_name)}</div>'
                f'<div class="pass-card__meta">{self.escape(p.destination)} &mdash; {self.escape(p.teacher or "-")}</div>'
                f'<div class="pass-card__time">Asked {_time_html(p.created_at, fmt="%H:%M", local="time")}</div>'
                "</article>"
            )

        returned_html = ""
        if not p.is_active:
            returned_html = (
                f'<div class="pass-card__time">Returned: '
                f'{_time_html(p.returned_at, fmt="%Y-%m-%d %H:%M", local="datetime")}</div>'
            )
        reason_html = f'<div class="pass-card__reason">{self.escape(p.reason)}</div>' if p.reason else ""
        return (
            f'<article class="{css}" data-pass-id="{self.escape(p.id)}">'
            '<div class="pass-card__body">'
            f'<div class="pass-card__name">{self.escape(p.student_name)}</div>'
            f'<div class="pass-card__meta">{self.escape(p.destination)} &bull; {self.escape(p.teacher)}</div>'
            f"{reason_html}"
            f'<div class="pass-card__time">By: {self.escape(p.created_by)} &bull; '
            f'{_time_html(p.created_at, fmt="%Y-%m-%d %H:%M", local="datetime")}</div>'
            f"{returned_html}"
            "</div>"
            f'<div class="pass-card__actions">{self._render_actions()}</div>'
            "</article>"
        )

    def _render_actions(self) -> str:
        p = self.item
        out = []
        nxt = self.escape(self.next_path)
        if ACTION_RETURN in self.actions:
            out.append(
                f'<form method="post" action="/passes/{self.escape(p.id)}/return">'
                f'<input type="hidden" name="next" value="{nxt}">'
                '<button type="submit" class="btn btn-primary">Return</button>'
                "</form>"
            )
        elif not p.is_active:
            out.append('<span class="pass-card__status">Returned</span>')
        if ACTION_DELETE in self.actions:
            # Without JS the POST lacks confirm=yes and lands on the confirmation page.
            out.append(
                f'<form method="post" action="/passes/{self.escape(p.id)}/delete" data-confirm="Delete pass?">'
                f'<input type="hidden" name="next" value="{nxt}">'
                '<button type="submit" class="btn btn-danger">Delete</button>'
                "</form>"
            )
        return "".join(out)
