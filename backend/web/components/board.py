"""
Pass board component.

Renders a list of passes as cards. The outer `<section id="pass-board">`
carries the board version; when `poll_url` is set, `smartpass.js` polls
`<poll_url>?since=<version>` every two seconds and swaps the section when the
server answers 200 (204 means nothing changed).
"""

from typing import Optional, Sequence

from passes.lifecycle import available_actions
from passes.model import Pass

from .base import Component
from .cards import PassCard


class PassBoardPanel(Component):
    def __init__(
        self,
        passes: Sequence[Pass],
        *,
        version: int,
        role: str = "student",
        compact: bool = False,
        poll_url: Optional[str] = None,
        next_path: str = "/",
        empty_message: str = "No passes yet.",
    ) -> None:
        self.passes = list(passes)
        self.version = version
        self.role = role
        self.compact = compact
        self.poll_url = poll_url
        self.next_path = next_path
        self.empty_message = empty_message

    def render(self) -> str:
        attrs = self.attributes(
            id="pass-board",
            class_=self.classes("pass-board", pass_board__grid=self.compact),
            data_board_version=str(self.version),
            data_poll_url=self.poll_url,
            aria_live="polite" if self.poll_url else None,
        )
        if not self.passes:
            inner = f'<p class="pass-board__empty text-muted">{self.escape(self.empty_message)}</p>'
        else:
            inner = "".join(
                PassCard(
                    item,
                    actions=() if self.compact else available_actions(item, self.role),
                    compact=self.compact,
                    next_path=self.next_path,
                ).render()
                for item in self.passes
            )
        return f"<section {attrs}>{inner}</section>"
