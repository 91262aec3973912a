"""
HTML components: escaping, pass cards, board panel, create form.
"""
from __future__ import annotations

from datetime import datetime, timezone

from passes.model import STATUS_ACTIVE, STATUS_RETURNED, Pass
from web.components import Component, Layout, PassBoardPanel, PassCard, PassCreateForm
from identity_access.domain import Identity

T0 = datetime(2025, 10, 19, 8, 15, 30, tzinfo=timezone.utc)


def _pass(**overrides) -> Pass:
    data = dict(
        id="p1",
        student_name="Jordan",
        teacher="Mr. Smith",
        destination="Bathroom",
        reason="",
        created_at=T0,
        returned_at=None,
        status=STATUS_ACTIVE,
        created_by="anonymous",
    )
    data.update(overrides)
    return Pass(**data)


def test_component_helpers():
    assert Component.escape(None) == ""
    assert Component.escape('<a href="x">') == "&lt;a href=&quot;x&quot;&gt;"
    assert Component.classes("pass-card", pass_card__active=True, pass_card__returned=False) == "pass-card pass-card--active"
    assert Component.attributes(id="b", data_board_version="3", hidden=True, title=None) == 'id="b" data-board-version="3" hidden'


def test_card_renders_local_time_and_actions():
    html = PassCard(_pass(), actions=("return", "delete"), next_path="/teacher").render()
    assert 'class="pass-card pass-card--active"' in html
    assert 'datetime="2025-10-19T08:15:30.000Z"' in html and "data-local" in html
    assert 'action="/passes/p1/return"' in html
    assert 'data-confirm="Delete pass?"' in html
    assert 'name="next" value="/teacher"' in html


def test_returned_card_shows_status_without_return_button():
    p = _pass(status=STATUS_RETURNED, returned_at=T0, reason="Water <cold>")
    html = PassCard(p, actions=()).render()
    assert "Returned:" in html
    assert "/return" not in html
    assert "Water &lt;cold&gt;" in html


def test_compact_card_has_no_forms():
    html = PassCard(_pass(), actions=("return",), compact=True).render()
    assert "<form" not in html
    assert "Asked" in html


def test_board_panel_empty_and_populated():
    empty = PassBoardPanel([], version=4, poll_url="/monitor/board", empty_message="No active passes").render()
    assert 'data-board-version="4"' in empty and 'data-poll-url="/monitor/board"' in empty
    assert "No active passes" in empty
    full = PassBoardPanel([_pass()], version=5, role="teacher").render()
    assert "data-poll-url" not in full
    assert "/delete" in full


def test_create_form_kiosk_and_errors():
    kiosk = PassCreateForm(values={"destination": "Nurse", "teacher": "Mr. Smith"}, kiosk=True).render()
    assert 'type="hidden" name="destination" value="Nurse"' in kiosk
    assert '<select' not in kiosk
    regular = PassCreateForm(values={"destination": "Field trip"}, error="invalid_student_name").render()
    assert "Enter student name" in regular
    assert '<option value="Field trip" selected>' in regular
    assert 'aria-invalid="true"' in regular


def test_layout_nav_depends_on_role():
    teacher = Layout("T", "<p>x</p>", identity=Identity(email="t@school.edu", display_name="T"), role="teacher").render()
    assert 'href="/teacher"' in teacher and "Sign out" in teacher
    student = Layout("S", "<p>x</p>").render()
    assert 'href="/teacher"' not in student and "Sign in with Google" in student
    bare = Layout("M", "<p>x</p>", show_nav=False).render()
    assert "site-header" not in bare
