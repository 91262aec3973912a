"""
Server-rendered pages: dashboard, monitor, kiosk and teacher view.

Why:
    The board works without a frontend build: pages are assembled from
    components and plain HTML forms post back to the server (303 redirect after
    each write). `static/js/smartpass.js` adds live polling, local times and the
    delete confirmation dialog on top.

Permissions:
    - Dashboard, monitor and kiosk are public; anyone can create and return
      passes (kiosk tablets have no session).
    - Deleting needs a teacher/admin session; the CSV export an admin session.
      Anonymous callers are redirected to `/auth/login` for those.
"""

from __future__ import annotations

import logging
from typing import Mapping, Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse, RedirectResponse, Response

from identity_access.domain import ROLE_TEACHER
from passes.lifecycle import PassValidationError, can_delete, can_export
from passes.model import DESTINATIONS
from passes.store_supabase import StoreError
from passes.views import View, ViewRequest
from web.auth_utils import current_identity, current_role
from web.components import Component, Layout, PassBoardPanel, PassCreateForm
from .auth import _is_inapp_path
from .passes import csv_response
from .security import is_csrf_violation

pages_router = APIRouter(tags=["Pages"])
logger = logging.getLogger("smartpass.web")

PRIVATE = {"Cache-Control": "private, no-store"}
BOARD_POLL_URLS = {View.MONITOR: "/monitor/board", View.DASHBOARD: "/board", View.TEACHER: "/board?view=teacher"}


def _main():
    from web import main

    return main


def _html(request: Request, title: str, content: str, *, status_code: int = 200, show_nav: bool = True) -> HTMLResponse:
    layout = Layout(
        title=title,
        content=content,
        identity=current_identity(request),
        role=current_role(request),
        show_nav=show_nav,
        current_path=request.url.path,
    )
    return HTMLResponse(content=layout.render(), status_code=status_code, headers=PRIVATE)


def _error_page(request: Request, status_code: int, title: str, message: str) -> HTMLResponse:
    content = (
        '<section class="card">'
        f"<h1>{Component.escape(title)}</h1>"
        f'<p role="alert">{Component.escape(message)}</p>'
        '<p><a class="btn btn-secondary" href="/">Back to the board</a></p>'
        "</section>"
    )
    return _html(request, title, content, status_code=status_code)


def _login_redirect(path: str) -> RedirectResponse:
    target = f"/auth/login?{urlencode({'redirect': path})}" if _is_inapp_path(path) else "/auth/login"
    return RedirectResponse(url=target, status_code=302, headers=PRIVATE)


def _see_other(path: str) -> RedirectResponse:
    return RedirectResponse(url=path, status_code=303, headers=PRIVATE)


def _safe_next(value: object, default: str = "/") -> str:
    return value if isinstance(value, str) and _is_inapp_path(value) else default


def _sync_for_page(board) -> bool:
    """Refresh from the store; False when the store is unreachable."""
    try:
        board.sync()
        return True
    except StoreError as exc:
        logger.warning("Board refresh failed: %s", exc.__class__.__name__)
        return False


def _teacher_name(request: Request) -> Optional[str]:
    identity = current_identity(request)
    if identity is None:
        return None
    return _main().ROLE_RESOLVER.teacher_name(identity.email)


def _board_panel(request: Request, view: View) -> PassBoardPanel:
    board = _main().BOARD
    role = current_role(request)
    version = board.version
    items = board.view(view, current_identity(request), role, teacher_name=_teacher_name(request))
    if view == View.MONITOR:
        empty = "No active passes"
    elif view == View.TEACHER:
        empty = "No passes for your room yet." if role == ROLE_TEACHER else "The teacher view is available to teachers."
    else:
        empty = "No passes yet."
    return PassBoardPanel(
        items,
        version=version,
        role=role,
        compact=(view == View.MONITOR),
        poll_url=BOARD_POLL_URLS.get(view),
        next_path="/teacher" if view == View.TEACHER else "/",
        empty_message=empty,
    )


def _stale_notice(fresh: bool) -> str:
    if fresh:
        return ""
    return '<div class="alert alert-warning" role="status">Live updates are delayed. Showing the last known board.</div>'

# --- Views ----------------------------------------------------------------------

def _render_dashboard(
    request: Request,
    *,
    values: Optional[Mapping[str, str]] = None,
    error: Optional[str] = None,
    status_code: int = 200,
) -> HTMLResponse:
    fresh = _sync_for_page(_main().BOARD)
    role = current_role(request)
    teacher_default = (values or {}).get("teacher") or _teacher_name(request) or ""
    form = PassCreateForm(values=values or {"teacher": teacher_default}, error=error)
    quick_links = "".join(
        f'<a class="btn btn-secondary" href="{Component.escape(ViewRequest.kiosk_url(dest, teacher_default))}">'
        f"Open {Component.escape(dest)} Kiosk</a>"
        for dest in (DESTINATIONS[0], "Nurse")
    )
    export_html = (
        '<a class="btn btn-secondary" href="/passes/export.csv">Export CSV</a>' if can_export(role) else ""
    )
    content = f"""
    <div class="dashboard">
        <section class="card dashboard__create">
            <h2>Create Pass</h2>
            {form.render()}
            <div class="quick-links"><strong>Quick Links:</strong> {quick_links}</div>
        </section>
        <section class="card dashboard__board">
            <div class="card__header"><h2>Pass Board</h2>{export_html}</div>
            {_stale_notice(fresh)}
            {_board_panel(request, View.DASHBOARD).render()}
        </section>
    </div>
    """
    return _html(request, "Dashboard", content, status_code=status_code)


def _render_monitor(request: Request) -> HTMLResponse:
    fresh = _sync_for_page(_main().BOARD)
    content = f"""
    <div class="monitor">
        <h1>SmartPass Monitor</h1>
        <p class="text-muted">Live active passes. Updates automatically.</p>
        {_stale_notice(fresh)}
        {_board_panel(request, View.MONITOR).render()}
    </div>
    """
    return _html(request, "Monitor", content, show_nav=False)


def _render_kiosk(
    request: Request,
    vr: ViewRequest,
    *,
    values: Optional[Mapping[str, str]] = None,
    error: Optional[str] = None,
    notice: Optional[str] = None,
    status_code: int = 200,
) -> HTMLResponse:
    form_values = {"destination": vr.destination, "teacher": vr.teacher}
    form_values.update({k: v for k, v in (values or {}).items() if k in ("studentName", "reason")})
    form = PassCreateForm(values=form_values, error=error, kiosk=True, notice=notice)
    content = f"""
    <div class="kiosk">
        <section class="card kiosk__card">
            <h2>Quick Pass: {Component.escape(vr.destination)}</h2>
            {form.render()}
            <p class="text-muted kiosk__footer">Kiosk for {Component.escape(vr.teacher or "unspecified teacher")}</p>
        </section>
    </div>
    """
    return _html(request, "Kiosk", content, status_code=status_code, show_nav=False)


def _render_teacher(request: Request) -> Response:
    if current_identity(request) is None:
        return _login_redirect("/teacher")
    fresh = _sync_for_page(_main().BOARD)
    name = _teacher_name(request)
    heading = f"Passes for {Component.escape(name)}" if name else "My Passes"
    content = f"""
    <section class="card">
        <h1>{heading}</h1>
        {_stale_notice(fresh)}
        {_board_panel(request, View.TEACHER).render()}
    </section>
    """
    return _html(request, "My Passes", content)


@pages_router.get("/", response_class=HTMLResponse)
async def home(request: Request):
    """Entry page; `?mode=kiosk&...` and `?view=monitor|teacher` select other views."""
    vr = ViewRequest.from_query(request.query_params)
    if vr.view == View.KIOSK:
        return _render_kiosk(request, vr, notice=_created_notice(request))
    if vr.view == View.MONITOR:
        return _render_monitor(request)
    if vr.view == View.TEACHER:
        return _render_teacher(request)
    return _render_dashboard(request)


def _created_notice(request: Request) -> Optional[str]:
    return "Pass created." if request.query_params.get("created") == "1" else None


@pages_router.get("/monitor", response_class=HTMLResponse)
async def monitor(request: Request):
    """Public live board of active passes (embeddable, see SMARTPASS_FRAME_ANCESTORS)."""
    return _render_monitor(request)


async def _board_fragment(request: Request, view: View, since: Optional[str]) -> Response:
    board = _main().BOARD
    try:
        board.sync()
    except StoreError as exc:
        logger.warning("Board refresh failed: %s", exc.__class__.__name__)
        return Response(status_code=502, headers=PRIVATE)
    if since is not None and since.strip() == str(board.version):
        return Response(status_code=204, headers=PRIVATE)
    return HTMLResponse(content=_board_panel(request, view).render(), headers=PRIVATE)


@pages_router.get("/monitor/board", response_class=HTMLResponse)
async def monitor_board(request: Request, since: str | None = None):
    """Board fragment for pollers; 204 when the board version equals `since`."""
    return await _board_fragment(request, View.MONITOR, since)


@pages_router.get("/board", response_class=HTMLResponse)
async def board_fragment(request: Request, since: str | None = None, view: str | None = None):
    """Dashboard/teacher board fragment with action buttons for the caller's role."""
    selected = View.TEACHER if (view or "").strip().lower() == View.TEACHER.value else View.DASHBOARD
    return await _board_fragment(request, selected, since)


@pages_router.get("/kiosk", response_class=HTMLResponse)
async def kiosk(request: Request):
    """Quick-pass form for a fixed destination/teacher (tablets in the hallway)."""
    vr = ViewRequest.from_query({**request.query_params, "mode": View.KIOSK.value})
    return _render_kiosk(request, vr, notice=_created_notice(request))


@pages_router.get("/teacher", response_class=HTMLResponse)
async def teacher(request: Request):
    """Passes naming the signed-in teacher's room or name."""
    return _render_teacher(request)

# --- Form posts -----------------------------------------------------------------

def _form_str(form, key: str) -> str:
    value = form.get(key)
    return value if isinstance(value, str) else ""


@pages_router.post("/passes", response_class=HTMLResponse)
async def create_pass_form(request: Request):
    """
    Create a pass from the dashboard or kiosk form.

    Behavior:
        - 303 back to the dashboard (or the kiosk with `created=1`).
        - 400 re-renders the form with "Enter student name" when the name is
          blank; nothing is written.
        - 403 when the post comes from another origin.
    """
    form = await request.form()
    values = {key: _form_str(form, key) for key in ("studentName", "teacher", "destination", "reason")}
    is_kiosk = _form_str(form, "kiosk") == "1"
    vr = ViewRequest.from_query({"mode": View.KIOSK.value, **values}) if is_kiosk else None

    def _rerender(error: str, status_code: int) -> HTMLResponse:
        if vr is not None:
            return _render_kiosk(request, vr, values=values, error=error, status_code=status_code)
        return _render_dashboard(request, values=values, error=error, status_code=status_code)

    if is_csrf_violation(request):
        return _rerender("csrf_violation", 403)
    identity = current_identity(request)
    try:
        _main().BOARD.create(values, created_by=identity.email if identity is not None else None)
    except PassValidationError as exc:
        return _rerender(exc.code, 400)
    except StoreError as exc:
        logger.warning("Pass create failed: %s", exc.__class__.__name__)
        return _rerender("store_unavailable", 502)
    if vr is not None:
        return _see_other(ViewRequest.kiosk_url(vr.destination, vr.teacher, base="/kiosk") + "&created=1")
    return _see_other("/")


@pages_router.post("/passes/{pass_id}/return", response_class=HTMLResponse)
async def return_pass_form(request: Request, pass_id: str):
    """Return button: mark the pass returned and go back to the board."""
    form = await request.form()
    if is_csrf_violation(request):
        return _error_page(request, 403, "Request rejected", "The form was submitted from another site.")
    board = _main().BOARD
    try:
        board.mark_returned(pass_id)
    except StoreError as exc:
        logger.warning("Pass return failed: %s", exc.__class__.__name__)
        return _error_page(request, 502, "Store unavailable", "The pass could not be updated. Please try again.")
    if board.get(pass_id) is None:
        return _error_page(request, 404, "Pass not found", "This pass no longer exists.")
    return _see_other(_safe_next(form.get("next")))


def _delete_precheck(request: Request, pass_id: str) -> Response | None:
    if current_identity(request) is None:
        return _login_redirect("/")
    if not can_delete(current_role(request)):
        return _error_page(request, 403, "Not allowed", "Only teachers and admins can delete passes.")
    return None


@pages_router.get("/passes/{pass_id}/delete", response_class=HTMLResponse)
async def delete_pass_confirm(request: Request, pass_id: str, next: str | None = None):
    """Confirmation page for deleting a pass (used without JavaScript)."""
    denied = _delete_precheck(request, pass_id)
    if denied is not None:
        return denied
    item = _main().BOARD.get(pass_id)
    if item is None:
        return _error_page(request, 404, "Pass not found", "This pass no longer exists.")
    nxt = Component.escape(_safe_next(next))
    content = f"""
    <section class="card">
        <h1>Delete pass?</h1>
        <p>{Component.escape(item.student_name)} &bull; {Component.escape(item.destination)} &bull; {Component.escape(item.teacher)}</p>
        <form method="post" action="/passes/{Component.escape(item.id)}/delete">
            <input type="hidden" name="confirm" value="yes">
            <input type="hidden" name="next" value="{nxt}">
            <button type="submit" class="btn btn-danger">Delete</button>
            <a class="btn btn-secondary" href="{nxt}">Cancel</a>
        </form>
    </section>
    """
    return _html(request, "Delete pass", content)


@pages_router.post("/passes/{pass_id}/delete", response_class=HTMLResponse)
async def delete_pass_form(request: Request, pass_id: str):
    """Delete a pass after confirmation (`confirm=yes`); otherwise show the confirmation page."""
    denied = _delete_precheck(request, pass_id)
    if denied is not None:
        return denied
    form = await request.form()
    if is_csrf_violation(request):
        return _error_page(request, 403, "Request rejected", "The form was submitted from another site.")
    nxt = _safe_next(form.get("next"))
    if _form_str(form, "confirm") != "yes":
        return _see_other(f"/passes/{pass_id}/delete?{urlencode({'next': nxt})}")
    try:
        removed = _main().BOARD.delete(pass_id, role=current_role(request))
    except StoreError as exc:
        logger.warning("Pass delete failed: %s", exc.__class__.__name__)
        return _error_page(request, 502, "Store unavailable", "The pass could not be deleted. Please try again.")
    if not removed:
        return _error_page(request, 404, "Pass not found", "This pass no longer exists.")
    logger.info("pass deleted id=%s", pass_id)
    return _see_other(nxt)


@pages_router.get("/passes/export.csv")
async def export_csv_download(request: Request):
    """CSV download for admins; anonymous callers are sent to sign in."""
    if current_identity(request) is None:
        return _login_redirect("/")
    if not can_export(current_role(request)):
        return _error_page(request, 403, "Not allowed", "Only admins can export passes.")
    board = _main().BOARD
    if not _sync_for_page(board):
        return _error_page(request, 502, "Store unavailable", "The export could not be created. Please try again.")
    return csv_response(board)
