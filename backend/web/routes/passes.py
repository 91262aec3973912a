"""
Passes JSON API (router-only module).

Why:
    Kiosk tablets, the monitor board and scripts talk to the pass board over a
    small JSON contract (see api/openapi.yml). Handlers only translate HTTP to
    board calls; validation, permissions and view derivation live in the
    `passes` domain package.

Security:
    - Listing and creating are public, mirroring the kiosk use case; deleting
      requires a teacher/admin session and exporting an admin session.
    - Writes enforce same-origin (Origin/Referer) to block cross-site posts.
    - All responses carry `Cache-Control: private, no-store`; passes contain
      student names.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel

from identity_access.domain import Identity
from passes.export import CSV_FILENAME, CSV_MEDIA_TYPE, export_csv
from passes.lifecycle import PassValidationError, available_actions, can_delete, can_export
from passes.model import Pass
from passes.store_supabase import StoreError
from passes.views import View
from web.auth_utils import current_identity, current_role
from .security import is_csrf_violation

passes_router = APIRouter(tags=["Passes"])
logger = logging.getLogger("smartpass.web.passes")

API_VIEWS = {View.DASHBOARD.value, View.MONITOR.value, View.TEACHER.value, View.KIOSK.value}


def _main():
    from web import main

    return main


def _json_private(payload, *, status_code: int = 200, vary_origin: bool = False) -> JSONResponse:
    """Return a JSONResponse with cache disabled for shared caches and browsers."""
    headers = {"Cache-Control": "private, no-store"}
    if vary_origin:
        headers["Vary"] = "Origin"
    return JSONResponse(content=payload, status_code=status_code, headers=headers)


def _private_error(payload: dict, *, status_code: int, vary_origin: bool = False) -> JSONResponse:
    """Return error JSON with private, no-store cache headers."""
    return _json_private(payload, status_code=status_code, vary_origin=vary_origin)


def _csrf_guard(request: Request) -> JSONResponse | None:
    if is_csrf_violation(request):
        return _private_error({"error": "forbidden", "detail": "csrf_violation"}, status_code=403, vary_origin=True)
    return None


def _store_unavailable(exc: Exception) -> JSONResponse:
    logger.warning("Pass store unavailable: %s", exc.__class__.__name__)
    return _private_error({"error": "store_unavailable"}, status_code=502)


def _serialize(item: Pass, role: str) -> dict:
    data = item.to_dict()
    data["actions"] = list(available_actions(item, role))
    return data


def _teacher_name(identity: Optional[Identity]) -> Optional[str]:
    if identity is None:
        return None
    return _main().ROLE_RESOLVER.teacher_name(identity.email)


def _board_payload(request: Request, view: View) -> dict:
    board = _main().BOARD
    identity = current_identity(request)
    role = current_role(request)
    # Read the version before the list so a concurrent snapshot only causes a re-poll.
    version = board.version
    items = board.view(view, identity, role, teacher_name=_teacher_name(identity))
    return {"version": version, "view": view.value, "passes": [_serialize(p, role) for p in items]}


def _parse_view(raw: Optional[str]) -> Optional[View]:
    value = (raw or View.DASHBOARD.value).strip().lower()
    if value not in API_VIEWS:
        return None
    return View(value)


class PassCreatePayload(BaseModel):
    # Accept loose typing to avoid FastAPI 422 and map contract errors to 400
    studentName: object | None = None
    teacher: object | None = None
    destination: object | None = None
    reason: object | None = None


@passes_router.get("/api/passes")
async def list_passes(request: Request, view: str | None = None):
    """
    List passes for a view (dashboard, monitor, teacher, kiosk).

    Behavior:
        - 200 with `{version, view, passes}`; passes are newest first.
        - `teacher` returns an empty list for callers without the teacher role.
        - 400 `invalid_view` for unknown views.
    Permissions:
        Public.
    """
    parsed = _parse_view(view)
    if parsed is None:
        return _private_error({"error": "bad_request", "detail": "invalid_view"}, status_code=400)
    try:
        _main().BOARD.sync()
    except StoreError as exc:
        return _store_unavailable(exc)
    return _json_private(_board_payload(request, parsed))


@passes_router.get("/api/passes/changes")
async def pass_changes(request: Request, since: str | None = None, view: str | None = None):
    """
    Poll for board changes.

    Behavior:
        - 204 when the board version still equals `since`.
        - 200 with the same payload as `GET /api/passes` otherwise.
    """
    parsed = _parse_view(view)
    if parsed is None:
        return _private_error({"error": "bad_request", "detail": "invalid_view"}, status_code=400)
    since_version: Optional[int] = None
    if since not in (None, ""):
        try:
            since_version = int(since)
        except ValueError:
            return _private_error({"error": "bad_request", "detail": "invalid_since"}, status_code=400)
    board = _main().BOARD
    try:
        board.sync()
    except StoreError as exc:
        return _store_unavailable(exc)
    if since_version is not None and since_version == board.version:
        return Response(status_code=204, headers={"Cache-Control": "private, no-store"})
    return _json_private(_board_payload(request, parsed))


@passes_router.post("/api/passes")
async def create_pass(request: Request, payload: PassCreatePayload):
    """
    Create an active pass.

    Behavior:
        - 201 with the new pass (id assigned by the store).
        - 400 `bad_request` with detail `invalid_student_name` (etc.) when
          validation fails; nothing is written.
        - `createdBy` is the caller's email, or `anonymous` without session.
    Permissions:
        Public (kiosk tablets have no session).
    """
    csrf = _csrf_guard(request)
    if csrf:
        return csrf
    fields = payload.model_dump()
    for key, value in fields.items():
        if value is not None and not isinstance(value, str):
            return _private_error({"error": "bad_request", "detail": f"invalid_{_snake(key)}"}, status_code=400)
    identity = current_identity(request)
    created_by = identity.email if identity is not None else None
    try:
        created = _main().BOARD.create(fields, created_by=created_by)
    except PassValidationError as exc:
        return _private_error({"error": "bad_request", "detail": exc.code}, status_code=400)
    except StoreError as exc:
        return _store_unavailable(exc)
    return _json_private(_serialize(created, current_role(request)), status_code=201)


def _snake(key: str) -> str:
    return "".join(f"_{c.lower()}" if c.isupper() else c for c in key)


@passes_router.post("/api/passes/{pass_id}/return")
async def return_pass(request: Request, pass_id: str):
    """
    Mark a pass as returned.

    Behavior:
        - 200 with the pass in its returned state. Returning an already
          returned pass is a no-op and still answers 200 (first writer wins;
          `returnedAt` keeps its first value).
        - 404 when the pass does not exist.
    Permissions:
        Public, like the Return button on the board.
    """
    csrf = _csrf_guard(request)
    if csrf:
        return csrf
    board = _main().BOARD
    try:
        applied = board.mark_returned(pass_id)
    except StoreError as exc:
        return _store_unavailable(exc)
    current = board.get(pass_id)
    if current is None:
        return _private_error({"error": "not_found"}, status_code=404)
    if applied:
        logger.info("pass returned id=%s", pass_id)
    return _json_private(_serialize(current, current_role(request)))


@passes_router.delete("/api/passes/{pass_id}")
async def delete_pass(request: Request, pass_id: str):
    """
    Delete a pass permanently.

    Behavior:
        - 204 on success; 404 when the pass does not exist.
    Permissions:
        Caller must be signed in as teacher or admin (401 / 403 otherwise).
    """
    if current_identity(request) is None:
        return _private_error({"error": "unauthenticated"}, status_code=401)
    role = current_role(request)
    if not can_delete(role):
        return _private_error({"error": "forbidden"}, status_code=403)
    csrf = _csrf_guard(request)
    if csrf:
        return csrf
    try:
        removed = _main().BOARD.delete(pass_id, role=role)
    except StoreError as exc:
        return _store_unavailable(exc)
    if not removed:
        return _private_error({"error": "not_found"}, status_code=404)
    logger.info("pass deleted id=%s role=%s", pass_id, role)
    return Response(status_code=204, headers={"Cache-Control": "private, no-store"})


def csv_response(board) -> Response:
    body = export_csv(board.passes())
    return Response(
        content=body,
        media_type=CSV_MEDIA_TYPE,
        headers={
            "Content-Disposition": f'attachment; filename="{CSV_FILENAME}"',
            "Cache-Control": "private, no-store",
        },
    )


@passes_router.get("/api/passes/export")
async def export_passes(request: Request):
    """
    Download all passes as CSV (newest first).

    Permissions:
        Caller must be signed in as admin (401 / 403 otherwise).
    """
    if current_identity(request) is None:
        return _private_error({"error": "unauthenticated"}, status_code=401)
    if not can_export(current_role(request)):
        return _private_error({"error": "forbidden"}, status_code=403)
    board = _main().BOARD
    try:
        board.sync()
    except StoreError as exc:
        return _store_unavailable(exc)
    return csv_response(board)
