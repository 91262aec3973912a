"""
Passes JSON API: list/changes, create, return, delete, CSV export.
"""
from __future__ import annotations

import csv
import io

import httpx
import pytest
from httpx import ASGITransport

from conftest import ADMIN_EMAIL, STUDENT_EMAIL, TEACHER_EMAIL

pytestmark = pytest.mark.anyio("asyncio")


def _client(app_main, sid: str | None = None) -> httpx.AsyncClient:
    client = httpx.AsyncClient(transport=ASGITransport(app=app_main.app), base_url="http://test")
    if sid:
        client.cookies.set("smartpass_session", sid)
    return client


@pytest.mark.anyio
async def test_create_then_list_newest_first(app_main):
    async with _client(app_main) as client:
        first = await client.post("/api/passes", json={"studentName": "Jordan", "teacher": "Mr. Smith"})
        second = await client.post("/api/passes", json={"studentName": "Sam", "destination": "Nurse"})
        listing = await client.get("/api/passes")
    assert first.status_code == 201 and second.status_code == 201
    created = first.json()
    assert created["status"] == "active"
    assert created["destination"] == "Bathroom"
    assert created["createdBy"] == "anonymous"
    assert created["returnedAt"] is None
    assert created["createdAt"].endswith("Z")
    assert created["actions"] == ["return"]
    body = listing.json()
    assert listing.headers["cache-control"] == "private, no-store"
    assert body["view"] == "dashboard"
    assert [p["studentName"] for p in body["passes"]][:2] in (["Sam", "Jordan"], ["Jordan", "Sam"])
    assert {p["id"] for p in body["passes"]} == {created["id"], second.json()["id"]}


@pytest.mark.anyio
async def test_created_by_is_signed_in_email(app_main, sign_in):
    async with _client(app_main, sign_in(TEACHER_EMAIL, "John Smith")) as client:
        resp = await client.post("/api/passes", json={"studentName": "Jordan"})
    assert resp.json()["createdBy"] == TEACHER_EMAIL
    assert resp.json()["actions"] == ["return", "delete"]


@pytest.mark.anyio
@pytest.mark.parametrize(
    "payload, detail",
    [
        ({}, "invalid_student_name"),
        ({"studentName": "   "}, "invalid_student_name"),
        ({"studentName": 42}, "invalid_student_name"),
        ({"studentName": "Jo", "teacher": ["x"]}, "invalid_teacher"),
        ({"studentName": "Jo", "reason": "r" * 501}, "invalid_reason"),
    ],
)
async def test_create_validation_errors_write_nothing(app_main, board, payload, detail):
    async with _client(app_main) as client:
        resp = await client.post("/api/passes", json=payload)
    assert resp.status_code == 400
    assert resp.json() == {"error": "bad_request", "detail": detail}
    assert board.passes() == []


@pytest.mark.anyio
async def test_cross_site_create_is_rejected(app_main, board):
    async with _client(app_main) as client:
        resp = await client.post(
            "/api/passes", json={"studentName": "Jordan"}, headers={"Origin": "https://evil.example"}
        )
    assert resp.status_code == 403
    assert resp.json()["detail"] == "csrf_violation"
    assert resp.headers["vary"] == "Origin"
    assert board.passes() == []


@pytest.mark.anyio
async def test_same_origin_create_passes_in_prod_and_missing_origin_fails(monkeypatch, app_main):
    monkeypatch.setenv("SMARTPASS_ENV", "prod")
    async with _client(app_main) as client:
        ok = await client.post("/api/passes", json={"studentName": "Jordan"}, headers={"Origin": "http://test"})
        missing = await client.post("/api/passes", json={"studentName": "Sam"})
    assert ok.status_code == 201
    assert missing.status_code == 403


@pytest.mark.anyio
async def test_views_filter_passes(app_main, board, sign_in):
    board.create({"studentName": "A", "teacher": "Mr. Smith"})
    b = board.create({"studentName": "B", "teacher": "Mrs. D'Aleo"})
    board.mark_returned(b.id)
    async with _client(app_main) as anon:
        monitor = (await anon.get("/api/passes", params={"view": "monitor"})).json()
        teacher_anon = (await anon.get("/api/passes", params={"view": "teacher"})).json()
        bad = await anon.get("/api/passes", params={"view": "hallway"})
    async with _client(app_main, sign_in(TEACHER_EMAIL, "John Smith")) as smith:
        teacher = (await smith.get("/api/passes", params={"view": "teacher"})).json()
    assert [p["studentName"] for p in monitor["passes"]] == ["A"]
    assert teacher_anon["passes"] == []
    assert [p["studentName"] for p in teacher["passes"]] == ["A"]
    assert bad.status_code == 400
    assert bad.json()["detail"] == "invalid_view"


@pytest.mark.anyio
async def test_changes_returns_204_until_board_moves(app_main, board):
    async with _client(app_main) as client:
        first = (await client.get("/api/passes/changes")).json()
        unchanged = await client.get("/api/passes/changes", params={"since": first["version"]})
        board.create({"studentName": "Jordan"})
        changed = await client.get("/api/passes/changes", params={"since": first["version"]})
        bad = await client.get("/api/passes/changes", params={"since": "abc"})
    assert unchanged.status_code == 204
    assert changed.status_code == 200
    assert changed.json()["version"] > first["version"]
    assert bad.status_code == 400 and bad.json()["detail"] == "invalid_since"


@pytest.mark.anyio
async def test_return_is_idempotent(app_main, board):
    p = board.create({"studentName": "Jordan"})
    async with _client(app_main) as client:
        first = await client.post(f"/api/passes/{p.id}/return")
        second = await client.post(f"/api/passes/{p.id}/return")
        missing = await client.post("/api/passes/nope/return")
    assert first.status_code == 200 and second.status_code == 200
    assert first.json()["status"] == "returned"
    assert first.json()["returnedAt"] == second.json()["returnedAt"]
    assert first.json()["actions"] == []
    assert missing.status_code == 404


@pytest.mark.anyio
async def test_return_after_another_instance_closed_the_pass(monkeypatch, app_main):
    from passes.board import PassBoard
    from passes.store_supabase import SupabasePassStore
    from test_passes_store_supabase import _FakeDB, _row

    db = _FakeDB([_row("p1")])
    monkeypatch.setattr(app_main, "BOARD", PassBoard(SupabasePassStore(db)))
    db.rows[0].update(status="returned", returned_at="2025-10-19T08:05:00.000Z")
    async with _client(app_main) as client:
        resp = await client.post("/api/passes/p1/return")
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "returned"
    assert body["returnedAt"] == "2025-10-19T08:05:00.000Z"
    assert body["actions"] == []


@pytest.mark.anyio
async def test_delete_permissions(app_main, board, sign_in):
    p = board.create({"studentName": "Jordan"})
    async with _client(app_main) as anon:
        assert (await anon.delete(f"/api/passes/{p.id}")).status_code == 401
    async with _client(app_main, sign_in(STUDENT_EMAIL)) as student:
        assert (await student.delete(f"/api/passes/{p.id}")).status_code == 403
    async with _client(app_main, sign_in(TEACHER_EMAIL)) as teacher:
        resp = await teacher.delete(f"/api/passes/{p.id}")
        again = await teacher.delete(f"/api/passes/{p.id}")
    assert resp.status_code == 204
    assert again.status_code == 404
    assert board.get(p.id) is None


@pytest.mark.anyio
async def test_export_is_admin_only_csv(app_main, board, sign_in):
    board.create({"studentName": 'Sam "The Man"', "reason": "a,b"})
    async with _client(app_main) as anon:
        assert (await anon.get("/api/passes/export")).status_code == 401
    async with _client(app_main, sign_in(TEACHER_EMAIL)) as teacher:
        assert (await teacher.get("/api/passes/export")).status_code == 403
    async with _client(app_main, sign_in(ADMIN_EMAIL)) as admin:
        resp = await admin.get("/api/passes/export")
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/csv")
    assert resp.headers["content-disposition"] == 'attachment; filename="passes.csv"'
    assert not resp.text.endswith("\n")
    rows = list(csv.reader(io.StringIO(resp.text)))
    assert rows[0][:2] == ["id", "studentName"]
    assert rows[1][1] == 'Sam "The Man"'
    assert rows[1][4] == "a,b"


class _BrokenStore:
    def subscribe(self, listener):
        listener({})
        return lambda: None

    def refresh(self):
        from passes.store_supabase import StoreError

        raise StoreError("select_failed")

    def create(self, fields):
        self.refresh()

    def patch(self, pass_id, fields, *, expect=None):
        self.refresh()

    def delete(self, pass_id):
        self.refresh()


@pytest.mark.anyio
async def test_store_failure_answers_502(monkeypatch, app_main):
    from passes.board import PassBoard

    monkeypatch.setattr(app_main, "BOARD", PassBoard(_BrokenStore()))
    async with _client(app_main) as client:
        listing = await client.get("/api/passes")
        create = await client.post("/api/passes", json={"studentName": "Jordan"})
    assert listing.status_code == 502
    assert listing.json() == {"error": "store_unavailable"}
    assert create.status_code == 502
