"""
In-memory pass store: snapshots, conditional patch, listener isolation.
"""
from __future__ import annotations

from passes.store import InMemoryPassStore, snapshot_signature


def _record(name: str = "Jordan", status: str = "active") -> dict:
    return {"studentName": name, "createdAt": "2025-10-19T08:00:00.000Z", "status": status}


def test_subscribe_delivers_current_snapshot_immediately():
    store = InMemoryPassStore({"a": _record()})
    seen = []
    store.subscribe(seen.append)
    assert seen == [{"a": _record()}]


def test_writes_notify_with_full_snapshot():
    store = InMemoryPassStore()
    seen = []
    unsubscribe = store.subscribe(seen.append)
    pid = store.create(_record())
    assert seen[-1] == {pid: _record()}
    assert store.patch(pid, {"status": "returned"}) is True
    assert seen[-1][pid]["status"] == "returned"
    assert store.delete(pid) is True
    assert seen[-1] == {}
    unsubscribe()
    store.create(_record("Other"))
    assert len(seen) == 4


def test_patch_respects_expectations():
    store = InMemoryPassStore({"a": _record(status="returned")})
    assert store.patch("a", {"status": "returned", "returnedAt": "x"}, expect={"status": "active"}) is False
    assert store.snapshot()["a"].get("returnedAt") is None
    assert store.patch("missing", {"status": "returned"}) is False
    assert store.delete("missing") is False


def test_listener_mutations_do_not_leak():
    store = InMemoryPassStore({"a": _record()})
    other = []

    def greedy(snap):
        snap.clear()

    store.subscribe(greedy)
    store.subscribe(other.append)
    store.create(_record("B"))
    assert len(other[-1]) == 2
    assert "a" in store.snapshot()


def test_ids_are_unique_and_signature_is_content_based():
    store = InMemoryPassStore()
    ids = {store.create(_record()) for _ in range(5)}
    assert len(ids) == 5
    assert snapshot_signature({"a": {"x": 1, "y": 2}}) == snapshot_signature({"a": {"y": 2, "x": 1}})
    assert snapshot_signature({"a": {"x": 1}}) != snapshot_signature({"a": {"x": 2}})
