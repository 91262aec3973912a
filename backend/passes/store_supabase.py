"""
Supabase-backed realtime pass store.

This adapter implements the `PassStore` port on a Postgres table exposed by
Supabase (PostgREST). It is duck-typed against the client returned by
`supabase.create_client(url, key)`; the client is expected to expose
`.table(name)` returning a query builder with `select/insert/update/delete`,
`eq` filters and `execute()` returning an object with a `data` list.

Change detection:
    The hosted store is polled: `refresh()` re-reads the table and notifies
    subscribers only when the snapshot signature changed. Own writes trigger a
    refresh as well, so subscribers see them without waiting for the poll.

Security:
- Use the service role key server-side only; browsers never talk to the table.
- The double-return race is resolved in the database: returning a pass adds
  an `eq("status", "active")` filter, so only the first writer matches a row.
"""

from __future__ import annotations

import logging
import os
import threading
from typing import Any, Callable, Dict, Mapping, Optional
from uuid import uuid4

from .store import Listener, Snapshot, _Subscribers, snapshot_signature

logger = logging.getLogger("smartpass.passes.store")

# record key (camelCase) -> table column (snake_case)
COLUMNS: Dict[str, str] = {
    "studentName": "student_name",
    "teacher": "teacher",
    "destination": "destination",
    "reason": "reason",
    "createdAt": "created_at",
    "returnedAt": "returned_at",
    "status": "status",
    "createdBy": "created_by",
}
_FIELDS_BY_COLUMN = {column: key for key, column in COLUMNS.items()}
PAGE_SIZE = 1000


class StoreError(RuntimeError):
    """Raised when the hosted store rejects or fails a request."""


def _to_columns(fields: Mapping[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for key, value in fields.items():
        column = COLUMNS.get(key)
        if column is None:
            raise ValueError(f"unknown_field:{key}")
        out[column] = value
    return out


def _to_record(row: Mapping[str, Any]) -> Dict[str, Any]:
    return {key: row.get(column) for column, key in _FIELDS_BY_COLUMN.items()}


class SupabasePassStore:
    """Pass store on a Supabase table (default `passes`)."""

    def __init__(self, client: Any, table: str = "passes", *, page_size: int = PAGE_SIZE):
        self._client = client
        self._table = table
        self.page_size = page_size
        self._subscribers = _Subscribers()
        self._lock = threading.Lock()
        self._signature: Optional[str] = None

    def _query(self) -> Any:
        return self._client.table(self._table)

    @staticmethod
    def _execute(query: Any, op: str) -> list:
        try:
            res = query.execute()
        except Exception as exc:
            logger.warning("Supabase %s failed: %s", op, exc.__class__.__name__)
            raise StoreError(f"{op}_failed") from exc
        data = getattr(res, "data", None)
        if data is None and isinstance(res, dict):
            data = res.get("data")
        return list(data or [])

    def snapshot(self) -> Snapshot:
        # PostgREST caps a response (1000 rows by default); read in pages.
        rows: list = []
        start = 0
        while True:
            query = (
                self._query()
                .select("*")
                .order("created_at", desc=True)
                .order("id")
                .range(start, start + self.page_size - 1)
            )
            page = self._execute(query, "select")
            rows.extend(page)
            if len(page) < self.page_size:
                break
            start += self.page_size
        return {str(row["id"]): _to_record(row) for row in rows if row.get("id") is not None}

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        unsubscribe = self._subscribers.add(listener)
        try:
            snap = self.snapshot()
        except StoreError:
            # Startup may precede the hosted store; the next refresh delivers.
            logger.warning("Initial pass snapshot unavailable; waiting for refresh")
            return unsubscribe
        with self._lock:
            self._signature = snapshot_signature(snap)
        listener(snap)
        return unsubscribe

    def refresh(self) -> None:
        snap = self.snapshot()
        signature = snapshot_signature(snap)
        with self._lock:
            if signature == self._signature:
                return
            self._signature = signature
        self._subscribers.emit(snap)

    def create(self, fields: Mapping[str, Any]) -> str:
        pass_id = str(uuid4())
        row = {"id": pass_id, **_to_columns(fields)}
        self._execute(self._query().insert(row), "insert")
        logger.info("pass created id=%s", pass_id)
        self.refresh()
        return pass_id

    def patch(self, pass_id: str, fields: Mapping[str, Any], *, expect: Optional[Mapping[str, Any]] = None) -> bool:
        query = self._query().update(_to_columns(fields)).eq("id", pass_id)
        for column, value in _to_columns(expect or {}).items():
            query = query.eq(column, value)
        rows = self._execute(query, "update")
        applied = bool(rows)
        logger.info("pass patch id=%s applied=%s", pass_id, applied)
        if applied:
            self.refresh()
        return applied

    def delete(self, pass_id: str) -> bool:
        rows = self._execute(self._query().delete().eq("id", pass_id), "delete")
        removed = bool(rows)
        logger.info("pass delete id=%s removed=%s", pass_id, removed)
        if removed:
            self.refresh()
        return removed


def create_supabase_pass_store(url: str | None = None, key: str | None = None, table: str | None = None) -> SupabasePassStore:
    """Build the adapter from explicit values or SUPABASE_* environment variables."""
    from supabase import create_client

    url = (url or os.getenv("SUPABASE_URL") or "").strip()
    key = (key or os.getenv("SUPABASE_SERVICE_ROLE_KEY") or "").strip()
    if not url or not key:
        raise RuntimeError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY are required for the supabase pass store")
    table = (table or os.getenv("SMARTPASS_PASSES_TABLE") or "passes").strip()
    return SupabasePassStore(create_client(url, key), table=table)
