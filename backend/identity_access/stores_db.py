"""
Postgres session store for SmartPass deployments (Supabase database).

Selected with `SESSIONS_BACKEND=db`. Rows live in `public.app_sessions`
(see supabase/migrations); the browser only ever holds the opaque session
id. Connect with the service role: the table has RLS enabled and no
policies.
"""
from __future__ import annotations

from typing import Optional, Sequence
import os
import re
import time

import psycopg
from psycopg import sql

from .stores import SessionRecord

_TABLE_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]{0,62}(?:\.[A-Za-z_][A-Za-z0-9_]{0,62})?$")

_INSERT = (
    "insert into {} (session_id, sub, email, name, id_token, expires_at) "
    "values (gen_random_uuid()::text, %s, %s, %s, %s, to_timestamp(%s)) returning session_id"
)
_SELECT = (
    "select session_id, sub, email, name, id_token, extract(epoch from expires_at)::bigint "
    "from {} where session_id = %s and expires_at > now()"
)
_DELETE = "delete from {} where session_id = %s"


def _now() -> int:
    return int(time.time())


class DBSessionStore:
    """Session store backed by a Postgres table.

    `dsn` falls back to DATABASE_URL, then SUPABASE_DB_URL. `table` may be
    schema-qualified and is validated before it is quoted into statements.
    """

    def __init__(self, dsn: str | None = None, table: str = "public.app_sessions") -> None:
        self._dsn = dsn or os.getenv("DATABASE_URL") or os.getenv("SUPABASE_DB_URL", "")
        if not self._dsn:
            raise RuntimeError("DBSessionStore needs DATABASE_URL or SUPABASE_DB_URL")
        if not _TABLE_RE.match(table or ""):
            raise ValueError("Invalid table name")
        schema, _, name = table.rpartition(".")
        self._table = sql.Identifier(schema or "public", name)

    def _one(self, template: str, params: Sequence[object], *, write: bool) -> Optional[tuple]:
        stmt = sql.SQL(template).format(self._table)
        with psycopg.connect(self._dsn, autocommit=write) as conn:
            with conn.cursor() as cur:
                cur.execute(stmt, params)
                return cur.fetchone() if not template.startswith("delete") else None

    def create(
        self,
        *,
        sub: str,
        email: str,
        name: str = "",
        ttl_seconds: int = 3600,
        id_token: Optional[str] = None,
    ) -> SessionRecord:
        expires_at = _now() + ttl_seconds
        row = self._one(_INSERT, (sub, email, name, id_token, expires_at), write=True)
        return SessionRecord(
            session_id=str(row[0]) if row else "",
            sub=sub,
            email=email,
            name=name,
            expires_at=expires_at,
            id_token=id_token,
            ttl_seconds=ttl_seconds,
        )

    def get(self, session_id: str) -> Optional[SessionRecord]:
        """Return the live session; expired rows read as missing."""
        row = self._one(_SELECT, (session_id,), write=False)
        if not row:
            return None
        sid, sub, email, name, id_token, expires_at = row
        return SessionRecord(
            session_id=sid,
            sub=sub,
            email=email or "",
            name=name or "",
            id_token=id_token,
            expires_at=int(expires_at) if expires_at is not None else None,
        )

    def delete(self, session_id: str) -> None:
        self._one(_DELETE, (session_id,), write=True)
