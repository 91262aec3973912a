"""
In-memory login state and session stores (single process, development default).

The login state holds the PKCE verifier, nonce and post-login redirect
between `/auth/login` and `/auth/callback`; it is single use. Sessions map
the opaque cookie value to the signed-in Google account. Multi-instance
deployments use `DBSessionStore` (SESSIONS_BACKEND=db).
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Generic, Optional, TypeVar
import secrets
import time

R = TypeVar("R")


def _now() -> int:
    return int(time.time())


@dataclass
class StateRecord:
    state: str
    code_verifier: str
    redirect: Optional[str]
    expires_at: int
    nonce: Optional[str] = None


@dataclass
class SessionRecord:
    session_id: str
    sub: str
    email: str
    name: str
    expires_at: Optional[int]
    id_token: Optional[str] = None
    ttl_seconds: int = 3600


class _ExpiringMap(Generic[R]):
    """Records keyed by a random token; expired ones read as missing."""

    def __init__(self) -> None:
        self._records: Dict[str, R] = {}

    @staticmethod
    def _expired(rec) -> bool:
        return bool(rec.expires_at) and rec.expires_at < _now()

    def _add(self, key: str, rec: R) -> R:
        # Abandoned logins and sessions would otherwise pile up.
        for stale in [k for k, v in self._records.items() if self._expired(v)]:
            del self._records[stale]
        self._records[key] = rec
        return rec

    def _lookup(self, key: str, *, consume: bool) -> Optional[R]:
        rec = self._records.pop(key, None) if consume else self._records.get(key)
        if rec is None:
            return None
        if self._expired(rec):
            self._records.pop(key, None)
            return None
        return rec


class StateStore(_ExpiringMap[StateRecord]):
    def create(
        self,
        *,
        code_verifier: str,
        ttl_seconds: int = 900,
        redirect: Optional[str] = None,
        nonce: Optional[str] = None,
    ) -> StateRecord:
        state = secrets.token_urlsafe(24)
        return self._add(state, StateRecord(state, code_verifier, redirect, _now() + ttl_seconds, nonce))

    def pop_valid(self, state: str) -> Optional[StateRecord]:
        """Consume `state`; a replayed or expired state yields None."""
        return self._lookup(state, consume=True)


class SessionStore(_ExpiringMap[SessionRecord]):
    def create(
        self,
        *,
        sub: str,
        email: str,
        name: str = "",
        ttl_seconds: int = 3600,
        id_token: Optional[str] = None,
    ) -> SessionRecord:
        sid = secrets.token_urlsafe(24)
        rec = SessionRecord(sid, sub, email, name, _now() + ttl_seconds, id_token, ttl_seconds)
        return self._add(sid, rec)

    def get(self, session_id: str) -> Optional[SessionRecord]:
        return self._lookup(session_id, consume=False)

    def delete(self, session_id: str) -> None:
        self._records.pop(session_id, None)
