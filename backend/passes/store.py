"""
Realtime pass store port and the in-memory adapter.

Why:
    Persistence and realtime sync belong to an external service. The board
    talks to it through this narrow port:

    - subscribe(listener): deliver the full `id -> record` mapping now and
      after every change; returns an unsubscribe callable.
    - create(fields) -> id: the store generates the id.
    - patch(id, fields, expect=None) -> bool: partial update, applied only
      when every `expect` key still has the expected value (used to turn the
      double-return race into a storage-side precondition).
    - delete(id) -> bool.
    - refresh(): re-read the backing service and notify on change (hosted
      stores without push); a no-op where writes already notify.

    Writers never read their own writes back; they observe them through the
    next snapshot.
"""

from __future__ import annotations

import copy
import hashlib
import json
import logging
import threading
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol
from uuid import uuid4

Record = Dict[str, Any]
Snapshot = Dict[str, Record]
Listener = Callable[[Snapshot], None]

logger = logging.getLogger("smartpass.passes.store")


class PassStore(Protocol):
    def subscribe(self, listener: Listener) -> Callable[[], None]: ...

    def create(self, fields: Mapping[str, Any]) -> str: ...

    def patch(self, pass_id: str, fields: Mapping[str, Any], *, expect: Optional[Mapping[str, Any]] = None) -> bool: ...

    def delete(self, pass_id: str) -> bool: ...

    def refresh(self) -> None: ...


def snapshot_signature(snapshot: Mapping[str, Mapping[str, Any]]) -> str:
    """Stable digest of a snapshot; equal content yields equal signatures."""
    payload = json.dumps(snapshot, sort_keys=True, default=str, separators=(",", ":"))
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


class _Subscribers:
    """Listener registry shared by the adapters."""

    def __init__(self) -> None:
        self._listeners: List[Listener] = []
        self._lock = threading.Lock()

    def add(self, listener: Listener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def _unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _unsubscribe

    def emit(self, snapshot: Snapshot) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            # Each listener gets its own copy so none can mutate another's view.
            listener(copy.deepcopy(snapshot))


class InMemoryPassStore:
    """Process-local store used for development, kiosks on one host and tests.

    Mutations are applied atomically under a lock and every successful write
    pushes a fresh snapshot to subscribers.
    """

    def __init__(self, initial: Optional[Mapping[str, Mapping[str, Any]]] = None) -> None:
        self._data: Snapshot = {str(k): dict(v) for k, v in (initial or {}).items()}
        self._lock = threading.RLock()
        self._subscribers = _Subscribers()

    def snapshot(self) -> Snapshot:
        with self._lock:
            return copy.deepcopy(self._data)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        unsubscribe = self._subscribers.add(listener)
        listener(self.snapshot())
        return unsubscribe

    def create(self, fields: Mapping[str, Any]) -> str:
        pass_id = str(uuid4())
        with self._lock:
            self._data[pass_id] = dict(fields)
            snap = copy.deepcopy(self._data)
        logger.info("pass created id=%s", pass_id)
        self._subscribers.emit(snap)
        return pass_id

    def patch(self, pass_id: str, fields: Mapping[str, Any], *, expect: Optional[Mapping[str, Any]] = None) -> bool:
        with self._lock:
            current = self._data.get(pass_id)
            if current is None:
                return False
            for key, value in (expect or {}).items():
                if current.get(key) != value:
                    return False
            current.update(fields)
            snap = copy.deepcopy(self._data)
        logger.info("pass patched id=%s fields=%s", pass_id, ",".join(sorted(fields)))
        self._subscribers.emit(snap)
        return True

    def delete(self, pass_id: str) -> bool:
        with self._lock:
            if pass_id not in self._data:
                return False
            del self._data[pass_id]
            snap = copy.deepcopy(self._data)
        logger.info("pass deleted id=%s", pass_id)
        self._subscribers.emit(snap)
        return True

    def refresh(self) -> None:
        return None
