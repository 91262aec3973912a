"""
Live pass board: the pass domain's reaction to store snapshots.

Why:
    The store pushes the full `id -> record` mapping on every change. The board
    keeps the last parsed, sorted pass list and a version counter; it never
    patches its own state incrementally and never reads back its own writes.
    Web handlers ask the board for a view and issue writes through it.

Permissions:
    Deletion is checked here (`ensure_can_delete`) so every surface (JSON API,
    SSR forms, CLI) shares the rule. Returning a pass is open to any caller,
    so a kiosk or hallway screen can close passes without signing in.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Callable, List, Mapping, Optional

from identity_access.domain import Identity

from .lifecycle import create_pass, ensure_can_delete, mark_returned
from .model import STATUS_ACTIVE, Pass
from .store import PassStore, Snapshot, snapshot_signature
from .views import TeacherMatchMode, View, filter_for_view, sort_passes

logger = logging.getLogger("smartpass.passes.board")


@dataclass(frozen=True)
class BoardState:
    version: int
    passes: tuple[Pass, ...]


class PassBoard:
    def __init__(self, store: PassStore, *, match_mode: TeacherMatchMode = TeacherMatchMode.SUBSTRING):
        self._store = store
        self.match_mode = match_mode
        self._lock = threading.Lock()
        self._state = BoardState(version=0, passes=())
        self._signature: Optional[str] = None
        self._unsubscribe: Callable[[], None] = store.subscribe(self._on_snapshot)

    @property
    def store(self) -> PassStore:
        return self._store

    # --- Snapshot handling ------------------------------------------------------

    def _on_snapshot(self, snapshot: Snapshot) -> None:
        signature = snapshot_signature(snapshot)
        parsed: List[Pass] = []
        for pass_id, record in snapshot.items():
            try:
                parsed.append(Pass.from_record(pass_id, record))
            except (TypeError, ValueError) as exc:
                # A malformed row must not take the whole board down.
                logger.warning("Skipping malformed pass id=%s: %s", pass_id, exc)
        with self._lock:
            if signature == self._signature:
                return
            self._signature = signature
            self._state = BoardState(version=self._state.version + 1, passes=tuple(sort_passes(parsed)))

    def close(self) -> None:
        self._unsubscribe()

    def sync(self) -> None:
        """Ask the store to re-deliver its snapshot if it changed."""
        self._store.refresh()

    # --- Reads ------------------------------------------------------------------

    @property
    def version(self) -> int:
        return self._state.version

    def state(self) -> BoardState:
        return self._state

    def passes(self) -> List[Pass]:
        return list(self._state.passes)

    def get(self, pass_id: str) -> Optional[Pass]:
        for item in self._state.passes:
            if item.id == pass_id:
                return item
        return None

    def view(
        self,
        view: View,
        identity: Optional[Identity],
        role: str,
        *,
        teacher_name: Optional[str] = None,
    ) -> List[Pass]:
        return filter_for_view(
            self._state.passes,
            view,
            identity,
            role,
            teacher_name=teacher_name,
            match_mode=self.match_mode,
        )

    # --- Writes -----------------------------------------------------------------

    def create(
        self,
        fields: Mapping[str, Optional[str]],
        *,
        created_by: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Pass:
        """Validate and write a new pass; returns the written value with its id.

        Raises PassValidationError before anything reaches the store.
        """
        draft = create_pass(
            student_name=fields.get("studentName"),
            teacher=fields.get("teacher"),
            destination=fields.get("destination"),
            reason=fields.get("reason"),
            created_by=created_by,
            now=now,
        )
        pass_id = self._store.create(draft.to_record())
        return replace(draft, id=pass_id)

    def mark_returned(self, pass_id: str, *, now: Optional[datetime] = None) -> bool:
        """Return a pass; False when it is unknown or already returned.

        The store applies the patch only while the record is still active, so
        two clients racing on the same pass produce a single update.
        """
        current = self.get(pass_id)
        if current is None:
            self.sync()
            current = self.get(pass_id)
        if current is None or not current.is_active:
            return False
        returned = mark_returned(current, now=now)
        record = returned.to_record()
        applied = self._store.patch(
            pass_id,
            {"status": record["status"], "returnedAt": record["returnedAt"]},
            expect={"status": STATUS_ACTIVE},
        )
        if not applied:
            # Another writer got there first; pick up its state.
            self.sync()
        return applied

    def delete(self, pass_id: str, *, role: str) -> bool:
        ensure_can_delete(role)
        return self._store.delete(pass_id)
