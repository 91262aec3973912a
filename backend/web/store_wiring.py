"""
Wiring of the realtime pass store and the live board.

Why:
    The web app, the admin CLI and the tests need the same decision about
    which store backs the board. `SMARTPASS_PASS_STORE` selects the adapter;
    the in-memory store is the default for local development and tests.

Security:
    The Supabase adapter uses SUPABASE_SERVICE_ROLE_KEY server-side only; no
    secrets are exposed to clients.
"""
from __future__ import annotations

import logging
import os

from passes.board import PassBoard
from passes.store import InMemoryPassStore, PassStore

logger = logging.getLogger("smartpass.web")


def build_pass_store(backend: str | None = None) -> PassStore:
    """Return the configured pass store adapter.

    Behavior:
        - `memory` (default): process-local store, empty on startup.
        - `supabase`: table `SMARTPASS_PASSES_TABLE` via SUPABASE_URL and
          SUPABASE_SERVICE_ROLE_KEY; missing credentials raise RuntimeError.
        - Unknown values raise ValueError so typos never fall back silently.
    """
    choice = (backend or os.getenv("SMARTPASS_PASS_STORE") or "memory").strip().lower()
    if choice == "memory":
        logger.info("Pass store wired: memory")
        return InMemoryPassStore()
    if choice == "supabase":
        from passes.store_supabase import create_supabase_pass_store

        store = create_supabase_pass_store()
        logger.info("Pass store wired: supabase")
        return store
    raise ValueError(f"unknown_pass_store:{choice}")


def build_pass_board(store: PassStore | None = None) -> PassBoard:
    """Create the board on top of `store` (or the configured store)."""
    from web.config import load_teacher_match_mode

    return PassBoard(store if store is not None else build_pass_store(), match_mode=load_teacher_match_mode())


__all__ = ["build_pass_store", "build_pass_board"]
