"""
In-memory session store.

Each session is kept as an opaque JSON snapshot of SessionState plus the
ground-truth record it was started with, its status and (once terminal) its
outcome.  Use cases load a fresh SessionState on every turn, mutate it, and
save it back, so nothing outside a turn ever holds a live state object.

Every session also gets one asyncio.Lock.  A turn holds it from load to
save, so a second message for the same session waits instead of
interleaving with the first.

Tradeoff: in-memory dict means single-process only.  Swap for Redis or
Postgres in production; the snapshot format does not change.
"""

from __future__ import annotations

import asyncio
import json
import time
from typing import Any

from sales_trainer.domain.ground_truth import GroundTruthRecord
from sales_trainer.domain.state import SessionState

_store: dict[str, dict[str, Any]] = {}
_locks: dict[str, asyncio.Lock] = {}


def create_session(session_id: str, state: SessionState, ground_truth: GroundTruthRecord) -> None:
    """Create a new session from its initial state."""
    _store[session_id] = {
        "snapshot": json.dumps(state.to_dict(), ensure_ascii=False),
        "ground_truth": ground_truth,
        "status": state.status.value,
        "outcome": None,
        "updated_at": time.monotonic(),
    }


def get_session(session_id: str) -> dict[str, Any] | None:
    return _store.get(session_id)


def load_state(session_id: str) -> SessionState | None:
    """Rebuild the session's state from its stored snapshot."""
    session = _store.get(session_id)
    if session is None:
        return None
    return SessionState.from_dict(json.loads(session["snapshot"]))


def save_session(session_id: str, state: SessionState) -> None:
    """Persist the updated state back to the store."""
    if session_id in _store:
        _store[session_id]["snapshot"] = json.dumps(state.to_dict(), ensure_ascii=False)
        _store[session_id]["status"] = state.status.value
        _store[session_id]["updated_at"] = time.monotonic()


def set_outcome(session_id: str, outcome: dict) -> None:
    """Store the final outcome of a terminal session."""
    if session_id in _store:
        _store[session_id]["outcome"] = outcome


def session_lock(session_id: str) -> asyncio.Lock:
    """The single lock serialising turns for one session."""
    lock = _locks.get(session_id)
    if lock is None:
        lock = _locks[session_id] = asyncio.Lock()
    return lock


def reset_store() -> None:
    """Drop every session (tests and evals)."""
    _store.clear()
    _locks.clear()
