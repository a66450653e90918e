"""
Finalize use case.

Builds the SessionOutcome for a session and stores it.  Failed sessions are
finalized by submit_turn the moment the ladder fails them; sessions still
in progress are finalized on request and count as completed.

Idempotent: if an outcome was already stored, it is returned unchanged.
"""

from __future__ import annotations

from sales_trainer.core.logging import logger
from sales_trainer.domain.outcome import build_outcome
from sales_trainer.domain.state import SessionState, SessionStatus
from sales_trainer.infra.session_store import (
    get_session,
    load_state,
    save_session,
    session_lock,
    set_outcome,
)


def finalize_state(state: SessionState) -> dict:
    """
    Score a session and persist state + outcome.

    Callers must hold the session lock.  Returns the outcome dict
    (matches OutcomeSchema shape).
    """
    session = get_session(state.session_id)
    if session and session["outcome"]:
        return session["outcome"]

    if state.status is SessionStatus.CONTINUE:
        state.status = SessionStatus.COMPLETED

    outcome = build_outcome(state).to_dict()
    save_session(state.session_id, state)
    set_outcome(state.session_id, outcome)
    logger.info(
        "Session %s finalized: %s (score %d, failure=%s, issues=%d)",
        state.session_id,
        state.status.value,
        outcome["score"],
        state.failure_reason,
        len(outcome["issues"]),
    )
    return outcome


async def finalize(session_id: str) -> dict:
    """Finalize a session by id; returns the outcome or an error dict."""
    if get_session(session_id) is None:
        return {"error": "session_not_found"}

    async with session_lock(session_id):
        state = load_state(session_id)
        if state is None:
            return {"error": "session_not_found"}
        return finalize_state(state)
