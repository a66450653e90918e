"""
Start-session use case.

Creates a new training session seeded from the client profile, produces
the customer's opening message, and returns everything the caller needs to
start sending manager turns.

No background task: the caller drives the conversation turn-by-turn via
POST /api/v1/sessions/{session_id}/turns.
"""

from __future__ import annotations

from sales_trainer.core.logging import logger
from sales_trainer.core.settings import settings
from sales_trainer.domain.ground_truth import GroundTruthRecord
from sales_trainer.domain.profiles import get_profile_config
from sales_trainer.domain.state import SessionState
from sales_trainer.infra.providers import scripted_customer
from sales_trainer.infra.providers.openai_chat import generate_opening_line
from sales_trainer.infra.session_store import create_session
from sales_trainer.utils.ids import generate_session_id


async def _opening_line(record: GroundTruthRecord, profile_description: str, session_id: str) -> str:
    if settings.force_offline:
        return scripted_customer.opening_line(record)
    try:
        return await generate_opening_line(record, profile_description)
    except Exception as e:
        logger.warning("Session %s: LLM opening failed (%s), using scripted opener", session_id, e)
        return scripted_customer.opening_line(record)


async def start_session(ground_truth: GroundTruthRecord, profile: str | None = None) -> dict:
    """
    Initialize a new training session.

    Args:
        ground_truth: the advertised vehicle the manager is checked against.
        profile: "normal" | "thorough" | "pressure"; unknown values fall
            back to "normal", None uses the configured default.

    Returns:
        dict with session_id, status, customer_text, profile and turn_limit.
    """
    session_id = generate_session_id()
    state = SessionState.new(session_id, profile or settings.default_profile)
    config = get_profile_config(state.profile)

    customer_text = await _opening_line(ground_truth, config.description, session_id)
    state.add_customer_message(customer_text)

    create_session(session_id, state, ground_truth)

    logger.info(
        "Session created: %s (profile=%s, turn_limit=%d, car=%s)",
        session_id,
        state.profile.value,
        state.turn_limit,
        ground_truth.id,
    )

    return {
        "session_id": session_id,
        "status": state.status.value,
        "customer_text": customer_text,
        "profile": state.profile.value,
        "turn_limit": state.turn_limit,
    }
