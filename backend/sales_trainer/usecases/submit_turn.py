"""
Submit-turn use case.

Handles a single manager utterance in a training session:
  1.  Take the session lock, load the state snapshot
  2.  Classify the utterance and fact-check it against the listing
  3.  Fold the behaviour signal into dialog health and the loop guard
  4.  Pre-turn ladder: toxicity, repeated low effort, fact conflict, health
  5.  On continue, ask the dialogue generator for the customer's reply
      (fixed filler line if the generator fails; no topic/turn advance)
  6.  Fold the generator's diagnostics into topics, phase and checklist
  7.  Post-turn ladder: critical-topic double evasion
  8.  Completion: generator ended the dialog, or the turn limit was reached
  9.  Always persist state
  10. If the session is now terminal, finalize it

The generator is injectable so tests and evals can drive the same path
without the network.
"""

from __future__ import annotations

from sales_trainer.core.logging import logger
from sales_trainer.core.settings import settings
from sales_trainer.domain.behavior import build_context, classify
from sales_trainer.domain.dialogue import (
    FALLBACK_CUSTOMER_LINE,
    DialogueGenerator,
    DialogueRequest,
    fold_reply,
    parse_customer_reply,
)
from sales_trainer.domain.escalation import (
    DecisionKind,
    LadderDecision,
    TurnContext,
    decide_post_turn,
    decide_pre_turn,
)
from sales_trainer.domain.fact_check import check as check_facts
from sales_trainer.domain.ground_truth import GroundTruthRecord
from sales_trainer.domain.health import apply_behavior
from sales_trainer.domain.phases import ConversationPhase, merge_phase_checks
from sales_trainer.domain.profiles import get_profile_config
from sales_trainer.domain.scoring import ChecklistCode, ChecklistStatus, force_status
from sales_trainer.domain.state import SessionState, SessionStatus
from sales_trainer.domain.topics import ReopenReason, TopicCode, reopen
from sales_trainer.infra.providers import openai_chat, scripted_customer
from sales_trainer.infra.session_store import get_session, load_state, save_session, session_lock
from sales_trainer.usecases.finalize import finalize_state

CLARIFY_CONFUSION = 10


def default_generator() -> DialogueGenerator:
    if settings.force_offline:
        return scripted_customer.generate_customer_reply
    return openai_chat.generate_customer_reply


async def submit_manager_turn(
    session_id: str,
    text: str,
    generate: DialogueGenerator | None = None,
) -> dict:
    """
    Process one manager utterance and return the customer's response.

    Returns dict with customer_reply, session_status, failure_reason and,
    once the session is terminal, the outcome.
    """
    session = get_session(session_id)
    if session is None:
        return {"error": "session_not_found"}

    async with session_lock(session_id):
        state = load_state(session_id)
        if state is None:
            return {"error": "session_not_found"}

        # Terminal sessions accept no further input
        if state.status.is_terminal:
            return {
                "customer_reply": "",
                "session_status": state.status.value,
                "failure_reason": state.failure_reason,
                "outcome": get_session(session_id)["outcome"],
            }

        return await _run_turn(state, session["ground_truth"], text, generate or default_generator())


async def _run_turn(
    state: SessionState,
    record: GroundTruthRecord,
    text: str,
    generate: DialogueGenerator,
) -> dict:
    session_id = state.session_id

    # --- 1. Classify + fact-check ---
    context = build_context(state.last_customer_message, state.manager_turns)
    signal = classify(text, context)
    fact = check_facts(text, record)
    state.add_manager_message(text, signal, fact.to_dict() if fact.has_conflict else None)
    turn = state.manager_turns

    # --- 2. Health update ---
    state.dialog_health, state.loop_guard = apply_behavior(state.dialog_health, state.loop_guard, signal)
    if signal.toxic:
        state.checklist = force_status(
            state.checklist, ChecklistCode.COMMUNICATION_TONE, ChecklistStatus.NO, text,
        )
    if signal.profanity:
        state.communication.profanity_detected = True

    # --- 3. Pre-turn ladder ---
    decision = decide_pre_turn(TurnContext(
        signal=signal,
        health=state.dialog_health,
        loop=state.loop_guard,
        fact=fact,
    ))
    _log_turn(state, turn, signal.severity.value, decision)

    if decision.is_terminal:
        return _fail(state, decision)

    if decision.kind is DecisionKind.CLARIFY:
        _apply_clarification(state)
        reply_text = decision.customer_line or FALLBACK_CUSTOMER_LINE
        state.add_customer_message(reply_text)
        save_session(session_id, state)
        return _response(state, reply_text)

    # --- 4. Dialogue generation ---
    config = get_profile_config(state.profile)
    request = DialogueRequest(
        session_id=session_id,
        ground_truth=record,
        dealership_context=record.dealership_context(),
        current_state=state.snapshot_for_generator(),
        manager_last_message=text,
        recent_history=state.recent_history(settings.history_limit),
        turn_limit=state.turn_limit,
        behavior_signal=signal,
        profile_description=config.description,
    )
    generated = True
    try:
        reply = parse_customer_reply(await generate(request))
        fold_reply(state, reply)
        reply_text = reply.client_message
        ended = reply.end_conversation
    except Exception as e:
        logger.warning("Session %s turn %d: generator failed (%s), using filler line", session_id, turn, e)
        generated = False
        reply_text = FALLBACK_CUSTOMER_LINE
        ended = False

    # --- 5. Post-turn ladder ---
    post = decide_post_turn(TurnContext(
        signal=signal,
        health=state.dialog_health,
        loop=state.loop_guard,
        topics=state.topics,
    ))
    if post.is_terminal:
        _log_turn(state, turn, signal.severity.value, post)
        return _fail(state, post)

    # --- 6. Natural completion ---
    if generated and (ended or state.client_turns >= state.turn_limit):
        state.status = SessionStatus.COMPLETED
        logger.info(
            "Session %s completed at turn %d (client_turns=%d/%d)",
            session_id, turn, state.client_turns, state.turn_limit,
        )

    state.add_customer_message(reply_text)
    save_session(session_id, state)

    outcome = finalize_state(state) if state.status.is_terminal else None
    return _response(state, reply_text, outcome)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _apply_clarification(state: SessionState) -> None:
    """The customer questions a contradicted fact; the presentation is reopened."""
    state.misinformation_detected = True
    state.topics = reopen(state.topics, TopicCode.PRODUCT_PRESENTATION, ReopenReason.MISINFORMATION).map
    state.dialog_health = state.dialog_health.shifted(confusion=CLARIFY_CONFUSION)
    state.phase_checks = merge_phase_checks(
        state.phase_checks,
        {ConversationPhase.PRODUCT_PRESENTATION.value: {"misinformation": True}},
    )
    state.client_turns += 1


def _fail(state: SessionState, decision: LadderDecision) -> dict:
    state.status = SessionStatus.FAIL
    state.failure_reason = decision.failure_code
    reply_text = decision.customer_line or ""
    state.add_customer_message(reply_text)
    logger.info(
        "Session %s failed at turn %d: %s (rule=%s)",
        state.session_id, state.manager_turns, state.failure_reason, decision.rule,
    )
    save_session(state.session_id, state)
    outcome = finalize_state(state)
    return _response(state, reply_text, outcome)


def _response(state: SessionState, reply_text: str, outcome: dict | None = None) -> dict:
    return {
        "customer_reply": reply_text,
        "session_status": state.status.value,
        "failure_reason": state.failure_reason,
        "outcome": outcome,
    }


def _log_turn(state: SessionState, turn: int, severity: str, decision: LadderDecision) -> None:
    logger.info(
        "Session %s turn %d: severity=%s decision=%s rule=%s reasons=%s "
        "(patience=%d irritation=%d unanswered=%d low_effort=%d)",
        state.session_id,
        turn,
        severity,
        decision.kind.value,
        decision.rule,
        list(decision.reason_codes),
        state.dialog_health.patience,
        state.dialog_health.irritation,
        state.loop_guard.unanswered_question_streak,
        state.loop_guard.low_effort_streak,
    )
