"""
Dialogue-generator boundary.

The customer's next line and a diagnostic read of the manager's turn come
from an external generator (an LLM, or the offline scripted customer).  This
module owns both directions of that boundary:

  - DialogueRequest:      what we send (ground truth, state snapshot, history)
  - parse_customer_reply: turn the generator's loosely-typed JSON into a
                          CustomerReply with an explicit default for every field
  - fold_reply:           apply a CustomerReply to the session state

Design note: the generator is probabilistic, so nothing it returns is trusted.
Unknown topic or phase codes are dropped, bad values are defaulted, and every
repair is logged at WARNING.  Nothing here raises on upstream data.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from sales_trainer.core.logging import logger
from sales_trainer.domain.behavior import BehaviorSignal
from sales_trainer.domain.ground_truth import GroundTruthRecord
from sales_trainer.domain.phases import ConversationPhase, merge_phase_checks, parse_phase, resolve_phase
from sales_trainer.domain.scoring import merge_checklist_delta
from sales_trainer.domain.state import DialogStage, SessionState, parse_stage
from sales_trainer.domain.topics import (
    ReopenReason,
    TopicCode,
    TopicStatus,
    advance,
    parse_topic_code,
    record_evasion,
    reopen,
)

FALLBACK_CUSTOMER_LINE = (
    "Let's clarify the details. When would be a convenient time to come and see the car?"
)

DEFAULT_TONE = "neutral"
DEFAULT_ENGAGEMENT = "normal"


# ---------------------------------------------------------------------------
# Request
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DialogueRequest:
    session_id: str
    ground_truth: GroundTruthRecord
    dealership_context: str
    current_state: dict[str, Any]
    manager_last_message: str
    recent_history: list[dict[str, str]]
    turn_limit: int
    behavior_signal: BehaviorSignal | None = None
    profile_description: str = ""


# Anything awaitable that maps a request to the generator's raw JSON dict.
DialogueGenerator = Callable[[DialogueRequest], Awaitable[dict]]


# ---------------------------------------------------------------------------
# Reply
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TurnDiagnostics:
    current_phase: ConversationPhase | None = None
    topics_addressed: tuple[TopicCode, ...] = ()
    topics_evaded: tuple[TopicCode, ...] = ()
    manager_tone: str = DEFAULT_TONE
    manager_engagement: str = DEFAULT_ENGAGEMENT
    misinformation_detected: bool = False
    phase_checks_update: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class StateUpdate:
    stage: DialogStage | None = None
    checklist_delta: Any = None
    notes: str | None = None
    client_turns: int | None = None


@dataclass(frozen=True)
class CustomerReply:
    client_message: str
    end_conversation: bool = False
    diagnostics: TurnDiagnostics = field(default_factory=TurnDiagnostics)
    update_state: StateUpdate = field(default_factory=StateUpdate)


def _safe_str(val: object, default: str) -> str:
    if isinstance(val, str) and val.strip():
        return val.strip().lower()
    return default


def _safe_bool(val: object) -> bool:
    if isinstance(val, bool):
        return val
    if isinstance(val, str):
        return val.lower() in ("true", "yes", "1")
    return False


def _safe_int(val: object) -> int | None:
    if isinstance(val, bool) or val is None:
        return None
    try:
        return int(val)
    except (ValueError, TypeError):
        return None


def _topic_list(raw: object, key: str) -> tuple[TopicCode, ...]:
    if raw is None:
        return ()
    if not isinstance(raw, list):
        logger.warning("Diagnostics %s is not a list (%r), using []", key, raw)
        return ()
    codes: list[TopicCode] = []
    for item in raw:
        code = parse_topic_code(item)
        if code is None:
            logger.warning("Ignoring unknown topic code %r in %s", item, key)
        elif code not in codes:
            codes.append(code)
    return tuple(codes)


def parse_customer_reply(data: object) -> CustomerReply:
    """Coerce the generator's JSON into a CustomerReply; never raises."""
    if not isinstance(data, dict):
        logger.warning("Generator reply is not an object (%r), using fallback line", type(data).__name__)
        return CustomerReply(client_message=FALLBACK_CUSTOMER_LINE)

    message = data.get("client_message")
    if not isinstance(message, str) or not message.strip():
        logger.warning("Generator reply has no client_message, using fallback line")
        message = FALLBACK_CUSTOMER_LINE

    diag = data.get("diagnostics")
    if not isinstance(diag, dict):
        if diag is not None:
            logger.warning("Diagnostics is not an object (%r), using defaults", diag)
        diag = {}

    raw_phase = diag.get("current_phase")
    phase = parse_phase(raw_phase)
    if raw_phase is not None and phase is None:
        logger.warning("Ignoring unknown phase %r", raw_phase)

    phase_update = diag.get("phase_checks_update")
    diagnostics = TurnDiagnostics(
        current_phase=phase,
        topics_addressed=_topic_list(diag.get("topics_addressed"), "topics_addressed"),
        topics_evaded=_topic_list(diag.get("topics_evaded"), "topics_evaded"),
        manager_tone=_safe_str(diag.get("manager_tone"), DEFAULT_TONE),
        manager_engagement=_safe_str(diag.get("manager_engagement"), DEFAULT_ENGAGEMENT),
        misinformation_detected=_safe_bool(diag.get("misinformation_detected")),
        phase_checks_update=phase_update if isinstance(phase_update, dict) else {},
    )

    upd = data.get("update_state")
    if not isinstance(upd, dict):
        upd = {}
    notes = upd.get("notes")
    update = StateUpdate(
        stage=parse_stage(upd.get("stage")),
        checklist_delta=upd.get("checklist_delta"),
        notes=notes if isinstance(notes, str) else None,
        client_turns=_safe_int(upd.get("client_turns")),
    )

    return CustomerReply(
        client_message=message.strip(),
        end_conversation=_safe_bool(data.get("end_conversation")),
        diagnostics=diagnostics,
        update_state=update,
    )


# ---------------------------------------------------------------------------
# Folding a reply into the session
# ---------------------------------------------------------------------------

# Next status for a topic the manager addressed this turn.
_ADDRESSED_STEPS: dict[TopicStatus, tuple[TopicStatus, ...]] = {
    TopicStatus.NONE: (TopicStatus.ASKED, TopicStatus.ANSWERED),
    TopicStatus.ASKED: (TopicStatus.ANSWERED,),
    TopicStatus.ANSWERED: (TopicStatus.CLARIFIED,),
    TopicStatus.CLARIFIED: (TopicStatus.CLOSED,),
    TopicStatus.CLOSED: (),
}


def _fold_topics(state: SessionState, diagnostics: TurnDiagnostics) -> None:
    topics = state.topics
    evaded = set(diagnostics.topics_evaded)

    for code in diagnostics.topics_addressed:
        if code in evaded:
            continue
        for target in _ADDRESSED_STEPS[topics[code].status]:
            result = advance(topics, code, target)
            if not result.valid:
                logger.debug("Session %s: rejected %s -> %s", state.session_id, code.value, target.value)
                break
            topics = result.map

    for code in diagnostics.topics_evaded:
        topics = record_evasion(topics, code)
        if topics[code].status is TopicStatus.ASKED:
            topics = advance(topics, code, TopicStatus.ASKED).map
        else:
            # Customer repeats the question; closed topics stay closed.
            topics = reopen(topics, code, ReopenReason.IGNORED).map

    state.topics = topics


def fold_reply(state: SessionState, reply: CustomerReply) -> None:
    """Apply one successful generator turn to the session state (in place)."""
    diagnostics = reply.diagnostics
    _fold_topics(state, diagnostics)

    state.phase = resolve_phase(state.phase, diagnostics.current_phase, state.topics)
    state.phase_checks = merge_phase_checks(state.phase_checks, diagnostics.phase_checks_update)

    state.communication.manager_tone = diagnostics.manager_tone
    state.communication.manager_engagement = diagnostics.manager_engagement
    if diagnostics.misinformation_detected:
        state.misinformation_detected = True

    update = reply.update_state
    if update.stage is not None:
        state.stage = update.stage
    if update.checklist_delta is not None:
        state.checklist = merge_checklist_delta(state.checklist, update.checklist_delta)
    if update.notes is not None:
        state.notes = update.notes.strip()

    # The turn counter is owned here; the generator's own count is advisory.
    if update.client_turns is not None and update.client_turns != state.client_turns + 1:
        logger.debug(
            "Session %s: generator reported client_turns=%d, expected %d",
            state.session_id, update.client_turns, state.client_turns + 1,
        )
    state.client_turns += 1
