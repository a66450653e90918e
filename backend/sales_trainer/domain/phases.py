"""
Conversation phases.

The call moves through five phases in order.  The generator reports which
phase it thinks the call is in; we only accept forward moves of at most two
steps, otherwise the phase is inferred from topic statuses instead.

Each phase also carries a small set of boolean checks (did the manager
introduce themselves, propose a next step, ...) that the generator updates
turn by turn.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from sales_trainer.domain.topics import TopicCode, TopicMap, TopicStatus


class ConversationPhase(Enum):
    FIRST_CONTACT = "first_contact"
    NEEDS_DISCOVERY = "needs_discovery"
    PRODUCT_PRESENTATION = "product_presentation"
    MONEY_AND_OBJECTIONS = "money_and_objections"
    CLOSING_ATTEMPT = "closing_attempt"


PHASE_ORDER: list[ConversationPhase] = list(ConversationPhase)
MAX_PHASE_JUMP = 2

PHASE_TOPICS: dict[ConversationPhase, tuple[TopicCode, ...]] = {
    ConversationPhase.FIRST_CONTACT: (
        TopicCode.INTRO, TopicCode.SALON_NAME, TopicCode.CAR_IDENTIFICATION,
    ),
    ConversationPhase.NEEDS_DISCOVERY: (TopicCode.NEEDS,),
    ConversationPhase.PRODUCT_PRESENTATION: (TopicCode.PRODUCT_PRESENTATION,),
    ConversationPhase.MONEY_AND_OBJECTIONS: (
        TopicCode.CREDIT, TopicCode.TRADE_IN, TopicCode.OBJECTION,
    ),
    ConversationPhase.CLOSING_ATTEMPT: (
        TopicCode.NEXT_STEP, TopicCode.SCHEDULING, TopicCode.FOLLOW_UP,
    ),
}

_ACTIVE_STATUSES = (TopicStatus.ASKED, TopicStatus.ANSWERED)

# Boolean checks per phase; objection_type is the one free-text field.
_PHASE_CHECK_KEYS: dict[ConversationPhase, tuple[str, ...]] = {
    ConversationPhase.FIRST_CONTACT: (
        "introduced", "named_salon", "clarified_car", "took_initiative",
    ),
    ConversationPhase.NEEDS_DISCOVERY: ("asked_clarifying_questions", "jumped_to_specs"),
    ConversationPhase.PRODUCT_PRESENTATION: ("structured", "connected_to_needs", "misinformation"),
    ConversationPhase.MONEY_AND_OBJECTIONS: ("shut_down_client", "eco_handled"),
    ConversationPhase.CLOSING_ATTEMPT: (
        "proposed_next_step", "suggested_visit", "fixed_date_time", "suggested_follow_up",
    ),
}

PhaseChecks = dict[str, dict[str, Any]]


def parse_phase(raw: object) -> ConversationPhase | None:
    if isinstance(raw, ConversationPhase):
        return raw
    if not isinstance(raw, str):
        return None
    try:
        return ConversationPhase(raw.strip().lower())
    except ValueError:
        return None


def can_transition(current: ConversationPhase, target: ConversationPhase) -> bool:
    """Stay, or move forward by at most MAX_PHASE_JUMP phases."""
    ci = PHASE_ORDER.index(current)
    ti = PHASE_ORDER.index(target)
    return ci <= ti <= ci + MAX_PHASE_JUMP


def infer_phase(topics: TopicMap) -> ConversationPhase:
    """Latest phase that has a topic currently asked or answered."""
    for phase in reversed(PHASE_ORDER[1:]):
        if any(topics.get(code) and topics[code].status in _ACTIVE_STATUSES
               for code in PHASE_TOPICS[phase]):
            return phase
    return ConversationPhase.FIRST_CONTACT


def resolve_phase(
    current: ConversationPhase,
    reported: ConversationPhase | None,
    topics: TopicMap,
) -> ConversationPhase:
    """Accept the reported phase when the move is legal, else infer it."""
    if reported is not None and can_transition(current, reported):
        return reported
    inferred = infer_phase(topics)
    return inferred if can_transition(current, inferred) else current


def create_phase_checks() -> PhaseChecks:
    checks: PhaseChecks = {
        phase.value: {key: False for key in keys}
        for phase, keys in _PHASE_CHECK_KEYS.items()
    }
    checks[ConversationPhase.MONEY_AND_OBJECTIONS.value]["objection_type"] = None
    return checks


def merge_phase_checks(checks: PhaseChecks, update: object) -> PhaseChecks:
    """Merge a generator update; unknown phases/keys and non-bool values are ignored."""
    merged = {phase: dict(values) for phase, values in checks.items()}
    if not isinstance(update, dict):
        return merged
    for raw_phase, values in update.items():
        phase = parse_phase(raw_phase)
        if phase is None or not isinstance(values, dict):
            continue
        target = merged[phase.value]
        for key, value in values.items():
            if key in _PHASE_CHECK_KEYS[phase] and isinstance(value, bool):
                target[key] = value
            elif key == "objection_type" and phase is ConversationPhase.MONEY_AND_OBJECTIONS:
                target[key] = value if isinstance(value, str) else None
    return merged
