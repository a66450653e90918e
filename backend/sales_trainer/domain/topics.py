"""
Topic lifecycle tracker.

Every discourse topic the virtual customer cares about carries one status and
an evasion counter.  Statuses only move forward along a fixed transition
table; anything else is rejected and the map comes back unchanged with
``valid=False``.  Rejections are never fatal because the requests come from a
probabilistic upstream service.

All functions are pure: they take a TopicMap and return a new one.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any


class TopicStatus(Enum):
    NONE = "none"
    ASKED = "asked"
    ANSWERED = "answered"
    CLARIFIED = "clarified"
    CLOSED = "closed"


class TopicCode(Enum):
    INTRO = "intro"
    SALON_NAME = "salon_name"
    CAR_IDENTIFICATION = "car_identification"
    NEEDS = "needs"
    PRODUCT_PRESENTATION = "product_presentation"
    CREDIT = "credit"
    TRADE_IN = "trade_in"
    OBJECTION = "objection"
    NEXT_STEP = "next_step"
    SCHEDULING = "scheduling"
    FOLLOW_UP = "follow_up"


class ReopenReason(Enum):
    IGNORED = "ignored"
    CONTRADICTION = "contradiction"
    MISINFORMATION = "misinformation"


# Double evasion on any of these ends the session.
CRITICAL_TOPICS: tuple[TopicCode, ...] = (
    TopicCode.INTRO,
    TopicCode.CAR_IDENTIFICATION,
    TopicCode.NEEDS,
    TopicCode.NEXT_STEP,
)

CRITICAL_EVASION_LIMIT = 2

VALID_TRANSITIONS: dict[TopicStatus, frozenset[TopicStatus]] = {
    TopicStatus.NONE: frozenset({TopicStatus.ASKED}),
    TopicStatus.ASKED: frozenset({TopicStatus.ANSWERED, TopicStatus.ASKED}),
    TopicStatus.ANSWERED: frozenset({TopicStatus.CLARIFIED, TopicStatus.CLOSED}),
    TopicStatus.CLARIFIED: frozenset({TopicStatus.CLOSED}),
    TopicStatus.CLOSED: frozenset(),
}


@dataclass(frozen=True)
class TopicState:
    status: TopicStatus = TopicStatus.NONE
    evasion_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {"status": self.status.value, "evasion_count": self.evasion_count}


TopicMap = dict[TopicCode, TopicState]


@dataclass(frozen=True)
class TransitionResult:
    map: TopicMap
    valid: bool


@dataclass(frozen=True)
class EvasionCheck:
    should_fail: bool = False
    failed_topic: TopicCode | None = None


def create_topic_map() -> TopicMap:
    """Fresh map with every topic in ``none`` and zero evasions."""
    return {code: TopicState() for code in TopicCode}


def parse_topic_code(raw: object) -> TopicCode | None:
    """Single conversion point from free text to TopicCode (None if unknown)."""
    if isinstance(raw, TopicCode):
        return raw
    if not isinstance(raw, str):
        return None
    try:
        return TopicCode(raw.strip().lower())
    except ValueError:
        return None


def advance(topics: TopicMap, code: TopicCode, target: TopicStatus) -> TransitionResult:
    """Move one topic to ``target`` if the transition table allows it."""
    current = topics.get(code)
    if current is None or target not in VALID_TRANSITIONS[current.status]:
        return TransitionResult(map=topics, valid=False)
    updated = dict(topics)
    updated[code] = replace(current, status=target)
    return TransitionResult(map=updated, valid=True)


def record_evasion(topics: TopicMap, code: TopicCode) -> TopicMap:
    current = topics.get(code)
    if current is None:
        return topics
    updated = dict(topics)
    updated[code] = replace(current, evasion_count=current.evasion_count + 1)
    return updated


def check_critical_evasions(topics: TopicMap) -> EvasionCheck:
    """First critical topic (in fixed order) whose evasions reached the limit."""
    for code in CRITICAL_TOPICS:
        state = topics.get(code)
        if state is not None and state.evasion_count >= CRITICAL_EVASION_LIMIT:
            return EvasionCheck(should_fail=True, failed_topic=code)
    return EvasionCheck()


def can_reopen(topics: TopicMap, code: TopicCode, reason: ReopenReason) -> bool:
    """
    A closed topic only comes back on contradiction or misinformation.
    Any non-closed topic may be re-asked for any reason, including ``ignored``.
    """
    current = topics.get(code)
    if current is None:
        return False
    if current.status is not TopicStatus.CLOSED:
        return True
    return reason in (ReopenReason.CONTRADICTION, ReopenReason.MISINFORMATION)


def reopen(topics: TopicMap, code: TopicCode, reason: ReopenReason) -> TransitionResult:
    """
    Put a topic back into ``asked``.

    This is the only way out of ``closed`` and bypasses the forward-only
    table, so it is gated by ``can_reopen``.
    """
    if not can_reopen(topics, code, reason):
        return TransitionResult(map=topics, valid=False)
    current = topics[code]
    if current.status is TopicStatus.NONE:
        return advance(topics, code, TopicStatus.ASKED)
    updated = dict(topics)
    updated[code] = replace(current, status=TopicStatus.ASKED)
    return TransitionResult(map=updated, valid=True)


def is_closed(topics: TopicMap, code: TopicCode) -> bool:
    state = topics.get(code)
    return state is not None and state.status is TopicStatus.CLOSED


# ---------------------------------------------------------------------------
# Snapshot helpers
# ---------------------------------------------------------------------------

def topics_to_dict(topics: TopicMap) -> dict[str, dict[str, Any]]:
    return {code.value: state.to_dict() for code, state in topics.items()}


def topics_from_dict(raw: object) -> TopicMap:
    """Rebuild a map from a snapshot; unknown codes and bad values are dropped."""
    topics = create_topic_map()
    if not isinstance(raw, dict):
        return topics
    for key, value in raw.items():
        code = parse_topic_code(key)
        if code is None or not isinstance(value, dict):
            continue
        try:
            status = TopicStatus(value.get("status", "none"))
        except ValueError:
            status = TopicStatus.NONE
        evasions = value.get("evasion_count", 0)
        if not isinstance(evasions, int) or evasions < 0:
            evasions = 0
        topics[code] = TopicState(status=status, evasion_count=evasions)
    return topics
