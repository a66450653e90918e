"""
Escalation ladder — decides, turn by turn, whether the session continues,
branches to a clarification, or fails.

Core principle: the priority order is data, not control flow.  The ladder is
an ordered list of named guards; each guard looks at the turn context and
either returns a decision or ``None`` (fall through).  The first guard that
returns a decision wins.

Pre-turn guards (before the dialogue generator is called):
  1. toxicity             -> FAIL  PROFANITY | BAD_TONE
  2. repeated low effort  -> FAIL  REPEATED_LOW_EFFORT   (3 in a row)
  3. fact conflict        -> CLARIFY                     (non-terminal)
  4. dialog health        -> FAIL  IGNORED_QUESTIONS | POOR_COMMUNICATION
Post-turn guard (after the generator's diagnostics were folded in):
  5. critical evasion     -> FAIL  CRITICAL_EVASION:<topic>
Otherwise                 -> CONTINUE
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable

from sales_trainer.domain.behavior import BehaviorSignal
from sales_trainer.domain.fact_check import FactCheckResult, FactField
from sales_trainer.domain.health import DialogHealth, LoopGuard
from sales_trainer.domain.topics import TopicCode, TopicMap, check_critical_evasions


class DecisionKind(Enum):
    CONTINUE = "continue"
    CLARIFY = "clarify"
    FAIL = "fail"


class FailureReason(Enum):
    PROFANITY = "PROFANITY"
    BAD_TONE = "BAD_TONE"
    REPEATED_LOW_EFFORT = "REPEATED_LOW_EFFORT"
    IGNORED_QUESTIONS = "IGNORED_QUESTIONS"
    POOR_COMMUNICATION = "POOR_COMMUNICATION"
    CRITICAL_EVASION = "CRITICAL_EVASION"


LOW_EFFORT_STREAK_LIMIT = 3
UNANSWERED_STREAK_LIMIT = 3
PATIENCE_FLOOR = 15
IRRITATION_CEILING = 65


@dataclass(frozen=True)
class TurnContext:
    """Everything the ladder may look at for one manager turn."""
    signal: BehaviorSignal
    health: DialogHealth
    loop: LoopGuard
    fact: FactCheckResult = field(default_factory=FactCheckResult)
    topics: TopicMap | None = None


@dataclass(frozen=True)
class LadderDecision:
    kind: DecisionKind
    rule: str = "continue"
    reason: FailureReason | None = None
    failed_topic: TopicCode | None = None
    customer_line: str | None = None
    reason_codes: tuple[str, ...] = ()

    @property
    def is_terminal(self) -> bool:
        return self.kind is DecisionKind.FAIL

    @property
    def failure_code(self) -> str | None:
        """Wire form of the reason, e.g. ``CRITICAL_EVASION:needs``."""
        if self.reason is None:
            return None
        if self.reason is FailureReason.CRITICAL_EVASION and self.failed_topic is not None:
            return f"{self.reason.value}:{self.failed_topic.value}"
        return self.reason.value


CONTINUE = LadderDecision(kind=DecisionKind.CONTINUE)

Guard = Callable[[TurnContext], "LadderDecision | None"]


# ---------------------------------------------------------------------------
# Customer lines for ladder outcomes
# ---------------------------------------------------------------------------

_CLOSING_LINES: dict[FailureReason, str] = {
    FailureReason.PROFANITY: (
        "I think we'll stop here. Polite communication matters to me, "
        "and this isn't it. Thanks for your time."
    ),
    FailureReason.BAD_TONE: (
        "I don't appreciate being spoken to like that. Let's end the call here."
    ),
    FailureReason.REPEATED_LOW_EFFORT: (
        "I'm not getting any real answers, so I'll look elsewhere. Goodbye."
    ),
    FailureReason.IGNORED_QUESTIONS: (
        "Let's stop here. I keep asking and not getting answers."
    ),
    FailureReason.POOR_COMMUNICATION: (
        "Let's stop here. I feel like we just don't understand each other."
    ),
    FailureReason.CRITICAL_EVASION: (
        "You keep avoiding my question, so I don't think this will work out. Goodbye."
    ),
}

_FACT_LABELS: dict[FactField, str] = {
    FactField.YEAR: "the model year",
    FactField.PRICE: "the price",
    FactField.DISTANCE: "the mileage",
}


def closing_line(reason: FailureReason) -> str:
    return _CLOSING_LINES[reason]


def clarification_line(fact: FactCheckResult) -> str:
    """The customer voices the discrepancy between the listing and the claim."""
    if fact.field is None or fact.advertised_value is None or fact.claimed_value is None:
        return "That's odd, the listing said something different. Could you clarify why it changed?"
    label = _FACT_LABELS[fact.field]
    return (
        f"That's odd, the listing says {label} is {fact.advertised_value}, "
        f"but you're saying {fact.claimed_value}. Could you clarify?"
    )


def _fail(rule: str, reason: FailureReason, topic: TopicCode | None = None) -> LadderDecision:
    code = reason.value if topic is None else f"{reason.value}:{topic.value}"
    return LadderDecision(
        kind=DecisionKind.FAIL,
        rule=rule,
        reason=reason,
        failed_topic=topic,
        customer_line=closing_line(reason),
        reason_codes=(code,),
    )


# ---------------------------------------------------------------------------
# Guards
# ---------------------------------------------------------------------------

def toxicity_guard(ctx: TurnContext) -> LadderDecision | None:
    if not ctx.signal.toxic:
        return None
    reason = FailureReason.PROFANITY if ctx.signal.profanity else FailureReason.BAD_TONE
    return _fail("toxicity", reason)


def low_effort_guard(ctx: TurnContext) -> LadderDecision | None:
    if ctx.loop.low_effort_streak < LOW_EFFORT_STREAK_LIMIT:
        return None
    return _fail("repeated_low_effort", FailureReason.REPEATED_LOW_EFFORT)


def fact_conflict_guard(ctx: TurnContext) -> LadderDecision | None:
    if not ctx.fact.has_conflict:
        return None
    field_name = ctx.fact.field.value.upper() if ctx.fact.field else "UNKNOWN"
    return LadderDecision(
        kind=DecisionKind.CLARIFY,
        rule="fact_conflict",
        customer_line=clarification_line(ctx.fact),
        reason_codes=(f"FACT_CONFLICT_{field_name}",),
    )


def dialog_health_guard(ctx: TurnContext) -> LadderDecision | None:
    streak_hit = ctx.loop.unanswered_question_streak >= UNANSWERED_STREAK_LIMIT
    collapsed = (
        ctx.health.patience < PATIENCE_FLOOR
        and ctx.health.irritation > IRRITATION_CEILING
    )
    if streak_hit:
        return _fail("dialog_health", FailureReason.IGNORED_QUESTIONS)
    if collapsed:
        return _fail("dialog_health", FailureReason.POOR_COMMUNICATION)
    return None


def critical_evasion_guard(ctx: TurnContext) -> LadderDecision | None:
    if ctx.topics is None:
        return None
    check = check_critical_evasions(ctx.topics)
    if not check.should_fail:
        return None
    return _fail("critical_evasion", FailureReason.CRITICAL_EVASION, check.failed_topic)


PRE_TURN_GUARDS: list[tuple[str, Guard]] = [
    ("toxicity", toxicity_guard),
    ("repeated_low_effort", low_effort_guard),
    ("fact_conflict", fact_conflict_guard),
    ("dialog_health", dialog_health_guard),
]

POST_TURN_GUARDS: list[tuple[str, Guard]] = [
    ("critical_evasion", critical_evasion_guard),
]


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------

def evaluate(guards: list[tuple[str, Guard]], ctx: TurnContext) -> LadderDecision:
    """Run guards in priority order; the first non-None decision wins."""
    for _name, guard in guards:
        decision = guard(ctx)
        if decision is not None:
            return decision
    return CONTINUE


def decide_pre_turn(ctx: TurnContext) -> LadderDecision:
    return evaluate(PRE_TURN_GUARDS, ctx)


def decide_post_turn(ctx: TurnContext) -> LadderDecision:
    return evaluate(POST_TURN_GUARDS, ctx)
