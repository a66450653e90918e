"""
Tests for dialog health updates and the escalation ladder.
"""

import pytest

from sales_trainer.domain.behavior import BehaviorSignal
from sales_trainer.domain.escalation import (
    DecisionKind,
    FailureReason,
    TurnContext,
    clarification_line,
    closing_line,
    decide_post_turn,
    decide_pre_turn,
)
from sales_trainer.domain.fact_check import FactCheckResult, FactField
from sales_trainer.domain.health import DialogHealth, LoopGuard, apply_behavior
from sales_trainer.domain.topics import TopicCode, create_topic_map, record_evasion

CLEAN = BehaviorSignal()
TOXIC = BehaviorSignal(toxic=True)
PROFANE = BehaviorSignal(toxic=True, profanity=True)
LOW_EFFORT = BehaviorSignal(low_effort=True)
EVASIVE = BehaviorSignal(evasion=True)


class TestApplyBehavior:
    def test_toxic_turn(self):
        health, guard = apply_behavior(DialogHealth(), LoopGuard(), TOXIC)
        assert health == DialogHealth(patience=30, trust=20, confusion=0, irritation=40)
        assert guard == LoopGuard(unanswered_question_streak=1, low_effort_streak=0)

    def test_low_effort_turn(self):
        health, guard = apply_behavior(DialogHealth(), LoopGuard(), LOW_EFFORT)
        assert health == DialogHealth(patience=58, trust=52, confusion=0, irritation=15)
        assert guard == LoopGuard(unanswered_question_streak=1, low_effort_streak=1)

    def test_evasive_turn(self):
        health, guard = apply_behavior(DialogHealth(), LoopGuard(), EVASIVE)
        assert health == DialogHealth(patience=62, trust=60, confusion=0, irritation=10)
        assert guard.unanswered_question_streak == 1

    def test_toxic_row_wins_but_low_effort_streak_still_counts(self):
        signal = BehaviorSignal(toxic=True, low_effort=True, evasion=True)
        health, guard = apply_behavior(DialogHealth(), LoopGuard(low_effort_streak=2), signal)
        assert health.irritation == 40
        assert guard.low_effort_streak == 3

    def test_clean_turn_resets_streaks(self):
        before = DialogHealth(patience=40, irritation=50)
        health, guard = apply_behavior(before, LoopGuard(2, 2), CLEAN)
        assert health == before
        assert guard == LoopGuard(0, 0)

    def test_gauges_are_clamped(self):
        start = DialogHealth(patience=10, trust=5, confusion=0, irritation=90)
        health, _ = apply_behavior(start, LoopGuard(), TOXIC)
        assert health == DialogHealth(patience=0, trust=0, confusion=0, irritation=100)

    def test_from_dict_clamps_and_defaults(self):
        health = DialogHealth.from_dict({"patience": 150, "trust": "x", "irritation": -5})
        assert health == DialogHealth(patience=100, trust=60, confusion=0, irritation=0)
        assert LoopGuard.from_dict({"low_effort_streak": -1}) == LoopGuard()


def _ctx(signal=CLEAN, health=None, loop=None, fact=None, topics=None) -> TurnContext:
    return TurnContext(
        signal=signal,
        health=health or DialogHealth(),
        loop=loop or LoopGuard(),
        fact=fact or FactCheckResult(),
        topics=topics,
    )


YEAR_CONFLICT = FactCheckResult(True, FactField.YEAR, 2023, 2021)


class TestPreTurnLadder:
    def test_clean_turn_continues(self):
        decision = decide_pre_turn(_ctx())
        assert decision.kind is DecisionKind.CONTINUE
        assert decision.failure_code is None

    def test_profanity(self):
        decision = decide_pre_turn(_ctx(PROFANE))
        assert decision.kind is DecisionKind.FAIL
        assert decision.failure_code == "PROFANITY"
        assert decision.customer_line == closing_line(FailureReason.PROFANITY)

    def test_hostility_without_profanity_is_bad_tone(self):
        assert decide_pre_turn(_ctx(TOXIC)).failure_code == "BAD_TONE"

    def test_toxicity_beats_low_effort_streak(self):
        decision = decide_pre_turn(_ctx(TOXIC, loop=LoopGuard(0, 3)))
        assert decision.rule == "toxicity"
        assert decision.reason is FailureReason.BAD_TONE

    def test_repeated_low_effort(self):
        decision = decide_pre_turn(_ctx(LOW_EFFORT, loop=LoopGuard(3, 3)))
        assert decision.reason is FailureReason.REPEATED_LOW_EFFORT

    def test_low_effort_streak_beats_fact_conflict(self):
        decision = decide_pre_turn(_ctx(LOW_EFFORT, loop=LoopGuard(0, 3), fact=YEAR_CONFLICT))
        assert decision.reason is FailureReason.REPEATED_LOW_EFFORT

    def test_fact_conflict_clarifies(self):
        decision = decide_pre_turn(_ctx(fact=YEAR_CONFLICT))
        assert decision.kind is DecisionKind.CLARIFY
        assert decision.is_terminal is False
        assert decision.failure_code is None
        assert decision.reason_codes == ("FACT_CONFLICT_YEAR",)
        assert "2023" in decision.customer_line and "2021" in decision.customer_line

    def test_fact_conflict_beats_dialog_health(self):
        decision = decide_pre_turn(_ctx(fact=YEAR_CONFLICT, loop=LoopGuard(5, 0)))
        assert decision.kind is DecisionKind.CLARIFY

    def test_ignored_questions(self):
        decision = decide_pre_turn(_ctx(EVASIVE, loop=LoopGuard(3, 0)))
        assert decision.failure_code == "IGNORED_QUESTIONS"

    def test_ignored_questions_beats_poor_communication(self):
        collapsed = DialogHealth(patience=5, irritation=90)
        decision = decide_pre_turn(_ctx(EVASIVE, health=collapsed, loop=LoopGuard(3, 0)))
        assert decision.failure_code == "IGNORED_QUESTIONS"

    def test_poor_communication(self):
        collapsed = DialogHealth(patience=14, irritation=66)
        assert decide_pre_turn(_ctx(health=collapsed)).failure_code == "POOR_COMMUNICATION"

    @pytest.mark.parametrize("patience,irritation", [(15, 90), (5, 65)])
    def test_health_thresholds_are_strict(self, patience, irritation):
        health = DialogHealth(patience=patience, irritation=irritation)
        assert decide_pre_turn(_ctx(health=health)).kind is DecisionKind.CONTINUE


class TestPostTurnLadder:
    def test_without_topics_continues(self):
        assert decide_post_turn(_ctx()).kind is DecisionKind.CONTINUE

    def test_critical_evasion(self):
        topics = record_evasion(record_evasion(create_topic_map(), TopicCode.NEXT_STEP), TopicCode.NEXT_STEP)
        decision = decide_post_turn(_ctx(topics=topics))
        assert decision.kind is DecisionKind.FAIL
        assert decision.failed_topic is TopicCode.NEXT_STEP
        assert decision.failure_code == "CRITICAL_EVASION:next_step"
        assert decision.reason_codes == ("CRITICAL_EVASION:next_step",)

    def test_non_critical_evasions_continue(self):
        topics = create_topic_map()
        for _ in range(3):
            topics = record_evasion(topics, TopicCode.CREDIT)
        assert decide_post_turn(_ctx(topics=topics)).kind is DecisionKind.CONTINUE


def test_clarification_line_without_values():
    line = clarification_line(FactCheckResult(has_conflict=True))
    assert "clarify" in line
