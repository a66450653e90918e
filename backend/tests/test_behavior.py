"""
Tests for the deterministic behaviour classifier.
"""

import pytest

from sales_trainer.domain.behavior import (
    BehaviorSignal,
    ClassifierContext,
    Severity,
    build_context,
    classify,
    normalize,
    points_to_website,
)

WAITING = ClassifierContext(last_question="Is it still available?", is_waiting_for_answer=True)


def test_clean_introduction():
    signal = classify("Good afternoon, my name is Anna, I am calling from the Kia dealership.")

    assert signal == BehaviorSignal()
    assert signal.severity is Severity.LOW
    assert signal.rationale == "no issues detected"


def test_hostile_phrase_is_toxic_without_profanity():
    signal = classify("Shut up and listen to what I am telling you")

    assert signal.toxic is True
    assert signal.profanity is False
    assert signal.severity is Severity.HIGH
    assert "hostile language" in signal.rationale


@pytest.mark.parametrize("text", ["Какая сука разница", "this is fucking great", "Ну бля, что вам ещё"])
def test_profanity(text):
    signal = classify(text)
    assert signal.toxic is True
    assert signal.profanity is True
    assert signal.severity is Severity.HIGH


@pytest.mark.parametrize(
    "text",
    [
        "Цена два миллиона восемьсот девяносто тысяч рубля без торга",
        "Я требую у банка лучшие условия для вас сегодня",
    ],
)
def test_profanity_stems_match_at_word_start_only(text):
    assert classify(text).toxic is False


def test_bare_ok_while_waiting_is_low_effort_evasion():
    signal = classify("ок", WAITING)

    assert signal.low_effort is True
    assert signal.evasion is True
    assert signal.low_quality is True
    assert signal.severity is Severity.MEDIUM
    assert "evaded client question" in signal.rationale


def test_bare_ok_without_pending_question_is_not_evasion():
    signal = classify("ок")

    assert signal.low_effort is True
    assert signal.evasion is False
    assert signal.low_quality is False
    assert signal.severity is Severity.LOW


def test_dont_know_while_waiting_is_evasion():
    signal = classify("Honestly I don't know what the trim level is, sorry", WAITING)
    assert signal.evasion is True
    assert "i don't know" in signal.prohibited_phrase_hits


@pytest.mark.parametrize(
    "text",
    [
        "I'm not interested, goodbye",
        "Не хочу больше с вами разговаривать",
        "Please stop calling this number",
        "Ладно, пока",
    ],
)
def test_disengaging(text):
    signal = classify(text)
    assert signal.disengaging is True
    assert signal.low_quality is True
    assert signal.severity is Severity.HIGH


def test_poka_as_while_is_not_a_farewell():
    signal = classify("Пока машина в наличии, могу записать вас на осмотр завтра", WAITING)

    assert signal.disengaging is False
    assert signal.evasion is False
    assert signal.severity is Severity.LOW


def test_dismissive_phrase_is_medium_and_prohibited():
    signal = classify("That is not my problem, figure it out yourself please")

    assert signal.prohibited_phrase_hits == ("not my problem", "figure it out yourself")
    assert signal.low_quality is True
    assert signal.severity is Severity.MEDIUM


def test_website_redirect_hits():
    signal = classify("Check the website, it's all in the listing there")

    assert signal.prohibited_phrase_hits == ("check the website", "it's all in the listing")
    assert all(points_to_website(hit) for hit in signal.prohibited_phrase_hits)
    assert not points_to_website("i don't know")


def test_classification_is_stable():
    text = "ну хз, перезвоните позже"
    first = classify(text, WAITING)
    second = classify(text, WAITING)
    assert first == second
    assert first.rationale == second.rationale


def test_signal_dict_round_trip():
    signal = classify("Check the website", WAITING)
    assert BehaviorSignal.from_dict(signal.to_dict()) == signal


def test_normalize():
    assert normalize("  Всё   ЁЛКИ’s  ") == "все елки's"


class TestBuildContext:
    def test_no_question_means_not_waiting(self):
        assert build_context("Hello there.", 3) == ClassifierContext()
        assert build_context(None, 3) == ClassifierContext()

    def test_first_manager_turn_is_not_waiting(self):
        ctx = build_context("Is it still available?", 0)
        assert ctx.last_question == "Is it still available?"
        assert ctx.is_waiting_for_answer is False

    def test_later_turn_is_waiting(self):
        assert build_context("Is it still available?", 2).is_waiting_for_answer is True
