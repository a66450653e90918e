"""
Tests for the topic lifecycle tracker.
"""

import itertools

import pytest

from sales_trainer.domain.topics import (
    CRITICAL_TOPICS,
    ReopenReason,
    TopicCode,
    TopicState,
    TopicStatus,
    advance,
    can_reopen,
    check_critical_evasions,
    create_topic_map,
    is_closed,
    parse_topic_code,
    record_evasion,
    reopen,
    topics_from_dict,
    topics_to_dict,
)

ALLOWED = {
    (TopicStatus.NONE, TopicStatus.ASKED),
    (TopicStatus.ASKED, TopicStatus.ANSWERED),
    (TopicStatus.ASKED, TopicStatus.ASKED),
    (TopicStatus.ANSWERED, TopicStatus.CLARIFIED),
    (TopicStatus.ANSWERED, TopicStatus.CLOSED),
    (TopicStatus.CLARIFIED, TopicStatus.CLOSED),
}

NON_CRITICAL = [c for c in TopicCode if c not in CRITICAL_TOPICS]


def _with_status(code: TopicCode, status: TopicStatus):
    topics = create_topic_map()
    topics[code] = TopicState(status=status)
    return topics


class TestAdvance:
    @pytest.mark.parametrize(
        "current,target", list(itertools.product(TopicStatus, TopicStatus))
    )
    def test_every_status_pair(self, current, target):
        topics = _with_status(TopicCode.NEEDS, current)
        result = advance(topics, TopicCode.NEEDS, target)

        if (current, target) in ALLOWED:
            assert result.valid is True
            assert result.map[TopicCode.NEEDS].status is target
        else:
            assert result.valid is False
            assert result.map is topics
            assert topics[TopicCode.NEEDS].status is current

    def test_advance_does_not_mutate_input(self):
        topics = create_topic_map()
        result = advance(topics, TopicCode.INTRO, TopicStatus.ASKED)
        assert result.valid
        assert topics[TopicCode.INTRO].status is TopicStatus.NONE

    def test_advance_keeps_evasion_count(self):
        topics = record_evasion(create_topic_map(), TopicCode.CREDIT)
        topics = advance(topics, TopicCode.CREDIT, TopicStatus.ASKED).map
        assert topics[TopicCode.CREDIT].evasion_count == 1


class TestCriticalEvasions:
    def test_fresh_map_does_not_fail(self):
        assert check_critical_evasions(create_topic_map()).should_fail is False

    @pytest.mark.parametrize("code", CRITICAL_TOPICS)
    def test_two_evasions_on_critical_topic_fail(self, code):
        topics = record_evasion(record_evasion(create_topic_map(), code), code)
        check = check_critical_evasions(topics)
        assert check.should_fail is True
        assert check.failed_topic is code

    @pytest.mark.parametrize("code", CRITICAL_TOPICS)
    def test_one_evasion_is_not_enough(self, code):
        topics = record_evasion(create_topic_map(), code)
        assert check_critical_evasions(topics).should_fail is False

    @pytest.mark.parametrize("code", NON_CRITICAL)
    def test_non_critical_topics_never_fail(self, code):
        topics = create_topic_map()
        for _ in range(5):
            topics = record_evasion(topics, code)
        assert check_critical_evasions(topics).should_fail is False

    def test_call_order_does_not_matter(self):
        a = create_topic_map()
        for code in (TopicCode.CREDIT, TopicCode.NEEDS, TopicCode.TRADE_IN, TopicCode.NEEDS):
            a = record_evasion(a, code)
        b = create_topic_map()
        for code in (TopicCode.NEEDS, TopicCode.NEEDS, TopicCode.CREDIT, TopicCode.TRADE_IN):
            b = record_evasion(b, code)
        assert check_critical_evasions(a) == check_critical_evasions(b)
        assert check_critical_evasions(a).failed_topic is TopicCode.NEEDS

    def test_third_evasion_keeps_same_failed_topic(self):
        topics = create_topic_map()
        for _ in range(2):
            topics = record_evasion(topics, TopicCode.NEEDS)
        first = check_critical_evasions(topics)
        topics = record_evasion(topics, TopicCode.NEEDS)
        assert check_critical_evasions(topics) == first


class TestReopen:
    def test_closed_topic_ignored_is_not_enough(self):
        topics = _with_status(TopicCode.CREDIT, TopicStatus.CLOSED)
        assert can_reopen(topics, TopicCode.CREDIT, ReopenReason.IGNORED) is False
        result = reopen(topics, TopicCode.CREDIT, ReopenReason.IGNORED)
        assert result.valid is False
        assert is_closed(result.map, TopicCode.CREDIT)

    @pytest.mark.parametrize("reason", [ReopenReason.CONTRADICTION, ReopenReason.MISINFORMATION])
    def test_closed_topic_reopens_on_contradiction_or_misinformation(self, reason):
        topics = _with_status(TopicCode.CREDIT, TopicStatus.CLOSED)
        result = reopen(topics, TopicCode.CREDIT, reason)
        assert result.valid is True
        assert result.map[TopicCode.CREDIT].status is TopicStatus.ASKED

    @pytest.mark.parametrize(
        "status", [TopicStatus.NONE, TopicStatus.ASKED, TopicStatus.ANSWERED, TopicStatus.CLARIFIED]
    )
    def test_ignored_is_enough_on_open_topics(self, status):
        topics = _with_status(TopicCode.NEEDS, status)
        assert can_reopen(topics, TopicCode.NEEDS, ReopenReason.IGNORED) is True
        assert reopen(topics, TopicCode.NEEDS, ReopenReason.IGNORED).map[TopicCode.NEEDS].status is TopicStatus.ASKED


class TestSnapshot:
    def test_round_trip(self):
        topics = advance(create_topic_map(), TopicCode.INTRO, TopicStatus.ASKED).map
        topics = record_evasion(topics, TopicCode.NEEDS)
        assert topics_from_dict(topics_to_dict(topics)) == topics

    def test_unknown_codes_and_bad_values_are_dropped(self):
        topics = topics_from_dict({
            "intro": {"status": "answered", "evasion_count": 1},
            "weather": {"status": "asked"},
            "needs": {"status": "bogus", "evasion_count": -3},
        })
        assert topics[TopicCode.INTRO] == TopicState(TopicStatus.ANSWERED, 1)
        assert topics[TopicCode.NEEDS] == TopicState()
        assert len(topics) == len(TopicCode)

    def test_parse_topic_code(self):
        assert parse_topic_code(" Needs ") is TopicCode.NEEDS
        assert parse_topic_code("unknown") is None
        assert parse_topic_code(42) is None
