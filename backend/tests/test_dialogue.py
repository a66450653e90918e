"""
Tests for parsing generator replies and folding them into the session.
"""

from sales_trainer.domain.dialogue import (
    DEFAULT_ENGAGEMENT,
    DEFAULT_TONE,
    FALLBACK_CUSTOMER_LINE,
    CustomerReply,
    fold_reply,
    parse_customer_reply,
)
from sales_trainer.domain.phases import ConversationPhase
from sales_trainer.domain.scoring import ChecklistCode, ChecklistStatus
from sales_trainer.domain.state import DialogStage, SessionState
from sales_trainer.domain.topics import TopicCode, TopicState, TopicStatus


def _state_with(**statuses: TopicStatus) -> SessionState:
    state = SessionState.new("trn_test")
    for name, status in statuses.items():
        state.topics[TopicCode(name)] = TopicState(status=status)
    return state


class TestParse:
    def test_non_object_reply_falls_back(self):
        parsed = parse_customer_reply("not json")
        assert parsed == CustomerReply(client_message=FALLBACK_CUSTOMER_LINE)

    def test_empty_message_falls_back(self):
        parsed = parse_customer_reply({"client_message": "   "})
        assert parsed.client_message == FALLBACK_CUSTOMER_LINE
        assert parsed.diagnostics.manager_tone == DEFAULT_TONE
        assert parsed.diagnostics.manager_engagement == DEFAULT_ENGAGEMENT

    def test_full_reply(self, reply):
        data = reply(
            "  Sounds good.  ",
            addressed=["intro", "INTRO", "weather"],
            evaded=["needs"],
            end="true",
            current_phase="needs_discovery",
            manager_tone="Friendly",
        )
        data["update_state"]["stage"] = "car_interest"

        parsed = parse_customer_reply(data)

        assert parsed.client_message == "Sounds good."
        assert parsed.end_conversation is True
        assert parsed.diagnostics.topics_addressed == (TopicCode.INTRO,)
        assert parsed.diagnostics.topics_evaded == (TopicCode.NEEDS,)
        assert parsed.diagnostics.current_phase is ConversationPhase.NEEDS_DISCOVERY
        assert parsed.diagnostics.manager_tone == "friendly"
        assert parsed.update_state.stage is DialogStage.CAR_INTEREST
        assert parsed.update_state.client_turns == 0

    def test_bad_diagnostics_are_defaulted(self):
        parsed = parse_customer_reply({
            "client_message": "Hm.",
            "diagnostics": {
                "topics_addressed": "intro",
                "current_phase": "small_talk",
                "misinformation_detected": "maybe",
                "phase_checks_update": ["nope"],
            },
            "update_state": {"stage": "haggling", "client_turns": "three", "notes": 7},
        })
        assert parsed.diagnostics.topics_addressed == ()
        assert parsed.diagnostics.current_phase is None
        assert parsed.diagnostics.misinformation_detected is False
        assert parsed.diagnostics.phase_checks_update == {}
        assert parsed.update_state.stage is None
        assert parsed.update_state.client_turns is None
        assert parsed.update_state.notes is None


class TestFold:
    def test_new_topic_is_asked_and_answered_in_one_turn(self, reply):
        state = _state_with()
        fold_reply(state, parse_customer_reply(reply(addressed=["intro"])))
        assert state.topics[TopicCode.INTRO].status is TopicStatus.ANSWERED

    def test_answered_topic_moves_to_clarified_then_closed(self, reply):
        state = _state_with(credit=TopicStatus.ANSWERED)
        fold_reply(state, parse_customer_reply(reply(addressed=["credit"])))
        assert state.topics[TopicCode.CREDIT].status is TopicStatus.CLARIFIED
        fold_reply(state, parse_customer_reply(reply(addressed=["credit"])))
        assert state.topics[TopicCode.CREDIT].status is TopicStatus.CLOSED
        fold_reply(state, parse_customer_reply(reply(addressed=["credit"])))
        assert state.topics[TopicCode.CREDIT].status is TopicStatus.CLOSED

    def test_evasion_on_asked_topic(self, reply):
        state = _state_with(needs=TopicStatus.ASKED)
        fold_reply(state, parse_customer_reply(reply(evaded=["needs"])))
        assert state.topics[TopicCode.NEEDS] == TopicState(TopicStatus.ASKED, 1)

    def test_evasion_reopens_answered_topic(self, reply):
        state = _state_with(needs=TopicStatus.ANSWERED)
        fold_reply(state, parse_customer_reply(reply(evaded=["needs"])))
        assert state.topics[TopicCode.NEEDS] == TopicState(TopicStatus.ASKED, 1)

    def test_evasion_never_reopens_closed_topic(self, reply):
        state = _state_with(trade_in=TopicStatus.CLOSED)
        fold_reply(state, parse_customer_reply(reply(evaded=["trade_in"])))
        assert state.topics[TopicCode.TRADE_IN] == TopicState(TopicStatus.CLOSED, 1)

    def test_evaded_wins_over_addressed(self, reply):
        state = _state_with()
        fold_reply(state, parse_customer_reply(reply(addressed=["needs"], evaded=["needs"])))
        assert state.topics[TopicCode.NEEDS] == TopicState(TopicStatus.ASKED, 1)

    def test_client_turns_owned_by_core(self, reply):
        state = _state_with()
        data = reply()
        data["update_state"]["client_turns"] = 7
        fold_reply(state, parse_customer_reply(data))
        assert state.client_turns == 1

    def test_notes_checklist_and_communication(self, reply):
        state = _state_with()
        state.notes = "awaiting:credit"
        fold_reply(state, parse_customer_reply(reply(
            checklist={"CREDIT_EXPLANATION": "PARTIAL", "BOGUS": "YES"},
            manager_tone="rude",
            manager_engagement="low",
            misinformation_detected=True,
        )))
        assert state.notes == ""
        assert state.checklist[ChecklistCode.CREDIT_EXPLANATION].status is ChecklistStatus.PARTIAL
        assert state.communication.manager_tone == "rude"
        assert state.communication.manager_engagement == "low"
        assert state.misinformation_detected is True

        # A later clean read never clears misinformation
        fold_reply(state, parse_customer_reply(reply()))
        assert state.misinformation_detected is True
        assert state.communication.manager_tone == "neutral"

    def test_missing_notes_keep_previous_notes(self):
        state = _state_with()
        state.notes = "awaiting:credit"
        fold_reply(state, parse_customer_reply({"client_message": "Okay."}))
        assert state.notes == "awaiting:credit"

    def test_phase_moves_forward_and_checks_merge(self, reply):
        state = _state_with()
        fold_reply(state, parse_customer_reply(reply(
            current_phase="product_presentation",
            phase_checks_update={"product_presentation": {"structured": True}},
        )))
        assert state.phase is ConversationPhase.PRODUCT_PRESENTATION
        assert state.phase_checks["product_presentation"]["structured"] is True
