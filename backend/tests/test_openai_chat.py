"""
Tests for the LLM customer prompt, using a stub chat client.
"""

import json

import pytest

from sales_trainer.domain.behavior import ClassifierContext, classify
from sales_trainer.domain.dialogue import DialogueRequest
from sales_trainer.domain.state import SessionState
from sales_trainer.infra.providers import openai_chat


class StubChatClient:
    def __init__(self, response):
        self.response = response
        self.messages = []

    async def chat_json(self, messages, max_tokens=None, temperature=None):
        self.messages.append(messages)
        return self.response


@pytest.fixture
def stub_client(monkeypatch, reply):
    client = StubChatClient(reply("Fine. So what about credit?"))
    monkeypatch.setattr(openai_chat, "_get_client", lambda: client)
    return client


def _request(record, text, signal=None):
    state = SessionState.new("trn_prompt")
    return DialogueRequest(
        session_id=state.session_id,
        ground_truth=record,
        dealership_context=record.dealership_context(),
        current_state=state.snapshot_for_generator(),
        manager_last_message=text,
        recent_history=[{"role": "customer", "content": "Is the car available?"}],
        turn_limit=10,
        behavior_signal=signal,
    )


def _behaviour_line(user_message: str) -> dict:
    prefix = "Manager behaviour this turn: "
    line = next(row for row in user_message.splitlines() if row.startswith(prefix))
    return json.loads(line[len(prefix):])


@pytest.mark.asyncio
async def test_behaviour_signal_is_sent_to_the_model(record, stub_client):
    text = "ок"
    signal = classify(text, ClassifierContext(last_question="?", is_waiting_for_answer=True))

    data = await openai_chat.generate_customer_reply(_request(record, text, signal))

    assert data["client_message"] == "Fine. So what about credit?"
    (messages,) = stub_client.messages
    assert [m["role"] for m in messages] == ["system", "user"]
    sent = _behaviour_line(messages[1]["content"])
    assert sent == signal.to_dict()
    assert sent["low_effort"] is True
    assert sent["evasion"] is True
    assert 'Manager just said: "ок"' in messages[1]["content"]


@pytest.mark.asyncio
async def test_missing_signal_is_sent_as_clean(record, stub_client):
    await openai_chat.generate_customer_reply(_request(record, "Hello"))

    sent = _behaviour_line(stub_client.messages[0][1]["content"])
    assert sent["severity"] == "LOW"
    assert sent["toxic"] is False
    assert sent["prohibited_phrase_hits"] == []
