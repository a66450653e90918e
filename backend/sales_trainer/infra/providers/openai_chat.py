"""
OpenAI chat provider — the virtual customer via an OpenAI-compatible API.

Uses AsyncOpenAI.  Two public functions:

  - generate_customer_reply:  next customer line + diagnostics for one turn
  - generate_opening_line:    the customer's first message of a session

Both raise on failure; callers MUST catch and fall back to the fixed
filler line.  The raw JSON is returned as-is; coercion into typed values
happens in domain/dialogue.py.
"""

from __future__ import annotations

import json

from openai import AsyncOpenAI

from sales_trainer.core.logging import logger
from sales_trainer.core.settings import settings
from sales_trainer.domain.behavior import BehaviorSignal
from sales_trainer.domain.dialogue import DialogueRequest
from sales_trainer.domain.ground_truth import GroundTruthRecord
from sales_trainer.domain.phases import ConversationPhase
from sales_trainer.domain.scoring import ChecklistCode
from sales_trainer.domain.state import DialogStage
from sales_trainer.domain.topics import TopicCode


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------

class ChatJSONClient:
    """Thin async wrapper around an OpenAI-compatible chat API in JSON mode."""

    def __init__(self) -> None:
        self._client = AsyncOpenAI(
            api_key=settings.openai_api_key,
            base_url=settings.openai_base_url,
            timeout=float(settings.llm_timeout_seconds),
        )

    async def chat_json(
        self,
        messages: list[dict],
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> dict:
        """Send a chat completion and parse the JSON response.

        Retries up to LLM_MAX_RETRIES on empty content, bad JSON or API errors.
        """
        attempts = settings.llm_max_retries + 1
        last_err: Exception | None = None
        for attempt in range(attempts):
            try:
                resp = await self._client.chat.completions.create(
                    model=settings.openai_model,
                    messages=messages,
                    response_format={"type": "json_object"},
                    temperature=settings.llm_temperature if temperature is None else temperature,
                    max_tokens=max_tokens or settings.llm_max_tokens,
                    timeout=float(settings.llm_timeout_seconds),
                )
                content = resp.choices[0].message.content
                if content and content.strip():
                    return json.loads(content)
                last_err = RuntimeError(f"Empty content on attempt {attempt + 1}")
                logger.warning("LLM empty content (attempt %d/%d)", attempt + 1, attempts)
            except json.JSONDecodeError as e:
                last_err = e
                logger.warning("LLM JSON parse error (attempt %d/%d): %s", attempt + 1, attempts, e)
            except Exception as e:
                last_err = e
                logger.warning("LLM API error (attempt %d/%d): %s", attempt + 1, attempts, e)
                if attempt >= settings.llm_max_retries:
                    raise
        raise last_err or RuntimeError("LLM returned empty content after retries")


# ---------------------------------------------------------------------------
# Module-level singleton (lazy)
# ---------------------------------------------------------------------------

_client: ChatJSONClient | None = None


def _get_client() -> ChatJSONClient:
    global _client
    if _client is None:
        if not settings.openai_api_key:
            raise RuntimeError("OPENAI_API_KEY not configured")
        _client = ChatJSONClient()
    return _client


# ---------------------------------------------------------------------------
# Customer turn
# ---------------------------------------------------------------------------

def _codes(values) -> str:
    return "|".join(v.value for v in values)


_CUSTOMER_SYSTEM = f"""\
You are a customer calling a car dealership about one specific advertised car. \
Output only valid json.

You RESPOND and move the dialog forward; you never coach the manager. \
Stay strictly consistent with the advertised car data you are given. \
Keep client_message to 1-3 sentences, natural, no emojis, no meta-commentary.
React in character to the manager behaviour you are given: grow curt after \
low-effort or evasive answers and repeat a question that was dodged.

Dialog stages: {' -> '.join(s.value for s in DialogStage)}. Never regress.
Raise at most ONE objection per dialog, chosen from your profile.
End the conversation (end_conversation=true) when a visit or next contact \
date/time is agreed, or when client_turns reaches turn_limit.

After replying, classify the MANAGER's last message:
- current_phase: {_codes(ConversationPhase)}
- topics_addressed / topics_evaded: lists of {_codes(TopicCode)}
  (evaded = you asked about it and the manager dodged or ignored it)
- manager_tone: friendly|neutral|rude|hostile
- manager_engagement: high|normal|low|passive
- misinformation_detected: true if the manager contradicted the advertised data
- checklist_delta: {{CODE: "YES|PARTIAL|NO|NA"}} for codes {_codes(ChecklistCode)};
  only include codes this turn gave evidence for

Return ONLY this json:
{{"client_message":"...","end_conversation":false,\
"diagnostics":{{"current_phase":"first_contact","topics_addressed":[],"topics_evaded":[],\
"manager_tone":"neutral","manager_engagement":"normal","misinformation_detected":false,\
"phase_checks_update":{{}}}},\
"update_state":{{"stage":"opening","checklist_delta":{{}},"notes":"","client_turns":1}}}}"""


def _behavior_line(signal: BehaviorSignal | None) -> str:
    return json.dumps((signal or BehaviorSignal()).to_dict(), ensure_ascii=False)


async def generate_customer_reply(request: DialogueRequest) -> dict:
    """Ask the LLM for the customer's next line and turn diagnostics.

    Raises on any failure. The caller must fall back to the filler line.
    """
    client = _get_client()

    parts = [
        f"Your profile: {request.profile_description}",
        f"Advertised car:\n{request.ground_truth.summary()}",
        f"Dealership: {request.dealership_context}",
        f"Current state: {json.dumps(request.current_state, ensure_ascii=False)}",
        f"turn_limit: {request.turn_limit}",
        f"Manager behaviour this turn: {_behavior_line(request.behavior_signal)}",
        "Recent dialog:",
    ]
    for msg in request.recent_history:
        parts.append(f"{msg['role']}: {msg['content']}")
    parts.append(f'Manager just said: "{request.manager_last_message}"')

    messages = [
        {"role": "system", "content": _CUSTOMER_SYSTEM},
        {"role": "user", "content": "\n".join(parts)},
    ]

    data = await client.chat_json(messages)
    logger.debug("Session %s LLM customer raw: %s", request.session_id, data)
    return data


# ---------------------------------------------------------------------------
# Opening line
# ---------------------------------------------------------------------------

_OPENING_SYSTEM = """\
You are a customer who saw a car listing and is writing to the dealership for \
the first time. Output json: {"client_message":"your first message"}
Ask whether the car is still available and one basic detail. 1-2 sentences. \
Do not overload the first message."""


async def generate_opening_line(record: GroundTruthRecord, profile_description: str) -> str:
    """Generate the customer's first message.

    Raises on any failure. The caller must fall back to the scripted opener.
    """
    client = _get_client()
    messages = [
        {"role": "system", "content": _OPENING_SYSTEM},
        {"role": "user", "content": f"Your profile: {profile_description}\nListing: {record.title}"},
    ]
    data = await client.chat_json(messages, max_tokens=120)
    text = data.get("client_message") or data.get("response") or ""
    if not isinstance(text, str) or not text.strip():
        raise RuntimeError("LLM returned empty opening line")
    return text.strip()
