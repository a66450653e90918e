"""
Scripted customer — deterministic offline stand-in for the LLM generator.

Used when FORCE_OFFLINE is set (evals, tests, local dev without a key).
Returns exactly the JSON shape the LLM is asked for, so the same parsing
and folding path runs in both modes.

Diagnostics are keyword-driven: each topic has a few RU/EN markers, and a
marker in the manager's text counts as the topic being addressed.  The
customer's open question is carried between turns in ``notes`` as
``awaiting:<topic>``; a turn the classifier marks as evasive while a
question is open counts as evading that topic.
"""

from __future__ import annotations

import re

from sales_trainer.domain.behavior import normalize
from sales_trainer.domain.dialogue import DialogueRequest
from sales_trainer.domain.ground_truth import GroundTruthRecord
from sales_trainer.domain.phases import PHASE_ORDER, PHASE_TOPICS
from sales_trainer.domain.scoring import ChecklistCode
from sales_trainer.domain.topics import TopicCode

_AWAITING_PREFIX = "awaiting:"

_TOPIC_MARKERS: dict[TopicCode, tuple[str, ...]] = {
    TopicCode.INTRO: ("меня зовут", "my name is", "здравствуйте", "добрый день", "hello", "good afternoon"),
    TopicCode.SALON_NAME: ("автосалон", "салон", "dealership", "showroom"),
    TopicCode.NEEDS: (
        "для чего", "для каких", "что для вас важно", "какие задачи",
        "what are you looking for", "what matters", "how will you use", "what do you need",
    ),
    TopicCode.PRODUCT_PRESENTATION: (
        "состояни", "комплектац", "один владелец", "condition", "features",
        "one owner", "service history", "equipped",
    ),
    TopicCode.CREDIT: ("кредит", "рассрочк", "банк", "credit", "loan", "financing"),
    TopicCode.TRADE_IN: ("трейд", "trade-in", "trade in", "выкуп", "buyout"),
    TopicCode.OBJECTION: ("понимаю ваши сомнения", "i understand your concern", "скидк", "discount"),
    TopicCode.NEXT_STEP: (
        "приезжайте", "тест-драйв", "приглашаю", "come and see", "come by",
        "test drive", "visit", "viewing",
    ),
    TopicCode.SCHEDULING: ("завтра", "в субботу", "tomorrow", "saturday", "on monday"),
    TopicCode.FOLLOW_UP: ("перезвоню", "наберу", "call you back", "follow up", "i'll call"),
}

_TIME_RE = re.compile(r"\b\d{1,2}[:.]\d{2}\b|\bat \d{1,2}\s?(?:am|pm)?\b|\bв \d{1,2}\b")

_CHECKLIST_FOR_TOPIC: dict[TopicCode, ChecklistCode] = {
    TopicCode.INTRO: ChecklistCode.INTRODUCTION,
    TopicCode.SALON_NAME: ChecklistCode.SALON_NAME,
    TopicCode.CAR_IDENTIFICATION: ChecklistCode.CAR_IDENTIFICATION,
    TopicCode.NEEDS: ChecklistCode.NEEDS_DISCOVERY,
    TopicCode.PRODUCT_PRESENTATION: ChecklistCode.PRODUCT_PRESENTATION,
    TopicCode.CREDIT: ChecklistCode.CREDIT_EXPLANATION,
    TopicCode.TRADE_IN: ChecklistCode.TRADEIN_OFFER,
    TopicCode.OBJECTION: ChecklistCode.OBJECTION_HANDLING,
    TopicCode.NEXT_STEP: ChecklistCode.NEXT_STEP_PROPOSAL,
    TopicCode.SCHEDULING: ChecklistCode.DATE_FIXATION,
    TopicCode.FOLLOW_UP: ChecklistCode.FOLLOW_UP_AGREEMENT,
}

_PHASE_CHECK_FOR_TOPIC: dict[TopicCode, tuple[str, str]] = {
    TopicCode.INTRO: ("first_contact", "introduced"),
    TopicCode.SALON_NAME: ("first_contact", "named_salon"),
    TopicCode.CAR_IDENTIFICATION: ("first_contact", "clarified_car"),
    TopicCode.NEEDS: ("needs_discovery", "asked_clarifying_questions"),
    TopicCode.PRODUCT_PRESENTATION: ("product_presentation", "structured"),
    TopicCode.NEXT_STEP: ("closing_attempt", "proposed_next_step"),
    TopicCode.SCHEDULING: ("closing_attempt", "fixed_date_time"),
    TopicCode.FOLLOW_UP: ("closing_attempt", "suggested_follow_up"),
}

# Questions the customer asks, in order.
_QUESTIONS: list[tuple[TopicCode, str]] = [
    (TopicCode.CAR_IDENTIFICATION, "Is the car from the listing still available?"),
    (TopicCode.PRODUCT_PRESENTATION, "What condition is it in, any accidents or repairs?"),
    (TopicCode.CREDIT, "Is it possible to buy it on credit?"),
    (TopicCode.TRADE_IN, "And would you take my current car as a trade-in?"),
    (TopicCode.NEXT_STEP, "So when could I come and see it?"),
]
_QUESTION_TEXT = dict(_QUESTIONS)


def opening_line(record: GroundTruthRecord) -> str:
    return f"Hello! I saw your listing for the {record.title}. Is it still available?"


def _addressed_topics(text: str, record: GroundTruthRecord) -> list[TopicCode]:
    norm = normalize(text)
    found = [code for code, markers in _TOPIC_MARKERS.items() if any(m in norm for m in markers)]
    if record.model.lower() in norm or record.brand.lower() in norm or "в наличии" in norm \
            or "available" in norm:
        found.append(TopicCode.CAR_IDENTIFICATION)
    if TopicCode.SCHEDULING not in found and _TIME_RE.search(norm):
        found.append(TopicCode.SCHEDULING)
    return found


def _awaiting(notes: object) -> TopicCode | None:
    if not isinstance(notes, str) or not notes.startswith(_AWAITING_PREFIX):
        return None
    raw = notes[len(_AWAITING_PREFIX):].strip()
    for code in TopicCode:
        if code.value == raw:
            return code
    return None


def _next_question(topics: dict, addressed: list[TopicCode]) -> tuple[TopicCode, str]:
    for code, question in _QUESTIONS:
        status = (topics.get(code.value) or {}).get("status", "none")
        if status in ("none", "asked") and code not in addressed:
            return code, question
    return TopicCode.NEXT_STEP, _QUESTION_TEXT[TopicCode.NEXT_STEP]


def _phase_for(addressed: list[TopicCode]) -> str | None:
    for phase in reversed(PHASE_ORDER):
        if any(code in PHASE_TOPICS[phase] for code in addressed):
            return phase.value
    return None


async def generate_customer_reply(request: DialogueRequest) -> dict:
    """Deterministic customer turn in the generator's JSON shape."""
    state = request.current_state
    signal = request.behavior_signal
    addressed = _addressed_topics(request.manager_last_message, request.ground_truth)
    pending = _awaiting(state.get("notes"))

    evasive = signal is not None and signal.evasion
    evaded = [pending] if pending is not None and evasive and pending not in addressed else []
    addressed = [code for code in addressed if code not in evaded]

    client_turns = int(state.get("client_turns", 0)) + 1
    end = False
    if evaded:
        ask_topic = pending
        message = f"You didn't answer me. {_QUESTION_TEXT.get(pending, 'Could you answer my question?')}"
    elif TopicCode.SCHEDULING in addressed and TopicCode.NEXT_STEP in addressed:
        ask_topic = None
        end = True
        message = "Great, that works for me. See you then, thank you!"
    elif client_turns >= request.turn_limit:
        ask_topic = None
        end = True
        message = "Thanks, I need to think about it. Goodbye."
    else:
        ask_topic, question = _next_question(state.get("topics") or {}, addressed)
        message = f"I see. {question}" if addressed else question

    checklist_delta = {_CHECKLIST_FOR_TOPIC[code].value: "YES" for code in addressed}
    if signal is not None:
        checklist_delta[ChecklistCode.COMMUNICATION_TONE.value] = (
            "NO" if signal.toxic else "PARTIAL" if signal.low_quality else "YES"
        )

    phase_checks: dict[str, dict[str, bool]] = {}
    for code in addressed:
        if code in _PHASE_CHECK_FOR_TOPIC:
            phase, key = _PHASE_CHECK_FOR_TOPIC[code]
            phase_checks.setdefault(phase, {})[key] = True

    return {
        "client_message": message,
        "end_conversation": end,
        "diagnostics": {
            "current_phase": _phase_for(addressed),
            "topics_addressed": [code.value for code in addressed],
            "topics_evaded": [code.value for code in evaded],
            "manager_tone": "hostile" if signal is not None and signal.toxic else "neutral",
            "manager_engagement": "low" if signal is not None and signal.low_effort else "normal",
            "misinformation_detected": False,
            "phase_checks_update": phase_checks,
        },
        "update_state": {
            "stage": None,
            "checklist_delta": checklist_delta,
            "notes": f"{_AWAITING_PREFIX}{ask_topic.value}" if ask_topic else "",
            "client_turns": client_turns,
        },
    }
