"""
Behavior classifier — deterministic analysis of one manager utterance.

No LLM is involved: every flag comes from token lists and a couple of small
regexes, so the same input always yields the same BehaviorSignal (including
the rationale string, which lists the rules that fired in a fixed order).

Stages (each independent, several may fire together):
  1. normalize        lower-case, ё→е, typographic apostrophes, collapse spaces
  2. toxicity         profanity stems + word-bounded hostile phrases
  3. disengagement    "stop contact" phrases + negation/communication grammar
  4. prohibited       dismissive / deflecting stock phrases
  5. low effort       very short, nonsense/filler tokens, acknowledgement-only
  6. evasion          only while the customer is waiting for an answer
  7. low quality      disengaging, dismissive, or low-effort evasion
  8. severity         HIGH > MEDIUM > LOW

Pattern lists are bilingual (Russian first, English after) because trainees
work in either language.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class Severity(Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


@dataclass(frozen=True)
class ClassifierContext:
    last_question: str | None = None
    is_waiting_for_answer: bool = False


@dataclass(frozen=True)
class BehaviorSignal:
    """
    Immutable per-utterance log entry.

    ``profanity`` narrows ``toxic`` down to profanity-stem hits; the escalation
    ladder uses it to pick PROFANITY over BAD_TONE.
    """
    toxic: bool = False
    profanity: bool = False
    low_effort: bool = False
    disengaging: bool = False
    low_quality: bool = False
    evasion: bool = False
    prohibited_phrase_hits: tuple[str, ...] = field(default_factory=tuple)
    severity: Severity = Severity.LOW
    rationale: str = "no issues detected"

    def to_dict(self) -> dict[str, Any]:
        return {
            "toxic": self.toxic,
            "profanity": self.profanity,
            "low_effort": self.low_effort,
            "disengaging": self.disengaging,
            "low_quality": self.low_quality,
            "evasion": self.evasion,
            "prohibited_phrase_hits": list(self.prohibited_phrase_hits),
            "severity": self.severity.value,
            "rationale": self.rationale,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BehaviorSignal":
        try:
            severity = Severity(data.get("severity", "LOW"))
        except ValueError:
            severity = Severity.LOW
        hits = data.get("prohibited_phrase_hits") or []
        return cls(
            toxic=bool(data.get("toxic", False)),
            profanity=bool(data.get("profanity", False)),
            low_effort=bool(data.get("low_effort", False)),
            disengaging=bool(data.get("disengaging", False)),
            low_quality=bool(data.get("low_quality", False)),
            evasion=bool(data.get("evasion", False)),
            prohibited_phrase_hits=tuple(str(h) for h in hits if isinstance(h, str)),
            severity=severity,
            rationale=str(data.get("rationale", "")),
        )


# ---------------------------------------------------------------------------
# Token lists
# ---------------------------------------------------------------------------

# Matched at the start of a word so that e.g. "рубля" or "требую" stay clean.
_PROFANITY_STEMS = [
    "хуй", "хуе", "хуя", "хуи", "хуё", "нахуй", "похуй",
    "пизд", "пизж", "распизд",
    "бля", "блят", "блядь", "блядс",
    "ебат", "ебан", "ебал", "ебну", "ёбан", "ебу", "заеб", "уеб", "выеб", "наеб",
    "сука", "суки", "сучк",
    "нахер", "нахрен",
    "залуп", "мудак", "мудил",
    "пидор", "пидар",
    "гандон", "гондон",
    "дерьм",
    "жоп",
    "fuck", "motherfuck", "shit", "bullshit", "bitch", "asshole", "dickhead", "bastard",
]

_HOSTILE_PHRASES = [
    "отвали", "отстань",
    "пошёл на", "пошел на", "да пошёл ты", "да пошел ты",
    "иди на", "иди ты",
    "закрой рот", "заткнись",
    "задолбал", "задолбала", "достал", "достала",
    "чё ты хочешь", "че ты хочешь",
    "мне пофиг", "мне плевать", "да мне насрать",
    "shut up", "get lost", "screw you", "go to hell", "piss off",
    "what do you want from me", "i don't give a damn",
]

_DISMISSIVE_PHRASES = [
    "не моя проблема",
    "сами разбирайтесь",
    "звоните куда-нибудь",
    "гуглите",
    "в интернете посмотрите",
    "мне всё равно",
    "это не ко мне",
    "ничем не могу помочь",
    "не знаю и знать не хочу",
    "not my problem",
    "figure it out yourself",
    "google it",
    "can't help you with that",
    "not my department",
]

_PROHIBITED_PHRASES = [
    "позвоните позже",
    "перезвоните",
    "напишите на сайте",
    "оставьте заявку на сайте",
    "посмотрите на сайте",
    "всё написано в объявлении",
    "читайте объявление",
    "я не знаю",
    "без понятия",
    "не в курсе",
    "не могу сказать",
    "call back later",
    "call me later",
    "check the website",
    "look at the website",
    "it's all in the listing",
    "read the listing",
    "i don't know",
    "no idea",
]

_DONT_KNOW_PHRASES = [
    "не знаю", "без понятия", "не в курсе", "не могу сказать",
    "i don't know", "no idea", "dunno",
]

_NONSENSE_TOKENS = [
    "хз", "незнаю", "не знаю", "норм", "лол", "ща",
    "тачка топ", "кек", "лмао", "ахах",
    "idk", "lol", "lmao", "whatever", "meh", "dunno",
]

_FILLER_TOKENS = frozenset({
    "ок", "окей", "ладно", "ясно", "угу", "ага", "да", "нет", "ну", "понятно",
    "ok", "okay", "yes", "no", "yeah", "yep", "sure", "fine", "hm", "hmm", "uh", "well",
})

_DISENGAGING_PHRASES = [
    "не звоните",
    "больше не звоните",
    "не надо мне звонить",
    "не хочу разговаривать",
    "не хочу говорить",
    "не хочу общаться",
    "мне не интересно",
    "мне это не интересно",
    "мне не нужно",
    "не надо",
    "отстаньте",
    "давайте закончим",
    "закончим разговор",
    "всего доброго",
    "до свидания",
    "не хочу больше",
    "don't call",
    "do not call",
    "stop calling",
    "i don't want to talk",
    "not interested",
    "leave me alone",
    "goodbye",
    "bye",
]

_STOP_TALKING_RE = re.compile(
    r"(не\s*(хочу|буду)\b.*(разговар|говор|общат))"
    r"|((stop|dont|don't|do\s+not)\s+(call|talk|messag))"
    r"|(i\s+(don't|do\s+not)\s+want\s+to\s+(talk|speak|continue))"
)

# "пока" is also "while", so it only counts as a farewell at the end of the message
_FAREWELL_TAIL_RE = re.compile(r"(?<!\w)пока\W*$")

_WEBSITE_MARKERS = ("сайт", "объявлени", "website", "listing")

_SHORT_CHAR_LIMIT = 15
_SHORT_TOKEN_LIMIT = 2
_FILLER_TOKEN_LIMIT = 3

_TOKEN_STRIP = ".,!?;:…-—\"'«»()[]"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def normalize(text: str) -> str:
    """Lower-case, fold ё→е and typographic apostrophes, collapse whitespace."""
    folded = text.lower().replace("ё", "е").replace("’", "'").replace("`", "'")
    return re.sub(r"\s+", " ", folded).strip()


def _phrase_pattern(phrase: str) -> re.Pattern[str]:
    return re.compile(r"(?<!\w)" + re.escape(normalize(phrase)) + r"(?!\w)")


def _stem_pattern(stem: str) -> re.Pattern[str]:
    return re.compile(r"(?<!\w)" + re.escape(normalize(stem)))


def _compile(phrases: list[str], builder) -> list[tuple[str, re.Pattern[str]]]:
    compiled: list[tuple[str, re.Pattern[str]]] = []
    seen: set[str] = set()
    for phrase in phrases:
        key = normalize(phrase)
        if key in seen:
            continue
        seen.add(key)
        compiled.append((key, builder(phrase)))
    return compiled


_PROFANITY = _compile(_PROFANITY_STEMS, _stem_pattern)
_HOSTILE = _compile(_HOSTILE_PHRASES, _phrase_pattern)
_DISMISSIVE = _compile(_DISMISSIVE_PHRASES, _phrase_pattern)
_PROHIBITED = _compile(_PROHIBITED_PHRASES, _phrase_pattern)
_DONT_KNOW = _compile(_DONT_KNOW_PHRASES, _phrase_pattern)
_NONSENSE = _compile(_NONSENSE_TOKENS, _phrase_pattern)
_DISENGAGING = _compile(_DISENGAGING_PHRASES, _phrase_pattern)


def _hits(text: str, patterns: list[tuple[str, re.Pattern[str]]]) -> list[str]:
    return [phrase for phrase, pattern in patterns if pattern.search(text)]


def _tokens(text: str) -> list[str]:
    return [t for t in (raw.strip(_TOKEN_STRIP) for raw in text.split(" ")) if t]


def is_disengaging(text: str) -> bool:
    """Explicit shutdown phrase or negated communication verb (normalized text)."""
    return (
        bool(_hits(text, _DISENGAGING))
        or bool(_STOP_TALKING_RE.search(text))
        or bool(_FAREWELL_TAIL_RE.search(text))
    )


def points_to_website(phrase: str) -> bool:
    """True for prohibited hits that send the customer to the site or listing."""
    return any(marker in phrase for marker in _WEBSITE_MARKERS)


def build_context(last_customer_message: str | None, manager_turns: int) -> ClassifierContext:
    """
    The customer is waiting for an answer when this is not the manager's first
    turn and the last customer line actually asked something.
    """
    if not last_customer_message or "?" not in last_customer_message:
        return ClassifierContext(last_question=None, is_waiting_for_answer=False)
    return ClassifierContext(
        last_question=last_customer_message,
        is_waiting_for_answer=manager_turns > 0,
    )


# ---------------------------------------------------------------------------
# Main classifier
# ---------------------------------------------------------------------------

def classify(text: str, context: ClassifierContext | None = None) -> BehaviorSignal:
    """Classify one manager utterance.  Pure and order-stable."""
    ctx = context or ClassifierContext()
    norm = normalize(text)
    tokens = _tokens(norm)
    reasons: list[str] = []

    # --- Toxicity ---
    profanity_hits = _hits(norm, _PROFANITY)
    hostile_hits = _hits(norm, _HOSTILE)
    toxic = bool(profanity_hits or hostile_hits)
    if profanity_hits:
        reasons.append("profanity detected")
    if hostile_hits:
        reasons.append("hostile language")

    # --- Disengagement ---
    disengaging = is_disengaging(norm)
    if disengaging:
        reasons.append("conversation shutdown / refusal intent")

    # --- Prohibited phrases ---
    dismissive_hits = _hits(norm, _DISMISSIVE)
    prohibited_hits = _hits(norm, _PROHIBITED) + dismissive_hits
    if prohibited_hits:
        reasons.append(f"prohibited phrases: {', '.join(prohibited_hits)}")

    # --- Low effort ---
    very_short = len(norm) <= _SHORT_CHAR_LIMIT or len(tokens) <= _SHORT_TOKEN_LIMIT
    nonsense = bool(_hits(norm, _NONSENSE))
    only_filler = 0 < len(tokens) <= _FILLER_TOKEN_LIMIT and all(
        t in _FILLER_TOKENS for t in tokens
    )
    low_effort = very_short or nonsense or only_filler
    if very_short:
        reasons.append(f"very short ({len(norm)} chars, {len(tokens)} words)")
    if nonsense:
        reasons.append("nonsense/slang token")
    if only_filler:
        reasons.append("only filler words")

    # --- Evasion (only when a real question is pending) ---
    evasion = False
    if ctx.is_waiting_for_answer:
        evasion = low_effort or disengaging or bool(dismissive_hits) or bool(_hits(norm, _DONT_KNOW))
        if evasion:
            reasons.append("evaded client question")

    low_quality = disengaging or bool(dismissive_hits) or (low_effort and evasion)
    if low_quality and not disengaging:
        reasons.append("low-quality / disengaged answer")

    # --- Severity ---
    if toxic or disengaging:
        severity = Severity.HIGH
    elif dismissive_hits or (low_effort and evasion):
        severity = Severity.MEDIUM
    else:
        severity = Severity.LOW

    return BehaviorSignal(
        toxic=toxic,
        profanity=bool(profanity_hits),
        low_effort=low_effort,
        disengaging=disengaging,
        low_quality=low_quality,
        evasion=evasion,
        prohibited_phrase_hits=tuple(prohibited_hits),
        severity=severity,
        rationale="; ".join(reasons) if reasons else "no issues detected",
    )
