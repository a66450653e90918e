"""
Deterministic scoring — weighted checklist, explainable and reproducible.

Scoring model:
  - NA items are excluded; with nothing left the score is 0.
  - raw = round(100 * Σ(weight * multiplier) / Σ(weight))
    multiplier: YES 1.0, PARTIAL 0.5, NO 0.0
  - Penalties, in this order, clamping at 0 after each:
      -15 misinformation detected
      -10 no next step proposed
      -10 passive style (strong) / -5 passive style (mild)
  - Early fail: ceiling of 40 on the result so far (never raises a score).
  - Final clamp to [0, 100].

Dimension scores use the same weighted average over a fixed subset of codes
and never receive penalties or the early-fail ceiling.  Dimensions describe
what the manager did; only the overall score reflects how the session ended.

Issue detection maps weak checklist items and auxiliary behaviour signals to
fixed issue types with templated recommendations.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from sales_trainer.core.logging import logger
from sales_trainer.domain.behavior import Severity


class ChecklistStatus(Enum):
    YES = "YES"
    PARTIAL = "PARTIAL"
    NO = "NO"
    NA = "NA"


class ChecklistCode(Enum):
    INTRODUCTION = "INTRODUCTION"
    SALON_NAME = "SALON_NAME"
    CAR_IDENTIFICATION = "CAR_IDENTIFICATION"
    NEEDS_DISCOVERY = "NEEDS_DISCOVERY"
    INITIATIVE = "INITIATIVE"
    PRODUCT_PRESENTATION = "PRODUCT_PRESENTATION"
    CREDIT_EXPLANATION = "CREDIT_EXPLANATION"
    TRADEIN_OFFER = "TRADEIN_OFFER"
    OBJECTION_HANDLING = "OBJECTION_HANDLING"
    NEXT_STEP_PROPOSAL = "NEXT_STEP_PROPOSAL"
    DATE_FIXATION = "DATE_FIXATION"
    FOLLOW_UP_AGREEMENT = "FOLLOW_UP_AGREEMENT"
    COMMUNICATION_TONE = "COMMUNICATION_TONE"


CHECKLIST_WEIGHTS: dict[ChecklistCode, int] = {
    ChecklistCode.INTRODUCTION: 8,
    ChecklistCode.SALON_NAME: 6,
    ChecklistCode.CAR_IDENTIFICATION: 7,
    ChecklistCode.NEEDS_DISCOVERY: 8,
    ChecklistCode.INITIATIVE: 7,
    ChecklistCode.PRODUCT_PRESENTATION: 10,
    ChecklistCode.CREDIT_EXPLANATION: 8,
    ChecklistCode.TRADEIN_OFFER: 8,
    ChecklistCode.OBJECTION_HANDLING: 10,
    ChecklistCode.NEXT_STEP_PROPOSAL: 10,
    ChecklistCode.DATE_FIXATION: 8,
    ChecklistCode.FOLLOW_UP_AGREEMENT: 5,
    ChecklistCode.COMMUNICATION_TONE: 5,
}

STATUS_MULTIPLIER: dict[ChecklistStatus, float] = {
    ChecklistStatus.YES: 1.0,
    ChecklistStatus.PARTIAL: 0.5,
    ChecklistStatus.NO: 0.0,
}

DIMENSION_CODES: dict[str, tuple[ChecklistCode, ...]] = {
    "first_contact": (
        ChecklistCode.INTRODUCTION,
        ChecklistCode.SALON_NAME,
        ChecklistCode.CAR_IDENTIFICATION,
        ChecklistCode.INITIATIVE,
    ),
    "product_and_sales": (
        ChecklistCode.NEEDS_DISCOVERY,
        ChecklistCode.PRODUCT_PRESENTATION,
        ChecklistCode.CREDIT_EXPLANATION,
        ChecklistCode.TRADEIN_OFFER,
        ChecklistCode.OBJECTION_HANDLING,
    ),
    "closing_commitment": (
        ChecklistCode.NEXT_STEP_PROPOSAL,
        ChecklistCode.DATE_FIXATION,
        ChecklistCode.FOLLOW_UP_AGREEMENT,
    ),
    "communication": (ChecklistCode.COMMUNICATION_TONE,),
}

MISINFORMATION_PENALTY = 15
NO_NEXT_STEP_PENALTY = 10
PASSIVE_STRONG_PENALTY = 10
PASSIVE_MILD_PENALTY = 5
EARLY_FAIL_CEILING = 40

# Merge order for statuses reported across turns (NA never overrides).
_STATUS_RANK = {
    ChecklistStatus.NO: 0,
    ChecklistStatus.PARTIAL: 1,
    ChecklistStatus.YES: 2,
}


# ---------------------------------------------------------------------------
# Checklist items
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ChecklistItem:
    code: ChecklistCode
    weight: int
    status: ChecklistStatus = ChecklistStatus.NA
    evidence: tuple[str, ...] = ()
    comment: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code.value,
            "weight": self.weight,
            "status": self.status.value,
            "evidence": list(self.evidence),
            "comment": self.comment,
        }


def parse_status(raw: object) -> ChecklistStatus:
    """Single conversion point from free text; anything unrecognised is NO."""
    if isinstance(raw, ChecklistStatus):
        return raw
    if isinstance(raw, str):
        try:
            return ChecklistStatus(raw.strip().upper())
        except ValueError:
            pass
    logger.warning("Invalid checklist status %r, defaulting to NO", raw)
    return ChecklistStatus.NO


def parse_checklist_code(raw: object) -> ChecklistCode | None:
    if isinstance(raw, ChecklistCode):
        return raw
    if not isinstance(raw, str):
        return None
    try:
        return ChecklistCode(raw.strip().upper())
    except ValueError:
        return None


def _item_from_entry(code: ChecklistCode, entry: object) -> ChecklistItem:
    """Accept either a bare status string or {status, evidence, comment}."""
    weight = CHECKLIST_WEIGHTS[code]
    if isinstance(entry, dict):
        evidence = entry.get("evidence")
        comment = entry.get("comment")
        return ChecklistItem(
            code=code,
            weight=weight,
            status=parse_status(entry.get("status")),
            evidence=tuple(e for e in evidence if isinstance(e, str)) if isinstance(evidence, list) else (),
            comment=comment if isinstance(comment, str) else "",
        )
    return ChecklistItem(code=code, weight=weight, status=parse_status(entry))


def _merge_item(current: ChecklistItem, incoming: ChecklistItem) -> ChecklistItem:
    if incoming.status is ChecklistStatus.NA:
        return current
    if current.status is ChecklistStatus.NA:
        return incoming

    if current.code is ChecklistCode.COMMUNICATION_TONE:
        # Tone is only as good as its worst moment.
        take_incoming = _STATUS_RANK[incoming.status] < _STATUS_RANK[current.status]
    else:
        take_incoming = _STATUS_RANK[incoming.status] > _STATUS_RANK[current.status]

    evidence = current.evidence + tuple(e for e in incoming.evidence if e not in current.evidence)
    if take_incoming:
        return ChecklistItem(
            code=current.code,
            weight=current.weight,
            status=incoming.status,
            evidence=evidence,
            comment=incoming.comment or current.comment,
        )
    return ChecklistItem(
        code=current.code,
        weight=current.weight,
        status=current.status,
        evidence=evidence,
        comment=current.comment,
    )


def create_checklist() -> dict[ChecklistCode, ChecklistItem]:
    return {code: ChecklistItem(code=code, weight=w) for code, w in CHECKLIST_WEIGHTS.items()}


def merge_checklist_delta(
    checklist: dict[ChecklistCode, ChecklistItem],
    delta: object,
) -> dict[ChecklistCode, ChecklistItem]:
    """
    Fold one turn's checklist classification into the session checklist.

    ``delta`` may be a mapping ``{code: status | {status, evidence, comment}}``
    or a list of ``{code, status, evidence, comment}`` dicts.  Unknown codes
    are ignored.
    """
    merged = dict(checklist)
    if isinstance(delta, dict):
        entries = list(delta.items())
    elif isinstance(delta, list):
        entries = [(e.get("code"), e) for e in delta if isinstance(e, dict)]
    else:
        return merged

    for raw_code, entry in entries:
        code = parse_checklist_code(raw_code)
        if code is None:
            logger.warning("Ignoring unknown checklist code %r", raw_code)
            continue
        merged[code] = _merge_item(merged[code], _item_from_entry(code, entry))
    return merged


def force_status(
    checklist: dict[ChecklistCode, ChecklistItem],
    code: ChecklistCode,
    status: ChecklistStatus,
    evidence: str,
) -> dict[ChecklistCode, ChecklistItem]:
    """Override one item regardless of merge order (code-side facts win)."""
    current = checklist[code]
    updated = dict(checklist)
    updated[code] = ChecklistItem(
        code=code,
        weight=current.weight,
        status=status,
        evidence=current.evidence + ((evidence,) if evidence not in current.evidence else ()),
        comment=current.comment,
    )
    return updated


def checklist_to_dict(checklist: dict[ChecklistCode, ChecklistItem]) -> dict[str, dict[str, Any]]:
    return {code.value: item.to_dict() for code, item in checklist.items()}


def checklist_from_dict(raw: object) -> dict[ChecklistCode, ChecklistItem]:
    checklist = create_checklist()
    if not isinstance(raw, dict):
        return checklist
    for key, entry in raw.items():
        code = parse_checklist_code(key)
        if code is not None:
            checklist[code] = _item_from_entry(code, entry)
    return checklist


# ---------------------------------------------------------------------------
# Score
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ScoringOptions:
    early_fail: bool = False
    misinformation_detected: bool = False
    no_next_step: bool = False
    passive_style: bool = False
    passive_severity: str = "mild"  # "mild" | "strong"


@dataclass(frozen=True)
class DimensionScores:
    first_contact: int = 0
    product_and_sales: int = 0
    closing_commitment: int = 0
    communication: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "first_contact": self.first_contact,
            "product_and_sales": self.product_and_sales,
            "closing_commitment": self.closing_commitment,
            "communication": self.communication,
        }


@dataclass(frozen=True)
class ScoreResult:
    score: int
    dimensions: DimensionScores
    deductions: list[str] = field(default_factory=list)


def weighted_score(items: list[ChecklistItem]) -> int:
    """Weighted YES/PARTIAL/NO average as 0..100; 0 when every item is NA."""
    active = [i for i in items if i.status is not ChecklistStatus.NA]
    total = sum(i.weight for i in active)
    if total == 0:
        return 0
    earned = sum(i.weight * STATUS_MULTIPLIER[i.status] for i in active)
    # Half-up rounding, not banker's rounding
    return math.floor(100 * earned / total + 0.5)


def dimension_scores(items: list[ChecklistItem]) -> DimensionScores:
    values = {
        name: weighted_score([i for i in items if i.code in codes])
        for name, codes in DIMENSION_CODES.items()
    }
    return DimensionScores(**values)


def compute_score(items: list[ChecklistItem], options: ScoringOptions) -> ScoreResult:
    """Overall score with penalties and ceiling, plus penalty-free dimensions."""
    deductions: list[str] = []
    score = weighted_score(items)

    if options.misinformation_detected:
        score = max(0, score - MISINFORMATION_PENALTY)
        deductions.append(f"-{MISINFORMATION_PENALTY} misinformation")
    if options.no_next_step:
        score = max(0, score - NO_NEXT_STEP_PENALTY)
        deductions.append(f"-{NO_NEXT_STEP_PENALTY} no next step")
    if options.passive_style:
        penalty = PASSIVE_STRONG_PENALTY if options.passive_severity == "strong" else PASSIVE_MILD_PENALTY
        score = max(0, score - penalty)
        deductions.append(f"-{penalty} passive style ({options.passive_severity})")

    if options.early_fail and score > EARLY_FAIL_CEILING:
        score = EARLY_FAIL_CEILING
        deductions.append(f"capped at {EARLY_FAIL_CEILING} (early fail)")

    return ScoreResult(
        score=max(0, min(100, score)),
        dimensions=dimension_scores(items),
        deductions=deductions,
    )


# ---------------------------------------------------------------------------
# Issues
# ---------------------------------------------------------------------------

class IssueType(Enum):
    NO_INTRO = "NO_INTRO"
    NO_SALON_NAME = "NO_SALON_NAME"
    NO_NEEDS_DISCOVERY = "NO_NEEDS_DISCOVERY"
    WEAK_PRESENTATION = "WEAK_PRESENTATION"
    NO_NEXT_STEP = "NO_NEXT_STEP"
    NO_DATE_FIX = "NO_DATE_FIX"
    WEAK_TRADEIN = "WEAK_TRADEIN"
    WEAK_CREDIT = "WEAK_CREDIT"
    BAD_TONE = "BAD_TONE"
    PASSIVE_STYLE = "PASSIVE_STYLE"
    MISINFORMATION = "MISINFORMATION"
    REDIRECT_TO_WEBSITE = "REDIRECT_TO_WEBSITE"
    LOW_ENGAGEMENT = "LOW_ENGAGEMENT"
    PROFANITY = "PROFANITY"


@dataclass(frozen=True)
class EvaluationIssue:
    issue_type: IssueType
    severity: Severity
    evidence: str
    recommendation: str

    def to_dict(self) -> dict[str, str]:
        return {
            "issue_type": self.issue_type.value,
            "severity": self.severity.value,
            "evidence": self.evidence,
            "recommendation": self.recommendation,
        }


@dataclass(frozen=True)
class AuxSignals:
    profanity: bool = False
    misinformation: bool = False
    passive_style: bool = False
    low_engagement: bool = False
    redirect_to_website: bool = False
    bad_tone: bool = False


@dataclass(frozen=True)
class _ChecklistRule:
    code: ChecklistCode
    issue_type: IssueType
    # status -> severity; statuses not listed do not raise the issue
    severities: dict[ChecklistStatus, Severity]
    default_evidence: str
    recommendation: str


_CHECKLIST_RULES: list[_ChecklistRule] = [
    _ChecklistRule(
        ChecklistCode.INTRODUCTION, IssueType.NO_INTRO,
        {ChecklistStatus.NO: Severity.MEDIUM},
        "The manager did not introduce themselves.",
        "Always open with a greeting and introduce yourself by name.",
    ),
    _ChecklistRule(
        ChecklistCode.SALON_NAME, IssueType.NO_SALON_NAME,
        {ChecklistStatus.NO: Severity.MEDIUM},
        "The dealership name was never mentioned.",
        "Name the dealership early in the call; it builds the customer's trust.",
    ),
    _ChecklistRule(
        ChecklistCode.NEEDS_DISCOVERY, IssueType.NO_NEEDS_DISCOVERY,
        {ChecklistStatus.NO: Severity.HIGH},
        "No questions were asked about the customer's needs.",
        "Ask at least 2-3 questions about the customer's motivation before presenting.",
    ),
    _ChecklistRule(
        ChecklistCode.PRODUCT_PRESENTATION, IssueType.WEAK_PRESENTATION,
        {ChecklistStatus.NO: Severity.HIGH, ChecklistStatus.PARTIAL: Severity.MEDIUM},
        "The car presentation was weak or missing.",
        "Build the presentation around the customer's needs and the car's key benefits.",
    ),
    _ChecklistRule(
        ChecklistCode.NEXT_STEP_PROPOSAL, IssueType.NO_NEXT_STEP,
        {ChecklistStatus.NO: Severity.HIGH},
        "No next step was proposed.",
        "Always propose a concrete next step: a visit, a test drive or a follow-up call.",
    ),
    _ChecklistRule(
        ChecklistCode.DATE_FIXATION, IssueType.NO_DATE_FIX,
        {ChecklistStatus.NO: Severity.HIGH},
        "No specific date and time were agreed.",
        "Fix the exact date and time of the next meeting or contact.",
    ),
    _ChecklistRule(
        ChecklistCode.TRADEIN_OFFER, IssueType.WEAK_TRADEIN,
        {ChecklistStatus.PARTIAL: Severity.LOW},
        "Trade-in was mentioned but not explained.",
        "Offer a trade-in valuation proactively and explain how it works.",
    ),
    _ChecklistRule(
        ChecklistCode.CREDIT_EXPLANATION, IssueType.WEAK_CREDIT,
        {ChecklistStatus.PARTIAL: Severity.LOW},
        "Credit terms were covered only superficially.",
        "Explain credit in detail: partner banks, monthly payment, down payment.",
    ),
]

_AUX_RULES: list[tuple[str, IssueType, Severity, str, str]] = [
    (
        "bad_tone", IssueType.BAD_TONE, Severity.HIGH,
        "Negative or unprofessional tone was detected.",
        "Keep a friendly, professional tone throughout the conversation.",
    ),
    (
        "passive_style", IssueType.PASSIVE_STYLE, Severity.MEDIUM,
        "The manager waited for questions instead of leading the conversation.",
        "Take the initiative: offer options, ask questions, lead the dialog.",
    ),
    (
        "misinformation", IssueType.MISINFORMATION, Severity.HIGH,
        "The manager gave incorrect information about the car.",
        "Always check the facts before stating them to the customer.",
    ),
    (
        "redirect_to_website", IssueType.REDIRECT_TO_WEBSITE, Severity.MEDIUM,
        "The manager sent the customer to the website instead of answering.",
        "Answer questions directly; the website is only an extra reference.",
    ),
    (
        "low_engagement", IssueType.LOW_ENGAGEMENT, Severity.MEDIUM,
        "The manager showed little engagement or interest in the customer.",
        "Show genuine interest: ask follow-up questions and address the customer's needs.",
    ),
    (
        "profanity", IssueType.PROFANITY, Severity.HIGH,
        "Profanity was detected.",
        "Profanity is never acceptable in professional communication.",
    ),
]


def detect_issues(items: list[ChecklistItem], aux: AuxSignals) -> list[EvaluationIssue]:
    """Checklist issues (at most one per code) followed by auxiliary-signal issues."""
    by_code = {i.code: i for i in items}
    issues: list[EvaluationIssue] = []

    for rule in _CHECKLIST_RULES:
        item = by_code.get(rule.code)
        if item is None or item.status not in rule.severities:
            continue
        issues.append(EvaluationIssue(
            issue_type=rule.issue_type,
            severity=rule.severities[item.status],
            evidence=item.evidence[0] if item.evidence else rule.default_evidence,
            recommendation=rule.recommendation,
        ))

    for flag, issue_type, severity, evidence, recommendation in _AUX_RULES:
        if getattr(aux, flag):
            issues.append(EvaluationIssue(issue_type, severity, evidence, recommendation))

    return issues
