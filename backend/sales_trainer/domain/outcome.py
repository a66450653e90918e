"""
Outcome builder — assembles the final training result.

Takes the terminal SessionState and produces a SessionOutcome: the overall
score with penalties, the penalty-free dimension scores, the checklist,
detected issues, de-duplicated recommendations and a short summary.  The
Pydantic schema layer (schemas/outcome.py) validates ``to_dict()`` at the
HTTP boundary.

Auxiliary signals are derived here from the per-message behaviour log, so
the score is reproducible from the stored transcript alone.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from sales_trainer.domain.behavior import BehaviorSignal, Severity, points_to_website
from sales_trainer.domain.scoring import (
    AuxSignals,
    ChecklistCode,
    ChecklistStatus,
    DimensionScores,
    EvaluationIssue,
    ScoringOptions,
    compute_score,
    detect_issues,
)
from sales_trainer.domain.state import SessionState, SessionStatus

LOW_ENGAGEMENT_RATIO = 0.4
PASSIVE_STRONG_RATIO = 0.6

_BAD_TONES = frozenset({"rude", "hostile", "negative", "aggressive"})
_PASSIVE_ENGAGEMENT = frozenset({"low", "passive"})


@dataclass(frozen=True)
class BehaviorStats:
    manager_turns: int = 0
    toxic: int = 0
    low_effort: int = 0
    evasion: int = 0
    high_severity: int = 0

    @classmethod
    def from_log(cls, log: list[BehaviorSignal]) -> "BehaviorStats":
        return cls(
            manager_turns=len(log),
            toxic=sum(1 for s in log if s.toxic),
            low_effort=sum(1 for s in log if s.low_effort),
            evasion=sum(1 for s in log if s.evasion),
            high_severity=sum(1 for s in log if s.severity is Severity.HIGH),
        )

    @property
    def low_effort_ratio(self) -> float:
        return self.low_effort / self.manager_turns if self.manager_turns else 0.0

    def to_dict(self) -> dict[str, int]:
        return {
            "manager_turns": self.manager_turns,
            "toxic": self.toxic,
            "low_effort": self.low_effort,
            "evasion": self.evasion,
            "high_severity": self.high_severity,
        }


@dataclass(frozen=True)
class SessionOutcome:
    session_id: str
    status: SessionStatus
    score: int
    dimension_scores: DimensionScores
    checklist: list[dict[str, Any]]
    issues: list[EvaluationIssue]
    recommendations: list[str]
    failure_reason: str | None = None
    summary: str = ""
    behavior_stats: BehaviorStats = field(default_factory=BehaviorStats)
    deductions: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "status": self.status.value,
            "score": self.score,
            "dimension_scores": self.dimension_scores.to_dict(),
            "checklist": self.checklist,
            "issues": [i.to_dict() for i in self.issues],
            "recommendations": list(self.recommendations),
            "failure_reason": self.failure_reason,
            "summary": self.summary,
            "behavior_stats": self.behavior_stats.to_dict(),
            "deductions": list(self.deductions),
        }


# ---------------------------------------------------------------------------
# Signal derivation
# ---------------------------------------------------------------------------

def derive_aux_signals(state: SessionState, stats: BehaviorStats) -> tuple[AuxSignals, str | None]:
    """
    Auxiliary issue flags plus the passive-style severity (None if not passive).

    Strong passivity comes from the behaviour log; mild passivity from the
    generator's engagement read.
    """
    log = state.behavior_log()
    profanity = state.communication.profanity_detected or any(s.profanity for s in log)
    hostile_without_profanity = any(s.toxic and not s.profanity for s in log)
    redirect = any(points_to_website(hit) for s in log for hit in s.prohibited_phrase_hits)

    ratio = stats.low_effort_ratio
    if ratio > PASSIVE_STRONG_RATIO:
        passive: str | None = "strong"
    elif state.communication.manager_engagement in _PASSIVE_ENGAGEMENT:
        passive = "mild"
    else:
        passive = None

    aux = AuxSignals(
        profanity=profanity,
        misinformation=state.misinformation_detected,
        passive_style=passive is not None,
        low_engagement=ratio > LOW_ENGAGEMENT_RATIO,
        redirect_to_website=redirect,
        bad_tone=hostile_without_profanity or state.communication.manager_tone in _BAD_TONES,
    )
    return aux, passive


def _recommendations(issues: list[EvaluationIssue]) -> list[str]:
    seen: list[str] = []
    for issue in issues:
        if issue.recommendation not in seen:
            seen.append(issue.recommendation)
    return seen


def _build_summary(state: SessionState, score: int) -> str:
    parts = [
        f"Training session ({state.profile.value} customer) "
        f"ended as '{state.status.value}' after {state.manager_turns} manager turns "
        f"and {state.client_turns} customer turns."
    ]
    if state.failure_reason:
        parts.append(f"Failure reason: {state.failure_reason}.")
    if state.misinformation_detected:
        parts.append("The manager contradicted the listing at least once.")
    parts.append(f"Final score: {score}/100.")
    return " ".join(parts)


# ---------------------------------------------------------------------------
# Builder
# ---------------------------------------------------------------------------

def build_outcome(state: SessionState) -> SessionOutcome:
    """Score a terminal session.  Pure: the state is not modified."""
    items = list(state.checklist.values())
    stats = BehaviorStats.from_log(state.behavior_log())
    aux, passive = derive_aux_signals(state, stats)

    options = ScoringOptions(
        early_fail=state.status is SessionStatus.FAIL,
        misinformation_detected=state.misinformation_detected,
        no_next_step=state.checklist[ChecklistCode.NEXT_STEP_PROPOSAL].status is ChecklistStatus.NO,
        passive_style=passive is not None,
        passive_severity=passive or "mild",
    )
    result = compute_score(items, options)
    issues = detect_issues(items, aux)

    return SessionOutcome(
        session_id=state.session_id,
        status=state.status,
        score=result.score,
        dimension_scores=result.dimensions,
        checklist=[item.to_dict() for item in items],
        issues=issues,
        recommendations=_recommendations(issues),
        failure_reason=state.failure_reason,
        summary=_build_summary(state, result.score),
        behavior_stats=stats,
        deductions=result.deductions,
    )
