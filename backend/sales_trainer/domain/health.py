"""
Dialog health — the simulated customer's emotional state.

DialogHealth holds four gauges bounded to [0, 100]; LoopGuard counts how many
turns in a row the customer's questions went unanswered and how many turns in
a row were low-effort.  Both are updated once per manager turn as a pure
function of the previous value and the turn's BehaviorSignal.

Update table (first matching row wins):
  toxic        irritation +40, patience -40, trust -40, unanswered +1
  low_effort   irritation +15, patience -12, trust  -8, unanswered +1
  evasion      irritation +10, patience  -8,            unanswered +1
  otherwise                                             unanswered reset
The low-effort streak increments on any low-effort turn and resets otherwise.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any

from sales_trainer.domain.behavior import BehaviorSignal

GAUGE_MIN = 0
GAUGE_MAX = 100


def _clamp(value: int) -> int:
    return max(GAUGE_MIN, min(GAUGE_MAX, value))


@dataclass(frozen=True)
class DialogHealth:
    patience: int = 70
    trust: int = 60
    confusion: int = 0
    irritation: int = 0

    def shifted(
        self,
        *,
        patience: int = 0,
        trust: int = 0,
        confusion: int = 0,
        irritation: int = 0,
    ) -> "DialogHealth":
        """Return a copy with each gauge moved by the given delta and clamped."""
        return DialogHealth(
            patience=_clamp(self.patience + patience),
            trust=_clamp(self.trust + trust),
            confusion=_clamp(self.confusion + confusion),
            irritation=_clamp(self.irritation + irritation),
        )

    def to_dict(self) -> dict[str, int]:
        return {
            "patience": self.patience,
            "trust": self.trust,
            "confusion": self.confusion,
            "irritation": self.irritation,
        }

    @classmethod
    def from_dict(cls, data: Any, base: "DialogHealth | None" = None) -> "DialogHealth":
        base = base or cls()
        if not isinstance(data, dict):
            return base
        values = base.to_dict()
        for key in values:
            raw = data.get(key)
            if isinstance(raw, (int, float)) and not isinstance(raw, bool):
                values[key] = _clamp(int(raw))
        return cls(**values)


@dataclass(frozen=True)
class LoopGuard:
    unanswered_question_streak: int = 0
    low_effort_streak: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "unanswered_question_streak": self.unanswered_question_streak,
            "low_effort_streak": self.low_effort_streak,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "LoopGuard":
        if not isinstance(data, dict):
            return cls()
        values = {}
        for key in ("unanswered_question_streak", "low_effort_streak"):
            raw = data.get(key, 0)
            values[key] = raw if isinstance(raw, int) and raw >= 0 else 0
        return cls(**values)


# (irritation, patience, trust) deltas per behaviour class
TOXIC_DELTA = (40, -40, -40)
LOW_EFFORT_DELTA = (15, -12, -8)
EVASION_DELTA = (10, -8, 0)


def apply_behavior(
    health: DialogHealth,
    guard: LoopGuard,
    signal: BehaviorSignal,
) -> tuple[DialogHealth, LoopGuard]:
    """Fold one BehaviorSignal into the customer's state."""
    if signal.toxic:
        delta: tuple[int, int, int] | None = TOXIC_DELTA
    elif signal.low_effort:
        delta = LOW_EFFORT_DELTA
    elif signal.evasion:
        delta = EVASION_DELTA
    else:
        delta = None

    if delta is not None:
        irritation, patience, trust = delta
        health = health.shifted(irritation=irritation, patience=patience, trust=trust)
        unanswered = guard.unanswered_question_streak + 1
    else:
        unanswered = 0

    low_effort_streak = guard.low_effort_streak + 1 if signal.low_effort else 0
    return health, replace(
        guard,
        unanswered_question_streak=unanswered,
        low_effort_streak=low_effort_streak,
    )
