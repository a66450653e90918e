"""
Session state for the sales-call training simulation.

This module defines the per-session data that flows through every turn:
- SessionStatus: continue / fail / completed (fail and completed are terminal)
- DialogStage: the customer's coarse conversational stage, as reported upstream
- DialogMessage: one stored utterance, with the manager's behaviour log attached
- CommunicationState: tone/engagement as last reported by the generator
- SessionState: mutable accumulator for everything that happened in a session

Design tradeoff: dataclasses (not Pydantic) keep the domain layer free of
framework code.  The store only ever sees ``to_dict()`` / ``from_dict()``
snapshots, so the persisted form is plain JSON.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from sales_trainer.domain.behavior import BehaviorSignal
from sales_trainer.domain.health import DialogHealth, LoopGuard
from sales_trainer.domain.phases import (
    ConversationPhase,
    PhaseChecks,
    create_phase_checks,
    merge_phase_checks,
    parse_phase,
)
from sales_trainer.domain.profiles import ClientProfile, get_profile_config, parse_profile
from sales_trainer.domain.scoring import (
    ChecklistCode,
    ChecklistItem,
    checklist_from_dict,
    checklist_to_dict,
    create_checklist,
)
from sales_trainer.domain.topics import (
    TopicMap,
    create_topic_map,
    topics_from_dict,
    topics_to_dict,
)


class SessionStatus(Enum):
    CONTINUE = "continue"
    FAIL = "fail"
    COMPLETED = "completed"

    @property
    def is_terminal(self) -> bool:
        return self is not SessionStatus.CONTINUE


class DialogStage(Enum):
    OPENING = "opening"
    CAR_INTEREST = "car_interest"
    VALUE_QUESTIONS = "value_questions"
    OBJECTIONS = "objections"
    VISIT_SCHEDULING = "visit_scheduling"
    LOGISTICS = "logistics"
    WRAP_UP = "wrap_up"


def parse_stage(raw: object) -> DialogStage | None:
    if isinstance(raw, DialogStage):
        return raw
    if not isinstance(raw, str):
        return None
    try:
        return DialogStage(raw.strip().lower())
    except ValueError:
        return None


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DialogMessage:
    """One utterance.  Manager messages carry their immutable behaviour log."""
    role: str  # "customer" | "manager"
    content: str
    behavior: BehaviorSignal | None = None
    fact_check: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "role": self.role,
            "content": self.content,
            "behavior": self.behavior.to_dict() if self.behavior else None,
            "fact_check": self.fact_check,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DialogMessage":
        behavior = data.get("behavior")
        return cls(
            role=str(data.get("role", "customer")),
            content=str(data.get("content", "")),
            behavior=BehaviorSignal.from_dict(behavior) if isinstance(behavior, dict) else None,
            fact_check=data.get("fact_check") if isinstance(data.get("fact_check"), dict) else None,
        )


@dataclass
class CommunicationState:
    manager_tone: str = "neutral"
    manager_engagement: str = "normal"
    profanity_detected: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "manager_tone": self.manager_tone,
            "manager_engagement": self.manager_engagement,
            "profanity_detected": self.profanity_detected,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "CommunicationState":
        if not isinstance(data, dict):
            return cls()
        return cls(
            manager_tone=str(data.get("manager_tone", "neutral")),
            manager_engagement=str(data.get("manager_engagement", "normal")),
            profanity_detected=bool(data.get("profanity_detected", False)),
        )


# ---------------------------------------------------------------------------
# Session state
# ---------------------------------------------------------------------------

@dataclass
class SessionState:
    """
    Everything known about one training session.

    Flows through: classify -> apply_behavior -> ladder -> fold_reply ->
    build_outcome.  ``messages`` is the full transcript; manager entries
    keep the BehaviorSignal computed for them.
    """
    session_id: str = ""
    profile: ClientProfile = ClientProfile.NORMAL
    status: SessionStatus = SessionStatus.CONTINUE
    failure_reason: str | None = None
    stage: DialogStage = DialogStage.OPENING
    phase: ConversationPhase = ConversationPhase.FIRST_CONTACT
    turn_limit: int = 10
    client_turns: int = 0
    notes: str = ""
    dialog_health: DialogHealth = field(default_factory=DialogHealth)
    loop_guard: LoopGuard = field(default_factory=LoopGuard)
    topics: TopicMap = field(default_factory=create_topic_map)
    checklist: dict[ChecklistCode, ChecklistItem] = field(default_factory=create_checklist)
    phase_checks: PhaseChecks = field(default_factory=create_phase_checks)
    communication: CommunicationState = field(default_factory=CommunicationState)
    misinformation_detected: bool = False
    messages: list[DialogMessage] = field(default_factory=list)

    @classmethod
    def new(cls, session_id: str, profile: ClientProfile | str | None = None) -> "SessionState":
        """Fresh session seeded from the client profile."""
        resolved = parse_profile(profile)
        config = get_profile_config(resolved)
        return cls(
            session_id=session_id,
            profile=resolved,
            turn_limit=config.max_turns,
            dialog_health=DialogHealth(
                patience=config.patience_base,
                trust=config.trust_base,
            ),
        )

    # --- transcript helpers ---

    def add_customer_message(self, content: str) -> None:
        self.messages.append(DialogMessage(role="customer", content=content))

    def add_manager_message(
        self,
        content: str,
        behavior: BehaviorSignal,
        fact_check: dict[str, Any] | None = None,
    ) -> None:
        self.messages.append(DialogMessage(
            role="manager", content=content, behavior=behavior, fact_check=fact_check,
        ))

    @property
    def manager_turns(self) -> int:
        return sum(1 for m in self.messages if m.role == "manager")

    @property
    def last_customer_message(self) -> str | None:
        for message in reversed(self.messages):
            if message.role == "customer":
                return message.content
        return None

    def behavior_log(self) -> list[BehaviorSignal]:
        return [m.behavior for m in self.messages if m.role == "manager" and m.behavior]

    def recent_history(self, limit: int) -> list[dict[str, str]]:
        return [{"role": m.role, "content": m.content} for m in self.messages[-limit:]]

    # --- snapshots ---

    def snapshot_for_generator(self) -> dict[str, Any]:
        """Compact view of the state for the dialogue generator prompt."""
        return {
            "stage": self.stage.value,
            "phase": self.phase.value,
            "client_turns": self.client_turns,
            "turn_limit": self.turn_limit,
            "notes": self.notes,
            "dialog_health": self.dialog_health.to_dict(),
            "topics": topics_to_dict(self.topics),
            "misinformation_detected": self.misinformation_detected,
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "profile": self.profile.value,
            "status": self.status.value,
            "failure_reason": self.failure_reason,
            "stage": self.stage.value,
            "phase": self.phase.value,
            "turn_limit": self.turn_limit,
            "client_turns": self.client_turns,
            "notes": self.notes,
            "dialog_health": self.dialog_health.to_dict(),
            "loop_guard": self.loop_guard.to_dict(),
            "topics": topics_to_dict(self.topics),
            "checklist": checklist_to_dict(self.checklist),
            "phase_checks": self.phase_checks,
            "communication": self.communication.to_dict(),
            "misinformation_detected": self.misinformation_detected,
            "messages": [m.to_dict() for m in self.messages],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SessionState":
        """Rebuild from a snapshot; missing or malformed fields get defaults."""
        profile = parse_profile(data.get("profile"))
        config = get_profile_config(profile)
        try:
            status = SessionStatus(data.get("status", "continue"))
        except ValueError:
            status = SessionStatus.CONTINUE
        turn_limit = data.get("turn_limit")
        client_turns = data.get("client_turns")
        return cls(
            session_id=str(data.get("session_id", "")),
            profile=profile,
            status=status,
            failure_reason=data.get("failure_reason"),
            stage=parse_stage(data.get("stage")) or DialogStage.OPENING,
            phase=parse_phase(data.get("phase")) or ConversationPhase.FIRST_CONTACT,
            turn_limit=turn_limit if isinstance(turn_limit, int) else config.max_turns,
            client_turns=client_turns if isinstance(client_turns, int) else 0,
            notes=str(data.get("notes") or ""),
            dialog_health=DialogHealth.from_dict(
                data.get("dialog_health"),
                base=DialogHealth(patience=config.patience_base, trust=config.trust_base),
            ),
            loop_guard=LoopGuard.from_dict(data.get("loop_guard")),
            topics=topics_from_dict(data.get("topics")),
            checklist=checklist_from_dict(data.get("checklist")),
            phase_checks=merge_phase_checks(create_phase_checks(), data.get("phase_checks")),
            communication=CommunicationState.from_dict(data.get("communication")),
            misinformation_detected=bool(data.get("misinformation_detected", False)),
            messages=[
                DialogMessage.from_dict(m)
                for m in data.get("messages") or []
                if isinstance(m, dict)
            ],
        )
