"""
Client profiles — how demanding the virtual customer is.

A profile fixes the dialog length window, the customer's starting patience
and trust, and the objections the generator may raise.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ClientProfile(Enum):
    NORMAL = "normal"
    THOROUGH = "thorough"
    PRESSURE = "pressure"


@dataclass(frozen=True)
class ProfileConfig:
    min_turns: int
    max_turns: int
    patience_base: int
    trust_base: int
    objection_types: tuple[str, ...]
    description: str


PROFILE_CONFIGS: dict[ClientProfile, ProfileConfig] = {
    ClientProfile.NORMAL: ProfileConfig(
        min_turns=6,
        max_turns=10,
        patience_base=70,
        trust_base=60,
        objection_types=("price",),
        description=(
            "You are a NORMAL buyer: practical and goal-oriented, asking direct "
            "questions. You want the basics and a visit if things sound right. "
            "Minimal clarifications; move the conversation forward briskly."
        ),
    ),
    ClientProfile.THOROUGH: ProfileConfig(
        min_turns=8,
        max_turns=14,
        patience_base=80,
        trust_base=50,
        objection_types=("credit", "trade_in", "price"),
        description=(
            "You are a THOROUGH buyer: careful and detail-oriented. You double-check "
            "credit terms and trade-in conditions and ask follow-up questions. "
            "Meticulous, never aggressive."
        ),
    ),
    ClientProfile.PRESSURE: ProfileConfig(
        min_turns=6,
        max_turns=12,
        patience_base=50,
        trust_base=40,
        objection_types=("price", "competitor", "credit"),
        description=(
            "You are a PRESSURE buyer: you challenge the price, mention competitors "
            "with better deals and doubt the car's condition. Tough and skeptical, "
            "but not rude."
        ),
    ),
}


def parse_profile(raw: object) -> ClientProfile:
    """Unknown or missing profiles fall back to NORMAL."""
    if isinstance(raw, ClientProfile):
        return raw
    if isinstance(raw, str):
        try:
            return ClientProfile(raw.strip().lower())
        except ValueError:
            pass
    return ClientProfile.NORMAL


def get_profile_config(profile: ClientProfile) -> ProfileConfig:
    return PROFILE_CONFIGS.get(profile, PROFILE_CONFIGS[ClientProfile.NORMAL])
