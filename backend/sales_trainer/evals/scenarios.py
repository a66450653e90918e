"""
Evaluation scenarios — scripted manager turns with expected outcomes.

Each scenario is a list of manager utterances played against the offline
scripted customer.  Assertions define how the session should end and the
range the final score must land in.

These run with FORCE_OFFLINE=true for deterministic results.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class Scenario:
    name: str
    description: str
    turns: list[str]
    profile: str = "normal"
    # Assertions on the final outcome
    expected_status: str = "completed"  # "completed" or "fail"
    expected_failure: str | None = None
    min_score: int = 0
    max_score: int = 100
    expected_issues: list[str] = field(default_factory=list)


SCENARIOS: list[Scenario] = [
    Scenario(
        name="strong_manager",
        description=(
            "Manager introduces themselves, answers every question, presents "
            "the car and fixes a visit. Should complete with a high score."
        ),
        turns=[
            "Hello, my name is Anna, Sunrise dealership. Yes, the Kia Sportage is available.",
            "It has one owner, full service history and no accidents. What are you looking for in a car?",
            "Yes, we offer credit through eight partner banks with a low down payment.",
            "We accept trade-in and can value your car on site the same day.",
            "Come and see it tomorrow at 11:00 and take a test drive?",
        ],
        expected_status="completed",
        min_score=90,
        max_score=100,
    ),
    Scenario(
        name="low_effort_manager",
        description=(
            "Manager answers with a bare 'ok' three times in a row. "
            "Should fail early on repeated low effort."
        ),
        turns=["ок", "ок", "ок"],
        expected_status="fail",
        expected_failure="REPEATED_LOW_EFFORT",
        max_score=40,
        expected_issues=["LOW_ENGAGEMENT", "PASSIVE_STYLE"],
    ),
    Scenario(
        name="hostile_manager",
        description="Manager turns hostile on the second turn. Immediate BAD_TONE fail.",
        turns=[
            "Hello, my name is Anna from Sunrise dealership.",
            "Shut up and listen, the price is the price.",
        ],
        expected_status="fail",
        expected_failure="BAD_TONE",
        max_score=40,
        expected_issues=["BAD_TONE"],
    ),
    Scenario(
        name="misinformation",
        description=(
            "Manager misstates the model year, the customer asks for a "
            "clarification, the call still ends with a visit. Penalised."
        ),
        turns=[
            "Hello, my name is Anna from Sunrise dealership. This is a 2021 model.",
            "Sorry, my mistake. It is in great condition with one owner.",
            "Come and see it tomorrow at 11:00 and take a test drive?",
        ],
        expected_status="completed",
        min_score=70,
        max_score=90,
        expected_issues=["MISINFORMATION"],
    ),
    Scenario(
        name="critical_evasion",
        description=(
            "Manager dodges the customer's availability question twice. "
            "Should fail on the critical car-identification topic."
        ),
        turns=[
            "Hello, my name is Anna from Sunrise dealership.",
            "I don't know, call back later.",
            "I don't know, call back later.",
        ],
        expected_status="fail",
        expected_failure="CRITICAL_EVASION:car_identification",
        max_score=40,
    ),
]
