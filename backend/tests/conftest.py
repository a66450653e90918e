"""
Shared pytest fixtures for the sales trainer tests.

Provides fixtures for:
- A ground-truth vehicle record (2023, 2 890 000 RUB, 24 000 km)
- A clean in-memory session store for every test
- Fake dialogue generators with canned replies
"""

from __future__ import annotations

from typing import Any, Callable

import pytest

from sales_trainer.domain.ground_truth import GroundTruthRecord
from sales_trainer.infra.session_store import reset_store


@pytest.fixture
def record() -> GroundTruthRecord:
    return GroundTruthRecord(
        id="car-test",
        title="Kia Sportage 2.0 AT, 2023",
        brand="Kia",
        model="Sportage",
        year=2023,
        price=2_890_000,
        mileage_km=24_000,
        location={"city": "Moscow", "address": "Leningradskoe sh. 16"},
        deal_terms={"credit": {"banks_count": 8}, "trade_in": True},
    )


@pytest.fixture(autouse=True)
def clean_store():
    reset_store()
    yield
    reset_store()


def make_reply(
    message: str = "Okay. And what about credit?",
    addressed: list[str] | None = None,
    evaded: list[str] | None = None,
    checklist: dict[str, Any] | None = None,
    end: bool = False,
    **diagnostics: Any,
) -> dict[str, Any]:
    """Generator JSON in the shape the LLM is asked to return."""
    diag = {
        "current_phase": None,
        "topics_addressed": addressed or [],
        "topics_evaded": evaded or [],
        "manager_tone": "neutral",
        "manager_engagement": "normal",
        "misinformation_detected": False,
        "phase_checks_update": {},
    }
    diag.update(diagnostics)
    return {
        "client_message": message,
        "end_conversation": end,
        "diagnostics": diag,
        "update_state": {"stage": None, "checklist_delta": checklist or {}, "notes": "", "client_turns": 0},
    }


@pytest.fixture
def fake_generator() -> Callable[..., Any]:
    """Build an async generator that returns canned replies in order and records requests."""
    def _create(*replies: dict[str, Any]):
        queue = list(replies)
        calls = []

        async def generate(request):
            calls.append(request)
            if not queue:
                return make_reply()
            return queue.pop(0)

        generate.calls = calls
        return generate
    return _create


@pytest.fixture
def failing_generator():
    calls = []

    async def generate(request):
        calls.append(request)
        raise RuntimeError("upstream unavailable")

    generate.calls = calls
    return generate


@pytest.fixture
def reply():
    """The make_reply helper as a fixture."""
    return make_reply
