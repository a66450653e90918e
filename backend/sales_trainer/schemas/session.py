from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field


class StartSessionRequest(BaseModel):
    profile: Literal["normal", "thorough", "pressure"] | None = None


class StartSessionResponse(BaseModel):
    session_id: str
    status: str
    customer_text: str
    profile: str
    turn_limit: int


class TurnRequest(BaseModel):
    text: str = Field(min_length=1)


class TurnResponse(BaseModel):
    customer_reply: str
    session_status: Literal["continue", "fail", "completed"]
    failure_reason: str | None = None
    outcome: dict[str, Any] | None = None
