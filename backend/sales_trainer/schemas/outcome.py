from __future__ import annotations

from pydantic import BaseModel


class DimensionScoresSchema(BaseModel):
    first_contact: int
    product_and_sales: int
    closing_commitment: int
    communication: int


class ChecklistItemSchema(BaseModel):
    code: str
    weight: int
    status: str
    evidence: list[str] = []
    comment: str = ""


class IssueSchema(BaseModel):
    issue_type: str
    severity: str
    evidence: str
    recommendation: str


class BehaviorStatsSchema(BaseModel):
    manager_turns: int = 0
    toxic: int = 0
    low_effort: int = 0
    evasion: int = 0
    high_severity: int = 0


class OutcomeSchema(BaseModel):
    session_id: str
    status: str
    score: int
    dimension_scores: DimensionScoresSchema
    checklist: list[ChecklistItemSchema] = []
    issues: list[IssueSchema] = []
    recommendations: list[str] = []
    failure_reason: str | None = None
    summary: str = ""
    behavior_stats: BehaviorStatsSchema = BehaviorStatsSchema()
    deductions: list[str] = []


class OutcomeResponse(BaseModel):
    status: str
    outcome: OutcomeSchema | None = None
