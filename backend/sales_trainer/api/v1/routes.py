from fastapi import APIRouter, HTTPException, Request

from sales_trainer.infra.session_store import get_session
from sales_trainer.schemas.outcome import OutcomeResponse, OutcomeSchema
from sales_trainer.schemas.session import (
    StartSessionRequest,
    StartSessionResponse,
    TurnRequest,
    TurnResponse,
)
from sales_trainer.usecases.finalize import finalize
from sales_trainer.usecases.start_session import start_session
from sales_trainer.usecases.submit_turn import submit_manager_turn

router = APIRouter(prefix="/api/v1")


@router.post("/sessions", response_model=StartSessionResponse)
async def post_session(request: Request, body: StartSessionRequest | None = None):
    profile = body.profile if body else None
    result = await start_session(request.app.state.ground_truth, profile=profile)
    return StartSessionResponse(**result)


@router.post("/sessions/{session_id}/turns", response_model=TurnResponse)
async def post_turn(session_id: str, body: TurnRequest):
    result = await submit_manager_turn(session_id, body.text)

    if "error" in result:
        raise HTTPException(status_code=404, detail="Session not found")

    return TurnResponse(**result)


@router.post("/sessions/{session_id}/finalize", response_model=OutcomeSchema)
async def post_finalize(session_id: str):
    result = await finalize(session_id)

    if "error" in result:
        raise HTTPException(status_code=404, detail="Session not found")

    return OutcomeSchema(**result)


@router.get("/sessions/{session_id}/outcome", response_model=OutcomeResponse)
async def get_outcome(session_id: str):
    session = get_session(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found")

    return OutcomeResponse(status=session["status"], outcome=session["outcome"])
