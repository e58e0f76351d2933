"""Session setup phases, turns and reset endpoints."""

from fastapi import APIRouter, Depends, HTTPException

from forest_oracle.pipeline import Orchestrator, TurnRejected
from forest_oracle.worlds import WORLDS

from .dependencies import get_orchestrator, rejected
from .models import PartyBody, SelectWorldBody, SetActiveBody, StartBody, TurnBody

router = APIRouter()


@router.get("/sessions/{session_id}")
async def get_session(session_id: str, orch: Orchestrator = Depends(get_orchestrator)):
    """Get the full state of a session."""
    try:
        return orch.get_state(session_id)
    except TurnRejected as e:
        raise rejected(e)


@router.post("/sessions/{session_id}/world")
async def select_world(
    session_id: str, body: SelectWorldBody, orch: Orchestrator = Depends(get_orchestrator),
):
    """Choose the world and seed a default party."""
    if body.world_key not in WORLDS:
        raise HTTPException(400, f"Unknown world: {body.world_key}")
    try:
        return await orch.select_world(session_id, body.world_key, body.party_size)
    except TurnRejected as e:
        raise rejected(e)


@router.put("/sessions/{session_id}/party")
async def setup_party(
    session_id: str, body: PartyBody, orch: Orchestrator = Depends(get_orchestrator),
):
    """Set names and classes for every party member."""
    members = [(p.name, p.cls) for p in body.players]
    try:
        return await orch.setup_party(session_id, members)
    except TurnRejected as e:
        raise rejected(e)


@router.post("/sessions/{session_id}/start")
async def start_session(
    session_id: str, body: StartBody | None = None, orch: Orchestrator = Depends(get_orchestrator),
):
    """Generate the story outline and run the intro turn."""
    seed = body.seed if body else None
    try:
        return await orch.start(session_id, seed)
    except TurnRejected as e:
        raise rejected(e)


@router.post("/sessions/{session_id}/turns")
async def submit_turn(
    session_id: str, body: TurnBody, orch: Orchestrator = Depends(get_orchestrator),
):
    """Resolve one player action: dice, narration, effects."""
    try:
        return await orch.submit_turn(session_id, body.player_index, body.action, body.is_intro)
    except TurnRejected as e:
        raise rejected(e)


@router.patch("/sessions/{session_id}/active")
async def set_active(
    session_id: str, body: SetActiveBody, orch: Orchestrator = Depends(get_orchestrator),
):
    """Switch which party member acts next."""
    try:
        return await orch.set_active(session_id, body.index)
    except TurnRejected as e:
        raise rejected(e)


@router.post("/sessions/{session_id}/reset")
async def reset_session(session_id: str, orch: Orchestrator = Depends(get_orchestrator)):
    """Discard the session and return to world selection."""
    return await orch.reset(session_id)
