"""Named save snapshots of a session."""

from fastapi import APIRouter, Depends

from forest_oracle.pipeline import Orchestrator, TurnRejected

from .dependencies import get_orchestrator, rejected
from .models import SaveBody

router = APIRouter()


@router.get("/sessions/{session_id}/saves")
async def list_saves(session_id: str, orch: Orchestrator = Depends(get_orchestrator)):
    """List saves, newest first."""
    return orch.list_saves(session_id)


@router.post("/sessions/{session_id}/saves")
async def create_save(
    session_id: str, body: SaveBody, orch: Orchestrator = Depends(get_orchestrator),
):
    """Snapshot the current session state under a name."""
    try:
        return await orch.save_snapshot(session_id, body.name)
    except TurnRejected as e:
        raise rejected(e)


@router.post("/sessions/{session_id}/saves/{save_id}/load")
async def load_save(session_id: str, save_id: str, orch: Orchestrator = Depends(get_orchestrator)):
    """Replace the session state with a saved snapshot."""
    try:
        return await orch.load_snapshot(session_id, save_id)
    except TurnRejected as e:
        raise rejected(e)


@router.delete("/sessions/{session_id}/saves/{save_id}")
async def delete_save(session_id: str, save_id: str, orch: Orchestrator = Depends(get_orchestrator)):
    """Delete a saved snapshot."""
    try:
        await orch.delete_snapshot(session_id, save_id)
    except TurnRejected as e:
        raise rejected(e)
    return {"ok": True}
