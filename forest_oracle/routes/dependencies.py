"""Shared FastAPI dependencies."""

from fastapi import HTTPException, Request

from forest_oracle.pipeline import (
    Orchestrator,
    PhaseError,
    SaveNotFound,
    SessionNotFound,
    SessionOver,
    TurnRejected,
)


def get_orchestrator(request: Request) -> Orchestrator:
    return request.app.state.orchestrator


def rejected(e: TurnRejected) -> HTTPException:
    """Map a rejected operation to an HTTP error (404 / 409 / 400)."""
    if isinstance(e, (SessionNotFound, SaveNotFound)):
        return HTTPException(404, str(e))
    if isinstance(e, (SessionOver, PhaseError)):
        return HTTPException(409, str(e))
    return HTTPException(400, str(e))
