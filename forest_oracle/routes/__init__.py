"""FastAPI API endpoints under /api.

Endpoint groups: health + registries (worlds, classes), sessions (setup
phases, turns, active player, reset) and saves. Everything session-scoped
is nested under /api/sessions/{session_id}/.
"""

from fastapi import APIRouter

from .saves import router as saves_router
from .sessions import router as sessions_router
from .settings import router as settings_router

router = APIRouter()
router.include_router(settings_router)
router.include_router(sessions_router)
router.include_router(saves_router)
