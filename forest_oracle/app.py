from fastapi import FastAPI

from forest_oracle.config import Settings, load_settings
from forest_oracle.pipeline import Orchestrator, build_orchestrator
from forest_oracle.routes import router


def create_app(
    settings: Settings | None = None, orchestrator: Orchestrator | None = None,
) -> FastAPI:
    settings = settings or load_settings()
    app = FastAPI(title="Forest Oracle")
    app.state.settings = settings
    app.state.orchestrator = orchestrator or build_orchestrator(settings)
    app.include_router(router, prefix="/api")
    return app
