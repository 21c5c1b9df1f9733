"""FastAPI application factory and server entry point."""

from __future__ import annotations

import logging
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from needlepoint.session import ProjectSession
from needlepoint.settings import Settings
from needlepoint.web.api import ApiState
from needlepoint.web.api import router as api_router

logger = logging.getLogger(__name__)

DEFAULT_PORT = 3001


def create_app(
    *,
    session: ProjectSession | None = None,
    settings: Settings | None = None,
    allow_origins: list[str] | None = None,
) -> FastAPI:
    """Create the app, optionally with a project already open.

    Args:
        session: Project to serve. Clients can also create or load one later.
        settings: Defaults to the open session's settings, then the environment.
        allow_origins: CORS allowed origins.
    """
    if settings is None:
        settings = session.settings if session is not None else Settings.from_env()

    app = FastAPI(
        title="Needlepoint",
        description="Plan and generate a dependency graph of source files",
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins if allow_origins is not None else ["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.needlepoint = ApiState(settings, session)
    app.include_router(api_router)
    return app


def run_server(
    project: str | Path | None = None,
    *,
    host: str = "127.0.0.1",
    port: int = DEFAULT_PORT,
    settings: Settings | None = None,
) -> None:
    """Start uvicorn, serving *project* if given."""
    import uvicorn

    settings = settings if settings is not None else Settings.from_env()
    session = ProjectSession.load(project, settings=settings) if project is not None else None
    logger.info(f"Starting Needlepoint API at http://{host}:{port}/api")
    uvicorn.run(create_app(session=session, settings=settings), host=host, port=port, log_level=settings.log_level)
