"""Application factory for the planner web service."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Callable, Optional

from fastapi import FastAPI

from .backend import Backend, create_backend
from .config import Settings, load_settings
from .sessions import WorkspaceRegistry
from .web import register_ui_routes
from .workspace import Workspace

logger = logging.getLogger("gpr.application")


def create_app(
    *,
    settings: Optional[Settings] = None,
    backend_factory: Optional[Callable[[], Backend]] = None,
) -> FastAPI:
    """Create the ASGI application.

    ``settings`` defaults to :func:`load_settings`, which raises
    :class:`~planner.config.ConfigurationError` when the Supabase endpoint or
    key is missing. Each browser session gets its own backend client from
    ``backend_factory`` so auth sessions never leak between users.
    """

    if settings is None:
        settings = load_settings()
    if backend_factory is None:
        def backend_factory() -> Backend:
            return create_backend(settings)

    def _workspace_factory() -> Workspace:
        return Workspace(backend_factory())

    registry = WorkspaceRegistry(
        _workspace_factory,
        ttl=timedelta(hours=settings.session_ttl_hours),
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Planner ready; backend at %s", settings.supabase_url)
        try:
            yield
        finally:
            registry.close_all()
            logger.info("Closed all workspaces")

    app = FastAPI(
        title="GPR Planner",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.workspaces = registry

    register_ui_routes(app, registry, secure_cookies=settings.session_secure)
    return app


__all__ = ["create_app"]
