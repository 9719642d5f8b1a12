"""FastAPI application factory and configuration."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from sqlmodel import SQLModel
from starlette.middleware.sessions import SessionMiddleware

from . import models  # noqa: F401 - ensure models are registered with SQLModel
from .api.routers import ALL_ROUTERS
from .core import Settings, configure_logging, create_db_engine, load_settings


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or load_settings()
    configure_logging(settings.log_level)
    engine = create_db_engine(settings.database_url)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if settings.db_reset:
            SQLModel.metadata.drop_all(engine)
        SQLModel.metadata.create_all(engine)
        yield
        engine.dispose()

    app = FastAPI(title="Gist authentication", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.engine = engine

    # The cookie lives as long as the longest session; shorter sessions are
    # expired through the ``expires_at`` value they carry.
    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.secret_key,
        session_cookie="session",
        max_age=settings.remember_max_age,
        https_only=settings.cookie_secure,
        same_site=settings.cookie_samesite,
        domain=settings.cookie_domain,
    )

    for router in ALL_ROUTERS:
        app.include_router(router)
    return app
