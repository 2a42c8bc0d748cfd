"""
FastAPI application entry point for the character wiki backend.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from charwiki.config import Settings, get_settings
from charwiki.dependencies import build_db_client
from charwiki.routes import router

log = logging.getLogger("charwiki")


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if getattr(app.state, "db", None) is None:
            app.state.db = build_db_client(settings)
        log.info("Character wiki backend ready on port %d", settings.port)
        yield
        engine = getattr(app.state.db, "engine", None)
        if engine is not None:
            engine.dispose()
        log.info("Shutting down character wiki backend")

    app = FastAPI(title="Character Wiki Backend", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origin_regex=".*",
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    static_dir = Path(settings.static_dir)
    static_dir.mkdir(parents=True, exist_ok=True)
    app.mount("/static", StaticFiles(directory=str(static_dir)), name="static")

    app.include_router(router, prefix=settings.api_prefix)
    return app
