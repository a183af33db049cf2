# -*- coding: utf-8 -*-
from __future__ import annotations

import logging
import random
from pathlib import Path
from typing import Optional, Sequence

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from core.garden.engine import Timing
from core.garden.errors import GardenError
from core.version import project_version, version_info

from .api import router as api_router
from .service import Clock, GardenService
from .settings import GardenSettings
from .store import GardenStore

logger = logging.getLogger(__name__)


def _first_validation_message(exc: RequestValidationError) -> str:
    for err in exc.errors():
        loc = ".".join(str(x) for x in err.get("loc", ()) if x != "body")
        msg = str(err.get("msg") or "invalid value")
        return f"{loc}: {msg}" if loc else msg
    return "Invalid request"


def create_app(
    db_path: Path,
    *,
    root_path: str = "",
    cors_allow_origins: Optional[Sequence[str]] = None,
    gzip_minimum_size: int = 800,
    timing: Optional[Timing] = None,
    leaderboard_default_limit: int = 10,
    # injectable for tests / replays
    clock: Optional[Clock] = None,
    rng: Optional[random.Random] = None,
) -> FastAPI:
    """FastAPI app factory."""

    rp = GardenSettings.normalize_root_path(root_path)

    app = FastAPI(
        title="WebGarden API",
        version=project_version(),
        root_path=rp,
        docs_url="/docs",
        redoc_url=None,
    )

    # state
    store = GardenStore(Path(db_path))
    app.state.store = store
    app.state.service = GardenService(store, timing=timing, clock=clock, rng=rng)
    app.state.leaderboard_default_limit = int(leaderboard_default_limit)

    # errors
    @app.exception_handler(GardenError)
    async def _garden_error(request: Request, exc: GardenError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)

    @app.exception_handler(RequestValidationError)
    async def _request_invalid(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={"message": _first_validation_message(exc), "error": "validation_error"},
        )

    # middleware
    if gzip_minimum_size and gzip_minimum_size > 0:
        app.add_middleware(GZipMiddleware, minimum_size=int(gzip_minimum_size))

    if cors_allow_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=list(cors_allow_origins),
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    # routes
    app.include_router(api_router)

    @app.get("/healthz")
    def healthz():
        return {"ok": True, "version": project_version(), "schema": version_info().schema}

    return app


def create_app_from_settings(settings: GardenSettings) -> FastAPI:
    return create_app(
        settings.db_path,
        root_path=settings.root_path,
        cors_allow_origins=settings.cors_allow_origins or None,
        timing=settings.timing,
        leaderboard_default_limit=settings.leaderboard_default_limit,
    )
