# guess_the_lines/main.py
from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Callable, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from guess_the_lines.core.config import Settings
from guess_the_lines.core.db import Database
from guess_the_lines.core.dynamo import DynamoPickStore
from guess_the_lines.core.store import PickStore, SqlPickStore
from guess_the_lines.routers import debug_routes, odds_routes, picks_routes
from guess_the_lines.services.nfl_weeks import NY
from guess_the_lines.services.odds_api import OddsApiClient, make_http_client
from guess_the_lines.services.picks import PickService

# ------------ Logging ------------
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("app")


def _now_ny() -> datetime:
    return datetime.now(NY)


# ------------ Access log middleware ------------
class AccessLogMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):
        t0 = time.perf_counter()
        status = 500
        try:
            response = await call_next(request)
            status = response.status_code
        finally:
            dt = (time.perf_counter() - t0) * 1000
            logger.info(
                "ACCESS %s %s q=%s -> %s in %.1fms",
                request.method,
                request.url.path,
                request.url.query,
                status,
                dt,
            )
        return response


async def _build_store(settings: Settings) -> tuple[PickStore, Optional[Database]]:
    if settings.is_dynamodb:
        logger.info("store: dynamodb picks=%s stats=%s", settings.picks_table_name, settings.stats_table_name)
        return DynamoPickStore.from_settings(settings), None
    db = Database(settings.database_url or "")
    store = SqlPickStore(db)
    await store.ensure_schema()
    return store, db


def create_app(
    settings: Optional[Settings] = None,
    odds_client: Optional[OddsApiClient] = None,
    store: Optional[PickStore] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> FastAPI:
    """
    Build the API. Anything not passed in is built from settings when the app
    starts and torn down when it stops.
    """
    settings = settings or Settings.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        http_client = None
        db = None
        if app.state.odds_client is None:
            http_client = make_http_client(settings.odds_timeout)
            app.state.odds_client = OddsApiClient.from_settings(settings, http_client)
        if app.state.store is None:
            app.state.store, db = await _build_store(settings)
            app.state.pick_service = PickService(app.state.store)
        try:
            yield
        finally:
            if http_client is not None:
                await http_client.aclose()
            if db is not None:
                await db.close()

    app = FastAPI(
        title="Guess The Lines API",
        version="1.0.0",
        docs_url="/docs",
        redoc_url=None,
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.clock = clock or _now_ny
    app.state.odds_client = odds_client
    app.state.store = store
    app.state.pick_service = PickService(store) if store is not None else None

    app.add_middleware(AccessLogMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ------------ Global error handler ------------
    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception):
        logger.exception("UNHANDLED ERROR: %s %s", request.method, request.url)
        return JSONResponse(status_code=500, content={"error": "internal_error"})

    # ------------ Health & status ------------
    @app.get("/health")
    async def health():
        return {"ok": True}

    @app.get("/status")
    async def status(request: Request):
        store = request.app.state.store
        return {
            "ok": True,
            "has_odds_key": bool(settings.odds_api_key),
            "regions": settings.odds_regions,
            "bookmaker": settings.preferred_bookmaker,
            "books": settings.odds_bookmakers,
            "store": store.backend if store is not None else settings.store_backend,
            "include_playoffs": settings.include_playoffs,
        }

    # ------------ Mount routers ------------
    app.include_router(odds_routes.router, prefix="/api")
    app.include_router(picks_routes.router, prefix="/api")
    app.include_router(debug_routes.router, prefix="/api")

    return app


app = create_app()
