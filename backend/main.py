from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from backend.db import build_engine
from backend.db_init import init_db
from backend.repositories import SqlKeyValueStore
from backend.routes import day, exchange, metrics, week
from backend.settings import Settings, get_settings
from scorecard.errors import (
    ImportInProgressError,
    NotFoundError,
    ParseError,
    SchemaError,
    ValidationError,
)
from scorecard.service import ScorecardService

_ERROR_STATUS = (
    (ValidationError, 400),
    (ParseError, 400),
    (NotFoundError, 404),
    (ImportInProgressError, 409),
    (SchemaError, 422),
)


def build_service(settings: Settings) -> ScorecardService:
    engine = build_engine(settings.database_url)
    init_db(engine)
    return ScorecardService(
        SqlKeyValueStore(engine),
        step_tolerance=settings.step_tolerance,
        timezone_name=settings.timezone,
        catalog_key=settings.catalog_key,
        store_key=settings.store_key,
    )


def create_app(service: ScorecardService | None = None, settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
    )
    app = FastAPI(title="Accountability Scorecard API", version="0.1.0")
    app.state.service = service or build_service(settings)

    app.include_router(metrics.router)
    app.include_router(day.router)
    app.include_router(week.router)
    app.include_router(exchange.router)

    def _register(error_type, status_code):
        @app.exception_handler(error_type)
        async def _handler(request: Request, exc: Exception):
            return JSONResponse(status_code=status_code, content={"detail": str(exc)})

    for error_type, status_code in _ERROR_STATUS:
        _register(error_type, status_code)

    @app.exception_handler(Exception)
    async def _unhandled_exception_handler(request: Request, exc: Exception):
        logging.getLogger("backend").exception("Unhandled exception: %s", exc)
        return JSONResponse(status_code=500, content={"detail": "Internal error"})

    @app.get("/health")
    def health():
        return {"ok": True}

    return app
