"""Local FastAPI server exposing the history command protocol."""

from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from fastapi import Body, FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from ..config import AppConfig
from ..errors import VisualHistoryError
from ..logging_utils import get_logger
from ..settings_store import SettingsStore
from ..storage.engine import StorageEngine
from ..storage.retention import RetentionScheduler
from .dispatcher import CommandDispatcher


def build_engine(config: AppConfig, settings: SettingsStore | None = None) -> StorageEngine:
    settings = settings or SettingsStore(Path(config.keystore.settings_path))
    return StorageEngine(
        config.database,
        settings,
        color_threshold=config.search.color_threshold,
    )


def create_app(
    config: AppConfig,
    engine: StorageEngine | None = None,
    settings: SettingsStore | None = None,
) -> FastAPI:
    log = get_logger("api")
    settings = settings or SettingsStore(Path(config.keystore.settings_path))
    engine = engine or build_engine(config, settings)
    dispatcher = CommandDispatcher(
        engine,
        screenshot_mime=f"image/{config.capture.screenshot_format}",
        default_limit=config.search.default_limit,
    )
    retention = RetentionScheduler(config.retention, engine, settings)

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        try:
            await engine.ensure_ready()
            await settings.install_defaults()
        except Exception as exc:
            log.error("Failed to initialize storage engine: {}", exc)
        retention.start()
        yield
        await retention.stop()
        await engine.close()

    app = FastAPI(title="Visual History", lifespan=lifespan)
    app.state.engine = engine
    app.state.settings = settings
    app.state.dispatcher = dispatcher
    app.state.retention = retention

    @app.exception_handler(VisualHistoryError)
    async def _history_error(_: Request, exc: VisualHistoryError) -> JSONResponse:
        log.warning("Request failed: {}", exc)
        return JSONResponse(status_code=500, content={"error": str(exc)})

    @app.exception_handler(ValidationError)
    async def _validation_error(_: Request, exc: ValidationError) -> JSONResponse:
        return JSONResponse(status_code=422, content={"error": str(exc)})

    @app.get("/health")
    async def health() -> dict[str, Any]:
        return {"status": "ok", "engine": engine.state.value}

    @app.post("/api/message")
    async def message(payload: Any = Body(...)) -> dict[str, Any]:
        return await dispatcher.handle(payload)

    return app
