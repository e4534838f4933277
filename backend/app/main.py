from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import AsyncIterator

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from backend.app.logging_config import configure_logging
from backend.app.ratelimit.store import (
    FixedWindowRateLimitStore,
    RateLimitStore,
    UnlimitedRateLimitStore,
)
from backend.app.routes.health import router as health_router
from backend.app.routes.languages import router as languages_router
from backend.app.routes.sessions import router as sessions_router
from backend.app.routes.speech import router as speech_router
from backend.app.routes.translations import router as translations_router
from backend.app.session.manager import SessionManager
from backend.app.settings import Settings, build_settings
from backend.app.speech.output import SpeechOutput
from backend.app.translation.gateway import TranslationGateway


def _project_root() -> Path:
    return Path(__file__).resolve().parents[2]


def _service_logger() -> logging.Logger:
    return logging.getLogger("hct.backend")


def _build_rate_limit_store(settings: Settings) -> RateLimitStore:
    if not settings.rate_limit_enabled:
        return UnlimitedRateLimitStore()
    return FixedWindowRateLimitStore(
        limit=settings.rate_limit_max_requests,
        window_seconds=settings.rate_limit_window_seconds,
        max_buckets=settings.rate_limit_max_buckets,
    )


def create_app() -> FastAPI:
    settings = build_settings(_project_root())
    configure_logging(settings.log_level)
    logger = _service_logger()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        app.state.settings = settings
        app.state.started_at = datetime.now(timezone.utc)
        app.state.rate_limit_store = _build_rate_limit_store(settings)
        app.state.translation_gateway = TranslationGateway(
            settings=settings,
            logger=logger,
            rate_limit_store=app.state.rate_limit_store,
        )
        app.state.speech_output = SpeechOutput(settings=settings, logger=logger)
        app.state.session_manager = SessionManager(
            settings=settings,
            logger=logger,
            gateway=app.state.translation_gateway,
            speech_output=app.state.speech_output,
        )

        logger.info(
            "service_startup",
            extra={
                "event": "startup",
                "service_name": settings.service_name,
                "service_version": settings.service_version,
            },
        )
        logger.info(
            "service_config_loaded",
            extra={
                "event": "config_loaded",
                "service_name": settings.service_name,
                "service_version": settings.service_version,
                "config": settings.redacted(),
            },
        )
        await app.state.session_manager.start()
        yield
        await app.state.session_manager.stop()
        await app.state.speech_output.close()
        logger.info(
            "service_shutdown",
            extra={
                "event": "shutdown",
                "service_name": settings.service_name,
                "service_version": settings.service_version,
            },
        )

    app = FastAPI(
        title=settings.service_name,
        version=settings.service_version,
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/")
    def root() -> dict[str, str]:
        return {"message": "Healthcare translation backend is running."}

    app.include_router(health_router)
    app.include_router(translations_router)
    app.include_router(speech_router)
    app.include_router(languages_router)
    app.include_router(sessions_router)
    return app


app = create_app()


def run() -> None:
    settings = build_settings(_project_root())
    uvicorn.run("backend.app.main:app", host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
