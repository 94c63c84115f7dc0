"""FastAPI application factory."""

import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Annotated, AsyncGenerator

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from voicescribe.api.errors import register_exception_handlers
from voicescribe.api.v1.router import api_router
from voicescribe.config import settings
from voicescribe.core.database.migration_check import require_migrations
from voicescribe.core.database.session import engine, get_db
from voicescribe.core.logging import LoggingMiddleware, get_logger, setup_logging
from voicescribe.core.speech.google import build_speech_provider
from voicescribe.core.storage.uploads import ensure_upload_dir


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifecycle management."""

    # === STARTUP ===
    setup_logging(settings)

    logger = get_logger(__name__)
    logger.info("application_starting", app_name=settings.app_name, environment=settings.app_env)

    try:
        await require_migrations(engine, fail_on_outdated=settings.require_migrations_on_startup)
    except RuntimeError as e:
        logger.error("migration_check_failed", error=str(e))
        raise

    # One provider handle per process, read-only afterwards
    speech_provider = build_speech_provider(settings)
    app.state.speech_provider = speech_provider
    app.state._start_time = time.time()

    logger.info(
        "application_started",
        app_name=settings.app_name,
        speech_provider_ready=speech_provider.is_ready,
        allowed_origins=settings.allowed_origins,
    )

    yield

    # === SHUTDOWN ===
    logger.info("application_shutting_down", app_name=settings.app_name)
    await speech_provider.close()
    await engine.dispose()
    logger.info("application_shutdown_complete", app_name=settings.app_name)


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""
    app = FastAPI(
        title=settings.app_name,
        version=settings.version,
        description="Upload or record audio and transcribe it with Google Cloud Speech-to-Text",
        lifespan=lifespan,
        docs_url="/api/docs" if settings.debug else None,
        redoc_url="/api/redoc" if settings.debug else None,
        openapi_url="/api/openapi.json" if settings.debug else None,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(LoggingMiddleware)

    register_exception_handlers(app)

    # Created once per process, before any upload can arrive
    ensure_upload_dir(settings.upload_dir)

    app.include_router(api_router, prefix="/api/v1")

    @app.get("/")
    async def root() -> dict:
        return {
            "message": "Speech-to-Text API with Google Cloud is running!",
            "status": "active",
            "version": settings.version,
        }

    @app.get("/health")
    async def health_check(
        request: Request,
        db: Annotated[AsyncSession, Depends(get_db)],
    ) -> dict:
        """Database ping and speech provider readiness. No auth required."""
        logger = get_logger(__name__)

        db_status = "unknown"
        db_latency = None
        try:
            db_start = time.time()
            await db.execute(text("SELECT 1"))
            db_latency = round((time.time() - db_start) * 1000, 2)
            db_status = "connected"
        except SQLAlchemyError as e:
            db_status = "error"
            logger.error("health_check_database_failed", error=str(e))

        provider = getattr(request.app.state, "speech_provider", None)
        speech_status = "ready" if provider is not None and provider.is_ready else "not_initialized"

        start_time = getattr(request.app.state, "_start_time", None)
        uptime = round(time.time() - start_time, 2) if start_time else 0.0

        return {
            "status": "healthy" if db_status == "connected" and speech_status == "ready" else "degraded",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "uptime_seconds": uptime,
            "version": settings.version,
            "environment": settings.app_env,
            "database": {
                "status": db_status,
                "latency_ms": db_latency,
            },
            "speech": {
                "provider": provider.name if provider is not None else None,
                "status": speech_status,
            },
        }

    return app


app = create_app()
