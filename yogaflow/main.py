"""YogaFlow - FastAPI Application Entry Point.

Serves flow generation and history, the realtime session bootstrap used by
RealtimeVoiceTransport, and cached narration synthesis.
"""

import logging
import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import make_asgi_app

from yogaflow import __version__
from yogaflow.api.routes import flows, health, realtime, tts
from yogaflow.config.settings import get_settings
from yogaflow.observability.logging import init_logging
from yogaflow.observability.metrics import set_build_info

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Handles startup and shutdown of components.
    """
    settings = get_settings()
    init_logging(
        json_format=settings.environment == "production",
        level=settings.log_level,
    )
    logger.info(
        "yogaflow_starting",
        version=__version__,
        environment=settings.environment,
        port=settings.api_port,
        voice_transport=settings.voice_transport,
    )

    try:
        store = flows.get_flow_store()
        store.path.parent.mkdir(parents=True, exist_ok=True)
        health.set_component_health("flow_store", True)
        logger.info("flow_store_initialized", path=str(store.path))

        cache_dir = settings.narration_cache_dir
        os.makedirs(cache_dir, exist_ok=True)
        health.set_component_health("narration_cache", True)

        # Voice backends are optional: unconfigured keys only degrade health
        health.set_component_health(
            "realtime", bool(settings.openai_api_key or settings.bootstrap_url)
        )
        health.set_component_health("tts", bool(settings.elevenlabs_api_key))

        health.set_ready(True)
        logger.info("yogaflow_ready", components=health.get_component_health())

    except OSError as e:
        logger.error("yogaflow_startup_failed", error=str(e))
        raise

    yield  # Application runs here

    logger.info("yogaflow_shutting_down")
    health.set_ready(False)

    await realtime.close_session_client()
    await tts.close_narrator()

    logger.info("yogaflow_shutdown_complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="YogaFlow",
        description="Voice-guided pose sessions",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if settings.environment != "production" else None,
        redoc_url="/redoc" if settings.environment != "production" else None,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.environment == "development" else [],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(health.router)
    app.include_router(flows.router)
    app.include_router(realtime.router)
    app.include_router(tts.router)

    if settings.metrics_enabled:
        app.mount("/metrics", make_asgi_app())

    set_build_info(
        version=__version__,
        commit=os.environ.get("GIT_COMMIT", "unknown"),
        build_time=os.environ.get("BUILD_TIME", "unknown"),
    )

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "unhandled_exception",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            exc_info=exc,
        )
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )

    return app


# Create application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    log_level = settings.log_level.lower()

    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, settings.log_level),
    )

    uvicorn.run(
        "yogaflow.main:app",
        host=settings.api_host,
        port=settings.api_port,
        log_level=log_level,
        reload=settings.environment == "development",
    )
