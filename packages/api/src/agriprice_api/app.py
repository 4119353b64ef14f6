"""FastAPI application factory."""

from __future__ import annotations

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from agriprice_shared.config import settings
from agriprice_engine.utils.logging import configure_logging

from agriprice_api.errors import register_error_handlers
from agriprice_api.middleware.logging import LoggingMiddleware
from agriprice_api.routers.health import router as health_router
from agriprice_api.routers.v1 import v1_router

logger = structlog.get_logger()


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(
        title="agriprice API",
        description="Agricultural price normalization and aggregation engine",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(LoggingMiddleware)

    register_error_handlers(app)

    app.include_router(health_router)
    app.include_router(v1_router)

    logger.info("app_created", cors_origins=settings.cors_origins_list)
    return app


app = create_app()


def run() -> None:
    """Serve the app with uvicorn on API_HOST:API_PORT."""
    import uvicorn

    uvicorn.run("agriprice_api.app:app", host=settings.api_host, port=settings.api_port)
