"""FastAPI application factory for the user-deletion service."""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from infrastructure.container import get_container
from infrastructure.database.engine import dispose_engine
from infrastructure.observability.logging_config import setup_logging
from infrastructure.observability.metrics import setup_metrics
from infrastructure.settings import AppSettings, get_settings

from .api.v1 import admin_users
from .middleware.request_logging import REQUEST_ID_HEADER, RequestLoggingMiddleware
from .problems import register_problem_handlers

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

API_VERSION = "1.0.0"
API_V1_PREFIX = "/api/v1"


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)
    app.state.container = get_container()
    yield
    dispose_engine()


def _install_middleware(app: FastAPI, settings: AppSettings) -> None:
    origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials="*" not in origins,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
        expose_headers=[REQUEST_ID_HEADER],
    )
    app.add_middleware(RequestLoggingMiddleware)
    setup_metrics(app)


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(
        title="User Deletion Service",
        version=API_VERSION,
        description=(
            "Manifest-driven user deletion. Cascades through every table "
            "that references a user, removes stored files, deletes the "
            "external identity and keeps a tamper-evident deletion log."
        ),
        lifespan=_lifespan,
    )

    _install_middleware(app, settings)
    app.include_router(admin_users.router, prefix=API_V1_PREFIX)
    register_problem_handlers(app)

    @app.get("/health", tags=["Operations"], summary="Health check")
    async def health_check() -> dict[str, Any]:
        return {
            "status": "healthy",
            "version": API_VERSION,
            "storage_backend": settings.storage_backend,
            "timestamp": datetime.now(UTC).isoformat(),
        }

    return app


app = create_app()
