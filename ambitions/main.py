"""FastAPI application entrypoint.

Application startup order:
1. Load settings (from environment)
2. Configure structured logging
3. Build the goal store selected by GOALS_SOURCE
4. Load the people directory and approver relationships
5. Rebuild the ladder hierarchy index from the store

Shutdown order:
1. Close the goal store (DB connection pool for the SQL store)
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ambitions import __version__
from ambitions.api.router import api_v1_router, public_router
from ambitions.config import Settings, get_settings
from ambitions.core.approvers import ConfiguredApproverLookup
from ambitions.services.goal_service import GoalService
from ambitions.services.hierarchy import HierarchyConsistency
from ambitions.services.people import PeopleDirectory
from ambitions.stores import GoalStore, KeyedLock, close_goal_store, create_goal_store
from ambitions.telemetry import RequestIdMiddleware, configure_logging

log = structlog.get_logger(__name__)


async def build_goal_service(settings: Settings, store: GoalStore) -> GoalService:
    """Wire the goal service around ``store`` and index the existing ladder."""
    locks = KeyedLock()
    hierarchy = HierarchyConsistency(store, locks)
    await hierarchy.rebuild_index()

    return GoalService(
        store=store,
        people=PeopleDirectory.from_settings(settings),
        approvers=ConfiguredApproverLookup.from_settings(settings),
        hierarchy=hierarchy,
        locks=locks,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: startup and shutdown."""
    settings = get_settings()

    # Configure structured logging first (before any log calls)
    configure_logging(
        json_logs=settings.is_prod,
        log_level="DEBUG" if settings.debug else "INFO",
    )

    log.info(
        "app.starting",
        environment=str(settings.environment),
        goals_source=str(settings.goals_source),
    )

    store = create_goal_store(settings)
    app.state.goal_store = store
    app.state.goal_service = await build_goal_service(settings, store)

    log.info("app.ready")
    yield

    await close_goal_store(store)
    log.info("app.shutdown")


def create_app() -> FastAPI:
    """Application factory."""
    settings = get_settings()

    app = FastAPI(
        title="Ambitions Service",
        description="Goal (ambition) tracking with approval workflow and goal laddering.",
        version=__version__,
        docs_url="/docs" if settings.is_dev else None,
        redoc_url="/redoc" if settings.is_dev else None,
        openapi_url="/openapi.json" if settings.is_dev else None,
        lifespan=lifespan,
    )

    # ------------------------------------------------------------------ #
    # Middleware (added in reverse order - last added = first executed)
    # ------------------------------------------------------------------ #

    # In dev mode, allow all origins for easier development
    cors_origins = ["*"] if settings.is_dev else settings.cors_allowed_origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=settings.is_prod,
        allow_methods=["*"],
        allow_headers=["Authorization", "Content-Type"],
    )

    # Unique request ID for log correlation
    app.add_middleware(RequestIdMiddleware)

    # ------------------------------------------------------------------ #
    # Routers
    # ------------------------------------------------------------------ #
    app.include_router(public_router)
    app.include_router(api_v1_router)

    # ------------------------------------------------------------------ #
    # Global exception handlers
    # ------------------------------------------------------------------ #

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={
                "detail": {
                    "code": "validation_error",
                    "message": "Malformed request",
                    "errors": jsonable_encoder(exc.errors()),
                }
            },
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        log.error(
            "app.unhandled_exception",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            exc_info=True,
        )
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )

    return app


# Module-level app instance for uvicorn
app = create_app()
