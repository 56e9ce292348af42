"""
GRAPHVAULT v1.0 — REST API.

FastAPI server exposing bulk synchronization and snapshot versioning.
Authentication is handled upstream; the acting user arrives in the
``X-Actor-Id`` header.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from graphvault import __version__, config
from graphvault.config import GraphVaultConfig
from graphvault.engine import GraphVaultEngine
from graphvault.exceptions import (
    ConflictError,
    GraphVaultError,
    NotFound,
    SerializationError,
    StorageError,
    ValidationError,
)
from graphvault.routes import graph as graph_router
from graphvault.routes import snapshots as snapshots_router

logger = logging.getLogger("uvicorn.error")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the engine (pool + migrations) on startup, close it on shutdown."""
    settings = getattr(app.state, "settings", None) or GraphVaultConfig.from_env()
    logger.info("Starting lifespan with DB_PATH: %s", settings.db_path)
    engine = await GraphVaultEngine.open(settings)
    app.state.engine = engine
    try:
        yield
    finally:
        await engine.close()
        app.state.engine = None


def create_app(settings: GraphVaultConfig | None = None) -> FastAPI:
    """Build the application; ``settings`` defaults to the environment."""
    app = FastAPI(
        title="GRAPHVAULT — Service Graph API",
        description="Atomic bulk synchronization and versioned snapshots "
        "of service-dependency graphs.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings

    origins = list(settings.allowed_origins) if settings else config.ALLOWED_ORIGINS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "X-Actor-Id"],
    )

    # ─── Exception Handlers ──────────────────────────────────────────

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
        return JSONResponse(status_code=422, content={"error": "Validation failed", "detail": str(exc)})

    @app.exception_handler(NotFound)
    async def not_found_handler(request: Request, exc: NotFound) -> JSONResponse:
        return JSONResponse(status_code=404, content={"error": "Not found", "detail": str(exc)})

    @app.exception_handler(ConflictError)
    async def conflict_handler(request: Request, exc: ConflictError) -> JSONResponse:
        return JSONResponse(status_code=409, content={"error": "Conflict", "detail": str(exc)})

    @app.exception_handler(StorageError)
    async def storage_error_handler(request: Request, exc: StorageError) -> JSONResponse:
        logger.error("Storage error: %s", exc.__cause__ or exc)
        return JSONResponse(status_code=500, content={"error": "Internal database error"})

    @app.exception_handler(SerializationError)
    async def serialization_error_handler(request: Request, exc: SerializationError) -> JSONResponse:
        logger.error("Serialization error: %s", exc)
        return JSONResponse(status_code=500, content={"error": "Snapshot data is unreadable"})

    @app.exception_handler(GraphVaultError)
    async def graphvault_error_handler(request: Request, exc: GraphVaultError) -> JSONResponse:
        logger.error("Unhandled engine error: %s", exc, exc_info=True)
        return JSONResponse(status_code=500, content={"error": "An unexpected server error occurred."})

    # ─── Routes ──────────────────────────────────────────────────────

    @app.get("/health", tags=["health"])
    async def health_check(request: Request) -> dict:
        """Simple status check for load balancers."""
        healthy = await request.app.state.engine.health_check()
        return {
            "status": "healthy" if healthy else "degraded",
            "version": __version__,
        }

    app.include_router(graph_router.router)
    app.include_router(snapshots_router.router)
    return app


app = create_app()
