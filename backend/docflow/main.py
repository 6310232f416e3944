"""
docflow - Main FastAPI Application

This is the entry point for the FastAPI application.
It wires the workflow engine, configures middleware, routes, and lifecycle
handlers.
"""

from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config.settings import Settings, get_settings
from .api.routes import api_router
from .api.middleware import CorrelationIdMiddleware, register_error_handlers
from .repositories.base import DocumentStore
from .repositories.document_repo import MongoDocumentStore
from .repositories.mongo_client import create_indexes, close_connection, health_check
from .scheduler.sla_scheduler import SlaScheduler
from .services.factory import build_services
from .utils.logger import setup_logging, get_logger

# Setup logging first
setup_logging()
logger = get_logger(__name__)

VERSION = "1.0.0"


# =============================================================================
# Application Lifecycle
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
        - Creates MongoDB indexes (Mongo store only)
        - Starts the SLA scheduler when enabled

    Shutdown:
        - Stops scheduler
        - Closes database connections
    """
    settings: Settings = app.state.settings
    services = app.state.services
    logger.info("Starting docflow...")

    if isinstance(services.store, MongoDocumentStore):
        try:
            await create_indexes(services.store.db, settings.workflow_collections_list)
        except Exception as e:
            logger.error(f"Failed to create indexes: {e}")

    scheduler: Optional[SlaScheduler] = None
    if settings.sla_scheduler_enabled:
        scheduler = SlaScheduler(services.sla_service, settings.sla_check_interval_seconds)
        scheduler.start()

    logger.info("Application started successfully")

    yield

    # Shutdown
    logger.info("Shutting down...")
    if scheduler:
        scheduler.stop()
    if isinstance(services.store, MongoDocumentStore):
        await close_connection()
    logger.info("Application shutdown complete")


# =============================================================================
# Application Factory
# =============================================================================

def create_app(settings: Optional[Settings] = None, store: Optional[DocumentStore] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Settings override (defaults to the cached environment settings)
        store: Document store override, e.g. an InMemoryDocumentStore in tests

    Returns:
        Configured FastAPI application instance
    """
    settings = settings or get_settings()

    application = FastAPI(
        title="docflow",
        description="Document approval workflow engine",
        version=VERSION,
        lifespan=lifespan,
        docs_url="/api/docs" if settings.debug else None,
        redoc_url="/api/redoc" if settings.debug else None,
        openapi_url="/api/openapi.json" if settings.debug else None,
    )
    application.state.settings = settings
    application.state.services = build_services(settings, store=store)

    _configure_middleware(application, settings)
    register_error_handlers(application)
    _configure_routes(application, settings)

    return application


def _configure_middleware(app: FastAPI, settings: Settings) -> None:
    """Configure application middleware."""
    # allow_credentials must be False when allowing all origins
    allow_all = settings.cors_origins.strip() == "*"

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if allow_all else settings.cors_origins_list,
        allow_credentials=not allow_all,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Correlation-Id"],
    )

    app.add_middleware(CorrelationIdMiddleware)


def _configure_routes(app: FastAPI, settings: Settings) -> None:
    """Configure application routes."""
    app.include_router(api_router, prefix="/api/v1")

    @app.get("/health", tags=["Health"])
    async def health():
        """Application health including storage connectivity."""
        if isinstance(app.state.services.store, MongoDocumentStore):
            storage = await health_check(settings)
        else:
            storage = {"status": "healthy", "backend": "memory"}
        return {
            "status": "healthy" if storage.get("status") == "healthy" else "degraded",
            "version": VERSION,
            "environment": settings.environment,
            "storage": storage
        }

    @app.get("/", tags=["Health"])
    async def root():
        """Root endpoint with API information."""
        return {
            "name": "docflow",
            "version": VERSION,
            "docs": "/api/docs" if settings.debug else None
        }


# =============================================================================
# Application Instance
# =============================================================================

app = create_app()
