"""
Custody Ledger - audit trail, chain of custody and evidence packaging.

FastAPI application entry point.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from custody import __version__
from custody.api.routes import audit_router, documents_router, evidence_router
from custody.audit import AuditDiagnostics
from custody.config import settings
from custody.db import create_engine, create_session_factory
from custody.exceptions import (
    DuplicateCertificateError,
    IntegrityError,
    LimitExceededError,
    NotFoundError,
    StatusTransitionError,
    ValidationError,
)
from custody.store import LocalDocumentStorage
from custody.store.base import DocumentStorage, EntityStore, EventStore
from custody.store.sql import SQLEntityStore, SQLEventStore

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the SQL stores unless backends were injected."""
    logger.info("Starting custody ledger...")

    engine = None
    if app.state.events is None or app.state.entities is None:
        engine = create_engine()
        session_factory = create_session_factory(engine)
        app.state.events = app.state.events or SQLEventStore(session_factory)
        app.state.entities = app.state.entities or SQLEntityStore(session_factory)
    if app.state.storage is None:
        app.state.storage = LocalDocumentStorage(settings.document_storage_root)

    logger.info("Custody ledger started successfully")

    yield

    logger.info("Shutting down custody ledger...")
    if engine is not None:
        await engine.dispose()
    logger.info("Custody ledger shutdown complete")


def _error(status_code: int, error: str, exc: Exception, **extra: Any) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": error, "message": str(exc), **extra},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Map custody errors onto HTTP responses."""

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
        return _error(404, "Not found", exc, resource=exc.resource)

    @app.exception_handler(StatusTransitionError)
    async def transition_handler(request: Request, exc: StatusTransitionError) -> JSONResponse:
        return _error(
            409, "Invalid status transition", exc,
            current=exc.current, requested=exc.requested,
        )

    @app.exception_handler(DuplicateCertificateError)
    async def duplicate_handler(request: Request, exc: DuplicateCertificateError) -> JSONResponse:
        return _error(409, "Duplicate certificate", exc)

    @app.exception_handler(LimitExceededError)
    async def limit_handler(request: Request, exc: LimitExceededError) -> JSONResponse:
        return _error(413, "Result too large", exc, limit=exc.limit)

    @app.exception_handler(ValidationError)
    async def validation_handler(request: Request, exc: ValidationError) -> JSONResponse:
        return _error(422, "Validation error", exc)

    @app.exception_handler(IntegrityError)
    async def integrity_handler(request: Request, exc: IntegrityError) -> JSONResponse:
        logger.warning(f"Integrity failure: {exc}")
        return _error(409, "Integrity check failed", exc)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Handle uncaught exceptions securely."""
        logger.exception(f"Unhandled exception: {exc}")

        # Never expose internal error details in production
        if settings.is_production:
            return JSONResponse(
                status_code=500,
                content={
                    "error": "Internal server error",
                    "message": "An unexpected error occurred. Please contact support.",
                },
            )
        return _error(500, "Internal server error", exc, type=type(exc).__name__)


def create_app(
    events: Optional[EventStore] = None,
    entities: Optional[EntityStore] = None,
    storage: Optional[DocumentStorage] = None,
    diagnostics: Optional[AuditDiagnostics] = None,
) -> FastAPI:
    """
    Build the application.

    Backends passed in are used as-is; missing ones are created from
    settings at startup.
    """
    app = FastAPI(
        title="Custody Ledger",
        description="Audit trail, chain of custody and evidence packaging for legal matters",
        version=__version__,
        lifespan=lifespan,
        # Disable docs in production
        docs_url="/docs" if not settings.is_production else None,
        redoc_url="/redoc" if not settings.is_production else None,
        openapi_url="/openapi.json" if not settings.is_production else None,
    )

    app.state.events = events
    app.state.entities = entities
    app.state.storage = storage
    app.state.diagnostics = diagnostics or AuditDiagnostics()

    register_exception_handlers(app)

    @app.get("/health")
    async def health_check(request: Request) -> dict[str, Any]:
        """Service status plus audit gap counters."""
        audit = request.app.state.diagnostics.snapshot()
        return {
            "status": "healthy" if audit["total_failures"] == 0 else "degraded",
            "version": __version__,
            "audit": audit,
        }

    app.include_router(audit_router, prefix="/api/v1/audit", tags=["audit"])
    app.include_router(documents_router, prefix="/api/v1", tags=["documents"])
    app.include_router(evidence_router, prefix="/api/v1/evidence", tags=["evidence"])

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "custody.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
    )
