"""
FastAPI Application: Entry Point

DocuMind document-intelligence API

Architecture:
  - All routes are versioned under /api/v1/
  - Uploads run the full lifecycle synchronously (UPLOADING → PROCESSING →
    COMPLETED | ERROR) before the response is returned
  - Query and search go through one shared CompletionGateway (pooled httpx
    client) that speaks seven provider wire protocols
  - Uniform {error, details} JSON body on all 4xx/5xx

Middleware stack (innermost → outermost):
  1. Request ID + request logging
  2. CORS: all origins in development, configured origins elsewhere
  3. Gzip: compress responses > 1 KB

App-scoped collaborators (gateway, blob store, event sink) are attached to
app.state. create_app() accepts them for tests; the lifespan hook builds
whatever was not supplied and closes what it built.
"""

from __future__ import annotations

import logging
import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from documind.api.v1.analysis import router as analysis_router
from documind.api.v1.documents import router as documents_router
from documind.api.v1.health import router as health_router
from documind.api.v1.query import router as query_router
from documind.api.v1.search import router as search_router
from documind.api.v1.settings import router as settings_router
from documind.core.config import settings
from documind.core.errors import (
    ConfigurationError,
    DocuMindError,
    PersistenceError,
    ProviderError,
    StorageError,
    describe_failure,
)
from documind.db.session import check_db_health, engine, init_models
from documind.events.sink import EventSink, LoggingEventSink, NullEventSink
from documind.llm.gateway import CompletionGateway
from documind.schemas.common import ErrorResponse
from documind.storage.blob import BlobStore, get_blob_store

logger = logging.getLogger(__name__)

logging.basicConfig(
    level=logging.DEBUG if settings.debug else getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)


def _error(status_code: int, error: str, details=None, headers: dict | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=error, details=details).model_dump(mode="json", exclude_none=True),
        headers=headers,
    )


# ---------------------------------------------------------------------------
# Application lifespan: startup / shutdown hooks
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup: ensure the schema, build missing app-scoped collaborators.
    Shutdown: close the gateway we built, dispose the engine pool.
    """
    logger.info(
        "Starting DocuMind | env=%s storage=%s",
        settings.app_env, settings.storage_backend,
    )

    if settings.db_auto_create:
        await init_models()

    db_health = await check_db_health()
    if db_health["status"] != "ok":
        logger.error("Database health check failed at startup: %s", db_health)
    else:
        logger.info("Database: connected")

    owned_gateway: CompletionGateway | None = None
    if getattr(app.state, "gateway", None) is None:
        owned_gateway = app.state.gateway = CompletionGateway()
    if getattr(app.state, "blob_store", None) is None:
        app.state.blob_store = get_blob_store()
    if getattr(app.state, "event_sink", None) is None:
        app.state.event_sink = LoggingEventSink() if settings.log_events else NullEventSink()

    yield

    logger.info("Shutting down DocuMind")
    if owned_gateway is not None:
        await owned_gateway.aclose()
    await engine.dispose()


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------

def create_app(
    gateway:    CompletionGateway | None = None,
    blob_store: BlobStore | None = None,
    event_sink: EventSink | None = None,
) -> FastAPI:
    app = FastAPI(
        title="DocuMind AI",
        description=(
            "Document intelligence API: upload and analyse documents, then query "
            "and search them through a configurable LLM provider."
        ),
        version="1.0.0",
        docs_url="/api/docs" if not settings.is_production else None,
        redoc_url="/api/redoc" if not settings.is_production else None,
        openapi_url="/api/openapi.json" if not settings.is_production else None,
        lifespan=lifespan,
    )
    app.state.gateway    = gateway
    app.state.blob_store = blob_store
    app.state.event_sink = event_sink

    # ----------------------------------------------------------------
    # Middleware (applied in reverse order: last added = outermost)
    # ----------------------------------------------------------------

    app.add_middleware(GZipMiddleware, minimum_size=1024)

    allowed_origins = ["*"] if settings.app_env == "development" else settings.cors_origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=allowed_origins != ["*"],
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type", "X-Request-ID"],
        expose_headers=["X-Request-ID", "Content-Disposition"],
    )

    @app.middleware("http")
    async def request_id_and_logging(request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        start = time.perf_counter()

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start) * 1000
        response.headers["X-Request-ID"] = request_id

        logger.info(
            "HTTP %s %s %d %.1fms | request_id=%s",
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
            request_id,
        )
        return response

    # ----------------------------------------------------------------
    # Exception handlers: uniform {error, details} bodies
    # ----------------------------------------------------------------

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return _error(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        details = [
            {
                "field":   " → ".join(str(loc) for loc in err["loc"]),
                "message": err["msg"],
            }
            for err in exc.errors()
        ]
        return _error(status.HTTP_400_BAD_REQUEST, "Request validation failed", details)

    @app.exception_handler(ConfigurationError)
    async def configuration_error_handler(request: Request, exc: ConfigurationError):
        return _error(status.HTTP_400_BAD_REQUEST, str(exc))

    @app.exception_handler(ProviderError)
    async def provider_error_handler(request: Request, exc: ProviderError):
        summary = describe_failure(exc, "AI provider request failed")
        return _error(summary.http_status, summary.message, summary.details)

    @app.exception_handler(StorageError)
    async def storage_error_handler(request: Request, exc: StorageError):
        logger.error("Storage failure | path=%s: %s", request.url.path, exc)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to upload file to storage", str(exc))

    @app.exception_handler(PersistenceError)
    async def persistence_error_handler(request: Request, exc: PersistenceError):
        logger.error("Persistence failure | path=%s: %s", request.url.path, exc)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Database operation failed", str(exc))

    @app.exception_handler(DocuMindError)
    async def documind_error_handler(request: Request, exc: DocuMindError):
        logger.error("Unhandled DocuMind error | path=%s: %s", request.url.path, exc)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error", str(exc))

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        """Catch-all for unhandled exceptions: never expose stack traces."""
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
        logger.exception(
            "Unhandled exception | path=%s request_id=%s",
            request.url.path, request_id,
        )
        return _error(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Internal server error",
            headers={"X-Request-ID": request_id},
        )

    # ----------------------------------------------------------------
    # Routers
    # ----------------------------------------------------------------

    app.include_router(documents_router, prefix="/api/v1")
    app.include_router(query_router,     prefix="/api/v1")
    app.include_router(search_router,    prefix="/api/v1")
    app.include_router(analysis_router,  prefix="/api/v1")
    app.include_router(settings_router,  prefix="/api/v1")
    app.include_router(health_router,    prefix="/api/v1")

    # Local blob store URLs (/uploads/<key>) are served from upload_dir
    if settings.storage_backend == "local":
        app.mount("/uploads", StaticFiles(directory=settings.upload_dir, check_dir=False), name="uploads")

    return app


# ---------------------------------------------------------------------------
# Application instance (imported by uvicorn)
# ---------------------------------------------------------------------------

app = create_app()


# ---------------------------------------------------------------------------
# Local development entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "documind.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.app_env == "development",
        log_level="debug" if settings.debug else "info",
        access_log=True,
    )
