"""
FastAPI application factory for the DocDB HTTP server.

This module creates the FastAPI app with:
- Document store lifecycle (opened once at startup, closed on shutdown)
- Collection cache and document service in app state
- CORS configuration
- Error translation from DocDbError to JSON responses
- Health endpoint with per-collection document counts
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .._version import __version__
from ..config import ServerConfig
from ..errors import DocDbError
from ..schema import get_collection_cache
from ..service import DocumentService
from ..store import DocumentStore, SqliteDocumentStore
from .config import Settings
from .routes import router

logger = logging.getLogger(__name__)


def _build_store(config: ServerConfig) -> DocumentStore:
    return SqliteDocumentStore(
        data_dir=config.storage.data_dir,
        db_filename=config.storage.db_filename,
        wal_mode=config.storage.wal_mode,
        busy_timeout_ms=config.storage.busy_timeout_ms,
    )


def _error_body(exc: DocDbError) -> dict:
    return {"error": exc.message, "error_code": exc.code, "details": exc.details}


def create_app(
    settings: Settings | None = None,
    config: ServerConfig | None = None,
    store: DocumentStore | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: HTTP settings (loaded from DOCDB_* env vars if omitted)
        config: Server config (loaded from env if omitted)
        store: Document store to use instead of the SQLite store from config

    Returns:
        Configured FastAPI app
    """
    settings = settings or Settings()
    config = config or ServerConfig.from_env()
    store = store or _build_store(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Manage document store lifecycle."""
        await store.connect()
        app.state.store = store
        app.state.settings = settings
        app.state.service = DocumentService(
            get_collection_cache(store),
            default_limit=config.query.default_limit,
        )
        logger.info("DocDB HTTP server started", extra={"version": __version__})

        yield

        await store.close()
        logger.info("DocDB HTTP server stopped")

    app = FastAPI(
        title="DocDB",
        description="Schema-on-request document CRUD service.",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    @app.exception_handler(DocDbError)
    async def docdb_error_handler(request: Request, exc: DocDbError) -> JSONResponse:
        if exc.status >= 500:
            logger.error(
                f"{request.method} {request.url.path} failed: {exc.message}",
                extra={"error_code": exc.code},
                exc_info=exc,
            )
        else:
            logger.info(
                f"{request.method} {request.url.path} rejected: {exc.message}",
                extra={"error_code": exc.code},
            )
        return JSONResponse(status_code=exc.status, content=_error_body(exc))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(f"Unhandled error on {request.method} {request.url.path}", exc_info=exc)
        return JSONResponse(
            status_code=500,
            content={"error": str(exc), "error_code": "INTERNAL", "details": {}},
        )

    # Registered before the document routes so /{document_id} does not shadow it
    @app.get("/health")
    async def health(request: Request):
        stats = await request.app.state.store.get_stats()
        return {"status": "healthy", "service": "docdb", "version": __version__, "collections": stats}

    app.include_router(router)

    return app
