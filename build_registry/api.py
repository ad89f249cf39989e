"""
FastAPI application for the build registry.
"""

from __future__ import annotations

import importlib.metadata
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Optional

import httpx
import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import Settings, get_settings
from .errors import RegistryError
from .logging_config import configure_logging
from .routes import router
from .storage import create_blob_store, create_document_store

logger = structlog.get_logger()


def create_app(
    settings: Optional[Settings] = None,
    http_transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """Create the application; stores are opened in the lifespan.

    ``http_transport`` replaces the network for outgoing webhook calls.
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan manager."""
        configure_logging(settings.log_level, settings.log_format, app=settings.app_name)
        logger.info("registry_starting", environment=settings.environment)

        try:
            database = create_document_store(settings.database_uri)
            storage = create_blob_store(settings.storage_uri)
            await database.init()
            await storage.init()
        except Exception as e:
            logger.error("registry_start_failed", error=str(e))
            raise

        app.state.settings = settings
        app.state.database = database
        app.state.storage = storage
        app.state.http_transport = http_transport
        logger.info("registry_started", database=database.name, storage=storage.name)

        yield

        logger.info("registry_stopped")

    app = FastAPI(
        title=settings.app_name,
        description="Registry of Storybook builds, labels and artifacts",
        version=importlib.metadata.version("build-registry"),
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RegistryError)
    async def registry_error_handler(request: Request, exc: RegistryError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("request_failed", path=request.url.path, code=exc.code, error=exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.get("/health", tags=["system"])
    async def health() -> dict:
        """Basic health check endpoint."""
        return {"status": "ok"}

    @app.get("/version", tags=["system"])
    def version() -> dict[str, str]:
        """Return the version of the application."""
        return {"version": importlib.metadata.version("build-registry")}

    app.include_router(router)
    return app
