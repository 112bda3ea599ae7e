"""
TaskFlow API Server

Entry point for the FastAPI application.
"""

import structlog
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api import router as api_router
from app.core.config import get_settings
from app.core.errors import register_exception_handlers
from app.core.logging_config import configure_logging
from app.core.middleware import OriginAllowListMiddleware, SecurityHeadersMiddleware
from app.core.supabase import (
    SupabaseIdentityStore,
    SupabaseRelationalStore,
    create_supabase_client,
)

settings = get_settings()
configure_logging(settings.log_level, settings.log_format)
log = structlog.get_logger()

VERSION = "0.1.0"


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="TaskFlow",
        description="Task tracking for small teams, backed by Supabase.",
        version=VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    register_exception_handlers(app)

    # Middleware (last added runs first)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )
    app.add_middleware(OriginAllowListMiddleware, allowed_origins=settings.allowed_origins)
    app.add_middleware(SecurityHeadersMiddleware)

    app.include_router(api_router, prefix="/api")

    @app.get("/", tags=["System"])
    async def root():
        return {
            "status": "ok",
            "message": "TaskFlow API",
            "version": VERSION,
            "endpoints": [
                "/api/health",
                "/api/database-check",
                "/api/setup",
                "/api/users",
                "/api/tasks",
                "/api/notifications",
            ],
        }

    @app.on_event("startup")
    async def on_startup():
        client = await create_supabase_client(settings)
        app.state.identity_store = SupabaseIdentityStore(client)
        app.state.relational_store = SupabaseRelationalStore(client)
        log.info(
            "server.started",
            supabase_url=settings.supabase_url,
            allowed_origins=settings.allowed_origins,
        )

    @app.on_event("shutdown")
    async def on_shutdown():
        log.info("server.stopping")

    return app


app = create_app()


def serve() -> None:
    """Console entry point: run the app under uvicorn."""
    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level,
        reload=settings.debug,
    )
