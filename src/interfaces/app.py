"""
FastAPI Application Factory
===========================

Builds the web component of the application context.

The lifespan here only logs: engines, listeners and hooks are created and
released by the application context, not by the web framework.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.auditing.infrastructure import AuditingRegistration
from src.config import Settings
from src.core import ApplicationException
from src.infrastructure.database import Database
from src.interfaces.controllers import router as host_router
from src.shared.api.middleware import (
    AuditorMiddleware,
    CorrelationIDMiddleware,
    LoggingMiddleware,
    application_exception_handler,
    global_exception_handler,
)
from src.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    settings: Settings = app.state.settings
    logger.info("Accepting requests", extra={
        "version": settings.app_version,
        "environment": settings.environment
    })

    yield  # Application runs here

    logger.info("No longer accepting requests")


def create_app(
    settings: Settings,
    database: Database,
    auditing: Optional[AuditingRegistration] = None
) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        settings: Loaded settings
        database: Connected database component
        auditing: Auditing registration, None when auditing is disabled

    Returns:
        FastAPI: Application with middleware, handlers and routes installed
    """
    app = FastAPI(
        title="E-Commerce REST API",
        description="E-commerce REST API service.",
        version=settings.app_version,
        docs_url="/docs",
        redoc_url="/redoc",
        debug=settings.debug,
        lifespan=lifespan
    )

    app.state.settings = settings
    app.state.database = database
    app.state.auditing = auditing

    # === CORS Middleware ===
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Added last runs first: correlation id, then logging, then actor binding
    app.add_middleware(AuditorMiddleware, header_name=settings.auditor_header)
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(CorrelationIDMiddleware)
    app.add_exception_handler(ApplicationException, application_exception_handler)
    app.add_exception_handler(Exception, global_exception_handler)

    app.include_router(host_router)

    return app
