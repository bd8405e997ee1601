"""FastAPI application factory.

Main entry point for the LMS Web API.
"""

from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator

import structlog
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from lms import __version__
from lms.config import load_app_config
from lms.core.errors import LMSError
from lms.db import get_db_path, init_db
from lms.web.routes import (
    analytics_router,
    announcements_router,
    assignments_router,
    books_router,
    checkout_router,
    courses_router,
    enrollments_router,
    health_router,
    help_router,
    meetings_router,
    notifications_router,
    quizzes_router,
    reports_router,
    settings_router,
    subscriptions_router,
    users_router,
    webhooks_router,
    website_router,
)
from lms.web.dependencies import check_maintenance

logger = structlog.get_logger(__name__)


async def lms_error_handler(request: Request, exc: LMSError) -> JSONResponse:
    """Map domain errors to JSON responses."""
    if exc.status_code >= 500:
        logger.error("api_error", path=request.url.path, error=exc.message, status_code=exc.status_code)
    else:
        logger.info("api_rejected", path=request.url.path, error=exc.message, status_code=exc.status_code)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


def create_app(db_path: Path | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        db_path: Database file; defaults to the configured path

    Returns:
        Configured FastAPI app instance
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        path = db_path or load_app_config().get_db_path()
        init_db(path)
        logger.info("api_startup", db_path=str(get_db_path().absolute()), version=__version__)
        yield

    app = FastAPI(
        title="LMS API",
        description="Web API for the learning management system",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
        dependencies=[Depends(check_maintenance)],
    )

    # CORS middleware for browser clients
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(LMSError, lms_error_handler)

    app.include_router(health_router)
    app.include_router(users_router)
    app.include_router(settings_router)
    app.include_router(website_router)
    app.include_router(courses_router)
    app.include_router(enrollments_router)
    app.include_router(quizzes_router)
    app.include_router(assignments_router)
    app.include_router(books_router)
    app.include_router(checkout_router)
    app.include_router(webhooks_router)
    app.include_router(subscriptions_router)
    app.include_router(notifications_router)
    app.include_router(announcements_router)
    app.include_router(help_router)
    app.include_router(meetings_router)
    app.include_router(reports_router)
    app.include_router(analytics_router)

    return app


# Default app instance for uvicorn
app = create_app()
