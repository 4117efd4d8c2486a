"""FastAPI application factory.

Main entry point for the Woodie Campus Web API.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from woodie.config import load_app_config
from woodie.core.scheduler import get_scheduler
from woodie.db.database import init_db
from woodie.web.routes import (
    health_router,
    problems_router,
    reviews_router,
    scheduler_router,
    solutions_router,
)

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Lifespan context manager for startup/shutdown events."""
    # Startup
    config = load_app_config()
    init_db()
    scheduler = get_scheduler()
    if config.scheduler.enabled:
        scheduler.initialize()
    logger.info(
        "api.startup",
        db_path=str(config.db_path),
        scheduler_enabled=config.scheduler.enabled,
        timezone=config.review.timezone,
    )
    yield
    # Shutdown
    scheduler.stop_all()
    logger.info("api.shutdown")


def _envelope(status_code: int, message: str, data=None) -> JSONResponse:
    content = {"success": False, "message": message}
    if data is not None:
        content["data"] = data
    return JSONResponse(status_code=status_code, content=jsonable_encoder(content))


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return _envelope(exc.status_code, str(exc.detail))


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    return _envelope(
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "Invalid request",
        data={"errors": exc.errors()},
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("api.unhandled_error", path=request.url.path, method=request.method)
    return _envelope(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI app instance
    """
    app = FastAPI(
        title="Woodie Campus API",
        description="Spaced-repetition review service for Woodie Campus",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=load_app_config().server.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Error envelope
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    # Include routers
    app.include_router(health_router)
    app.include_router(problems_router)
    app.include_router(solutions_router)
    app.include_router(reviews_router)
    app.include_router(scheduler_router)

    return app


# Default app instance for uvicorn
app = create_app()
