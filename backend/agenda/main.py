# backend/agenda/main.py
from __future__ import annotations

from contextlib import asynccontextmanager
import logging
from typing import AsyncGenerator

from fastapi import FastAPI

from . import __version__
from .core.config import is_running_tests, settings
from .core.request_context import configure_logging
from .errors import register_error_handlers
from .middleware.performance import PerformanceMiddleware
from .routes import health
from .routes.v1 import api_v1

configure_logging(settings.log_level)
logger = logging.getLogger(__name__)

API_TITLE = "Agenda Booking API"
API_DESCRIPTION = "Provider availability, slot generation and appointment booking."


@asynccontextmanager
async def app_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup/shutdown."""
    logger.info(f"{API_TITLE} {__version__} starting up...")
    logger.info(f"Environment: {settings.environment}")
    if is_running_tests():
        logger.info("Running under pytest")
    if settings.redis_url:
        logger.info("Cross-process booking lock enabled")
    else:
        logger.info("REDIS_URL not set: booking lock is process-local")
    yield
    logger.info(f"{API_TITLE} shutting down...")


def create_app() -> FastAPI:
    application = FastAPI(
        title=API_TITLE,
        description=API_DESCRIPTION,
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=app_lifespan,
    )
    register_error_handlers(application)
    application.add_middleware(PerformanceMiddleware)

    application.include_router(health.router)
    application.include_router(api_v1, prefix="/api/v1")
    return application


app = create_app()
