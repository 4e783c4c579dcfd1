"""
FastAPI application entry point for the retry processor.

The application lifespan builds the RetryService from settings, starts the
consumer and the delay scheduler, and stops both on shutdown.
"""

from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI
from prometheus_fastapi_instrumentator import Instrumentator

from retry_processor.api.middleware import RequestTracingMiddleware
from retry_processor.api.routes import router
from retry_processor.config import get_settings
from retry_processor.logging_config import configure_logging
from retry_processor.persistence.redis_client import RedisClient
from retry_processor.service import RetryService, build_service

logger = structlog.get_logger(__name__)


def create_app(service: Optional[RetryService] = None) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        service: Pre-built RetryService (built from settings when None)

    Returns:
        FastAPI app whose lifespan runs the service
    """
    settings = get_settings()
    configure_logging(settings.LOG_LEVEL, settings.ENVIRONMENT)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        retry_service = service or build_service(settings)
        app.state.service = retry_service

        logger.info(
            "Application startup",
            version=settings.APP_VERSION,
            environment=settings.ENVIRONMENT,
            retry_window_ms=settings.retry_window_ms,
        )
        await retry_service.start()
        try:
            yield
        finally:
            logger.info("Application shutdown")
            await retry_service.stop()
            await RedisClient.close_async_pool()
            logger.info("Application shutdown complete")

    app = FastAPI(
        title="Retry Processor",
        description="Delayed retry and exhaustion reporting for failed HTTP requests",
        version=settings.APP_VERSION,
        lifespan=lifespan,
    )

    app.add_middleware(RequestTracingMiddleware)
    app.include_router(router, tags=["ops"])

    if settings.PROMETHEUS_ENABLED:
        Instrumentator().instrument(app).expose(app)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "retry_processor.main:app",
        host="0.0.0.0",
        port=8000,
    )
