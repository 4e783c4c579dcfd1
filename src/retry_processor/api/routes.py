"""
Operational API routes: service info and health.
"""

import structlog
from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from retry_processor import __version__
from retry_processor.api.dependencies import get_service, get_settings
from retry_processor.api.models import HealthResponse, ServiceInfoResponse
from retry_processor.config import Settings
from retry_processor.service import RetryService

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.get("/", response_model=ServiceInfoResponse)
async def root(settings: Settings = Depends(get_settings)) -> ServiceInfoResponse:
    """Root endpoint with service links."""
    return ServiceInfoResponse(
        service=settings.APP_NAME,
        version=settings.APP_VERSION,
        metrics="/metrics" if settings.PROMETHEUS_ENABLED else None,
    )


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
    responses={
        200: {"description": "Consumer running and dependencies reachable"},
        503: {"description": "Consumer stopped or Redis unreachable"},
    },
)
async def health_check(
    service: RetryService = Depends(get_service),
) -> JSONResponse:
    """
    Report consumer state, delayed backlog and Redis reachability.

    Args:
        service: Running retry service (injected)

    Returns:
        HealthResponse with 200, or 503 when unhealthy
    """
    services = {}
    healthy = service.running

    ping = getattr(service.transport, "ping", None)
    if ping is not None:
        try:
            await ping()
            services["redis"] = "ok"
        except Exception as e:
            services["redis"] = f"unreachable ({type(e).__name__})"
            healthy = False

    try:
        pending = await service.pending_delayed()
    except Exception as e:
        logger.warning("Pending count unavailable", error=str(e))
        pending = None

    response = HealthResponse(
        status="healthy" if healthy else "unhealthy",
        version=__version__,
        consumer_running=service.running,
        scheduler_backend=service.scheduler_backend,
        pending_delayed=pending,
        services=services,
    )

    logger.debug("Health check", status=response.status, services=services)

    return JSONResponse(
        status_code=status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content=response.model_dump(mode="json"),
    )
