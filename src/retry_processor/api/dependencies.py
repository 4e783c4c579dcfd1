"""
FastAPI dependency injection for the retry processor.

The RetryService is created by the application lifespan and kept on
app.state; routes reach it through get_service().
"""

from fastapi import HTTPException, Request, status

from retry_processor.config import Settings
from retry_processor.config import get_settings as _load_settings
from retry_processor.service import RetryService


def get_settings() -> Settings:
    """
    Get settings singleton.

    Returns:
        Settings instance
    """
    return _load_settings()


def get_service(request: Request) -> RetryService:
    """
    Get the RetryService attached to the running application.

    Raises:
        HTTPException: 503 if the lifespan has not created a service yet
    """
    service = getattr(request.app.state, "service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Retry service not initialized",
        )
    return service
