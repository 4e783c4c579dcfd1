"""
FastAPI operational surface for the retry processor.

- routes.py: GET / and GET /health
- dependencies.py: Access to the running RetryService
- middleware.py: Request tracing (request_id in logs and headers)
- models.py: Response models
"""

from retry_processor.api import dependencies, models
from retry_processor.api.routes import router

__all__ = [
    "router",
    "dependencies",
    "models",
]
