"""
Celery tasks for the Celery delay scheduler backend.

- celery_app.py: Celery application configuration (broker, backend, routing)
- release_tasks.py: release_envelope task (publishes a due envelope)
"""

from retry_processor.tasks.celery_app import celery_app
from retry_processor.tasks.release_tasks import release_envelope_task

__all__ = [
    "celery_app",
    "release_envelope_task",
]
