"""Celery tasks for background processing."""
from app.tasks.submission_tasks import publish_submission_event

__all__ = [
    "publish_submission_event",
]
