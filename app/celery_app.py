"""Celery application configuration."""
from celery import Celery

from app.config import settings

# Create Celery app
celery_app = Celery(
    "claimrelay",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=["app.tasks.submission_tasks"],
)

# Celery configuration
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=settings.CELERY_TASK_TIME_LIMIT,  # Hard timeout from config
    task_soft_time_limit=settings.CELERY_TASK_SOFT_TIME_LIMIT,  # Soft timeout from config
    worker_prefetch_multiplier=4,  # How many tasks worker prefetches
    worker_max_tasks_per_child=1000,  # Restart worker after N tasks (prevents memory leaks)
    task_acks_late=True,  # Acknowledge task after execution (safer)
    task_reject_on_worker_lost=True,  # Reject task if worker crashes
    result_expires=3600,  # Task results expire after 1 hour
)

if __name__ == "__main__":
    celery_app.start()
