"""Celery tasks for submission events."""
from typing import Any, Dict

from app.celery_app import celery_app
from app.utils.logging_config import get_logger

logger = get_logger(__name__)


@celery_app.task(
    name="app.tasks.submission_tasks.publish_submission_event",
    bind=True,  # Bind task instance as first argument
    max_retries=3,
    default_retry_delay=30,
    autoretry_for=(Exception,),
    retry_backoff=True,
    retry_backoff_max=600,
    retry_jitter=True,
)
def publish_submission_event(self, event: Dict[str, Any]) -> Dict[str, Any]:
    """
    Deliver a submission outcome to downstream consumers.

    The event is written to the structured log stream, which notification
    and analytics consumers tail.

    Args:
        event: Event payload built by SubmissionEventPublisher

    Returns:
        Delivery status
    """
    logger.info(
        f"Submission event: {event.get('event_type')} for claim {event.get('claim_id')}",
        extra={"extra_fields": {
            "task_id": self.request.id,
            "attempt": self.request.retries + 1,
            **event,
        }},
    )
    return {
        "status": "delivered",
        "event_type": event.get("event_type"),
        "claim_id": event.get("claim_id"),
    }
