"""Best-effort publication of submission outcomes."""
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from app.config import settings
from app.utils.logging_config import get_logger

logger = get_logger(__name__)

SUBMISSION_SUCCEEDED = "submission.succeeded"
SUBMISSION_FAILED = "submission.failed"


class SubmissionEventPublisher:
    """
    Enqueues submission events for background delivery.

    Publishing happens after the submission is committed. A broker outage
    is logged and never turns a completed submission into a failure.
    """

    def __init__(self, task=None, enabled: Optional[bool] = None):
        """
        Args:
            task: Celery task to enqueue; defaults to publish_submission_event
            enabled: Override SUBMISSION_EVENTS_ENABLED
        """
        self._task = task
        self.enabled = settings.SUBMISSION_EVENTS_ENABLED if enabled is None else enabled

    def _get_task(self):
        if self._task is None:
            from app.tasks.submission_tasks import publish_submission_event
            self._task = publish_submission_event
        return self._task

    def publish(self, event_type: str, claim_id: str, **fields: Any) -> bool:
        """
        Enqueue an event.

        Returns:
            True if the event was handed to the broker
        """
        if not self.enabled:
            return False

        event: Dict[str, Any] = {
            "event_type": event_type,
            "claim_id": claim_id,
            "occurred_at": datetime.now(timezone.utc).isoformat(),
            **fields,
        }
        try:
            self._get_task().delay(event)
        except Exception as e:
            logger.warning(
                f"Could not publish {event_type} for claim {claim_id}: {str(e)}",
                extra={"extra_fields": {"claim_id": claim_id, "event_type": event_type}},
            )
            return False
        return True

    def submission_succeeded(
        self,
        claim_id: str,
        submission_id: str,
        method: str,
        provider_name: Optional[str],
        fallback_used: bool,
    ) -> bool:
        return self.publish(
            SUBMISSION_SUCCEEDED,
            claim_id,
            submission_id=submission_id,
            method=method,
            provider_name=provider_name,
            fallback_used=fallback_used,
        )

    def submission_failed(self, claim_id: str, error_code: str, attempts: list) -> bool:
        return self.publish(
            SUBMISSION_FAILED,
            claim_id,
            error_code=error_code,
            attempts=attempts,
        )
