"""Tests for submission event publication."""
import pytest

from app.services.submission_events import (
    SUBMISSION_FAILED,
    SUBMISSION_SUCCEEDED,
    SubmissionEventPublisher,
)
from app.tasks.submission_tasks import publish_submission_event


class RecordingTask:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.events = []

    def delay(self, event):
        if self.fail:
            raise ConnectionError("broker unreachable")
        self.events.append(event)


@pytest.mark.unit
def test_success_event_is_enqueued():
    task = RecordingTask()
    publisher = SubmissionEventPublisher(task=task, enabled=True)

    assert publisher.submission_succeeded("claim-1", "SUB-1", "electronic", "Primary Health Exchange", False)

    event = task.events[0]
    assert event["event_type"] == SUBMISSION_SUCCEEDED
    assert event["claim_id"] == "claim-1"
    assert event["submission_id"] == "SUB-1"
    assert event["provider_name"] == "Primary Health Exchange"
    assert event["fallback_used"] is False
    assert "occurred_at" in event


@pytest.mark.unit
def test_failure_event_is_enqueued():
    task = RecordingTask()
    publisher = SubmissionEventPublisher(task=task, enabled=True)
    attempts = [{"provider": "A", "outcome": "retryable_failure", "error_code": "NETWORK_ERROR", "retryable": True}]

    publisher.submission_failed("claim-1", "SUBMISSION_FAILED", attempts)

    assert task.events[0]["event_type"] == SUBMISSION_FAILED
    assert task.events[0]["attempts"] == attempts


@pytest.mark.unit
def test_broker_outage_is_swallowed():
    publisher = SubmissionEventPublisher(task=RecordingTask(fail=True), enabled=True)

    assert publisher.publish(SUBMISSION_SUCCEEDED, "claim-1") is False


@pytest.mark.unit
def test_disabled_publisher_does_nothing():
    task = RecordingTask()
    publisher = SubmissionEventPublisher(task=task, enabled=False)

    assert publisher.publish(SUBMISSION_SUCCEEDED, "claim-1") is False
    assert task.events == []


@pytest.mark.unit
def test_task_reports_delivery():
    result = publish_submission_event.apply(
        args=({"event_type": SUBMISSION_SUCCEEDED, "claim_id": "claim-1"},)
    ).get()

    assert result == {"status": "delivered", "event_type": SUBMISSION_SUCCEEDED, "claim_id": "claim-1"}
