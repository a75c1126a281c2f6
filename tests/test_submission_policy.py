"""Tests for the electronic submission attempt policy."""
import pytest

from app.exceptions import ClaimValidationException
from app.gateways.base import ClaimPayload
from app.services.submission_policy import (
    AttemptOutcome,
    FallbackReason,
    PolicyAction,
    SubmissionAttemptPolicy,
    classify_result,
    next_action,
)
from tests.conftest import ScriptedGateway, accepted, non_retryable, retryable


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self):
        self.now = 100.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class SlowGateway(ScriptedGateway):
    """Gateway that burns simulated time before answering."""

    def __init__(self, name, clock: FakeClock, elapsed: float, **kwargs):
        super().__init__(name, **kwargs)
        self.clock = clock
        self.elapsed = elapsed

    async def submit(self, payload):
        self.clock.advance(self.elapsed)
        return await super().submit(payload)


@pytest.fixture
def payload():
    return ClaimPayload(
        claim_id="claim-1",
        submission_id="SUB-1",
        provider_name="Downtown Family Clinic",
        date_of_service=None,
        amount_cents=15000,
        cpt_codes=["99213"],
        icd_codes=["J06.9"],
    )


@pytest.mark.unit
def test_classify_result():
    assert classify_result(accepted("C-1")) == AttemptOutcome.SUCCESS
    assert classify_result(retryable()) == AttemptOutcome.RETRYABLE_FAILURE
    assert classify_result(non_retryable()) == AttemptOutcome.NON_RETRYABLE_FAILURE


@pytest.mark.unit
@pytest.mark.parametrize("outcome,remaining,expected", [
    (AttemptOutcome.SUCCESS, 2, PolicyAction.STOP_ELECTRONIC),
    (AttemptOutcome.SUCCESS, 0, PolicyAction.STOP_ELECTRONIC),
    (AttemptOutcome.RETRYABLE_FAILURE, 1, PolicyAction.TRY_NEXT_PROVIDER),
    (AttemptOutcome.RETRYABLE_FAILURE, 0, PolicyAction.FALL_BACK),
    (AttemptOutcome.NON_RETRYABLE_FAILURE, 3, PolicyAction.FALL_BACK),
])
def test_next_action(outcome, remaining, expected):
    assert next_action(outcome, remaining) == expected


@pytest.mark.unit
def test_gateways_are_ordered_by_priority():
    low = ScriptedGateway("Low", priority=5)
    high = ScriptedGateway("High", priority=1)
    tie = ScriptedGateway("Tie", priority=5)

    policy = SubmissionAttemptPolicy([low, high, tie])

    assert [g.name for g in policy.gateways] == ["High", "Low", "Tie"]


@pytest.mark.unit
def test_deadline_is_capped_by_provider_timeouts():
    gateways = [ScriptedGateway("A", timeout_seconds=2), ScriptedGateway("B", timeout_seconds=3)]

    assert SubmissionAttemptPolicy(gateways).deadline_seconds == 5
    assert SubmissionAttemptPolicy(gateways, deadline_seconds=60).deadline_seconds == 5
    assert SubmissionAttemptPolicy(gateways, deadline_seconds=4).deadline_seconds == 4


@pytest.mark.unit
def test_validate_raises_with_all_errors(make_claim):
    policy = SubmissionAttemptPolicy([])

    with pytest.raises(ClaimValidationException) as exc_info:
        policy.validate(make_claim(cpt_codes=[], icd_codes=[]))

    assert exc_info.value.errors == [
        "At least one CPT code is required",
        "At least one ICD-10 code is required",
    ]
    assert exc_info.value.status_code == 400


@pytest.mark.unit
@pytest.mark.asyncio
async def test_no_providers_falls_back_immediately(payload):
    decision = await SubmissionAttemptPolicy([]).run(payload)

    assert decision.attempts == []
    assert not decision.succeeded
    assert decision.fallback_reason == FallbackReason.NO_PROVIDERS


@pytest.mark.unit
@pytest.mark.asyncio
async def test_first_success_stops_further_attempts(payload):
    first = ScriptedGateway("A", accepted("A-1", "T-1"), priority=1)
    second = ScriptedGateway("B", accepted("B-1"), priority=2)

    decision = await SubmissionAttemptPolicy([second, first]).run(payload)

    assert decision.succeeded
    assert decision.winning_attempt.provider_name == "A"
    assert decision.winning_attempt.confirmation_number == "A-1"
    assert decision.winning_attempt.tracking_number == "T-1"
    assert decision.fallback_reason is None
    assert len(first.calls) == 1
    assert second.calls == []


@pytest.mark.unit
@pytest.mark.asyncio
async def test_retryable_failure_moves_to_next_provider(payload):
    first = ScriptedGateway("A", retryable("SERVICE_UNAVAILABLE"), priority=1)
    second = ScriptedGateway("B", accepted("B-1"), priority=2)

    decision = await SubmissionAttemptPolicy([first, second]).run(payload)

    assert decision.succeeded
    assert [a.provider_name for a in decision.attempts] == ["A", "B"]
    assert decision.attempt_summaries() == [
        {"provider": "A", "outcome": "retryable_failure", "error_code": "SERVICE_UNAVAILABLE", "retryable": True},
        {"provider": "B", "outcome": "success", "error_code": None, "retryable": False},
    ]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_non_retryable_failure_skips_remaining_providers(payload):
    first = ScriptedGateway("A", non_retryable("INVALID_PROVIDER_NPI"), priority=1)
    second = ScriptedGateway("B", accepted("B-1"), priority=2)

    decision = await SubmissionAttemptPolicy([first, second]).run(payload)

    assert not decision.succeeded
    assert decision.winning_attempt is None
    assert decision.fallback_reason == FallbackReason.NON_RETRYABLE_FAILURE
    assert second.calls == []


@pytest.mark.unit
@pytest.mark.asyncio
async def test_all_retryable_failures_exhaust_providers(payload):
    gateways = [
        ScriptedGateway("A", retryable("NETWORK_ERROR"), priority=1),
        ScriptedGateway("B", retryable("RATE_LIMIT_EXCEEDED"), priority=2),
    ]

    decision = await SubmissionAttemptPolicy(gateways).run(payload)

    assert decision.fallback_reason == FallbackReason.PROVIDERS_EXHAUSTED
    assert [a.error_code for a in decision.attempts] == ["NETWORK_ERROR", "RATE_LIMIT_EXCEEDED"]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_slow_provider_is_cut_off_as_network_timeout(payload):
    slow = ScriptedGateway("Slow", priority=1, timeout_seconds=0.05, delay=5)
    fast = ScriptedGateway("Fast", accepted("F-1"), priority=2)

    decision = await SubmissionAttemptPolicy([slow, fast]).run(payload)

    assert decision.attempts[0].error_code == "NETWORK_TIMEOUT"
    assert decision.attempts[0].outcome == AttemptOutcome.RETRYABLE_FAILURE
    assert decision.winning_attempt.provider_name == "Fast"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_provider_exception_is_a_retryable_submission_error(payload):
    broken = ScriptedGateway("Broken", priority=1, raises=RuntimeError("socket closed"))
    backup = ScriptedGateway("Backup", accepted("B-1"), priority=2)

    decision = await SubmissionAttemptPolicy([broken, backup]).run(payload)

    assert decision.attempts[0].error_code == "SUBMISSION_ERROR"
    assert decision.attempts[0].error_message == "socket closed"
    assert decision.succeeded


@pytest.mark.unit
@pytest.mark.asyncio
async def test_spent_deadline_skips_remaining_providers(payload):
    clock = FakeClock()
    first = SlowGateway("A", clock, elapsed=4, result=retryable(), priority=1, timeout_seconds=5)
    second = ScriptedGateway("B", accepted("B-1"), priority=2, timeout_seconds=5)

    policy = SubmissionAttemptPolicy([first, second], deadline_seconds=3, clock=clock)
    decision = await policy.run(payload)

    assert decision.fallback_reason == FallbackReason.DEADLINE_EXCEEDED
    assert len(decision.attempts) == 1
    assert second.calls == []


@pytest.mark.unit
@pytest.mark.asyncio
async def test_attempt_records_latency_from_clock(payload):
    clock = FakeClock()
    gateway = SlowGateway("A", clock, elapsed=0.25, result=accepted("A-1"), priority=1)

    decision = await SubmissionAttemptPolicy([gateway], clock=clock).run(payload)

    assert decision.attempts[0].latency_ms == 250.0
