"""
Electronic submission attempt policy.

Providers are tried one at a time in priority order:

- Success: stop, the claim went out electronically.
- Retryable failure (timeout, network, rate limit, unavailable): try the
  next provider; when none remain, fall back to the claim-form path.
- Non-retryable failure (the claim data was rejected): every provider would
  reject it the same way, so skip the rest and fall back immediately.

The whole electronic phase shares one deadline. Once it is spent, remaining
providers are skipped and the claim falls back.
"""
import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence

from app.exceptions import ClaimValidationException
from app.gateways.base import ClaimPayload, ProviderGateway, ProviderSubmissionResult, order_by_priority
from app.models.claim import Claim
from app.services.claim_validation import validate_claim_completeness
from app.utils.logging_config import get_logger

logger = get_logger(__name__)


class AttemptOutcome(str, Enum):
    """Classification of a single provider attempt."""
    SUCCESS = "success"
    RETRYABLE_FAILURE = "retryable_failure"
    NON_RETRYABLE_FAILURE = "non_retryable_failure"


class PolicyAction(str, Enum):
    """What the policy does after an attempt."""
    STOP_ELECTRONIC = "stop_electronic"
    TRY_NEXT_PROVIDER = "try_next_provider"
    FALL_BACK = "fall_back"


class FallbackReason(str, Enum):
    """Why the electronic phase ended without success."""
    NO_PROVIDERS = "no_providers"
    PROVIDERS_EXHAUSTED = "providers_exhausted"
    NON_RETRYABLE_FAILURE = "non_retryable_failure"
    DEADLINE_EXCEEDED = "deadline_exceeded"


@dataclass
class ProviderAttempt:
    """Record of one provider attempt, kept for the attempt history."""

    provider_name: str
    outcome: AttemptOutcome
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    confirmation_number: Optional[str] = None
    tracking_number: Optional[str] = None
    latency_ms: float = 0.0

    @property
    def retryable(self) -> bool:
        return self.outcome == AttemptOutcome.RETRYABLE_FAILURE

    def summary(self) -> Dict[str, Any]:
        """Caller-safe view: no raw provider error text."""
        return {
            "provider": self.provider_name,
            "outcome": self.outcome.value,
            "error_code": self.error_code,
            "retryable": self.retryable,
        }


@dataclass
class PolicyDecision:
    """Result of the electronic phase."""

    attempts: List[ProviderAttempt] = field(default_factory=list)
    fallback_reason: Optional[FallbackReason] = None

    @property
    def succeeded(self) -> bool:
        return bool(self.attempts) and self.attempts[-1].outcome == AttemptOutcome.SUCCESS

    @property
    def winning_attempt(self) -> Optional[ProviderAttempt]:
        return self.attempts[-1] if self.succeeded else None

    def attempt_summaries(self) -> List[Dict[str, Any]]:
        return [attempt.summary() for attempt in self.attempts]


def classify_result(result: ProviderSubmissionResult) -> AttemptOutcome:
    """Map a provider result onto the three attempt outcomes."""
    if result.success:
        return AttemptOutcome.SUCCESS
    if result.retryable:
        return AttemptOutcome.RETRYABLE_FAILURE
    return AttemptOutcome.NON_RETRYABLE_FAILURE


def next_action(outcome: AttemptOutcome, providers_remaining: int) -> PolicyAction:
    """
    Decide what follows an attempt.

    Args:
        outcome: Classification of the attempt just made
        providers_remaining: Providers not yet tried

    Returns:
        The action to take next
    """
    if outcome == AttemptOutcome.SUCCESS:
        return PolicyAction.STOP_ELECTRONIC
    if outcome == AttemptOutcome.RETRYABLE_FAILURE and providers_remaining > 0:
        return PolicyAction.TRY_NEXT_PROVIDER
    return PolicyAction.FALL_BACK


class SubmissionAttemptPolicy:
    """Drives the ordered provider attempts for one submission."""

    def __init__(
        self,
        gateways: Sequence[ProviderGateway],
        deadline_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            gateways: Clearinghouse gateways (sorted by priority here)
            deadline_seconds: Optional cap on the electronic phase; never
                longer than the sum of the provider timeouts
            clock: Monotonic clock, injectable for tests
        """
        self.gateways = order_by_priority(list(gateways))
        budget = sum(gateway.timeout_seconds for gateway in self.gateways)
        if deadline_seconds is not None:
            budget = min(budget, deadline_seconds)
        self.deadline_seconds = budget
        self._clock = clock

    def validate(self, claim: Claim) -> None:
        """
        Fail fast on incomplete claims before any provider is contacted.

        Raises:
            ClaimValidationException: With every problem found
        """
        errors = validate_claim_completeness(claim)
        if errors:
            logger.info(
                f"Claim {claim.id} failed completeness validation",
                extra={"extra_fields": {"claim_id": str(claim.id), "errors": errors}},
            )
            raise ClaimValidationException(errors)

    async def run(self, payload: ClaimPayload) -> PolicyDecision:
        """
        Attempt electronic submission across the providers.

        Args:
            payload: Claim payload sent to each provider

        Returns:
            PolicyDecision holding the attempt history and, if the electronic
            phase did not succeed, the reason to fall back
        """
        decision = PolicyDecision()
        if not self.gateways:
            decision.fallback_reason = FallbackReason.NO_PROVIDERS
            return decision

        started = self._clock()
        for index, gateway in enumerate(self.gateways):
            remaining = self.deadline_seconds - (self._clock() - started)
            if remaining <= 0:
                logger.warning(
                    f"Submission deadline of {self.deadline_seconds}s reached; "
                    f"skipping {len(self.gateways) - index} provider(s)",
                    extra={"extra_fields": {"claim_id": payload.claim_id}},
                )
                decision.fallback_reason = FallbackReason.DEADLINE_EXCEEDED
                return decision

            attempt = await self._attempt(gateway, payload, min(gateway.timeout_seconds, remaining))
            decision.attempts.append(attempt)

            action = next_action(attempt.outcome, len(self.gateways) - index - 1)
            if action == PolicyAction.STOP_ELECTRONIC:
                return decision
            if action == PolicyAction.FALL_BACK:
                decision.fallback_reason = (
                    FallbackReason.NON_RETRYABLE_FAILURE
                    if attempt.outcome == AttemptOutcome.NON_RETRYABLE_FAILURE
                    else FallbackReason.PROVIDERS_EXHAUSTED
                )
                return decision

        # Unreachable: the last attempt always resolves to stop or fall back
        decision.fallback_reason = FallbackReason.PROVIDERS_EXHAUSTED
        return decision

    async def _attempt(
        self, gateway: ProviderGateway, payload: ClaimPayload, timeout: float
    ) -> ProviderAttempt:
        """Call one provider under a bounded timeout and classify the outcome."""
        start_time = self._clock()
        try:
            result = await asyncio.wait_for(gateway.submit(payload), timeout=timeout)
        except asyncio.TimeoutError:
            result = ProviderSubmissionResult.failed(
                "NETWORK_TIMEOUT", f"No response within {timeout:.1f}s", retryable=True
            )
        except Exception as e:
            logger.error(
                f"Provider {gateway.name} raised during submission: {str(e)}",
                exc_info=True,
                extra={"extra_fields": {"claim_id": payload.claim_id, "provider": gateway.name}},
            )
            result = ProviderSubmissionResult.failed("SUBMISSION_ERROR", str(e), retryable=True)

        latency_ms = round((self._clock() - start_time) * 1000, 2)
        outcome = classify_result(result)
        attempt = ProviderAttempt(
            provider_name=gateway.name,
            outcome=outcome,
            error_code=result.error_code,
            error_message=result.error_message,
            confirmation_number=result.confirmation_number,
            tracking_number=result.tracking_number,
            latency_ms=latency_ms,
        )

        log = logger.info if outcome == AttemptOutcome.SUCCESS else logger.warning
        log(
            f"Provider attempt {gateway.name}: {outcome.value}",
            extra={"extra_fields": {
                "claim_id": payload.claim_id,
                "submission_id": payload.submission_id,
                "provider": gateway.name,
                "outcome": outcome.value,
                "error_code": result.error_code,
                "error_message": result.error_message,
                "latency_ms": latency_ms,
            }},
        )
        return attempt
