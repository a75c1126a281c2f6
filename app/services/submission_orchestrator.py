"""
Claim submission orchestration.

Flow for one submit request:

    guard acquire -> claim lookup -> resubmittable? -> completeness check
    -> providers in priority order (electronic only) -> claim form if needed
    -> lifecycle transition -> one commit (status, record, timeline event)
    -> verify -> guard release -> best-effort event

Either the claim ends up Submitted with exactly one new SubmissionRecord and
one timeline event, or nothing about it changes.
"""
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, List, Optional, Sequence
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError

from app.config import settings
from app.exceptions import (
    ClaimRelayException,
    DatabaseException,
    FallbackGenerationException,
    IllegalTransitionException,
    ResourceNotFoundException,
    SubmissionFailedException,
)
from app.gateways.base import ClaimPayload, InsurerInfo, ProviderGateway
from app.models.claim import Claim
from app.models.enums import ClaimStatus, SubmissionMethod
from app.models.submission import SubmissionRecord
from app.services.claim_lifecycle import ClaimLifecycle, claim_lifecycle
from app.services.fallback_document import FallbackDocumentGenerator, GeneratedDocument
from app.services.idempotency import IdempotencyGuard
from app.services.submission_events import SubmissionEventPublisher
from app.services.submission_policy import (
    FallbackReason,
    PolicyDecision,
    ProviderAttempt,
    SubmissionAttemptPolicy,
)
from app.utils.logging_config import claim_id_context, get_logger

logger = get_logger(__name__)

FALLBACK_CAUSES = {
    FallbackReason.NO_PROVIDERS: "no clearinghouse is configured",
    FallbackReason.PROVIDERS_EXHAUSTED: "all clearinghouses were unavailable",
    FallbackReason.NON_RETRYABLE_FAILURE: "the clearinghouse rejected the claim data",
    FallbackReason.DEADLINE_EXCEEDED: "the submission deadline was reached",
}


def new_submission_id() -> str:
    """Caller-visible submission identifier."""
    return f"SUB-{uuid.uuid4().hex.upper()}"


@dataclass
class SubmissionOutcome:
    """Result of a successful submit call."""

    claim_id: str
    submission_id: str
    method: SubmissionMethod
    requested_method: SubmissionMethod
    status: ClaimStatus
    submitted_at: datetime
    provider_name: Optional[str] = None
    confirmation_number: Optional[str] = None
    tracking_number: Optional[str] = None
    fallback_used: bool = False
    fallback_reason: Optional[FallbackReason] = None
    fallback_document: Optional[GeneratedDocument] = None
    supersedes_submission_id: Optional[str] = None
    attempts: List[ProviderAttempt] = field(default_factory=list)


class SubmissionOrchestrator:
    """Coordinates one claim submission from guard acquire to commit."""

    def __init__(
        self,
        store,
        guard: IdempotencyGuard,
        gateways: Sequence[ProviderGateway],
        document_generator: FallbackDocumentGenerator,
        lifecycle: ClaimLifecycle = claim_lifecycle,
        event_publisher: Optional[SubmissionEventPublisher] = None,
        deadline_seconds: Optional[float] = None,
        verify_post_write: Optional[bool] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            store: Claim record store (ClaimRepository or equivalent)
            guard: Per-claim in-flight registry
            gateways: Clearinghouse gateways
            document_generator: Claim-form generator for the document path
            lifecycle: Claim state machine
            event_publisher: Receives events after commit; optional
            deadline_seconds: Cap on the electronic phase (SUBMISSION_DEADLINE_SECONDS)
            verify_post_write: Re-read state after commit (VERIFY_POST_WRITE)
            clock: Monotonic clock, injectable for tests
        """
        self.store = store
        self.guard = guard
        self.document_generator = document_generator
        self.lifecycle = lifecycle
        self.event_publisher = event_publisher
        self.verify_post_write = (
            settings.VERIFY_POST_WRITE if verify_post_write is None else verify_post_write
        )
        self.policy = SubmissionAttemptPolicy(
            gateways,
            deadline_seconds=(
                settings.SUBMISSION_DEADLINE_SECONDS if deadline_seconds is None else deadline_seconds
            ),
            clock=clock,
        )

    async def submit(
        self,
        claim_id: UUID,
        requested_method: SubmissionMethod = SubmissionMethod.ELECTRONIC,
        insurer_info: Optional[InsurerInfo] = None,
        notes: Optional[str] = None,
    ) -> SubmissionOutcome:
        """
        Submit a claim to its insurer.

        Args:
            claim_id: Claim UUID
            requested_method: ``electronic`` tries clearinghouses first;
                ``document`` goes straight to the claim form
            insurer_info: Insurer details supplied with the request
            notes: Free-text notes appended to the claim

        Returns:
            SubmissionOutcome describing how the claim went out

        Raises:
            AlreadyInProgressException: Another submission holds this claim
            ResourceNotFoundException: Claim does not exist
            IllegalTransitionException: Claim status does not permit submission,
                or it changed while the submission was in flight
            ClaimValidationException: Claim is incomplete
            SubmissionFailedException: Neither a provider nor the claim form succeeded
            DatabaseException: The submission could not be recorded
        """
        key = str(claim_id)
        token = claim_id_context.set(key)
        try:
            async with self.guard.hold(key):
                return await self._submit(
                    claim_id, SubmissionMethod(requested_method), insurer_info, notes
                )
        finally:
            claim_id_context.reset(token)

    async def _submit(
        self,
        claim_id: UUID,
        requested_method: SubmissionMethod,
        insurer_info: Optional[InsurerInfo],
        notes: Optional[str],
    ) -> SubmissionOutcome:
        claim = await self.store.get_claim(claim_id)
        if claim is None:
            raise ResourceNotFoundException("Claim", str(claim_id), code="CLAIM_NOT_FOUND")

        if not self.lifecycle.can_resubmit(claim.status):
            status = ClaimStatus(claim.status).value
            raise IllegalTransitionException(
                status,
                ClaimStatus.SUBMITTED.value,
                message=f"Claim cannot be submitted while it is '{status}'",
            )

        self.policy.validate(claim)

        previous = await self.store.get_active_submission(claim.id)
        submission_id = new_submission_id()
        logger.info(
            f"Starting {requested_method.value} submission {submission_id}",
            extra={"extra_fields": {
                "claim_id": str(claim.id),
                "submission_id": submission_id,
                "resubmission": previous is not None,
            }},
        )

        if requested_method == SubmissionMethod.ELECTRONIC:
            decision = await self.policy.run(self._build_payload(claim, submission_id, insurer_info))
        else:
            decision = PolicyDecision()

        document = None
        winner = decision.winning_attempt
        if winner is None:
            document = await self._generate_document(claim, submission_id, decision)

        submitted_at = datetime.now(timezone.utc)
        method = SubmissionMethod.ELECTRONIC if winner else SubmissionMethod.DOCUMENT
        fallback_used = requested_method == SubmissionMethod.ELECTRONIC and winner is None
        record = SubmissionRecord(
            id=uuid.uuid4(),
            submission_id=submission_id,
            claim_id=claim.id,
            method=method,
            original_method=requested_method,
            provider_name=winner.provider_name if winner else None,
            confirmation_number=winner.confirmation_number if winner else None,
            tracking_number=winner.tracking_number if winner else None,
            fallback_used=fallback_used,
            fallback_document_id=document.document_id if document else None,
            fallback_document_locator=document.locator if document else None,
            supersedes_id=previous.id if previous else None,
            submitted_at=submitted_at,
        )

        transition = self.lifecycle.transition(
            claim,
            ClaimStatus.SUBMITTED,
            self._describe(winner, decision, requested_method, previous is not None),
            metadata={
                "submission_id": submission_id,
                "method": method.value,
                "provider_name": record.provider_name,
                "confirmation_number": record.confirmation_number,
                "fallback_used": fallback_used,
                "fallback_reason": decision.fallback_reason.value if decision.fallback_reason else None,
                "document_id": record.fallback_document_id,
                "supersedes_submission_id": previous.submission_id if previous else None,
                "attempts": decision.attempt_summaries(),
            },
        )

        claim_key = str(claim.id)
        try:
            await self._persist(claim, transition, record, insurer_info, notes)
        except ClaimRelayException as e:
            if document is not None:
                await self.document_generator.discard(claim_key, submission_id)
            self._publish_failure(claim_key, e.code, decision)
            raise

        if self.verify_post_write:
            try:
                await self._verify(claim.id, submission_id)
            except DatabaseException as e:
                self._publish_failure(claim_key, e.code, decision)
                raise

        logger.info(
            f"Claim submitted via {method.value}",
            extra={"extra_fields": {
                "claim_id": str(claim.id),
                "submission_id": submission_id,
                "provider": record.provider_name,
                "fallback_used": fallback_used,
                "attempt_count": len(decision.attempts),
            }},
        )

        if self.event_publisher is not None:
            self.event_publisher.submission_succeeded(
                str(claim.id), submission_id, method.value, record.provider_name, fallback_used
            )

        return SubmissionOutcome(
            claim_id=str(claim.id),
            submission_id=submission_id,
            method=method,
            requested_method=requested_method,
            status=transition.new_status,
            submitted_at=submitted_at,
            provider_name=record.provider_name,
            confirmation_number=record.confirmation_number,
            tracking_number=record.tracking_number,
            fallback_used=fallback_used,
            fallback_reason=decision.fallback_reason,
            fallback_document=document,
            supersedes_submission_id=previous.submission_id if previous else None,
            attempts=decision.attempts,
        )

    @staticmethod
    def _build_payload(
        claim: Claim, submission_id: str, insurer_info: Optional[InsurerInfo]
    ) -> ClaimPayload:
        if insurer_info is None and claim.insurer_name:
            insurer_info = InsurerInfo(name=claim.insurer_name)
        return ClaimPayload(
            claim_id=str(claim.id),
            submission_id=submission_id,
            provider_name=claim.provider_name,
            date_of_service=claim.date_of_service,
            amount_cents=claim.amount_cents,
            cpt_codes=list(claim.cpt_codes or []),
            icd_codes=list(claim.icd_codes or []),
            provider_npi=claim.provider_npi,
            description=claim.description,
            insurer=insurer_info,
        )

    async def _generate_document(
        self, claim: Claim, submission_id: str, decision: PolicyDecision
    ) -> GeneratedDocument:
        """Produce the claim form, or fail the whole submission without touching state."""
        try:
            return await self.document_generator.generate(claim, submission_id)
        except FallbackGenerationException as e:
            attempts = decision.attempt_summaries()
            logger.error(
                f"Submission {submission_id} failed: claim form could not be generated",
                extra={"extra_fields": {
                    "claim_id": str(claim.id),
                    "submission_id": submission_id,
                    "fallback_error": e.message,
                    "attempts": attempts,
                }},
            )
            self._publish_failure(str(claim.id), SubmissionFailedException.code, decision)
            raise SubmissionFailedException(
                str(claim.id),
                attempts=attempts,
                fallback_error=e.message,
            ) from e

    @staticmethod
    def _describe(
        winner: Optional[ProviderAttempt],
        decision: PolicyDecision,
        requested_method: SubmissionMethod,
        resubmission: bool,
    ) -> str:
        """Human-readable cause recorded on the timeline event."""
        if winner is not None:
            cause = f"Submitted electronically via {winner.provider_name}"
        elif requested_method == SubmissionMethod.DOCUMENT:
            cause = "Claim form generated for manual submission"
        else:
            reason = FALLBACK_CAUSES.get(decision.fallback_reason, "electronic submission failed")
            cause = f"Claim form generated for manual submission because {reason}"
        return f"Resubmission: {cause}" if resubmission else cause

    async def _persist(
        self,
        claim: Claim,
        transition,
        record: SubmissionRecord,
        insurer_info: Optional[InsurerInfo],
        notes: Optional[str],
    ) -> None:
        """Stage status, record and event together and commit once."""
        claim_id = str(claim.id)
        submission_id = record.submission_id
        try:
            updated = await self.store.update_status(
                claim,
                transition.new_status,
                expected_status=transition.previous_status,
                submitted_at=record.submitted_at,
                external_claim_number=record.confirmation_number,
            )
            if updated is None:
                current = await self.store.get_status(claim.id)
                current_value = ClaimStatus(current).value if current else "deleted"
                logger.warning(
                    f"Claim changed to '{current_value}' while submission {submission_id} was in flight",
                    extra={"extra_fields": {"claim_id": claim_id, "submission_id": submission_id}},
                )
                raise IllegalTransitionException(
                    current_value,
                    transition.new_status.value,
                    message=f"Claim was changed to '{current_value}' while the submission was in progress",
                )
            await self.store.update_submission_details(
                claim,
                insurer_name=insurer_info.name if insurer_info else None,
                notes=notes,
            )
            await self.store.save_submission_record(record)
            await self.store.append_timeline_event(transition.event)
            await self.store.commit()
        except SQLAlchemyError as e:
            await self.store.rollback()
            logger.error(
                f"Failed to record submission {submission_id}: {str(e)}",
                exc_info=True,
                extra={"extra_fields": {"claim_id": claim_id, "submission_id": submission_id}},
            )
            raise DatabaseException(
                "The submission could not be recorded. The claim was not changed.",
                operation="commit",
                details={"claim_id": claim_id},
            ) from e
        except Exception:
            await self.store.rollback()
            raise

    def _publish_failure(self, claim_id: str, error_code: str, decision: PolicyDecision) -> None:
        if self.event_publisher is not None:
            self.event_publisher.submission_failed(claim_id, error_code, decision.attempt_summaries())

    async def _verify(self, claim_id: UUID, submission_id: str) -> None:
        """Confirm the committed state before reporting success."""
        stored = await self.store.get_claim(claim_id, refresh=True)
        record = await self.store.get_submission(claim_id, submission_id)
        if stored is None or record is None or ClaimStatus(stored.status) != ClaimStatus.SUBMITTED:
            logger.error(
                f"Post-commit verification failed for submission {submission_id}",
                extra={"extra_fields": {
                    "claim_id": str(claim_id),
                    "status": getattr(stored, "status", None),
                    "record_found": record is not None,
                }},
            )
            raise DatabaseException(
                "The submission could not be verified after saving",
                operation="verify",
                details={"claim_id": str(claim_id), "submission_id": submission_id},
            )
