"""Claim service layer for business logic."""
import uuid
from typing import Optional, List, Tuple
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import IllegalTransitionException, ResourceNotFoundException
from app.models.claim import Claim
from app.models.document import ClaimDocument
from app.models.enums import ClaimStatus, TimelineEventType
from app.models.submission import SubmissionRecord
from app.models.timeline import ClaimTimelineEvent
from app.repositories.claim_repository import ClaimRepository
from app.schemas.claim import ClaimCreate, DocumentCreate, StatusUpdateRequest
from app.services.claim_lifecycle import claim_lifecycle
from app.utils.logging_config import get_logger

logger = get_logger(__name__)


class ClaimService:
    """Service layer for claim business logic outside of submission."""

    def __init__(self, db: AsyncSession):
        """Initialize service with database session."""
        self.db = db
        self.repository = ClaimRepository(db)
        self.lifecycle = claim_lifecycle

    async def get_claim_or_404(self, claim_id: UUID) -> Claim:
        """
        Get claim by UUID.

        Raises:
            ResourceNotFoundException: If the claim does not exist
        """
        claim = await self.repository.get_claim(claim_id)
        if not claim:
            raise ResourceNotFoundException("Claim", str(claim_id), code="CLAIM_NOT_FOUND")
        return claim

    async def create_claim(self, claim_data: ClaimCreate) -> Claim:
        """
        Create a new draft claim with its CREATED timeline event.

        Args:
            claim_data: Claim creation data

        Returns:
            Created Claim
        """
        claim = Claim(
            id=uuid.uuid4(),
            status=ClaimStatus.DRAFT,
            **claim_data.model_dump(),
        )
        logger.info(
            "Creating draft claim",
            extra={"extra_fields": {
                "claim_id": str(claim.id),
                "user_id": claim_data.user_id,
                "amount_cents": claim_data.amount_cents,
            }}
        )

        try:
            await self.repository.create(claim)
            await self.repository.append_timeline_event(self.lifecycle.creation_event(claim))
            await self.db.commit()
        except Exception as e:
            logger.error(
                f"Failed to create claim: {str(e)}",
                exc_info=True,
                extra={"extra_fields": {"claim_id": str(claim.id)}}
            )
            await self.db.rollback()
            raise

        return await self.repository.get_claim(claim.id, refresh=True)

    async def list_claims(
        self,
        skip: int = 0,
        limit: int = 100,
        status: Optional[ClaimStatus] = None,
        user_id: Optional[str] = None,
    ) -> Tuple[List[Claim], int]:
        """
        Get claims with pagination.

        Returns:
            Tuple of (claims, total count)
        """
        return await self.repository.list_claims(skip=skip, limit=limit, status=status, user_id=user_id)

    async def add_document(self, claim_id: UUID, document_data: DocumentCreate) -> ClaimDocument:
        """
        Attach a supporting document reference and record it on the timeline.

        Args:
            claim_id: Claim UUID
            document_data: Document reference

        Returns:
            Created ClaimDocument
        """
        claim = await self.get_claim_or_404(claim_id)
        document = ClaimDocument(id=uuid.uuid4(), claim_id=claim.id, **document_data.model_dump())
        event = self.lifecycle.note_event(
            claim,
            TimelineEventType.DOCUMENT_ADDED,
            "Document added",
            description=f"{document.document_type.value.replace('_', ' ').title()} uploaded: {document.file_name}",
            metadata={"document_id": str(document.id), "document_type": document.document_type.value},
        )

        try:
            await self.repository.add_document(document)
            await self.repository.append_timeline_event(event)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            f"Document attached to claim {claim.id}",
            extra={"extra_fields": {"claim_id": str(claim.id), "document_type": document.document_type.value}}
        )
        return document

    async def get_timeline(self, claim_id: UUID) -> List[ClaimTimelineEvent]:
        """Get the claim's timeline, oldest first."""
        await self.get_claim_or_404(claim_id)
        return await self.repository.get_timeline(claim_id)

    async def get_submissions(self, claim_id: UUID) -> List[SubmissionRecord]:
        """Get the claim's submission records, newest first."""
        await self.get_claim_or_404(claim_id)
        return await self.repository.list_submissions(claim_id)

    async def get_submission(self, claim_id: UUID, submission_id: str) -> SubmissionRecord:
        """
        Get one submission record of a claim.

        Raises:
            ResourceNotFoundException: If the claim or submission does not exist
        """
        await self.get_claim_or_404(claim_id)
        record = await self.repository.get_submission(claim_id, submission_id)
        if not record:
            raise ResourceNotFoundException("Submission", submission_id, code="SUBMISSION_NOT_FOUND")
        return record

    async def get_submission_status(
        self, claim_id: UUID
    ) -> Tuple[Claim, bool, Optional[SubmissionRecord]]:
        """
        Current status, whether submit may run, and the active submission.

        Returns:
            Tuple of (claim, can_resubmit, active submission or None)
        """
        claim = await self.get_claim_or_404(claim_id)
        active = await self.repository.get_active_submission(claim_id)
        return claim, self.lifecycle.can_resubmit(claim.status), active

    async def change_status(self, claim_id: UUID, request: StatusUpdateRequest) -> Claim:
        """
        Apply a non-submission lifecycle transition.

        Submitted may only be requested here when re-entering from Appealed;
        Draft and Rejected claims go through the submission workflow.

        Args:
            claim_id: Claim UUID
            request: Target status and its supporting fields

        Returns:
            Updated Claim

        Raises:
            IllegalTransitionException: If the edge is not allowed
        """
        claim = await self.get_claim_or_404(claim_id)
        current = ClaimStatus(claim.status)

        if request.status == ClaimStatus.SUBMITTED and current != ClaimStatus.APPEALED:
            raise IllegalTransitionException(
                current.value,
                request.status.value,
                message="Use the submit endpoint to submit a claim",
            )

        cause = request.reason or request.denial_reason or f"Status changed to {request.status.value}"
        metadata = {}
        if request.paid_amount_cents is not None:
            metadata["paid_amount_cents"] = request.paid_amount_cents
        transition = self.lifecycle.transition(claim, request.status, cause, metadata=metadata)

        try:
            if request.status == ClaimStatus.DENIED:
                claim.denial_reason = request.denial_reason
            if request.status == ClaimStatus.PAID:
                claim.paid_amount_cents = request.paid_amount_cents
            updated = await self.repository.update_status(
                claim, transition.new_status, expected_status=transition.previous_status
            )
            if updated is None:
                stored = await self.repository.get_status(claim_id)
                stored_value = ClaimStatus(stored).value if stored else "deleted"
                raise IllegalTransitionException(
                    stored_value,
                    transition.new_status.value,
                    message=f"Claim was changed to '{stored_value}' by another request",
                )
            await self.repository.append_timeline_event(transition.event)
            await self.db.commit()
        except Exception as e:
            logger.error(
                f"Failed to change status of claim {claim_id}: {str(e)}",
                exc_info=True,
                extra={"extra_fields": {"claim_id": str(claim_id)}}
            )
            await self.db.rollback()
            raise

        logger.info(
            f"Claim {claim_id} moved {transition.previous_status.value} -> {transition.new_status.value}",
            extra={"extra_fields": {"claim_id": str(claim_id)}}
        )
        return await self.repository.get_claim(claim_id, refresh=True)
