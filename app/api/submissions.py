"""Claim submission API endpoints."""
from typing import Optional
from uuid import UUID
from fastapi import APIRouter, Depends, Request
from fastapi.responses import FileResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import get_db
from app.dependencies.submission import get_document_generator, get_submission_orchestrator
from app.exceptions import ResourceNotFoundException
from app.gateways.base import InsurerInfo
from app.models.enums import SubmissionMethod
from app.schemas.submission import (
    ESTIMATED_PROCESSING_TIME,
    FallbackDocumentResponse,
    SubmitClaimRequest,
    SubmitClaimResponse,
    SubmissionListResponse,
    SubmissionRecordResponse,
    SubmissionStatusResponse,
)
from app.services.claim_service import ClaimService
from app.services.fallback_document import ClaimFormPdfGenerator, FallbackDocumentGenerator
from app.services.submission_orchestrator import SubmissionOrchestrator, SubmissionOutcome
from app.utils.logging_config import get_logger
from app.utils.rate_limit import limiter

router = APIRouter(prefix="/claims", tags=["submissions"])
logger = get_logger(__name__)


def outcome_message(outcome: SubmissionOutcome) -> str:
    """User-facing summary of how the claim went out."""
    if outcome.method == SubmissionMethod.ELECTRONIC:
        return f"Claim submitted electronically to {outcome.provider_name}"
    if outcome.fallback_used:
        return "Electronic submission failed, but a claim form was generated for manual submission"
    return "Claim form generated successfully"


@router.post("/{claim_id}/submit", response_model=SubmitClaimResponse)
@limiter.limit(settings.RATE_LIMIT_SUBMIT)
async def submit_claim(
    request: Request,
    claim_id: UUID,
    body: Optional[SubmitClaimRequest] = None,
    orchestrator: SubmissionOrchestrator = Depends(get_submission_orchestrator),
):
    """
    Submit a draft or rejected claim to the insurer.

    Clearinghouses are tried in priority order; if none accepts the claim a
    claim form is generated for manual submission instead. With
    ``method: "document"`` the clearinghouses are skipped.

    Args:
        claim_id: Claim UUID
        body: Submission method, insurer details and notes
        orchestrator: Submission orchestrator

    Returns:
        Submission outcome
    """
    body = body or SubmitClaimRequest()
    insurer_info = None
    if body.insurer_info is not None:
        insurer_info = InsurerInfo(
            name=body.insurer_info.name,
            payer_code=body.insurer_info.payer_code,
            address=body.insurer_info.address,
            member_id=body.insurer_info.member_id,
            group_id=body.insurer_info.group_id,
        )

    outcome = await orchestrator.submit(
        claim_id,
        requested_method=body.method,
        insurer_info=insurer_info,
        notes=body.notes,
    )

    document = outcome.fallback_document
    return SubmitClaimResponse(
        claim_id=outcome.claim_id,
        submission_id=outcome.submission_id,
        method=outcome.method,
        status=outcome.status,
        submitted_at=outcome.submitted_at,
        confirmation_number=outcome.confirmation_number,
        tracking_number=outcome.tracking_number,
        provider_name=outcome.provider_name,
        fallback_used=outcome.fallback_used,
        fallback_document=(
            FallbackDocumentResponse(id=document.document_id, locator=document.locator)
            if document else None
        ),
        estimated_processing_time=ESTIMATED_PROCESSING_TIME[outcome.method],
        message=outcome_message(outcome),
    )


@router.get("/{claim_id}/submission-status", response_model=SubmissionStatusResponse)
async def get_submission_status(
    claim_id: UUID,
    db: AsyncSession = Depends(get_db),
):
    """
    Get the claim's current status and whether it can be (re)submitted.

    Args:
        claim_id: Claim UUID
        db: Database session

    Returns:
        Status, resubmission flag and the active submission record
    """
    claim_service = ClaimService(db)
    claim, can_resubmit, active = await claim_service.get_submission_status(claim_id)
    return SubmissionStatusResponse(
        claim_id=str(claim.id),
        status=claim.status,
        can_resubmit=can_resubmit,
        submitted_at=claim.submitted_at,
        active_submission=SubmissionRecordResponse.model_validate(active) if active else None,
    )


@router.get("/{claim_id}/submissions", response_model=SubmissionListResponse)
async def list_submissions(
    claim_id: UUID,
    db: AsyncSession = Depends(get_db),
):
    """
    List every submission of the claim, newest (active) first.

    Args:
        claim_id: Claim UUID
        db: Database session

    Returns:
        Submission records
    """
    claim_service = ClaimService(db)
    records = await claim_service.get_submissions(claim_id)
    return SubmissionListResponse(
        claim_id=str(claim_id),
        submissions=[SubmissionRecordResponse.model_validate(record) for record in records],
    )


@router.get("/{claim_id}/submissions/{submission_id}/document")
async def download_claim_form(
    claim_id: UUID,
    submission_id: str,
    db: AsyncSession = Depends(get_db),
    generator: FallbackDocumentGenerator = Depends(get_document_generator),
):
    """
    Download the claim form generated for a submission.

    Args:
        claim_id: Claim UUID
        submission_id: Submission ID
        db: Database session
        generator: Claim-form generator that stored the file

    Returns:
        The claim form PDF
    """
    claim_service = ClaimService(db)
    record = await claim_service.get_submission(claim_id, submission_id)

    if not record.fallback_document_id or not isinstance(generator, ClaimFormPdfGenerator):
        raise ResourceNotFoundException("Claim form", submission_id, code="DOCUMENT_NOT_FOUND")

    path = generator.path_for(str(claim_id), submission_id)
    if not path.exists():
        logger.warning(
            f"Claim form missing from storage for submission {submission_id}",
            extra={"extra_fields": {"claim_id": str(claim_id), "path": str(path)}}
        )
        raise ResourceNotFoundException("Claim form", submission_id, code="DOCUMENT_NOT_FOUND")

    return FileResponse(
        path,
        media_type="application/pdf",
        filename=f"claim_form_{submission_id}.pdf",
    )
