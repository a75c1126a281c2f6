"""Claims API endpoints."""
from typing import List, Optional
from uuid import UUID
from fastapi import APIRouter, Depends, status, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.models.enums import ClaimStatus
from app.services.claim_service import ClaimService
from app.schemas.claim import (
    ClaimCreate,
    ClaimResponse,
    DocumentCreate,
    DocumentResponse,
    StatusUpdateRequest,
    TimelineEventResponse,
)
from app.schemas.pagination import MAX_PAGE_SIZE, ClaimPage, page_window
from app.utils.logging_config import get_logger

router = APIRouter(prefix="/claims", tags=["claims"])
logger = get_logger(__name__)


@router.post("/", response_model=ClaimResponse, status_code=status.HTTP_201_CREATED)
async def create_claim(
    claim_data: ClaimCreate,
    db: AsyncSession = Depends(get_db),
):
    """
    Create a draft claim.

    Completeness is not enforced here; it is checked when the claim is submitted.

    Args:
        claim_data: Claim creation data
        db: Database session

    Returns:
        Created claim
    """
    claim_service = ClaimService(db)
    return await claim_service.create_claim(claim_data)


@router.get("/", response_model=ClaimPage)
async def get_all_claims(
    page: int = Query(default=1, ge=1, description="Page number (1-indexed)"),
    page_size: int = Query(default=20, ge=1, le=MAX_PAGE_SIZE, description="Number of claims per page"),
    claim_status: Optional[ClaimStatus] = Query(default=None, alias="status", description="Filter by status"),
    user_id: Optional[str] = Query(default=None, description="Filter by owning user"),
    db: AsyncSession = Depends(get_db),
):
    """
    Get claims with pagination.

    Args:
        page: Page number (1-indexed)
        page_size: Number of items per page (default: 20, max: 100)
        claim_status: Only return claims in this status
        user_id: Only return claims owned by this user
        db: Database session

    Returns:
        Paginated list of claims
    """
    claim_service = ClaimService(db)

    skip, limit = page_window(page, page_size)

    claims, total_count = await claim_service.list_claims(
        skip=skip,
        limit=limit,
        status=claim_status,
        user_id=user_id,
    )

    return ClaimPage.build(
        [ClaimResponse.model_validate(claim) for claim in claims],
        total_items=total_count,
        page=page,
        page_size=page_size,
    )


@router.get("/{claim_id}", response_model=ClaimResponse)
async def get_claim(
    claim_id: UUID,
    db: AsyncSession = Depends(get_db),
):
    """
    Get a claim by UUID.

    Args:
        claim_id: Claim UUID
        db: Database session

    Returns:
        Claim details
    """
    claim_service = ClaimService(db)
    return await claim_service.get_claim_or_404(claim_id)


@router.post(
    "/{claim_id}/documents",
    response_model=DocumentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_document(
    claim_id: UUID,
    document_data: DocumentCreate,
    db: AsyncSession = Depends(get_db),
):
    """
    Attach a supporting document reference (receipt, insurance card, ...).

    Args:
        claim_id: Claim UUID
        document_data: Document type, file name and storage key
        db: Database session

    Returns:
        Created document reference
    """
    claim_service = ClaimService(db)
    return await claim_service.add_document(claim_id, document_data)


@router.get("/{claim_id}/timeline", response_model=List[TimelineEventResponse])
async def get_timeline(
    claim_id: UUID,
    db: AsyncSession = Depends(get_db),
):
    """
    Get the claim's audit timeline, oldest first.

    Args:
        claim_id: Claim UUID
        db: Database session

    Returns:
        Timeline events
    """
    claim_service = ClaimService(db)
    return await claim_service.get_timeline(claim_id)


@router.post("/{claim_id}/status", response_model=ClaimResponse)
async def change_claim_status(
    claim_id: UUID,
    request: StatusUpdateRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Record an insurer-side status change (processing, approved, denied, paid, ...).

    Submitting a draft or rejected claim goes through the submit endpoint instead.

    Args:
        claim_id: Claim UUID
        request: Target status and supporting fields
        db: Database session

    Returns:
        Updated claim
    """
    logger.info(
        f"Status change requested for claim {claim_id}: {request.status.value}",
        extra={"extra_fields": {"claim_id": str(claim_id), "requested_status": request.status.value}}
    )
    claim_service = ClaimService(db)
    return await claim_service.change_status(claim_id, request)
