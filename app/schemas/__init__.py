"""Pydantic schemas for request/response validation."""
from app.schemas.claim import (
    ClaimCreate,
    ClaimResponse,
    DocumentCreate,
    DocumentResponse,
    StatusUpdateRequest,
    TimelineEventResponse,
)
from app.schemas.submission import (
    InsurerInfoRequest,
    SubmitClaimRequest,
    SubmitClaimResponse,
    SubmissionRecordResponse,
    SubmissionStatusResponse,
    SubmissionListResponse,
)
from app.schemas.pagination import ClaimPage, PageInfo, page_window

__all__ = [
    # Claim schemas
    "ClaimCreate",
    "ClaimResponse",
    "DocumentCreate",
    "DocumentResponse",
    "StatusUpdateRequest",
    "TimelineEventResponse",
    # Submission schemas
    "InsurerInfoRequest",
    "SubmitClaimRequest",
    "SubmitClaimResponse",
    "SubmissionRecordResponse",
    "SubmissionStatusResponse",
    "SubmissionListResponse",
    # Pagination schemas
    "ClaimPage",
    "PageInfo",
    "page_window",
]
