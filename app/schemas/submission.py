"""Pydantic schemas for submission endpoints (camelCase on the wire)."""
from datetime import datetime
from typing import List, Optional
from uuid import UUID
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from app.models.enums import ClaimStatus, SubmissionMethod

ESTIMATED_PROCESSING_TIME = {
    SubmissionMethod.ELECTRONIC: "3-5 business days",
    SubmissionMethod.DOCUMENT: "7-14 business days",
}


class CamelModel(BaseModel):
    """Base for camelCase request/response bodies."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class InsurerInfoRequest(CamelModel):
    """Insurer details supplied with a submission."""

    name: str = Field(..., min_length=1, max_length=255)
    payer_code: Optional[str] = Field(None, max_length=50)
    address: Optional[str] = Field(None, max_length=500)
    member_id: Optional[str] = Field(None, max_length=100)
    group_id: Optional[str] = Field(None, max_length=100)


class SubmitClaimRequest(CamelModel):
    """Schema for POST /claims/{id}/submit."""

    method: SubmissionMethod = SubmissionMethod.ELECTRONIC
    insurer_info: Optional[InsurerInfoRequest] = None
    notes: Optional[str] = Field(None, max_length=2000)

    @field_validator("method", mode="before")
    @classmethod
    def accept_pdf_alias(cls, v):
        """Older clients send "pdf" for the claim-form path."""
        if isinstance(v, str) and v.lower() == "pdf":
            return SubmissionMethod.DOCUMENT
        return v


class FallbackDocumentResponse(CamelModel):
    """Claim form generated for manual submission."""

    id: str
    locator: str


class SubmitClaimResponse(CamelModel):
    """Schema for a successful submission."""

    claim_id: str
    submission_id: str
    method: SubmissionMethod
    status: ClaimStatus
    submitted_at: datetime
    confirmation_number: Optional[str] = None
    tracking_number: Optional[str] = None
    provider_name: Optional[str] = None
    fallback_used: bool
    fallback_document: Optional[FallbackDocumentResponse] = None
    estimated_processing_time: str
    message: str


class SubmissionRecordResponse(CamelModel):
    """Schema for a stored submission record."""

    id: UUID
    submission_id: str
    claim_id: UUID
    method: SubmissionMethod
    original_method: SubmissionMethod
    provider_name: Optional[str]
    confirmation_number: Optional[str]
    tracking_number: Optional[str]
    fallback_used: bool
    fallback_document_id: Optional[str]
    fallback_document_locator: Optional[str]
    supersedes_id: Optional[UUID]
    submitted_at: datetime


class SubmissionStatusResponse(CamelModel):
    """Schema for GET /claims/{id}/submission-status."""

    claim_id: str
    status: ClaimStatus
    can_resubmit: bool
    submitted_at: Optional[datetime] = None
    active_submission: Optional[SubmissionRecordResponse] = None


class SubmissionListResponse(CamelModel):
    """Submission lineage of a claim, newest first."""

    claim_id: str
    submissions: List[SubmissionRecordResponse]
