"""Pydantic schemas for Claim endpoints."""
from datetime import datetime, date
from typing import List, Optional
from uuid import UUID
from pydantic import BaseModel, Field, field_validator, model_validator

from app.models.enums import ClaimStatus, DocumentType, TimelineEventType


class ClaimCreate(BaseModel):
    """Schema for creating a new draft claim."""

    user_id: Optional[str] = Field(None, max_length=255, description="Owning user identifier")
    provider_name: Optional[str] = Field(None, max_length=255, description="Healthcare provider name")
    provider_npi: Optional[str] = Field(None, max_length=20, description="Provider NPI")
    insurer_name: Optional[str] = Field(None, max_length=255, description="Insurance company name")
    date_of_service: Optional[date] = Field(None, description="Date when service was provided")
    amount_cents: int = Field(..., ge=0, description="Billed amount in cents")
    cpt_codes: List[str] = Field(default_factory=list, description="CPT procedure codes, in order")
    icd_codes: List[str] = Field(default_factory=list, description="ICD-10 diagnosis codes, in order")
    description: Optional[str] = Field(None, max_length=5000)
    notes: Optional[str] = Field(None, max_length=5000)

    @field_validator("cpt_codes", "icd_codes")
    @classmethod
    def normalize_codes(cls, v: List[str]) -> List[str]:
        """Strip whitespace and upper-case codes; drop empty entries."""
        return [code.strip().upper() for code in v if code and code.strip()]

    model_config = {"from_attributes": True}


class ClaimResponse(BaseModel):
    """Schema for claim response."""

    id: UUID
    user_id: Optional[str]
    status: ClaimStatus
    amount_cents: int
    paid_amount_cents: Optional[int]
    date_of_service: Optional[date]
    provider_name: Optional[str]
    provider_npi: Optional[str]
    insurer_name: Optional[str]
    cpt_codes: List[str]
    icd_codes: List[str]
    description: Optional[str]
    notes: Optional[str]
    external_claim_number: Optional[str]
    denial_reason: Optional[str]
    submitted_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class DocumentCreate(BaseModel):
    """Schema for attaching a supporting document reference."""

    document_type: DocumentType
    file_name: str = Field(..., min_length=1, max_length=255)
    storage_key: str = Field(..., min_length=1, max_length=512, description="Object storage key")
    mime_type: Optional[str] = Field(None, max_length=100)
    file_size: Optional[int] = Field(None, ge=0)


class DocumentResponse(BaseModel):
    """Schema for document response."""

    id: UUID
    claim_id: UUID
    document_type: DocumentType
    file_name: str
    storage_key: str
    mime_type: Optional[str]
    file_size: Optional[int]
    created_at: datetime

    model_config = {"from_attributes": True}


class TimelineEventResponse(BaseModel):
    """Schema for a claim timeline entry."""

    id: UUID
    claim_id: UUID
    event_type: TimelineEventType
    title: str
    description: Optional[str]
    previous_status: Optional[ClaimStatus]
    new_status: Optional[ClaimStatus]
    event_metadata: dict
    created_at: datetime

    model_config = {"from_attributes": True}


class StatusUpdateRequest(BaseModel):
    """Schema for a non-submission status change."""

    status: ClaimStatus
    reason: Optional[str] = Field(None, max_length=2000, description="Why the status changed")
    denial_reason: Optional[str] = Field(None, max_length=2000)
    paid_amount_cents: Optional[int] = Field(None, ge=0)

    @model_validator(mode="after")
    def check_status_fields(self) -> "StatusUpdateRequest":
        """Denied needs a denial reason; Paid needs a paid amount."""
        if self.status == ClaimStatus.DENIED and not self.denial_reason:
            raise ValueError("denial_reason is required when denying a claim")
        if self.status == ClaimStatus.PAID and self.paid_amount_cents is None:
            raise ValueError("paid_amount_cents is required when marking a claim paid")
        return self
