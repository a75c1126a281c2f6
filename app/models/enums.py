"""Enumerations shared by models, schemas and services."""
from enum import Enum


class ClaimStatus(str, Enum):
    """Lifecycle status of a claim."""
    DRAFT = "draft"
    SUBMITTED = "submitted"
    PROCESSING = "processing"
    APPROVED = "approved"
    DENIED = "denied"
    REJECTED = "rejected"
    APPEALED = "appealed"
    PAID = "paid"
    CANCELLED = "cancelled"


class SubmissionMethod(str, Enum):
    """How a claim reached the insurer."""
    ELECTRONIC = "electronic"  # Via a clearinghouse
    DOCUMENT = "document"      # Generated claim form, filed manually


class TimelineEventType(str, Enum):
    """Types of entries in a claim's audit timeline."""
    CREATED = "created"
    SUBMITTED = "submitted"
    PROCESSING = "processing"
    APPROVED = "approved"
    DENIED = "denied"
    APPEALED = "appealed"
    PAID = "paid"
    DOCUMENT_ADDED = "document_added"
    STATUS_CHANGED = "status_changed"
    NOTE_ADDED = "note_added"
    ERROR_OCCURRED = "error_occurred"


class DocumentType(str, Enum):
    """Kinds of supporting documents attached to a claim."""
    RECEIPT = "receipt"
    INSURANCE_CARD = "insurance_card"
    MEDICAL_RECORD = "medical_record"
    PRESCRIPTION = "prescription"
    REFERRAL = "referral"
    AUTHORIZATION = "authorization"
    APPEAL_LETTER = "appeal_letter"
    CORRESPONDENCE = "correspondence"
    OTHER = "other"


# Document types that satisfy the supporting-document requirement for submission
QUALIFYING_DOCUMENT_TYPES = frozenset({
    DocumentType.RECEIPT,
    DocumentType.MEDICAL_RECORD,
    DocumentType.INSURANCE_CARD,
})
