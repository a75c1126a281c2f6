"""Database models."""
from app.database import Base
from app.models.claim import Claim
from app.models.document import ClaimDocument
from app.models.submission import SubmissionRecord
from app.models.timeline import ClaimTimelineEvent

__all__ = ["Base", "Claim", "ClaimDocument", "SubmissionRecord", "ClaimTimelineEvent"]
