"""Service layer for business logic."""
from app.services.claim_service import ClaimService
from app.services.submission_orchestrator import SubmissionOrchestrator, SubmissionOutcome

__all__ = [
    "ClaimService",
    "SubmissionOrchestrator",
    "SubmissionOutcome",
]
