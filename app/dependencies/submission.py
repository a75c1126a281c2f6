"""FastAPI dependencies for the submission workflow."""
from functools import lru_cache
from typing import List

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.gateways import ProviderGateway, build_provider_gateways
from app.repositories.claim_repository import ClaimRepository
from app.services.fallback_document import ClaimFormPdfGenerator, FallbackDocumentGenerator
from app.services.idempotency import IdempotencyGuard, build_idempotency_guard
from app.services.submission_events import SubmissionEventPublisher
from app.services.submission_orchestrator import SubmissionOrchestrator


@lru_cache
def get_idempotency_guard() -> IdempotencyGuard:
    """Process-wide guard; one registry shared by every request."""
    return build_idempotency_guard()


@lru_cache
def get_provider_gateways() -> List[ProviderGateway]:
    """Configured clearinghouse gateways in priority order."""
    return build_provider_gateways()


@lru_cache
def get_document_generator() -> FallbackDocumentGenerator:
    return ClaimFormPdfGenerator()


@lru_cache
def get_event_publisher() -> SubmissionEventPublisher:
    return SubmissionEventPublisher()


def get_submission_orchestrator(
    db: AsyncSession = Depends(get_db),
    guard: IdempotencyGuard = Depends(get_idempotency_guard),
    gateways: List[ProviderGateway] = Depends(get_provider_gateways),
    document_generator: FallbackDocumentGenerator = Depends(get_document_generator),
    event_publisher: SubmissionEventPublisher = Depends(get_event_publisher),
) -> SubmissionOrchestrator:
    """
    Build an orchestrator bound to the request's database session.

    Returns:
        SubmissionOrchestrator instance
    """
    return SubmissionOrchestrator(
        store=ClaimRepository(db),
        guard=guard,
        gateways=gateways,
        document_generator=document_generator,
        event_publisher=event_publisher,
    )
