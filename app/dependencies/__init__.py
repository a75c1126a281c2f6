"""FastAPI dependency providers."""
from app.dependencies.submission import (
    get_document_generator,
    get_event_publisher,
    get_idempotency_guard,
    get_provider_gateways,
    get_submission_orchestrator,
)

__all__ = [
    "get_document_generator",
    "get_event_publisher",
    "get_idempotency_guard",
    "get_provider_gateways",
    "get_submission_orchestrator",
]
