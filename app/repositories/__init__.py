"""Repository layer for database operations."""
from app.repositories.claim_repository import ClaimRepository

__all__ = [
    "ClaimRepository",
]
