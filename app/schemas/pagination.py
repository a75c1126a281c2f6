"""Paging for the claim list endpoint."""
from typing import List, Tuple
from pydantic import BaseModel, Field

from app.schemas.claim import ClaimResponse

MAX_PAGE_SIZE = 100


def page_window(page: int, page_size: int) -> Tuple[int, int]:
    """Translate a 1-indexed page into (offset, limit) for the claim query."""
    return (page - 1) * page_size, page_size


class PageInfo(BaseModel):
    """Where a claim page sits in the full result set."""
    page: int = Field(..., description="Current page number")
    page_size: int = Field(..., description="Claims per page")
    total_items: int = Field(..., description="Claims matching the filters")
    total_pages: int = Field(..., description="Pages at this page size")
    has_next: bool
    has_previous: bool


class ClaimPage(BaseModel):
    """One page of claims, newest first."""
    items: List[ClaimResponse]
    pagination: PageInfo

    @classmethod
    def build(cls, claims: List[ClaimResponse], total_items: int, page: int, page_size: int) -> "ClaimPage":
        total_pages = -(-total_items // page_size)
        return cls(
            items=claims,
            pagination=PageInfo(
                page=page,
                page_size=page_size,
                total_items=total_items,
                total_pages=total_pages,
                has_next=page < total_pages,
                has_previous=page > 1,
            ),
        )
