"""
Shared schema pieces: pagination metadata and simple acknowledgements.
"""

from pydantic import BaseModel, Field
from typing import Dict
import math


class PageMeta(BaseModel):
    """Pagination metadata attached to list responses."""

    total: int = Field(..., description="Total number of records matching the criteria", examples=[42])
    page: int = Field(..., description="Current page number", examples=[1])
    page_size: int = Field(..., description="Number of records per page", examples=[20])
    total_pages: int = Field(..., description="Total number of pages", examples=[3])
    has_next: bool = Field(..., description="Whether there are more pages")
    has_previous: bool = Field(..., description="Whether there are previous pages")


def build_page_meta(total: int, page: int, page_size: int) -> Dict[str, int]:
    """Pagination fields for a list response."""
    total_pages = math.ceil(total / page_size) if page_size else 0
    return {
        "total": total,
        "page": page,
        "page_size": page_size,
        "total_pages": total_pages,
        "has_next": page < total_pages,
        "has_previous": page > 1,
    }


class MessageResponse(BaseModel):
    """Plain acknowledgement."""

    message: str = Field(..., examples=["Operation completed"])


class StatusCounts(BaseModel):
    """Record counts keyed by status value."""

    counts: Dict[str, int] = Field(default_factory=dict, description="Count per status")
    total: int = Field(0, description="Sum of all counts")
