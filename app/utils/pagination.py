"""
Offset pagination helpers shared by the reviewer listing endpoints.
"""

from pydantic import BaseModel, Field
import math


def calculate_offset(page: int, limit: int) -> int:
    """
    Example:
        >>> calculate_offset(3, 10)
        20
    """
    if page < 1:
        raise ValueError("Page must be >= 1")
    if limit < 1:
        raise ValueError("Limit must be >= 1")
    return (page - 1) * limit


def calculate_total_pages(total: int, limit: int) -> int:
    """
    Example:
        >>> calculate_total_pages(95, 20)
        5
    """
    if total < 0:
        raise ValueError("Total must be >= 0")
    if limit < 1:
        raise ValueError("Limit must be >= 1")
    return math.ceil(total / limit) if total else 0


class PaginationParams(BaseModel):
    """Page/limit query parameters (page is 1-indexed, limit capped at 100)."""
    page: int = Field(default=1, ge=1, description="Page number (1-indexed)")
    limit: int = Field(default=20, ge=1, le=100, description="Items per page (max 100)")

    def get_offset(self) -> int:
        return calculate_offset(self.page, self.limit)


class PaginationMeta(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int
    has_next: bool
    has_previous: bool

    @classmethod
    def from_params(cls, params: PaginationParams, total: int) -> "PaginationMeta":
        total_pages = calculate_total_pages(total, params.limit)
        return cls(
            page=params.page,
            limit=params.limit,
            total=total,
            total_pages=total_pages,
            has_next=params.page < total_pages,
            has_previous=params.page > 1,
        )
