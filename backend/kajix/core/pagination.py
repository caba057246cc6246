"""Pagination utilities.

page (default 1), pageSize (default 10, max 100).
"""

from dataclasses import dataclass

from fastapi import Query

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100


@dataclass
class PaginationParams:
    """Pagination query parameters.

    Attributes:
        page: Current page number (1-indexed).
        page_size: Number of items per page.
    """

    page: int
    page_size: int

    @property
    def offset(self) -> int:
        """Number of items to skip (0 for page 1)."""
        return (self.page - 1) * self.page_size

    @property
    def limit(self) -> int:
        """Maximum number of items to return (same as page_size)."""
        return self.page_size


def pagination_params(
    page: int = Query(default=1, ge=1, description="Page number (1-indexed)"),
    page_size: int = Query(
        default=DEFAULT_PAGE_SIZE,
        ge=1,
        le=MAX_PAGE_SIZE,
        alias="pageSize",
        description=f"Items per page (max {MAX_PAGE_SIZE})",
    ),
) -> PaginationParams:
    """FastAPI dependency for pagination query parameters.

    Args:
        page: Page number (default 1, must be >= 1).
        page_size: Items per page (default 10, between 1 and 100).

    Returns:
        PaginationParams with validated page and page_size.
    """
    return PaginationParams(page=page, page_size=page_size)
