"""Response envelope models.

Collections are returned as ``{"data": [...], "meta": {...}}`` and errors as
``{"error": {...}}``. Field names are serialized in camelCase to match the
public API.
"""

from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, computed_field
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class PaginationMeta(BaseModel):
    """Pagination metadata for collections.

    Attributes:
        total: Total number of items across all pages.
        page: Current page number (1-indexed).
        page_size: Number of items per page.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    total: int
    page: int
    page_size: int

    @computed_field(alias="totalPages")  # type: ignore[prop-decorator]
    @property
    def total_pages(self) -> int:
        """Calculate total number of pages.

        Returns:
            Number of pages needed to display all items.
            Returns 0 if total is 0.
        """
        if self.total == 0:
            return 0
        return (self.total + self.page_size - 1) // self.page_size


class ListResponse(BaseModel, Generic[T]):
    """Standard response envelope for collections.

    Usage:
        @router.get("/content")
        async def list_content(
            pagination: PaginationParams = Depends(pagination_params)
        ) -> ListResponse[ScrapedContentRead]:
            items, total = await repo.list(...)
            return ListResponse(
                data=items,
                meta=PaginationMeta(
                    total=total,
                    page=pagination.page,
                    page_size=pagination.page_size,
                ),
            )
    """

    data: list[T]
    meta: PaginationMeta


class ErrorDetail(BaseModel):
    """Error detail for response body.

    Attributes:
        code: Machine-readable error code (e.g., "UNAUTHORIZED").
        message: Human-readable error message.
        details: Optional list of field-level errors (for validation).
    """

    code: str
    message: str
    details: list[dict] | None = None


class ErrorResponse(BaseModel):
    """Standard error response envelope.

    Usage in exception handlers:
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(
                error=ErrorDetail(code=exc.code, message=exc.message)
            ).model_dump(),
        )
    """

    error: ErrorDetail
