"""Web scraping endpoints.

- POST /scrape: crawl a site from a seed URL and store its pages
- GET /content: stored pages, newest first, optionally filtered by seed
- GET /content/{content_id}: one stored page

Stored pages are returned with the renderings chosen by ``contentType``
(``markdown`` by default, ``html`` or ``both``).
"""

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Query

from kajix.api.deps import WebScrapingServiceDep
from kajix.core.pagination import PaginationParams, pagination_params
from kajix.core.responses import ListResponse, PaginationMeta
from kajix.schemas.web_scraping import (
    ContentType,
    PageContentRead,
    ScrapingRequest,
    ScrapingResponse,
    render_scraped_content,
)

router = APIRouter()

ContentTypeQuery = Annotated[
    ContentType,
    Query(alias="contentType", description="markdown, html or both"),
]


@router.post("/scrape", status_code=201)
async def scrape(
    body: ScrapingRequest, service: WebScrapingServiceDep
) -> ScrapingResponse:
    """Crawl every page reachable on the seed's hostname.

    400 for an invalid URL or a seed page that fails to load,
    408 when the seed page navigation times out.
    """
    result = await service.scrape(body.url)
    return ScrapingResponse(
        source_url=result.source_url,
        content=[PageContentRead.model_validate(page) for page in result.content],
        scraped_at=result.scraped_at,
    )


@router.get("/content")
async def list_content(
    service: WebScrapingServiceDep,
    pagination: Annotated[PaginationParams, Depends(pagination_params)],
    base_url: Annotated[str | None, Query(alias="baseUrl")] = None,
    content_type: ContentTypeQuery = ContentType.MARKDOWN,
) -> ListResponse[dict[str, Any]]:
    """List stored pages, most recently scraped first."""
    rows, total = await service.list_content(pagination, base_url=base_url)
    return ListResponse(
        data=[render_scraped_content(row, content_type) for row in rows],
        meta=PaginationMeta(
            total=total,
            page=pagination.page,
            page_size=pagination.page_size,
        ),
    )


@router.get("/content/{content_id}")
async def get_content(
    content_id: str,
    service: WebScrapingServiceDep,
    content_type: ContentTypeQuery = ContentType.MARKDOWN,
) -> dict[str, Any]:
    """Fetch one stored page. 400 if the id does not resolve."""
    content = await service.get_content(content_id)
    return render_scraped_content(content, content_type)
