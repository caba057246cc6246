"""Pydantic schemas for web scraping endpoints.

Wire names are camelCase. Stored records keep the public field names
``scrappedUrl`` and ``lastScrappedAt`` that existing clients read.
"""

import uuid
from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_serializer
from pydantic.alias_generators import to_camel

from kajix.models.scraped_content import ScrapedContent


class ContentType(StrEnum):
    """Which renderings of stored content to return."""

    HTML = "html"
    MARKDOWN = "markdown"
    BOTH = "both"


class ScrapingRequest(BaseModel):
    """Request body for POST /web-scraping/scrape."""

    model_config = ConfigDict(extra="forbid")

    url: str = Field(min_length=1, max_length=2048)


class PageContentRead(BaseModel):
    """One crawled page as returned by a scrape.

    ``markdown`` is left out when the HTML could not be converted.
    """

    model_config = ConfigDict(
        from_attributes=True, alias_generator=to_camel, populate_by_name=True
    )

    url: str
    is_external: bool
    title: str | None = None
    description: str | None = None
    text: str
    html: str
    markdown: str | None = None

    @model_serializer(mode="wrap")
    def _omit_missing_markdown(self, handler):
        data = handler(self)
        if self.markdown is None:
            data.pop("markdown", None)
        return data


class ScrapingResponse(BaseModel):
    """Response for POST /web-scraping/scrape."""

    model_config = ConfigDict(
        from_attributes=True, alias_generator=to_camel, populate_by_name=True
    )

    source_url: str
    content: list[PageContentRead]
    scraped_at: datetime


class ScrapedContentRead(BaseModel):
    """A stored page."""

    model_config = ConfigDict(
        from_attributes=True, alias_generator=to_camel, populate_by_name=True
    )

    id: uuid.UUID
    base_url: str
    scraped_url: str = Field(alias="scrappedUrl")
    last_scraped_at: datetime = Field(alias="lastScrappedAt")
    html_content: str | None = None
    markdown_content: str | None = None
    created_at: datetime
    updated_at: datetime


_EXCLUDED_BY_CONTENT_TYPE: dict[ContentType, set[str]] = {
    ContentType.HTML: {"markdown_content"},
    ContentType.MARKDOWN: {"html_content"},
    ContentType.BOTH: set(),
}


def render_scraped_content(
    content: ScrapedContent, content_type: ContentType = ContentType.MARKDOWN
) -> dict[str, Any]:
    """Serialize a stored page with only the requested renderings.

    A missing Markdown rendering is omitted rather than sent as null.

    Args:
        content: Stored page.
        content_type: html, markdown (default) or both.

    Returns:
        JSON-ready dict with camelCase keys.
    """
    view = ScrapedContentRead.model_validate(content)
    data = view.model_dump(
        mode="json",
        by_alias=True,
        exclude=_EXCLUDED_BY_CONTENT_TYPE[content_type],
    )
    if data.get("markdownContent") is None:
        data.pop("markdownContent", None)
    return data
